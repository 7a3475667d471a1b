"""
Ancestral truncation.

A pass-through node has exactly one parent and one child in the containment
tree, is not a semantically special kind, and its child is expanded. Maximal
chains of such nodes carry no information beyond their labels, so they are
elided: either the parent is wired straight to the child (reconnect), or the
chain is replaced by one truncated-chain box listing what was elided
(representative).
"""

import logging
from typing import Optional

from .config import TruncationPolicy
from .ids import ROOT_ID, node_id
from .models import Edge, EdgeKind, GraphNode, NodeKind, SchemaGraph

logger = logging.getLogger(__name__)

# Kinds that are never elided
SPECIAL_KINDS = frozenset({
    NodeKind.ROOT,
    NodeKind.INFO,
    NodeKind.PATHS,
    NodeKind.ENDPOINT,
    NodeKind.METHOD,
    NodeKind.COMPONENTS_CONTAINER,
    NodeKind.GROUPED_OVERFLOW,
    NodeKind.OBJECT_GROUP,
    NodeKind.TRUNCATED_CHAIN,
})


def _find_chains(graph: SchemaGraph) -> tuple[list[list[str]], dict[str, list[Edge]], dict[str, list[Edge]]]:
    incoming: dict[str, list[Edge]] = {}
    outgoing: dict[str, list[Edge]] = {}
    for edge in graph.edges:
        if edge.is_tree_edge:
            incoming.setdefault(edge.target, []).append(edge)
            outgoing.setdefault(edge.source, []).append(edge)

    nodes = graph.node_index()

    def qualifies(node: GraphNode) -> bool:
        if node.id == ROOT_ID or node.kind in SPECIAL_KINDS:
            return False
        ins, outs = incoming.get(node.id, []), outgoing.get(node.id, [])
        if len(ins) != 1 or len(outs) != 1:
            return False
        child = nodes.get(outs[0].target)
        return child is not None and not child.collapsed

    candidates = {n.id for n in graph.nodes if qualifies(n)}

    chains: list[list[str]] = []
    visited: set[str] = set()
    for start in (n.id for n in graph.nodes if n.id in candidates):
        if start in visited:
            continue

        current = start
        seen = {current}
        while True:
            parent = incoming[current][0].source
            if parent not in candidates or parent in visited or parent in seen:
                break
            current = parent
            seen.add(current)

        chain = []
        while current in candidates and current not in visited:
            chain.append(current)
            visited.add(current)
            current = outgoing[current][0].target
        chains.append(chain)

    return chains, incoming, outgoing


def truncate_ancestral_chains(
    graph: SchemaGraph,
    policy: TruncationPolicy = TruncationPolicy.REPRESENTATIVE,
    min_chain_length: int = 2
) -> SchemaGraph:
    """
    Elide single-child pass-through chains.

    Args:
        graph: Compiled graph (left untouched)
        policy: reconnect or representative
        min_chain_length: Shorter chains are kept as they are

    Returns:
        New SchemaGraph
    """
    chains, incoming, outgoing = _find_chains(graph)
    chains = [c for c in chains if len(c) >= max(1, min_chain_length)]
    if not chains:
        return graph

    nodes = graph.node_index()
    removed: set[str] = set()
    replacement: dict[str, Optional[str]] = {}  # elided id -> representative id
    inserted: dict[str, GraphNode] = {}         # first elided id -> representative
    updated: dict[str, GraphNode] = {}
    new_edges: list[Edge] = []

    for chain in chains:
        parent_edge = incoming[chain[0]][0]
        child_edge = outgoing[chain[-1]][0]
        elided = [nodes[nid] for nid in chain]
        removed.update(chain)

        if policy == TruncationPolicy.RECONNECT:
            child = updated.get(child_edge.target, nodes[child_edge.target])
            ancestors = list(child.data.get("truncated_ancestors", []))
            ancestors.extend(n.label or n.id for n in elided)
            updated[child.id] = child.model_copy(
                update={"data": {**child.data, "truncated_ancestors": ancestors}}
            )
            new_edges.append(Edge(source=parent_edge.source, target=child_edge.target,
                                  kind=child_edge.kind, label="truncated"))
            for nid in chain:
                replacement[nid] = None
            continue

        first = elided[0]
        rep = GraphNode(
            id=node_id(NodeKind.TRUNCATED_CHAIN, first.source_path),
            kind=NodeKind.TRUNCATED_CHAIN,
            label=f"{len(elided)} levels",
            source_path=first.source_path,
            position=first.position,
            data={
                "elided": [
                    {"label": n.label, "type": n.schema_type or n.kind.value, "path": n.source_path}
                    for n in elided
                ],
            },
        )
        inserted[first.id] = rep
        new_edges.append(Edge(source=parent_edge.source, target=rep.id, kind=parent_edge.kind))
        new_edges.append(Edge(source=rep.id, target=child_edge.target, kind=child_edge.kind))
        for nid in chain:
            replacement[nid] = rep.id

    edges: list[Edge] = []
    keys: set[tuple[str, str, str]] = set()

    def keep(edge: Edge):
        if edge.key() not in keys:
            keys.add(edge.key())
            edges.append(edge)

    for edge in graph.edges:
        touches = edge.source in removed or edge.target in removed
        if not touches:
            keep(edge)
        elif edge.kind == EdgeKind.REFERENCE and policy == TruncationPolicy.REPRESENTATIVE:
            source = replacement.get(edge.source, edge.source)
            target = replacement.get(edge.target, edge.target)
            keep(Edge(source=source, target=target, kind=EdgeKind.REFERENCE))
    for edge in new_edges:
        keep(edge)

    result_nodes = []
    for node in graph.nodes:
        if node.id in inserted:
            result_nodes.append(inserted[node.id])
        elif node.id not in removed:
            result_nodes.append(updated.get(node.id, node))

    logger.debug("Truncated %d chains (%d nodes, %s)", len(chains), len(removed), policy.value)
    return SchemaGraph(nodes=result_nodes, edges=edges)
