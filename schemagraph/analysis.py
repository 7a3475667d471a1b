"""
Graph analysis - summaries of a compiled schema diagram.

Used by the API, the CLI and the MCP tools to describe what a visibility
state currently shows without shipping every node.
"""

from collections import defaultdict
from dataclasses import dataclass, field

from .models import EdgeKind, NodeKind, SchemaGraph
from .ids import ROOT_ID


@dataclass
class ReferenceTarget:
    """A node that reference edges point at."""
    node_id: str
    label: str
    referenced_by: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.referenced_by)


@dataclass
class GraphSummary:
    """Complete summary of a compiled diagram."""
    root_label: str
    total_nodes: int
    total_edges: int
    nodes_by_kind: dict[str, int]
    edges_by_kind: dict[str, int]
    max_depth: int
    collapsed_nodes: int
    truncated_levels: int
    hidden_entries: int
    most_referenced: list[ReferenceTarget]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "root_label": self.root_label,
            "total_nodes": self.total_nodes,
            "total_edges": self.total_edges,
            "nodes_by_kind": self.nodes_by_kind,
            "edges_by_kind": self.edges_by_kind,
            "max_depth": self.max_depth,
            "collapsed_nodes": self.collapsed_nodes,
            "truncated_levels": self.truncated_levels,
            "hidden_entries": self.hidden_entries,
            "most_referenced": [
                {"id": t.node_id, "label": t.label, "references": t.count}
                for t in self.most_referenced
            ],
        }


def tree_depths(graph: SchemaGraph) -> dict[str, int]:
    """
    Depth of every node in the containment tree (BFS from the roots).

    Nodes with no incoming tree edge have depth 0.
    """
    children: dict[str, list[str]] = defaultdict(list)
    has_parent: set[str] = set()
    for edge in graph.edges:
        if edge.is_tree_edge:
            children[edge.source].append(edge.target)
            has_parent.add(edge.target)

    depths: dict[str, int] = {}
    queue = [(n.id, 0) for n in graph.nodes if n.id not in has_parent]
    while queue:
        node_id, depth = queue.pop(0)
        if node_id in depths:
            continue
        depths[node_id] = depth
        for child in children[node_id]:
            queue.append((child, depth + 1))
    return depths


def reference_targets(graph: SchemaGraph) -> list[ReferenceTarget]:
    """Reference targets, most referenced first."""
    nodes = graph.node_index()
    targets: dict[str, ReferenceTarget] = {}
    for edge in graph.edges_of_kind(EdgeKind.REFERENCE):
        node = nodes.get(edge.target)
        if node is None:
            continue
        target = targets.setdefault(edge.target, ReferenceTarget(edge.target, node.label))
        target.referenced_by.append(edge.source)
    return sorted(targets.values(), key=lambda t: (-t.count, t.node_id))


def summarize_graph(graph: SchemaGraph, top_n: int = 5) -> GraphSummary:
    """
    Generate a summary of a compiled diagram.

    Args:
        graph: The graph to summarize
        top_n: Number of most-referenced nodes to include

    Returns:
        GraphSummary object with all analysis results
    """
    kind_counts: dict[str, int] = defaultdict(int)
    for node in graph.nodes:
        kind_counts[node.kind.value] += 1

    edge_counts: dict[str, int] = defaultdict(int)
    for edge in graph.edges:
        edge_counts[edge.kind.value] += 1

    hidden = sum(
        len(n.data.get("entries", [])) for n in graph.nodes_of_kind(NodeKind.GROUPED_OVERFLOW)
    )
    truncated = sum(
        len(n.data.get("elided", [])) for n in graph.nodes_of_kind(NodeKind.TRUNCATED_CHAIN)
    ) + sum(len(n.data.get("truncated_ancestors", [])) for n in graph.nodes)

    root = graph.get_node(ROOT_ID)
    depths = tree_depths(graph)

    return GraphSummary(
        root_label=root.label if root else "",
        total_nodes=len(graph.nodes),
        total_edges=len(graph.edges),
        nodes_by_kind=dict(kind_counts),
        edges_by_kind=dict(edge_counts),
        max_depth=max(depths.values(), default=0),
        collapsed_nodes=sum(1 for n in graph.nodes if n.collapsed),
        truncated_levels=truncated,
        hidden_entries=hidden,
        most_referenced=reference_targets(graph)[:top_n],
    )


def find_reference_cycles(graph: SchemaGraph) -> list[list[str]]:
    """
    Cycles formed by reference edges (e.g. a recursive `$ref`).

    Returns:
        List of cycles, each a list of node IDs ending with its start
    """
    adjacency: dict[str, list[str]] = defaultdict(list)
    for edge in graph.edges_of_kind(EdgeKind.REFERENCE):
        adjacency[edge.source].append(edge.target)

    cycles: list[list[str]] = []
    seen: set[frozenset[str]] = set()

    def dfs(start: str, current: str, path: list[str], visited: set[str]):
        for neighbor in adjacency[current]:
            if neighbor == start:
                key = frozenset(path)
                if key not in seen:
                    seen.add(key)
                    cycles.append(path + [start])
            elif neighbor not in visited:
                visited.add(neighbor)
                path.append(neighbor)
                dfs(start, neighbor, path, visited)
                path.pop()
                visited.remove(neighbor)

    for node_id in list(adjacency):
        dfs(node_id, node_id, [node_id], {node_id})
    return cycles
