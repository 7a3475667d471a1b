"""
Node/edge emission for one compilation pass.

GraphBuilder collects nodes and edges, hands out deterministic ids, remembers
which document fragment each node was built from (so references can be
attributed to the closest materialized node) and which nodes are valid
reference targets. `branch()` makes the emission of one entry atomic: if
building it raises, everything it added is rolled back and its siblings are
unaffected.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from .ids import IdAllocator
from .models import Edge, EdgeKind, GraphNode, NodeKind, SchemaGraph

logger = logging.getLogger(__name__)


class MalformedFragment(ValueError):
    """A document fragment that cannot be turned into a node."""


class GraphBuilder:
    """Mutable accumulator for one pass; turned into a SchemaGraph by build()."""

    def __init__(self):
        self.nodes: list[GraphNode] = []
        self.edges: list[Edge] = []
        self._edge_keys: set[tuple[str, str, str]] = set()
        self._ids = IdAllocator()

        # node id -> fragments it was built from
        self._fragments: dict[str, list[Any]] = {}
        # id(fragment) -> owning node id, plus (node id, key, claimed) journal
        self._owners: dict[int, str] = {}
        self._owner_journal: list[tuple[str, int, bool]] = []
        # reference pointer prefix -> node id, plus journal
        self._targets: dict[str, str] = {}
        self._target_journal: list[str] = []

    # --- Nodes ---

    def add_node(
        self,
        kind: NodeKind,
        path: str,
        parent: Optional[GraphNode] = None,
        edge_kind: EdgeKind = EdgeKind.STRUCTURAL,
        fragment: Any = None,
        **fields
    ) -> GraphNode:
        """
        Emit a node and, when a parent is given, the edge that attaches it.

        Args:
            kind: Node kind
            path: Document path the node was built from
            parent: Node this one hangs below
            edge_kind: Kind of the attaching edge
            fragment: Document fragment the node represents
            **fields: Remaining GraphNode fields (label, data, ...)
        """
        node = GraphNode(id=self._ids.allocate(kind, path), kind=kind, source_path=path, **fields)
        self.nodes.append(node)
        self._fragments[node.id] = []
        if fragment is not None:
            self.own(node.id, fragment)
        if parent is not None:
            self.add_edge(parent.id, node.id, edge_kind)
        return node

    def own(self, node_id: str, fragment: Any):
        """Record that `node_id` represents `fragment`. The first owner wins."""
        if not isinstance(fragment, (dict, list)):
            return
        self._fragments.setdefault(node_id, []).append(fragment)
        key = id(fragment)
        claimed = key not in self._owners
        if claimed:
            self._owners[key] = node_id
        self._owner_journal.append((node_id, key, claimed))

    def owner_of(self, fragment: Any) -> Optional[str]:
        return self._owners.get(id(fragment))

    def fragments_of(self, node_id: str) -> list[Any]:
        return self._fragments.get(node_id, [])

    # --- Edges ---

    def add_edge(
        self,
        source: str,
        target: str,
        kind: EdgeKind = EdgeKind.STRUCTURAL,
        label: str = ""
    ) -> Optional[Edge]:
        """Add an edge unless an identical (source, target, kind) edge exists."""
        key = (source, target, kind.value)
        if key in self._edge_keys:
            return None
        edge = Edge(source=source, target=target, kind=kind, label=label)
        self._edge_keys.add(key)
        self.edges.append(edge)
        return edge

    # --- Reference targets ---

    def register_target(self, pointer: str, node_id: str):
        """Make `node_id` the target of references to `pointer` (first wins)."""
        if pointer in self._targets:
            return
        self._targets[pointer] = node_id
        self._target_journal.append(pointer)

    def target_for(self, pointer: str) -> Optional[str]:
        return self._targets.get(pointer)

    # --- Atomic branches ---

    @contextmanager
    def branch(self, path: str) -> Iterator[None]:
        """
        Emit one entry atomically.

        Exceptions raised inside the block are logged and everything added
        since entering is discarded.
        """
        mark = (
            len(self.nodes),
            len(self.edges),
            len(self._owner_journal),
            len(self._target_journal),
            self._ids.snapshot(),
        )
        try:
            yield
        except Exception as e:
            self._rollback(mark)
            logger.warning("Dropped branch at %s: %s", path, e)

    def _rollback(self, mark):
        node_count, edge_count, owner_count, target_count, ids = mark

        for node in self.nodes[node_count:]:
            self._fragments.pop(node.id, None)
        del self.nodes[node_count:]

        for edge in self.edges[edge_count:]:
            self._edge_keys.discard(edge.key())
        del self.edges[edge_count:]

        for node_id, key, claimed in reversed(self._owner_journal[owner_count:]):
            if claimed:
                self._owners.pop(key, None)
            # Fragments attached to nodes that survive the rollback
            fragments = self._fragments.get(node_id)
            if fragments:
                fragments.pop()
        del self._owner_journal[owner_count:]

        for pointer in self._target_journal[target_count:]:
            self._targets.pop(pointer, None)
        del self._target_journal[target_count:]

        self._ids.restore(ids)

    def build(self) -> SchemaGraph:
        return SchemaGraph(nodes=list(self.nodes), edges=list(self.edges))
