"""
Diagram pipeline.

compile -> (ancestral truncation) -> tree layout -> collision resolve

`generate_diagram()` is the one call the session service and the CLI make.
DiagramCache memoizes whole results keyed by a structural hash of the inputs;
a hit returns a copy, so callers can never observe each other's mutations.
"""

import hashlib
import json
import logging
from collections import OrderedDict
from typing import Any, Mapping, Optional

from .collision import resolve_collisions
from .compiler import compile_schema_graph
from .config import DiagramSettings
from .layout import tree_layout
from .models import Position, SchemaGraph, Size
from .truncation import truncate_ancestral_chains

logger = logging.getLogger(__name__)


def apply_view_state(
    graph: SchemaGraph,
    positions: Optional[Mapping[str, Position]] = None,
    measured: Optional[Mapping[str, Size]] = None
) -> SchemaGraph:
    """Pin user-dragged nodes and attach sizes reported by the renderer."""
    positions = positions or {}
    measured = measured or {}
    if not positions and not measured:
        return graph

    nodes = []
    for node in graph.nodes:
        update: dict[str, Any] = {}
        if node.id in positions:
            update["position"] = positions[node.id]
            update["anchored"] = True
        if node.id in measured:
            update["measured"] = measured[node.id]
        nodes.append(node.model_copy(update=update) if update else node)
    return SchemaGraph(nodes=nodes, edges=list(graph.edges))


def generate_diagram(
    document: Any,
    visibility: Optional[Mapping[str, Any]] = None,
    settings: Optional[DiagramSettings] = None,
    positions: Optional[Mapping[str, Position]] = None,
    measured: Optional[Mapping[str, Size]] = None
) -> SchemaGraph:
    """
    Compile and position a document.

    Args:
        document: Schema or OpenAPI document
        visibility: Path -> expand state
        settings: Pipeline settings (defaults if None)
        positions: Node id -> user-dragged position
        measured: Node id -> rendered size

    Returns:
        Positioned SchemaGraph
    """
    settings = settings or DiagramSettings()

    graph = compile_schema_graph(document, visibility=visibility, options=settings.compile)
    if not graph.nodes:
        return graph

    if settings.truncation.enabled:
        graph = truncate_ancestral_chains(
            graph, settings.truncation.policy, settings.truncation.min_chain_length
        )

    graph = apply_view_state(graph, positions, measured)
    nodes = tree_layout(graph.nodes, graph.edges, settings.layout)
    if settings.collision.enabled:
        nodes = resolve_collisions(nodes, settings.collision)

    return SchemaGraph(nodes=nodes, edges=graph.edges)


def _canonical(value: Any) -> Any:
    """Mappings with string keys throughout, so mixed int/str keys still sort."""
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def cache_key(
    document: Any,
    visibility: Optional[Mapping[str, Any]],
    settings: DiagramSettings,
    positions: Optional[Mapping[str, Position]] = None,
    measured: Optional[Mapping[str, Size]] = None
) -> str:
    """sha256 over a canonical JSON rendering of every input."""
    payload = {
        "document": _canonical(document),
        "visibility": _canonical(dict(visibility or {})),
        "settings": settings.model_dump(mode="json"),
        "positions": {k: v.model_dump() for k, v in (positions or {}).items()},
        "measured": {k: v.model_dump() for k, v in (measured or {}).items()},
    }
    encoded = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class DiagramCache:
    """Bounded LRU cache in front of generate_diagram()."""

    def __init__(self, max_size: int = 32):
        self.max_size = max_size
        self._entries: OrderedDict[str, SchemaGraph] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self):
        self._entries.clear()

    def generate(
        self,
        document: Any,
        visibility: Optional[Mapping[str, Any]] = None,
        settings: Optional[DiagramSettings] = None,
        positions: Optional[Mapping[str, Position]] = None,
        measured: Optional[Mapping[str, Size]] = None
    ) -> SchemaGraph:
        settings = settings or DiagramSettings()
        if self.max_size <= 0:
            return generate_diagram(document, visibility, settings, positions, measured)

        key = cache_key(document, visibility, settings, positions, measured)
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            self._entries.move_to_end(key)
            return cached.model_copy(deep=True)

        self.misses += 1
        graph = generate_diagram(document, visibility, settings, positions, measured)
        self._entries[key] = graph
        if len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
        logger.debug("Diagram cache miss (%d entries)", len(self._entries))
        return graph.model_copy(deep=True)
