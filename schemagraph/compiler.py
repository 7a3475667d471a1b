"""
Schema graph compiler.

Turns a document plus a visibility map into a SchemaGraph:

1. Emit the synthetic root
2. Walk the document (OpenAPI or JSON-Schema walk)
3. Resolve `$ref` pointers into reference edges once every node exists
4. Give every node an initial position (sibling sets centered under parents)

The compiler never raises for bad input: a non-mapping document yields an
empty graph, an unrecognized mapping yields the root alone, and a failing
branch is dropped while its siblings survive.
"""

import logging
from typing import Any, Mapping, Optional, Union

from .builder import GraphBuilder
from .config import CompileOptions, GroupingMode
from .grid import grid_positions, sequential_positions
from .grouping import schema_type_label
from .models import EdgeKind, GraphNode, NodeKind, SchemaGraph
from .openapi import OpenApiWalker, api_title, is_openapi
from .references import resolve_references
from .schema_walk import SchemaWalker, WalkContext, is_json_schema
from .visibility import ROOT_PATH, DepthBudget, VisibilityModel, resolve_expansion

logger = logging.getLogger(__name__)

# Initial placement spacing (the tree layout refines it)
SIBLING_SPACING = 200
LEVEL_SPACING = 150


def compile_schema_graph(
    document: Any,
    grouping_mode: Optional[Union[GroupingMode, str]] = None,
    max_depth: Optional[int] = None,
    visibility: Optional[Union[VisibilityModel, Mapping[str, Any]]] = None,
    options: Optional[CompileOptions] = None
) -> SchemaGraph:
    """
    Compile a document into nodes and edges.

    Args:
        document: JSON-Schema-like or OpenAPI mapping
        grouping_mode: Overrides options.grouping_mode
        max_depth: Overrides options.max_depth
        visibility: Path -> expand state, or a VisibilityModel
        options: Remaining compile options

    Returns:
        SchemaGraph with the root first; empty for non-mapping input
    """
    opts = options or CompileOptions()
    overrides = {}
    if grouping_mode is not None:
        overrides["grouping_mode"] = GroupingMode(grouping_mode)
    if max_depth is not None:
        overrides["max_depth"] = max_depth
    if overrides:
        opts = CompileOptions.model_validate({**opts.model_dump(), **overrides})

    if not isinstance(document, Mapping):
        logger.debug("Nothing to compile: document is %s", type(document).__name__)
        return SchemaGraph()

    vis = visibility if isinstance(visibility, VisibilityModel) else VisibilityModel(visibility)
    builder = GraphBuilder()
    ctx = WalkContext(builder=builder, visibility=vis, options=opts)

    budget = DepthBudget.start(opts.max_depth, opts.depth_mode)
    expansion = resolve_expansion(vis, ROOT_PATH, budget)

    openapi = is_openapi(document)
    schema = not openapi and is_json_schema(document)
    root = _emit_root(builder, document, openapi, schema, expansion.expanded)

    if expansion.can_descend:
        with builder.branch(ROOT_PATH):
            if openapi:
                OpenApiWalker(ctx).walk(root, document, expansion.budget)
            elif schema:
                SchemaWalker(ctx).walk_root(root, document, expansion.budget)

    resolve_references(builder)
    graph = place_initial(builder.build())

    logger.debug(
        "Compiled %s document: %d nodes, %d edges",
        "openapi" if openapi else "schema" if schema else "unrecognized",
        len(graph.nodes), len(graph.edges)
    )
    return graph


def _emit_root(
    builder: GraphBuilder,
    document: Mapping,
    openapi: bool,
    schema: bool,
    expanded: bool
) -> GraphNode:
    if openapi:
        version = document.get("openapi") or document.get("swagger")
        return builder.add_node(
            NodeKind.ROOT, ROOT_PATH, fragment=document,
            label=api_title(document),
            collapsed=not expanded,
            schema_type="openapi",
            data={"openapi": str(version), "format": "openapi"},
        )

    label = document.get("title") if isinstance(document.get("title"), str) else "Root"
    return builder.add_node(
        NodeKind.ROOT, ROOT_PATH, fragment=document,
        label=label,
        collapsed=not expanded,
        schema_type=schema_type_label(document) if schema else None,
        description=document.get("description") if isinstance(document.get("description"), str) else None,
        data={"format": "json-schema" if schema else "unknown"},
    )


def place_initial(graph: SchemaGraph) -> SchemaGraph:
    """
    Center each sibling set under its parent.

    Nodes are emitted parents-first, so a pass in emission order positions
    every parent before its children. Subtrees with no parent other than the
    first node's tree are wrapped into a grid below it and placed in a
    second pass.
    """
    if not graph.nodes:
        return SchemaGraph()

    children: dict[str, list[str]] = {}
    has_parent: set[str] = set()
    for edge in graph.edges:
        if edge.kind in (EdgeKind.STRUCTURAL, EdgeKind.ITEMS) and edge.target not in has_parent:
            children.setdefault(edge.source, []).append(edge.target)
            has_parent.add(edge.target)

    positions: dict[str, tuple[float, float]] = {graph.nodes[0].id: (0.0, 0.0)}
    _place_children(graph.nodes, children, positions)

    detached = [n.id for n in graph.nodes[1:] if n.id not in has_parent]
    if detached:
        bottom = max(y for _, y in positions.values()) + LEVEL_SPACING
        for node_id, pos in zip(detached, grid_positions(len(detached), start_y=bottom)):
            positions[node_id] = (pos.x, pos.y)
        _place_children(graph.nodes, children, positions)
        logger.debug("Placed %d detached subtrees in a grid", len(detached))

    return SchemaGraph(
        nodes=[n.moved_to(*positions.get(n.id, (0.0, 0.0))) for n in graph.nodes],
        edges=list(graph.edges),
    )


def _place_children(
    nodes: list[GraphNode],
    children: dict[str, list[str]],
    positions: dict[str, tuple[float, float]],
):
    for node in nodes:
        if node.id not in positions:
            continue
        x, y = positions[node.id]
        kids = children.get(node.id, [])
        for kid, pos in zip(kids, sequential_positions(len(kids), x, y + LEVEL_SPACING, SIBLING_SPACING)):
            positions.setdefault(kid, (pos.x, pos.y))
