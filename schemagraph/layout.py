"""
Tree layout engine.

Deterministic, subtree-aware placement using two passes over the containment
tree implied by structural and items edges:

1. Bottom-up: each node's subtree width is the larger of its own width and the
   total width of its children's subtrees plus the gaps between them
2. Top-down: each node is centered in the span allotted to it; children are
   packed left-to-right, each centered in its own share

Nodes with no incoming tree edge are independent roots, packed left-to-right
with the synthetic root first. Anchored (user-dragged) nodes keep their
position and their subtrees are laid out relative to them.

All functions return new node objects; inputs are left untouched.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .config import Orientation, TreeLayoutConfig
from .ids import ROOT_ID
from .models import Edge, GraphNode, Size
from .sizing import node_size

logger = logging.getLogger(__name__)

SizeEstimator = Callable[[GraphNode], Size]


@dataclass
class _LayoutNode:
    node: GraphNode
    breadth: float  # extent across siblings (width when vertical)
    depth: float    # extent along parent -> child (height when vertical)
    children: list["_LayoutNode"] = field(default_factory=list)
    subtree: float = 0.0


def _build_forest(
    nodes: list[GraphNode],
    edges: list[Edge],
    config: TreeLayoutConfig,
    estimator: SizeEstimator
) -> list[_LayoutNode]:
    horizontal = config.orientation == Orientation.HORIZONTAL
    node_map = {n.id: n for n in nodes}

    # First tree edge into a node wins; the rest would make it a DAG
    children: dict[str, list[str]] = {n.id: [] for n in nodes}
    has_parent: set[str] = set()
    for edge in edges:
        if not edge.is_tree_edge or edge.source == edge.target:
            continue
        if edge.source in node_map and edge.target in node_map and edge.target not in has_parent:
            children[edge.source].append(edge.target)
            has_parent.add(edge.target)

    visited: set[str] = set()

    def build(node_id: str) -> _LayoutNode:
        visited.add(node_id)
        node = node_map[node_id]
        size = estimator(node)
        width = max(size.width, config.min_node_width)
        height = max(size.height, config.min_node_height)
        layout_node = _LayoutNode(
            node=node,
            breadth=height if horizontal else width,
            depth=width if horizontal else height,
        )
        for child_id in children[node_id]:
            if child_id not in visited:
                layout_node.children.append(build(child_id))
        return layout_node

    roots = [n.id for n in nodes if n.id not in has_parent]
    roots.sort(key=lambda node_id: node_id != ROOT_ID)

    forest = [build(r) for r in roots if r not in visited]
    # Nodes only reachable through a cycle
    forest.extend(build(n.id) for n in nodes if n.id not in visited)
    return forest


def _measure(tree: _LayoutNode, gap: float) -> float:
    """Bottom-up pass: subtree widths."""
    if not tree.children:
        tree.subtree = tree.breadth
        return tree.subtree
    total = sum(_measure(child, gap) for child in tree.children)
    total += (len(tree.children) - 1) * gap
    tree.subtree = max(tree.breadth, total)
    return tree.subtree


def _assign(
    tree: _LayoutNode,
    center: float,
    level: float,
    config: TreeLayoutConfig,
    out: dict[str, tuple[float, float]]
):
    """Top-down pass: positions."""
    horizontal = config.orientation == Orientation.HORIZONTAL
    node = tree.node

    if node.anchored:
        if horizontal:
            center, level = node.y + tree.breadth / 2, node.x
        else:
            center, level = node.x + tree.breadth / 2, node.y
        out[node.id] = (node.x, node.y)
    elif horizontal:
        out[node.id] = (level, center - tree.breadth / 2)
    else:
        out[node.id] = (center - tree.breadth / 2, level)

    if not tree.children:
        return

    total = sum(c.subtree for c in tree.children) + (len(tree.children) - 1) * config.horizontal_gap
    cursor = center - total / 2
    child_level = level + tree.depth + config.vertical_gap
    for child in tree.children:
        _assign(child, cursor + child.subtree / 2, child_level, config, out)
        cursor += child.subtree + config.horizontal_gap


def tree_layout(
    nodes: list[GraphNode],
    edges: list[Edge],
    config: Optional[TreeLayoutConfig] = None,
    estimator: SizeEstimator = node_size
) -> list[GraphNode]:
    """
    Arrange nodes in a hierarchical tree layout.

    Args:
        nodes: Nodes to arrange
        edges: Edges; only structural and items edges define the tree
        config: Spacing and orientation
        estimator: Node -> Size (measured size if known, else estimated)

    Returns:
        New list of positioned nodes, in input order
    """
    if not nodes:
        return []
    config = config or TreeLayoutConfig()
    horizontal = config.orientation == Orientation.HORIZONTAL

    forest = _build_forest(nodes, edges, config, estimator)
    positions: dict[str, tuple[float, float]] = {}

    center = config.root_y if horizontal else config.root_x
    level = config.root_x if horizontal else config.root_y
    previous: Optional[_LayoutNode] = None
    for tree in forest:
        _measure(tree, config.horizontal_gap)
        if previous is not None:
            center += previous.subtree / 2 + config.horizontal_gap + tree.subtree / 2
        _assign(tree, center, level, config, positions)
        previous = tree

    logger.debug("Tree layout: %d nodes in %d trees", len(nodes), len(forest))
    return [n.moved_to(*positions[n.id]) for n in nodes]
