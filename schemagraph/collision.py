"""
Collision resolver.

Pushes overlapping (or too-close) nodes apart with a damped, pairwise
repulsion along the axis of smaller overlap. Upward movement is mostly
suppressed so parents stay above their children: the blocked share of an
upward push is handed to the partner as extra downward movement.

Anchored (user-dragged) nodes never move; their partner takes the whole
displacement.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .config import CollisionConfig
from .models import GraphNode, Size
from .sizing import node_size

logger = logging.getLogger(__name__)

# Gaps within this many pixels of min_distance count as resolved
EPSILON = 0.01


@dataclass
class Bounds:
    """Mutable working box for one node."""
    id: str
    x: float
    y: float
    width: float
    height: float
    anchored: bool = False

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2


@dataclass
class CollisionPair:
    a: Bounds
    b: Bounds
    overlap_x: float
    overlap_y: float


def get_node_bounds(
    nodes: list[GraphNode],
    estimator: Callable[[GraphNode], Size] = node_size
) -> list[Bounds]:
    """Bounding boxes from measured sizes when reported, else estimates."""
    bounds = []
    for node in nodes:
        size = estimator(node)
        bounds.append(Bounds(node.id, node.x, node.y, size.width, size.height, node.anchored))
    return bounds


def check_collision(a: Bounds, b: Bounds, min_distance: float) -> Optional[CollisionPair]:
    """
    Overlap of two boxes, or None if they are at least min_distance apart.

    For overlapping boxes the reported overlap includes min_distance so one
    push separates them fully; for boxes that are merely too close it is the
    missing gap on each axis.
    """
    overlap_x = min(a.x + a.width, b.x + b.width) - max(a.x, b.x)
    overlap_y = min(a.y + a.height, b.y + b.height) - max(a.y, b.y)
    if overlap_x > 0 and overlap_y > 0:
        return CollisionPair(a, b, overlap_x + min_distance, overlap_y + min_distance)

    gap_x = max(b.x - (a.x + a.width), a.x - (b.x + b.width), 0)
    gap_y = max(b.y - (a.y + a.height), a.y - (b.y + b.height), 0)
    threshold = min_distance - EPSILON
    if gap_x < threshold and gap_y < threshold:
        return CollisionPair(a, b, min_distance - gap_x, min_distance - gap_y)
    return None


def detect_collisions(bounds: list[Bounds], min_distance: float) -> list[CollisionPair]:
    """Every colliding pair, in index order."""
    collisions = []
    for i in range(len(bounds)):
        for j in range(i + 1, len(bounds)):
            pair = check_collision(bounds[i], bounds[j], min_distance)
            if pair:
                collisions.append(pair)
    return collisions


def calculate_repulsion(pair: CollisionPair, config: CollisionConfig) -> tuple[float, float, float, float]:
    """
    Displacements (dx_a, dy_a, dx_b, dy_b) for one colliding pair.

    The push goes along the axis with the smaller overlap, half to each node,
    scaled by damping. An upward share is reduced to upward_resistance and the
    blocked remainder moves the partner further down.
    """
    a, b = pair.a, pair.b
    dx = b.center_x - a.center_x
    dy = b.center_y - a.center_y

    push_x = push_y = 0.0
    if pair.overlap_x < pair.overlap_y:
        push_x = pair.overlap_x / 2 if dx >= 0 else -pair.overlap_x / 2
    else:
        push_y = pair.overlap_y / 2 if dy >= 0 else -pair.overlap_y / 2

    damping = config.damping
    dx_a, dx_b = -push_x * damping, push_x * damping
    dy_a, dy_b = -push_y * damping, push_y * damping

    if a.anchored and b.anchored:
        return 0.0, 0.0, 0.0, 0.0
    if a.anchored or b.anchored:
        # The free node takes both shares, with no partner to absorb resistance
        if a.anchored:
            return 0.0, 0.0, dx_b - dx_a, dy_b - dy_a
        return dx_a - dx_b, dy_a - dy_b, 0.0, 0.0

    blocked = abs(push_y * damping * (1 - config.upward_resistance))
    if dy_a < 0:
        dy_a *= config.upward_resistance
        dy_b += blocked
    if dy_b < 0:
        dy_b *= config.upward_resistance
        dy_a += blocked
    return dx_a, dy_a, dx_b, dy_b


def resolve_collisions(
    nodes: list[GraphNode],
    config: Optional[CollisionConfig] = None,
    estimator: Callable[[GraphNode], Size] = node_size
) -> list[GraphNode]:
    """
    Iteratively remove overlaps.

    Args:
        nodes: Positioned nodes
        config: Resolver parameters
        estimator: Node -> Size

    Returns:
        New list of repositioned nodes, in input order
    """
    config = config or CollisionConfig()
    if len(nodes) < 2 or not config.enabled:
        return list(nodes)

    bounds = get_node_bounds(nodes, estimator)
    iterations = 0
    remaining = 0
    for iterations in range(1, config.iterations + 1):
        collisions = detect_collisions(bounds, config.min_distance)
        remaining = len(collisions)
        if not collisions:
            iterations -= 1
            break
        for pair in collisions:
            dx_a, dy_a, dx_b, dy_b = calculate_repulsion(pair, config)
            pair.a.x += dx_a
            pair.a.y += dy_a
            pair.b.x += dx_b
            pair.b.y += dy_b
    else:
        remaining = len(detect_collisions(bounds, config.min_distance))

    if remaining:
        logger.debug("Collision resolver hit the cap of %d iterations with %d pairs left",
                     config.iterations, remaining)
    else:
        logger.debug("Collision resolver converged after %d iterations", iterations)

    resolved = {b.id: b for b in bounds}
    return [
        n if n.anchored else n.moved_to(resolved[n.id].x, resolved[n.id].y)
        for n in nodes
    ]


def count_collisions(
    nodes: list[GraphNode],
    min_distance: float = CollisionConfig().min_distance,
    estimator: Callable[[GraphNode], Size] = node_size
) -> int:
    """Number of colliding pairs among the nodes."""
    return len(detect_collisions(get_node_bounds(nodes, estimator), min_distance))
