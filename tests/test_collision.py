"""Tests for the collision resolver."""

import logging

import pytest

from schemagraph.collision import (
    Bounds,
    calculate_repulsion,
    check_collision,
    count_collisions,
    resolve_collisions,
)
from schemagraph.config import CollisionConfig
from schemagraph.models import GraphNode, NodeKind, Position, Size


def fixed_size(node):
    return Size(width=100, height=50)


def _node(node_id, x, y, anchored=False):
    return GraphNode(
        id=node_id, kind=NodeKind.SCHEMA_PROPERTY,
        position=Position(x=x, y=y), anchored=anchored,
    )


class TestCheckCollision:
    """Tests for pairwise detection."""

    def test_overlap_includes_min_distance(self):
        pair = check_collision(Bounds("a", 0, 0, 100, 50), Bounds("b", 50, 0, 100, 50), 30)
        assert pair.overlap_x == 80
        assert pair.overlap_y == 80

    def test_too_close(self):
        pair = check_collision(Bounds("a", 0, 0, 100, 50), Bounds("b", 110, 0, 100, 50), 30)
        assert pair.overlap_x == 20

    def test_far_enough(self):
        assert check_collision(Bounds("a", 0, 0, 100, 50), Bounds("b", 130, 0, 100, 50), 30) is None
        assert check_collision(Bounds("a", 0, 0, 100, 50), Bounds("b", 0, 80, 100, 50), 30) is None


class TestRepulsion:
    """Tests for calculate_repulsion()."""

    def _vertical_pair(self, a_anchored=False, b_anchored=False):
        a = Bounds("a", 0, 0, 100, 50, a_anchored)
        b = Bounds("b", 0, 40, 100, 50, b_anchored)
        return check_collision(a, b, 30)

    def test_upward_push_resisted(self):
        dx_a, dy_a, dx_b, dy_b = calculate_repulsion(self._vertical_pair(), CollisionConfig())

        assert dx_a == dx_b == 0
        # push of 20 each, damped to 14; the upper node keeps 10% of its upward share
        assert dy_a == pytest.approx(-1.4)
        assert dy_b == pytest.approx(14 + 12.6)

    def test_horizontal_push_split(self):
        pair = check_collision(Bounds("a", 0, 0, 100, 50), Bounds("b", 90, 0, 100, 50), 30)
        dx_a, dy_a, dx_b, dy_b = calculate_repulsion(pair, CollisionConfig(damping=1.0))

        assert dx_a == pytest.approx(-20)
        assert dx_b == pytest.approx(20)
        assert dy_a == dy_b == 0

    def test_anchored_node_does_not_move(self):
        dx_a, dy_a, dx_b, dy_b = calculate_repulsion(self._vertical_pair(a_anchored=True), CollisionConfig())
        assert (dx_a, dy_a) == (0, 0)
        assert dy_b == pytest.approx(28)

    def test_both_anchored(self):
        pair = self._vertical_pair(a_anchored=True, b_anchored=True)
        assert calculate_repulsion(pair, CollisionConfig()) == (0, 0, 0, 0)


class TestResolveCollisions:
    """Tests for resolve_collisions()."""

    def test_fewer_than_two_nodes(self):
        nodes = [_node("a", 0, 0)]
        assert resolve_collisions(nodes, estimator=fixed_size) == nodes

    def test_disabled(self):
        nodes = [_node("a", 0, 0), _node("b", 0, 0)]
        assert resolve_collisions(nodes, CollisionConfig(enabled=False), estimator=fixed_size) == nodes

    def test_two_stacked_nodes_separated(self):
        nodes = [_node("a", 0, 0), _node("b", 0, 0)]
        resolved = resolve_collisions(nodes, estimator=fixed_size)

        assert count_collisions(resolved, 30, estimator=fixed_size) == 0
        assert [n.id for n in resolved] == ["a", "b"]

    def test_fixed_point_or_cap(self, caplog):
        nodes = [_node(f"n{i}", (i % 4) * 60, (i // 4) * 30) for i in range(10)]
        config = CollisionConfig(iterations=200)
        with caplog.at_level(logging.DEBUG, logger="schemagraph.collision"):
            resolved = resolve_collisions(nodes, config, estimator=fixed_size)

        remaining = count_collisions(resolved, config.min_distance, estimator=fixed_size)
        assert remaining == 0 or "hit the cap" in caplog.text

    def test_anchored_node_keeps_position(self):
        nodes = [_node("pinned", 0, 0, anchored=True), _node("free", 10, 10)]
        resolved = {n.id: n for n in resolve_collisions(nodes, estimator=fixed_size)}

        assert resolved["pinned"].position == Position(x=0, y=0)
        assert resolved["free"].position != Position(x=10, y=10)
        assert count_collisions(list(resolved.values()), 30, estimator=fixed_size) == 0

    def test_parent_stays_above_child(self):
        nodes = [_node("parent", 0, 0), _node("child", 0, 20)]
        resolved = {n.id: n for n in resolve_collisions(nodes, estimator=fixed_size)}
        assert resolved["parent"].y < resolved["child"].y
        assert resolved["parent"].y > -10
