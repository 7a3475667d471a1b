"""Tests for the visibility model and depth budget."""

from schemagraph.config import DepthMode
from schemagraph.visibility import (
    DepthBudget,
    Visibility,
    VisibilityModel,
    ancestors,
    child_path,
    coerce_visibility,
    indexed_path,
    resolve_expansion,
)


class TestCoerceVisibility:
    """Tests for normalizing editor values."""

    def test_enum_and_strings(self):
        assert coerce_visibility(Visibility.EXPANDED) == Visibility.EXPANDED
        assert coerce_visibility("collapsed") == Visibility.COLLAPSED
        assert coerce_visibility(" Expanded ") == Visibility.EXPANDED

    def test_booleans_are_collapse_flags(self):
        assert coerce_visibility(True) == Visibility.COLLAPSED
        assert coerce_visibility(False) == Visibility.EXPANDED

    def test_unknown_values_are_unset(self):
        assert coerce_visibility("sideways") == Visibility.UNSET
        assert coerce_visibility(None) == Visibility.UNSET
        assert coerce_visibility(3) == Visibility.UNSET


class TestPaths:
    """Tests for path helpers."""

    def test_child_and_indexed(self):
        assert child_path("root", "properties", "a") == "root.properties.a"
        assert indexed_path("root.items", 2) == "root.items[2]"

    def test_ancestors_nearest_last(self):
        assert ancestors("root.properties.a") == ["root", "root.properties"]
        assert ancestors("root") == []


class TestVisibilityModel:
    """Tests for VisibilityModel lookups."""

    def test_explicit_entry_wins(self):
        vis = VisibilityModel({"root": "collapsed", "root.properties.a": "expanded"})
        assert not vis.is_expanded("root")
        assert vis.is_expanded("root.properties.a")

    def test_defaults(self):
        vis = VisibilityModel()
        assert vis.is_expanded("root")
        assert not vis.is_expanded("root.properties.a")
        assert vis.state("root.properties.a") == Visibility.UNSET

    def test_gate_only_when_explicitly_collapsed(self):
        vis = VisibilityModel({"root.properties": True})
        assert vis.is_gated("root.properties")
        assert not vis.is_gated("root.properties.a.properties")

    def test_collapsed_ancestor(self):
        vis = VisibilityModel({"root.properties.a": "collapsed"})
        assert vis.has_collapsed_ancestor("root.properties.a.properties.b")
        assert not vis.has_collapsed_ancestor("root.properties.c")

    def test_unset_values_dropped(self):
        vis = VisibilityModel({"a": "expanded", "b": "bogus"})
        assert vis.to_dict() == {"a": "expanded"}


class TestDepthBudget:
    """Tests for relative and absolute depth counting."""

    def test_relative_reset_on_explicit_expansion(self):
        budget = DepthBudget.start(2).child().child()
        assert budget.exhausted
        reset = budget.at_node(True)
        assert reset.level == 0
        assert reset.cascading

    def test_absolute_keeps_counting(self):
        budget = DepthBudget.start(2, DepthMode.ABSOLUTE).child().child()
        assert budget.at_node(True).exhausted

    def test_max_depth_floor(self):
        assert DepthBudget.start(0).max_depth == 1


class TestResolveExpansion:
    """Tests for resolve_expansion()."""

    def test_root_expanded_by_default(self):
        expansion = resolve_expansion(VisibilityModel(), "root", DepthBudget.start(3))
        assert expansion.expanded
        assert expansion.can_descend

    def test_unset_child_collapsed_without_cascade(self):
        expansion = resolve_expansion(VisibilityModel(), "root.properties.a", DepthBudget.start(3).child())
        assert not expansion.expanded

    def test_unset_child_expanded_inside_cascade(self):
        budget = DepthBudget.start(3).at_node(True).child()
        expansion = resolve_expansion(VisibilityModel(), "root.properties.a", budget)
        assert expansion.expanded
        assert expansion.can_descend

    def test_explicit_collapse_stops_cascade(self):
        budget = DepthBudget.start(3).at_node(True).child()
        vis = VisibilityModel({"root.properties.a": "collapsed"})
        assert not resolve_expansion(vis, "root.properties.a", budget).expanded

    def test_exhausted_budget_cannot_descend(self):
        budget = DepthBudget.start(1).at_node(True).child()
        expansion = resolve_expansion(VisibilityModel(), "root.properties.a", budget)
        assert expansion.expanded
        assert not expansion.can_descend
