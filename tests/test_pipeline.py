"""Tests for the compile -> truncate -> layout -> collide pipeline."""

from schemagraph.collision import count_collisions
from schemagraph.config import DiagramSettings
from schemagraph.models import NodeKind, Position, Size
from schemagraph.pipeline import DiagramCache, cache_key, generate_diagram


class TestGenerateDiagram:
    """Tests for generate_diagram()."""

    def test_positioned_without_collisions(self, users_api, settings):
        vis = {"root.paths": "expanded", "root.paths./users": "expanded", "root.components": "expanded"}
        graph = generate_diagram(users_api, vis, settings)

        assert len(graph.nodes) > 5
        assert count_collisions(graph.nodes, settings.collision.min_distance) == 0

    def test_empty_for_non_mapping(self, settings):
        graph = generate_diagram("not a document", {}, settings)
        assert graph.nodes == [] and graph.edges == []

    def test_truncation_enabled(self):
        doc = {
            "type": "object",
            "properties": {
                "a": {"type": "object", "properties": {
                    "b": {"type": "object", "properties": {
                        "c": {"type": "object", "properties": {"d": {"type": "string"}}},
                    }},
                }},
            },
        }
        settings = DiagramSettings().merged({
            "compile": {"max_depth": 5},
            "truncation": {"enabled": True},
        })
        graph = generate_diagram(doc, {"root": "expanded"}, settings)

        chains = graph.nodes_of_kind(NodeKind.TRUNCATED_CHAIN)
        assert len(chains) == 1
        assert [e["label"] for e in chains[0].data["elided"]] == ["a", "b", "c"]

    def test_pinned_node_keeps_position(self, person_schema, settings):
        pinned = {"schema-property:root.properties.name": Position(x=900, y=900)}
        graph = generate_diagram(person_schema, {"root": "expanded"}, settings, positions=pinned)

        node = graph.get_node("schema-property:root.properties.name")
        assert node.anchored
        assert node.position == Position(x=900, y=900)

    def test_measured_size_attached(self, person_schema, settings):
        measured = {"root": Size(width=400, height=120)}
        graph = generate_diagram(person_schema, {"root": "expanded"}, settings, measured=measured)
        assert graph.get_node("root").measured == Size(width=400, height=120)


class TestDiagramCache:
    """Tests for the memoizing cache."""

    def test_hit_returns_equal_copy(self, person_schema, settings):
        cache = DiagramCache(max_size=4)
        first = cache.generate(person_schema, {"root": "expanded"}, settings)
        second = cache.generate(person_schema, {"root": "expanded"}, settings)

        assert (cache.hits, cache.misses) == (1, 1)
        assert first == second
        second.nodes[0].label = "mutated"
        assert cache.generate(person_schema, {"root": "expanded"}, settings).nodes[0].label != "mutated"

    def test_eviction(self, person_schema, settings):
        cache = DiagramCache(max_size=2)
        for depth in (1, 2, 3):
            cache.generate(person_schema, {}, settings.merged({"compile": {"max_depth": depth}}))
        assert len(cache) == 2

    def test_disabled_cache(self, person_schema, settings):
        cache = DiagramCache(max_size=0)
        cache.generate(person_schema, {}, settings)
        assert len(cache) == 0

    def test_key_depends_on_visibility(self, person_schema, settings):
        assert cache_key(person_schema, {}, settings) != cache_key(person_schema, {"root": "collapsed"}, settings)
        assert cache_key(person_schema, {"a": 1, "b": 2}, settings) == cache_key(person_schema, {"b": 2, "a": 1}, settings)

    def test_int_and_str_keys_mixed(self, settings):
        doc = {
            "openapi": "3.0.0",
            "paths": {"/u": {"get": {"responses": {200: {"description": "OK"}, "default": {"description": "Error"}}}}},
        }
        cache = DiagramCache(max_size=4)
        first = cache.generate(doc, {"root": "expanded"}, settings)
        second = cache.generate(doc, {"root": "expanded"}, settings)

        assert (cache.hits, cache.misses) == (1, 1)
        assert first == second
        assert first == generate_diagram(doc, {"root": "expanded"}, settings)
