"""Tests for graph summaries and integrity checks."""

from schemagraph.analysis import find_reference_cycles, summarize_graph, tree_depths
from schemagraph.compiler import compile_schema_graph
from schemagraph.config import CompileOptions
from schemagraph.models import Edge, EdgeKind, EdgeStyle, GraphNode, NodeKind, Position, SchemaGraph
from schemagraph.validation import IssueSeverity, validate_graph, validation_summary


class TestSummarizeGraph:
    """Tests for summarize_graph()."""

    def test_counts(self, wide_schema):
        graph = compile_schema_graph(
            wide_schema, visibility={"root": "expanded"}, options=CompileOptions(max_individual=5)
        )
        summary = summarize_graph(graph)

        assert summary.root_label == "Root"
        assert summary.total_nodes == 6
        assert summary.nodes_by_kind == {"root": 1, "schema-property": 4, "grouped-overflow": 1}
        assert summary.hidden_entries == 4
        assert summary.max_depth == 1

    def test_most_referenced(self, users_api):
        vis = {"root.components": "expanded", "root.components.schemas.Order": "expanded"}
        summary = summarize_graph(compile_schema_graph(users_api, visibility=vis), top_n=1)

        data = summary.to_dict()
        assert data["most_referenced"] == [
            {"id": "schema-property:root.components.schemas.User", "label": "User", "references": 1}
        ]

    def test_tree_depths(self, nested_schema):
        graph = compile_schema_graph(nested_schema, visibility={"root": "expanded"})
        depths = tree_depths(graph)
        assert depths["root"] == 0
        assert depths["schema-property:root.properties.address.properties.geo.properties.lat"] == 3


class TestReferenceCycles:
    def test_cycle_found(self):
        graph = SchemaGraph(
            nodes=[GraphNode(id=i, kind=NodeKind.SCHEMA_PROPERTY) for i in ("a", "b")],
            edges=[
                Edge(source="a", target="b", kind=EdgeKind.REFERENCE),
                Edge(source="b", target="a", kind=EdgeKind.REFERENCE),
            ],
        )
        assert find_reference_cycles(graph) == [["a", "b", "a"]]


class TestValidateGraph:
    """Tests for validate_graph()."""

    def test_compiled_graph_is_valid(self, users_api):
        vis = {"root.paths": "expanded", "root.paths./users": "expanded", "root.components": "expanded"}
        issues = validate_graph(compile_schema_graph(users_api, visibility=vis))
        assert validation_summary(issues)["valid"]

    def test_empty_graph(self):
        issues = validate_graph(SchemaGraph())
        assert [i.severity for i in issues] == [IssueSeverity.INFO]

    def test_broken_graph(self):
        root = GraphNode(id="root", kind=NodeKind.ROOT)
        a = GraphNode(id="a", kind=NodeKind.SCHEMA_PROPERTY)
        b = GraphNode(id="b", kind=NodeKind.SCHEMA_PROPERTY)
        reference = Edge(source="a", target="b", kind=EdgeKind.REFERENCE)
        reference.style = EdgeStyle.SOLID
        graph = SchemaGraph(
            nodes=[root, a, a, b],
            edges=[
                Edge(source="root", target="a"),
                Edge(source="root", target="ghost"),
                reference,
            ],
        )
        issues = validate_graph(graph)
        messages = [i.message for i in issues if i.severity == IssueSeverity.ERROR]

        assert "Duplicate node id: a" in messages
        assert "Edge references non-existent target node: ghost" in messages
        assert "Reference edge is not dashed" in messages
        assert any("detached" in i.message and "b" in i.message for i in issues)
        assert not validation_summary(issues)["valid"]

    def test_reference_edge_style_defaults_and_overrides(self):
        assert Edge(source="a", target="b", kind=EdgeKind.REFERENCE).style == EdgeStyle.DASHED

        solid = Edge(source="a", target="b", kind=EdgeKind.REFERENCE, style=EdgeStyle.SOLID)
        graph = SchemaGraph(edges=[solid])
        assert graph.edges[0].style == EdgeStyle.SOLID
        assert any(i.message == "Reference edge is not dashed" for i in validate_graph(graph))

    def test_overlap_reported_as_info(self):
        root = GraphNode(id="root", kind=NodeKind.ROOT)
        child = GraphNode(id="c", kind=NodeKind.SCHEMA_PROPERTY, position=Position(x=0, y=0))
        graph = SchemaGraph(nodes=[root, child], edges=[Edge(source="root", target="c")])

        issues = validate_graph(graph, min_distance=30)
        assert [i.severity for i in issues] == [IssueSeverity.INFO]
        assert validation_summary(issues)["valid"]
