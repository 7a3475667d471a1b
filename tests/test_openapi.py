"""Tests for compiling OpenAPI documents."""

from schemagraph.compiler import compile_schema_graph
from schemagraph.models import EdgeKind, EdgeStyle, NodeKind
from schemagraph.openapi import is_openapi


class TestDetection:
    """Tests for OpenAPI detection and the root node."""

    def test_is_openapi(self, users_api):
        assert is_openapi(users_api)
        assert is_openapi({"swagger": "2.0", "paths": {}})
        assert not is_openapi({"openapi": "3.0.0"})
        assert not is_openapi({"type": "object"})

    def test_root_uses_api_title(self, users_api):
        graph = compile_schema_graph(users_api)
        root = graph.get_node("root")
        assert root.label == "Users API"
        assert root.data["openapi"] == "3.0.0"

    def test_regions_start_collapsed(self, users_api):
        graph = compile_schema_graph(users_api)

        assert graph.get_node("info:root.info").label == "Users API"
        assert graph.get_node("paths:root.paths").collapsed
        assert graph.get_node("components-container:root.components").collapsed
        assert not graph.nodes_of_kind(NodeKind.ENDPOINT)


class TestEndpoints:
    """Consolidated vs per-method routes."""

    def test_consolidated_endpoint(self, users_api):
        graph = compile_schema_graph(users_api, visibility={"root.paths": "expanded"})

        endpoints = graph.nodes_of_kind(NodeKind.ENDPOINT)
        assert len(endpoints) == 1
        endpoint = endpoints[0]
        assert endpoint.id == "endpoint:root.paths./users"
        assert endpoint.label == "GET POST /users"
        assert [m["method"] for m in endpoint.data["methods"]] == ["GET", "POST"]
        assert not graph.nodes_of_kind(NodeKind.METHOD)

    def test_expanded_route_has_method_nodes(self, users_api):
        vis = {"root.paths": "expanded", "root.paths./users": "expanded"}
        graph = compile_schema_graph(users_api, visibility=vis)

        methods = graph.nodes_of_kind(NodeKind.METHOD)
        assert [m.label for m in methods] == ["GET /users", "POST /users"]
        for method in methods:
            assert any(
                e.source == "paths:root.paths" and e.target == method.id and e.kind == EdgeKind.STRUCTURAL
                for e in graph.edges
            )
        assert not graph.nodes_of_kind(NodeKind.ENDPOINT)

    def test_collapsed_method_is_skipped(self, users_api):
        vis = {
            "root.paths": "expanded",
            "root.paths./users": "expanded",
            "root.paths./users.post": "collapsed",
        }
        graph = compile_schema_graph(users_api, visibility=vis)
        assert [m.label for m in graph.nodes_of_kind(NodeKind.METHOD)] == ["GET /users"]

    def test_method_parts(self, users_api):
        vis = {"root.paths": "expanded", "root.paths./users": "expanded"}
        graph = compile_schema_graph(users_api, visibility=vis)

        responses = graph.get_node("response:root.paths./users.get.responses")
        assert responses.label == "Responses: 200"
        assert responses.data["status_codes"] == [{"status": "200", "description": "OK"}]

        body = graph.get_node("request-body:root.paths./users.post.requestBody")
        assert body.data["media_types"] == ["application/json"]
        assert "content-type:root.paths./users.post.requestBody.content.application/json" in graph.node_ids()

    def test_expanded_responses_per_status(self, users_api):
        vis = {
            "root.paths": "expanded",
            "root.paths./users": "expanded",
            "root.paths./users.get.responses": "expanded",
        }
        graph = compile_schema_graph(users_api, visibility=vis)
        response = graph.get_node("response:root.paths./users.get.responses.200")
        assert response.label == "200 OK"
        assert response.data["status"] == "200"

    def test_parameters(self):
        doc = {
            "openapi": "3.0.0",
            "info": {"title": "T"},
            "paths": {
                "/items/{id}": {
                    "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                    "get": {
                        "parameters": [{"name": "limit", "in": "query", "schema": {"type": "integer"}}],
                        "responses": {"200": {"description": "OK"}},
                    },
                }
            },
        }
        vis = {"root.paths": "expanded", "root.paths./items/{id}": "expanded"}
        graph = compile_schema_graph(doc, visibility=vis)

        params = graph.get_node("parameters:root.paths./items/{id}.get.parameters")
        assert params.label == "Parameters (2)"
        assert [p["name"] for p in params.data["parameters"]] == ["id", "limit"]
        assert params.data["parameters"][0]["required"]


class TestComponents:
    """Component schemas and reference edges."""

    def test_reference_edge_to_component(self, users_api):
        vis = {"root.components": "expanded", "root.components.schemas.Order": "expanded"}
        graph = compile_schema_graph(users_api, visibility=vis)

        refs = graph.edges_of_kind(EdgeKind.REFERENCE)
        assert [(e.source, e.target) for e in refs] == [(
            "schema-property:root.components.schemas.Order.properties.owner",
            "schema-property:root.components.schemas.User",
        )]
        assert refs[0].style == EdgeStyle.DASHED

    def test_collapsed_component_draws_no_reference(self, users_api):
        vis = {"root.components": "expanded", "root.components.schemas.User": "collapsed"}
        graph = compile_schema_graph(users_api, visibility=vis)

        assert "schema-property:root.components.schemas.User" not in graph.node_ids()
        assert "schema-property:root.components.schemas.Order" in graph.node_ids()
        assert graph.edges_of_kind(EdgeKind.REFERENCE) == []

    def test_request_body_references_component(self, users_api):
        vis = {
            "root.paths": "expanded",
            "root.paths./users": "expanded",
            "root.components": "expanded",
        }
        graph = compile_schema_graph(users_api, visibility=vis)

        sources = {e.source for e in graph.edges_of_kind(EdgeKind.REFERENCE)
                   if e.target == "schema-property:root.components.schemas.User"}
        assert "content-type:root.paths./users.post.requestBody.content.application/json" in sources

    def test_swagger_definitions(self):
        doc = {
            "swagger": "2.0",
            "info": {"title": "Pets"},
            "paths": {},
            "definitions": {"Pet": {"type": "object", "properties": {"name": {"type": "string"}}}},
        }
        graph = compile_schema_graph(doc, visibility={"root.definitions": "expanded"})

        container = graph.get_node("components-container:root.definitions")
        assert container.label == "Definitions"
        assert graph.get_node("schema-property:root.definitions.Pet").data["component"]
