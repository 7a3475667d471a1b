"""
OpenAPI walk.

Treats `info`, `servers`, `tags`, `security`, `paths` and the component
schemas as independently collapsible regions with their own node kinds. A
route renders as one consolidated endpoint box unless it is explicitly
expanded, in which case each HTTP method gets its own box; responses follow
the same consolidated/individual split. Schemas found under media types and
components are handed to the JSON-Schema walk.
"""

import logging
from typing import Any, Mapping

from .grouping import SchemaEntry, group_entries, schema_type_label
from .models import GraphNode, NodeKind
from .references import reference_name
from .schema_walk import SchemaWalker, emit_overflow, has_children
from .visibility import DepthBudget, child_path, indexed_path, resolve_expansion

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Top-level keys handled as regions (everything else but x- extensions is a leaf)
_REGION_KEYS = {
    "openapi", "swagger", "info", "servers", "tags", "security",
    "paths", "components", "definitions",
}


def is_openapi(document: Any) -> bool:
    """`openapi`/`swagger` plus `info` or `paths`."""
    return (
        isinstance(document, Mapping)
        and ("openapi" in document or "swagger" in document)
        and ("info" in document or "paths" in document)
    )


def api_title(document: Mapping) -> str:
    info = document.get("info")
    if isinstance(info, Mapping) and info.get("title"):
        return str(info["title"])
    return "API"


def _operations(path_item: Any) -> list[tuple[str, Mapping]]:
    if not isinstance(path_item, Mapping):
        return []
    return [
        (method, op) for method, op in path_item.items()
        if str(method).lower() in HTTP_METHODS and isinstance(op, Mapping)
    ]


def _merged_parameters(path_item: Mapping, operation: Mapping) -> list[Mapping]:
    """Path-level parameters overridden by operation-level ones on (name, in)."""
    merged: dict[tuple, Mapping] = {}
    for source in (path_item.get("parameters"), operation.get("parameters")):
        if not isinstance(source, list):
            continue
        for i, param in enumerate(source):
            if not isinstance(param, Mapping):
                continue
            key = (param.get("name"), param.get("in")) if "name" in param else ("$ref", param.get("$ref"), i)
            merged[key] = param
    return list(merged.values())


def _parameter_summary(param: Mapping) -> dict:
    schema = param.get("schema") if isinstance(param.get("schema"), Mapping) else param
    return {
        "name": param.get("name") or reference_name(param.get("$ref")) or param.get("$ref", ""),
        "in": param.get("in", ""),
        "required": bool(param.get("required", False)),
        "type": schema_type_label(schema),
    }


class OpenApiWalker(SchemaWalker):
    """Emits the nodes of an OpenAPI (or Swagger 2) document."""

    def walk(self, root: GraphNode, document: Mapping, budget: DepthBudget):
        """Emit every present region below the root."""
        region_budget = budget.child()
        regions = (
            ("info", self.emit_info),
            ("servers", self.emit_servers),
            ("tags", self.emit_tags),
            ("security", self.emit_security),
            ("paths", self.emit_paths),
            ("components", self.emit_components),
            ("definitions", self.emit_definitions),
        )
        for key, emit in regions:
            if key not in document:
                continue
            with self.builder.branch(child_path(root.source_path, key)):
                emit(root, document[key], region_budget)

        for key, value in document.items():
            key = str(key)
            if key in _REGION_KEYS or key.startswith("x-"):
                continue
            path = child_path(root.source_path, key)
            with self.builder.branch(path):
                self.builder.add_node(
                    NodeKind.SCHEMA_PROPERTY, path, parent=root,
                    label=key,
                    schema_type=type(value).__name__ if not isinstance(value, Mapping) else "object",
                    data={"value": value} if isinstance(value, (str, int, float, bool)) else {},
                )

    # --- Simple regions ---

    def emit_info(self, root: GraphNode, info: Any, budget: DepthBudget):
        if not isinstance(info, Mapping):
            return
        extra = {k: v for k, v in info.items() if k not in ("title", "version", "description")}
        self.builder.add_node(
            NodeKind.INFO, child_path(root.source_path, "info"), parent=root,
            label=str(info.get("title", "Info")),
            description=info.get("description"),
            data={"title": info.get("title"), "version": info.get("version"), "fields": extra},
        )

    def emit_security(self, root: GraphNode, security: Any, budget: DepthBudget):
        schemes: list[str] = []
        for requirement in security if isinstance(security, list) else []:
            if isinstance(requirement, Mapping):
                schemes.extend(str(name) for name in requirement if str(name) not in schemes)
        self.builder.add_node(
            NodeKind.SECURITY, child_path(root.source_path, "security"), parent=root,
            label="Security",
            data={"schemes": schemes},
        )

    def emit_servers(self, root: GraphNode, servers: Any, budget: DepthBudget):
        self._emit_list_region(
            root, servers, budget, "servers", NodeKind.SERVERS, NodeKind.SERVER,
            "Servers", lambda s, i: str(s.get("url", f"server {i}")),
        )

    def emit_tags(self, root: GraphNode, tags: Any, budget: DepthBudget):
        self._emit_list_region(
            root, tags, budget, "tags", NodeKind.TAGS, NodeKind.TAG,
            "Tags", lambda t, i: str(t.get("name", f"tag {i}")),
        )

    def _emit_list_region(self, root, items, budget, key, container_kind, item_kind, noun, label_of):
        if not isinstance(items, list):
            return
        path = child_path(root.source_path, key)
        expansion = resolve_expansion(self.visibility, path, budget)
        container = self.builder.add_node(
            container_kind, path, parent=root,
            label=noun,
            collapsed=bool(items) and not expansion.expanded,
            has_more_levels=bool(items) and expansion.expanded and expansion.budget.exhausted,
            data={"count": len(items)},
        )
        if not items or not expansion.can_descend:
            return

        entries = [
            SchemaEntry(
                name=label_of(item, i) if isinstance(item, Mapping) else f"[{i}]",
                schema=item, path=indexed_path(path, i),
            )
            for i, item in enumerate(items)
        ]
        decision = group_entries(
            entries, self.options.max_individual,
            self.visibility.expanded_by_entry({e.name: e.path for e in entries}),
        )
        for entry in decision.individual:
            with self.builder.branch(entry.path):
                item = entry.schema
                if not isinstance(item, Mapping):
                    raise ValueError(f"expected an object, got {type(item).__name__}")
                self.builder.add_node(
                    item_kind, entry.path, parent=container, fragment=item,
                    label=entry.name,
                    description=item.get("description"),
                    data={k: v for k, v in item.items() if k != "description"},
                )
        if decision.overflow:
            with self.builder.branch(path):
                emit_overflow(self.builder, container, path, decision.overflow, noun)

    # --- Paths ---

    def emit_paths(self, root: GraphNode, paths: Any, budget: DepthBudget):
        if not isinstance(paths, Mapping):
            return
        path = child_path(root.source_path, "paths")
        expansion = resolve_expansion(self.visibility, path, budget)
        container = self.builder.add_node(
            NodeKind.PATHS, path, parent=root,
            label="Paths",
            description=f"API endpoints ({len(paths)} endpoints)",
            collapsed=bool(paths) and not expansion.expanded,
            has_more_levels=bool(paths) and expansion.expanded and expansion.budget.exhausted,
            data={"count": len(paths), "routes": [str(r) for r in paths]},
        )
        if not paths or not expansion.can_descend:
            return

        entries = [
            SchemaEntry(name=str(route), schema=item, path=child_path(path, str(route)))
            for route, item in paths.items()
        ]
        decision = group_entries(
            entries, self.options.max_individual,
            self.visibility.expanded_by_entry({e.name: e.path for e in entries}),
        )
        route_budget = expansion.budget.child()
        for entry in decision.individual:
            with self.builder.branch(entry.path):
                self.emit_route(container, entry.name, entry.schema, entry.path, route_budget)
        if decision.overflow:
            with self.builder.branch(path):
                overflow = emit_overflow(self.builder, container, path, decision.overflow, "Endpoints")
                for summary, entry in zip(overflow.data["entries"], decision.overflow):
                    summary["type"] = " ".join(m.upper() for m, _ in _operations(entry.schema)) or "route"

    def emit_route(self, container: GraphNode, route: str, path_item: Any, route_path: str, budget: DepthBudget):
        """Consolidated endpoint box, or one box per method when the route is expanded."""
        if not isinstance(path_item, Mapping):
            raise ValueError(f"expected a path item object, got {type(path_item).__name__}")
        operations = _operations(path_item)

        if not self.visibility.is_explicitly_expanded(route_path):
            methods = [m.upper() for m, _ in operations]
            node = self.builder.add_node(
                NodeKind.ENDPOINT, route_path, parent=container, fragment=path_item,
                label=f"{' '.join(methods)} {route}".strip(),
                collapsed=bool(operations),
                data={
                    "route": route,
                    "methods": [
                        {"method": m.upper(), "summary": op.get("summary"), "operation_id": op.get("operationId")}
                        for m, op in operations
                    ],
                },
            )
            for _, op in operations:
                self.builder.own(node.id, op)
            return

        method_budget = budget.at_node(True).child()
        for method, operation in operations:
            method_path = child_path(route_path, str(method).lower())
            if self.visibility.is_explicitly_collapsed(method_path):
                continue
            with self.builder.branch(method_path):
                self.emit_method(container, route, path_item, str(method).lower(),
                                 operation, method_path, method_budget)

    def emit_method(
        self,
        container: GraphNode,
        route: str,
        path_item: Mapping,
        method: str,
        operation: Mapping,
        method_path: str,
        budget: DepthBudget
    ) -> GraphNode:
        """One HTTP method box and, when expanded, its parameters, body and responses."""
        expansion = resolve_expansion(self.visibility, method_path, budget)
        parameters = _merged_parameters(path_item, operation)
        has_parts = bool(parameters) or "requestBody" in operation or "responses" in operation

        node = self.builder.add_node(
            NodeKind.METHOD, method_path, parent=container, fragment=operation,
            label=f"{method.upper()} {route}",
            description=operation.get("summary") or operation.get("description"),
            collapsed=has_parts and not expansion.expanded,
            has_more_levels=has_parts and expansion.expanded and expansion.budget.exhausted,
            data={
                "method": method.upper(),
                "route": route,
                "operation_id": operation.get("operationId"),
                "tags": operation.get("tags", []),
                "deprecated": bool(operation.get("deprecated", False)),
            },
        )
        if not expansion.can_descend:
            return node

        part_budget = expansion.budget.child()
        if parameters:
            with self.builder.branch(child_path(method_path, "parameters")):
                self.emit_parameters(node, parameters, method_path, part_budget)
        if "requestBody" in operation:
            with self.builder.branch(child_path(method_path, "requestBody")):
                self.emit_request_body(node, operation["requestBody"], method_path, part_budget)
        if isinstance(operation.get("responses"), Mapping) and operation["responses"]:
            with self.builder.branch(child_path(method_path, "responses")):
                self.emit_responses(node, operation["responses"], method_path, part_budget)
        return node

    def emit_parameters(self, method_node: GraphNode, parameters: list, method_path: str, budget: DepthBudget):
        path = child_path(method_path, "parameters")
        expansion = resolve_expansion(self.visibility, path, budget)
        node = self.builder.add_node(
            NodeKind.PARAMETERS, path, parent=method_node, fragment=parameters,
            label=f"Parameters ({len(parameters)})",
            collapsed=not expansion.expanded,
            has_more_levels=expansion.expanded and expansion.budget.exhausted,
            data={"parameters": [_parameter_summary(p) for p in parameters]},
        )
        if not expansion.can_descend:
            return

        entries = []
        for i, param in enumerate(parameters):
            summary = _parameter_summary(param)
            entries.append(SchemaEntry(
                name=str(summary["name"]),
                schema=param,
                path=indexed_path(path, i),
                required=summary["required"],
            ))
        decision = group_entries(
            entries, self.options.max_individual,
            self.visibility.expanded_by_entry({e.name: e.path for e in entries}),
        )
        for entry in decision.individual:
            with self.builder.branch(entry.path):
                param = entry.schema
                schema = param.get("schema") if isinstance(param.get("schema"), Mapping) else {}
                self.builder.add_node(
                    NodeKind.SCHEMA_PROPERTY, entry.path, parent=node, fragment=param,
                    label=entry.name,
                    required=entry.required,
                    schema_type=schema_type_label(schema or param),
                    description=param.get("description"),
                    data={"in": param.get("in", ""), **({"reference": param["$ref"]} if "$ref" in param else {})},
                )
        if decision.overflow:
            with self.builder.branch(path):
                emit_overflow(self.builder, node, path, decision.overflow, "Parameters")

    def emit_request_body(self, method_node: GraphNode, body: Any, method_path: str, budget: DepthBudget):
        if not isinstance(body, Mapping):
            raise ValueError(f"expected a request body object, got {type(body).__name__}")
        path = child_path(method_path, "requestBody")
        content = body.get("content") if isinstance(body.get("content"), Mapping) else {}
        expansion = resolve_expansion(self.visibility, path, budget)
        node = self.builder.add_node(
            NodeKind.REQUEST_BODY, path, parent=method_node, fragment=body,
            label="Request Body",
            required=bool(body.get("required", False)),
            description=body.get("description"),
            collapsed=bool(content) and not expansion.expanded,
            has_more_levels=bool(content) and expansion.expanded and expansion.budget.exhausted,
            data={
                "media_types": list(content),
                **({"reference": body["$ref"]} if "$ref" in body else {}),
            },
        )
        if content and expansion.can_descend:
            self.emit_content(node, content, path, expansion.budget.child())

    def emit_responses(self, method_node: GraphNode, responses: Mapping, method_path: str, budget: DepthBudget):
        path = child_path(method_path, "responses")
        codes = [str(code) for code in responses]

        if not self.visibility.is_explicitly_expanded(path):
            node = self.builder.add_node(
                NodeKind.RESPONSE, path, parent=method_node,
                label=f"Responses: {', '.join(codes)}",
                collapsed=True,
                data={
                    "status_codes": [
                        {"status": str(code), "description": r.get("description") if isinstance(r, Mapping) else None}
                        for code, r in responses.items()
                    ],
                },
            )
            for response in responses.values():
                self.builder.own(node.id, response)
            return

        status_budget = budget.at_node(True).child()
        entries = [
            SchemaEntry(name=str(code), schema=response, path=child_path(path, str(code)))
            for code, response in responses.items()
        ]
        decision = group_entries(
            entries, self.options.max_individual,
            self.visibility.expanded_by_entry({e.name: e.path for e in entries}),
        )
        for entry in decision.individual:
            with self.builder.branch(entry.path):
                self.emit_response(method_node, entry.name, entry.schema, entry.path, status_budget)
        if decision.overflow:
            with self.builder.branch(path):
                emit_overflow(self.builder, method_node, path, decision.overflow, "Responses")

    def emit_response(self, method_node: GraphNode, status: str, response: Any, path: str, budget: DepthBudget):
        if not isinstance(response, Mapping):
            raise ValueError(f"expected a response object, got {type(response).__name__}")
        content = response.get("content") if isinstance(response.get("content"), Mapping) else {}
        expansion = resolve_expansion(self.visibility, path, budget)
        description = response.get("description")
        node = self.builder.add_node(
            NodeKind.RESPONSE, path, parent=method_node, fragment=response,
            label=f"{status} {description}" if description else status,
            description=description,
            collapsed=bool(content) and not expansion.expanded,
            has_more_levels=bool(content) and expansion.expanded and expansion.budget.exhausted,
            data={
                "status": status,
                "media_types": list(content),
                **({"reference": response["$ref"]} if "$ref" in response else {}),
            },
        )
        if content and expansion.can_descend:
            self.emit_content(node, content, path, expansion.budget.child())

    def emit_content(self, parent: GraphNode, content: Mapping, owner_path: str, budget: DepthBudget):
        """One content-type box per media type; an expanded one walks its schema."""
        for media_type, media in content.items():
            path = child_path(owner_path, "content", str(media_type))
            with self.builder.branch(path):
                if not isinstance(media, Mapping):
                    raise ValueError(f"expected a media type object, got {type(media).__name__}")
                schema = media.get("schema")
                expansion = resolve_expansion(self.visibility, path, budget)
                children = has_children(schema)
                node = self.builder.add_node(
                    NodeKind.CONTENT_TYPE, path, parent=parent, fragment=media,
                    label=str(media_type),
                    schema_type=schema_type_label(schema) if schema is not None else None,
                    collapsed=children and not expansion.expanded,
                    has_more_levels=children and expansion.expanded and expansion.budget.exhausted,
                    data={
                        "media_type": str(media_type),
                        **({"reference": schema["$ref"]} if isinstance(schema, Mapping) and "$ref" in schema else {}),
                    },
                )
                if isinstance(schema, Mapping) and children and expansion.can_descend:
                    self.walk_children(node, schema, child_path(path, "schema"), expansion.budget)

    # --- Component schemas ---

    def emit_components(self, root: GraphNode, components: Any, budget: DepthBudget):
        if not isinstance(components, Mapping):
            return
        schemas = components.get("schemas")
        if not isinstance(schemas, Mapping):
            return
        path = child_path(root.source_path, "components")
        self._emit_schema_container(
            root, schemas, path, child_path(path, "schemas"), "#/components/schemas/", "Components", budget,
        )

    def emit_definitions(self, root: GraphNode, definitions: Any, budget: DepthBudget):
        """Swagger 2 keeps component schemas under a top-level `definitions`."""
        if not isinstance(definitions, Mapping):
            return
        path = child_path(root.source_path, "definitions")
        self._emit_schema_container(root, definitions, path, path, "#/definitions/", "Definitions", budget)

    def _emit_schema_container(
        self,
        root: GraphNode,
        schemas: Mapping,
        path: str,
        schemas_path: str,
        pointer_prefix: str,
        label: str,
        budget: DepthBudget
    ):
        expansion = resolve_expansion(self.visibility, path, budget)
        summaries = [
            {
                "name": str(name),
                "type": schema_type_label(schema),
                "properties": len(schema.get("properties") or {}) if isinstance(schema, Mapping) else 0,
            }
            for name, schema in schemas.items()
        ]
        container = self.builder.add_node(
            NodeKind.COMPONENTS_CONTAINER, path, parent=root,
            label=label,
            description=f"{len(schemas)} schemas",
            collapsed=bool(schemas) and not expansion.expanded,
            has_more_levels=bool(schemas) and expansion.expanded and expansion.budget.exhausted,
            data={"schemas": summaries},
        )
        if not schemas or not expansion.can_descend:
            return
        if schemas_path != path and self.visibility.is_gated(schemas_path):
            return

        entries = [
            SchemaEntry(name=str(name), schema=schema, path=child_path(schemas_path, str(name)))
            for name, schema in schemas.items()
            if not self.visibility.is_explicitly_collapsed(child_path(schemas_path, str(name)))
        ]

        def register(entry: SchemaEntry, node: GraphNode):
            self.builder.register_target(f"{pointer_prefix}{entry.name}", node.id)

        self.emit_group(
            container, entries, expansion.budget.child(),
            overflow_path=schemas_path,
            noun="Schemas",
            limit=self.options.max_individual_schemas,
            extra_data={"component": True},
            on_emit=register,
        )
