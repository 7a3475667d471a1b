"""
JSON-Schema walk.

Recurses through `properties`, `items`, composition keywords and root
definitions, emitting nodes through the GraphBuilder. Every decision about
what to materialize goes through the visibility model and the depth budget;
wide sibling sets go through grouping.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence

from .builder import GraphBuilder, MalformedFragment
from .config import CompileOptions, GroupingMode
from .grouping import SchemaEntry, group_entries, schema_type_label, summarize_entry
from .models import EdgeKind, GraphNode, NodeKind
from .references import reference_name
from .visibility import DepthBudget, VisibilityModel, child_path, indexed_path, resolve_expansion

logger = logging.getLogger(__name__)

COMPOSITION_LIST_KEYWORDS = ("allOf", "anyOf", "oneOf")
COMPOSITION_SINGLE_KEYWORDS = ("not", "if", "then", "else")
DEFINITION_KEYS = ("$defs", "definitions")

SCHEMA_KEYWORDS = {
    "$schema", "$id", "$ref", "$defs", "definitions", "type", "title",
    "properties", "items", "prefixItems", "additionalProperties", "required",
    "enum", "const", "allOf", "anyOf", "oneOf", "not", "if", "then", "else",
}

# Schema facts copied into a node's payload
_FACT_KEYS = (
    "format", "enum", "const", "default", "pattern", "minimum", "maximum",
    "exclusiveMinimum", "exclusiveMaximum", "minLength", "maxLength",
    "minItems", "maxItems", "uniqueItems", "nullable", "readOnly", "writeOnly",
    "deprecated", "example", "examples",
)


def is_json_schema(document: Any) -> bool:
    return isinstance(document, Mapping) and any(k in document for k in SCHEMA_KEYWORDS)


def has_children(schema: Any) -> bool:
    """Whether a schema has anything the walk could materialize below it."""
    if not isinstance(schema, Mapping):
        return False
    props = schema.get("properties")
    if isinstance(props, Mapping) and props:
        return True
    if isinstance(schema.get("items"), (Mapping, list)) and schema.get("items"):
        return True
    if any(isinstance(schema.get(k), list) and schema.get(k) for k in COMPOSITION_LIST_KEYWORDS):
        return True
    return any(isinstance(schema.get(k), Mapping) for k in COMPOSITION_SINGLE_KEYWORDS)


def schema_facts(schema: Mapping) -> dict:
    facts = {k: schema[k] for k in _FACT_KEYS if k in schema}
    ref = schema.get("$ref")
    if isinstance(ref, str):
        facts["reference"] = ref
    return facts


@dataclass
class WalkContext:
    """Shared state of one compilation pass."""
    builder: GraphBuilder
    visibility: VisibilityModel
    options: CompileOptions


class SchemaWalker:
    """Emits the nodes of a JSON-Schema-like tree."""

    def __init__(self, ctx: WalkContext):
        self.ctx = ctx
        self.builder = ctx.builder
        self.visibility = ctx.visibility
        self.options = ctx.options

    # --- Entry points ---

    def walk_root(self, root: GraphNode, schema: Mapping, budget: DepthBudget):
        """Walk the children and local definitions of the document root."""
        self.walk_children(root, schema, root.source_path, budget)
        self.walk_definitions(root, schema, budget)

    def walk_definitions(self, root: GraphNode, schema: Mapping, budget: DepthBudget):
        """One node per `$defs` / `definitions` entry; these are reference targets."""
        for key in DEFINITION_KEYS:
            definitions = schema.get(key)
            if not isinstance(definitions, Mapping) or not definitions:
                continue
            container = child_path(root.source_path, key)
            if self.visibility.is_gated(container):
                continue

            entries = [
                SchemaEntry(name=str(name), schema=sub, path=child_path(container, str(name)))
                for name, sub in definitions.items()
            ]

            def register(entry: SchemaEntry, node: GraphNode, key=key):
                self.builder.register_target(f"#/{key}/{entry.name}", node.id)

            self.emit_group(
                root, entries, budget.child(),
                kind=NodeKind.SCHEMA_PROPERTY,
                overflow_path=container,
                noun="Definitions",
                limit=self.options.max_individual_schemas,
                extra_data={"definition": True},
                on_emit=register,
            )

    # --- Nodes ---

    def emit_schema(
        self,
        parent: GraphNode,
        kind: NodeKind,
        path: str,
        label: str,
        schema: Any,
        budget: DepthBudget,
        edge_kind: EdgeKind = EdgeKind.STRUCTURAL,
        required: bool = False,
        data: Optional[dict] = None
    ) -> GraphNode:
        """
        Emit one schema node and, when it may descend, its subtree.

        Args:
            parent: Node the new one hangs below
            kind: Node kind (schema-property or array-item)
            path: Document path of the schema
            label: Text shown on the box
            schema: The schema fragment
            budget: Depth budget at this level
            edge_kind: Kind of the attaching edge
            required: Whether the parent lists this entry as required
            data: Extra payload

        Raises:
            MalformedFragment: If the fragment is neither a mapping nor a boolean
        """
        payload = dict(data or {})

        if isinstance(schema, bool):
            payload["boolean_schema"] = schema
            return self.builder.add_node(
                kind, path, parent=parent, edge_kind=edge_kind,
                label=label, required=required,
                schema_type="any" if schema else "never", data=payload,
            )
        if not isinstance(schema, Mapping):
            raise MalformedFragment(f"expected a schema object, got {type(schema).__name__}")

        expansion = resolve_expansion(self.visibility, path, budget)
        children = has_children(schema)
        payload.update(schema_facts(schema))
        if schema.get("title") and schema.get("title") != label:
            payload["title"] = schema["title"]

        node = self.builder.add_node(
            kind, path, parent=parent, edge_kind=edge_kind, fragment=schema,
            label=label,
            required=required,
            schema_type=schema_type_label(schema),
            description=schema.get("description"),
            collapsed=children and not expansion.expanded,
            has_more_levels=children and expansion.expanded and expansion.budget.exhausted,
            data=payload,
        )

        if children and expansion.can_descend:
            self.walk_children(node, schema, path, expansion.budget)
        return node

    def walk_children(self, node: GraphNode, schema: Mapping, path: str, budget: DepthBudget):
        """Materialize the children of an expanded schema node."""
        child_budget = budget.child()

        props = schema.get("properties")
        props_path = child_path(path, "properties")
        if isinstance(props, Mapping) and props and not self.visibility.is_gated(props_path):
            required = schema.get("required")
            required = {r for r in required if isinstance(r, str)} if isinstance(required, list) else set()
            entries = [
                SchemaEntry(name=str(name), schema=sub,
                            path=child_path(props_path, str(name)), required=name in required)
                for name, sub in props.items()
            ]
            if self.options.grouping_mode == GroupingMode.GROUPED:
                with self.builder.branch(props_path):
                    self.emit_object_group(node, entries, props_path, child_budget)
            else:
                self.emit_group(node, entries, child_budget, overflow_path=props_path)
        elif props is not None and not isinstance(props, Mapping):
            logger.debug("Skipping non-object properties at %s", props_path)

        items = schema.get("items")
        items_path = child_path(path, "items")
        if isinstance(items, list) and items:
            entries = [
                SchemaEntry(name=f"[{i}]", schema=sub, path=indexed_path(items_path, i))
                for i, sub in enumerate(items)
            ]
            self.emit_group(
                node, entries, child_budget,
                kind=NodeKind.ARRAY_ITEM, edge_kind=EdgeKind.ITEMS,
                overflow_path=items_path, noun="Items",
            )
        elif isinstance(items, (Mapping, bool)):
            with self.builder.branch(items_path):
                self.emit_schema(
                    node, NodeKind.ARRAY_ITEM, items_path, _items_label(items),
                    items, child_budget, edge_kind=EdgeKind.ITEMS,
                )

        for keyword in COMPOSITION_LIST_KEYWORDS:
            members = schema.get(keyword)
            if isinstance(members, list) and members:
                with self.builder.branch(child_path(path, keyword)):
                    self.emit_composition(node, keyword, members, path, child_budget)

        for keyword in COMPOSITION_SINGLE_KEYWORDS:
            sub = schema.get(keyword)
            if isinstance(sub, Mapping):
                kw_path = child_path(path, keyword)
                with self.builder.branch(kw_path):
                    self.emit_schema(
                        node, NodeKind.SCHEMA_PROPERTY, kw_path, keyword, sub,
                        child_budget, data={"keyword": keyword},
                    )

    def emit_composition(
        self,
        parent: GraphNode,
        keyword: str,
        members: list,
        path: str,
        budget: DepthBudget
    ):
        """Keyword node (`allOf`, `anyOf`, `oneOf`) with one child per member."""
        kw_path = child_path(path, keyword)
        expansion = resolve_expansion(self.visibility, kw_path, budget)
        node = self.builder.add_node(
            NodeKind.SCHEMA_PROPERTY, kw_path, parent=parent, fragment=members,
            label=keyword,
            schema_type=keyword,
            collapsed=not expansion.expanded,
            has_more_levels=expansion.expanded and expansion.budget.exhausted,
            data={"keyword": keyword, "members": len(members)},
        )
        if not expansion.can_descend:
            return

        entries = [
            SchemaEntry(name=f"{keyword}[{i}]", schema=member, path=indexed_path(kw_path, i))
            for i, member in enumerate(members)
        ]
        self.emit_group(
            node, entries, expansion.budget.child(),
            overflow_path=kw_path, noun="Variants",
            label_of=_member_label,
        )

    def emit_object_group(
        self,
        parent: GraphNode,
        entries: list[SchemaEntry],
        props_path: str,
        budget: DepthBudget
    ):
        """
        Grouped mode: one box summarizing every property of an object.

        Nested objects and arrays that are themselves expanded hang below the
        group and continue the walk.
        """
        summaries = [summarize_entry(e) for e in entries]
        type_counts = Counter(s.type for s in summaries)
        group = self.builder.add_node(
            NodeKind.OBJECT_GROUP, props_path, parent=parent,
            label=f"{parent.label} ({len(entries)} properties)",
            schema_type="object",
            data={
                "properties": [s.model_dump(exclude_none=True) for s in summaries],
                "type_counts": dict(sorted(type_counts.items())),
                "required_count": sum(1 for s in summaries if s.required),
            },
        )

        for entry in entries:
            if not has_children(entry.schema):
                continue
            if not resolve_expansion(self.visibility, entry.path, budget).expanded:
                continue
            with self.builder.branch(entry.path):
                self.emit_schema(
                    group, NodeKind.SCHEMA_PROPERTY, entry.path, entry.name,
                    entry.schema, budget, required=entry.required,
                )

        # Remaining property schemas are represented by the group itself
        for entry in entries:
            if self.builder.owner_of(entry.schema) is None:
                self.builder.own(group.id, entry.schema)

    # --- Grouping ---

    def emit_group(
        self,
        parent: GraphNode,
        entries: Sequence[SchemaEntry],
        budget: DepthBudget,
        kind: NodeKind = NodeKind.SCHEMA_PROPERTY,
        edge_kind: EdgeKind = EdgeKind.STRUCTURAL,
        overflow_path: str = "",
        noun: str = "Properties",
        limit: Optional[int] = None,
        extra_data: Optional[dict] = None,
        label_of: Callable[[SchemaEntry], str] = lambda e: e.name,
        on_emit: Optional[Callable[[SchemaEntry, GraphNode], None]] = None
    ):
        """Emit a sibling set: individual entries plus at most one overflow box."""
        decision = group_entries(
            entries,
            limit or self.options.max_individual,
            self.visibility.expanded_by_entry({e.name: e.path for e in entries}),
        )
        for entry in decision.individual:
            with self.builder.branch(entry.path):
                node = self.emit_schema(
                    parent, kind, entry.path, label_of(entry), entry.schema, budget,
                    edge_kind=edge_kind, required=entry.required, data=extra_data,
                )
                if on_emit is not None:
                    on_emit(entry, node)
        if decision.overflow:
            with self.builder.branch(overflow_path):
                emit_overflow(self.builder, parent, overflow_path, decision.overflow, noun, edge_kind)


def emit_overflow(
    builder: GraphBuilder,
    parent: GraphNode,
    path: str,
    entries: Sequence[SchemaEntry],
    noun: str,
    edge_kind: EdgeKind = EdgeKind.STRUCTURAL
) -> GraphNode:
    """One grouped-overflow box summarizing every overflowed entry."""
    summaries = [summarize_entry(e).model_dump(exclude_none=True) for e in entries]
    node = builder.add_node(
        NodeKind.GROUPED_OVERFLOW, path, parent=parent, edge_kind=edge_kind,
        label=f"{len(entries)} More {noun}",
        data={"entries": summaries, "count": len(entries)},
    )
    for entry in entries:
        builder.own(node.id, entry.schema)
    return node


def _items_label(items: Any) -> str:
    name = reference_name(items.get("$ref")) if isinstance(items, Mapping) else None
    return f"{name}[]" if name else "items"


def _member_label(entry: SchemaEntry) -> str:
    schema = entry.schema
    if isinstance(schema, Mapping):
        name = reference_name(schema.get("$ref"))
        if name:
            return name
        if isinstance(schema.get("title"), str):
            return schema["title"]
    return entry.name
