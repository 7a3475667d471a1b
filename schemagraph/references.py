"""
Reference resolver - turns `$ref` pointers into reference edges.

Runs as a second phase once every node of the pass exists, so forward
references resolve regardless of traversal order. An edge is only ever drawn
between two materialized nodes: a pointer whose target is not in the pass
(collapsed, grouped away, or missing) produces nothing.
"""

import logging
from typing import Any, Callable, Iterator, Mapping, Optional

from .builder import GraphBuilder
from .models import EdgeKind

logger = logging.getLogger(__name__)

# Pointer prefixes that name a reusable schema
REFERENCE_PREFIXES = (
    "#/components/schemas/",
    "#/definitions/",
    "#/$defs/",
)

# Keys holding a single sub-schema
_SINGLE_KEYS = ("items", "additionalProperties", "not", "if", "then", "else",
                "requestBody", "schema")
# Keys holding a list of sub-schemas
_LIST_KEYS = ("allOf", "anyOf", "oneOf", "prefixItems", "parameters")
# Keys holding a name -> sub-schema mapping
_MAP_KEYS = ("properties", "responses", "content")


def _unescape(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def reference_target(ref: Any) -> Optional[str]:
    """
    Normalize a pointer to `<prefix><Name>`, or None if it names no schema.

    Deeper pointers (`#/components/schemas/User/properties/id`) resolve to the
    schema that contains them.
    """
    if not isinstance(ref, str):
        return None
    for prefix in REFERENCE_PREFIXES:
        if ref.startswith(prefix):
            name = ref[len(prefix):].split("/", 1)[0]
            if name:
                return prefix + _unescape(name)
    return None


def reference_name(ref: Any) -> Optional[str]:
    """Schema name a pointer refers to."""
    target = reference_target(ref)
    if target is None:
        return None
    return target.rsplit("/", 1)[1]


def _children(fragment: Mapping) -> Iterator[Any]:
    """Nested sub-schemas; lists are yielded whole so they can be skipped as a unit."""
    for key in _SINGLE_KEYS + _LIST_KEYS:
        value = fragment.get(key)
        if isinstance(value, (Mapping, list)):
            yield value
    for key in _MAP_KEYS:
        value = fragment.get(key)
        if isinstance(value, Mapping):
            yield from value.values()


def find_references(fragment: Any, skip: Callable[[Any], bool] = lambda f: False) -> Iterator[str]:
    """
    Yield every `$ref` in a fragment and its nested sub-schemas.

    Sub-fragments for which `skip()` is true are not entered.
    """
    stack = [fragment]
    seen: set[int] = set()
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        if isinstance(current, list):
            seen.add(id(current))
            stack.extend(reversed([c for c in current if not skip(c)]))
            continue
        if not isinstance(current, Mapping):
            continue
        seen.add(id(current))
        ref = current.get("$ref")
        if isinstance(ref, str):
            yield ref
        children = [c for c in _children(current) if not skip(c)]
        stack.extend(reversed(children))


def resolve_references(builder: GraphBuilder) -> int:
    """
    Append one dashed reference edge per (node, target) pair.

    Returns:
        Number of reference edges added
    """
    added = 0
    for node in list(builder.nodes):
        def foreign(fragment, owner=node.id):
            other = builder.owner_of(fragment)
            return other is not None and other != owner

        for fragment in builder.fragments_of(node.id):
            for ref in find_references(fragment, skip=foreign):
                target = builder.target_for(reference_target(ref) or "")
                if target is None:
                    continue
                if builder.add_edge(node.id, target, EdgeKind.REFERENCE) is not None:
                    added += 1

    logger.debug("Resolved %d reference edges", added)
    return added
