"""
Property and array-item grouping.

Wide objects would otherwise produce one box per property. When a sibling set
is larger than `max_individual`, the first `max_individual - 1` entries stay
individual and the rest collapse into one grouped-overflow box. Entries the
user explicitly expanded are never hidden in the overflow.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Optional, Sequence, TypeVar

from .models import PropertySummary

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SchemaEntry:
    """One named member of a sibling set (a property, a tuple item, a route...)."""
    name: str
    schema: Any
    path: str
    required: bool = False


@dataclass
class GroupingDecision(Generic[T]):
    """Result of splitting a sibling set."""
    individual: list[T] = field(default_factory=list)
    overflow: list[T] = field(default_factory=list)

    @property
    def has_overflow(self) -> bool:
        return bool(self.overflow)

    @property
    def slot_count(self) -> int:
        """Boxes needed: individual entries plus one overflow box if any."""
        return len(self.individual) + (1 if self.overflow else 0)


def _entry_name(entry: Any) -> str:
    return entry.name if hasattr(entry, "name") else str(entry)


def group_entries(
    entries: Sequence[T],
    max_individual: int,
    visibility_by_entry: Optional[Mapping[str, bool]] = None
) -> GroupingDecision[T]:
    """
    Split a sibling set into individual entries and overflow.

    Args:
        entries: Sibling entries in document order
        max_individual: Largest set shown without grouping
        visibility_by_entry: Entry name -> explicitly expanded

    Returns:
        GroupingDecision; individual entries keep document order
    """
    entries = list(entries)
    if len(entries) <= max_individual:
        return GroupingDecision(individual=entries)

    expanded = visibility_by_entry or {}
    promoted = {i for i, e in enumerate(entries) if expanded.get(_entry_name(e), False)}

    free_slots = max(0, max_individual - 1 - len(promoted))
    kept = set(promoted)
    for i in range(len(entries)):
        if free_slots == 0:
            break
        if i not in kept:
            kept.add(i)
            free_slots -= 1

    decision = GroupingDecision(
        individual=[e for i, e in enumerate(entries) if i in kept],
        overflow=[e for i, e in enumerate(entries) if i not in kept],
    )
    logger.debug(
        "Grouped %d entries: %d individual (%d promoted), %d overflow",
        len(entries), len(decision.individual), len(promoted), len(decision.overflow)
    )
    return decision


def schema_type_label(schema: Any) -> str:
    """Short type name shown in summaries."""
    if not isinstance(schema, Mapping):
        return "any"
    declared = schema.get("type")
    if isinstance(declared, list):
        return " | ".join(str(t) for t in declared)
    if declared:
        return str(declared)
    if "$ref" in schema:
        return "reference"
    for keyword in ("allOf", "anyOf", "oneOf"):
        if keyword in schema:
            return keyword
    if "properties" in schema:
        return "object"
    if "items" in schema:
        return "array"
    return "any"


def summarize_entry(entry: SchemaEntry) -> PropertySummary:
    """{name, type, required} line for an overflow or group box."""
    schema = entry.schema if isinstance(entry.schema, Mapping) else {}
    ref = schema.get("$ref")
    return PropertySummary(
        name=entry.name,
        type=schema_type_label(entry.schema),
        required=entry.required,
        path=entry.path,
        format=schema.get("format"),
        description=schema.get("description"),
        reference=ref if isinstance(ref, str) else None,
    )
