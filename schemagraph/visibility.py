"""
Visibility model - path-keyed expand/collapse resolution.

The editor owns a flat mapping of document paths to an expand state. The
compiler only ever reads it through VisibilityModel, which resolves:

- an explicit entry wins
- otherwise a path is collapsed, except the synthetic root which is expanded

Depth limiting lives in DepthBudget: the counter is relative to the nearest
explicitly expanded ancestor, or absolute from the root.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from .config import DepthMode

ROOT_PATH = "root"


class Visibility(str, Enum):
    """Tri-state expand flag for one path."""
    EXPANDED = "expanded"
    COLLAPSED = "collapsed"
    UNSET = "unset"


def coerce_visibility(value: Any) -> Visibility:
    """
    Normalize one editor value.

    Booleans are collapse flags (True = collapsed), matching the editor's
    collapsedPaths map. Mappings are the editor's "max depth reached" marker
    and count as expanded.
    """
    if isinstance(value, Visibility):
        return value
    if isinstance(value, bool):
        return Visibility.COLLAPSED if value else Visibility.EXPANDED
    if isinstance(value, str):
        try:
            return Visibility(value.strip().lower())
        except ValueError:
            return Visibility.UNSET
    if isinstance(value, Mapping):
        return Visibility.EXPANDED
    return Visibility.UNSET


def child_path(parent: str, *segments: str) -> str:
    """Join path segments with dots."""
    return ".".join((parent,) + segments) if parent else ".".join(segments)


def indexed_path(parent: str, index: int) -> str:
    return f"{parent}[{index}]"


def ancestors(path: str) -> list[str]:
    """Proper dot-prefix ancestors of a path, nearest last."""
    parts = path.split(".")
    return [".".join(parts[:i]) for i in range(1, len(parts))]


class VisibilityModel:
    """Read-only view over a VisibilityState mapping."""

    def __init__(self, state: Optional[Mapping[str, Any]] = None, root_path: str = ROOT_PATH):
        self._root_path = root_path
        self._state: dict[str, Visibility] = {}
        for path, value in (state or {}).items():
            resolved = coerce_visibility(value)
            if resolved != Visibility.UNSET:
                self._state[str(path)] = resolved

    @property
    def root_path(self) -> str:
        return self._root_path

    def state(self, path: str) -> Visibility:
        return self._state.get(path, Visibility.UNSET)

    def is_explicitly_expanded(self, path: str) -> bool:
        return self._state.get(path) == Visibility.EXPANDED

    def is_explicitly_collapsed(self, path: str) -> bool:
        return self._state.get(path) == Visibility.COLLAPSED

    def is_expanded(self, path: str) -> bool:
        """Explicit entry wins; otherwise collapsed, except the root."""
        explicit = self._state.get(path)
        if explicit is not None:
            return explicit == Visibility.EXPANDED
        return path == self._root_path

    def is_gated(self, container_path: str) -> bool:
        """A container (e.g. `x.properties`) vetoes its children only when explicitly collapsed."""
        return self.is_explicitly_collapsed(container_path)

    def has_collapsed_ancestor(self, path: str) -> bool:
        return any(self.is_explicitly_collapsed(a) for a in ancestors(path))

    def expanded_by_entry(self, paths: Mapping[str, str]) -> dict[str, bool]:
        """Map entry names to whether their path is explicitly expanded."""
        return {name: self.is_explicitly_expanded(p) for name, p in paths.items()}

    def to_dict(self) -> dict[str, str]:
        return {path: value.value for path, value in sorted(self._state.items())}


@dataclass(frozen=True)
class DepthBudget:
    """
    Depth counter carried down the traversal.

    `level` counts materialized levels since the last reset; `cascading` is True
    once an explicit expansion has been crossed, so unset descendants inherit
    expansion until the budget runs out.
    """
    max_depth: int
    mode: DepthMode = DepthMode.RELATIVE
    level: int = 0
    cascading: bool = False

    @classmethod
    def start(cls, max_depth: int, mode: DepthMode = DepthMode.RELATIVE) -> "DepthBudget":
        return cls(max_depth=max(1, max_depth), mode=mode)

    @property
    def exhausted(self) -> bool:
        return self.level >= self.max_depth

    def at_node(self, explicitly_expanded: bool) -> "DepthBudget":
        """Budget as seen by a node, after applying its own explicit expansion."""
        if explicitly_expanded:
            level = 0 if self.mode == DepthMode.RELATIVE else self.level
            return DepthBudget(self.max_depth, self.mode, level, True)
        return self

    def child(self) -> "DepthBudget":
        """Budget handed to the next materialized level."""
        return DepthBudget(self.max_depth, self.mode, self.level + 1, self.cascading)


@dataclass(frozen=True)
class Expansion:
    """Resolved expand decision for one materialized node."""
    expanded: bool
    budget: DepthBudget

    @property
    def can_descend(self) -> bool:
        return self.expanded and not self.budget.exhausted


def resolve_expansion(visibility: VisibilityModel, path: str, budget: DepthBudget) -> Expansion:
    """
    Decide whether a node's children are materialized.

    An explicit entry wins. An unset path is expanded when it is the root or
    when an explicit expansion above it is still cascading.
    """
    state = visibility.state(path)
    if state == Visibility.COLLAPSED:
        return Expansion(False, budget)
    if state == Visibility.EXPANDED:
        return Expansion(True, budget.at_node(True))
    if path == visibility.root_path:
        return Expansion(True, budget)
    return Expansion(budget.cascading, budget)
