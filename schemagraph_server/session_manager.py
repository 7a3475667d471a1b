"""
Session Manager - view state of the one document being diagrammed.

This module implements:
- Single document session (one document loaded at a time)
- The collaborator callbacks: toggle collapse, expand a grouped entry,
  add an annotation
- User-dragged positions and renderer-measured sizes
- Linear undo/redo of view state using snapshots
- Change callbacks for real-time sync

The document itself is never edited here; only what the diagram shows of it.
"""

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from schemagraph.animation import NodeAnimator
from schemagraph.config import DiagramSettings, load_settings
from schemagraph.models import GraphNode, NodeKind, Position, SchemaGraph, Size
from schemagraph.pipeline import DiagramCache
from schemagraph.visibility import Visibility, coerce_visibility

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Manages a single document's diagram view state and history.

    The history system works via snapshots:
    - Each mutation records the view state (visibility, positions,
      annotations) before changing it
    - Undo restores the previous snapshot
    - Redo re-applies a snapshot from the future stack

    Loading a new document clears the history.
    """

    def __init__(self, settings: Optional[DiagramSettings] = None, max_history: int = 100):
        self._settings = settings or load_settings()
        self._document: Any = None
        self._visibility: dict[str, str] = {}
        self._positions: dict[str, Position] = {}
        self._measured: dict[str, Size] = {}
        self._annotations: list[dict] = []
        self._history: list[dict] = []  # Past view states
        self._future: list[dict] = []   # Undone view states
        self._max_history = max_history
        self._on_change_callbacks: list[Callable] = []
        self._cache = DiagramCache(self._settings.cache_size)
        self._animator = NodeAnimator(duration=self._settings.collision.animation_duration)
        self._displayed: list[GraphNode] = []
        self._lock = threading.RLock()

    # --- Properties ---

    @property
    def has_document(self) -> bool:
        return self._document is not None

    @property
    def settings(self) -> DiagramSettings:
        return self._settings

    @property
    def visibility(self) -> dict[str, str]:
        """A copy of the current visibility map."""
        with self._lock:
            return dict(self._visibility)

    @property
    def annotations(self) -> list[dict]:
        with self._lock:
            return [dict(a) for a in self._annotations]

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._future) > 0

    @property
    def cache(self) -> DiagramCache:
        return self._cache

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for view state changes."""
        if callback not in self._on_change_callbacks:
            self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    # --- History Management ---

    def _snapshot(self) -> dict:
        return {
            "visibility": dict(self._visibility),
            "positions": {k: v.model_copy() for k, v in self._positions.items()},
            "annotations": [dict(a) for a in self._annotations],
        }

    def _restore(self, snapshot: dict):
        self._visibility = dict(snapshot["visibility"])
        self._positions = dict(snapshot["positions"])
        self._annotations = [dict(a) for a in snapshot["annotations"]]

    def _save_to_history(self):
        """Save current view state to history before a mutation."""
        # New action invalidates the redo stack
        self._future.clear()
        self._history.append(self._snapshot())
        if len(self._history) > self._max_history:
            self._history.pop(0)

    def _require_document(self):
        if self._document is None:
            raise ValueError("No document loaded")

    # --- Document ---

    def load_document(self, document: Any, visibility: Optional[dict[str, Any]] = None):
        """Replace the document and reset all view state."""
        with self._lock:
            self._document = copy.deepcopy(document)
            self._visibility = {
                path: _normalize_state(value) for path, value in (visibility or {}).items()
            }
            self._positions.clear()
            self._measured.clear()
            self._annotations.clear()
            self._history.clear()
            self._future.clear()
            self._cache.clear()
            self._reset_animation()
        logger.info("Loaded document (%d visibility entries)", len(self._visibility))
        self._notify_change()

    def update_settings(self, overrides: dict) -> DiagramSettings:
        """Apply partial settings; raises ValueError (pydantic) when invalid."""
        with self._lock:
            self._settings = self._settings.merged(overrides)
            self._cache = DiagramCache(self._settings.cache_size)
            self._reset_animation()
        self._notify_change()
        return self._settings

    # --- Collaborator callbacks ---

    def toggle_collapse(self, path: str, collapsed: bool) -> dict[str, str]:
        """Set one path's expand state. Returns the new visibility map."""
        if not path:
            raise ValueError("Path is required")
        with self._lock:
            self._require_document()
            self._save_to_history()
            state = Visibility.COLLAPSED if collapsed else Visibility.EXPANDED
            self._visibility[path] = state.value
            result = dict(self._visibility)
        logger.debug("Toggled %s -> %s", path, state.value)
        self._notify_change()
        return result

    def expand_grouped_entry(self, group_id: str, entry_name: str) -> str:
        """
        Pull one entry out of a grouped-overflow box.

        Marks the entry's path expanded so the next pass promotes it to an
        individual node. Returns that path.
        """
        with self._lock:
            self._require_document()
            group = self.get_graph().get_node(group_id)
            if group is None or group.kind != NodeKind.GROUPED_OVERFLOW:
                raise ValueError(f"Grouped node not found: {group_id}")

            entry = next(
                (e for e in group.data.get("entries", []) if e.get("name") == entry_name), None
            )
            if entry is None or not entry.get("path"):
                raise ValueError(f"Entry '{entry_name}' not found in {group_id}")

            self._save_to_history()
            self._visibility[entry["path"]] = Visibility.EXPANDED.value
        self._notify_change()
        return entry["path"]

    def add_annotation(self, node_id: str, author: str, text: str) -> dict:
        """Attach a comment to a node."""
        if not text or not text.strip():
            raise ValueError("Annotation text is required")
        with self._lock:
            self._require_document()
            node = self.get_graph().get_node(node_id)
            if node is None:
                raise ValueError(f"Node not found: {node_id}")

            self._save_to_history()
            annotation = {
                "node_id": node_id,
                "source_path": node.source_path,
                "author": author or "anonymous",
                "text": text.strip(),
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            self._annotations.append(annotation)
        self._notify_change()
        return dict(annotation)

    # --- Positions and sizes ---

    def move_node(self, node_id: str, x: float, y: float) -> GraphNode:
        """Pin a node where the user dropped it."""
        with self._lock:
            self._require_document()
            if self.get_graph().get_node(node_id) is None:
                raise ValueError(f"Node not found: {node_id}")
            self._save_to_history()
            self._positions[node_id] = Position(x=x, y=y)
            node = self.get_graph().get_node(node_id)
        self._notify_change()
        return node

    def reset_positions(self) -> int:
        """Unpin every dragged node. Returns how many were pinned."""
        with self._lock:
            self._require_document()
            count = len(self._positions)
            if count:
                self._save_to_history()
                self._positions.clear()
        if count:
            self._notify_change()
        return count

    def set_measured(self, sizes: dict[str, Size]):
        """Record sizes reported by the renderer. Not part of undo history."""
        with self._lock:
            self._measured.update(sizes)
        self._notify_change()

    # --- Undo/Redo ---

    def undo(self) -> bool:
        """Undo the last view change."""
        with self._lock:
            if not self.can_undo:
                return False
            self._future.append(self._snapshot())
            self._restore(self._history.pop())
        self._notify_change()
        return True

    def redo(self) -> bool:
        """Redo the last undone view change."""
        with self._lock:
            if not self.can_redo:
                return False
            self._history.append(self._snapshot())
            self._restore(self._future.pop())
        self._notify_change()
        return True

    # --- Animation ---

    def _reset_animation(self):
        self._animator.cancel()
        self._animator = NodeAnimator(duration=self._settings.collision.animation_duration)
        self._displayed = []

    def animation_frame(self, now: float) -> dict[str, Position]:
        """
        Positions to display at host time `now` (milliseconds).

        When the positioned graph differs from the one being animated to, a
        new transition starts from what is currently on screen.
        """
        with self._lock:
            target = self.get_graph().nodes
            if [(n.id, n.position) for n in target] != [(n.id, n.position) for n in self._displayed]:
                self._animator.start(self._displayed, target, now)
                self._displayed = target
            return self._animator.frame(now)

    # --- Queries ---

    def get_graph(self) -> SchemaGraph:
        """Compile and position the current view."""
        with self._lock:
            self._require_document()
            return self._cache.generate(
                self._document,
                self._visibility,
                self._settings,
                self._positions,
                self._measured,
            )

    def get_state(self) -> dict:
        """Get the full session state for API responses."""
        with self._lock:
            if self._document is None:
                return {"loaded": False, "diagram": None}

            return {
                "loaded": True,
                "diagram": self.get_graph().to_json_dict(),
                "visibility": dict(self._visibility),
                "annotations": [dict(a) for a in self._annotations],
                "pinned": sorted(self._positions),
                "can_undo": self.can_undo,
                "can_redo": self.can_redo,
            }


def _normalize_state(value: Any) -> str:
    return coerce_visibility(value).value


# Global instance
session_manager = SessionManager()
