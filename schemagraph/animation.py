"""
Frame-driven node animation.

The host (a render loop, a test, or the WebSocket broadcaster) calls
`NodeAnimator.frame(now)` with a monotonic timestamp in milliseconds. The
animator interpolates from the currently displayed positions to the targets
with an ease-out-cubic curve and settles exactly on the targets.

States: idle -> animating -> settled. Starting a new animation cancels the
in-flight one and starts from wherever the nodes currently are.
"""

import logging
from enum import Enum
from typing import Optional

from .models import GraphNode, Position

logger = logging.getLogger(__name__)


class AnimationState(str, Enum):
    IDLE = "idle"
    ANIMATING = "animating"
    SETTLED = "settled"


def ease_out_cubic(t: float) -> float:
    t = min(max(t, 0.0), 1.0)
    return 1 - (1 - t) ** 3


class CancellationToken:
    """Set once; an animation checks it on every frame."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True


class NodeAnimator:
    """Interpolates node positions between two layouts."""

    def __init__(self, duration: float = 300):
        self.duration = duration
        self.state = AnimationState.IDLE
        self._start: dict[str, Position] = {}
        self._target: dict[str, Position] = {}
        self._current: dict[str, Position] = {}
        self._started_at: Optional[float] = None
        self._token: Optional[CancellationToken] = None

    @property
    def positions(self) -> dict[str, Position]:
        """Currently displayed positions."""
        return dict(self._current)

    def start(self, current: list[GraphNode], target: list[GraphNode], now: float) -> CancellationToken:
        """
        Begin animating towards `target`.

        Any in-flight animation is cancelled; nodes it was moving start from
        their displayed position rather than from `current`.
        """
        if self._token is not None:
            self._token.cancel()
        self._token = CancellationToken()

        start = {n.id: n.position for n in current}
        if self.state == AnimationState.ANIMATING:
            start.update(self._current)

        self._target = {n.id: n.position for n in target}
        self._start = {nid: start.get(nid, pos) for nid, pos in self._target.items()}
        self._current = dict(self._start)
        self._started_at = now

        if self.duration <= 0 or self._start == self._target:
            self._settle()
        else:
            self.state = AnimationState.ANIMATING
        logger.debug("Animation started for %d nodes (%s)", len(self._target), self.state.value)
        return self._token

    def frame(self, now: float) -> dict[str, Position]:
        """Advance to `now` and return the positions to display."""
        if self.state != AnimationState.ANIMATING:
            return self.positions
        if self._token is not None and self._token.cancelled:
            self.state = AnimationState.IDLE
            return self.positions

        progress = (now - self._started_at) / self.duration
        if progress >= 1:
            self._settle()
            return self.positions

        eased = ease_out_cubic(progress)
        self._current = {
            nid: Position(
                x=self._start[nid].x + (target.x - self._start[nid].x) * eased,
                y=self._start[nid].y + (target.y - self._start[nid].y) * eased,
            )
            for nid, target in self._target.items()
        }
        return self.positions

    def cancel(self):
        """Stop where we are."""
        if self._token is not None:
            self._token.cancel()
        if self.state == AnimationState.ANIMATING:
            self.state = AnimationState.IDLE

    def _settle(self):
        self._current = dict(self._target)
        self.state = AnimationState.SETTLED

    def apply(self, nodes: list[GraphNode]) -> list[GraphNode]:
        """Copies of `nodes` at the displayed positions."""
        return [
            n.moved_to(self._current[n.id].x, self._current[n.id].y) if n.id in self._current else n
            for n in nodes
        ]
