"""
Deterministic node ids.

Ids are derived from (path, kind) so the rendering surface can match nodes
across passes for animated transitions. The synthetic root is always `root`.
"""

from .models import NodeKind

ROOT_ID = "root"


def node_id(kind: NodeKind, path: str) -> str:
    """Base id for a node built from `path`."""
    if kind == NodeKind.ROOT:
        return ROOT_ID
    return f"{kind.value}:{path}"


class IdAllocator:
    """
    Hands out ids for one compilation pass.

    The first node for a (path, kind) pair gets the base id; legitimately
    repeated pairs get a `~2`, `~3`, ... suffix in emission order.
    """

    def __init__(self):
        self._counts: dict[str, int] = {}

    def allocate(self, kind: NodeKind, path: str) -> str:
        base = node_id(kind, path)
        count = self._counts.get(base, 0) + 1
        self._counts[base] = count
        return base if count == 1 else f"{base}~{count}"

    def snapshot(self) -> dict[str, int]:
        return dict(self._counts)

    def restore(self, snapshot: dict[str, int]):
        self._counts = dict(snapshot)
