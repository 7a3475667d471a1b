"""
Size estimation for layout calculations.

The rendering surface reports real sizes once a node is drawn; until then the
layout engine and the collision resolver work from these estimates.
"""

import math

from .models import GraphNode, NodeKind, Size

# Base sizes per node kind
BASE_SIZES: dict[NodeKind, Size] = {
    NodeKind.ROOT: Size(width=200, height=60),
    NodeKind.SCHEMA_PROPERTY: Size(width=180, height=50),
    NodeKind.OBJECT_GROUP: Size(width=220, height=60),
    NodeKind.ARRAY_ITEM: Size(width=160, height=50),
    NodeKind.INFO: Size(width=220, height=80),
    NodeKind.ENDPOINT: Size(width=240, height=60),
    NodeKind.METHOD: Size(width=200, height=70),
    NodeKind.RESPONSE: Size(width=160, height=50),
    NodeKind.REQUEST_BODY: Size(width=180, height=60),
    NodeKind.CONTENT_TYPE: Size(width=180, height=50),
    NodeKind.PARAMETERS: Size(width=180, height=50),
    NodeKind.TAGS: Size(width=160, height=50),
    NodeKind.TAG: Size(width=160, height=50),
    NodeKind.SECURITY: Size(width=160, height=50),
    NodeKind.SERVERS: Size(width=180, height=50),
    NodeKind.SERVER: Size(width=180, height=50),
    NodeKind.PATHS: Size(width=180, height=60),
    NodeKind.COMPONENTS_CONTAINER: Size(width=200, height=60),
    NodeKind.GROUPED_OVERFLOW: Size(width=200, height=80),
    NodeKind.TRUNCATED_CHAIN: Size(width=180, height=50),
}
DEFAULT_SIZE = Size(width=180, height=50)

# Character width estimate (in pixels)
CHAR_WIDTH = 7
MIN_LABEL_PADDING = 40
MAX_WIDTH = 320
MIN_WIDTH = 120

DESCRIPTION_CHARS_PER_LINE = 30
DESCRIPTION_LINE_HEIGHT = 16
MAX_DESCRIPTION_LINES = 2

# Height per summary row
ROW_HEIGHT = 20
MAX_VISIBLE_ROWS = 6

# Payload keys holding row lists, per kind
_ROW_KEYS: dict[NodeKind, str] = {
    NodeKind.GROUPED_OVERFLOW: "entries",
    NodeKind.OBJECT_GROUP: "properties",
    NodeKind.TRUNCATED_CHAIN: "elided",
    NodeKind.ENDPOINT: "methods",
    NodeKind.COMPONENTS_CONTAINER: "schemas",
    NodeKind.RESPONSE: "status_codes",
    NodeKind.PARAMETERS: "parameters",
}


def summary_row_count(node: GraphNode) -> int:
    key = _ROW_KEYS.get(node.kind)
    rows = node.data.get(key) if key else None
    return len(rows) if isinstance(rows, (list, tuple)) else 0


def estimate_node_size(node: GraphNode) -> Size:
    """Estimate the rendered dimensions of a node from its kind and content."""
    base = BASE_SIZES.get(node.kind, DEFAULT_SIZE)

    width = base.width
    if node.label:
        label_width = len(node.label) * CHAR_WIDTH + MIN_LABEL_PADDING
        width = max(width, min(label_width, MAX_WIDTH))
    width = max(width, MIN_WIDTH)

    height = base.height
    if node.description:
        lines = math.ceil(len(node.description) / DESCRIPTION_CHARS_PER_LINE)
        height += min(lines, MAX_DESCRIPTION_LINES) * DESCRIPTION_LINE_HEIGHT

    rows = min(summary_row_count(node), MAX_VISIBLE_ROWS)
    height += rows * ROW_HEIGHT

    return Size(width=width, height=height)


def node_size(node: GraphNode) -> Size:
    """Measured size when the renderer reported one, else the estimate."""
    if node.measured is not None:
        return node.measured
    return estimate_node_size(node)

