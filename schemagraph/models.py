"""
Core data models for schema diagrams.

These models define the canonical shape of a compiled diagram:
- Nodes with a closed set of kinds, a source path and a kind-specific payload
- Edges connecting nodes (using source/target naming convention)
- The SchemaGraph pair handed to the rendering surface

Field Naming Convention:
- Edges use `source` and `target` (industry standard from D3, Cytoscape, etc.)
- For compatibility with the editor, `sourceId`/`targetId` and `from`/`to` are
  accepted on input and converted
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field, model_validator


class NodeKind(str, Enum):
    """Closed set of node kinds produced by the compiler."""
    ROOT = "root"
    SCHEMA_PROPERTY = "schema-property"
    OBJECT_GROUP = "object-group"
    ARRAY_ITEM = "array-item"
    INFO = "info"
    ENDPOINT = "endpoint"
    METHOD = "method"
    RESPONSE = "response"
    REQUEST_BODY = "request-body"
    CONTENT_TYPE = "content-type"
    PARAMETERS = "parameters"
    TAGS = "tags"
    TAG = "tag"
    SECURITY = "security"
    SERVERS = "servers"
    SERVER = "server"
    PATHS = "paths"
    COMPONENTS_CONTAINER = "components-container"
    GROUPED_OVERFLOW = "grouped-overflow"
    TRUNCATED_CHAIN = "truncated-chain"


class EdgeKind(str, Enum):
    """Relationship carried by an edge."""
    STRUCTURAL = "structural"  # parent contains child
    REFERENCE = "reference"    # synthesized from a $ref pointer
    ITEMS = "items"            # array -> item schema


class EdgeStyle(str, Enum):
    """Line styles for edges."""
    SOLID = "solid"
    DASHED = "dashed"


class Position(BaseModel):
    """Top-left corner of a node on the canvas."""
    x: float = 0.0
    y: float = 0.0


class Size(BaseModel):
    """Width/height of a node box."""
    width: float
    height: float


class PropertySummary(BaseModel):
    """One line of a summary list (overflow, object group, truncated chain)."""
    name: str
    type: str = "any"
    required: bool = False
    path: str = ""
    format: Optional[str] = None
    description: Optional[str] = None
    reference: Optional[str] = None


class GraphNode(BaseModel):
    """A box in the diagram."""
    id: str
    kind: NodeKind
    label: str = ""
    source_path: str = ""
    position: Position = Field(default_factory=Position)
    # Visibility flags
    collapsed: bool = False
    has_more_levels: bool = False
    # Schema facts shown on the box
    required: bool = False
    schema_type: Optional[str] = None
    description: Optional[str] = None
    # Size reported by the rendering surface, preferred over estimates
    measured: Optional[Size] = None
    # Set when the user dragged the node; layout keeps it in place
    anchored: bool = False
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def x(self) -> float:
        return self.position.x

    @property
    def y(self) -> float:
        return self.position.y

    def moved_to(self, x: float, y: float) -> "GraphNode":
        """Return a copy of this node at a new position."""
        return self.model_copy(update={"position": Position(x=x, y=y)})

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = self.model_dump(mode="json", exclude_none=True)
        result["sourcePath"] = result.pop("source_path")
        return result


class Edge(BaseModel):
    """
    An edge connecting two nodes.

    Uses `source` and `target` as canonical field names.
    Accepts `sourceId`/`targetId` and `from`/`to` on input.
    """
    id: str = ""
    source: str
    target: str
    kind: EdgeKind = EdgeKind.STRUCTURAL
    label: str = ""
    style: EdgeStyle = EdgeStyle.SOLID

    @model_validator(mode='before')
    @classmethod
    def convert_alias_fields(cls, data: Any) -> Any:
        """Convert alias endpoint fields to 'source'/'target'."""
        if isinstance(data, dict):
            data = dict(data)
            for alias in ('sourceId', 'from'):
                if alias in data and 'source' not in data:
                    data['source'] = data.pop(alias)
            for alias in ('targetId', 'to'):
                if alias in data and 'target' not in data:
                    data['target'] = data.pop(alias)
        return data

    def model_post_init(self, __context: Any) -> None:
        # Reference edges default to dashed; an explicit style is kept.
        if self.kind == EdgeKind.REFERENCE and "style" not in self.model_fields_set:
            self.style = EdgeStyle.DASHED
        if not self.id:
            self.id = edge_id(self.kind, self.source, self.target)

    @property
    def is_tree_edge(self) -> bool:
        """True for edges that define the containment tree."""
        return self.kind in (EdgeKind.STRUCTURAL, EdgeKind.ITEMS)

    def key(self) -> tuple[str, str, str]:
        return (self.source, self.target, self.kind.value)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "kind": self.kind.value,
            "style": self.style.value,
        }
        if self.label:
            result["label"] = self.label
        return result


def edge_id(kind: EdgeKind, source: str, target: str) -> str:
    """Deterministic edge id from its endpoints."""
    return f"{kind.value}:{source}->{target}"


class SchemaGraph(BaseModel):
    """
    The complete compiled diagram.
    This is what gets handed to the rendering surface.
    """
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with proper field names."""
        return {
            "nodes": [n.to_json_dict() for n in self.nodes],
            "edges": [e.to_json_dict() for e in self.edges],
        }

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Get a node by ID (O(n) - build node_index() for repeated lookups)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_index(self) -> dict[str, GraphNode]:
        return {n.id: n for n in self.nodes}

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def edge_keys(self) -> set[tuple[str, str, str]]:
        return {e.key() for e in self.edges}

    def nodes_of_kind(self, kind: NodeKind) -> list[GraphNode]:
        return [n for n in self.nodes if n.kind == kind]

    def edges_of_kind(self, kind: EdgeKind) -> list[Edge]:
        return [e for e in self.edges if e.kind == kind]


# --- API Request/Response Models ---

class CompileRequest(BaseModel):
    """Request to compile a document without touching the session."""
    document: Any = None
    visibility: dict[str, Any] = Field(default_factory=dict)
    settings: Optional[dict[str, Any]] = None


class ToggleCollapseRequest(BaseModel):
    """Collapse-toggle callback from the rendering surface."""
    path: str
    collapsed: bool


class ExpandGroupedEntryRequest(BaseModel):
    """Request to pull one entry out of a grouped-overflow node."""
    group_id: str
    entry_name: str


class AddAnnotationRequest(BaseModel):
    """Request to attach a comment to a node."""
    node_id: str
    author: str = "anonymous"
    text: str


class MoveNodeRequest(BaseModel):
    """Request to pin a node at a user-chosen position."""
    x: float
    y: float
