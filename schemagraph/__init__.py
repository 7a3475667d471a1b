"""
schemagraph - Schema-to-graph compiler and layout engine.

Turns a JSON-Schema-like document or an OpenAPI document plus a per-path
expand/collapse map into positioned boxes and lines. This package is the
single source of truth used by the API server, the CLI and the MCP tools.
"""

from .models import (
    # Enums
    NodeKind,
    EdgeKind,
    EdgeStyle,
    # Core models
    Position,
    Size,
    PropertySummary,
    GraphNode,
    Edge,
    SchemaGraph,
    # Request models (for API)
    CompileRequest,
    ToggleCollapseRequest,
    ExpandGroupedEntryRequest,
    AddAnnotationRequest,
    MoveNodeRequest,
)
from .config import (
    GroupingMode,
    DepthMode,
    Orientation,
    TruncationPolicy,
    CompileOptions,
    TreeLayoutConfig,
    CollisionConfig,
    TruncationConfig,
    DiagramSettings,
    load_settings,
)
from .visibility import Visibility, VisibilityModel
from .grouping import GroupingDecision, group_entries
from .compiler import compile_schema_graph
from .truncation import truncate_ancestral_chains
from .layout import tree_layout
from .collision import resolve_collisions, count_collisions
from .animation import NodeAnimator, AnimationState
from .pipeline import generate_diagram, DiagramCache
from .validation import validate_graph, ValidationIssue, IssueSeverity
from .analysis import summarize_graph

__all__ = [
    # Enums
    "NodeKind",
    "EdgeKind",
    "EdgeStyle",
    # Models
    "Position",
    "Size",
    "PropertySummary",
    "GraphNode",
    "Edge",
    "SchemaGraph",
    # Request models
    "CompileRequest",
    "ToggleCollapseRequest",
    "ExpandGroupedEntryRequest",
    "AddAnnotationRequest",
    "MoveNodeRequest",
    # Configuration
    "GroupingMode",
    "DepthMode",
    "Orientation",
    "TruncationPolicy",
    "CompileOptions",
    "TreeLayoutConfig",
    "CollisionConfig",
    "TruncationConfig",
    "DiagramSettings",
    "load_settings",
    # Compilation
    "Visibility",
    "VisibilityModel",
    "GroupingDecision",
    "group_entries",
    "compile_schema_graph",
    "truncate_ancestral_chains",
    # Layout
    "tree_layout",
    "resolve_collisions",
    "count_collisions",
    "NodeAnimator",
    "AnimationState",
    # Pipeline
    "generate_diagram",
    "DiagramCache",
    # Validation / analysis
    "validate_graph",
    "ValidationIssue",
    "IssueSeverity",
    "summarize_graph",
]
