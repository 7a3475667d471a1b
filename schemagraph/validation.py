"""
Graph integrity checks.

These check the compiled diagram, not the schema: the compiler's output must
be a well-formed tree of uniquely identified nodes with no dangling edges.
Used by the API and the CLI `check` command.
"""

from dataclasses import dataclass
from enum import Enum

from .collision import count_collisions
from .ids import ROOT_ID
from .models import EdgeKind, EdgeStyle, SchemaGraph


class IssueSeverity(str, Enum):
    """Severity levels for integrity issues."""
    ERROR = "error"      # Broken invariant
    WARNING = "warning"  # Suspicious, should review
    INFO = "info"        # Informational


@dataclass
class ValidationIssue:
    """A single issue found in a graph."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def validate_graph(graph: SchemaGraph, min_distance: float | None = None) -> list[ValidationIssue]:
    """
    Check a graph and return a list of issues.

    Checks for:
    - Duplicate node ids - ERROR
    - Edges to or from missing nodes - ERROR
    - Reference edges that are not dashed - ERROR
    - Nodes with more than one tree parent - ERROR
    - Missing root, or nodes detached from the tree - WARNING
    - Duplicate edges - WARNING
    - Overlapping nodes (when min_distance is given) - INFO
    - Empty graph - INFO
    """
    issues: list[ValidationIssue] = []

    if not graph.nodes:
        issues.append(ValidationIssue(IssueSeverity.INFO, "Graph has no nodes"))
        return issues

    seen_ids: set[str] = set()
    for node in graph.nodes:
        if node.id in seen_ids:
            issues.append(ValidationIssue(
                IssueSeverity.ERROR, f"Duplicate node id: {node.id}", node_id=node.id
            ))
        seen_ids.add(node.id)

    if ROOT_ID not in seen_ids:
        issues.append(ValidationIssue(IssueSeverity.WARNING, "Graph has no root node"))

    parents: dict[str, int] = {}
    seen_edges: set[tuple[str, str, str]] = set()
    for edge in graph.edges:
        if edge.source not in seen_ids:
            issues.append(ValidationIssue(
                IssueSeverity.ERROR,
                f"Edge references non-existent source node: {edge.source}",
                edge_id=edge.id
            ))
        if edge.target not in seen_ids:
            issues.append(ValidationIssue(
                IssueSeverity.ERROR,
                f"Edge references non-existent target node: {edge.target}",
                edge_id=edge.id
            ))
        if edge.kind == EdgeKind.REFERENCE and edge.style != EdgeStyle.DASHED:
            issues.append(ValidationIssue(
                IssueSeverity.ERROR, "Reference edge is not dashed", edge_id=edge.id
            ))
        if edge.key() in seen_edges:
            issues.append(ValidationIssue(
                IssueSeverity.WARNING,
                f"Duplicate {edge.kind.value} edge from {edge.source} to {edge.target}",
                edge_id=edge.id
            ))
        seen_edges.add(edge.key())
        if edge.is_tree_edge:
            parents[edge.target] = parents.get(edge.target, 0) + 1

    for node_id, count in parents.items():
        if count > 1:
            issues.append(ValidationIssue(
                IssueSeverity.ERROR, f"Node has {count} tree parents", node_id=node_id
            ))

    detached = [n.id for n in graph.nodes if n.id != ROOT_ID and n.id not in parents]
    if detached:
        issues.append(ValidationIssue(
            IssueSeverity.WARNING,
            f"Nodes detached from the tree: {', '.join(detached)}"
        ))

    if min_distance is not None:
        overlaps = count_collisions(graph.nodes, min_distance)
        if overlaps:
            issues.append(ValidationIssue(
                IssueSeverity.INFO, f"{overlaps} node pairs closer than {min_distance}px"
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
