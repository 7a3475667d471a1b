#!/usr/bin/env python3
"""
schemagraph MCP Server

Provides MCP tools for AI agents to inspect and steer the schema diagram
session. All changes are immediately reflected in the frontend via WebSocket
updates.
"""

import json
import os
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP

# Backend API URL
API_BASE = os.environ.get("SCHEMAGRAPH_API", "http://127.0.0.1:8765/api")

# Create MCP server
mcp = FastMCP("schemagraph")


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the schemagraph backend."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        if method == "GET":
            response = client.get(url, params=kwargs.get("params"))
        elif method == "POST":
            response = client.post(url, json=kwargs.get("json"), params=kwargs.get("params"))
        elif method == "PUT":
            response = client.put(url, json=kwargs.get("json"))
        elif method == "PATCH":
            response = client.patch(url, json=kwargs.get("json"))
        else:
            raise ValueError(f"Unknown method: {method}")

        if response.status_code >= 400:
            error = response.json().get("detail", "Unknown error")
            raise RuntimeError(f"API error: {error}")

        return response.json()


# ============================================================================
# INSPECTION TOOLS
# ============================================================================

@mcp.tool()
def schema_get_diagram() -> str:
    """
    Get the full current diagram: positioned nodes and edges, the visibility
    map, annotations and undo/redo availability.

    Use schema_summary() first on large documents.
    """
    result = api_request("GET", "/diagram")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_summary(top: int = 5) -> str:
    """
    Summarize what the diagram currently shows.

    Args:
        top: How many of the most referenced schemas to list

    Returns node/edge counts by kind, tree depth, how many entries are hidden
    in grouped-overflow nodes, and the most referenced schemas.
    """
    result = api_request("GET", "/diagram/summary", params={"top": top})
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_validate() -> str:
    """Check the diagram's integrity (dangling edges, duplicate ids, overlaps)."""
    result = api_request("GET", "/diagram/validate")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_find_nodes(label: Optional[str] = None, kind: Optional[str] = None) -> str:
    """
    Find nodes in the current diagram.

    Args:
        label: Case-insensitive substring of the node label
        kind: Node kind, e.g. "schema-property", "endpoint", "grouped-overflow"

    Returns the matching nodes' id, kind, label and sourcePath. Pass a
    sourcePath to schema_toggle() to expand or collapse that node.
    """
    state = api_request("GET", "/diagram")
    nodes = (state.get("diagram") or {}).get("nodes", [])
    matches = [
        {k: n.get(k) for k in ("id", "kind", "label", "sourcePath", "collapsed")}
        for n in nodes
        if (not label or label.lower() in n.get("label", "").lower())
        and (not kind or n.get("kind") == kind)
    ]
    return json.dumps({"success": True, "nodes": matches}, indent=2)


# ============================================================================
# SESSION TOOLS
# ============================================================================

@mcp.tool()
def schema_load(document_json: str, visibility_json: Optional[str] = None) -> str:
    """
    Load a JSON Schema or OpenAPI document as the active diagram.

    Args:
        document_json: The document as a JSON string
        visibility_json: Optional JSON object of path -> "expanded"/"collapsed"

    Resets visibility, dragged positions, annotations and undo history.
    """
    payload = {"document": json.loads(document_json)}
    if visibility_json:
        payload["visibility"] = json.loads(visibility_json)
    result = api_request("PUT", "/document", json=payload)
    return json.dumps({"success": True, "summary": _counts(result)}, indent=2)


@mcp.tool()
def schema_toggle(path: str, collapsed: bool = False) -> str:
    """
    Expand or collapse a document path.

    Args:
        path: Dotted path, e.g. "root.properties.address" or "root.paths./users"
        collapsed: True to collapse, False to expand
    """
    result = api_request("POST", "/visibility/toggle", json={"path": path, "collapsed": collapsed})
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_expand_grouped_entry(group_id: str, entry_name: str) -> str:
    """
    Pull one entry out of a "N More ..." overflow node so it is drawn on its own.

    Args:
        group_id: ID of the grouped-overflow node
        entry_name: Name of the entry listed inside it
    """
    result = api_request(
        "POST", "/grouped/expand", json={"group_id": group_id, "entry_name": entry_name}
    )
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_annotate(node_id: str, text: str, author: str = "agent") -> str:
    """
    Leave a comment on a node.

    Args:
        node_id: ID of the node
        text: Comment text
        author: Who is commenting
    """
    result = api_request(
        "POST", "/annotations", json={"node_id": node_id, "author": author, "text": text}
    )
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_move_node(node_id: str, x: float, y: float) -> str:
    """Pin a node at a position. Other nodes are pushed out of its way."""
    result = api_request("PUT", f"/nodes/{node_id}/position", json={"x": x, "y": y})
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_reset_positions() -> str:
    """Unpin every dragged node and return to the automatic layout."""
    result = api_request("POST", "/positions/reset")
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_update_settings(settings_json: str) -> str:
    """
    Change pipeline settings.

    Args:
        settings_json: Partial nested object, e.g.
            {"compile": {"max_depth": 4, "grouping_mode": "grouped"},
             "truncation": {"enabled": true}}
    """
    result = api_request("PATCH", "/settings", json=json.loads(settings_json))
    return json.dumps(result, indent=2)


# ============================================================================
# HISTORY TOOLS
# ============================================================================

@mcp.tool()
def schema_undo() -> str:
    """Undo the last view change (toggle, drag, annotation)."""
    result = api_request("POST", "/undo")
    return json.dumps({"success": result.get("success"), "message": result.get("message")})


@mcp.tool()
def schema_redo() -> str:
    """Redo the last undone view change."""
    result = api_request("POST", "/redo")
    return json.dumps({"success": result.get("success"), "message": result.get("message")})


def _counts(state: dict) -> dict:
    diagram = state.get("diagram") or {}
    return {
        "nodes": len(diagram.get("nodes", [])),
        "edges": len(diagram.get("edges", [])),
    }


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    mcp.run()
