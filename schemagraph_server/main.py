"""
schemagraph API - FastAPI Application

It provides:
- A stateless compile endpoint (document + visibility in, positioned graph out)
- A session API for the interactive diagram: load a document, toggle
  collapse, expand grouped entries, annotate, drag nodes, undo/redo
- WebSocket endpoint for real-time updates
- CORS configuration for local frontend development
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from schemagraph import (
    AddAnnotationRequest,
    CompileRequest,
    ExpandGroupedEntryRequest,
    MoveNodeRequest,
    Size,
    ToggleCollapseRequest,
    generate_diagram,
    load_settings,
    summarize_graph,
    validate_graph,
)
from schemagraph.validation import validation_summary

from .session_manager import session_manager
from .websocket_manager import ws_manager

logging.basicConfig(
    level=os.environ.get("SCHEMAGRAPH_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# --- Async change notification ---
# Bridge between sync SessionManager callbacks and async WebSocket broadcasts

_change_event: Optional[asyncio.Event] = None


def on_session_change():
    """Callback for view state changes - sets event for async handler."""
    if _change_event is not None:
        _change_event.set()


async def change_broadcaster(event: asyncio.Event):
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await event.wait()
        event.clear()
        await ws_manager.notify_diagram_updated(session_manager.has_document)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    global _change_event
    _change_event = asyncio.Event()
    session_manager.on_change(on_session_change)

    broadcaster_task = asyncio.create_task(change_broadcaster(_change_event))

    yield

    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass
    _change_event = None


# --- FastAPI App ---

app = FastAPI(
    title="schemagraph API",
    description="Schema-to-graph compiler and interactive diagram session",
    version="1.0.0",
    lifespan=lifespan
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_document():
    if not session_manager.has_document:
        raise HTTPException(status_code=400, detail="No document loaded")


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count, "revision": ws_manager.revision}


# --- Stateless compile ---

@app.post("/api/compile")
async def compile_document(request: CompileRequest):
    """Compile and lay out a document without touching the session."""
    try:
        settings = load_settings().merged(request.settings)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    graph = generate_diagram(request.document, request.visibility, settings)
    return {"success": True, "diagram": graph.to_json_dict()}


# --- Session ---

class LoadDocumentRequest(BaseModel):
    document: Any
    visibility: dict[str, Any] = Field(default_factory=dict)


@app.get("/api/diagram")
async def get_diagram():
    """Get the current session state, including the positioned graph."""
    return session_manager.get_state()


@app.put("/api/document")
async def load_document(request: LoadDocumentRequest):
    """Load a document, resetting visibility, positions and history."""
    session_manager.load_document(request.document, request.visibility)
    return {"success": True, **session_manager.get_state()}


@app.get("/api/settings")
async def get_settings():
    return session_manager.settings.model_dump(mode="json")


@app.patch("/api/settings")
async def update_settings(overrides: dict[str, Any]):
    """Apply a partial nested settings object."""
    try:
        settings = session_manager.update_settings(overrides)
        return {"success": True, "settings": settings.model_dump(mode="json")}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- Collaborator callbacks ---

@app.post("/api/visibility/toggle")
async def toggle_collapse(request: ToggleCollapseRequest):
    """Expand or collapse one path."""
    try:
        visibility = session_manager.toggle_collapse(request.path, request.collapsed)
        return {"success": True, "visibility": visibility}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/grouped/expand")
async def expand_grouped_entry(request: ExpandGroupedEntryRequest):
    """Promote one entry out of a grouped-overflow node."""
    _require_document()
    try:
        path = session_manager.expand_grouped_entry(request.group_id, request.entry_name)
        return {"success": True, "path": path}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/api/annotations")
async def list_annotations(node_id: Optional[str] = Query(default=None)):
    """List annotations, optionally for one node."""
    annotations = session_manager.annotations
    if node_id:
        annotations = [a for a in annotations if a["node_id"] == node_id]
    return {"success": True, "annotations": annotations}


@app.post("/api/annotations")
async def add_annotation(request: AddAnnotationRequest):
    """Attach a comment to a node."""
    try:
        annotation = session_manager.add_annotation(request.node_id, request.author, request.text)
        return {"success": True, "annotation": annotation}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- Positions ---

@app.put("/api/nodes/{node_id}/position")
async def move_node(node_id: str, request: MoveNodeRequest):
    """Pin a node where the user dropped it."""
    _require_document()
    try:
        node = session_manager.move_node(node_id, request.x, request.y)
        return {"success": True, "node": node.to_json_dict()}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/positions/reset")
async def reset_positions():
    """Unpin every dragged node."""
    try:
        return {"success": True, "reset": session_manager.reset_positions()}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


class MeasuredSizesRequest(BaseModel):
    sizes: dict[str, Size]


@app.put("/api/measured")
async def set_measured(request: MeasuredSizesRequest):
    """Record node sizes measured by the renderer."""
    session_manager.set_measured(request.sizes)
    return {"success": True, "count": len(request.sizes)}


# --- Undo/Redo ---

@app.post("/api/undo")
async def undo():
    """Undo the last view change."""
    if session_manager.undo():
        return {"success": True, **session_manager.get_state()}
    return {"success": False, "message": "Nothing to undo"}


@app.post("/api/redo")
async def redo():
    """Redo the last undone view change."""
    if session_manager.redo():
        return {"success": True, **session_manager.get_state()}
    return {"success": False, "message": "Nothing to redo"}


# --- Analysis ---

@app.get("/api/diagram/frame")
async def get_animation_frame(now: float = Query(..., ge=0)):
    """Node positions to display at host time `now` (ms), eased between layouts."""
    _require_document()
    positions = session_manager.animation_frame(now)
    return {"success": True, "positions": {k: v.model_dump() for k, v in positions.items()}}


@app.get("/api/diagram/summary")
async def summarize_current_diagram(top: int = Query(default=5, ge=0)):
    """
    Get a structural summary of the current diagram.

    Returns node/edge counts by kind, depth, hidden and truncated counts,
    and the most referenced schemas.
    """
    _require_document()
    summary = summarize_graph(session_manager.get_graph(), top_n=top)
    return {"success": True, "summary": summary.to_dict()}


@app.get("/api/diagram/validate")
async def validate_current_diagram():
    """
    Check the integrity of the current diagram.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    _require_document()
    settings = session_manager.settings
    min_distance = settings.collision.min_distance if settings.collision.enabled else None
    issues = validate_graph(session_manager.get_graph(), min_distance)
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Clients connect here to receive diagram_updated events.
    """
    await ws_manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"type": "pong"}')
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8765)
