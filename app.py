"""FastAPI service for the t3.chat export viewer.

Holds one loaded export document at a time together with its chart
aggregator.  Uploading a new export replaces both; chart data for a view is
computed once per document and then served from the aggregator's cache.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import json
import logging
import os
import threading
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from chart_render import render_chart
from charts import Bars, ChartAggregator, ChartView, Line, ViewKind
from t3_export import (
    ExportDocument,
    ExportFormatError,
    display_title,
    load_export,
    load_export_bytes,
    thread_to_json,
    truncate_content,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
EXPORT_PATH = os.environ.get("T3_VIEWER_EXPORT")
TEMPLATE_PATH = Path(
    os.environ.get("T3_VIEWER_TEMPLATE", Path(__file__).parent / "viewer_template.html")
)
APP_TITLE = os.environ.get("T3_VIEWER_TITLE", "T3 Chat Export Viewer")
EMPTY_STATE_TEXT = "Drag a .json export from t3.chat here to get started"

# ---------------------------------------------------------------------------
# Document state
# ---------------------------------------------------------------------------
_state_lock = threading.Lock()
_state: dict[str, Any] = {
    "document": None,
    "aggregator": None,
    "source": None,
}


def _set_document(document: ExportDocument | None, source: str | None) -> None:
    with _state_lock:
        _state["document"] = document
        _state["aggregator"] = ChartAggregator() if document is not None else None
        _state["source"] = source


def _require_document() -> tuple[ExportDocument, ChartAggregator]:
    """Return the loaded document and its aggregator, or raise 409."""
    with _state_lock:
        document = _state["document"]
        aggregator = _state["aggregator"]
    if document is None or aggregator is None:
        raise HTTPException(status_code=409, detail="No export document loaded")
    return document, aggregator


def _view_from_slug(slug: str) -> ViewKind:
    try:
        return ViewKind.from_slug(slug)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown chart view: {slug}")


def _document_summary() -> dict[str, Any]:
    with _state_lock:
        document = _state["document"]
        source = _state["source"]
    if document is None:
        return {"loaded": False, "source": None, "threads": 0, "messages": 0}
    return {
        "loaded": True,
        "source": source,
        "threads": len(document.threads),
        "messages": len(document.messages),
    }


def _chart_payload(chart: ChartView) -> dict[str, Any]:
    if isinstance(chart.series, Bars):
        xs = [float(i) for i in range(len(chart.series.buckets))]
    elif isinstance(chart.series, Line):
        xs = [x for x, _ in chart.series.points]
    else:
        xs = []
    return {
        "view": chart.view.slug,
        "name": chart.view.display_name,
        "total": chart.series.total(),
        "series": chart.series.to_dict(),
        "ticks": [{"x": x, "label": chart.formatter(x)} for x in xs],
    }


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if EXPORT_PATH:
        try:
            _set_document(load_export(EXPORT_PATH), EXPORT_PATH)
        except (FileNotFoundError, ExportFormatError) as exc:
            logger.warning("Could not load %s on startup: %s", EXPORT_PATH, exc)
    yield


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title=APP_TITLE, lifespan=lifespan)


@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
def viewer_html():
    """Serve the viewer page with the current document state injected."""
    if not TEMPLATE_PATH.exists():
        raise HTTPException(status_code=500, detail="Template not found")

    state = {
        "title": APP_TITLE,
        "empty_text": EMPTY_STATE_TEXT,
        "document": _document_summary(),
        "views": [{"slug": v.slug, "name": v.display_name} for v in ViewKind.all()],
    }
    template = TEMPLATE_PATH.read_text(encoding="utf-8")
    state_json = json.dumps(state, ensure_ascii=False).replace("</", r"<\/")
    html = template.replace("const VIEWER_STATE = {};", f"const VIEWER_STATE = {state_json};")
    html = html.replace("{{title}}", APP_TITLE)
    return HTMLResponse(content=html)


# ---------------------------------------------------------------------------
# Document intake
# ---------------------------------------------------------------------------
@app.get("/api/document")
def get_document():
    return _document_summary()


@app.post("/api/document")
async def upload_document(request: Request):
    """Load an export from the raw request body, replacing the current one."""
    raw = await request.body()
    source = request.headers.get("x-filename", "upload")
    try:
        document = load_export_bytes(raw)
    except ExportFormatError as exc:
        logger.warning("Rejected upload %s: %s", source, exc)
        raise HTTPException(status_code=422, detail=str(exc))
    _set_document(document, source)
    return _document_summary()


@app.delete("/api/document")
def unload_document():
    _set_document(None, None)
    return _document_summary()


# ---------------------------------------------------------------------------
# Threads and messages
# ---------------------------------------------------------------------------
@app.get("/api/threads")
def list_threads():
    document, _ = _require_document()
    return [
        {
            "id": t.id,
            "title": display_title(t.title),
            "status": t.status,
            "model": t.model,
            "created_at": t.created_at.isoformat(),
            "last_message_at": t.last_message_at.isoformat(),
            "message_count": len(document.messages_for(t.id)),
        }
        for t in document.threads
    ]


@app.get("/api/threads/{thread_id}")
def get_thread(thread_id: str):
    document, _ = _require_document()
    thread = document.thread(thread_id)
    if thread is None:
        raise HTTPException(status_code=404, detail=f"Unknown thread: {thread_id}")
    return {
        "id": thread.id,
        "title": thread.title,
        "display_title": display_title(thread.title),
        "status": thread.status,
        "created_at": thread.created_at.isoformat(),
        "updated_at": thread.updated_at.isoformat() if thread.updated_at else None,
        "last_message_at": thread.last_message_at.isoformat(),
        "messages": [
            {
                "id": m.id,
                "role": m.role,
                "status": m.status,
                "created_at": m.created_at.isoformat(),
                "content": truncate_content(m.content),
            }
            for m in document.messages_for(thread.id)
        ],
    }


@app.get("/api/threads/{thread_id}/json", response_class=PlainTextResponse)
def copy_thread_json(thread_id: str):
    """Thread plus its messages as pretty JSON, for copying."""
    document, _ = _require_document()
    thread = document.thread(thread_id)
    if thread is None:
        raise HTTPException(status_code=404, detail=f"Unknown thread: {thread_id}")
    return PlainTextResponse(thread_to_json(document, thread), media_type="application/json")


@app.get("/api/messages/{message_id}/content", response_class=PlainTextResponse)
def copy_message_content(message_id: str):
    document, _ = _require_document()
    message = document.message(message_id)
    if message is None:
        raise HTTPException(status_code=404, detail=f"Unknown message: {message_id}")
    return PlainTextResponse(message.content)


# ---------------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------------
@app.get("/api/views")
def list_views():
    with _state_lock:
        aggregator = _state["aggregator"]
    selected = aggregator.selected if aggregator is not None else None
    return {
        "selected": selected.slug if selected else None,
        "views": [{"slug": v.slug, "name": v.display_name} for v in ViewKind.all()],
    }


@app.put("/api/views/selected/{slug}")
def select_view(slug: str):
    view = _view_from_slug(slug)
    _, aggregator = _require_document()
    with _state_lock:
        aggregator.select(view)
    return {"selected": view.slug}


@app.get("/api/chart")
def selected_chart():
    """Chart data for the currently selected view."""
    document, aggregator = _require_document()
    with _state_lock:
        chart = aggregator.draw_data(document.messages)
    return _chart_payload(chart)


@app.post("/api/charts/invalidate")
def invalidate_charts():
    _, aggregator = _require_document()
    with _state_lock:
        aggregator.invalidate()
    return {"status": "invalidated"}


@app.get("/api/charts/{slug}.png")
def chart_png(slug: str):
    view = _view_from_slug(slug)
    document, aggregator = _require_document()
    with _state_lock:
        chart = aggregator.view_data(view, document.messages)
    return Response(content=render_chart(chart), media_type="image/png")


@app.get("/api/charts/{slug}")
def chart_data(slug: str):
    view = _view_from_slug(slug)
    document, aggregator = _require_document()
    with _state_lock:
        chart = aggregator.view_data(view, document.messages)
    return _chart_payload(chart)
