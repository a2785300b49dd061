"""Route handlers for the read-only REST view of a Watcher."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from kubemirror.api.schemas import ErrorResponse, HealthResponse, ObjectListResponse
from kubemirror.models.objects import WatcherState

router = APIRouter()

_STATUS_BY_STATE = {
    WatcherState.WATCHING: "ok",
    WatcherState.SYNCING: "syncing",
    WatcherState.STOPPED: "stopped",
}


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Report the watcher state.  A resync in progress reports ``syncing``."""
    watcher = request.app.state.watcher
    state = WatcherState(watcher.state)
    return HealthResponse(
        status=_STATUS_BY_STATE[state],
        state=state.value,
        kind=watcher.kind,
        objects=len(watcher.list()),
    )


@router.get("/objects", response_model=ObjectListResponse)
async def list_objects(request: Request) -> ObjectListResponse:
    watcher = request.app.state.watcher
    return ObjectListResponse(kind=watcher.kind, items=watcher.list())


@router.get("/objects/{name}", response_model=None)
async def get_object(name: str, request: Request) -> Any:
    """Return the raw object last received for *name*."""
    raw = request.app.state.watcher.get_raw(name)
    if raw is None:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(error="NOT_FOUND", detail=f"object '{name}' is not mirrored").model_dump(),
        )
    return raw
