"""FastAPI application factory for the kubemirror REST view.

Usage::

    from kubemirror.api.app import create_app

    app = create_app(watcher=watcher, config=config)

The factory is used by the production bootstrap (``kubemirror.app``) and by
the tests, which pass a fake watcher.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubemirror.api.routes import router
from kubemirror.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(watcher: Any, config: Any = None) -> FastAPI:
    """Create the read-only FastAPI application for *watcher*.

    Args:
        watcher: Watcher (or anything exposing ``state``, ``kind``, ``list()``
                 and ``get_raw()``).
        config:  Optional KubeMirrorConfig, kept on ``app.state`` for handlers.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kubemirror import __version__

    app = FastAPI(
        title="kubemirror",
        summary="Read-only view of a mirrored Kubernetes resource",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url=None,
        openapi_url="/api/v1/openapi.json",
    )

    app.state.watcher = watcher
    app.state.config = config

    app.include_router(router, prefix=_API_PREFIX)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
