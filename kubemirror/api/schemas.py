"""Response models for the read-only REST view."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error envelope shared by every non-2xx response."""

    error: str
    detail: str = ""


class HealthResponse(BaseModel):
    status: str
    state: str
    kind: str
    objects: int


class ObjectListResponse(BaseModel):
    kind: str
    items: list[Any]
