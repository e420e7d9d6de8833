"""Shared error payload and evaluation instant helpers for API routers."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from fastapi import status
from fastapi.responses import JSONResponse


def api_error_response(status_code: int, code: str, message: str) -> JSONResponse:
    """Build a deterministic JSON error response.

    Args:
        status_code: HTTP status code.
        code: Stable machine-readable error code.
        message: Human-readable message.

    Returns:
        JSONResponse: Error payload response.
    """

    return JSONResponse(
        content={"status": "error", "code": code, "message": message},
        status_code=status_code,
    )


def api_resolve_as_of(as_of: datetime | None, clock: Callable[[], datetime]) -> datetime | JSONResponse:
    """Resolve the evaluation instant of one request.

    Args:
        as_of: Optional query-supplied instant.
        clock: UTC clock used when the query omits the instant.

    Returns:
        datetime | JSONResponse: Offset-aware instant, or a `400` response for naive input.
    """

    if as_of is None:
        return clock()
    if as_of.tzinfo is None or as_of.utcoffset() is None:
        return api_error_response(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="INVALID_AS_OF",
            message="as_of must include a UTC offset",
        )
    return as_of.astimezone(timezone.utc)


def api_default_clock() -> datetime:
    """Return the current UTC instant."""

    return datetime.now(timezone.utc)
