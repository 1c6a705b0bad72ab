"""Request-scoped access to the converter objects stored on ``app.state``."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from core.comic_converter.config import AppConfig
from core.comic_converter.jobs import JobManager


def _from_state(request: Request, attribute: str) -> Any:
    value = getattr(request.app.state, attribute, None)
    if value is None:
        raise HTTPException(
            status_code=503,
            detail={"code": "CONVERTER_UNAVAILABLE", "message": f"{attribute} is not initialised"},
        )
    return value


def get_config(request: Request) -> AppConfig:
    return _from_state(request, "config")


def get_job_manager(request: Request) -> JobManager:
    """Return the shared manager; its single worker serialises all conversions."""

    return _from_state(request, "job_manager")


__all__ = ["get_config", "get_job_manager"]
