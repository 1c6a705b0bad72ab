from __future__ import annotations

from fastapi import FastAPI

from core.comic_converter.config import AppConfig, load_config
from core.comic_converter.core import ConversionService
from core.comic_converter.jobs import JobManager
from core.settings import Settings, apply_settings, get_settings

from .routers import convert, health, jobs


def create_app(config: AppConfig | None = None) -> FastAPI:
    config = config or _prepare_config(get_settings())
    if not config.runtime.enable_local_api:
        raise RuntimeError("Local API is disabled. Enable it via configuration or environment.")

    app = FastAPI(title="Comic Converter", version="0.1.0")
    app.state.config = config
    app.state.job_manager = JobManager(config, ConversionService(config))

    app.include_router(health.router)
    app.include_router(convert.router)
    app.include_router(jobs.router)

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - FastAPI lifecycle
        manager: JobManager = app.state.job_manager
        manager.shutdown(wait=False)

    return app


def _prepare_config(settings: Settings) -> AppConfig:
    return apply_settings(load_config(settings.config_path), settings)


__all__ = ["create_app"]
