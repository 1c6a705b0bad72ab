from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_config
from api.schemas import HealthStatus
from core.comic_converter.config import AppConfig

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check", response_model=HealthStatus)
def health(config: AppConfig = Depends(get_config)) -> HealthStatus:
    output_root = config.runtime.output_root
    return HealthStatus(status="ok", output_root=str(output_root), output_root_exists=output_root.is_dir())


__all__ = ["router"]
