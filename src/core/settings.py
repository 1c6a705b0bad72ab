from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from .comic_converter.config import DEFAULT_CONFIG_PATH, AppConfig

ENV_PREFIX = "CCV_"


@dataclass(frozen=True, slots=True)
class Settings:
    """Application runtime settings sourced from environment variables."""

    config_path: Path = DEFAULT_CONFIG_PATH
    enable_local_api: bool | None = None
    documents_root: Path | None = None


def _parse_bool(value: str | None) -> bool | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return None


def _read_settings() -> Settings:
    config_env = os.getenv(f"{ENV_PREFIX}CONFIG_PATH")
    enable_env = os.getenv(f"{ENV_PREFIX}ENABLE_LOCAL_API")
    root_env = os.getenv(f"{ENV_PREFIX}DOCUMENTS_ROOT")
    config_path = Path(config_env) if config_env else DEFAULT_CONFIG_PATH
    documents_root = Path(root_env).expanduser() if root_env else None
    return Settings(
        config_path=config_path,
        enable_local_api=_parse_bool(enable_env),
        documents_root=documents_root,
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return _read_settings()


def apply_settings(config: AppConfig, settings: Settings) -> AppConfig:
    """Fold environment overrides into a loaded config."""

    if settings.enable_local_api is not None:
        config.runtime.enable_local_api = settings.enable_local_api
    if settings.documents_root is not None:
        config.runtime.documents_root = settings.documents_root
    return config


__all__ = ["Settings", "apply_settings", "get_settings"]
