from __future__ import annotations

import json
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Callable, Mapping

import pytest
from PIL import Image

from core.comic_converter.config import AppConfig, RuntimeConfig


def image_bytes(width: int = 40, height: int = 60, fmt: str = "PNG", color: tuple[int, ...] = (200, 30, 30)) -> bytes:
    mode = "RGBA" if len(color) == 4 else "RGB"
    buffer = BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def write_archive(path: Path, entries: Mapping[str, bytes | str | dict]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        for name, value in entries.items():
            if isinstance(value, dict):
                value = json.dumps(value)
            archive.writestr(name, value)
    return path


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    runtime = RuntimeConfig(documents_root=tmp_path / "Documents", state_dir=tmp_path / "state")
    return AppConfig(runtime=runtime)


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    def _make(name: str, entries: Mapping[str, bytes | str | dict], folder: Path | None = None) -> Path:
        return write_archive((folder or tmp_path / "input") / name, entries)

    return _make
