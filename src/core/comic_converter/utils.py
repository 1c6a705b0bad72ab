from __future__ import annotations

import hashlib
import os
import re
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path

from .config import AppConfig


SAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")
ILLEGAL_FILENAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
MAX_FILENAME_LENGTH = 150


@dataclass(slots=True)
class StatePaths:
    base_dir: Path
    log_file: Path
    summary_csv: Path
    jobs_dir: Path
    uploads_dir: Path


def slugify(value: str, max_length: int = 120) -> str:
    normalized = SAFE_FILENAME_RE.sub("-", value.strip())
    normalized = re.sub("-+", "-", normalized)
    normalized = normalized.replace("-.", ".")
    normalized = normalized.strip("-._")
    if not normalized:
        normalized = "file"
    if len(normalized) > max_length:
        normalized = normalized[:max_length]
    return normalized


def safe_filename(title: str, max_length: int = MAX_FILENAME_LENGTH) -> str:
    """Turn a document title into a file name component.

    Unlike :func:`slugify` this keeps spaces and non-ASCII characters and only
    replaces what file systems reject.
    """

    cleaned = ILLEGAL_FILENAME_RE.sub("_", title).strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length].rstrip()
    cleaned = cleaned.rstrip(". ")
    return cleaned or "untitled"


def unique_name(name: str, taken: set[str]) -> str:
    """Return *name* or the first free ``name (n)`` variant; records the choice."""

    candidate = name
    counter = 2
    while candidate.lower() in taken:
        candidate = f"{name} ({counter})"
        counter += 1
    taken.add(candidate.lower())
    return candidate


def generate_run_id(prefix: str = "run") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"


def ensure_state_paths(config: AppConfig) -> StatePaths:
    base = config.runtime.state_dir
    jobs = base / "jobs"
    uploads = base / "uploads"
    for directory in (base, jobs, uploads):
        directory.mkdir(parents=True, exist_ok=True)
    return StatePaths(
        base_dir=base,
        log_file=base / config.runtime.log_file,
        summary_csv=base / config.runtime.summary_csv,
        jobs_dir=jobs,
        uploads_dir=uploads,
    )


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=path.parent, encoding=encoding) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)
