"""Domain models for comic conversion services."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .logging import BatchSummary
from .metadata import EffectiveMetadata

ProgressCallback = Callable[[str, int, int], None]
"""Receives ``(label, current, total)`` after each page or before each chapter."""


@dataclass(slots=True)
class ConversionResult:
    """Result metadata for one archive converted to one PDF."""

    run_id: str
    source: str
    output_path: Path
    metadata: EffectiveMetadata
    page_count: int
    summary: str
    warnings: list[str] = field(default_factory=list)
    cover_included: bool = False


@dataclass(slots=True)
class BatchConversionResult:
    """Aggregate results for a folder of chapters."""

    runs: list[ConversionResult]
    output_dir: Path
    summary: BatchSummary

    @property
    def chapters_written(self) -> int:
        return len(self.runs)


__all__ = [
    "BatchConversionResult",
    "ConversionResult",
    "ProgressCallback",
]
