from __future__ import annotations

import csv
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from io import StringIO
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

from .utils import atomic_write


@dataclass(slots=True)
class StageTimings:
    read_ms: float
    render_ms: float
    write_ms: float


@dataclass(slots=True)
class RunLogEntry:
    run_id: str
    source: str
    status: str
    title: str | None
    page_count: int
    warnings: list[str]
    error_code: str | None
    error_message: str | None
    timings: StageTimings
    output_path: str | None
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file

    def append(self, entry: RunLogEntry) -> None:
        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._log_file.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


@dataclass(slots=True)
class BatchSummary:
    collection: str = ""
    timestamp: float = field(default_factory=time.time)
    total: int = 0
    successes: int = 0
    failures: int = 0
    warnings: dict[str, int] = field(default_factory=dict)

    def as_row(self, batch_id: str) -> list[str]:
        warning_json = json.dumps(self.warnings, sort_keys=True)
        return [
            batch_id,
            time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.timestamp)),
            self.collection,
            str(self.total),
            str(self.successes),
            str(self.failures),
            warning_json,
        ]


SUMMARY_HEADER = [
    "batch_id",
    "timestamp",
    "collection",
    "total",
    "successes",
    "failures",
    "warnings",
]


def write_summary_csv(path: Path, header: list[str], rows: list[list[str]]) -> None:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    atomic_write(path, buffer.getvalue())


def append_summary_row(path: Path, batch_id: str, summary: BatchSummary) -> None:
    header = SUMMARY_HEADER
    rows: list[list[str]] = []
    if path.exists():
        with path.open("r", encoding="utf-8", newline="") as handle:
            reader = list(csv.reader(handle))
        if reader:
            header = reader[0]
            rows = reader[1:]
    rows.append(summary.as_row(batch_id))
    write_summary_csv(path, header, rows)


def configure_logging(verbose: bool = False) -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.addHandler(RichHandler(show_path=False, rich_tracebacks=True))
    # Pillow logs every plugin probe at DEBUG.
    logging.getLogger("PIL").setLevel(logging.INFO)
