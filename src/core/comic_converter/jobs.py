"""Background conversion jobs.

The worker thread never touches job records or caller code: it only posts
:class:`JobEvent` messages to a queue. Whoever drives the surface (the CLI's
main thread, an API request) calls :meth:`JobManager.pump` to drain the queue
and apply the events to the persisted records on its own thread.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Literal

from .config import AppConfig
from .core import ConversionService
from .models import ConversionResult
from .errors import ConversionError
from .utils import atomic_write, ensure_state_paths, generate_run_id, slugify

logger = logging.getLogger(__name__)

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

EventKind = Literal["started", "progress", "succeeded", "failed"]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).strftime(ISO_FORMAT)


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELED}


class JobKind(str, Enum):
    ARCHIVE = "archive"
    FOLDER = "folder"


@dataclass(slots=True)
class JobRecord:
    job_id: str
    kind: JobKind
    source: str
    status: JobStatus
    label: str = ""
    current: int = 0
    total: int = 0
    submitted_at: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    output_path: str | None = None
    chapters_written: int = 0
    warnings: list[str] = field(default_factory=list)
    error_code: str | None = None
    error_message: str | None = None

    @property
    def progress(self) -> float:
        if self.status is JobStatus.SUCCEEDED:
            return 1.0
        if self.total <= 0:
            return 0.0
        return min(self.current / self.total, 1.0)

    def to_payload(self) -> dict[str, object | None]:
        payload = asdict(self)
        payload["kind"] = self.kind.value
        payload["status"] = self.status.value
        payload["progress"] = self.progress
        return payload


@dataclass(frozen=True, slots=True)
class JobEvent:
    job_id: str
    kind: EventKind
    label: str = ""
    current: int = 0
    total: int = 0
    output_path: str | None = None
    chapters_written: int = 0
    warnings: tuple[str, ...] = ()
    error_code: str | None = None
    error_message: str | None = None
    timestamp: str | None = field(default_factory=lambda: _iso(_utc_now()))


class JobStore:
    def __init__(self, config: AppConfig) -> None:
        paths = ensure_state_paths(config)
        self._root = paths.jobs_dir
        self._jobs_index = self._root / "jobs.jsonl"
        self._latest_file = self._root / "latest.json"
        self._history_limit = config.runtime.jobs.history_limit
        self._lock = threading.Lock()

    def status_path(self, job_id: str) -> Path:
        return self._root / f"{job_id}.json"

    def write_status(self, record: JobRecord) -> None:
        atomic_write(self.status_path(record.job_id), json.dumps(record.to_payload(), indent=2))

    def read_status(self, job_id: str) -> JobRecord | None:
        path = self.status_path(job_id)
        if not path.exists():
            return None
        data = json.loads(path.read_text(encoding="utf-8"))
        return self._record_from_dict(data)

    def append_index(self, record: JobRecord) -> None:
        payload = record.to_payload()
        with self._lock:
            with self._jobs_index.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(payload) + "\n")
            latest = [item for item in self._load_latest() if item.get("job_id") != record.job_id]
            latest.append(payload)
            latest = latest[-self._history_limit:]
            atomic_write(self._latest_file, json.dumps(latest, indent=2))

    def _load_latest(self) -> list[dict[str, object]]:
        if not self._latest_file.exists():
            return []
        try:
            return json.loads(self._latest_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return []

    def list_latest(self, limit: int = 50) -> list[dict[str, object]]:
        latest = self._load_latest()
        if limit <= 0:
            return latest
        return latest[-limit:]

    def _record_from_dict(self, data: dict[str, object]) -> JobRecord:
        warnings_value = data.get("warnings")
        warnings = [str(item) for item in warnings_value] if isinstance(warnings_value, list) else []
        return JobRecord(
            job_id=str(data.get("job_id")),
            kind=JobKind(str(data.get("kind", JobKind.ARCHIVE.value))),
            source=str(data.get("source", "")),
            status=JobStatus(str(data.get("status", JobStatus.QUEUED.value))),
            label=str(data.get("label") or ""),
            current=int(data.get("current", 0)),
            total=int(data.get("total", 0)),
            submitted_at=str(data.get("submitted_at")) if data.get("submitted_at") else None,
            started_at=str(data.get("started_at")) if data.get("started_at") else None,
            finished_at=str(data.get("finished_at")) if data.get("finished_at") else None,
            output_path=str(data.get("output_path")) if data.get("output_path") else None,
            chapters_written=int(data.get("chapters_written", 0)),
            warnings=warnings,
            error_code=str(data.get("error_code")) if data.get("error_code") else None,
            error_message=str(data.get("error_message")) if data.get("error_message") else None,
        )


@dataclass(slots=True)
class JobHandle:
    job_id: str
    kind: JobKind
    source: Path
    file_name: str | None = None
    output_dir: Path | None = None
    remove_source: bool = False
    started: bool = False
    canceled: bool = False


class JobManager:
    def __init__(self, config: AppConfig, service: ConversionService) -> None:
        self._config = config
        self._service = service
        self._store = JobStore(config)
        self._uploads_dir = ensure_state_paths(config).uploads_dir
        # One worker: the output directory has a single writer at a time.
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="conversion-worker")
        self._events: queue.Queue[JobEvent] = queue.Queue()
        self._handles: dict[str, JobHandle] = {}
        self._handles_lock = threading.Lock()
        self._pump_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit_archive(
        self,
        path: Path,
        *,
        file_name: str | None = None,
        output_dir: Path | None = None,
    ) -> JobRecord:
        handle = JobHandle(
            job_id=generate_run_id("job"),
            kind=JobKind.ARCHIVE,
            source=Path(path),
            file_name=file_name,
            output_dir=output_dir,
        )
        return self._submit(handle)

    def submit_upload(self, filename: str, payload: bytes) -> JobRecord:
        """Store uploaded archive bytes and queue their conversion."""

        job_id = generate_run_id("job")
        stored = self._uploads_dir / f"{job_id}-{slugify(filename or 'upload.cbz')}"
        stored.write_bytes(payload)
        handle = JobHandle(
            job_id=job_id,
            kind=JobKind.ARCHIVE,
            source=stored,
            file_name=filename or None,
            remove_source=True,
        )
        return self._submit(handle)

    def submit_folder(self, path: Path, *, output_dir: Path | None = None) -> JobRecord:
        handle = JobHandle(
            job_id=generate_run_id("job"),
            kind=JobKind.FOLDER,
            source=Path(path),
            output_dir=output_dir,
        )
        return self._submit(handle)

    def run_archive(self, path: Path, *, file_name: str | None = None) -> Future[ConversionResult]:
        """Convert *path* on the job worker without creating a job record.

        The conversion queues behind any running or queued job, so the output
        directory still has one writer. Conversion errors surface from the
        returned future.
        """

        return self._executor.submit(self._service.convert_archive, Path(path), file_name=file_name)

    def _submit(self, handle: JobHandle) -> JobRecord:
        record = JobRecord(
            job_id=handle.job_id,
            kind=handle.kind,
            source=handle.file_name or str(handle.source),
            status=JobStatus.QUEUED,
            submitted_at=_iso(_utc_now()),
        )
        self._store.write_status(record)
        self._store.append_index(record)
        with self._handles_lock:
            self._handles[handle.job_id] = handle
        self._executor.submit(self._run_job, handle)
        return record

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------
    def _post(self, event: JobEvent) -> None:
        self._events.put(event)

    def _run_job(self, handle: JobHandle) -> None:
        with self._handles_lock:
            if handle.canceled:
                return
            handle.started = True
        job_id = handle.job_id
        self._post(JobEvent(job_id=job_id, kind="started"))

        def _progress(label: str, current: int, total: int) -> None:
            self._post(JobEvent(job_id=job_id, kind="progress", label=label, current=current, total=total))

        try:
            self._post(self._execute(handle, _progress))
        except Exception as exc:  # pragma: no cover - unexpected paths
            logger.exception("Job %s crashed", job_id)
            self._post(JobEvent(job_id=job_id, kind="failed", error_code="UNKNOWN", error_message=str(exc)))
            raise
        finally:
            if handle.remove_source:
                handle.source.unlink(missing_ok=True)

    def _execute(self, handle: JobHandle, progress: Callable[[str, int, int], None]) -> JobEvent:
        try:
            if handle.kind is JobKind.FOLDER:
                batch = self._service.convert_folder(
                    handle.source,
                    output_dir=handle.output_dir,
                    progress=progress,
                    run_id=handle.job_id,
                )
                return JobEvent(
                    job_id=handle.job_id,
                    kind="succeeded",
                    output_path=str(batch.output_dir),
                    chapters_written=batch.chapters_written,
                    warnings=tuple(sorted(batch.summary.warnings)),
                )
            result = self._service.convert_archive(
                handle.source,
                file_name=handle.file_name,
                output_dir=handle.output_dir,
                progress=progress,
                run_id=handle.job_id,
            )
        except ConversionError as exc:
            return JobEvent(job_id=handle.job_id, kind="failed", error_code=exc.code, error_message=str(exc))
        return JobEvent(
            job_id=handle.job_id,
            kind="succeeded",
            output_path=str(result.output_path),
            chapters_written=1,
            warnings=tuple(result.warnings),
        )

    # ------------------------------------------------------------------
    # Surface side
    # ------------------------------------------------------------------
    def pump(self, timeout: float | None = None) -> list[JobEvent]:
        """Drain pending events and apply them to job records.

        With a *timeout*, block up to that long for the first event.
        """

        events: list[JobEvent] = []
        with self._pump_lock:
            try:
                if timeout:
                    events.append(self._events.get(timeout=timeout))
                while True:
                    events.append(self._events.get_nowait())
            except queue.Empty:
                pass
            for event in events:
                self._apply(event)
        return events

    def wait(
        self,
        job_id: str,
        *,
        on_event: Callable[[JobEvent], None] | None = None,
        timeout: float | None = None,
    ) -> JobRecord:
        """Pump until *job_id* is terminal, calling *on_event* on this thread."""

        interval = self._config.runtime.jobs.poll_interval_s
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            record = self._store.read_status(job_id)
            if record is None:
                raise KeyError(job_id)
            if record.status.is_terminal:
                return record
            if deadline is not None and time.monotonic() > deadline:
                return record
            for event in self.pump(timeout=interval):
                if on_event is not None and event.job_id == job_id:
                    on_event(event)

    def cancel(self, job_id: str) -> bool:
        """Cancel a job that has not started; running jobs always finish."""

        with self._handles_lock:
            handle = self._handles.get(job_id)
            if handle is None or handle.started:
                return False
            handle.canceled = True
            self._handles.pop(job_id, None)
        record = self._store.read_status(job_id)
        if record is None:
            return False
        record.status = JobStatus.CANCELED
        record.finished_at = _iso(_utc_now())
        self._store.write_status(record)
        self._store.append_index(record)
        if handle.remove_source:
            handle.source.unlink(missing_ok=True)
        return True

    def get_status(self, job_id: str) -> JobRecord | None:
        self.pump()
        return self._store.read_status(job_id)

    def list_jobs(self, limit: int = 50) -> list[dict[str, object]]:
        self.pump()
        return self._store.list_latest(limit)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self.pump()

    def _apply(self, event: JobEvent) -> None:
        record = self._store.read_status(event.job_id)
        if record is None:
            return
        if event.kind == "started":
            record.status = JobStatus.RUNNING
            record.started_at = event.timestamp
        elif event.kind == "progress":
            record.label = event.label
            record.current = event.current
            record.total = event.total
        elif event.kind == "succeeded":
            record.status = JobStatus.SUCCEEDED
            record.finished_at = event.timestamp
            record.output_path = event.output_path
            record.chapters_written = event.chapters_written
            record.warnings = list(event.warnings)
        elif event.kind == "failed":
            record.status = JobStatus.FAILED
            record.finished_at = event.timestamp
            record.error_code = event.error_code
            record.error_message = event.error_message
        self._store.write_status(record)
        if record.status.is_terminal:
            self._store.append_index(record)
            with self._handles_lock:
                self._handles.pop(event.job_id, None)


__all__ = [
    "JobEvent",
    "JobKind",
    "JobManager",
    "JobRecord",
    "JobStatus",
]
