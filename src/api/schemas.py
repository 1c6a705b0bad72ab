from __future__ import annotations

from pydantic import BaseModel


class HealthStatus(BaseModel):
    status: str
    output_root: str
    output_root_exists: bool


class ConversionResponse(BaseModel):
    run_id: str
    output_path: str
    title: str
    author: str | None = None
    publisher: str | None = None
    page_count: int
    warnings: list[str]


class FolderJobRequest(BaseModel):
    path: str
    output_dir: str | None = None


class JobStatusResponse(BaseModel):
    job_id: str
    kind: str
    source: str
    status: str
    label: str = ""
    current: int = 0
    total: int = 0
    progress: float = 0.0
    submitted_at: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    output_path: str | None = None
    chapters_written: int = 0
    warnings: list[str] = []
    error_code: str | None = None
    error_message: str | None = None


class JobListResponse(BaseModel):
    jobs: list[JobStatusResponse]
