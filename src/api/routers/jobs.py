from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from api.dependencies import get_job_manager
from api.schemas import FolderJobRequest, JobListResponse, JobStatusResponse
from core.comic_converter.jobs import JobManager, JobRecord

router = APIRouter(prefix="/api/v1", tags=["jobs"])


@router.post("/jobs/archive", summary="Queue an archive conversion", status_code=202, response_model=JobStatusResponse)
async def submit_archive(
    file: UploadFile = File(...),
    manager: JobManager = Depends(get_job_manager),
) -> JobStatusResponse:
    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=400, detail="EMPTY_FILE")
    record = manager.submit_upload(file.filename or "upload.cbz", payload)
    return _serialize_record(record)


@router.post("/jobs/folder", summary="Queue a folder conversion", status_code=202, response_model=JobStatusResponse)
def submit_folder(
    request: FolderJobRequest,
    manager: JobManager = Depends(get_job_manager),
) -> JobStatusResponse:
    folder = Path(request.path)
    if not folder.is_dir():
        raise HTTPException(status_code=400, detail="FOLDER_NOT_FOUND")
    output_dir = Path(request.output_dir) if request.output_dir else None
    record = manager.submit_folder(folder, output_dir=output_dir)
    return _serialize_record(record)


@router.get("/jobs/{job_id}", summary="Retrieve job status", response_model=JobStatusResponse)
def get_job(job_id: str, manager: JobManager = Depends(get_job_manager)) -> JobStatusResponse:
    record = manager.get_status(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail="JOB_NOT_FOUND")
    return _serialize_record(record)


@router.get("/jobs", summary="List recent jobs", response_model=JobListResponse)
def list_jobs(
    limit: int = Query(50, ge=1, le=500),
    manager: JobManager = Depends(get_job_manager),
) -> JobListResponse:
    latest = manager.list_jobs(limit)
    return JobListResponse(jobs=[JobStatusResponse.model_validate(item) for item in latest])


def _serialize_record(record: JobRecord) -> JobStatusResponse:
    return JobStatusResponse.model_validate(record.to_payload())


__all__ = ["router"]
