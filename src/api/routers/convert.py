from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from api.dependencies import get_job_manager
from api.schemas import ConversionResponse
from core.comic_converter.errors import ConversionError
from core.comic_converter.jobs import JobManager

router = APIRouter(tags=["conversion"])


@router.post("/convert", summary="Convert a single archive", response_model=ConversionResponse)
async def convert_archive(
    file: UploadFile = File(...),
    manager: JobManager = Depends(get_job_manager),
) -> ConversionResponse:
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="EMPTY_FILE")
    with tempfile.NamedTemporaryFile(delete=False, suffix=".cbz") as tmp:
        tmp.write(content)
        tmp.flush()
        tmp_path = Path(tmp.name)
    try:
        result = await asyncio.wrap_future(manager.run_archive(tmp_path, file_name=file.filename or None))
    except ConversionError as exc:
        raise HTTPException(status_code=400, detail={"code": exc.code, "message": str(exc)}) from exc
    finally:
        tmp_path.unlink(missing_ok=True)
    return ConversionResponse(
        run_id=result.run_id,
        output_path=str(result.output_path.resolve()),
        title=result.metadata.title,
        author=result.metadata.author,
        publisher=result.metadata.publisher,
        page_count=result.page_count,
        warnings=result.warnings,
    )


__all__ = [
    "router",
]
