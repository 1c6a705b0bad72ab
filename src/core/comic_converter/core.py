from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Sequence

from .archive import IMAGE_EXTENSIONS, METADATA_INVALID, is_metadata_name, read_archive
from .config import AppConfig
from .document import DocumentAssembler
from .errors import (
    ArchiveError,
    ConversionError,
    DecodeError,
    EmptyArchiveError,
    MetadataParseError,
    NoChaptersError,
    OutputError,
)
from .imaging import NormalizedPage, normalize_image
from .logging import BatchSummary, RunLogEntry, RunLogger, StageTimings, append_summary_row
from .metadata import Metadata, parse_metadata, resolve_metadata
from .models import BatchConversionResult, ConversionResult, ProgressCallback
from .ordering import order_chapters, order_pages, sort_key
from .utils import ensure_state_paths, generate_run_id, safe_filename, unique_name

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "comic.cbz"
DEFAULT_COLLECTION_NAME = "Comic"
CHAPTER_SUFFIX = ".cbz"
COVER_NAME_RE = re.compile(r"cover\.(%s)" % "|".join(IMAGE_EXTENSIONS), re.IGNORECASE)


def _noop_progress(label: str, current: int, total: int) -> None:
    return None


def _source_name(source: Path | BinaryIO) -> str:
    if isinstance(source, Path):
        return source.name
    name = getattr(source, "name", None)
    if isinstance(name, str) and name:
        return Path(name).name
    return DEFAULT_ARCHIVE_NAME


@dataclass(slots=True)
class _Collection:
    metadata: Metadata | None = None
    cover: bytes | None = None
    chapters: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _ChapterContext:
    run_id: str
    file_name: str
    output_dir: Path
    run_logger: RunLogger
    progress: ProgressCallback
    collection_metadata: Metadata | None = None
    cover: NormalizedPage | None = None
    taken_names: set[str] | None = None


class ConversionService:
    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def config(self) -> AppConfig:
        return self._config

    def convert_archive(
        self,
        source: Path | BinaryIO,
        *,
        file_name: str | None = None,
        output_dir: Path | None = None,
        progress: ProgressCallback | None = None,
        run_id: str | None = None,
    ) -> ConversionResult:
        """Convert one archive into ``<output_dir>/<title>.pdf``.

        Only the archive's own ``index.json`` is consulted for metadata.
        """

        state = ensure_state_paths(self._config)
        context = _ChapterContext(
            run_id=run_id or generate_run_id(),
            file_name=file_name or _source_name(source),
            output_dir=output_dir or self._config.runtime.output_root,
            run_logger=RunLogger(state.log_file),
            progress=progress or _noop_progress,
        )
        return self._convert_chapter(source, context)

    def convert_folder(
        self,
        folder: Path,
        *,
        output_dir: Path | None = None,
        progress: ProgressCallback | None = None,
        run_id: str | None = None,
    ) -> BatchConversionResult:
        """Convert every ``.cbz`` chapter of *folder*, in name order.

        The first failing chapter aborts the batch; chapters written before it
        stay on disk.
        """

        folder = Path(folder)
        callback = progress or _noop_progress
        batch_id = run_id or generate_run_id("batch")
        collection = self._scan_collection(folder)
        if not collection.chapters:
            raise NoChaptersError("No CBZ files found in folder")

        chapters = order_chapters(collection.chapters)
        collection_name = folder.resolve().name or DEFAULT_COLLECTION_NAME
        target_dir = output_dir or self._config.runtime.output_root / safe_filename(collection_name)
        state = ensure_state_paths(self._config)
        run_logger = RunLogger(state.log_file)
        summary = BatchSummary(collection=collection_name, total=len(chapters))
        runs: list[ConversionResult] = []
        logger.info("Converting %s chapters from %s", len(chapters), folder)
        try:
            cover = self._prepare_cover(collection.cover)
            taken: set[str] = set()
            for index, chapter in enumerate(chapters, start=1):
                callback(chapter.name, index, len(chapters))
                context = _ChapterContext(
                    run_id=f"{batch_id}-{index:03d}",
                    file_name=chapter.name,
                    output_dir=target_dir,
                    run_logger=run_logger,
                    progress=_noop_progress,
                    collection_metadata=collection.metadata,
                    cover=cover,
                    taken_names=taken,
                )
                try:
                    result = self._convert_chapter(chapter, context)
                except ConversionError:
                    summary.failures += 1
                    raise
                runs.append(result)
                summary.successes += 1
        finally:
            for warning in collection.warnings:
                summary.warnings[warning] = summary.warnings.get(warning, 0) + 1
            self._accumulate_warnings(runs, summary)
            append_summary_row(state.summary_csv, batch_id, summary)
        return BatchConversionResult(runs=runs, output_dir=target_dir, summary=summary)

    # ------------------------------------------------------------------
    # Single chapter pipeline
    # ------------------------------------------------------------------
    def _convert_chapter(self, source: Path | BinaryIO, context: _ChapterContext) -> ConversionResult:
        start = time.perf_counter()
        title: str | None = None
        output_path: Path | None = None
        page_count = 0
        try:
            read_start = time.perf_counter()
            content = read_archive(source)
            if not content.pages:
                raise EmptyArchiveError(f"No images found in {context.file_name}")
            pages = order_pages(content.pages)
            content.pages = []
            read_ms = (time.perf_counter() - read_start) * 1000

            metadata = resolve_metadata(content.metadata, context.collection_metadata, context.file_name)
            title = metadata.title
            output_path = self._output_path(context, title)

            render_start = time.perf_counter()
            # A batch chapter holding only the shared cover is not written.
            min_pages = 2 if context.cover is not None else 1
            with DocumentAssembler(output_path, min_pages=min_pages) as assembler:
                assembler.open(metadata)
                if context.cover is not None:
                    assembler.add_page(context.cover)
                total = len(pages)
                for index, (name, data) in enumerate(pages, start=1):
                    try:
                        page = normalize_image(data)
                    except DecodeError as exc:
                        raise DecodeError(f"Cannot decode page {name} in {context.file_name}") from exc
                    assembler.add_page(page)
                    context.progress(context.file_name, index, total)
                render_ms = (time.perf_counter() - render_start) * 1000
                write_start = time.perf_counter()
                assembler.close()
                write_ms = (time.perf_counter() - write_start) * 1000
                page_count = assembler.page_count
        except ConversionError as exc:
            self._log_failure(context, exc, title=title, output_path=output_path)
            raise

        elapsed = time.perf_counter() - start
        size_bytes = output_path.stat().st_size if output_path.exists() else 0
        context.run_logger.append(
            RunLogEntry(
                run_id=context.run_id,
                source=context.file_name,
                status="success",
                title=title,
                page_count=page_count,
                warnings=list(content.warnings),
                error_code=None,
                error_message=None,
                timings=StageTimings(read_ms=read_ms, render_ms=render_ms, write_ms=write_ms),
                output_path=str(output_path),
                size_bytes=size_bytes,
            )
        )
        return ConversionResult(
            run_id=context.run_id,
            source=context.file_name,
            output_path=output_path,
            metadata=metadata,
            page_count=page_count,
            summary=f"Converted {context.file_name} -> {output_path} ({page_count} pages) in {elapsed:.2f}s",
            warnings=list(content.warnings),
            cover_included=context.cover is not None,
        )

    def _output_path(self, context: _ChapterContext, title: str) -> Path:
        try:
            context.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputError(f"Cannot create output directory {context.output_dir}: {exc}") from exc
        name = safe_filename(title)
        if context.taken_names is not None:
            name = unique_name(name, context.taken_names)
        return context.output_dir / f"{name}.pdf"

    def _log_failure(
        self,
        context: _ChapterContext,
        exc: ConversionError,
        *,
        title: str | None,
        output_path: Path | None,
    ) -> None:
        context.run_logger.append(
            RunLogEntry(
                run_id=context.run_id,
                source=context.file_name,
                status="failure",
                title=title,
                page_count=0,
                warnings=[],
                error_code=exc.code,
                error_message=str(exc),
                timings=StageTimings(0, 0, 0),
                output_path=str(output_path) if output_path else None,
                size_bytes=0,
            )
        )

    # ------------------------------------------------------------------
    # Collection helpers
    # ------------------------------------------------------------------
    def _scan_collection(self, folder: Path) -> _Collection:
        collection = _Collection()
        try:
            children = sorted((p for p in folder.iterdir() if p.is_file()), key=lambda p: sort_key(p.name))
        except OSError as exc:
            raise ArchiveError(f"Cannot access folder {folder}: {exc}") from exc

        for child in children:
            if is_metadata_name(child.name):
                try:
                    collection.metadata = parse_metadata(self._read_bytes(child))
                except MetadataParseError as exc:
                    logger.warning("Ignoring collection metadata %s: %s", child, exc)
                    collection.metadata = None
                    if METADATA_INVALID not in collection.warnings:
                        collection.warnings.append(METADATA_INVALID)
            elif COVER_NAME_RE.fullmatch(child.name):
                collection.cover = self._read_bytes(child)
            elif child.name.lower().endswith(CHAPTER_SUFFIX):
                collection.chapters.append(child)
        return collection

    def _read_bytes(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ArchiveError(f"Cannot read {path.name}: {exc}") from exc

    def _prepare_cover(self, data: bytes | None) -> NormalizedPage | None:
        if data is None:
            return None
        try:
            return normalize_image(data)
        except DecodeError as exc:
            raise DecodeError("Cannot decode cover image") from exc

    def _accumulate_warnings(self, results: Sequence[ConversionResult], summary: BatchSummary) -> None:
        for result in results:
            for warning in result.warnings:
                summary.warnings[warning] = summary.warnings.get(warning, 0) + 1


__all__ = [
    "ConversionService",
    "ConversionResult",
    "ConversionError",
    "BatchConversionResult",
]
