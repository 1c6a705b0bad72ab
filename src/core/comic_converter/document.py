"""PDF assembly for converted archives."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from types import TracebackType

import fitz  # type: ignore

from .errors import OutputError
from .imaging import PAGE_HEIGHT, PAGE_WIDTH, NormalizedPage
from .metadata import EffectiveMetadata

logger = logging.getLogger(__name__)


class AssemblerState(str, Enum):
    CREATED = "created"
    OPEN = "open"
    CLOSED = "closed"


class DocumentAssembler:
    """Owns one output PDF from ``open`` until ``close``.

    Pages are full-bleed A4 pages holding a single image each. ``close`` is
    guaranteed by the context manager protocol; whatever pages were added
    before a failure are flushed, without rollback, once at least
    *min_pages* were added. Fewer pages are discarded.
    """

    def __init__(self, output_path: Path, *, min_pages: int = 1) -> None:
        self._output_path = Path(output_path)
        self._min_pages = max(min_pages, 1)
        self._document: fitz.Document | None = None
        self._state = AssemblerState.CREATED
        self._page_count = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def output_path(self) -> Path:
        return self._output_path

    @property
    def state(self) -> AssemblerState:
        return self._state

    @property
    def page_count(self) -> int:
        return self._page_count

    def open(self, metadata: EffectiveMetadata) -> None:
        self._require(AssemblerState.CREATED, "open")
        document = fitz.open()
        info: dict[str, str] = {"title": metadata.title}
        if metadata.author:
            info["author"] = metadata.author
        if metadata.publisher:
            info["subject"] = metadata.publisher
        document.set_metadata(info)
        self._document = document
        self._state = AssemblerState.OPEN

    def add_page(self, page: NormalizedPage) -> None:
        """Append *page* on a fresh A4 page.

        Every page after the first is preceded by a page break, so the first
        image never starts with one.
        """

        self._require(AssemblerState.OPEN, "add a page to")
        assert self._document is not None
        if self._page_count:
            logger.debug("Page break before page %s of %s", self._page_count + 1, self._output_path.name)
        pdf_page = self._document.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        rect = fitz.Rect(*page.layout.rect(page.image.width, page.image.height))
        pdf_page.insert_image(rect, stream=page.image.data)
        self._page_count += 1

    def close(self) -> None:
        self._finish(raise_errors=True)

    def _finish(self, *, raise_errors: bool) -> None:
        if self._state is AssemblerState.CLOSED:
            return
        document = self._document
        self._document = None
        self._state = AssemblerState.CLOSED
        if document is None:
            return
        try:
            if self._page_count >= self._min_pages:
                document.save(str(self._output_path), garbage=3, deflate=True)
                logger.debug("Wrote %s pages to %s", self._page_count, self._output_path)
        except (OSError, RuntimeError) as exc:
            if raise_errors:
                raise OutputError(f"Cannot write {self._output_path}: {exc}") from exc
            # An earlier error is already propagating.
            logger.error("Cannot write partial document %s: %s", self._output_path, exc)
        finally:
            document.close()

    def __enter__(self) -> "DocumentAssembler":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self._finish(raise_errors=exc_type is None)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require(self, expected: AssemblerState, action: str) -> None:
        if self._state is not expected:
            raise RuntimeError(f"Cannot {action} a document in state {self._state.value}")


__all__ = ["AssemblerState", "DocumentAssembler"]
