"""Draw order for pages and chapters.

Names are compared lowercased by codepoint, so ``2.jpg`` sorts after
``10.jpg``. Zero-padded names are expected; numeric-aware sorting would change
the output order of existing collections.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

Page = tuple[str, bytes]


def sort_key(name: str) -> str:
    return name.lower()


def order_pages(pages: Iterable[Page]) -> list[Page]:
    return sorted(pages, key=lambda page: sort_key(page[0]))


def order_chapters(chapters: Sequence[Path]) -> list[Path]:
    return sorted(chapters, key=lambda path: sort_key(path.name))


__all__ = ["Page", "order_chapters", "order_pages", "sort_key"]
