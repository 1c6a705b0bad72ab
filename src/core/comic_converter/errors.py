"""Error taxonomy for comic conversions."""

from __future__ import annotations


class ConversionError(RuntimeError):
    code = "CONVERSION_FAILED"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ArchiveError(ConversionError):
    """Raised when an archive or collection cannot be read."""

    code = "ARCHIVE_INVALID"


class EmptyArchiveError(ConversionError):
    code = "EMPTY_ARCHIVE"


class NoChaptersError(ConversionError):
    code = "NO_CHAPTERS"


class DecodeError(ConversionError):
    """Raised when page bytes are not a decodable image."""

    code = "DECODE_FAILED"


class OutputError(ConversionError):
    code = "OUTPUT_FAILED"


class MetadataParseError(ValueError):
    """Raised for malformed metadata documents; callers recover from it."""


__all__ = [
    "ArchiveError",
    "ConversionError",
    "DecodeError",
    "EmptyArchiveError",
    "MetadataParseError",
    "NoChaptersError",
    "OutputError",
]
