"""Comic archive (CBZ) to PDF conversion toolkit."""

from .config import AppConfig, load_config
from .core import ConversionService
from .errors import (
    ArchiveError,
    ConversionError,
    DecodeError,
    EmptyArchiveError,
    NoChaptersError,
    OutputError,
)
from .models import BatchConversionResult, ConversionResult

__all__ = [
    "AppConfig",
    "load_config",
    "ArchiveError",
    "BatchConversionResult",
    "ConversionError",
    "ConversionResult",
    "ConversionService",
    "DecodeError",
    "EmptyArchiveError",
    "NoChaptersError",
    "OutputError",
]
