"""Source extraction and context building."""

from .context_builder import DOCUMENT_SEPARATOR, build_context
from .extractor import (
    LocalDirectorySourceProvider,
    SourceTextProvider,
    StoredSourceProvider,
    fetch_source_texts,
)

__all__ = [
    "DOCUMENT_SEPARATOR",
    "LocalDirectorySourceProvider",
    "SourceTextProvider",
    "StoredSourceProvider",
    "build_context",
    "fetch_source_texts",
]
