"""Source-text providers: resolve a matter's file references to plain text.

Extraction mechanics (OCR, format parsing) belong to the provider. The
pipeline only distinguishes available text from unavailable text; files
without text are skipped, never fatal.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from docx import Document

from draftsmith.db.repositories import SourceFileRepository
from draftsmith.models import OcrStatus, SourceText

logger = logging.getLogger(__name__)


@runtime_checkable
class SourceTextProvider(Protocol):
    async def fetch(self, matter_id: str, file_id: str) -> SourceText:
        """Return the file's text; ``text`` is None when unavailable."""
        ...

    async def list_file_ids(self, matter_id: str) -> List[str]:
        """Return every file id recorded for the matter, in upload order."""
        ...


class StoredSourceProvider:
    """Reads extracted text recorded alongside each file in the document store."""

    def __init__(self, repository: SourceFileRepository):
        self.repository = repository

    async def fetch(self, matter_id: str, file_id: str) -> SourceText:
        record = await self.repository.get_file(matter_id, file_id)
        if record is None:
            logger.warning("Source file %s not found in matter %s, skipping", file_id, matter_id)
            return SourceText(file_id=file_id)
        if record.ocr_status != OcrStatus.DONE or not record.ocr_text:
            logger.info(
                "Skipping %s (%s): text extraction %s",
                record.name,
                file_id,
                record.ocr_status.value if record.ocr_status else "not started",
            )
            return SourceText(file_id=file_id, name=record.name)
        return SourceText(file_id=file_id, name=record.name, text=record.ocr_text)

    async def list_file_ids(self, matter_id: str) -> List[str]:
        return await self.repository.list_file_ids(matter_id)


def _read_docx(path: Path) -> str:
    document = Document(str(path))
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def read_local_text(path: Path) -> Optional[str]:
    """Return the text of a .txt or .docx file, or None for formats needing OCR."""
    suffix = path.suffix.lower()
    if suffix == ".txt":
        return path.read_text(encoding="utf-8", errors="replace")
    if suffix == ".docx":
        return _read_docx(path)
    return None


class LocalDirectorySourceProvider:
    """Reads ``<root>/<matter_id>/<file_id>`` from disk.

    Plain-text files are read directly and .docx files through python-docx;
    other formats need OCR and are reported as unavailable.
    """

    SUPPORTED_SUFFIXES = (".txt", ".docx")

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _matter_dir(self, matter_id: str) -> Optional[Path]:
        """Resolved ``<root>/<matter_id>``, or None when the id escapes the root."""
        root = self.root.resolve()
        matter_dir = (root / matter_id).resolve()
        if matter_dir == root or not matter_dir.is_relative_to(root):
            return None
        return matter_dir

    def _resolve(self, matter_id: str, file_id: str) -> Optional[Path]:
        """Return the file path, or None when it escapes the matter's directory."""
        matter_dir = self._matter_dir(matter_id)
        if matter_dir is None:
            return None
        path = (matter_dir / file_id).resolve()
        if path == matter_dir or not path.is_relative_to(matter_dir):
            return None
        return path

    async def fetch(self, matter_id: str, file_id: str) -> SourceText:
        path = self._resolve(matter_id, file_id)
        if path is None:
            logger.warning("Source file %s is outside matter %s, skipping", file_id, matter_id)
            return SourceText(file_id=file_id, name=file_id)
        if not path.is_file():
            logger.warning("Source file %s not found, skipping", path)
            return SourceText(file_id=file_id, name=file_id)
        if path.suffix.lower() not in self.SUPPORTED_SUFFIXES:
            logger.info("Skipping %s: format requires OCR", path.name)
            return SourceText(file_id=file_id, name=path.name)
        try:
            text = await asyncio.to_thread(read_local_text, path)
        except Exception as exc:
            logger.error("Error extracting text from %s: %s", path.name, exc)
            return SourceText(file_id=file_id, name=path.name)
        return SourceText(file_id=file_id, name=path.name, text=text)

    async def list_file_ids(self, matter_id: str) -> List[str]:
        directory = self._matter_dir(matter_id)
        if directory is None or not directory.is_dir():
            return []
        return sorted(
            p.name for p in directory.iterdir() if p.is_file() and not p.name.startswith(".")
        )


async def fetch_source_texts(
    provider: SourceTextProvider,
    matter_id: str,
    file_ids: Sequence[str],
) -> List[SourceText]:
    """Resolve every file concurrently, preserving the requested order."""
    texts = await asyncio.gather(*(provider.fetch(matter_id, fid) for fid in file_ids))
    available = sum(1 for t in texts if t.available)
    skipped = [t.name or t.file_id for t in texts if not t.available]
    logger.info(
        "File extraction complete: %d available, %d skipped%s",
        available,
        len(skipped),
        f" ({', '.join(skipped)})" if skipped else "",
    )
    return list(texts)
