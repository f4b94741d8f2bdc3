"""Source evidence models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from draftsmith.models.enums import OcrStatus


class SourceText(BaseModel):
    """Resolved text for one source file. Absent text means skip, not fail."""

    file_id: str
    name: Optional[str] = None
    text: Optional[str] = None

    @property
    def available(self) -> bool:
        return bool(self.text and self.text.strip())


class SourceFileRecord(BaseModel):
    """A matter's file as tracked by the document store."""

    matter_id: str
    file_id: str
    name: str
    file_type: str = "txt"
    ocr_status: Optional[OcrStatus] = None
    ocr_text: Optional[str] = None
