"""Cleanup and degenerate-output checks for generated section text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from draftsmith.drafting import prompts
from draftsmith.errors import ValidationFailed
from draftsmith.models import SectionName

MIN_CONTENT_CHARS = 50

_PLACEHOLDER_RE = re.compile(r"\{\{[^}]+\}\}")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(?=\S)", re.MULTILINE)
_ERROR_MARKERS = ("Error:", "Failed to")


@dataclass(frozen=True)
class ContentCheck:
    content: str
    valid: bool
    reason: Optional[str] = None
    code: Optional[str] = None


def post_process(content: str) -> str:
    """Strip leftover placeholders, collapse blank runs, normalize headings, trim."""
    cleaned = _PLACEHOLDER_RE.sub("", content or "")
    cleaned = _EXCESS_NEWLINES_RE.sub("\n\n", cleaned)
    cleaned = _HEADING_RE.sub(r"\1 ", cleaned)
    return cleaned.strip()


def validate(content: str, min_chars: int = MIN_CONTENT_CHARS) -> ContentCheck:
    """Post-process then check for degenerate output. Never raises."""
    cleaned = post_process(content)
    if len(cleaned) < min_chars:
        return ContentCheck(cleaned, False, f"content shorter than {min_chars} characters", ValidationFailed.code)
    for marker in _ERROR_MARKERS:
        if marker in cleaned:
            return ContentCheck(cleaned, False, f"content contains error marker {marker!r}", ValidationFailed.code)
    return ContentCheck(cleaned, True)


def placeholder_for(section: SectionName) -> str:
    return prompts.generation_failed_placeholder(section.value)
