"""Unit tests for context building."""

from __future__ import annotations

import pytest

from draftsmith.errors import EmptyContext
from draftsmith.models import SourceText
from draftsmith.sources import DOCUMENT_SEPARATOR, build_context


def _text(file_id: str, text: str | None) -> SourceText:
    return SourceText(file_id=file_id, name=f"{file_id}.txt", text=text)


def test_joins_available_texts_with_separator() -> None:
    first = "Incident report describing the wet floor and the fall in aisle seven."
    second = "Medical bills from City ER totalling twelve thousand dollars."
    context = build_context([_text("a", first), _text("b", second)])
    assert context == f"{first}{DOCUMENT_SEPARATOR}{second}"
    assert "NEXT DOCUMENT" in DOCUMENT_SEPARATOR


def test_skips_blank_and_missing_texts() -> None:
    body = "A single usable document that is comfortably longer than fifty characters."
    context = build_context([_text("a", None), _text("b", "   \n"), _text("c", body)])
    assert context == body
    assert DOCUMENT_SEPARATOR not in context


def test_no_available_texts_raises() -> None:
    with pytest.raises(EmptyContext):
        build_context([_text("a", None), _text("b", "")])


def test_empty_list_raises() -> None:
    with pytest.raises(EmptyContext):
        build_context([])


def test_short_context_raises() -> None:
    with pytest.raises(EmptyContext) as excinfo:
        build_context([_text("a", "too short")])
    assert excinfo.value.code == "empty_context"


def test_custom_minimum() -> None:
    assert build_context([_text("a", "tiny")], min_chars=4) == "tiny"
