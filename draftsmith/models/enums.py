"""Enum definitions for typed pipeline boundaries."""

from enum import Enum


class SectionName(str, Enum):
    FACTS = "facts"
    LIABILITY = "liability"
    DAMAGES = "damages"
    DEMAND = "demand"


# Canonical order used for generation, commit and display.
SECTION_ORDER = (
    SectionName.FACTS,
    SectionName.LIABILITY,
    SectionName.DAMAGES,
    SectionName.DEMAND,
)


class DraftState(str, Enum):
    GENERATING = "generating"
    EDITING = "editing"
    FINAL = "final"


class VariableType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"


class OcrStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class GenerationOperation(str, Enum):
    GENERATE = "generate"
    REFINE = "refine"


class BackendKind(str, Enum):
    OPENAI = "openai"
    PYDANTIC_AI = "pydantic_ai"
