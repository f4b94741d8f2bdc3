"""Draft lifecycle models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from draftsmith.models.enums import SECTION_ORDER, DraftState, SectionName

VariableBindings = Dict[str, Any]


class SectionContent(BaseModel):
    content: str = ""
    generated_at: Optional[datetime] = None
    # Bumped on every write; used for optimistic concurrency on refinement.
    version: int = 0


class Draft(BaseModel):
    draft_id: str
    template_id: str
    matter_id: str
    state: DraftState = DraftState.GENERATING
    sections: Dict[SectionName, SectionContent] = Field(
        default_factory=lambda: {name: SectionContent() for name in SECTION_ORDER}
    )
    variables: VariableBindings = Field(default_factory=dict)
    source_file_ids: List[str] = Field(default_factory=list)
    generated_by: str
    last_edited_by: str
    created_at: datetime
    updated_at: datetime
    last_generated_at: Optional[datetime] = None
    last_edited_at: Optional[datetime] = None
    error: Optional[str] = None

    def section(self, name: SectionName) -> SectionContent:
        return self.sections.get(name, SectionContent())

    def section_texts(self) -> Dict[str, str]:
        return {name.value: self.section(name).content for name in SECTION_ORDER}


class DraftGenerationResult(BaseModel):
    draft_id: str
    sections: Dict[str, str]
    tokens_used: int = 0


class RefinementResult(BaseModel):
    content: str
    tokens_used: int = 0
    fell_back: bool = False


class RefinementRecord(BaseModel):
    draft_id: str
    section: SectionName
    instruction: str
    keep_existing_content: bool
    performed_by: str
    previous_content: str
    new_content: str
    performed_at: Optional[datetime] = None
