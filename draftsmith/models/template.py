"""Template models: section definitions and variable definitions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from draftsmith.models.enums import SectionName, VariableType


class TemplateSection(BaseModel):
    title: str
    prompt_instruction: str
    default_content: str = ""


class TemplateSections(BaseModel):
    """The four fixed sections every template defines."""

    facts: TemplateSection
    liability: TemplateSection
    damages: TemplateSection
    demand: TemplateSection

    def get(self, section: SectionName) -> TemplateSection:
        return getattr(self, section.value)


class VariableDefinition(BaseModel):
    name: str = Field(min_length=1)
    label: str = ""
    type: VariableType = VariableType.TEXT
    required: bool = False
    default_value: Optional[str] = None


class Template(BaseModel):
    template_id: str
    name: str
    description: str = ""
    sections: TemplateSections
    variables: List[VariableDefinition] = Field(default_factory=list)
    is_active: bool = True
    created_by: str = "system"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _unique_variable_names(self) -> "Template":
        seen: set[str] = set()
        for variable in self.variables:
            if variable.name in seen:
                raise ValueError(f"duplicate variable name '{variable.name}'")
            seen.add(variable.name)
        return self
