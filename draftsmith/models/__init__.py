"""Model exports for pipeline boundaries."""

from draftsmith.models.config import (
    GenerationConfig,
    LoggingConfig,
    SettingsConfig,
    StorageConfig,
    ValidationConfig,
)
from draftsmith.models.draft import (
    Draft,
    DraftGenerationResult,
    RefinementRecord,
    RefinementResult,
    SectionContent,
    VariableBindings,
)
from draftsmith.models.enums import (
    SECTION_ORDER,
    BackendKind,
    DraftState,
    GenerationOperation,
    OcrStatus,
    SectionName,
    VariableType,
)
from draftsmith.models.generation import GenerationResult, SectionGeneration, UsageRecord
from draftsmith.models.sources import SourceFileRecord, SourceText
from draftsmith.models.template import (
    Template,
    TemplateSection,
    TemplateSections,
    VariableDefinition,
)

__all__ = [
    "SECTION_ORDER",
    "BackendKind",
    "Draft",
    "DraftGenerationResult",
    "DraftState",
    "GenerationConfig",
    "GenerationOperation",
    "GenerationResult",
    "LoggingConfig",
    "OcrStatus",
    "RefinementRecord",
    "RefinementResult",
    "SectionContent",
    "SectionGeneration",
    "SectionName",
    "SettingsConfig",
    "SourceFileRecord",
    "SourceText",
    "StorageConfig",
    "Template",
    "TemplateSection",
    "TemplateSections",
    "UsageRecord",
    "ValidationConfig",
    "VariableBindings",
    "VariableDefinition",
    "VariableType",
]
