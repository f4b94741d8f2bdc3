"""Prompt compilation, generation, validation and draft lifecycle."""

from .content_validator import ContentCheck, placeholder_for, post_process, validate
from .pipeline import DraftPipeline
from .prompt_compiler import (
    CompiledPrompt,
    compile_refinement_prompt,
    compile_section_prompt,
    substitute_variables,
)
from .refinement import RefinementEngine
from .section_generator import SectionGenerator
from .state_manager import DraftStateManager
from .templates import TemplateResolver, load_template_file
from .variables import resolve_bindings

__all__ = [
    "CompiledPrompt",
    "ContentCheck",
    "DraftPipeline",
    "DraftStateManager",
    "RefinementEngine",
    "SectionGenerator",
    "TemplateResolver",
    "compile_refinement_prompt",
    "compile_section_prompt",
    "load_template_file",
    "placeholder_for",
    "post_process",
    "resolve_bindings",
    "substitute_variables",
    "validate",
]
