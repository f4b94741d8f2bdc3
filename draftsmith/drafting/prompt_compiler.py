"""Compile a template section and variable bindings into a generation prompt.

Substitution is literal: every ``{{name}}`` with a binding is replaced by the
value's string form; placeholders without a binding are left intact. No I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from draftsmith.drafting import prompts
from draftsmith.errors import InvalidTemplate
from draftsmith.models import SectionName, TemplateSection


@dataclass(frozen=True)
class CompiledPrompt:
    section: SectionName
    instruction: str
    user_context: str


def _render(value: Any) -> str:
    return "" if value is None else str(value)


def substitute_variables(text: str, bindings: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` for each binding. Idempotent on substituted text."""
    if not isinstance(text, str):
        raise InvalidTemplate(f"Expected text for substitution, got {type(text).__name__}")
    result = text
    for name, value in bindings.items():
        result = result.replace("{{" + str(name) + "}}", _render(value))
    return result


def compose_instruction(section: TemplateSection, bindings: Mapping[str, Any]) -> str:
    """Section instructions + default content as structural guide + closing directives."""
    instruction = getattr(section, "prompt_instruction", None)
    default_content = getattr(section, "default_content", "")
    if not isinstance(instruction, str) or not isinstance(default_content, str):
        raise InvalidTemplate("Template section must define text prompt_instruction and default_content")
    return (
        f"{substitute_variables(instruction, bindings)}\n\n"
        "Default Content Structure:\n"
        f"{substitute_variables(default_content, bindings)}\n\n"
        f"{prompts.CLOSING_DIRECTIVES}"
    )


def compile_section_prompt(
    section_name: SectionName,
    section: TemplateSection,
    bindings: Mapping[str, Any],
    context: str,
) -> CompiledPrompt:
    return CompiledPrompt(
        section=section_name,
        instruction=f"{prompts.SYSTEM_PREAMBLE}\n\n{compose_instruction(section, bindings)}",
        user_context=prompts.user_message(context),
    )


def compile_refinement_prompt(
    section_name: SectionName,
    section: TemplateSection,
    bindings: Mapping[str, Any],
    context: str,
    existing_content: str,
    instruction: str,
    keep_existing_content: bool,
) -> CompiledPrompt:
    """Base section prompt plus the keep/rewrite directive block."""
    base = compile_section_prompt(section_name, section, bindings, context)
    if keep_existing_content:
        block = (
            "Existing Content:\n"
            f"{existing_content}\n\n"
            f"User Instruction: {instruction}\n\n"
            f"{prompts.KEEP_EXISTING_DIRECTIVE}"
        )
    else:
        block = (
            "Previous Content (for reference only):\n"
            f"{existing_content}\n\n"
            f"User Instruction: {instruction}\n\n"
            f"{prompts.REWRITE_DIRECTIVE}"
        )
    return CompiledPrompt(
        section=section_name,
        instruction=f"{base.instruction}\n\n{block}",
        user_context=base.user_context,
    )
