"""Unit tests for the prompt compiler."""

from __future__ import annotations

import pytest

from draftsmith.drafting.prompt_compiler import (
    compile_refinement_prompt,
    compile_section_prompt,
    compose_instruction,
    substitute_variables,
)
from draftsmith.errors import InvalidTemplate
from draftsmith.models import SectionName, TemplateSection


def _section() -> TemplateSection:
    return TemplateSection(
        title="Statement of Facts",
        prompt_instruction="Describe the fall of {{clientName}} on {{dateOfIncident}}.",
        default_content="On {{dateOfIncident}}, {{clientName}} fell at {{locationOfIncident}}.",
    )


def test_substitutes_every_occurrence() -> None:
    text = "{{clientName}} v. {{defendant}}; {{clientName}} demands."
    result = substitute_variables(text, {"clientName": "Jane Doe", "defendant": "Acme"})
    assert result == "Jane Doe v. Acme; Jane Doe demands."


def test_unbound_placeholders_left_intact() -> None:
    result = substitute_variables("{{clientName}} at {{locationOfIncident}}", {"clientName": "Jane"})
    assert result == "Jane at {{locationOfIncident}}"


def test_values_rendered_as_strings() -> None:
    result = substitute_variables("${{demandAmount}} for {{note}}", {"demandAmount": 75000, "note": None})
    assert result == "$75000 for "


def test_substitution_is_idempotent() -> None:
    bindings = {"clientName": "Jane Doe", "dateOfIncident": "2024-03-03"}
    once = substitute_variables(_section().default_content, bindings)
    assert substitute_variables(once, bindings) == once


def test_non_string_text_is_invalid_template() -> None:
    with pytest.raises(InvalidTemplate):
        substitute_variables(42, {})  # type: ignore[arg-type]


def test_composed_instruction_layout() -> None:
    instruction = compose_instruction(_section(), {"clientName": "Jane Doe", "dateOfIncident": "March 3"})
    assert instruction.startswith("Describe the fall of Jane Doe on March 3.")
    assert "Default Content Structure:\nOn March 3, Jane Doe fell at {{locationOfIncident}}." in instruction
    assert instruction.rstrip().endswith("Format headings and paragraphs appropriately")
    assert "Do not include placeholders" in instruction


def test_malformed_section_is_invalid_template() -> None:
    broken = TemplateSection.model_construct(title="x", prompt_instruction=None, default_content="")
    with pytest.raises(InvalidTemplate):
        compose_instruction(broken, {})


def test_section_prompt_frames_context_as_case_information() -> None:
    prompt = compile_section_prompt(SectionName.FACTS, _section(), {"clientName": "Jane"}, "EVIDENCE TEXT")
    assert prompt.section == SectionName.FACTS
    assert "Describe the fall of Jane" in prompt.instruction
    assert prompt.user_context.startswith("CASE INFORMATION:\n\nEVIDENCE TEXT")
    assert "EVIDENCE TEXT" not in prompt.instruction


def test_keep_existing_block() -> None:
    prompt = compile_refinement_prompt(
        SectionName.FACTS, _section(), {}, "ctx", "Prior facts.", "Add the weather.", True
    )
    assert "Existing Content:\nPrior facts.\n\nUser Instruction: Add the weather." in prompt.instruction
    assert "Keep the structure and key points" in prompt.instruction
    assert "reference only" not in prompt.instruction


def test_rewrite_block_marks_prior_content_as_reference() -> None:
    prompt = compile_refinement_prompt(
        SectionName.DEMAND, _section(), {}, "ctx", "Old demand.", "Be firmer.", False
    )
    assert "Previous Content (for reference only):\nOld demand." in prompt.instruction
    assert "rewrite this section completely" in prompt.instruction
    assert prompt.user_context.startswith("CASE INFORMATION:")
