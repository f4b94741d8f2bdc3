"""Single-section refinement against an existing draft."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from draftsmith.db.base import RefinementLedger, UsageLedger
from draftsmith.drafting import prompts
from draftsmith.drafting.content_validator import validate
from draftsmith.drafting.prompt_compiler import compile_refinement_prompt
from draftsmith.drafting.section_generator import SectionGenerator
from draftsmith.drafting.state_manager import DraftStateManager
from draftsmith.drafting.templates import TemplateResolver
from draftsmith.drafting.variables import resolve_bindings
from draftsmith.models import (
    GenerationOperation,
    RefinementRecord,
    RefinementResult,
    SectionGeneration,
    SectionName,
    UsageRecord,
    ValidationConfig,
)
from draftsmith.sources import SourceTextProvider, build_context, fetch_source_texts
from draftsmith.utils.logging_config import get_logger

logger = get_logger(__name__)


class RefinementEngine:
    """Regenerates exactly one section with a user instruction.

    Context is re-derived from the sources on every call. Any failure before
    the commit leaves the draft untouched.
    """

    def __init__(
        self,
        state: DraftStateManager,
        resolver: TemplateResolver,
        sources: SourceTextProvider,
        generator: SectionGenerator,
        validation: Optional[ValidationConfig] = None,
        history: Optional[RefinementLedger] = None,
        usage: Optional[UsageLedger] = None,
    ):
        self.state = state
        self.resolver = resolver
        self.sources = sources
        self.generator = generator
        self.validation = validation or ValidationConfig()
        self.history = history
        self.usage = usage

    async def refine(
        self,
        draft_id: str,
        section: SectionName,
        instruction: str,
        keep_existing_content: bool,
        actor: str,
    ) -> RefinementResult:
        draft = await self.state.load(draft_id)
        template = await self.resolver.resolve(draft.template_id)
        bindings = resolve_bindings(template, draft.variables)

        file_ids = draft.source_file_ids or await self.sources.list_file_ids(draft.matter_id)
        texts = await fetch_source_texts(self.sources, draft.matter_id, file_ids)
        context = build_context(texts, min_chars=self.validation.min_context_chars)

        current = draft.section(section)
        prompt = compile_refinement_prompt(
            section,
            template.sections.get(section),
            bindings,
            context,
            existing_content=current.content,
            instruction=instruction,
            keep_existing_content=keep_existing_content,
        )
        generation = await self.generator.generate(prompt, GenerationOperation.REFINE)

        check = validate(generation.content, min_chars=self.validation.min_content_chars)
        if check.valid:
            content = check.content
        else:
            content = current.content if current.content.strip() else prompts.refinement_failed_placeholder(section.value)
            logger.warning(
                "Refined %s content for draft %s rejected (%s); keeping prior content",
                section.value, draft_id, check.reason,
            )

        await self.state.commit_refinement(draft_id, section, content, actor, expected_version=current.version)

        # The section is committed; ledger failures below are logged only.
        if self.history is not None:
            try:
                await self.history.save_refinement(
                    RefinementRecord(
                        draft_id=draft_id,
                        section=section,
                        instruction=instruction,
                        keep_existing_content=keep_existing_content,
                        performed_by=actor,
                        previous_content=current.content,
                        new_content=content,
                        performed_at=datetime.now(timezone.utc),
                    )
                )
            except Exception as e:
                logger.warning("Failed to record refinement history for draft %s: %s", draft_id, e)
        if self.usage is not None:
            try:
                await self.usage.save_usage(usage_record(draft_id, generation, GenerationOperation.REFINE))
            except Exception as e:
                logger.warning("Failed to record usage for draft %s section %s: %s", draft_id, section.value, e)
        return RefinementResult(content=content, tokens_used=generation.tokens_used, fell_back=not check.valid)


def usage_record(draft_id: str, generation: SectionGeneration, operation: GenerationOperation) -> UsageRecord:
    return UsageRecord(
        draft_id=draft_id,
        section=generation.section,
        operation=operation,
        model=generation.model,
        tokens_in=generation.tokens_in,
        tokens_out=generation.tokens_out,
        cost_usd=generation.cost_usd,
        latency_ms=generation.latency_ms,
    )
