"""
Draft Pipeline

Full four-section generation and single-section refinement over the
template, source and draft stores.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

from draftsmith.db.base import DraftStore, RefinementLedger, TemplateStore, UsageLedger
from draftsmith.drafting.content_validator import placeholder_for, validate
from draftsmith.drafting.prompt_compiler import compile_section_prompt
from draftsmith.drafting.refinement import RefinementEngine, usage_record
from draftsmith.drafting.section_generator import SectionGenerator
from draftsmith.drafting.state_manager import DraftStateManager
from draftsmith.drafting.templates import TemplateResolver
from draftsmith.drafting.variables import resolve_bindings
from draftsmith.errors import PRECONDITION_ERRORS, DraftPipelineError
from draftsmith.llm.base_client import GenerationBackend
from draftsmith.llm.rate_limiter import RateLimiter
from draftsmith.models import (
    SECTION_ORDER,
    DraftGenerationResult,
    GenerationConfig,
    GenerationOperation,
    RefinementResult,
    SectionGeneration,
    SectionName,
    ValidationConfig,
)
from draftsmith.sources import SourceTextProvider, build_context, fetch_source_texts
from draftsmith.utils.logging_config import get_logger
from draftsmith.utils.structured_log import bind_request, clear_request

logger = get_logger(__name__)


class DraftPipeline:
    """Coordinates the draft lifecycle for generation and refinement requests."""

    def __init__(
        self,
        templates: TemplateStore,
        drafts: DraftStore,
        sources: SourceTextProvider,
        backend: GenerationBackend,
        generation: Optional[GenerationConfig] = None,
        validation: Optional[ValidationConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        history: Optional[RefinementLedger] = None,
        usage: Optional[UsageLedger] = None,
    ):
        self.generation = generation or GenerationConfig()
        self.validation = validation or ValidationConfig()
        self.sources = sources
        self.usage = usage
        self.state = DraftStateManager(drafts)
        self.resolver = TemplateResolver(templates)
        self.generator = SectionGenerator(backend, self.generation, rate_limiter)
        self.refiner = RefinementEngine(
            self.state,
            self.resolver,
            sources,
            self.generator,
            validation=self.validation,
            history=history,
            usage=usage,
        )

    async def generate_draft(
        self,
        template_id: str,
        matter_id: str,
        variables: Optional[Mapping[str, Any]],
        actor: str,
        source_file_ids: Optional[Sequence[str]] = None,
        draft_id: Optional[str] = None,
    ) -> DraftGenerationResult:
        """Generate all four sections and commit them together.

        When ``source_file_ids`` is empty every file of the matter is used.
        Passing an existing ``draft_id`` regenerates into that record.
        """
        file_ids = list(source_file_ids or []) or await self.sources.list_file_ids(matter_id)
        draft = await self.state.create(
            template_id, matter_id, dict(variables or {}), actor,
            draft_id=draft_id, source_file_ids=file_ids,
        )
        bind_request(draft.draft_id, actor)
        try:
            generations = await self._generate_sections(template_id, matter_id, variables, file_ids)
        except PRECONDITION_ERRORS as exc:
            logger.warning("Draft %s not generated: %s", draft.draft_id, exc.message)
            await self.state.record_error(draft.draft_id, exc.message, transition_to_editing=False)
            clear_request()
            raise
        except Exception as exc:
            message = exc.message if isinstance(exc, DraftPipelineError) else f"Draft generation failed: {exc}"
            logger.error("Draft %s generation failed: %s", draft.draft_id, message)
            await self.state.record_error(draft.draft_id, message, transition_to_editing=True)
            clear_request()
            raise

        contents: Dict[SectionName, str] = {}
        for name in SECTION_ORDER:
            check = validate(generations[name].content, min_chars=self.validation.min_content_chars)
            if check.valid:
                contents[name] = check.content
            else:
                logger.warning("Section %s rejected (%s); using placeholder", name.value, check.reason)
                contents[name] = placeholder_for(name)

        try:
            await self.state.commit_generation(draft.draft_id, contents)
        except Exception as exc:
            message = exc.message if isinstance(exc, DraftPipelineError) else f"Draft generation failed: {exc}"
            logger.error("Draft %s commit failed: %s", draft.draft_id, message)
            await self.state.record_error(draft.draft_id, message, transition_to_editing=True)
            clear_request()
            raise
        try:
            await self._record_usage(draft.draft_id, generations.values())
        finally:
            clear_request()

        tokens_used = sum(g.tokens_used for g in generations.values())
        logger.info("Draft %s generated (%d tokens)", draft.draft_id, tokens_used)
        return DraftGenerationResult(
            draft_id=draft.draft_id,
            sections={name.value: contents[name] for name in SECTION_ORDER},
            tokens_used=tokens_used,
        )

    async def refine_section(
        self,
        draft_id: str,
        section: Union[SectionName, str],
        instruction: str,
        keep_existing_content: bool,
        actor: str,
    ) -> RefinementResult:
        """Regenerate one section; the other three are never written."""
        section_name = SectionName(section)
        bind_request(draft_id, actor)
        try:
            result = await self.refiner.refine(
                draft_id, section_name, instruction, keep_existing_content, actor
            )
        except DraftPipelineError as exc:
            logger.warning("Refinement of %s for draft %s failed: %s", section_name.value, draft_id, exc.message)
            raise
        finally:
            clear_request()
        logger.info("Draft %s section %s refined (%d tokens)", draft_id, section_name.value, result.tokens_used)
        return result

    async def _generate_sections(
        self,
        template_id: str,
        matter_id: str,
        variables: Optional[Mapping[str, Any]],
        file_ids: Sequence[str],
    ) -> Dict[SectionName, SectionGeneration]:
        template = await self.resolver.resolve(template_id, require_active=True)
        bindings = resolve_bindings(template, variables)
        texts = await fetch_source_texts(self.sources, matter_id, file_ids)
        context = build_context(texts, min_chars=self.validation.min_context_chars)
        compiled = [
            compile_section_prompt(name, template.sections.get(name), bindings, context)
            for name in SECTION_ORDER
        ]
        return await self.generator.generate_all(compiled)

    async def _record_usage(self, draft_id: str, generations: Iterable[SectionGeneration]) -> None:
        """Runs after the commit, so a ledger failure is logged rather than raised."""
        if self.usage is None:
            return
        for generation in generations:
            try:
                await self.usage.save_usage(usage_record(draft_id, generation, GenerationOperation.GENERATE))
            except Exception as e:
                logger.warning(
                    "Failed to record usage for draft %s section %s: %s", draft_id, generation.section.value, e
                )
