"""Draft lifecycle record and its transitions.

    generating --commit_generation--> editing
    generating --record_error(to_editing)--> editing
    editing/final --commit_refinement--> editing

Every write is targeted at the fields the transition owns, so concurrent
refinements of different sections never overwrite each other.
"""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional, Sequence

from draftsmith.db.base import DraftStore
from draftsmith.errors import DraftInputMismatch, DraftNotFound
from draftsmith.models import SECTION_ORDER, Draft, SectionName
from draftsmith.utils.logging_config import get_logger
from draftsmith.utils.structured_log import log_draft_transition

logger = get_logger(__name__)


class DraftStateManager:
    def __init__(self, store: DraftStore):
        self.store = store

    async def create(
        self,
        template_id: str,
        matter_id: str,
        variables: Mapping[str, Any],
        actor: str,
        draft_id: Optional[str] = None,
        source_file_ids: Sequence[str] = (),
    ) -> Draft:
        """Create a draft in ``generating``, or continue into an existing one.

        An existing ``draft_id`` keeps its record and state; only the
        generation inputs are refreshed. Re-entering with a different
        template or matter raises ``DraftInputMismatch`` and writes nothing.
        """
        if draft_id:
            existing = await self.store.get_draft(draft_id)
            if existing is not None:
                if existing.template_id != template_id:
                    raise DraftInputMismatch(draft_id, "template", existing.template_id, template_id)
                if existing.matter_id != matter_id:
                    raise DraftInputMismatch(draft_id, "matter", existing.matter_id, matter_id)
                await self.store.update_generation_inputs(draft_id, variables, source_file_ids)
                logger.info("Continuing generation into existing draft %s", draft_id)
                log_draft_transition(draft_id, "reuse", existing.state.value)
                return await self.load(draft_id)
        new_id = draft_id or str(uuid.uuid4())
        draft = await self.store.insert_draft(
            new_id, template_id, matter_id, variables, actor, source_file_ids
        )
        logger.info("Created draft %s (template=%s, matter=%s)", new_id, template_id, matter_id)
        log_draft_transition(new_id, "create", draft.state.value, template_id=template_id)
        return draft

    async def load(self, draft_id: str) -> Draft:
        draft = await self.store.get_draft(draft_id)
        if draft is None:
            raise DraftNotFound(draft_id)
        return draft

    async def commit_generation(self, draft_id: str, sections: Mapping[SectionName, str]) -> None:
        """Write all four sections at once, move to ``editing`` and clear ``error``."""
        missing = [name.value for name in SECTION_ORDER if name not in sections]
        if missing:
            raise ValueError(f"commit_generation requires all sections; missing: {', '.join(missing)}")
        await self.store.write_all_sections(draft_id, sections)
        log_draft_transition(draft_id, "commit_generation", "editing")

    async def record_error(self, draft_id: str, message: str, transition_to_editing: bool) -> None:
        await self.store.set_error(draft_id, message, to_editing=transition_to_editing)
        logger.warning("Draft %s error recorded: %s", draft_id, message)
        log_draft_transition(
            draft_id,
            "record_error",
            "editing" if transition_to_editing else "unchanged",
            error=message,
        )

    async def commit_refinement(
        self,
        draft_id: str,
        section: SectionName,
        content: str,
        actor: str,
        expected_version: Optional[int] = None,
    ) -> None:
        """Write one section; raises ConcurrentModification on a stale version."""
        await self.store.write_section(draft_id, section, content, actor, expected_version)
        log_draft_transition(draft_id, "commit_refinement", "editing", section=section.value, actor=actor)
