"""Document-store protocols the pipeline depends on.

Each deployment target supplies its own adapter; the aiosqlite repositories in
``draftsmith.db.repositories`` satisfy all of them.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from draftsmith.models import Draft, RefinementRecord, SectionName, UsageRecord


@runtime_checkable
class TemplateStore(Protocol):
    async def get_template_data(self, template_id: str) -> Optional[Dict[str, Any]]:
        """Return the raw stored template document, or None when absent."""
        ...


@runtime_checkable
class DraftStore(Protocol):
    """Key-value draft documents with targeted field writes."""

    async def insert_draft(
        self,
        draft_id: str,
        template_id: str,
        matter_id: str,
        variables: Mapping[str, Any],
        actor: str,
        source_file_ids: Sequence[str],
    ) -> Draft: ...

    async def get_draft(self, draft_id: str) -> Optional[Draft]: ...

    async def update_generation_inputs(
        self,
        draft_id: str,
        variables: Mapping[str, Any],
        source_file_ids: Sequence[str],
    ) -> None: ...

    async def write_all_sections(self, draft_id: str, contents: Mapping[SectionName, str]) -> None:
        """Set all four sections, state=editing and clear error in one commit."""
        ...

    async def set_error(self, draft_id: str, message: str, *, to_editing: bool) -> None: ...

    async def write_section(
        self,
        draft_id: str,
        section: SectionName,
        content: str,
        actor: str,
        expected_version: Optional[int] = None,
    ) -> None:
        """Set one section, audit fields and state=editing.

        Raises ConcurrentModification when expected_version is stale.
        """
        ...


@runtime_checkable
class RefinementLedger(Protocol):
    async def save_refinement(self, record: RefinementRecord) -> None: ...

    async def list_refinements(self, draft_id: str) -> List[RefinementRecord]: ...


@runtime_checkable
class UsageLedger(Protocol):
    async def save_usage(self, record: UsageRecord) -> None: ...
