"""Typed repositories for core persistence operations."""

from __future__ import annotations

import asyncio
import json
import weakref
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

import aiosqlite

from draftsmith.errors import ConcurrentModification, DraftNotFound
from draftsmith.models import (
    SECTION_ORDER,
    Draft,
    DraftState,
    OcrStatus,
    RefinementRecord,
    SectionContent,
    SectionName,
    SourceFileRecord,
    Template,
    UsageRecord,
)

# One write lock per connection: statements from interleaved coroutines on a
# shared connection would otherwise land in each other's transactions.
_WRITE_LOCKS: "weakref.WeakKeyDictionary[aiosqlite.Connection, asyncio.Lock]" = weakref.WeakKeyDictionary()


def _write_lock(db: aiosqlite.Connection) -> asyncio.Lock:
    lock = _WRITE_LOCKS.get(db)
    if lock is None:
        lock = asyncio.Lock()
        _WRITE_LOCKS[db] = lock
    return lock


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _Repository:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self._lock = _write_lock(db)


class TemplateRepository(_Repository):
    async def save_template(self, template: Template) -> None:
        sections = template.sections.model_dump(mode="json")
        variables = [v.model_dump(mode="json") for v in template.variables]
        async with self._lock:
            await self.db.execute(
                """
                INSERT INTO templates (
                    template_id, name, description, sections, variables,
                    is_active, created_by, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(template_id) DO UPDATE SET
                    name=excluded.name,
                    description=excluded.description,
                    sections=excluded.sections,
                    variables=excluded.variables,
                    is_active=excluded.is_active,
                    updated_at=excluded.updated_at
                """,
                (
                    template.template_id,
                    template.name,
                    template.description,
                    json.dumps(sections),
                    json.dumps(variables),
                    1 if template.is_active else 0,
                    template.created_by,
                    template.created_at.isoformat(),
                    _now(),
                ),
            )
            await self.db.commit()

    async def get_template_data(self, template_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored document as a plain dict; JSON columns are decoded
        leniently so the resolver can report malformed content."""
        cursor = await self.db.execute(
            """
            SELECT template_id, name, description, sections, variables,
                   is_active, created_by, created_at, updated_at
            FROM templates WHERE template_id = ?
            """,
            (template_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        def _decode(raw: Any) -> Any:
            if not isinstance(raw, str):
                return raw
            try:
                return json.loads(raw)
            except json.JSONDecodeError:
                return raw

        return {
            "template_id": row["template_id"],
            "name": row["name"],
            "description": row["description"],
            "sections": _decode(row["sections"]),
            "variables": _decode(row["variables"]),
            "is_active": bool(row["is_active"]),
            "created_by": row["created_by"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }


class SourceFileRepository(_Repository):
    async def save_file(self, record: SourceFileRecord) -> None:
        async with self._lock:
            await self.db.execute(
                """
                INSERT INTO source_files (matter_id, file_id, name, file_type, ocr_status, ocr_text)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(matter_id, file_id) DO UPDATE SET
                    name=excluded.name,
                    file_type=excluded.file_type,
                    ocr_status=excluded.ocr_status,
                    ocr_text=excluded.ocr_text
                """,
                (
                    record.matter_id,
                    record.file_id,
                    record.name,
                    record.file_type,
                    record.ocr_status.value if record.ocr_status else None,
                    record.ocr_text,
                ),
            )
            await self.db.commit()

    async def get_file(self, matter_id: str, file_id: str) -> Optional[SourceFileRecord]:
        cursor = await self.db.execute(
            """
            SELECT matter_id, file_id, name, file_type, ocr_status, ocr_text
            FROM source_files WHERE matter_id = ? AND file_id = ?
            """,
            (matter_id, file_id),
        )
        row = await cursor.fetchone()
        return self._row_to_record(row) if row else None

    async def list_file_ids(self, matter_id: str) -> List[str]:
        cursor = await self.db.execute(
            "SELECT file_id FROM source_files WHERE matter_id = ? ORDER BY rowid",
            (matter_id,),
        )
        rows = await cursor.fetchall()
        return [str(row[0]) for row in rows]

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> SourceFileRecord:
        try:
            status = OcrStatus(row["ocr_status"]) if row["ocr_status"] else None
        except ValueError:
            status = None
        return SourceFileRecord(
            matter_id=row["matter_id"],
            file_id=row["file_id"],
            name=row["name"],
            file_type=row["file_type"],
            ocr_status=status,
            ocr_text=row["ocr_text"],
        )


class DraftRepository(_Repository):
    """Draft documents plus their refinement history and usage ledger."""

    async def insert_draft(
        self,
        draft_id: str,
        template_id: str,
        matter_id: str,
        variables: Mapping[str, Any],
        actor: str,
        source_file_ids: Sequence[str],
    ) -> Draft:
        now = _now()
        async with self._lock:
            try:
                await self.db.execute(
                    """
                    INSERT INTO drafts (
                        draft_id, template_id, matter_id, state, variables, source_file_ids,
                        generated_by, last_edited_by, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        draft_id,
                        template_id,
                        matter_id,
                        DraftState.GENERATING.value,
                        json.dumps(dict(variables), default=str),
                        json.dumps(list(source_file_ids)),
                        actor,
                        actor,
                        now,
                        now,
                    ),
                )
                await self.db.executemany(
                    """
                    INSERT OR IGNORE INTO draft_sections (draft_id, section, content, generated_at, version)
                    VALUES (?, ?, '', NULL, 0)
                    """,
                    [(draft_id, name.value) for name in SECTION_ORDER],
                )
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
        draft = await self.get_draft(draft_id)
        if draft is None:  # pragma: no cover
            raise DraftNotFound(draft_id)
        return draft

    async def get_draft(self, draft_id: str) -> Optional[Draft]:
        cursor = await self.db.execute(
            """
            SELECT draft_id, template_id, matter_id, state, variables, source_file_ids,
                   generated_by, last_edited_by, error, created_at, updated_at,
                   last_generated_at, last_edited_at
            FROM drafts WHERE draft_id = ?
            """,
            (draft_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        cursor = await self.db.execute(
            "SELECT section, content, generated_at, version FROM draft_sections WHERE draft_id = ?",
            (draft_id,),
        )
        section_rows = await cursor.fetchall()
        sections: Dict[SectionName, SectionContent] = {name: SectionContent() for name in SECTION_ORDER}
        for srow in section_rows:
            try:
                name = SectionName(srow["section"])
            except ValueError:
                continue
            sections[name] = SectionContent(
                content=srow["content"] or "",
                generated_at=srow["generated_at"],
                version=int(srow["version"] or 0),
            )
        return Draft(
            draft_id=row["draft_id"],
            template_id=row["template_id"],
            matter_id=row["matter_id"],
            state=DraftState(row["state"]),
            sections=sections,
            variables=json.loads(row["variables"] or "{}"),
            source_file_ids=json.loads(row["source_file_ids"] or "[]"),
            generated_by=row["generated_by"],
            last_edited_by=row["last_edited_by"],
            error=row["error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            last_generated_at=row["last_generated_at"],
            last_edited_at=row["last_edited_at"],
        )

    async def update_generation_inputs(
        self,
        draft_id: str,
        variables: Mapping[str, Any],
        source_file_ids: Sequence[str],
    ) -> None:
        async with self._lock:
            cursor = await self.db.execute(
                """
                UPDATE drafts SET variables = ?, source_file_ids = ?, updated_at = ?
                WHERE draft_id = ?
                """,
                (
                    json.dumps(dict(variables), default=str),
                    json.dumps(list(source_file_ids)),
                    _now(),
                    draft_id,
                ),
            )
            if cursor.rowcount == 0:
                await self.db.rollback()
                raise DraftNotFound(draft_id)
            await self.db.commit()

    async def write_all_sections(self, draft_id: str, contents: Mapping[SectionName, str]) -> None:
        missing = [name.value for name in SECTION_ORDER if name not in contents]
        if missing:
            raise ValueError(f"write_all_sections requires every section; missing: {', '.join(missing)}")
        now = _now()
        async with self._lock:
            try:
                cursor = await self.db.execute(
                    """
                    UPDATE drafts SET state = ?, error = NULL, updated_at = ?, last_generated_at = ?
                    WHERE draft_id = ?
                    """,
                    (DraftState.EDITING.value, now, now, draft_id),
                )
                if cursor.rowcount == 0:
                    raise DraftNotFound(draft_id)
                for name in SECTION_ORDER:
                    await self.db.execute(
                        """
                        INSERT INTO draft_sections (draft_id, section, content, generated_at, version)
                        VALUES (?, ?, ?, ?, 1)
                        ON CONFLICT(draft_id, section) DO UPDATE SET
                            content=excluded.content,
                            generated_at=excluded.generated_at,
                            version=draft_sections.version + 1
                        """,
                        (draft_id, name.value, contents[name], now),
                    )
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    async def set_error(self, draft_id: str, message: str, *, to_editing: bool) -> None:
        now = _now()
        async with self._lock:
            if to_editing:
                cursor = await self.db.execute(
                    "UPDATE drafts SET error = ?, state = ?, updated_at = ? WHERE draft_id = ?",
                    (message, DraftState.EDITING.value, now, draft_id),
                )
            else:
                cursor = await self.db.execute(
                    "UPDATE drafts SET error = ?, updated_at = ? WHERE draft_id = ?",
                    (message, now, draft_id),
                )
            if cursor.rowcount == 0:
                await self.db.rollback()
                raise DraftNotFound(draft_id)
            await self.db.commit()

    async def write_section(
        self,
        draft_id: str,
        section: SectionName,
        content: str,
        actor: str,
        expected_version: Optional[int] = None,
    ) -> None:
        now = _now()
        async with self._lock:
            try:
                cursor = await self.db.execute(
                    """
                    UPDATE drafts SET state = ?, last_edited_at = ?, last_edited_by = ?, updated_at = ?
                    WHERE draft_id = ?
                    """,
                    (DraftState.EDITING.value, now, actor, now, draft_id),
                )
                if cursor.rowcount == 0:
                    raise DraftNotFound(draft_id)
                if expected_version is None:
                    await self.db.execute(
                        """
                        INSERT INTO draft_sections (draft_id, section, content, generated_at, version)
                        VALUES (?, ?, ?, ?, 1)
                        ON CONFLICT(draft_id, section) DO UPDATE SET
                            content=excluded.content,
                            generated_at=excluded.generated_at,
                            version=draft_sections.version + 1
                        """,
                        (draft_id, section.value, content, now),
                    )
                else:
                    cursor = await self.db.execute(
                        """
                        UPDATE draft_sections
                        SET content = ?, generated_at = ?, version = version + 1
                        WHERE draft_id = ? AND section = ? AND version = ?
                        """,
                        (content, now, draft_id, section.value, expected_version),
                    )
                    if cursor.rowcount == 0:
                        raise ConcurrentModification(draft_id, section.value)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    async def save_refinement(self, record: RefinementRecord) -> None:
        async with self._lock:
            await self.db.execute(
                """
                INSERT INTO refinement_history (
                    draft_id, section, instruction, keep_existing_content, performed_by,
                    previous_content, new_content, performed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.draft_id,
                    record.section.value,
                    record.instruction,
                    1 if record.keep_existing_content else 0,
                    record.performed_by,
                    record.previous_content,
                    record.new_content,
                    record.performed_at.isoformat() if record.performed_at else _now(),
                ),
            )
            await self.db.commit()

    async def list_refinements(self, draft_id: str) -> List[RefinementRecord]:
        cursor = await self.db.execute(
            """
            SELECT draft_id, section, instruction, keep_existing_content, performed_by,
                   previous_content, new_content, performed_at
            FROM refinement_history WHERE draft_id = ? ORDER BY id
            """,
            (draft_id,),
        )
        rows = await cursor.fetchall()
        return [
            RefinementRecord(
                draft_id=row["draft_id"],
                section=SectionName(row["section"]),
                instruction=row["instruction"],
                keep_existing_content=bool(row["keep_existing_content"]),
                performed_by=row["performed_by"],
                previous_content=row["previous_content"],
                new_content=row["new_content"],
                performed_at=row["performed_at"],
            )
            for row in rows
        ]

    async def save_usage(self, record: UsageRecord) -> None:
        async with self._lock:
            await self.db.execute(
                """
                INSERT INTO usage_records (
                    draft_id, section, operation, model, tokens_in, tokens_out,
                    cost_usd, latency_ms, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.draft_id,
                    record.section.value,
                    record.operation.value,
                    record.model,
                    record.tokens_in,
                    record.tokens_out,
                    record.cost_usd,
                    record.latency_ms,
                    record.created_at.isoformat(),
                ),
            )
            await self.db.commit()

    async def get_usage_totals(self, draft_id: str) -> tuple[int, float]:
        """Return (total tokens, total cost USD) recorded for a draft."""
        cursor = await self.db.execute(
            """
            SELECT COALESCE(SUM(tokens_in + tokens_out), 0), COALESCE(SUM(cost_usd), 0.0)
            FROM usage_records WHERE draft_id = ?
            """,
            (draft_id,),
        )
        row = await cursor.fetchone()
        return int(row[0]), float(row[1])
