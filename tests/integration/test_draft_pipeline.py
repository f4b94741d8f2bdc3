"""
Pipeline round trips against a temporary SQLite database.

The scripted backend stands in for the generation service; everything else
(template store, source files, draft records, ledgers) is the real stack.
"""

from __future__ import annotations

import asyncio

import pytest

from draftsmith.errors import (
    ContextTooLarge,
    DraftInputMismatch,
    DraftNotFound,
    EmptyContext,
    InvalidTemplate,
    MissingRequiredVariable,
    RateLimited,
)
from draftsmith.models import SECTION_ORDER, DraftState, SectionName
from draftsmith.sources import DOCUMENT_SEPARATOR
from tests.fixtures.drafting import (
    CASE_TEXT,
    MEDICAL_TEXT,
    ScriptedBackend,
    make_source,
    make_template,
    section_text,
)

pytestmark = pytest.mark.integration

JANE = {"clientName": "Jane Doe"}


@pytest.mark.asyncio
async def test_generate_round_trip(seeded, make_pipeline, draft_repo) -> None:
    backend = ScriptedBackend(tokens=30)
    pipeline = make_pipeline(backend)

    result = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice")

    draft = await draft_repo.get_draft(result.draft_id)
    assert draft.state == DraftState.EDITING
    assert draft.error is None
    assert draft.source_file_ids == ["incident", "medical", "scan"]
    assert draft.section_texts() == result.sections
    assert result.sections == {name.value: section_text(name.value) for name in SECTION_ORDER}
    assert result.tokens_used == 120
    assert all(draft.section(name).generated_at is not None for name in SECTION_ORDER)

    tokens, _ = await draft_repo.get_usage_totals(result.draft_id)
    assert tokens == 120


@pytest.mark.asyncio
async def test_prompts_carry_bindings_and_context(seeded, make_pipeline) -> None:
    backend = ScriptedBackend()
    await make_pipeline(backend).generate_draft("tpl-slip", "matter-1", JANE, "alice")

    assert len(backend.calls) == 4
    facts_call = next(c for c in backend.calls if c["section"] == "facts")
    assert "Draft the facts for Jane Doe." in facts_call["instruction"]
    assert "against the property owner" in facts_call["instruction"]
    assert f"{CASE_TEXT}{DOCUMENT_SEPARATOR}{MEDICAL_TEXT}" in facts_call["user_context"]
    assert facts_call["temperature"] == 0.7
    assert facts_call["max_output_tokens"] == 2000


@pytest.mark.asyncio
async def test_empty_context_persists_no_content(template_repo, source_repo, make_pipeline, draft_repo) -> None:
    await template_repo.save_template(make_template())
    await source_repo.save_file(make_source("scan", None, matter_id="matter-2"))
    backend = ScriptedBackend()

    with pytest.raises(EmptyContext):
        await make_pipeline(backend).generate_draft(
            "tpl-slip", "matter-2", JANE, "alice", draft_id="d-empty"
        )

    assert backend.calls == []
    draft = await draft_repo.get_draft("d-empty")
    assert draft.state == DraftState.GENERATING
    assert "No source files" in draft.error
    assert all(text == "" for text in draft.section_texts().values())


@pytest.mark.asyncio
async def test_missing_required_variable_blocks_generation(seeded, make_pipeline, draft_repo) -> None:
    backend = ScriptedBackend()
    with pytest.raises(MissingRequiredVariable) as excinfo:
        await make_pipeline(backend).generate_draft("tpl-slip", "matter-1", {}, "alice", draft_id="d-vars")
    assert excinfo.value.names == ["clientName"]
    assert backend.calls == []
    draft = await draft_repo.get_draft("d-vars")
    assert draft.state == DraftState.GENERATING
    assert "clientName" in draft.error


@pytest.mark.asyncio
async def test_inactive_template_rejected(template_repo, make_pipeline) -> None:
    await template_repo.save_template(make_template(template_id="tpl-old", is_active=False))
    with pytest.raises(InvalidTemplate):
        await make_pipeline(ScriptedBackend()).generate_draft("tpl-old", "matter-1", JANE, "alice")


@pytest.mark.asyncio
async def test_one_failed_section_commits_nothing(seeded, make_pipeline, draft_repo) -> None:
    backend = ScriptedBackend()
    pipeline = make_pipeline(backend)
    first = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice")
    before = (await draft_repo.get_draft(first.draft_id)).section_texts()

    backend.replies = {name.value: section_text(name.value, " Second pass.") for name in SECTION_ORDER}
    backend.replies["damages"] = RateLimited(retry_after=20)
    with pytest.raises(RateLimited):
        await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice", draft_id=first.draft_id)

    draft = await draft_repo.get_draft(first.draft_id)
    assert draft.section_texts() == before
    assert draft.state == DraftState.EDITING
    assert "retry after 20 seconds" in draft.error


@pytest.mark.asyncio
async def test_first_generation_failure_moves_to_editing(seeded, make_pipeline, draft_repo) -> None:
    backend = ScriptedBackend({"demand": ContextTooLarge()})
    with pytest.raises(ContextTooLarge):
        await make_pipeline(backend).generate_draft("tpl-slip", "matter-1", JANE, "alice", draft_id="d-big")
    draft = await draft_repo.get_draft("d-big")
    assert draft.state == DraftState.EDITING
    assert draft.error.startswith("Context too long")
    assert all(text == "" for text in draft.section_texts().values())


@pytest.mark.asyncio
async def test_successful_regeneration_clears_error(seeded, make_pipeline, draft_repo) -> None:
    backend = ScriptedBackend({"facts": RateLimited()})
    pipeline = make_pipeline(backend)
    with pytest.raises(RateLimited):
        await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice", draft_id="d-retry")

    backend.replies = {}
    result = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice", draft_id="d-retry")
    assert result.draft_id == "d-retry"
    draft = await draft_repo.get_draft("d-retry")
    assert draft.error is None
    assert draft.section(SectionName.FACTS).content == section_text("facts")


@pytest.mark.asyncio
async def test_degenerate_section_gets_placeholder(seeded, make_pipeline) -> None:
    backend = ScriptedBackend({"liability": "Too short."})
    result = await make_pipeline(backend).generate_draft("tpl-slip", "matter-1", JANE, "alice")
    assert result.sections["liability"] == (
        "[Content generation for liability section encountered an issue. Please regenerate this section.]"
    )
    assert result.sections["facts"] == section_text("facts")


@pytest.mark.asyncio
async def test_reentry_reuses_draft(seeded, make_pipeline, db) -> None:
    pipeline = make_pipeline(ScriptedBackend())
    first = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice", draft_id="d-same")
    second = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "bob", draft_id="d-same")
    assert first.draft_id == second.draft_id == "d-same"
    cursor = await db.execute("SELECT COUNT(*) FROM drafts")
    assert (await cursor.fetchone())[0] == 1


@pytest.mark.asyncio
async def test_reentry_with_other_template_or_matter_is_rejected(
    seeded, make_pipeline, template_repo, source_repo, draft_repo
) -> None:
    await template_repo.save_template(make_template(template_id="tpl-other"))
    await source_repo.save_file(make_source("m2file", CASE_TEXT, matter_id="matter-2"))
    backend = ScriptedBackend()
    pipeline = make_pipeline(backend)
    await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice", draft_id="d1")
    calls_before = len(backend.calls)

    with pytest.raises(DraftInputMismatch):
        await pipeline.generate_draft("tpl-other", "matter-2", JANE, "bob", draft_id="d1")
    with pytest.raises(DraftInputMismatch):
        await pipeline.generate_draft("tpl-slip", "matter-2", JANE, "bob", draft_id="d1")
    assert len(backend.calls) == calls_before

    draft = await draft_repo.get_draft("d1")
    assert (draft.template_id, draft.matter_id) == ("tpl-slip", "matter-1")
    assert draft.source_file_ids == ["incident", "medical", "scan"]
    assert draft.error is None

    backend.replies = {"facts": section_text("facts", " Refined.")}
    result = await pipeline.refine_section("d1", "facts", "Add detail", True, "bob")
    assert result.content == section_text("facts", " Refined.")


@pytest.mark.asyncio
async def test_full_generation_calls_overlap(seeded, make_pipeline) -> None:
    backend = ScriptedBackend(delay=0.05)
    await make_pipeline(backend).generate_draft("tpl-slip", "matter-1", JANE, "alice")
    assert backend.max_in_flight == 4


@pytest.mark.asyncio
async def test_failed_commit_records_error(seeded, make_pipeline, draft_repo, monkeypatch) -> None:
    async def _fail(*args, **kwargs):
        raise RuntimeError("disk I/O error")

    monkeypatch.setattr(draft_repo, "write_all_sections", _fail)
    with pytest.raises(RuntimeError):
        await make_pipeline(ScriptedBackend()).generate_draft("tpl-slip", "matter-1", JANE, "alice", draft_id="d-io")

    draft = await draft_repo.get_draft("d-io")
    assert draft.state == DraftState.EDITING
    assert draft.error == "Draft generation failed: disk I/O error"


@pytest.mark.asyncio
async def test_ledger_failure_does_not_fail_committed_draft(
    seeded, make_pipeline, draft_repo, monkeypatch
) -> None:
    async def _fail(*args, **kwargs):
        raise RuntimeError("usage table locked")

    monkeypatch.setattr(draft_repo, "save_usage", _fail)
    monkeypatch.setattr(draft_repo, "save_refinement", _fail)
    pipeline = make_pipeline(ScriptedBackend({"demand": section_text("demand", " Final.")}))

    result = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice")
    draft = await draft_repo.get_draft(result.draft_id)
    assert draft.state == DraftState.EDITING
    assert draft.section(SectionName.DEMAND).content == section_text("demand", " Final.")

    refined = await pipeline.refine_section(result.draft_id, SectionName.DEMAND, "Shorten", False, "bob")
    assert refined.content == section_text("demand", " Final.")
    assert (await draft_repo.get_draft(result.draft_id)).last_edited_by == "bob"


@pytest.mark.asyncio
async def test_refinement_touches_one_section(seeded, make_pipeline, draft_repo) -> None:
    backend = ScriptedBackend()
    pipeline = make_pipeline(backend)
    generated = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice")

    refined_text = section_text("liability", " Now with notice analysis.")
    backend.replies = {"liability": refined_text}
    result = await pipeline.refine_section(
        generated.draft_id, "liability", "Add constructive notice.", True, "bob"
    )

    assert result.content == refined_text
    assert result.tokens_used == 30
    assert not result.fell_back
    draft = await draft_repo.get_draft(generated.draft_id)
    expected = dict(generated.sections, liability=refined_text)
    assert draft.section_texts() == expected
    assert draft.last_edited_by == "bob"
    assert draft.state == DraftState.EDITING

    refine_call = backend.calls[-1]
    assert "Existing Content:\n" + section_text("liability") in refine_call["instruction"]
    assert "User Instruction: Add constructive notice." in refine_call["instruction"]

    history = await draft_repo.list_refinements(generated.draft_id)
    assert len(history) == 1
    assert history[0].previous_content == section_text("liability")
    assert history[0].new_content == refined_text


@pytest.mark.asyncio
async def test_concurrent_refinements_of_different_sections(seeded, make_pipeline, draft_repo) -> None:
    backend = ScriptedBackend(delay=0.01)
    pipeline = make_pipeline(backend)
    generated = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice")

    backend.replies = {
        "facts": section_text("facts", " Refined by bob."),
        "demand": section_text("demand", " Refined by carol."),
    }
    await asyncio.gather(
        pipeline.refine_section(generated.draft_id, SectionName.FACTS, "More detail", True, "bob"),
        pipeline.refine_section(generated.draft_id, SectionName.DEMAND, "Be firmer", False, "carol"),
    )

    texts = (await draft_repo.get_draft(generated.draft_id)).section_texts()
    assert texts["facts"].endswith("Refined by bob.")
    assert texts["demand"].endswith("Refined by carol.")
    assert texts["liability"] == generated.sections["liability"]
    assert texts["damages"] == generated.sections["damages"]


@pytest.mark.asyncio
async def test_rejected_refinement_keeps_prior_content(seeded, make_pipeline, draft_repo) -> None:
    backend = ScriptedBackend()
    pipeline = make_pipeline(backend)
    generated = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice")

    backend.replies = {"facts": "Error: the model could not read the attached documents for this section."}
    result = await pipeline.refine_section(generated.draft_id, "facts", "Rewrite", False, "bob")

    assert result.fell_back
    assert result.content == generated.sections["facts"]
    draft = await draft_repo.get_draft(generated.draft_id)
    assert draft.section(SectionName.FACTS).content == generated.sections["facts"]
    assert draft.last_edited_by == "bob"


@pytest.mark.asyncio
async def test_rejected_refinement_of_blank_section_uses_placeholder(seeded, make_pipeline) -> None:
    backend = ScriptedBackend({"facts": RateLimited()})
    pipeline = make_pipeline(backend)
    with pytest.raises(RateLimited):
        await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice", draft_id="d-blank")

    backend.replies = {"damages": "short"}
    result = await pipeline.refine_section("d-blank", "damages", "Itemize", True, "bob")
    assert result.content == (
        "[Content refinement for damages section encountered an issue. Please try again.]"
    )


@pytest.mark.asyncio
async def test_failed_refinement_mutates_nothing(seeded, make_pipeline, draft_repo) -> None:
    backend = ScriptedBackend()
    pipeline = make_pipeline(backend)
    generated = await pipeline.generate_draft("tpl-slip", "matter-1", JANE, "alice")
    before = await draft_repo.get_draft(generated.draft_id)

    backend.replies = {"damages": ContextTooLarge()}
    with pytest.raises(ContextTooLarge):
        await pipeline.refine_section(generated.draft_id, "damages", "Add bills", True, "bob")

    after = await draft_repo.get_draft(generated.draft_id)
    assert after.section_texts() == before.section_texts()
    assert after.error is None
    assert after.last_edited_by == "alice"
    assert await draft_repo.list_refinements(generated.draft_id) == []


@pytest.mark.asyncio
async def test_refinement_uses_recorded_source_files(seeded, make_pipeline) -> None:
    backend = ScriptedBackend()
    pipeline = make_pipeline(backend)
    generated = await pipeline.generate_draft(
        "tpl-slip", "matter-1", JANE, "alice", source_file_ids=["incident"]
    )
    await pipeline.refine_section(generated.draft_id, "facts", "Tighten", True, "bob")

    refine_call = backend.calls[-1]
    assert CASE_TEXT in refine_call["user_context"]
    assert MEDICAL_TEXT not in refine_call["user_context"]


@pytest.mark.asyncio
async def test_refine_unknown_draft(seeded, make_pipeline) -> None:
    with pytest.raises(DraftNotFound):
        await make_pipeline(ScriptedBackend()).refine_section("missing", "facts", "x", True, "bob")
