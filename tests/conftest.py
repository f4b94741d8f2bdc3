"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from draftsmith.db import DraftRepository, SourceFileRepository, TemplateRepository, get_db
from draftsmith.drafting import DraftPipeline
from draftsmith.models import GenerationConfig, OcrStatus, ValidationConfig
from draftsmith.sources import StoredSourceProvider
from draftsmith.utils.structured_log import reset_audit_logging
from tests.fixtures.drafting import CASE_TEXT, MEDICAL_TEXT, ScriptedBackend, make_source, make_template


@pytest.fixture(autouse=True)
def _reset_audit_log():
    yield
    reset_audit_logging()


@pytest_asyncio.fixture
async def db(tmp_path):
    async with get_db(str(tmp_path / "drafts.db")) as conn:
        yield conn


@pytest.fixture
def draft_repo(db) -> DraftRepository:
    return DraftRepository(db)


@pytest.fixture
def template_repo(db) -> TemplateRepository:
    return TemplateRepository(db)


@pytest.fixture
def source_repo(db) -> SourceFileRepository:
    return SourceFileRepository(db)


@pytest_asyncio.fixture
async def seeded(template_repo, source_repo):
    """One active template and a matter with two extracted files and one pending."""
    await template_repo.save_template(make_template())
    await source_repo.save_file(make_source("incident", CASE_TEXT))
    await source_repo.save_file(make_source("medical", MEDICAL_TEXT))
    await source_repo.save_file(make_source("scan", None, status=OcrStatus.PENDING))
    return {"template_id": "tpl-slip", "matter_id": "matter-1"}


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def make_pipeline(template_repo, draft_repo, source_repo):
    def _make(backend, **overrides) -> DraftPipeline:
        return DraftPipeline(
            templates=template_repo,
            drafts=draft_repo,
            sources=StoredSourceProvider(source_repo),
            backend=backend,
            generation=overrides.get("generation", GenerationConfig(call_timeout_seconds=5)),
            validation=overrides.get("validation", ValidationConfig()),
            history=draft_repo,
            usage=draft_repo,
        )

    return _make
