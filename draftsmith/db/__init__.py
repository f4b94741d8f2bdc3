"""Persistence: SQLite connection helpers and typed repositories."""

from .base import DraftStore, RefinementLedger, TemplateStore, UsageLedger
from .database import get_db, run_migrations
from .repositories import DraftRepository, SourceFileRepository, TemplateRepository

__all__ = [
    "DraftRepository",
    "DraftStore",
    "RefinementLedger",
    "SourceFileRepository",
    "TemplateRepository",
    "TemplateStore",
    "UsageLedger",
    "get_db",
    "run_migrations",
]
