"""CLI entry point."""

from __future__ import annotations

# Set certifi CA bundle for SSL before any HTTP libs load (fixes macOS/python.org cert issues)
import os

import certifi

os.environ.setdefault("SSL_CERT_FILE", certifi.where())
os.environ.setdefault("REQUESTS_CA_BUNDLE", certifi.where())

import argparse
import asyncio
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from draftsmith.config import load_settings, validate_secret_env
from draftsmith.db import (
    DraftRepository,
    SourceFileRepository,
    TemplateRepository,
    get_db,
)
from draftsmith.drafting import DraftPipeline, load_template_file
from draftsmith.errors import DraftNotFound, DraftPipelineError
from draftsmith.llm import build_backend, build_rate_limiter
from draftsmith.models import SECTION_ORDER, OcrStatus, SettingsConfig, SourceFileRecord
from draftsmith.sources import StoredSourceProvider
from draftsmith.sources.extractor import read_local_text
from draftsmith.utils.logging_config import LogLevel, setup_logging
from draftsmith.utils.structured_log import configure_audit_logging


def _parse_vars(pairs: Sequence[str]) -> dict[str, str]:
    variables: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Variable must be NAME=VALUE, got: {pair}")
        name, value = pair.split("=", 1)
        variables[name.strip()] = value
    return variables


def _build_pipeline(db, settings: SettingsConfig) -> DraftPipeline:
    drafts = DraftRepository(db)
    return DraftPipeline(
        templates=TemplateRepository(db),
        drafts=drafts,
        sources=StoredSourceProvider(SourceFileRepository(db)),
        backend=build_backend(settings.generation),
        generation=settings.generation,
        validation=settings.validation,
        rate_limiter=build_rate_limiter(settings.generation),
        history=drafts,
        usage=drafts,
    )


async def _run_seed_template(path: str, settings: SettingsConfig, console: Console) -> None:
    template = load_template_file(path)
    async with get_db(settings.storage.db_path) as db:
        await TemplateRepository(db).save_template(template)
    console.print(f"[green]Template saved:[/] {template.template_id} ({template.name})")


async def _run_add_source(
    matter_id: str, path: str, file_id: str | None, settings: SettingsConfig, console: Console
) -> None:
    source = Path(path)
    if not source.is_file():
        raise FileNotFoundError(f"Missing source file: {path}")
    text = await asyncio.to_thread(read_local_text, source)
    record = SourceFileRecord(
        matter_id=matter_id,
        file_id=file_id or source.name,
        name=source.name,
        file_type=source.suffix.lstrip(".").lower() or "txt",
        ocr_status=OcrStatus.DONE if text is not None else OcrStatus.PENDING,
        ocr_text=text,
    )
    async with get_db(settings.storage.db_path) as db:
        await SourceFileRepository(db).save_file(record)
    status = "[green]text extracted[/]" if text is not None else "[yellow]awaiting OCR[/]"
    console.print(f"Added {record.name} to matter {matter_id} as {record.file_id} ({status})")


async def _run_generate(args: argparse.Namespace, settings: SettingsConfig, console: Console) -> None:
    async with get_db(settings.storage.db_path) as db:
        pipeline = _build_pipeline(db, settings)
        result = await pipeline.generate_draft(
            template_id=args.template,
            matter_id=args.matter,
            variables=_parse_vars(args.var),
            actor=args.actor,
            source_file_ids=args.file_id,
            draft_id=args.draft_id,
        )
    for name in SECTION_ORDER:
        console.print(Panel(result.sections[name.value], title=name.value, expand=False))
    console.print(f"[green]Draft generated:[/] {result.draft_id} ({result.tokens_used} tokens)")


async def _run_refine(args: argparse.Namespace, settings: SettingsConfig, console: Console) -> None:
    async with get_db(settings.storage.db_path) as db:
        pipeline = _build_pipeline(db, settings)
        result = await pipeline.refine_section(
            draft_id=args.draft_id,
            section=args.section,
            instruction=args.instruction,
            keep_existing_content=not args.rewrite,
            actor=args.actor,
        )
    console.print(Panel(result.content, title=args.section, expand=False))
    if result.fell_back:
        console.print("[yellow]Note:[/] refined content was rejected; the previous content was kept.")
    console.print(f"[green]Section refined[/] ({result.tokens_used} tokens)")


async def _run_show(draft_id: str, settings: SettingsConfig, console: Console) -> None:
    async with get_db(settings.storage.db_path) as db:
        repo = DraftRepository(db)
        draft = await repo.get_draft(draft_id)
        if draft is None:
            raise DraftNotFound(draft_id)
        tokens, cost = await repo.get_usage_totals(draft_id)
        refinements = await repo.list_refinements(draft_id)

    table = Table(title=f"Draft {draft.draft_id}")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("template_id", draft.template_id)
    table.add_row("matter_id", draft.matter_id)
    table.add_row("state", draft.state.value)
    table.add_row("error", draft.error or "")
    table.add_row("source_files", ", ".join(draft.source_file_ids))
    table.add_row("last_generated_at", str(draft.last_generated_at or ""))
    table.add_row("last_edited", f"{draft.last_edited_at or ''} by {draft.last_edited_by}")
    table.add_row("tokens / cost", f"{tokens} / ${cost:.4f}")
    table.add_row("refinements", str(len(refinements)))
    console.print(table)
    for name in SECTION_ORDER:
        section = draft.section(name)
        console.print(Panel(section.content or "[dim](empty)[/]", title=f"{name.value} v{section.version}", expand=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="draftsmith")
    parser.add_argument("--settings", default="config/settings.yaml")
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument("--debug", "-d", action="store_true")
    sub = parser.add_subparsers(dest="command")

    seed = sub.add_parser("seed-template", help="Load a template YAML file into the store")
    seed.add_argument("path")

    add_source = sub.add_parser("add-source", help="Register a source file for a matter")
    add_source.add_argument("--matter", required=True)
    add_source.add_argument("--file-id", help="Defaults to the file name")
    add_source.add_argument("path")

    generate = sub.add_parser("generate", help="Generate all four sections of a draft")
    generate.add_argument("--template", required=True)
    generate.add_argument("--matter", required=True)
    generate.add_argument("--var", action="append", default=[], metavar="NAME=VALUE")
    generate.add_argument("--file-id", action="append", default=[], help="Repeatable; defaults to every matter file")
    generate.add_argument("--draft-id", help="Regenerate into an existing draft")
    generate.add_argument("--actor", default="cli")

    refine = sub.add_parser("refine", help="Refine one section of a draft")
    refine.add_argument("--draft-id", required=True)
    refine.add_argument("--section", required=True, choices=[name.value for name in SECTION_ORDER])
    refine.add_argument("--instruction", required=True)
    refine.add_argument("--rewrite", action="store_true", help="Rewrite instead of expanding the existing content")
    refine.add_argument("--actor", default="cli")

    show = sub.add_parser("show", help="Print a draft")
    show.add_argument("--draft-id", required=True)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    console = Console()
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = load_settings(args.settings)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        return 1

    level = LogLevel.DETAILED if args.verbose else LogLevel(settings.logging.level)
    setup_logging(level, log_file=settings.logging.log_file, debug=args.debug)
    if settings.logging.audit_log_dir:
        configure_audit_logging(settings.logging.audit_log_dir)

    if args.command in ("generate", "refine"):
        missing = validate_secret_env(settings)
        if missing:
            console.print(f"[red]Error:[/] Missing environment variable(s): {', '.join(missing)}")
            return 1

    try:
        if args.command == "seed-template":
            asyncio.run(_run_seed_template(args.path, settings, console))
        elif args.command == "add-source":
            asyncio.run(_run_add_source(args.matter, args.path, args.file_id, settings, console))
        elif args.command == "generate":
            asyncio.run(_run_generate(args, settings, console))
        elif args.command == "refine":
            asyncio.run(_run_refine(args, settings, console))
        elif args.command == "show":
            asyncio.run(_run_show(args.draft_id, settings, console))
    except DraftPipelineError as e:
        console.print(f"[red]Error ({e.code}):[/] {e.message}")
        return 1
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
