"""Structured logging for machine-parseable audit trail."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
from structlog.processors import JSONRenderer
from structlog.typing import Processor

_configured = False
_logger: structlog.BoundLogger | None = None


def configure_audit_logging(log_dir: str) -> None:
    """One-time setup at process start. Writes JSON lines to {log_dir}/audit.jsonl."""
    global _configured, _logger
    if _configured:
        return
    audit_path = Path(log_dir) / "audit.jsonl"
    audit_path.parent.mkdir(parents=True, exist_ok=True)
    file_handle = open(audit_path, "a", encoding="utf-8")

    def _file_logger_factory(*args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file_handle)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=_file_logger_factory,
        cache_logger_on_first_use=True,
    )
    _configured = True
    _logger = structlog.get_logger()


def reset_audit_logging() -> None:
    """Drop the configured audit logger (used by tests)."""
    global _configured, _logger
    _configured = False
    _logger = None
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def bind_request(draft_id: str, actor: str) -> None:
    """Bind request context so every event includes draft_id and actor."""
    structlog.contextvars.bind_contextvars(draft_id=draft_id, actor=actor)


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()


def log_generation_call(
    section: str,
    status: str,
    operation: str,
    *,
    model: str | None = None,
    latency_ms: int | None = None,
    tokens_in: int | None = None,
    tokens_out: int | None = None,
    cost_usd: float | None = None,
    error: str | None = None,
    raw_response: str | None = None,
) -> None:
    """Log a generation-service call event."""
    payload: dict[str, Any] = {"section": section, "status": status, "operation": operation}
    if model is not None:
        payload["model"] = model
    if latency_ms is not None:
        payload["latency_ms"] = latency_ms
    if tokens_in is not None:
        payload["tokens_in"] = tokens_in
    if tokens_out is not None:
        payload["tokens_out"] = tokens_out
    if cost_usd is not None:
        payload["cost_usd"] = cost_usd
    if error is not None:
        payload["error"] = error
    if raw_response is not None and len(raw_response) < 500:
        payload["raw_response"] = raw_response
    elif raw_response is not None:
        payload["raw_response_preview"] = raw_response[:200] + "..."
    if _logger is not None:
        _logger.info("generation_call", **payload)


def log_draft_transition(draft_id: str, action: str, state: str, **summary: Any) -> None:
    """Log a draft lifecycle transition (create|reuse|commit_generation|record_error|commit_refinement)."""
    if _logger is not None:
        _logger.info("draft_transition", draft_id=draft_id, action=action, state=state, **summary)


def load_events_from_jsonl(jsonl_path: str) -> list[dict[str, Any]]:
    """Read audit events back, skipping malformed lines."""
    path = Path(jsonl_path)
    if not path.exists():
        return []
    events: list[dict[str, Any]] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            events.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return events
