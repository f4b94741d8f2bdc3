"""
Pipeline Errors

Typed failures surfaced by the draft pipeline. Every error carries a
human-readable message suitable for the draft's sticky ``error`` field.
"""

from __future__ import annotations

from typing import Iterable, Optional


class DraftPipelineError(Exception):
    """Base exception for pipeline errors"""

    code = "pipeline_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Precondition failures: raised before any generation call.


class EmptyContext(DraftPipelineError):
    """Raised when no usable source text is available"""

    code = "empty_context"


class InvalidTemplate(DraftPipelineError):
    """Raised when a template is missing, inactive or malformed"""

    code = "invalid_template"


class MissingRequiredVariable(DraftPipelineError):
    """Raised when required template variables have no bound value"""

    code = "missing_required_variable"

    def __init__(self, names: Iterable[str]):
        self.names = sorted(names)
        super().__init__(
            "Missing required template variable(s): " + ", ".join(self.names)
        )


# Generation-service failures.


class GenerationServiceError(DraftPipelineError):
    """Raised for generation-service failures with no more specific class"""

    code = "generation_service_error"


class RateLimited(GenerationServiceError):
    code = "rate_limited"

    def __init__(self, retry_after: Optional[float] = None, message: Optional[str] = None):
        self.retry_after = retry_after
        hint = int(retry_after) if retry_after is not None else 60
        super().__init__(
            message or f"Generation service rate limit exceeded. Please retry after {hint} seconds."
        )


class ContextTooLarge(GenerationServiceError):
    code = "context_too_large"

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "Context too long. Please reduce the number of source files or their size."
        )


class AuthFailure(GenerationServiceError):
    code = "auth_failure"

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "Generation service authentication failed. Please check the API key."
        )


class EmptyResult(GenerationServiceError):
    code = "empty_result"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Generation service returned empty content.")


class ValidationFailed(DraftPipelineError):
    """Generated content failed quality checks.

    Recovered locally and never raised by the pipeline; ``ContentCheck.code``
    carries this code for rejected content.
    """

    code = "validation_failed"


# Draft store failures.


class DraftNotFound(DraftPipelineError):
    code = "draft_not_found"

    def __init__(self, draft_id: str):
        self.draft_id = draft_id
        super().__init__(f"Draft {draft_id} not found")


class DraftInputMismatch(DraftPipelineError):
    """Raised when an existing draft is re-entered with another template or matter"""

    code = "draft_input_mismatch"

    def __init__(self, draft_id: str, field: str, recorded: str, requested: str):
        self.draft_id = draft_id
        self.field = field
        super().__init__(
            f"Draft {draft_id} belongs to {field} '{recorded}', not '{requested}'. "
            "Start a new draft to use a different template or matter."
        )


class ConcurrentModification(DraftPipelineError):
    """Raised when a section changed between load and commit"""

    code = "concurrent_modification"

    def __init__(self, draft_id: str, section: str):
        self.draft_id = draft_id
        self.section = section
        super().__init__(
            f"Section '{section}' of draft {draft_id} was modified by another request. Reload and try again."
        )


PRECONDITION_ERRORS = (EmptyContext, InvalidTemplate, MissingRequiredVariable, DraftInputMismatch)
