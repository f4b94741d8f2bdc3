"""Build the single grounding context handed to the generation service.

Available source texts are concatenated with an explicit document separator
so the model can tell where one piece of evidence ends and the next begins.
"""

from __future__ import annotations

import logging
from typing import Iterable

from draftsmith.errors import EmptyContext
from draftsmith.models import SourceText

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = "\n\n========== NEXT DOCUMENT ==========\n\n"
MIN_CONTEXT_CHARS = 50


def build_context(sources: Iterable[SourceText], min_chars: int = MIN_CONTEXT_CHARS) -> str:
    """Join non-blank source texts; raise EmptyContext when too little remains."""
    texts = [s.text for s in sources if s.available]
    if not texts:
        raise EmptyContext(
            "No source files with extractable text available. "
            "Upload text documents or run text extraction on PDF/image files."
        )
    context = DOCUMENT_SEPARATOR.join(t.strip() for t in texts)
    if len(context.strip()) < min_chars:
        raise EmptyContext(
            f"Insufficient content in source files. Context must be at least {min_chars} characters."
        )
    logger.debug("Built context from %d document(s), %d chars", len(texts), len(context))
    return context
