"""Inbound content gating and outbound redaction."""

from karat.orchestrator.security.content_filter import (
    REDACTION_PLACEHOLDER,
    ContentFilterResult,
    FilterCategory,
    classify,
    redact,
)

__all__ = [
    "ContentFilterResult",
    "FilterCategory",
    "REDACTION_PLACEHOLDER",
    "classify",
    "redact",
]
