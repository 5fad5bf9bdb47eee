"""Inbound content gate and outbound redaction.

``classify`` runs an ordered battery of pattern checks over a raw user
message and returns the first failing verdict. Destructive-operation and
injection checks run before toxicity so the most actionable reason is the
one reported. Rejections are return values, never exceptions.

``redact`` runs on outbound assistant text only.
"""

import logging
import re
from enum import Enum

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_COUNT = 5

REDACTION_PLACEHOLDER = "[REDACTED]"


class FilterCategory(str, Enum):
    """Why a message was rejected."""

    prompt_injection = "prompt_injection"
    destructive_operation = "destructive_operation"
    batch_abuse = "batch_abuse"
    offensive = "offensive"
    pii_extraction = "pii_extraction"


class ContentFilterResult(BaseModel):
    """Verdict for one message."""

    safe: bool
    category: FilterCategory | None = None
    reason: str | None = None
    confidence: float = 1.0


SAFE = ContentFilterResult(safe=True, confidence=1.0)

_INJECTION_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"ignore\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|commands?)",
        r"forget\s+(everything|all|previous|above)",
        r"disregard\s+(previous|above|all)\s+instructions?",
        r"new\s+instructions?:",
        r"system\s*:\s*you\s+are",
        r"\[system\]",
        r"<\|system\|>",
        r"reset\s+your\s+(instructions?|prompts?|system)",
        r"override\s+(system|instructions?|rules?)",
        r"you\s+must\s+(now|always)\s+",
        r"from\s+now\s+on,?\s+you",
        r"pretend\s+(to\s+be|you\s+are)",
        r"act\s+as\s+(if\s+)?you",
        r"sudo\s+mode",
        r"developer\s+mode",
        r"jailbreak",
        r"DAN\s+mode",
    )
)

_DESTRUCTIVE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"drop\s+(table|database|schema)",
        r"delete\s+from\s+\w+",
        r"truncate\s+(table\s+)?\w+",
        r"update\s+\w+\s+set.*where\s+1\s*=\s*1",
        r";\s*drop\s+",
        r"exec\s*\(",
        r"execute\s+immediate",
        r"delete\s+(all|everything)",
        r"(remove|erase|wipe)\s+(all|every|entire)\s+(data|database|records?|invoices?|customers?)",
        r"destroy\s+(all|everything)",
    )
)

_BATCH_PATTERN = re.compile(
    r"\b(create|generate|add|make)\s+(\d+)\s+(invoices?|customers?|items?)\b",
    re.IGNORECASE,
)

_OFFENSIVE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(fuck|shit|bitch|asshole|bastard|damn|crap)\b",
        r"\b(idiot|stupid|dumb|moron)\b.*\b(you|assistant|ai|system)\b",
        r"\bsucks?\b",
        r"racist|sexist|homophobic",
        r"(dirty|explicit|nsfw)\s+(joke|content|story)",
    )
)

_PII_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"show\s+(me\s+)?(all|every|entire)\s+(phone\s+numbers?|emails?|addresses?|customers?)",
        r"list\s+(all|every)\s+(phone\s+numbers?|emails?|addresses?|customers?)",
        r"export\s+(all|every|entire)\s+",
        r"dump\s+(database|data|customers?)",
        r"give\s+me\s+(everyone'?s?|all)\s+(contact|phone|email|address)",
        r"(owner|admin|manager)'?s?\s+(phone|email|password|contact)",
    )
)

# Applied in order; card numbers before the shorter national-id shape
_REDACTION_PATTERNS = (
    re.compile(r"\b(password|api_key|secret|token)\s*[:=]\s*(?!\[REDACTED\])\S+", re.IGNORECASE),
    re.compile(r"\b\d{4}[- ]?\d{4}[- ]?\d{4}[- ]?\d{4}\b"),
    re.compile(r"\b\d{4}\s?\d{4}\s?\d{4}\b"),
)


def _first_match(patterns: tuple[re.Pattern, ...], text: str) -> bool:
    return any(p.search(text) for p in patterns)


def _check_injection(text: str) -> ContentFilterResult:
    if _first_match(_INJECTION_PATTERNS, text):
        return ContentFilterResult(
            safe=False,
            category=FilterCategory.prompt_injection,
            reason="Potential prompt injection detected. Please rephrase your request.",
            confidence=0.9,
        )
    return SAFE


def _check_destructive(text: str) -> ContentFilterResult:
    if _first_match(_DESTRUCTIVE_PATTERNS, text):
        return ContentFilterResult(
            safe=False,
            category=FilterCategory.destructive_operation,
            reason="Destructive operations are not allowed through the assistant.",
            confidence=0.95,
        )
    return SAFE


def _check_batch(text: str, max_batch_count: int) -> ContentFilterResult:
    for match in _BATCH_PATTERN.finditer(text):
        count = int(match.group(2))
        if count > max_batch_count:
            return ContentFilterResult(
                safe=False,
                category=FilterCategory.batch_abuse,
                reason=(
                    f"Bulk operations are limited to {max_batch_count} at a time. "
                    f"You requested {count}. Please create them in smaller batches."
                ),
                confidence=1.0,
            )
    return SAFE


def _check_offensive(text: str) -> ContentFilterResult:
    if _first_match(_OFFENSIVE_PATTERNS, text):
        return ContentFilterResult(
            safe=False,
            category=FilterCategory.offensive,
            reason="Please keep conversations professional and respectful.",
            confidence=0.8,
        )
    return SAFE


def _check_pii(text: str) -> ContentFilterResult:
    if _first_match(_PII_PATTERNS, text):
        return ContentFilterResult(
            safe=False,
            category=FilterCategory.pii_extraction,
            reason="Bulk data extraction is not permitted for privacy and security reasons.",
            confidence=0.85,
        )
    return SAFE


def classify(
    text: str, max_batch_count: int = DEFAULT_MAX_BATCH_COUNT
) -> ContentFilterResult:
    """Classify an inbound message.

    Args:
        text: Raw user message.
        max_batch_count: Largest N accepted in "create N invoices" phrasing.

    Returns:
        The first failing check's verdict, or a safe verdict.
    """
    checks = (
        _check_injection,
        _check_destructive,
        lambda t: _check_batch(t, max_batch_count),
        _check_offensive,
        _check_pii,
    )
    for check in checks:
        result = check(text)
        if not result.safe:
            logger.warning(
                "Content filter rejected message: category=%s confidence=%.2f",
                result.category.value if result.category else None,
                result.confidence,
            )
            return result
    return SAFE


def redact(text: str) -> str:
    """Mask credentials, card numbers and national-id numbers in outbound text.

    Idempotent: ``redact(redact(x)) == redact(x)``.
    """
    filtered = text
    for pattern in _REDACTION_PATTERNS:
        filtered = pattern.sub(REDACTION_PLACEHOLDER, filtered)
    return filtered

