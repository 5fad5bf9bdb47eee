"""Redaction for log lines and persisted error messages.

Two entry points:

- ``redact_for_logging`` copies a dict (e.g. raw provider output for a
  rejected bill) with credential and tax-identity values replaced and
  phone numbers masked down to their last four digits.
- ``sanitize_error_message`` scrubs free text before it is stored on an
  action row or an audit entry.
"""

import re
from typing import Any

REDACTED = "***REDACTED***"

# Key substrings whose values are dropped entirely (case-insensitive)
SECRET_KEY_PARTS = frozenset({
    "secret", "token", "authorization", "api_key", "password", "credential",
    "gstin", "gst_number", "aadhaar", "pan_number", "card_number",
})

# Keys whose whole value goes, whatever its type
_CONTAINER_KEYS = frozenset({"credentials", "headers"})

# Counters that merely look like secrets
_ALLOWED_KEYS = frozenset({"tokens_used"})

_PHONE_KEY_PART = "phone"

_SECRET_WORDS = r"secret|token|password|api_key|authorization|credential"

_FREE_TEXT_PATTERNS = (
    re.compile(r"(?i)Authorization\s*:\s*Bearer\s+\S+"),
    re.compile(r'(?i)"(?:' + _SECRET_WORDS + r')"\s*:\s*"[^"]*"'),
    re.compile(r"(?i)\b(?:" + _SECRET_WORDS + r")\s*[=:]\s*\S+"),
    # GSTIN: state code, PAN, entity number, Z, checksum
    re.compile(r"\b\d{2}[A-Z]{5}\d{4}[A-Z][1-9A-Z]Z[0-9A-Z]\b"),
)

_MOBILE_PATTERN = re.compile(r"(?<!\d)(?:\+?91[- ]?)?([6-9]\d{5})(\d{4})(?!\d)")


def mask_phone(value: Any) -> Any:
    """Keep only the last four digits of a phone number."""
    if not isinstance(value, str):
        return value
    digits = re.sub(r"\D", "", value)
    if len(digits) < 4:
        return REDACTED
    return "*" * (len(digits) - 4) + digits[-4:]


def _is_secret_key(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in _ALLOWED_KEYS:
        return False
    return any(part in key_lower for part in SECRET_KEY_PARTS)


def redact_for_logging(obj: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``obj`` that is safe to write to a log line.

    Nested dicts and dicts inside lists are walked. The input is not
    mutated.
    """
    result: dict[str, Any] = {}
    for key, value in obj.items():
        key_lower = key.lower()
        if key_lower in _CONTAINER_KEYS or _is_secret_key(key):
            result[key] = REDACTED
        elif _PHONE_KEY_PART in key_lower:
            result[key] = mask_phone(value)
        elif isinstance(value, dict):
            result[key] = redact_for_logging(value)
        elif isinstance(value, list):
            result[key] = [
                redact_for_logging(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value
    return result


def sanitize_error_message(msg: str | None, max_length: int = 2000) -> str | None:
    """Scrub secrets, GSTINs and mobile numbers from free text, then truncate.

    None passes through.
    """
    if msg is None:
        return None
    sanitized = msg
    for pattern in _FREE_TEXT_PATTERNS:
        sanitized = pattern.sub(REDACTED, sanitized)
    sanitized = _MOBILE_PATTERN.sub(lambda m: "******" + m.group(2), sanitized)
    if len(sanitized) > max_length:
        sanitized = sanitized[: max_length - 3] + "..."
    return sanitized
