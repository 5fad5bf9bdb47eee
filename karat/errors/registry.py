"""Error code registry with E-XXXX format codes.

Categories:
- E-1xxx: Input errors (rejected messages, oversized payloads)
- E-2xxx: Validation and action-state errors
- E-3xxx: Completion provider errors
- E-4xxx: System/store errors
- E-5xxx: Capability/authentication errors
- E-6xxx: Throttling errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    INPUT = "input"  # E-1xxx
    VALIDATION = "validation"  # E-2xxx
    PROVIDER = "provider"  # E-3xxx
    SYSTEM = "system"  # E-4xxx
    AUTH = "auth"  # E-5xxx
    THROTTLE = "throttle"  # E-6xxx


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Input errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.INPUT,
        title="Message Rejected",
        message_template="{reason}",
        remediation="Rephrase your request and try again.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.INPUT,
        title="Message Too Long",
        message_template="Message is too long. Maximum {limit} characters.",
        remediation="Shorten the message and retry.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.INPUT,
        title="Empty Message",
        message_template="Message is required.",
        remediation="Type a message and retry.",
    ),
    "E-1004": ErrorCode(
        code="E-1004",
        category=ErrorCategory.INPUT,
        title="Unsupported File",
        message_template="Invalid file type '{mime_type}'. Upload a JPEG, PNG, WebP image or PDF.",
        remediation="Upload a supported file type.",
    ),
    "E-1005": ErrorCode(
        code="E-1005",
        category=ErrorCategory.INPUT,
        title="File Too Large",
        message_template="File too large. Maximum size is {limit_mb}MB.",
        remediation="Upload a smaller file.",
    ),
    # Validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Action Invalid",
        message_template="The action has {count} validation error(s).",
        remediation="Correct the highlighted fields and retry.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.VALIDATION,
        title="Invalid State Transition",
        message_template="Cannot move action from '{current}' to '{attempted}'.",
        remediation="Refresh the action and check its current status.",
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        category=ErrorCategory.VALIDATION,
        title="Action Not Executable",
        message_template="Action is not ready for execution (status '{status}').",
        remediation="Only confirmed, valid actions can be executed.",
    ),
    "E-2004": ErrorCode(
        code="E-2004",
        category=ErrorCategory.VALIDATION,
        title="Bill Not Recognized",
        message_template="This does not appear to be a valid purchase bill.",
        remediation="Upload a clear image of a purchase bill or invoice.",
    ),
    "E-2005": ErrorCode(
        code="E-2005",
        category=ErrorCategory.VALIDATION,
        title="Bill Needs Review",
        message_template="Could not extract all required information from the bill.",
        remediation="Review the extracted fields and fill in what is missing.",
    ),
    # Provider errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.PROVIDER,
        title="Assistant Unavailable",
        message_template="AI service temporarily unavailable.",
        remediation="Try again in a moment.",
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.PROVIDER,
        title="Assistant Timeout",
        message_template="The request took too long. Please try again.",
        remediation="Retry the request, or split it into smaller parts.",
        is_retryable=True,
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.PROVIDER,
        title="Provider Rate Limited",
        message_template="AI service is busy. Please try again later.",
        remediation="Wait a few seconds and retry.",
        is_retryable=True,
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Internal Error",
        message_template="An unexpected error occurred: {error}",
        remediation="Retry, and contact support if the problem persists.",
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.SYSTEM,
        title="Firm Profile Missing",
        message_template="User settings not found. Please configure firm details in settings.",
        remediation="Add your firm name and address in settings, then retry.",
    ),
    "E-4003": ErrorCode(
        code="E-4003",
        category=ErrorCategory.SYSTEM,
        title="Invoice Number Conflict",
        message_template="Could not allocate an invoice number after {attempts} attempts.",
        remediation="Retry the action.",
        is_retryable=True,
    ),
    # Capability errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Authentication Required",
        message_template="Authentication required for {mode} mode.",
        remediation="Sign in and retry.",
    ),
    "E-5002": ErrorCode(
        code="E-5002",
        category=ErrorCategory.AUTH,
        title="Action Not Allowed",
        message_template="Action '{action_type}' is not available in {mode} mode.",
        remediation="Switch to the assistant to perform business actions.",
    ),
    # Throttling errors (E-6xxx)
    "E-6001": ErrorCode(
        code="E-6001",
        category=ErrorCategory.THROTTLE,
        title="Too Many Requests",
        message_template="Too many requests. Please wait a moment.",
        remediation="Wait for the rate limit window to reset.",
        is_retryable=True,
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Look up error code definition.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all error codes in a category."""
    return [e for e in ERROR_REGISTRY.values() if e.category == category]


# HTTP status per category, with per-code exceptions
_CATEGORY_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.INPUT: 400,
    ErrorCategory.VALIDATION: 409,
    ErrorCategory.PROVIDER: 503,
    ErrorCategory.SYSTEM: 500,
    ErrorCategory.AUTH: 401,
    ErrorCategory.THROTTLE: 429,
}

_CODE_STATUS: dict[str, int] = {
    "E-1005": 413,
    "E-2004": 422,
    "E-2005": 422,
    "E-3003": 429,
    "E-4002": 409,
    "E-4003": 409,
    "E-5002": 403,
}


def http_status_for(code: str) -> int:
    """HTTP status an API response should use for an error code."""
    if code in _CODE_STATUS:
        return _CODE_STATUS[code]
    error_def = get_error(code)
    if error_def is None:
        return 500
    return _CATEGORY_STATUS[error_def.category]
