"""KaratError and its renderings.

A KaratError is always built from a registry code so the message,
remediation, retryability and HTTP status stay consistent between the
API, the pipeline and the logs.
"""

from dataclasses import dataclass, field
from typing import Any

from karat.errors.registry import get_error, http_status_for


@dataclass
class KaratError(Exception):
    """Application error with code, message, and context.

    Attributes:
        code: Error code in E-XXXX format.
        message: Human-readable error message.
        remediation: Action user should take to resolve.
        fields: Affected payload field paths.
        is_retryable: Whether the operation can be retried without user action.
        details: Additional context dictionary.
    """

    code: str
    message: str
    remediation: str
    fields: list[str] = field(default_factory=list)
    is_retryable: bool = False
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    @property
    def status_code(self) -> int:
        return http_status_for(self.code)

    @classmethod
    def from_code(cls, code: str, **kwargs: object) -> "KaratError":
        """Create error from registry code with context substitution.

        ``fields`` and ``details`` keyword arguments populate the matching
        attributes; every other keyword fills the message template. A
        template whose placeholders are not all supplied is kept as-is.
        """
        fields = kwargs.pop("fields", None)
        details = kwargs.pop("details", None)
        fields = list(fields) if isinstance(fields, list) else []
        details = dict(details) if isinstance(details, dict) else {}

        error_def = get_error(code)
        if error_def is None:
            return cls(
                code=code,
                message=f"Unknown error: {code}",
                remediation="Contact support.",
                fields=fields,
                details=details,
            )

        try:
            message = error_def.message_template.format(**kwargs)
        except KeyError:
            message = error_def.message_template

        return cls(
            code=error_def.code,
            message=message,
            remediation=error_def.remediation,
            is_retryable=error_def.is_retryable,
            fields=fields,
            details=details,
        )

    def to_response_body(self) -> dict[str, Any]:
        """JSON body returned by the API for this error."""
        return {
            "error_code": self.code,
            "message": self.message,
            "remediation": self.remediation,
            "is_retryable": self.is_retryable,
            "fields": self.fields or None,
            "details": self.details or None,
        }


def format_error(error: KaratError, include_remediation: bool = True) -> str:
    """One or more lines describing ``error`` for logs and the CLI."""
    lines = [str(error)]
    if error.fields:
        lines.append(f"  Fields: {', '.join(error.fields)}")
    if include_remediation:
        lines.append(f"  Action: {error.remediation}")
    return "\n".join(lines)
