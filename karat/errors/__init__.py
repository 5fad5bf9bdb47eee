"""Error handling framework for Karat.

This package provides:
- Error code registry with E-XXXX format codes and HTTP statuses
- KaratError with API and log renderings
- Typed domain exceptions for API error mapping

Error categories:
- E-1xxx: Input errors
- E-2xxx: Validation and action-state errors
- E-3xxx: Completion provider errors
- E-4xxx: System/store errors
- E-5xxx: Capability/authentication errors
- E-6xxx: Throttling errors
"""

from karat.errors.domain import (
    ConflictError,
    DomainError,
    FirmProfileMissingError,
    InvoiceNumberConflictError,
    NotFoundError,
    ValidationError,
)
from karat.errors.formatter import (
    KaratError,
    format_error,
)
from karat.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
    http_status_for,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    "http_status_for",
    # Formatter
    "KaratError",
    "format_error",
    # Domain
    "DomainError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "FirmProfileMissingError",
    "InvoiceNumberConflictError",
]
