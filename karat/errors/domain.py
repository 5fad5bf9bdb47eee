"""Typed domain exceptions for API error mapping.

Routes catch specific exception types to return appropriate HTTP status
codes instead of matching on message strings.

Usage:
    # In service layer
    raise NotFoundError("Action", action_id)

    # In route handler
    try:
        action = service.get(action_id, owner_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
"""

from karat.errors.registry import get_error


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ConflictError(DomainError):
    """Resource conflict (e.g., duplicate). Maps to HTTP 409."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ValidationError(DomainError):
    """Validation failure. Maps to HTTP 400."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class FirmProfileMissingError(DomainError):
    """Owner has no firm profile; invoices cannot be issued."""

    def __init__(self, owner_id: str) -> None:
        super().__init__(get_error("E-4002").message_template)
        self.owner_id = owner_id


class InvoiceNumberConflictError(ConflictError):
    """Invoice number allocation kept colliding. Maps to HTTP 409."""

    def __init__(self, owner_id: str, attempts: int) -> None:
        super().__init__(
            get_error("E-4003").message_template.format(attempts=attempts)
        )
        self.owner_id = owner_id
        self.attempts = attempts
