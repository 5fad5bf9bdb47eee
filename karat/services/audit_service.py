"""Audit logging service for assistant-driven actions.

Every execution attempt is recorded with the acting owner, the action
name, the target entity and a redacted metadata snapshot. Audit writes are
fire-and-forget: a failing audit sink is logged and never changes the
outcome of the action being audited.

Usage:
    audit = AuditService(db)
    audit.record(
        actor_id=owner_id,
        action_name="ai_invoice_create",
        entity_type="invoice",
        entity_id=invoice.id,
        metadata={"invoice_number": "INV-004", "action_id": action.id},
    )
"""

import json
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from karat.db.models import AuditLog, utc_now_iso

logger = logging.getLogger(__name__)

__all__ = [
    "AuditService",
    "redact_sensitive",
    "REDACT_FIELDS",
    "REDACTED",
]


# Substrings matched against metadata keys
REDACT_FIELDS = {
    # Personal info
    "customer_name",
    "first_name",
    "last_name",
    "phone",
    "email",
    "address",
    # Identity documents
    "gstin",
    "gst_number",
    "aadhaar",
    "pan",
    # Credentials
    "password",
    "access_token",
    "refresh_token",
    "api_key",
    "secret",
}

REDACTED = "[REDACTED]"


def redact_sensitive(
    data: dict | list | str | None, _depth: int = 0
) -> dict | list | str | None:
    """Recursively redact sensitive fields from data structures.

    Args:
        data: The data structure to redact (dict, list, str, or None)
        _depth: Internal recursion depth counter (prevents infinite loops)

    Returns:
        A copy of the data with sensitive fields redacted.

    Example:
        >>> redact_sensitive({'customer_name': 'Priya', 'total': 100})
        {'customer_name': '[REDACTED]', 'total': 100}
    """
    if _depth > 10:
        return REDACTED
    if data is None:
        return None
    if isinstance(data, str):
        return data
    if isinstance(data, list):
        return [redact_sensitive(item, _depth + 1) for item in data]
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            key_lower = key.lower().replace("-", "_")
            if any(field in key_lower for field in REDACT_FIELDS):
                result[key] = REDACTED
            else:
                result[key] = redact_sensitive(value, _depth + 1)
        return result
    return data


class AuditService:
    """Append-only audit trail for action execution attempts.

    Attributes:
        db: SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        actor_id: str,
        action_name: str,
        entity_type: str,
        entity_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        success: bool = True,
    ) -> AuditLog | None:
        """Write one audit record, never raising.

        Args:
            actor_id: Owner that triggered the action.
            action_name: e.g. 'ai_invoice_create'.
            entity_type: e.g. 'invoice'.
            entity_id: Created entity id, if any.
            metadata: Structured context (redacted before storage).
            success: Outcome of the attempt.

        Returns:
            The created AuditLog entry, or None if the write failed.
        """
        metadata_json: str | None = None
        if metadata is not None:
            metadata_json = json.dumps(redact_sensitive(metadata), default=str)

        entry = AuditLog(
            actor_id=actor_id,
            action_name=action_name,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata_json=metadata_json,
            success=success,
            timestamp=utc_now_iso(),
        )
        try:
            self.db.add(entry)
            self.db.commit()
            self.db.refresh(entry)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Audit write failed for %s: %s", action_name, e)
            return None
        return entry
