"""Database module for Karat state management and persistence."""

from karat.db.connection import (
    SessionLocal,
    engine,
    get_db,
    get_db_context,
    init_db,
)
from karat.db.models import (
    ActionStatus,
    AgentAction,
    AuditLog,
    ConversationMessage,
    ConversationSession,
    Customer,
    FirmProfile,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    MessageRole,
)

__all__ = [
    # Models
    "AgentAction",
    "AuditLog",
    "ConversationMessage",
    "ConversationSession",
    "Customer",
    "FirmProfile",
    "Invoice",
    "InvoiceItem",
    # Enums
    "ActionStatus",
    "InvoiceStatus",
    "MessageRole",
    # Connection
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
]
