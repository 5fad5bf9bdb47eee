"""SQLAlchemy ORM models for the Karat state database.

This module defines the conversation, agent-action, audit and store models
consumed by the conversational action pipeline. Uses SQLAlchemy 2.0 style
with Mapped and mapped_column.

Money columns hold integer paise (1/100 rupee).
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class ActionStatus(str, Enum):
    """Lifecycle of an agent action.

    Lifecycle: intent_detected -> extracting -> validating
               -> awaiting_confirmation -> executing -> completed
               any non-terminal -> failed/cancelled
    """

    intent_detected = "intent_detected"
    extracting = "extracting"
    validating = "validating"
    awaiting_confirmation = "awaiting_confirmation"
    executing = "executing"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


class InvoiceStatus(str, Enum):
    """Status values for store invoices."""

    draft = "draft"
    finalized = "finalized"
    cancelled = "cancelled"


class MessageRole(str, Enum):
    """Author of a conversation message."""

    user = "user"
    assistant = "assistant"
    system = "system"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ConversationSession(Base):
    """Persistent conversation session.

    Only created for modes that persist history. At most one session per
    owner is active at a time.

    Attributes:
        id: UUID primary key.
        owner_id: Authenticated owner, None for anonymous sessions.
        title: Derived from the first user message.
        mode: Capability mode the session was opened in.
        is_active: False once superseded by a newer session.
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 last-update timestamp.
    """

    __tablename__ = "conversation_sessions"
    __table_args__ = (
        Index("ix_convsess_owner_active", "owner_id", "is_active"),
        Index("ix_convsess_owner_updated", "owner_id", "updated_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    owner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mode: Mapped[str] = mapped_column(String(20), nullable=False, default="assistant")
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    messages: Mapped[list["ConversationMessage"]] = relationship(
        "ConversationMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ConversationMessage.sequence",
    )
    actions: Mapped[list["AgentAction"]] = relationship(
        "AgentAction",
        back_populates="session",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<ConversationSession(id={self.id!r}, owner_id={self.owner_id!r}, "
            f"mode={self.mode!r})>"
        )


class ConversationMessage(Base):
    """Persistent conversation message. Immutable once written.

    Attributes:
        id: UUID primary key.
        session_id: FK to ConversationSession.
        role: 'user', 'assistant', or 'system'.
        content: Message text content.
        metadata_json: Optional JSON (mode, tokens_used, action_id).
        sequence: Ordering within session (monotonically increasing).
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "conversation_messages"
    __table_args__ = (
        UniqueConstraint("session_id", "sequence", name="uq_convmsg_session_seq"),
        Index("ix_convmsg_session_seq", "session_id", "sequence"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversation_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    session: Mapped["ConversationSession"] = relationship(
        "ConversationSession", back_populates="messages"
    )

    def __repr__(self) -> str:
        return (
            f"<ConversationMessage(id={self.id!r}, role={self.role!r}, "
            f"seq={self.sequence})>"
        )


class AgentAction(Base):
    """A structured business action proposed by the assistant.

    The id is assigned at extraction time and reused through execution,
    so it doubles as the idempotency key for the write.

    Attributes:
        action_type: 'create_invoice' or 'add_customer'.
        status: ActionStatus value.
        data_json: Extracted payload (enhanced with totals once validated).
        missing_fields_json: JSON list of required fields not yet supplied.
        findings_json: JSON list of validation findings.
        result_json: Stored ExecutionResult once the action has run.
        entity_id: Id of the created store entity.
    """

    __tablename__ = "agent_actions"
    __table_args__ = (
        Index("ix_agent_actions_session_status", "session_id", "status"),
        Index("ix_agent_actions_owner", "owner_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    session_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("conversation_sessions.id", ondelete="CASCADE"),
        nullable=True,
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action_type: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ActionStatus.intent_detected.value
    )
    data_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    missing_fields_json: Mapped[str] = mapped_column(
        Text, nullable=False, default="[]"
    )
    findings_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    result_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    executed_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    session: Mapped["ConversationSession | None"] = relationship(
        "ConversationSession", back_populates="actions"
    )

    def __repr__(self) -> str:
        return (
            f"<AgentAction(id={self.id!r}, type={self.action_type!r}, "
            f"status={self.status!r})>"
        )


class AuditLog(Base):
    """Append-only audit record for every action attempt.

    Attributes:
        actor_id: Owner that triggered the action.
        action_name: e.g. 'ai_invoice_create'.
        entity_type: e.g. 'invoice', 'customer'.
        entity_id: Created entity, when there is one.
        metadata_json: Redacted metadata snapshot.
        success: Outcome of the attempt.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_actor_ts", "actor_id", "timestamp"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action_name: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(40), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    success: Mapped[bool] = mapped_column(nullable=False, default=True)
    timestamp: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id!r}, action={self.action_name!r}, "
            f"success={self.success!r})>"
        )


class FirmProfile(Base):
    """Owner's firm details, snapshotted onto every invoice."""

    __tablename__ = "firm_profiles"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    owner_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    firm_name: Mapped[str] = mapped_column(String(200), nullable=False)
    firm_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    firm_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    firm_gstin: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<FirmProfile(owner_id={self.owner_id!r}, firm={self.firm_name!r})>"


class Customer(Base):
    """Owner-scoped customer record."""

    __tablename__ = "customers"
    __table_args__ = (
        Index("ix_customers_owner_phone", "owner_id", "phone"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    invoices: Mapped[list["Invoice"]] = relationship(
        "Invoice", back_populates="customer"
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id!r}, name={self.name!r})>"


class Invoice(Base):
    """Sales invoice with customer and firm snapshot columns.

    The (owner_id, invoice_number) pair is unique; concurrent allocations
    of the same number fail at insert time.
    """

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("owner_id", "invoice_number", name="uq_invoice_owner_number"),
        Index("ix_invoices_owner_created", "owner_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(30), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.finalized.value
    )
    invoice_date: Mapped[str] = mapped_column(String(10), nullable=False)

    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    firm_name: Mapped[str] = mapped_column(String(200), nullable=False)
    firm_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    firm_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    firm_gstin: Mapped[str | None] = mapped_column(String(20), nullable=True)

    tax_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    subtotal_paise: Mapped[int] = mapped_column(nullable=False)
    tax_amount_paise: Mapped[int] = mapped_column(nullable=False)
    grand_total_paise: Mapped[int] = mapped_column(nullable=False)

    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    customer: Mapped["Customer | None"] = relationship(
        "Customer", back_populates="invoices"
    )
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id!r}, number={self.invoice_number!r}, "
            f"total_paise={self.grand_total_paise})>"
        )


class InvoiceItem(Base):
    """Single line on an invoice. Weight is in grams."""

    __tablename__ = "invoice_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    invoice_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_grams: Mapped[Decimal] = mapped_column(Numeric(10, 3), nullable=False)
    price_per_gram_paise: Mapped[int] = mapped_column(nullable=False)
    total_paise: Mapped[int] = mapped_column(nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    def __repr__(self) -> str:
        return f"<InvoiceItem(id={self.id!r}, name={self.name!r}, qty={self.quantity})>"
