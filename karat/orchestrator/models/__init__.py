"""Pydantic models for the conversational action pipeline."""

from karat.orchestrator.models.action import (
    REQUIRED_FIELDS,
    Action,
    ActionPayload,
    ActionStatus,
    ActionType,
    AddCustomerPayload,
    CreateInvoicePayload,
    ExecutionResult,
    InvoiceLineItem,
    NoActionDetected,
    Severity,
    ValidationFinding,
    parse_payload,
)
from karat.orchestrator.models.bill import (
    MAJOR_BILL_FIELDS,
    BillItem,
    BillSupplier,
    PurchaseBill,
)
from karat.orchestrator.models.mode import ChatMode, ModeConfig, ModeTransition

__all__ = [
    # Actions
    "Action",
    "ActionPayload",
    "ActionStatus",
    "ActionType",
    "AddCustomerPayload",
    "CreateInvoicePayload",
    "ExecutionResult",
    "InvoiceLineItem",
    "NoActionDetected",
    "REQUIRED_FIELDS",
    "Severity",
    "ValidationFinding",
    "parse_payload",
    # Bills
    "BillItem",
    "BillSupplier",
    "MAJOR_BILL_FIELDS",
    "PurchaseBill",
    # Modes
    "ChatMode",
    "ModeConfig",
    "ModeTransition",
]
