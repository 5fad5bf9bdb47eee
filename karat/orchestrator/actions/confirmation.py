"""User-facing text for drafts awaiting confirmation or more details."""

from decimal import Decimal
from typing import assert_never

from karat.orchestrator.actions.totals import format_inr
from karat.orchestrator.models.action import (
    ActionType,
    AddCustomerPayload,
    CreateInvoicePayload,
    Severity,
    ValidationFinding,
)

# How each required field is asked for
FIELD_PROMPTS = {
    "customer_name": "the customer's name",
    "items": "the items (name, quantity, weight in grams and price per gram)",
    "name": "the customer's name",
}


def _grams(weight: Decimal) -> str:
    text = f"{weight:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text}g"


def _join(parts: list[str]) -> str:
    if len(parts) <= 1:
        return "".join(parts)
    return ", ".join(parts[:-1]) + " and " + parts[-1]


def describe_invoice(payload: CreateInvoicePayload) -> str:
    """One-line summary of an invoice draft with its totals."""
    lines = [
        f"{item.quantity} x {item.name} ({_grams(item.weight)} @ "
        f"{format_inr(item.price_per_gram)}/g = {format_inr(item.total)})"
        for item in payload.items
    ]
    summary = f"an invoice for {payload.customer_name} with {_join(lines)}"
    if payload.grand_total is not None:
        summary += (
            f". Subtotal {format_inr(payload.subtotal)}"
            f" + GST {payload.tax_percentage:g}% {format_inr(payload.tax_amount)}"
            f" = {format_inr(payload.grand_total)}"
        )
    return summary


def describe_customer(payload: AddCustomerPayload) -> str:
    details = [d for d in (payload.phone, payload.email, payload.address) if d]
    if details:
        return f"a new customer {payload.name} ({', '.join(details)})"
    return f"a new customer {payload.name}"


def confirmation_message(
    payload: CreateInvoicePayload | AddCustomerPayload,
    findings: list[ValidationFinding] | None = None,
) -> str:
    """Ask the user to review a valid draft, listing any warnings."""
    if isinstance(payload, CreateInvoicePayload):
        text = f"I've prepared {describe_invoice(payload)}. Please review and confirm to create it."
    elif isinstance(payload, AddCustomerPayload):
        text = f"I've prepared {describe_customer(payload)}. Please review and confirm to add them."
    else:
        assert_never(payload)

    warnings = [f.message for f in findings or [] if f.severity == Severity.warning]
    if warnings:
        text += "\n\nPlease note:\n" + "\n".join(f"- {w}" for w in warnings)
    return text


def missing_fields_message(action_type: ActionType, missing: list[str]) -> str:
    """Ask for the required details a draft is still missing."""
    asks = [FIELD_PROMPTS.get(name, name.replace("_", " ")) for name in missing]
    noun = "invoice" if action_type == ActionType.create_invoice else "customer"
    return f"To create this {noun}, I still need {_join(asks)}."


def validation_error_message(findings: list[ValidationFinding]) -> str:
    """Explain the hard errors that stop a draft from being confirmed."""
    errors = [f for f in findings if f.severity == Severity.error]
    lines = "\n".join(f"- {f.field}: {f.message}" for f in errors)
    return f"I couldn't prepare this yet. Please fix the following:\n{lines}"
