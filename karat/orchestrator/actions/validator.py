"""Action validation: schema checks, business rules, derived totals.

Validation runs in two phases. Structural errors from the payload schema
short-circuit; business rules only run against a well-formed payload.
Warnings are reported but never block execution.

Example:
    validator = ActionValidator(db)
    outcome = validator.validate(ActionType.create_invoice, action.data, owner_id)
    if outcome.is_valid:
        payload = outcome.enhanced_payload
"""

import logging
from dataclasses import dataclass, field
from typing import Any, assert_never

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from karat.config import ValidationConfig
from karat.orchestrator.actions.totals import calculate_invoice_totals
from karat.orchestrator.models.action import (
    ActionType,
    AddCustomerPayload,
    CreateInvoicePayload,
    Severity,
    ValidationFinding,
    parse_payload,
)
from karat.services.customer_service import CustomerService

logger = logging.getLogger(__name__)


@dataclass
class ValidationOutcome:
    """Result of validating one action payload.

    ``enhanced_payload`` is set only when there are no hard errors.
    """

    is_valid: bool
    findings: list[ValidationFinding] = field(default_factory=list)
    enhanced_payload: CreateInvoicePayload | AddCustomerPayload | None = None

    @property
    def errors(self) -> list[ValidationFinding]:
        return [f for f in self.findings if f.severity == Severity.error]

    @property
    def warnings(self) -> list[ValidationFinding]:
        return [f for f in self.findings if f.severity == Severity.warning]


def field_path(loc: tuple[Any, ...]) -> str:
    """Render a pydantic error location as e.g. ``items[0].price_per_gram``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path or "general"


def attach_totals(payload: CreateInvoicePayload) -> CreateInvoicePayload:
    """Copy of ``payload`` with subtotal, tax and grand total derived."""
    totals = calculate_invoice_totals(
        (item.total for item in payload.items), payload.tax_percentage
    )
    return payload.model_copy(
        update={
            "subtotal": totals.subtotal,
            "tax_amount": totals.tax_amount,
            "grand_total": totals.grand_total,
        }
    )


def _schema_findings(
    action_type: ActionType, exc: PydanticValidationError
) -> list[ValidationFinding]:
    findings = []
    for err in exc.errors():
        loc = tuple(err["loc"])
        # Tagged unions prefix the location with the discriminator value
        if loc and loc[0] == action_type.value:
            loc = loc[1:]
        findings.append(
            ValidationFinding(field=field_path(loc), message=err["msg"], severity=Severity.error)
        )
    return findings


class ActionValidator:
    """Validates extracted action drafts for one owner's book.

    Attributes:
        db: SQLAlchemy session used for ownership and duplicate lookups.
        config: Business-rule thresholds.
    """

    def __init__(self, db: Session, config: ValidationConfig | None = None) -> None:
        self.db = db
        self.config = config or ValidationConfig()
        self._customers = CustomerService(db)

    def validate(
        self, action_type: ActionType, payload: dict[str, Any], owner_id: str
    ) -> ValidationOutcome:
        """Validate a draft payload and attach derived totals."""
        findings = self._structural_findings(action_type, payload)
        if findings:
            logger.info(
                "Validation of %s failed structurally: %s",
                action_type.value,
                [f.field for f in findings],
            )
            return ValidationOutcome(is_valid=False, findings=findings)

        parsed = parse_payload(action_type, payload)
        if isinstance(parsed, CreateInvoicePayload):
            findings = self._invoice_rules(parsed, owner_id)
            if not any(f.severity == Severity.error for f in findings):
                parsed = attach_totals(parsed)
        elif isinstance(parsed, AddCustomerPayload):
            findings = self._customer_rules(parsed, owner_id)
        else:
            assert_never(parsed)

        has_errors = any(f.severity == Severity.error for f in findings)
        return ValidationOutcome(
            is_valid=not has_errors,
            findings=findings,
            enhanced_payload=None if has_errors else parsed,
        )

    def _structural_findings(
        self, action_type: ActionType, payload: dict[str, Any]
    ) -> list[ValidationFinding]:
        findings: list[ValidationFinding] = []
        try:
            parse_payload(action_type, payload)
        except PydanticValidationError as e:
            findings.extend(_schema_findings(action_type, e))

        if action_type == ActionType.create_invoice:
            items = payload.get("items")
            limit = self.config.max_items_per_invoice
            if isinstance(items, list) and len(items) > limit:
                findings.append(
                    ValidationFinding(
                        field="items",
                        message=f"An invoice can have at most {limit} items",
                        severity=Severity.error,
                    )
                )
        return findings

    def _invoice_rules(
        self, payload: CreateInvoicePayload, owner_id: str
    ) -> list[ValidationFinding]:
        findings: list[ValidationFinding] = []

        if payload.customer_id is not None:
            customer = self._customers.get_for_owner(str(payload.customer_id), owner_id)
            if customer is None:
                findings.append(
                    ValidationFinding(
                        field="customer_id",
                        message="Customer not found",
                        severity=Severity.error,
                    )
                )

        low = self.config.min_price_per_gram
        high = self.config.max_price_per_gram
        for index, item in enumerate(payload.items):
            if item.price_per_gram < low:
                findings.append(
                    ValidationFinding(
                        field=f"items[{index}].price_per_gram",
                        message=f"Price {item.price_per_gram}/gram seems too low. Please verify.",
                        severity=Severity.warning,
                    )
                )
            if item.price_per_gram > high:
                findings.append(
                    ValidationFinding(
                        field=f"items[{index}].price_per_gram",
                        message=f"Price {item.price_per_gram}/gram seems very high. Please verify.",
                        severity=Severity.warning,
                    )
                )
        return findings

    def _customer_rules(
        self, payload: AddCustomerPayload, owner_id: str
    ) -> list[ValidationFinding]:
        existing = self._customers.find_by_phone(owner_id, payload.phone)
        if existing is None:
            return []
        return [
            ValidationFinding(
                field="phone",
                message=f"A customer with phone {existing.phone} already exists.",
                severity=Severity.warning,
            )
        ]

