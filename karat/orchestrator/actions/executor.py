"""Action execution against the store.

Executes a confirmed action as a sequence of independently committed
steps. A failing step aborts the rest; steps already committed stay
committed and their ids are recorded in the failure audit entry.

Invoice creation steps:
    1. Resolve the owner's firm profile (fails fast if absent)
    2. Resolve the customer by id, or create it from the extracted fields
    3. Allocate the next invoice number and insert the invoice
    4. Insert the line items

Every attempt, successful or not, is written to the audit log.
"""

import logging
from typing import Any, assert_never

from sqlalchemy.orm import Session

from karat.config import ExecutionConfig
from karat.db.models import ActionStatus, Customer
from karat.errors.domain import DomainError, NotFoundError
from karat.errors.formatter import KaratError
from karat.orchestrator.actions.state_machine import InvalidActionTransition
from karat.orchestrator.actions.totals import format_inr
from karat.orchestrator.actions.validator import attach_totals
from karat.orchestrator.models.action import (
    Action,
    ActionType,
    AddCustomerPayload,
    CreateInvoicePayload,
    ExecutionResult,
    Severity,
    ValidationFinding,
    parse_payload,
)
from karat.services.action_service import ActionService
from karat.services.audit_service import AuditService
from karat.services.customer_service import CustomerService
from karat.services.firm_profile_service import FirmProfileService
from karat.services.invoice_service import InvoiceService, NumberingScheme
from karat.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

EXECUTABLE_STATUSES = frozenset(
    {ActionStatus.validating, ActionStatus.awaiting_confirmation}
)

_AUDIT_NAMES = {
    ActionType.create_invoice: ("ai_invoice_create", "invoice"),
    ActionType.add_customer: ("ai_customer_create", "customer"),
}

_FAILURE_PREFIX = {
    ActionType.create_invoice: "Failed to create invoice",
    ActionType.add_customer: "Failed to add customer",
}

_GENERIC_FAILURE = "An unexpected error occurred. Please try again."


class ActionExecutor:
    """Runs confirmed actions for their owner.

    Attributes:
        db: SQLAlchemy session; each step commits on it.
        config: Execution settings (numbering scheme, retry bound).
        replayed: Whether the last ``execute`` returned a stored result.
    """

    def __init__(self, db: Session, config: ExecutionConfig | None = None) -> None:
        self.db = db
        self.config = config or ExecutionConfig()
        self._actions = ActionService(db)
        self._audit = AuditService(db)
        self._customers = CustomerService(db)
        self._firms = FirmProfileService(db)
        self._invoices = InvoiceService(
            db,
            NumberingScheme(
                prefix=self.config.invoice_prefix, padding=self.config.number_padding
            ),
        )
        # Entities committed by the current attempt, reported on failure
        self._created: dict[str, str] = {}
        self.replayed = False

    def execute(self, action: Action) -> ExecutionResult:
        """Execute a persisted action.

        A completed action returns its stored result without re-running
        any step. An action that is not executable yields a failed result
        with code E-2003 and writes nothing. A stale snapshot of an action
        another request has since executed gets that request's result.
        """
        self.replayed = False
        if action.status == ActionStatus.completed and action.result is not None:
            logger.info("Action %s already completed, returning stored result", action.id)
            self.replayed = True
            return action.result

        if action.status not in EXECUTABLE_STATUSES or action.has_errors:
            return self._not_executable(action)

        try:
            if action.status == ActionStatus.validating:
                action = self._actions.transition_status(
                    action.id, action.owner_id, ActionStatus.awaiting_confirmation
                )
            action = self._actions.transition_status(
                action.id, action.owner_id, ActionStatus.executing
            )
        except InvalidActionTransition:
            # Another request moved the action since this snapshot was read
            current = self._actions.get(action.id, action.owner_id)
            if current.status == ActionStatus.completed and current.result is not None:
                logger.info(
                    "Action %s completed by another request, returning stored result",
                    action.id,
                )
                self.replayed = True
                return current.result
            return self._not_executable(current)

        self._created = {}
        try:
            payload = parse_payload(action.type, action.data)
            if isinstance(payload, CreateInvoicePayload):
                result = self._create_invoice(action, payload)
            elif isinstance(payload, AddCustomerPayload):
                result = self._add_customer(action, payload)
            else:
                assert_never(payload)
        except Exception as e:
            return self._fail(action, e)

        self._actions.transition_status(
            action.id,
            action.owner_id,
            ActionStatus.completed,
            entity_id=result.entity_id,
            result=result,
        )
        return result

    def _not_executable(self, action: Action) -> ExecutionResult:
        error = KaratError.from_code("E-2003", status=action.status.value)
        logger.warning(
            "Refusing to execute action %s in status %s (errors=%s)",
            action.id,
            action.status.value,
            action.has_errors,
        )
        return ExecutionResult(
            success=False,
            action_id=action.id,
            message=error.message,
            error_code=error.code,
            findings=[
                ValidationFinding(
                    field="general", message=error.message, severity=Severity.error
                )
            ],
        )

    def _resolve_customer(
        self, owner_id: str, payload: CreateInvoicePayload
    ) -> Customer:
        if payload.customer_id is not None:
            customer = self._customers.get_for_owner(str(payload.customer_id), owner_id)
            if customer is None:
                raise NotFoundError("Customer", str(payload.customer_id))
            return customer

        customer = self._customers.create_customer(
            owner_id,
            name=payload.customer_name,
            phone=payload.customer_phone,
            email=payload.customer_email,
            address=payload.customer_address,
        )
        self.db.commit()
        self._created["customer_id"] = customer.id
        return customer

    def _create_invoice(
        self, action: Action, payload: CreateInvoicePayload
    ) -> ExecutionResult:
        owner_id = action.owner_id
        logger.info("Creating invoice for action %s (owner %s)", action.id, owner_id)

        payload = attach_totals(payload)
        firm = self._firms.require(owner_id)
        customer = self._resolve_customer(owner_id, payload)
        invoice = self._invoices.create_invoice(
            owner_id,
            payload,
            customer,
            firm,
            max_attempts=self.config.max_number_attempts,
        )
        self._created["invoice_id"] = invoice.id
        self._invoices.add_items(invoice, payload)

        total = format_inr(payload.grand_total)
        self._audit.record(
            actor_id=owner_id,
            action_name="ai_invoice_create",
            entity_type="invoice",
            entity_id=invoice.id,
            metadata={
                "invoice_number": invoice.invoice_number,
                "customer_name": payload.customer_name,
                "total": str(payload.grand_total),
                "item_count": len(payload.items),
                "action_id": action.id,
            },
        )
        logger.info(
            "Invoice %s created for action %s (total %s)",
            invoice.invoice_number,
            action.id,
            total,
        )
        return ExecutionResult(
            success=True,
            action_id=action.id,
            entity_id=invoice.id,
            redirect_url=f"/invoices/{invoice.id}",
            message=f"Invoice {invoice.invoice_number} created successfully! Total: {total}",
        )

    def _add_customer(
        self, action: Action, payload: AddCustomerPayload
    ) -> ExecutionResult:
        owner_id = action.owner_id
        customer = self._customers.create_customer(
            owner_id,
            name=payload.name,
            phone=payload.phone,
            email=payload.email,
            address=payload.address,
        )
        self.db.commit()

        self._audit.record(
            actor_id=owner_id,
            action_name="ai_customer_create",
            entity_type="customer",
            entity_id=customer.id,
            metadata={"customer_name": payload.name, "action_id": action.id},
        )
        return ExecutionResult(
            success=True,
            action_id=action.id,
            entity_id=customer.id,
            redirect_url=f"/customers/{customer.id}",
            message=f"Customer {customer.name} added successfully!",
        )

    def _fail(self, action: Action, error: Exception) -> ExecutionResult:
        self.db.rollback()
        logger.exception("Execution of action %s failed", action.id)

        if isinstance(error, DomainError):
            reason = sanitize_error_message(str(error))
        else:
            reason = _GENERIC_FAILURE

        action_name, entity_type = _AUDIT_NAMES[action.type]
        metadata: dict[str, Any] = {"error": reason, "action_id": action.id}
        metadata.update(self._created)
        self._audit.record(
            actor_id=action.owner_id,
            action_name=action_name,
            entity_type=entity_type,
            metadata=metadata,
            success=False,
        )

        result = ExecutionResult(
            success=False,
            action_id=action.id,
            message=f"{_FAILURE_PREFIX[action.type]}: {reason}",
            findings=[
                ValidationFinding(field="general", message=reason, severity=Severity.error)
            ],
        )
        self._actions.transition_status(
            action.id,
            action.owner_id,
            ActionStatus.failed,
            error_message=reason,
            result=result,
        )
        return result
