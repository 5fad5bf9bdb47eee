"""Tests for ActionExecutor."""

import pytest

from karat.db.models import (
    ActionStatus,
    AuditLog,
    Customer,
    Invoice,
    InvoiceItem,
)
from karat.errors.domain import InvoiceNumberConflictError
from karat.orchestrator.actions.executor import ActionExecutor
from karat.orchestrator.models.action import Action, ActionType, ValidationFinding
from karat.services.action_service import ActionService
from karat.services.customer_service import CustomerService
from tests.helpers.factories import OTHER_OWNER_ID, OWNER_ID, audit_metadata


def _priya_invoice():
    return {
        "customer_name": "Priya",
        "tax_percentage": "3",
        "items": [
            {"name": "Necklace", "quantity": 1, "weight": 25, "price_per_gram": 6200}
        ],
    }


def _persist(db, action_type=ActionType.create_invoice, data=None, status=ActionStatus.validating):
    return ActionService(db).create(
        Action(
            type=action_type,
            status=status,
            data=data if data is not None else _priya_invoice(),
            owner_id=OWNER_ID,
        )
    )


@pytest.fixture
def executor(db_session):
    return ActionExecutor(db_session)


class TestCreateInvoice:
    def test_priya_invoice(self, db_session, firm_profile, executor):
        action = _persist(db_session)
        result = executor.execute(action)

        assert result.success is True
        assert result.message == "Invoice INV-001 created successfully! Total: ₹1,59,650.00"
        assert result.redirect_url == f"/invoices/{result.entity_id}"
        assert result.error_code is None

        invoice = db_session.get(Invoice, result.entity_id)
        assert invoice.invoice_number == "INV-001"
        assert invoice.subtotal_paise == 15500000
        assert invoice.tax_amount_paise == 465000
        assert invoice.grand_total_paise == 15965000
        assert invoice.firm_name == "Lakshmi Jewellers"
        assert invoice.customer_name == "Priya"
        assert db_session.query(InvoiceItem).count() == 1

        stored = ActionService(db_session).get(action.id, OWNER_ID)
        assert stored.status == ActionStatus.completed
        assert stored.entity_id == invoice.id
        assert stored.executed_at is not None
        assert stored.result == result

    def test_numbers_increment(self, db_session, firm_profile, executor):
        executor.execute(_persist(db_session))
        result = executor.execute(_persist(db_session))
        assert "INV-002" in result.message

    def test_audit_entry_is_redacted(self, db_session, firm_profile, executor):
        action = _persist(db_session)
        executor.execute(action)
        entry = db_session.query(AuditLog).one()
        assert entry.action_name == "ai_invoice_create"
        assert entry.success is True
        metadata = audit_metadata(entry)
        assert metadata["customer_name"] == "[REDACTED]"
        assert metadata["invoice_number"] == "INV-001"
        assert metadata["total"] == "159650.00"
        assert metadata["action_id"] == action.id

    def test_reuses_existing_customer(self, db_session, firm_profile, executor):
        customer = CustomerService(db_session).create_customer(OWNER_ID, "Priya")
        db_session.commit()
        data = {**_priya_invoice(), "customer_id": customer.id}
        result = executor.execute(_persist(db_session, data=data))
        assert result.success is True
        assert db_session.query(Customer).count() == 1
        assert db_session.get(Invoice, result.entity_id).customer_id == customer.id

    def test_accepts_awaiting_confirmation(self, db_session, firm_profile, executor):
        action = _persist(db_session)
        action = ActionService(db_session).transition_status(
            action.id, OWNER_ID, ActionStatus.awaiting_confirmation
        )
        assert executor.execute(action).success is True


class TestIdempotency:
    def test_completed_action_returns_stored_result(self, db_session, firm_profile, executor):
        action = _persist(db_session)
        first = executor.execute(action)
        stored = ActionService(db_session).get(action.id, OWNER_ID)

        second = executor.execute(stored)
        assert second == first
        assert executor.replayed is True
        assert db_session.query(Invoice).count() == 1

    def test_stale_snapshot_of_completed_action(self, db_session, firm_profile, executor):
        action = _persist(db_session)
        stale = ActionService(db_session).get(action.id, OWNER_ID)
        first = executor.execute(action)
        assert executor.replayed is False

        second = executor.execute(stale)
        assert second == first
        assert executor.replayed is True
        assert db_session.query(Invoice).count() == 1
        assert db_session.query(AuditLog).count() == 1

    def test_stale_snapshot_of_cancelled_action(self, db_session, firm_profile, executor):
        action = _persist(db_session)
        ActionService(db_session).transition_status(
            action.id, OWNER_ID, ActionStatus.cancelled
        )

        result = executor.execute(action)
        assert result.success is False
        assert result.error_code == "E-2003"
        assert "cancelled" in result.message
        assert executor.replayed is False
        assert db_session.query(Invoice).count() == 0


class TestNotExecutable:
    def test_cancelled_action(self, db_session, firm_profile, executor):
        action = _persist(db_session)
        action = ActionService(db_session).transition_status(
            action.id, OWNER_ID, ActionStatus.cancelled
        )
        result = executor.execute(action)
        assert result.success is False
        assert result.error_code == "E-2003"
        assert "cancelled" in result.message
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(AuditLog).count() == 0

    def test_action_with_error_findings(self, db_session, firm_profile, executor):
        action = _persist(db_session)
        action = ActionService(db_session).transition_status(
            action.id,
            OWNER_ID,
            ActionStatus.awaiting_confirmation,
            findings=[ValidationFinding(field="items", message="Invalid items")],
        )
        result = executor.execute(action)
        assert result.error_code == "E-2003"
        stored = ActionService(db_session).get(action.id, OWNER_ID)
        assert stored.status == ActionStatus.awaiting_confirmation


class TestFailures:
    def test_missing_firm_profile(self, db_session, executor):
        action = _persist(db_session)
        result = executor.execute(action)

        assert result.success is False
        assert result.error_code is None
        assert result.message == (
            "Failed to create invoice: User settings not found. "
            "Please configure firm details in settings."
        )
        stored = ActionService(db_session).get(action.id, OWNER_ID)
        assert stored.status == ActionStatus.failed
        assert stored.error_message.startswith("User settings not found")
        assert db_session.query(Customer).count() == 0

        entry = db_session.query(AuditLog).one()
        assert entry.success is False
        assert entry.action_name == "ai_invoice_create"

    def test_other_owners_customer(self, db_session, firm_profile, executor):
        customer = CustomerService(db_session).create_customer(OTHER_OWNER_ID, "Priya")
        db_session.commit()
        data = {**_priya_invoice(), "customer_id": customer.id}
        result = executor.execute(_persist(db_session, data=data))
        assert result.success is False
        assert "not found" in result.message
        assert db_session.query(Invoice).count() == 0

    def test_partial_progress_recorded_in_audit(
        self, db_session, firm_profile, executor, monkeypatch
    ):
        def collide(*args, **kwargs):
            raise InvoiceNumberConflictError(OWNER_ID, 3)

        monkeypatch.setattr(executor._invoices, "create_invoice", collide)
        action = _persist(db_session)
        result = executor.execute(action)

        assert result.success is False
        assert result.message == (
            "Failed to create invoice: Could not allocate an invoice number after 3 attempts."
        )
        customer = db_session.query(Customer).one()
        metadata = audit_metadata(db_session.query(AuditLog).one())
        assert metadata["customer_id"] == customer.id
        assert "invoice_id" not in metadata

    def test_unexpected_error_uses_generic_message(
        self, db_session, firm_profile, executor, monkeypatch
    ):
        def explode(*args, **kwargs):
            raise RuntimeError("disk on fire at /var/lib/karat")

        monkeypatch.setattr(executor._invoices, "add_items", explode)
        result = executor.execute(_persist(db_session))
        assert result.success is False
        assert "disk on fire" not in result.message
        assert result.findings[0].field == "general"


class TestAddCustomer:
    def test_add_customer(self, db_session, executor):
        action = _persist(
            db_session,
            ActionType.add_customer,
            {"name": "Priya Sharma", "phone": "98200 12345", "email": "priya.sharma@gmail.com"},
        )
        result = executor.execute(action)
        assert result.success is True
        assert result.message == "Customer Priya Sharma added successfully!"
        customer = db_session.get(Customer, result.entity_id)
        assert customer.phone == "9820012345"
        assert result.redirect_url == f"/customers/{customer.id}"

        entry = db_session.query(AuditLog).one()
        assert entry.action_name == "ai_customer_create"
        assert entry.entity_type == "customer"
