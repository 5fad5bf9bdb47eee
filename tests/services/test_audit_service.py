"""Tests for AuditService and metadata redaction."""

from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from karat.services.audit_service import REDACTED, AuditService, redact_sensitive
from tests.helpers.factories import OWNER_ID, audit_metadata


class TestRedactSensitive:
    def test_redacts_personal_fields(self):
        result = redact_sensitive(
            {"customer_name": "Priya", "customer_phone": "98200", "total": "159650.00"}
        )
        assert result == {
            "customer_name": REDACTED,
            "customer_phone": REDACTED,
            "total": "159650.00",
        }

    def test_nested_and_lists(self):
        result = redact_sensitive(
            {"items": [{"name": "Ring", "email": "a@b.c"}], "meta": {"api_key": "sk"}}
        )
        assert result["items"][0] == {"name": "Ring", "email": REDACTED}
        assert result["meta"]["api_key"] == REDACTED

    def test_hyphenated_keys(self):
        assert redact_sensitive({"Customer-Name": "x"}) == {"Customer-Name": REDACTED}

    def test_passthrough(self):
        assert redact_sensitive(None) is None
        assert redact_sensitive("plain") == "plain"


class TestRecord:
    def test_writes_entry(self, db_session):
        entry = AuditService(db_session).record(
            actor_id=OWNER_ID,
            action_name="ai_invoice_create",
            entity_type="invoice",
            entity_id="inv-1",
            metadata={"invoice_number": "INV-001", "customer_name": "Priya"},
        )
        assert entry is not None
        assert entry.success is True
        assert audit_metadata(entry) == {
            "invoice_number": "INV-001",
            "customer_name": REDACTED,
        }

    def test_failure_entry(self, db_session):
        entry = AuditService(db_session).record(
            actor_id=OWNER_ID,
            action_name="ai_customer_create",
            entity_type="customer",
            success=False,
        )
        assert entry.success is False
        assert entry.entity_id is None
        assert audit_metadata(entry) == {}

    def test_sink_failure_is_swallowed(self):
        db = MagicMock()
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
        result = AuditService(db).record(
            actor_id=OWNER_ID, action_name="ai_invoice_create", entity_type="invoice"
        )
        assert result is None
        db.rollback.assert_called_once()
