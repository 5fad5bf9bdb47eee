"""Tests for IntentExtractor."""

from decimal import Decimal

import pytest

from karat.db.models import ActionStatus
from karat.orchestrator.models.action import Action, ActionType, NoActionDetected
from karat.orchestrator.models.mode import ChatMode
from karat.orchestrator.nl_engine.completion import (
    CompletionMessage,
    CompletionProviderError,
)
from karat.orchestrator.nl_engine.intent_extractor import (
    ExtractionTimeoutError,
    IntentExtractor,
    missing_required_fields,
    normalize_invoice_arguments,
)
from tests.helpers.fake_provider import FakeCompletionProvider, ram_invoice_arguments

OWNER = "owner-1"


async def _extract(provider, text="hi", mode=ChatMode.assistant, owner_id=OWNER, **kwargs):
    extractor = IntentExtractor(provider, timeout_seconds=kwargs.pop("timeout", 5.0))
    return await extractor.extract(
        text,
        kwargs.pop("history", []),
        owner_id=owner_id,
        session_id=kwargs.pop("session_id", "sess-1"),
        mode=mode,
        **kwargs,
    )


class TestPlainReplies:
    @pytest.mark.asyncio
    async def test_plain_text_is_no_action(self):
        provider = FakeCompletionProvider().reply("Our plans start at ₹999/month.", tokens_used=21)
        outcome = await _extract(provider, "How much does Karat cost?", mode=ChatMode.guest)
        assert isinstance(outcome, NoActionDetected)
        assert outcome.reply == "Our plans start at ₹999/month."
        assert outcome.tokens_used == 21

    @pytest.mark.asyncio
    async def test_empty_text_gets_fallback(self):
        provider = FakeCompletionProvider().reply("")
        outcome = await _extract(provider)
        assert isinstance(outcome, NoActionDetected)
        assert "rephrase" in outcome.reply


class TestOfferedFunctions:
    @pytest.mark.asyncio
    async def test_assistant_mode_offers_allowed_actions(self):
        provider = FakeCompletionProvider()
        await _extract(provider)
        assert provider.last_call.tool_names == ["create_invoice", "add_customer"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", [ChatMode.guest, ChatMode.help])
    async def test_public_modes_offer_nothing(self, mode):
        provider = FakeCompletionProvider()
        await _extract(provider, mode=mode, owner_id=None)
        assert provider.last_call.tool_names == []

    @pytest.mark.asyncio
    async def test_anonymous_assistant_offers_nothing(self):
        provider = FakeCompletionProvider()
        await _extract(provider, owner_id=None)
        assert provider.last_call.tool_names == []

    @pytest.mark.asyncio
    async def test_unoffered_call_is_no_action(self):
        provider = FakeCompletionProvider().call("create_invoice", ram_invoice_arguments())
        outcome = await _extract(provider, mode=ChatMode.guest, owner_id=None)
        assert isinstance(outcome, NoActionDetected)


class TestInvoiceExtraction:
    @pytest.mark.asyncio
    async def test_complete_invoice(self):
        provider = FakeCompletionProvider().call("create_invoice", ram_invoice_arguments())
        outcome = await _extract(
            provider, "Create invoice for Ram, 2 gold rings 10g each at 5500 per gram"
        )
        assert isinstance(outcome, Action)
        assert outcome.type == ActionType.create_invoice
        assert outcome.status == ActionStatus.validating
        assert outcome.missing_fields == []
        assert outcome.owner_id == OWNER
        assert outcome.session_id == "sess-1"
        assert outcome.tokens_used == 40
        assert outcome.data["customer_name"] == "Ram"
        assert outcome.data["customer_phone"] == "9876543210"
        assert outcome.data["tax_percentage"] == "3"
        assert outcome.data["items"][0]["total"] == "110000.00"

    @pytest.mark.asyncio
    async def test_missing_items_stays_extracting(self):
        provider = FakeCompletionProvider().call(
            "create_invoice", {"customer": {"name": "Ram"}, "items": []}
        )
        outcome = await _extract(provider, "Make an invoice for Ram")
        assert outcome.status == ActionStatus.extracting
        assert outcome.missing_fields == ["items"]

    @pytest.mark.asyncio
    async def test_missing_customer_name(self):
        args = ram_invoice_arguments()
        args["customer"] = {"name": "  "}
        provider = FakeCompletionProvider().call("create_invoice", args)
        outcome = await _extract(provider)
        assert outcome.missing_fields == ["customer_name"]

    @pytest.mark.asyncio
    async def test_each_extraction_gets_a_fresh_id(self):
        provider = FakeCompletionProvider().call(
            "create_invoice", ram_invoice_arguments()
        ).call("create_invoice", ram_invoice_arguments())
        first = await _extract(provider)
        second = await _extract(provider)
        assert first.id != second.id


class TestCustomerExtraction:
    @pytest.mark.asyncio
    async def test_add_customer(self):
        provider = FakeCompletionProvider().call(
            "add_customer",
            {"name": "Priya Sharma", "phone": "9820012345", "email": "", "address": None},
        )
        outcome = await _extract(provider, "Add customer Priya Sharma 9820012345")
        assert outcome.type == ActionType.add_customer
        assert outcome.status == ActionStatus.validating
        assert outcome.data == {
            "name": "Priya Sharma",
            "phone": "9820012345",
            "email": None,
            "address": None,
        }


class TestProviderInteraction:
    @pytest.mark.asyncio
    async def test_history_precedes_user_turn(self):
        provider = FakeCompletionProvider()
        history = [
            CompletionMessage(role="user", content="Hi"),
            CompletionMessage(role="assistant", content="Hello!"),
        ]
        await _extract(provider, "Add customer Ravi", history=history)
        contents = [m.content for m in provider.last_call.messages]
        assert contents == ["Hi", "Hello!", "Add customer Ravi"]

    @pytest.mark.asyncio
    async def test_extra_context_appended_to_prompt(self):
        provider = FakeCompletionProvider()
        await _extract(provider, extra_context="## EARLIER QUESTIONS\n- pricing?")
        assert provider.last_call.system_prompt.endswith("- pricing?")

    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = FakeCompletionProvider(delay=0.5)
        with pytest.raises(ExtractionTimeoutError) as exc_info:
            await _extract(provider, timeout=0.05)
        assert exc_info.value.timeout_seconds == 0.05

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        provider = FakeCompletionProvider().queue(CompletionProviderError("boom"))
        with pytest.raises(CompletionProviderError):
            await _extract(provider)


class TestNormalization:
    def test_provider_totals_are_ignored(self):
        args = ram_invoice_arguments()
        args["items"][0]["total"] = "1"
        data = normalize_invoice_arguments(args, Decimal("3"))
        assert data["items"][0]["total"] == "110000.00"

    def test_non_numeric_weight_has_no_total(self):
        args = ram_invoice_arguments()
        args["items"][0]["weight"] = "heavy"
        data = normalize_invoice_arguments(args, Decimal("3"))
        assert "total" not in data["items"][0]

    def test_existing_customer_id_carried(self):
        args = ram_invoice_arguments()
        args["customer"]["existing_customer_id"] = "c-1"
        data = normalize_invoice_arguments(args, Decimal("3"))
        assert data["customer_id"] == "c-1"

    def test_explicit_tax_kept(self):
        args = {**ram_invoice_arguments(), "tax_percentage": 5}
        assert normalize_invoice_arguments(args, Decimal("3"))["tax_percentage"] == 5

    def test_missing_required_fields_in_schema_order(self):
        assert missing_required_fields(ActionType.create_invoice, {}) == [
            "customer_name",
            "items",
        ]
        assert missing_required_fields(ActionType.add_customer, {"name": "A"}) == []
