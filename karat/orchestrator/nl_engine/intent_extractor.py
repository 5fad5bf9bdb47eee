"""Intent extraction: free text in, Action or ordinary reply out.

The extractor offers the provider one function schema per action the
current mode allows and interprets the answer. It does no validation
beyond recognizing the call shape and flagging missing required fields;
the validator owns everything else.
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal
from typing import Any

from karat.db.models import ActionStatus
from karat.orchestrator.actions.totals import line_total, to_decimal
from karat.orchestrator.models.action import (
    REQUIRED_FIELDS,
    Action,
    ActionType,
    NoActionDetected,
)
from karat.orchestrator.models.mode import ChatMode
from karat.orchestrator.modes.prompts import build_system_prompt
from karat.orchestrator.modes.resolver import get_mode_config
from karat.orchestrator.nl_engine.completion import (
    CompletionMessage,
    CompletionProvider,
    PlainText,
    StructuredCall,
)
from karat.orchestrator.nl_engine.schemas import ACTION_TOOLS

logger = logging.getLogger(__name__)

_FALLBACK_REPLY = "I'm not sure how to help with that. Could you rephrase?"


class ExtractionTimeoutError(Exception):
    """The provider did not answer within the configured timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Completion timed out after {timeout_seconds:g}s")


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str | list | dict):
        return len(value) == 0
    return False


def _normalize_item(raw: dict[str, Any]) -> dict[str, Any]:
    """Copy the schema fields and compute the line total locally."""
    item: dict[str, Any] = {
        "name": _clean_str(raw.get("name")),
        "quantity": raw.get("quantity"),
        "weight": raw.get("weight"),
        "price_per_gram": raw.get("price_per_gram"),
    }
    quantity = to_decimal(item["quantity"])
    weight = to_decimal(item["weight"])
    price = to_decimal(item["price_per_gram"])
    if quantity is not None and weight is not None and price is not None:
        item["total"] = str(line_total(quantity, weight, price))
    return item


def normalize_invoice_arguments(
    arguments: dict[str, Any], default_tax: Decimal
) -> dict[str, Any]:
    """Flatten a create_invoice call into the draft payload shape."""
    customer = arguments.get("customer") or {}
    if not isinstance(customer, dict):
        customer = {"name": customer}
    raw_items = arguments.get("items") or []
    if not isinstance(raw_items, list):
        raw_items = []

    tax = arguments.get("tax_percentage")
    return {
        "customer_name": _clean_str(customer.get("name")),
        "customer_phone": _clean_str(customer.get("phone")),
        "customer_email": _clean_str(customer.get("email")),
        "customer_address": _clean_str(customer.get("address")),
        "customer_id": _clean_str(customer.get("existing_customer_id")),
        "items": [_normalize_item(i) for i in raw_items if isinstance(i, dict)],
        "tax_percentage": tax if tax is not None else str(default_tax),
        "invoice_date": _clean_str(arguments.get("invoice_date"))
        or date.today().isoformat(),
    }


def normalize_customer_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
    """Copy an add_customer call into the draft payload shape."""
    return {
        "name": _clean_str(arguments.get("name")),
        "phone": _clean_str(arguments.get("phone")),
        "email": _clean_str(arguments.get("email")),
        "address": _clean_str(arguments.get("address")),
    }


def missing_required_fields(action_type: ActionType, data: dict[str, Any]) -> list[str]:
    """Required fields absent from a draft, in schema order."""
    return [f for f in REQUIRED_FIELDS[action_type] if _is_missing(data.get(f))]


class IntentExtractor:
    """Turns a user message into an Action or a NoActionDetected reply.

    Example:
        extractor = IntentExtractor(AnthropicCompletionProvider())
        outcome = await extractor.extract(text, history, owner_id, session_id, mode)
    """

    def __init__(
        self,
        provider: CompletionProvider,
        timeout_seconds: float = 30.0,
        default_tax: Decimal = Decimal("3"),
        max_batch: int = 5,
    ) -> None:
        self._provider = provider
        self._timeout_seconds = timeout_seconds
        self._default_tax = default_tax
        self._max_batch = max_batch

    async def extract(
        self,
        user_text: str,
        history: list[CompletionMessage],
        owner_id: str | None,
        session_id: str | None,
        mode: ChatMode,
        extra_context: str = "",
    ) -> Action | NoActionDetected:
        """Run one extraction.

        Raises:
            ExtractionTimeoutError: If the provider exceeds the timeout.
            CompletionProviderError: If the provider call fails.
        """
        mode_config = get_mode_config(mode)
        tools = []
        if mode_config.can_execute_actions and owner_id:
            tools = [
                ACTION_TOOLS[ActionType(name)]
                for name in mode_config.allowed_actions
                if name in ActionType.__members__
            ]

        system_prompt = build_system_prompt(
            mode,
            owner_id=owner_id,
            session_id=session_id,
            default_tax=str(self._default_tax),
            max_batch=self._max_batch,
        )
        if extra_context:
            system_prompt = f"{system_prompt}\n\n{extra_context}"

        messages = [*history, CompletionMessage(role="user", content=user_text)]

        try:
            result = await asyncio.wait_for(
                self._provider.complete(system_prompt, messages, tools),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                "Extraction timed out after %.1fs (session=%s)",
                self._timeout_seconds,
                session_id,
            )
            raise ExtractionTimeoutError(self._timeout_seconds) from e

        if isinstance(result, PlainText):
            return NoActionDetected(
                reply=result.text or _FALLBACK_REPLY, tokens_used=result.tokens_used
            )

        return self._build_action(result, owner_id, session_id, mode_config.allowed_actions)

    def _build_action(
        self,
        call: StructuredCall,
        owner_id: str | None,
        session_id: str | None,
        allowed_actions: tuple[str, ...],
    ) -> Action | NoActionDetected:
        if call.name not in allowed_actions or owner_id is None:
            logger.warning("Provider called unavailable function %r", call.name)
            return NoActionDetected(
                reply=call.text or _FALLBACK_REPLY, tokens_used=call.tokens_used
            )

        action_type = ActionType(call.name)
        if action_type == ActionType.create_invoice:
            data = normalize_invoice_arguments(call.arguments, self._default_tax)
        else:
            data = normalize_customer_arguments(call.arguments)

        missing = missing_required_fields(action_type, data)
        status = ActionStatus.extracting if missing else ActionStatus.validating
        action = Action(
            type=action_type,
            status=status,
            data=data,
            missing_fields=missing,
            owner_id=owner_id,
            session_id=session_id,
            tokens_used=call.tokens_used,
        )
        logger.info(
            "Extracted action %s type=%s status=%s missing=%s",
            action.id,
            action_type.value,
            status.value,
            missing,
        )
        return action
