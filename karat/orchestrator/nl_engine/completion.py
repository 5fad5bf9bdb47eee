"""Completion provider interface and the Anthropic implementation.

The pipeline only depends on ``CompletionProvider``: given a system
instruction, a conversation and a set of function schemas, the provider
returns either plain text or one structured function call. Tests swap in
a fake provider; production uses Claude's tool-use interface.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import anthropic
from anthropic import AsyncAnthropic

from karat.orchestrator.nl_engine.config import get_model

logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    """Binary content sent alongside a user message (bill image, PDF)."""

    media_type: str
    data: bytes


@dataclass
class CompletionMessage:
    """One conversation turn as seen by the provider."""

    role: Literal["user", "assistant"]
    content: str
    attachments: list[Attachment] = field(default_factory=list)


@dataclass
class ToolSpec:
    """Function-call schema offered to the provider."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class PlainText:
    """Provider replied with ordinary conversation."""

    text: str
    tokens_used: int = 0


@dataclass
class StructuredCall:
    """Provider invoked one of the offered functions."""

    name: str
    arguments: dict[str, Any]
    text: str = ""
    tokens_used: int = 0


CompletionResult = PlainText | StructuredCall


class CompletionProviderError(Exception):
    """Provider transport or API failure.

    Attributes:
        message: Human-readable error description.
        rate_limited: True when the provider itself throttled the call.
    """

    def __init__(self, message: str, rate_limited: bool = False) -> None:
        self.message = message
        self.rate_limited = rate_limited
        super().__init__(message)


class CompletionProvider(Protocol):
    """Anything that can turn a conversation into text or a function call."""

    async def complete(
        self,
        system_prompt: str,
        messages: list[CompletionMessage],
        tools: list[ToolSpec] | None = None,
        force_tool: str | None = None,
    ) -> CompletionResult: ...


# Anthropic accepts image/jpeg but not the image/jpg alias browsers send
_MEDIA_TYPE_ALIASES = {"image/jpg": "image/jpeg"}


def _attachment_block(attachment: Attachment) -> dict[str, Any]:
    media_type = _MEDIA_TYPE_ALIASES.get(attachment.media_type, attachment.media_type)
    source = {
        "type": "base64",
        "media_type": media_type,
        "data": base64.standard_b64encode(attachment.data).decode("ascii"),
    }
    if media_type == "application/pdf":
        return {"type": "document", "source": source}
    return {"type": "image", "source": source}


def _to_api_messages(messages: list[CompletionMessage]) -> list[dict[str, Any]]:
    """Convert turns to Messages API format.

    Consecutive turns from the same role are merged, since the API requires
    alternating roles starting with the user.
    """
    api_messages: list[dict[str, Any]] = []
    for msg in messages:
        blocks: list[dict[str, Any]] = [_attachment_block(a) for a in msg.attachments]
        if msg.content:
            blocks.append({"type": "text", "text": msg.content})
        if not blocks:
            continue
        if api_messages and api_messages[-1]["role"] == msg.role:
            api_messages[-1]["content"].extend(blocks)
        elif not api_messages and msg.role == "assistant":
            continue
        else:
            api_messages.append({"role": msg.role, "content": blocks})
    return api_messages


class AnthropicCompletionProvider:
    """CompletionProvider backed by the Anthropic Messages API."""

    def __init__(
        self,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._model = get_model(model)
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = client

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic()
        return self._client

    async def complete(
        self,
        system_prompt: str,
        messages: list[CompletionMessage],
        tools: list[ToolSpec] | None = None,
        force_tool: str | None = None,
    ) -> CompletionResult:
        """Send the conversation and return text or a structured call.

        Raises:
            CompletionProviderError: On any API or transport failure.
        """
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "system": system_prompt,
            "messages": _to_api_messages(messages),
        }
        if tools:
            kwargs["tools"] = [
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": t.input_schema,
                }
                for t in tools
            ]
            if force_tool:
                kwargs["tool_choice"] = {"type": "tool", "name": force_tool}
            else:
                kwargs["tool_choice"] = {"type": "auto"}

        try:
            response = await self._get_client().messages.create(**kwargs)
        except anthropic.RateLimitError as e:
            raise CompletionProviderError(
                "Provider rate limit exceeded", rate_limited=True
            ) from e
        except anthropic.APIError as e:
            logger.warning("Completion request failed: %s", type(e).__name__)
            raise CompletionProviderError(f"API call failed: {e}") from e

        tokens_used = 0
        if response.usage is not None:
            tokens_used = response.usage.input_tokens + response.usage.output_tokens

        text_parts: list[str] = []
        for block in response.content:
            if block.type == "tool_use":
                return StructuredCall(
                    name=block.name,
                    arguments=dict(block.input or {}),
                    text="".join(text_parts).strip(),
                    tokens_used=tokens_used,
                )
            if block.type == "text":
                text_parts.append(block.text)

        return PlainText(text="".join(text_parts).strip(), tokens_used=tokens_used)
