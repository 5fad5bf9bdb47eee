"""Pydantic schemas for API request/response validation.

Defines the contracts for the chat, session, action, settings and
bill-extraction endpoints. Action and execution bodies reuse the
orchestrator models directly.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from karat.orchestrator.models.action import Action
from karat.orchestrator.models.bill import PurchaseBill
from karat.orchestrator.models.mode import ChatMode


class ChatContext(BaseModel):
    """Where the user is and what they asked before signing in."""

    location: str | None = Field(default=None, description="Current page path")
    prior_questions: list[str] = Field(default_factory=list)


class ChatRequestBody(BaseModel):
    """Request for one chat turn.

    Length and emptiness are checked by the pipeline so they surface as
    coded rejections rather than generic validation errors.
    """

    message: str
    session_id: str | None = None
    mode: ChatMode = ChatMode.guest
    context: ChatContext | None = None


class ChatMessageResponse(BaseModel):
    """Ordinary conversational reply."""

    type: Literal["message"] = "message"
    response: str
    session_id: str | None = None
    tokens_used: int = 0
    message_id: str | None = None
    user_message_id: str | None = None


class ChatActionResponse(BaseModel):
    """Reply carrying a detected action."""

    type: Literal["action"] = "action"
    action: Action
    response: str
    session_id: str | None = None
    tokens_used: int = 0
    message_id: str | None = None
    user_message_id: str | None = None


class ErrorResponse(BaseModel):
    """Coded error body shared by every endpoint."""

    error_code: str
    message: str
    category: str | None = None
    remediation: str | None = None
    is_retryable: bool = False
    details: dict[str, Any] | None = None


class CreateSessionRequest(BaseModel):
    """Optional body for starting a fresh chat session."""

    mode: ChatMode = ChatMode.assistant
    title: str | None = Field(default=None, max_length=255)


class SessionSummary(BaseModel):
    """Chat session in the sidebar listing."""

    id: str
    title: str | None = None
    mode: str
    is_active: bool
    created_at: str
    updated_at: str
    message_count: int = 0


class SessionListResponse(BaseModel):
    sessions: list[SessionSummary]


class HistoryMessage(BaseModel):
    """A single persisted message."""

    id: str
    role: str
    content: str
    metadata: dict[str, Any] | None = None
    sequence: int
    created_at: str


class HistoryResponse(BaseModel):
    """One page of a session's history."""

    session_id: str
    messages: list[HistoryMessage]
    total: int
    has_more: bool


class FirmProfileResponse(BaseModel):
    """Firm details printed on invoices."""

    owner_id: str
    firm_name: str
    firm_address: str | None = None
    firm_phone: str | None = None
    firm_gstin: str | None = None
    updated_at: str

    model_config = {"from_attributes": True}


class FirmProfilePatch(BaseModel):
    """Patch for firm details (all fields optional)."""

    firm_name: str | None = Field(default=None, min_length=1, max_length=200)
    firm_address: str | None = None
    firm_phone: str | None = None
    firm_gstin: str | None = Field(default=None, max_length=20)


class BillExtractionResponse(BaseModel):
    """Successfully extracted purchase bill."""

    success: bool = True
    data: PurchaseBill
    tokens_used: int = 0
