"""Conversational action pipeline.

The single entry point for a chat turn. Stages run in a fixed order and
each one either passes the message on or ends the turn with a typed
result. The only exception ``ChatPipeline.handle`` lets through is
NotFoundError for a session id the caller does not own.

    length -> content filter -> rate limiter -> capability check
        -> session + history -> intent extraction
        -> (no action) plain reply
        -> (action) missing-field prompt | validation -> confirmation
           or immediate execution when auto_confirm is set

Example:
    pipeline = ChatPipeline(db, provider, get_rate_limiter(), get_config())
    outcome = await pipeline.handle(ChatRequest(message="hi", mode=ChatMode.guest))
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from karat.config import KaratConfig
from karat.db.models import ActionStatus, MessageRole
from karat.errors.formatter import KaratError
from karat.errors.registry import get_error
from karat.orchestrator.actions.confirmation import (
    confirmation_message,
    missing_fields_message,
    validation_error_message,
)
from karat.orchestrator.actions.executor import ActionExecutor
from karat.orchestrator.actions.validator import ActionValidator
from karat.orchestrator.models.action import Action, ExecutionResult, NoActionDetected
from karat.orchestrator.models.mode import ChatMode
from karat.orchestrator.modes.prompts import build_prior_questions_note
from karat.orchestrator.modes.resolver import ModeTransitionTracker, get_mode_config
from karat.orchestrator.nl_engine.completion import (
    CompletionMessage,
    CompletionProvider,
    CompletionProviderError,
)
from karat.orchestrator.nl_engine.config import get_model
from karat.orchestrator.nl_engine.intent_extractor import (
    ExtractionTimeoutError,
    IntentExtractor,
)
from karat.orchestrator.security.content_filter import classify, redact
from karat.services.action_service import ActionService
from karat.services.conversation_persistence_service import (
    ConversationPersistenceService,
)
from karat.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class ChatRequest:
    """One inbound chat turn."""

    message: str
    mode: ChatMode
    owner_id: str | None = None
    client_address: str | None = None
    session_id: str | None = None
    location: str | None = None
    prior_questions: list[str] = field(default_factory=list)

    @property
    def identifier(self) -> str:
        """Rate-limit key: the owner when authenticated, else the client."""
        return self.owner_id or self.client_address or "anonymous"


@dataclass
class MessageReply:
    """Ordinary conversational reply."""

    response: str
    session_id: str | None = None
    tokens_used: int = 0
    message_id: str | None = None
    user_message_id: str | None = None


@dataclass
class ActionReply:
    """A detected action, with the text shown alongside it."""

    action: Action
    response: str
    session_id: str | None = None
    tokens_used: int = 0
    message_id: str | None = None
    user_message_id: str | None = None


@dataclass
class PipelineRejection:
    """A turn stopped before or during extraction."""

    code: str
    category: str
    message: str
    status_code: int
    is_retryable: bool = False

    @classmethod
    def from_code(
        cls, code: str, category: str | None = None, **kwargs: object
    ) -> "PipelineRejection":
        """Build a rejection from a registry code.

        ``category`` overrides the code's registry category, e.g. with the
        content-filter category that rejected the message.
        """
        error = KaratError.from_code(code, **kwargs)
        if category is None:
            error_def = get_error(code)
            category = error_def.category.value if error_def else "system"
        return cls(
            code=error.code,
            category=category,
            message=error.message,
            status_code=error.status_code,
            is_retryable=error.is_retryable,
        )


ChatOutcome = MessageReply | ActionReply | PipelineRejection


class ChatPipeline:
    """Wires the filter, limiter, extractor, validator and executor together.

    Attributes:
        db: Request-scoped SQLAlchemy session.
        config: Loaded application configuration.
    """

    def __init__(
        self,
        db: Session,
        provider: CompletionProvider,
        rate_limiter: RateLimiter,
        config: KaratConfig | None = None,
        tracker: ModeTransitionTracker | None = None,
    ) -> None:
        self.db = db
        self.config = config or KaratConfig()
        self._limiter = rate_limiter
        self._tracker = tracker
        self._extractor = IntentExtractor(
            provider,
            timeout_seconds=self.config.completion.timeout_seconds,
            default_tax=self.config.validation.default_tax_percentage,
            max_batch=self.config.content_filter.max_batch_count,
        )
        self._validator = ActionValidator(db, self.config.validation)
        self._executor = ActionExecutor(db, self.config.execution)
        self._actions = ActionService(db)
        self._conversations = ConversationPersistenceService(db)

    async def handle(self, request: ChatRequest) -> ChatOutcome:
        """Run one chat turn through every stage."""
        rejection = self._gate(request)
        if rejection is not None:
            return rejection

        mode_config = get_mode_config(request.mode)
        if request.location and self._tracker is not None:
            self._tracker.observe(
                request.identifier, request.owner_id is not None, request.location
            )

        session_id = None
        user_message_id = None
        history: list[CompletionMessage] = []
        persist = mode_config.persists_history and request.owner_id is not None
        if persist:
            session = self._conversations.get_or_create_session(
                request.owner_id, request.session_id, request.mode.value
            )
            session_id = session.id
            history = self._conversations.recent_history(
                session_id, limit=self.config.completion.history_limit
            )
            user_message_id = self._conversations.save_message(
                session_id, MessageRole.user.value, request.message
            ).id

        try:
            outcome = await self._extractor.extract(
                request.message,
                history,
                owner_id=request.owner_id if mode_config.can_execute_actions else None,
                session_id=session_id,
                mode=request.mode,
                extra_context=build_prior_questions_note(request.prior_questions),
            )
        except ExtractionTimeoutError:
            return PipelineRejection.from_code("E-3002")
        except CompletionProviderError as e:
            logger.warning("Completion provider failed: %s", e)
            if e.rate_limited:
                return PipelineRejection.from_code("E-3003")
            return PipelineRejection.from_code("E-3001")

        if isinstance(outcome, NoActionDetected):
            response = redact(outcome.reply)
            message_id = None
            if persist:
                message_id = self._save_assistant(
                    session_id,
                    response,
                    {"mode": request.mode.value, "tokens_used": outcome.tokens_used},
                )
            return MessageReply(
                response=response,
                session_id=session_id,
                tokens_used=outcome.tokens_used,
                message_id=message_id,
                user_message_id=user_message_id,
            )

        action, response = self._process_action(outcome)
        response = redact(response)
        message_id = None
        if persist:
            message_id = self._save_assistant(
                session_id,
                response,
                {
                    "mode": request.mode.value,
                    "tokens_used": outcome.tokens_used,
                    "action_id": action.id,
                },
            )
        return ActionReply(
            action=action,
            response=response,
            session_id=session_id,
            tokens_used=outcome.tokens_used,
            message_id=message_id,
            user_message_id=user_message_id,
        )

    def _gate(self, request: ChatRequest) -> PipelineRejection | None:
        text = request.message
        limit = self.config.content_filter.max_message_length
        if not text or not text.strip():
            return PipelineRejection.from_code("E-1003")
        if len(text) > limit:
            return PipelineRejection.from_code("E-1002", limit=limit)

        verdict = classify(text, self.config.content_filter.max_batch_count)
        if not verdict.safe:
            return PipelineRejection.from_code(
                "E-1001",
                category=verdict.category.value if verdict.category else None,
                reason=verdict.reason or "Message rejected",
            )

        if not self._limiter.allow(request.identifier, request.mode.value):
            return PipelineRejection.from_code("E-6001")

        mode_config = get_mode_config(request.mode)
        if mode_config.requires_authentication and request.owner_id is None:
            return PipelineRejection.from_code("E-5001", mode=request.mode.value)
        return None

    def _process_action(self, action: Action) -> tuple[Action, str]:
        """Persist a fresh action and move it as far as it can go."""
        tokens_used = action.tokens_used
        action = self._actions.create(action)
        action.tokens_used = tokens_used
        if action.session_id:
            self._actions.supersede_open_actions(
                action.session_id, action.owner_id, keep_id=action.id
            )

        if action.status == ActionStatus.extracting:
            return action, missing_fields_message(action.type, action.missing_fields)

        outcome = self._validator.validate(action.type, action.data, action.owner_id)
        if not outcome.is_valid:
            action = self._actions.transition_status(
                action.id,
                action.owner_id,
                ActionStatus.failed,
                findings=outcome.findings,
                error_message="Validation failed",
            )
            return action, validation_error_message(outcome.findings)

        action = self._actions.transition_status(
            action.id,
            action.owner_id,
            ActionStatus.awaiting_confirmation,
            data=outcome.enhanced_payload.model_dump(mode="json"),
            findings=outcome.findings,
        )
        if not self.config.execution.auto_confirm:
            return action, confirmation_message(outcome.enhanced_payload, outcome.findings)

        result = self._executor.execute(action)
        return self._actions.get(action.id, action.owner_id), result.message

    def execute_action(self, action_id: str, owner_id: str) -> ExecutionResult:
        """Execute a confirmed action; a completed one returns its stored result.

        Raises:
            NotFoundError: If the action does not belong to the owner.
        """
        action = self._actions.get(action_id, owner_id)
        result = self._executor.execute(action)
        replayed = self._executor.replayed
        if action.session_id and not replayed and result.error_code is None:
            self._save_assistant(
                action.session_id, redact(result.message), {"action_id": action_id}
            )
        return result

    def cancel_action(self, action_id: str, owner_id: str) -> Action:
        """Cancel a draft before execution.

        Raises:
            NotFoundError: If the action does not belong to the owner.
            InvalidActionTransition: If the action has started executing
                or already finished.
        """
        action = self._actions.transition_status(
            action_id, owner_id, ActionStatus.cancelled
        )
        logger.info("Action %s cancelled by owner %s", action_id, owner_id)
        return action

    def _save_assistant(
        self, session_id: str, content: str, metadata: dict[str, Any]
    ) -> str:
        metadata.setdefault("model", get_model(self.config.completion.model))
        return self._conversations.save_message(
            session_id, MessageRole.assistant.value, content, metadata
        ).id
