"""FastAPI routes for the conversational assistant.

Endpoints:
    POST /chat                          Send one chat turn
    POST /chat/sessions                 Start a new session
    GET  /chat/sessions                 List the owner's sessions
    GET  /chat/sessions/{id}/history    Page through a session
    DELETE /chat/sessions/{id}          Delete a session and its messages
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from karat.api.dependencies import get_chat_pipeline
from karat.api.middleware.auth import get_client_ip, get_owner_id, require_owner_id
from karat.api.schemas import (
    ChatActionResponse,
    ChatMessageResponse,
    ChatRequestBody,
    CreateSessionRequest,
    ErrorResponse,
    HistoryResponse,
    SessionListResponse,
    SessionSummary,
)
from karat.db.connection import get_db
from karat.errors.domain import NotFoundError
from karat.services.chat_pipeline import (
    ActionReply,
    ChatPipeline,
    ChatRequest,
    MessageReply,
    PipelineRejection,
)
from karat.services.conversation_persistence_service import (
    ConversationPersistenceService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def rejection_response(rejection: PipelineRejection) -> JSONResponse:
    """Render a pipeline rejection as a coded JSON error."""
    body = ErrorResponse(
        error_code=rejection.code,
        message=rejection.message,
        category=rejection.category,
        is_retryable=rejection.is_retryable,
    )
    return JSONResponse(status_code=rejection.status_code, content=body.model_dump())


@router.post(
    "",
    response_model=ChatMessageResponse | ChatActionResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse},
               429: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def send_message(
    body: ChatRequestBody,
    request: Request,
    pipeline: ChatPipeline = Depends(get_chat_pipeline),
) -> ChatMessageResponse | ChatActionResponse | JSONResponse:
    """Run one message through the assistant pipeline."""
    context = body.context
    chat_request = ChatRequest(
        message=body.message,
        mode=body.mode,
        owner_id=get_owner_id(request),
        client_address=get_client_ip(request),
        session_id=body.session_id,
        location=context.location if context else None,
        prior_questions=context.prior_questions if context else [],
    )

    try:
        outcome = await pipeline.handle(chat_request)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if isinstance(outcome, PipelineRejection):
        return rejection_response(outcome)
    if isinstance(outcome, MessageReply):
        return ChatMessageResponse(
            response=outcome.response,
            session_id=outcome.session_id,
            tokens_used=outcome.tokens_used,
            message_id=outcome.message_id,
            user_message_id=outcome.user_message_id,
        )
    if isinstance(outcome, ActionReply):
        return ChatActionResponse(
            action=outcome.action,
            response=outcome.response,
            session_id=outcome.session_id,
            tokens_used=outcome.tokens_used,
            message_id=outcome.message_id,
            user_message_id=outcome.user_message_id,
        )
    raise TypeError(f"Unexpected pipeline outcome: {type(outcome).__name__}")


@router.post("/sessions", response_model=SessionSummary, status_code=201)
def create_session(
    body: CreateSessionRequest | None = None,
    owner_id: str = Depends(require_owner_id),
    db: Session = Depends(get_db),
) -> SessionSummary:
    """Start a new session, deactivating the owner's previous one."""
    body = body or CreateSessionRequest()
    svc = ConversationPersistenceService(db)
    session = svc.create_session(owner_id, mode=body.mode.value, title=body.title)
    return SessionSummary(
        id=session.id,
        title=session.title,
        mode=session.mode,
        is_active=session.is_active,
        created_at=session.created_at,
        updated_at=session.updated_at,
        message_count=0,
    )


@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(
    active_only: bool = False,
    owner_id: str = Depends(require_owner_id),
    db: Session = Depends(get_db),
) -> SessionListResponse:
    """List the owner's sessions, most recently updated first."""
    svc = ConversationPersistenceService(db)
    rows = svc.list_sessions(owner_id, active_only=active_only)
    return SessionListResponse(sessions=[SessionSummary(**r) for r in rows])


@router.get("/sessions/{session_id}/history", response_model=HistoryResponse)
def get_history(
    session_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    owner_id: str = Depends(require_owner_id),
    db: Session = Depends(get_db),
) -> HistoryResponse:
    """Page through a session's messages in chronological order."""
    svc = ConversationPersistenceService(db)
    try:
        page = svc.get_history(session_id, owner_id, limit=limit, offset=offset)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return HistoryResponse(**page)


@router.delete("/sessions/{session_id}")
def delete_session(
    session_id: str,
    owner_id: str = Depends(require_owner_id),
    db: Session = Depends(get_db),
) -> dict:
    """Delete one of the owner's sessions with its messages and drafts."""
    svc = ConversationPersistenceService(db)
    try:
        svc.delete_session(session_id, owner_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"deleted": True, "session_id": session_id}
