"""FastAPI routes for confirming and cancelling assistant actions.

Endpoints:
    GET  /actions/{id}            Fetch an action
    POST /actions/{id}/execute    Confirm and execute
    POST /actions/{id}/cancel     Cancel before execution
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from karat.api.dependencies import get_chat_pipeline
from karat.api.middleware.auth import require_owner_id
from karat.api.schemas import ErrorResponse
from karat.db.connection import get_db
from karat.errors.domain import NotFoundError
from karat.errors.formatter import KaratError
from karat.orchestrator.actions.state_machine import InvalidActionTransition
from karat.orchestrator.models.action import Action, ExecutionResult
from karat.services.action_service import ActionService
from karat.services.chat_pipeline import ChatPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/actions", tags=["actions"])


@router.get("/{action_id}", response_model=Action)
def get_action(
    action_id: str,
    owner_id: str = Depends(require_owner_id),
    db: Session = Depends(get_db),
) -> Action:
    """Fetch one of the owner's actions."""
    try:
        return ActionService(db).get(action_id, owner_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/{action_id}/execute",
    response_model=ExecutionResult,
    responses={404: {}, 409: {"model": ErrorResponse}},
)
def execute_action(
    action_id: str,
    owner_id: str = Depends(require_owner_id),
    pipeline: ChatPipeline = Depends(get_chat_pipeline),
) -> ExecutionResult | JSONResponse:
    """Execute a confirmed action.

    Executing an action that already completed returns its stored result.
    An action that is not awaiting confirmation gets 409 with E-2003.
    """
    try:
        result = pipeline.execute_action(action_id, owner_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if result.error_code is not None:
        return JSONResponse(status_code=409, content=result.model_dump(mode="json"))
    logger.info(
        "Action %s executed by owner %s: success=%s", action_id, owner_id, result.success
    )
    return result


@router.post("/{action_id}/cancel", response_model=Action)
def cancel_action(
    action_id: str,
    owner_id: str = Depends(require_owner_id),
    pipeline: ChatPipeline = Depends(get_chat_pipeline),
) -> Action:
    """Cancel a draft that has not started executing."""
    try:
        return pipeline.cancel_action(action_id, owner_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidActionTransition as e:
        raise KaratError.from_code(
            "E-2002",
            current=e.current_state.value,
            attempted=e.attempted_state.value,
        )
