"""Persistence for agent actions with state machine validation.

``transition_status`` is the only place an action's status changes. Every
other field update rides along with a transition so the stored record is
always consistent with its status.
"""

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from karat.db.models import ActionStatus, AgentAction, utc_now_iso
from karat.errors.domain import NotFoundError, ValidationError
from karat.orchestrator.actions.state_machine import (
    INITIAL_STATUSES,
    TERMINAL_STATUSES,
    ensure_transition,
)
from karat.orchestrator.models.action import (
    Action,
    ActionType,
    ExecutionResult,
    ValidationFinding,
)
from karat.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

# Statuses an older draft in the same session may be superseded from
_SUPERSEDABLE = tuple(
    status.value
    for status in ActionStatus
    if status not in TERMINAL_STATUSES and status != ActionStatus.executing
)


def _dump(value: Any) -> str:
    return json.dumps(value, default=str)


def action_from_row(row: AgentAction) -> Action:
    """Convert an AgentAction row to the Action model."""
    result = None
    if row.result_json:
        result = ExecutionResult.model_validate_json(row.result_json)
    return Action(
        id=row.id,
        type=ActionType(row.action_type),
        status=ActionStatus(row.status),
        data=json.loads(row.data_json or "{}"),
        missing_fields=json.loads(row.missing_fields_json or "[]"),
        findings=[
            ValidationFinding.model_validate(f)
            for f in json.loads(row.findings_json or "[]")
        ],
        owner_id=row.owner_id,
        session_id=row.session_id,
        entity_id=row.entity_id,
        error_message=row.error_message,
        result=result,
        created_at=row.created_at,
        updated_at=row.updated_at,
        executed_at=row.executed_at,
    )


class ActionService:
    """Service for action lifecycle management.

    Attributes:
        db: SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _get_row(self, action_id: str, owner_id: str) -> AgentAction:
        row = (
            self.db.query(AgentAction)
            .filter(AgentAction.id == action_id, AgentAction.owner_id == owner_id)
            .first()
        )
        if row is None:
            raise NotFoundError("Action", action_id)
        return row

    def create(self, action: Action) -> Action:
        """Persist a freshly extracted action.

        Raises:
            ValidationError: If the action is not in an initial status.
        """
        if action.status not in INITIAL_STATUSES:
            raise ValidationError(
                f"New actions must start in an initial status, got '{action.status.value}'"
            )
        row = AgentAction(
            id=action.id,
            session_id=action.session_id,
            owner_id=action.owner_id,
            action_type=action.type.value,
            status=action.status.value,
            data_json=_dump(action.data),
            missing_fields_json=_dump(action.missing_fields),
            findings_json=_dump([f.model_dump(mode="json") for f in action.findings]),
            created_at=action.created_at,
            updated_at=action.updated_at,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return action_from_row(row)

    def get(self, action_id: str, owner_id: str) -> Action:
        """Fetch an action owned by ``owner_id``.

        Raises:
            NotFoundError: If absent or owned by someone else.
        """
        return action_from_row(self._get_row(action_id, owner_id))

    def transition_status(
        self,
        action_id: str,
        owner_id: str,
        target: ActionStatus,
        *,
        data: dict[str, Any] | None = None,
        findings: list[ValidationFinding] | None = None,
        entity_id: str | None = None,
        error_message: str | None = None,
        result: ExecutionResult | None = None,
    ) -> Action:
        """Move an action to ``target``, updating accompanying fields.

        Raises:
            NotFoundError: If the action does not exist for this owner.
            InvalidActionTransition: If the transition is not allowed.
        """
        row = self._get_row(action_id, owner_id)
        ensure_transition(ActionStatus(row.status), target)

        now = utc_now_iso()
        previous = row.status
        row.status = target.value
        row.updated_at = now
        if data is not None:
            row.data_json = _dump(data)
        if findings is not None:
            row.findings_json = _dump([f.model_dump(mode="json") for f in findings])
        if entity_id is not None:
            row.entity_id = entity_id
        if error_message is not None:
            row.error_message = sanitize_error_message(error_message)
        if result is not None:
            row.result_json = result.model_dump_json()
        if target in (ActionStatus.completed, ActionStatus.failed):
            row.executed_at = now

        self.db.commit()
        self.db.refresh(row)
        logger.info("Action %s: %s -> %s", action_id, previous, target.value)
        return action_from_row(row)

    def supersede_open_actions(self, session_id: str, owner_id: str, keep_id: str) -> int:
        """Cancel older unexecuted actions in a session.

        Returns:
            Number of actions cancelled.
        """
        rows = (
            self.db.query(AgentAction)
            .filter(
                AgentAction.session_id == session_id,
                AgentAction.owner_id == owner_id,
                AgentAction.id != keep_id,
                AgentAction.status.in_(_SUPERSEDABLE),
            )
            .all()
        )
        for row in rows:
            self.transition_status(row.id, owner_id, ActionStatus.cancelled)
        return len(rows)
