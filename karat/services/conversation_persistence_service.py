"""Persistence service for conversation sessions and messages.

Thin layer between API routes and SQLAlchemy models. All conversation
history reads and writes go through this service. Guest and help chats
are never persisted; only modes whose config sets ``persists_history``
reach this layer.
"""

import json
import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from karat.db.models import (
    ConversationMessage,
    ConversationSession,
    MessageRole,
    generate_uuid,
    utc_now_iso,
)
from karat.errors.domain import NotFoundError
from karat.orchestrator.nl_engine.completion import CompletionMessage

logger = logging.getLogger(__name__)

_TITLE_LENGTH = 60


def _session_title(first_message: str) -> str:
    text = " ".join(first_message.split())
    if len(text) <= _TITLE_LENGTH:
        return text
    return text[: _TITLE_LENGTH - 3].rstrip() + "..."


class ConversationPersistenceService:
    """CRUD operations for persistent conversation sessions and messages.

    Args:
        db: SQLAlchemy session (sync).
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def create_session(
        self,
        owner_id: str,
        mode: str = "assistant",
        title: str | None = None,
    ) -> ConversationSession:
        """Start a new session, deactivating the owner's other sessions.

        Args:
            owner_id: Authenticated owner.
            mode: Chat mode the session was opened in.
            title: Optional title; set from the first message otherwise.

        Returns:
            The created ConversationSession.
        """
        now = utc_now_iso()
        deactivated = (
            self._db.query(ConversationSession)
            .filter(
                ConversationSession.owner_id == owner_id,
                ConversationSession.is_active == True,  # noqa: E712
            )
            .update({"is_active": False, "updated_at": now}, synchronize_session=False)
        )
        session = ConversationSession(
            id=generate_uuid(),
            owner_id=owner_id,
            mode=mode,
            title=title,
        )
        self._db.add(session)
        self._db.commit()
        logger.info(
            "Created session %s for owner %s (deactivated %d)",
            session.id,
            owner_id,
            deactivated,
        )
        return session

    def get_session(self, session_id: str, owner_id: str) -> ConversationSession:
        """Return an owner's session.

        Raises:
            NotFoundError: If absent or owned by someone else.
        """
        session = (
            self._db.query(ConversationSession)
            .filter(
                ConversationSession.id == session_id,
                ConversationSession.owner_id == owner_id,
            )
            .first()
        )
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    def delete_session(self, session_id: str, owner_id: str) -> None:
        """Delete an owner's session along with its messages and actions.

        Raises:
            NotFoundError: If absent or owned by someone else.
        """
        session = self.get_session(session_id, owner_id)
        self._db.delete(session)
        self._db.commit()
        logger.info("Deleted session %s for owner %s", session_id, owner_id)

    def get_or_create_session(
        self, owner_id: str, session_id: str | None, mode: str
    ) -> ConversationSession:
        """Resolve the session a chat turn belongs to, creating it lazily."""
        if session_id:
            return self.get_session(session_id, owner_id)
        return self.create_session(owner_id, mode=mode)

    def save_message(
        self,
        session_id: str,
        role: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ConversationMessage:
        """Append a message to a session with auto-incrementing sequence.

        Args:
            session_id: Parent session ID.
            role: 'user', 'assistant', or 'system'.
            content: Message text.
            metadata: Optional mode, token and action id metadata.

        Returns:
            The created ConversationMessage.
        """
        # SELECT+INSERT is safe under SQLite's single writer; the
        # (session_id, sequence) unique constraint catches anything else.
        max_seq = (
            self._db.query(ConversationMessage.sequence)
            .filter_by(session_id=session_id)
            .order_by(ConversationMessage.sequence.desc())
            .first()
        )
        next_seq = (max_seq[0] + 1) if max_seq else 1

        msg = ConversationMessage(
            id=generate_uuid(),
            session_id=session_id,
            role=role,
            content=content,
            metadata_json=json.dumps(metadata, default=str) if metadata else None,
            sequence=next_seq,
        )
        self._db.add(msg)

        session = self._db.get(ConversationSession, session_id)
        if session:
            session.updated_at = utc_now_iso()
            if not session.title and role == MessageRole.user.value:
                session.title = _session_title(content)

        self._db.commit()
        return msg

    def list_sessions(
        self, owner_id: str, active_only: bool = False
    ) -> list[dict[str, Any]]:
        """List an owner's sessions with message counts, most recent first.

        Args:
            owner_id: Authenticated owner.
            active_only: If True, exclude deactivated sessions.

        Returns:
            List of session summary dicts.
        """
        query = (
            self._db.query(
                ConversationSession.id,
                ConversationSession.title,
                ConversationSession.mode,
                ConversationSession.is_active,
                ConversationSession.created_at,
                ConversationSession.updated_at,
                func.count(ConversationMessage.id).label("message_count"),
            )
            .outerjoin(ConversationMessage)
            .filter(ConversationSession.owner_id == owner_id)
            .group_by(ConversationSession.id)
        )

        if active_only:
            query = query.filter(ConversationSession.is_active == True)  # noqa: E712

        query = query.order_by(
            ConversationSession.updated_at.desc(),
            ConversationSession.created_at.desc(),
        )

        results = []
        for row in query.all():
            results.append({
                "id": row[0],
                "title": row[1],
                "mode": row[2],
                "is_active": row[3],
                "created_at": row[4],
                "updated_at": row[5],
                "message_count": row[6],
            })
        return results

    def get_history(
        self,
        session_id: str,
        owner_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Page through a session's messages in chronological order.

        Args:
            session_id: Session ID.
            owner_id: Authenticated owner; must own the session.
            limit: Max messages to return.
            offset: Skip first N messages.

        Returns:
            Dict with 'messages', 'total' and 'has_more' keys.

        Raises:
            NotFoundError: If the session does not belong to the owner.
        """
        self.get_session(session_id, owner_id)

        base = self._db.query(ConversationMessage).filter_by(session_id=session_id)
        total = base.count()
        rows = (
            base.order_by(
                ConversationMessage.created_at, ConversationMessage.sequence
            )
            .offset(offset)
            .limit(limit)
            .all()
        )

        messages = []
        for m in rows:
            metadata = None
            if m.metadata_json:
                try:
                    metadata = json.loads(m.metadata_json)
                except (json.JSONDecodeError, TypeError):
                    logger.warning("Corrupted metadata_json for message %s", m.id)
            messages.append({
                "id": m.id,
                "role": m.role,
                "content": m.content,
                "metadata": metadata,
                "sequence": m.sequence,
                "created_at": m.created_at,
            })

        return {
            "session_id": session_id,
            "messages": messages,
            "total": total,
            "has_more": offset + len(messages) < total,
        }

    def recent_history(self, session_id: str, limit: int = 10) -> list[CompletionMessage]:
        """Last ``limit`` user/assistant turns, oldest first, for the provider."""
        rows = (
            self._db.query(ConversationMessage)
            .filter(
                ConversationMessage.session_id == session_id,
                ConversationMessage.role.in_(
                    (MessageRole.user.value, MessageRole.assistant.value)
                ),
            )
            .order_by(ConversationMessage.sequence.desc())
            .limit(limit)
            .all()
        )
        return [
            CompletionMessage(role=m.role, content=m.content) for m in reversed(rows)
        ]
