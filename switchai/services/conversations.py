"""Owner-scoped conversation reads and writes shared by the chat services."""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import SessionLocal
from logging_config import conversation_context
from models.conversation import Conversation
from models.message import Message
from services.errors import CredentialUnavailable, NotFound, PersistenceError
from services.token_usage import sum_message_usage

logger = logging.getLogger(__name__)

TRANSCRIPT_ORDER = (Message.created_at.asc(), Message.id.asc())


class ConversationService:
    def __init__(self, db: Session):
        self.db = db

    def create_conversation(self, user_id: int, title: str | None = None) -> Conversation:
        conv = Conversation(user_profile_id=user_id, title=title or None)
        try:
            self.db.add(conv)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to create conversation for user %s", user_id)
            raise PersistenceError("Failed to create conversation") from exc
        logger.info("Created conversation %s for user %s", conv.id, user_id)
        return conv

    def get_conversation(self, conversation_id: int, user_id: int) -> Conversation:
        stmt = select(Conversation).where(
            Conversation.id == conversation_id,
            Conversation.user_profile_id == user_id,
        )
        try:
            conv = self.db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to fetch conversation") from exc
        if conv is None:
            raise NotFound("Conversation not found")
        return conv

    def delete_conversation(self, conversation_id: int, user_id: int) -> None:
        """Delete a conversation and its messages. Branches of it become roots."""
        conv = self.get_conversation(conversation_id, user_id)
        try:
            self.db.delete(conv)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("Failed to delete conversation") from exc
        logger.info("Deleted conversation %s", conversation_id)

    def get_transcript(
        self,
        conversation_id: int,
        user_id: int,
        *,
        exclude_message_id: int | None = None,
    ) -> list[Message]:
        """All messages of an owned conversation in ``(created_at, id)`` order."""
        self.get_conversation(conversation_id, user_id)
        return self.load_messages(conversation_id, exclude_message_id=exclude_message_id)

    def load_messages(self, conversation_id: int, *, exclude_message_id: int | None = None) -> list[Message]:
        stmt = select(Message).where(Message.conversation_id == conversation_id)
        if exclude_message_id is not None:
            stmt = stmt.where(Message.id != exclude_message_id)
        stmt = stmt.order_by(*TRANSCRIPT_ORDER)
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to fetch conversation history") from exc

    def conversation_usage(self, conversation_id: int, user_id: int) -> dict:
        return sum_message_usage(self.get_transcript(conversation_id, user_id))

    def set_title_once(self, conversation_id: int, user_id: int, title: str) -> bool:
        """Set the title unless one is already present. Returns True if it was set."""
        stmt = (
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                Conversation.user_profile_id == user_id,
                Conversation.title.is_(None),
            )
            .values(title=title)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("Failed to set conversation title") from exc
        return result.rowcount == 1

    def assign_title(self, conversation_id: int, user_id: int, first_message: str, generator=None) -> str:
        """Generate a title from the first user message and store it if unset.

        Returns the conversation's title after the call.
        """
        from services.credentials import CredentialStore
        from services.titles import TitleSummaryGenerator

        conv = self.get_conversation(conversation_id, user_id)
        if conv.title:
            return conv.title

        generator = generator or TitleSummaryGenerator()
        try:
            api_key = CredentialStore(self.db).get_decrypted_key(user_id)
        except CredentialUnavailable:
            api_key = None
        title = generator.generate_title(first_message, api_key)

        if not self.set_title_once(conversation_id, user_id, title):
            self.db.refresh(conv)
            return conv.title or title
        conv.title = title
        logger.info("Titled conversation %s: %r", conversation_id, title)
        return title


def assign_title_job(conversation_id: int, user_id: int, first_message: str) -> None:
    """Background task run after the first exchange of a new conversation."""
    with SessionLocal() as db, conversation_context(conversation_id):
        try:
            ConversationService(db).assign_title(conversation_id, user_id, first_message)
        except (NotFound, PersistenceError):
            logger.exception("Failed to assign title to conversation %s", conversation_id)
