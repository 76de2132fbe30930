"""Branch creation: fork a conversation at any message into a new one.

A branch runs in four steps:

1. *verify* the source message exists and belongs to the caller;
2. *plan* the content of the new conversation (one handler per BranchType);
3. *reserve* the next branch number on the parent with a single atomic
   ``UPDATE ... RETURNING``;
4. *create* the conversation and *populate* it with the planned messages.

Steps 3 and 4 share one transaction. Planning may call the provider (summary
branches) and happens before it, so a failed summary writes nothing and the
write lock is held only for the inserts.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from logging_config import conversation_context
from models.conversation import Conversation
from models.message import Message
from services.credentials import CredentialStore
from services.errors import NotFound, PersistenceError, ValidationError
from services.titles import TITLE_FALLBACK, TitleSummaryGenerator

logger = logging.getLogger(__name__)


class BranchType(str, enum.Enum):
    FULL = "full"
    SUMMARY = "summary"


@dataclass
class MessageDraft:
    role: str
    content: str
    model_name: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    created_at: datetime | None = None

    def to_message(self, conversation_id: int) -> Message:
        msg = Message(
            conversation_id=conversation_id,
            role=self.role,
            content=self.content,
            model_name=self.model_name,
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
        )
        if self.created_at is not None:
            msg.created_at = self.created_at
        return msg


def branch_title(parent_title: str | None, number: int) -> str:
    return f"{parent_title or TITLE_FALLBACK} - branch {number}"


def reserve_branch_number(db: Session, conversation_id: int) -> int:
    """Atomically increment ``branch_count`` and return the new value.

    Runs inside the caller's transaction; the number is only consumed if that
    transaction commits.
    """
    stmt = (
        update(Conversation)
        .where(Conversation.id == conversation_id)
        .values(branch_count=Conversation.branch_count + 1)
        .returning(Conversation.branch_count)
        .execution_options(synchronize_session=False)
    )
    number = db.execute(stmt).scalar_one_or_none()
    if number is None:
        raise NotFound("Parent conversation not found")
    return number


def messages_through(db: Session, source: Message) -> list[Message]:
    """Messages of the source's conversation up to and including *source*."""
    stmt = (
        select(Message)
        .where(
            Message.conversation_id == source.conversation_id,
            or_(
                Message.created_at < source.created_at,
                and_(Message.created_at == source.created_at, Message.id <= source.id),
            ),
        )
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


class BranchEngine:
    def __init__(
        self,
        db: Session,
        generator: TitleSummaryGenerator | None = None,
        credentials: CredentialStore | None = None,
    ):
        self.db = db
        self.generator = generator or TitleSummaryGenerator()
        self.credentials = credentials or CredentialStore(db)
        self._planners = {
            BranchType.FULL: self._plan_full,
            BranchType.SUMMARY: self._plan_summary,
        }

    def create_branch(
        self,
        source_message_id: int,
        user_id: int,
        branch_type: BranchType | str,
        conversation_id: int | None = None,
    ) -> Conversation:
        try:
            branch_type = BranchType(branch_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown branch type: {branch_type!r}") from exc

        source, parent = self._verify(source_message_id, user_id, conversation_id)
        with conversation_context(parent.id):
            try:
                drafts = self._planners[branch_type](source, user_id)
            except SQLAlchemyError as exc:
                raise PersistenceError("Failed to read conversation history") from exc
            branch = self._write(parent, drafts)
            logger.info(
                "Created %s branch %s (%r) from message %s with %d message(s)",
                branch_type.value, branch.id, branch.title, source.id, len(drafts),
            )
            return branch

    # ── steps ──────────────────────────────────────────────────────────────

    def _verify(
        self, message_id: int, user_id: int, conversation_id: int | None
    ) -> tuple[Message, Conversation]:
        stmt = (
            select(Message, Conversation)
            .join(Conversation, Message.conversation_id == Conversation.id)
            .where(Message.id == message_id, Conversation.user_profile_id == user_id)
        )
        if conversation_id is not None:
            stmt = stmt.where(Message.conversation_id == conversation_id)
        try:
            row = self.db.execute(stmt).one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to fetch source message") from exc
        if row is None:
            raise NotFound("Message not found")
        return row[0], row[1]

    def _plan_full(self, source: Message, user_id: int) -> list[MessageDraft]:
        return [
            MessageDraft(
                role=msg.role,
                content=msg.content,
                model_name=msg.model_name,
                prompt_tokens=msg.prompt_tokens,
                completion_tokens=msg.completion_tokens,
                created_at=msg.created_at,
            )
            for msg in messages_through(self.db, source)
        ]

    def _plan_summary(self, source: Message, user_id: int) -> list[MessageDraft]:
        api_key = self.credentials.get_decrypted_key(user_id)
        transcript = messages_through(self.db, source)
        summary = self.generator.generate_summary(transcript, api_key)
        return [MessageDraft(role="system", content=summary)]

    def _write(self, parent: Conversation, drafts: list[MessageDraft]) -> Conversation:
        try:
            number = reserve_branch_number(self.db, parent.id)
            branch = Conversation(
                user_profile_id=parent.user_profile_id,
                parent_conversation_id=parent.id,
                title=branch_title(parent.title, number),
            )
            self.db.add(branch)
            self.db.flush()
            self.db.add_all([draft.to_message(branch.id) for draft in drafts])
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Branch of conversation %s rolled back", parent.id)
            raise PersistenceError("Failed to create branch") from exc
        except Exception:
            self.db.rollback()
            raise
        return branch
