"""Send pipeline: store the user turn, ask the provider, store the reply."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from logging_config import conversation_context
from models.message import Message
from services.conversations import ConversationService
from services.credentials import CredentialStore
from services.errors import PersistenceError, ValidationError
from services.history import assemble_prompt, validate_content
from services.llm import Completion, ProviderGateway, resolve_parameters

logger = logging.getLogger(__name__)


class MessageOrchestrator:
    """Coordinates one user turn and its assistant reply.

    The user message is committed before the provider is called, so a failed
    call leaves it in the transcript without an answer. ``retry`` answers such
    a trailing message without storing it a second time.
    """

    def __init__(
        self,
        db: Session,
        gateway: ProviderGateway | None = None,
        credentials: CredentialStore | None = None,
        *,
        max_history_messages: int | None = None,
        max_message_length: int | None = None,
    ):
        self.db = db
        self.gateway = gateway or ProviderGateway()
        self.credentials = credentials or CredentialStore(db)
        self.conversations = ConversationService(db)
        self.max_history_messages = max_history_messages or settings.MAX_HISTORY_MESSAGES
        self.max_message_length = max_message_length or settings.MAX_MESSAGE_LENGTH

    def send(
        self,
        conversation_id: int,
        user_id: int,
        content: str,
        model: str,
        parameters: dict | None = None,
    ) -> tuple[Message, Message]:
        validate_content(content, self.max_message_length)
        params = self.check_request(model, parameters)

        with conversation_context(conversation_id):
            self.conversations.get_conversation(conversation_id, user_id)
            api_key = self.credentials.get_decrypted_key(user_id)

            user_msg = self._store(Message(conversation_id=conversation_id, role="user", content=content))
            logger.info("Stored user message %s", user_msg.id)

            history = self.conversations.load_messages(conversation_id, exclude_message_id=user_msg.id)
            assistant_msg = self._answer(conversation_id, api_key, model, history, content, params)
            return user_msg, assistant_msg

    def retry(
        self,
        conversation_id: int,
        user_id: int,
        model: str,
        parameters: dict | None = None,
    ) -> tuple[Message, Message]:
        """Answer the last message of the conversation if it is an unanswered user turn."""
        params = self.check_request(model, parameters)

        with conversation_context(conversation_id):
            transcript = self.conversations.get_transcript(conversation_id, user_id)
            if not transcript or transcript[-1].role != "user":
                raise ValidationError("Conversation has no unanswered user message to retry")
            api_key = self.credentials.get_decrypted_key(user_id)

            user_msg = transcript[-1]
            logger.info("Retrying reply to user message %s", user_msg.id)
            assistant_msg = self._answer(
                conversation_id, api_key, model, transcript[:-1], user_msg.content, params
            )
            return user_msg, assistant_msg

    @staticmethod
    def check_request(model: str, parameters: dict | None) -> dict:
        """Validate the model id and parameters; returns the resolved parameters."""
        if not model or not model.strip():
            raise ValidationError("Model identifier is required")
        return resolve_parameters(parameters)

    # ── internals ──────────────────────────────────────────────────────────

    def _answer(
        self,
        conversation_id: int,
        api_key: str,
        model: str,
        history: list[Message],
        content: str,
        params: dict,
    ) -> Message:
        prompt = assemble_prompt(
            history,
            content,
            max_turns=self.max_history_messages,
            max_length=self.max_message_length,
        )
        completion: Completion = self.gateway.complete(api_key, model, prompt, params)

        reply = Message(
            conversation_id=conversation_id,
            role="assistant",
            content=completion.text,
            model_name=completion.model,
            prompt_tokens=completion.prompt_tokens,
            completion_tokens=completion.completion_tokens,
        )
        try:
            self._store(reply)
        except PersistenceError:
            logger.error(
                "Reply from %s lost: could not store assistant message (%d chars)",
                completion.model, len(completion.text),
            )
            raise
        logger.info("Stored assistant message %s from %s", reply.id, completion.model)
        return reply

    def _store(self, msg: Message) -> Message:
        try:
            self.db.add(msg)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to store {msg.role} message") from exc
        return msg
