"""Tests for services/conversations.py: owner-scoped conversation helpers."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from models.conversation import Conversation
from models.message import Message
from services.conversations import ConversationService, assign_title_job
from services.errors import NotFound


class TestConversationService:
    def test_create_and_get(self, db, user_profile):
        service = ConversationService(db)
        conv = service.create_conversation(user_profile.id)
        assert conv.id is not None
        assert service.get_conversation(conv.id, user_profile.id).id == conv.id

    def test_other_user_sees_not_found(self, db, conversation, other_user):
        with pytest.raises(NotFound):
            ConversationService(db).get_conversation(conversation.id, other_user.id)

    def test_missing_conversation(self, db, user_profile):
        with pytest.raises(NotFound):
            ConversationService(db).get_conversation(999, user_profile.id)

    def test_transcript_order_uses_id_tie_break(self, db, conversation):
        same = datetime(2026, 3, 1, 9, 30, 0)
        for content in ("first", "second", "third"):
            db.add(Message(conversation_id=conversation.id, role="user", content=content, created_at=same))
            db.commit()
        db.add(Message(
            conversation_id=conversation.id, role="assistant", content="earliest",
            created_at=datetime(2026, 3, 1, 9, 0, 0),
        ))
        db.commit()

        transcript = ConversationService(db).get_transcript(conversation.id, conversation.user_profile_id)

        assert [m.content for m in transcript] == ["earliest", "first", "second", "third"]

    def test_transcript_exclude(self, db, conversation, transcript):
        service = ConversationService(db)
        result = service.get_transcript(
            conversation.id, conversation.user_profile_id, exclude_message_id=transcript[-1].id
        )
        assert [m.id for m in result] == [m.id for m in transcript[:-1]]

    def test_usage(self, db, conversation, transcript):
        usage = ConversationService(db).conversation_usage(conversation.id, conversation.user_profile_id)
        assert usage == {"prompt_tokens": 42, "completion_tokens": 11, "total_tokens": 53, "replies": 2}

    def test_delete(self, db, conversation, transcript):
        service = ConversationService(db)
        service.delete_conversation(conversation.id, conversation.user_profile_id)
        assert db.query(Conversation).count() == 0
        assert db.query(Message).count() == 0

    def test_set_title_once(self, db, user_profile):
        service = ConversationService(db)
        conv = service.create_conversation(user_profile.id)

        assert service.set_title_once(conv.id, user_profile.id, "First") is True
        assert service.set_title_once(conv.id, user_profile.id, "Second") is False
        db.refresh(conv)
        assert conv.title == "First"


class TestAssignTitle:
    def test_generates_and_stores(self, db, user_profile, credential):
        conv = ConversationService(db).create_conversation(user_profile.id)
        generator = MagicMock()
        generator.generate_title.return_value = "List basics"

        title = ConversationService(db).assign_title(conv.id, user_profile.id, "What is a list?", generator)

        assert title == "List basics"
        generator.generate_title.assert_called_once_with("What is a list?", credential)
        db.refresh(conv)
        assert conv.title == "List basics"

    def test_without_credential_passes_none(self, db, user_profile):
        conv = ConversationService(db).create_conversation(user_profile.id)
        generator = MagicMock()
        generator.generate_title.return_value = "What is a list?"

        ConversationService(db).assign_title(conv.id, user_profile.id, "What is a list?", generator)

        generator.generate_title.assert_called_once_with("What is a list?", None)

    def test_existing_title_kept(self, db, conversation):
        generator = MagicMock()
        title = ConversationService(db).assign_title(
            conversation.id, conversation.user_profile_id, "Hi", generator
        )
        assert title == "Python basics"
        generator.generate_title.assert_not_called()


class TestAssignTitleJob:
    @patch("services.titles.ProviderGateway")
    def test_job_uses_own_session(self, mock_gateway_cls, db, user_profile):
        from conftest import TestSession

        conv = ConversationService(db).create_conversation(user_profile.id)
        mock_gateway_cls.return_value.complete.side_effect = RuntimeError("offline")

        with patch("services.conversations.SessionLocal", TestSession):
            assign_title_job(conv.id, user_profile.id, "Explain decorators please")

        db.refresh(conv)
        assert conv.title == "Explain decorators please"

    def test_job_logs_missing_conversation(self, user_profile, caplog):
        from conftest import TestSession

        with patch("services.conversations.SessionLocal", TestSession):
            assign_title_job(12345, user_profile.id, "Hello")

        assert "Failed to assign title" in caplog.text
