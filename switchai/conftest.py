"""Root conftest: shared fixtures for all switchai tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path

# Ensure switchai/ is on sys.path
_package_dir = str(Path(__file__).resolve().parent)
if _package_dir not in sys.path:
    sys.path.insert(0, _package_dir)

# Set encryption key for tests
if not os.environ.get("FIELD_ENCRYPTION_KEY"):
    from cryptography.fernet import Fernet
    os.environ["FIELD_ENCRYPTION_KEY"] = Fernet.generate_key().decode()

from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
import models  # noqa: F401  register all models with Base

# In-memory SQLite; StaticPool makes every connection share the same DB
TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(TEST_ENGINE, "connect")
def _enable_foreign_keys(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSession = sessionmaker(bind=TEST_ENGINE, autoflush=False, expire_on_commit=False)


@pytest.fixture(autouse=True)
def _setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db():
    """Yield a test database session."""
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_profile(db):
    from models.user import UserProfile

    profile = UserProfile(username="testuser")
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def other_user(db):
    from models.user import UserProfile

    profile = UserProfile(username="intruder")
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def api_key(db, user_profile):
    from models.user import APIKey

    key = APIKey(user_id=user_profile.id)
    db.add(key)
    db.commit()
    db.refresh(key)
    return key


@pytest.fixture
def credential(db, user_profile):
    """A stored OpenRouter key for ``user_profile``."""
    from services.credentials import CredentialStore

    CredentialStore(db).upsert_key(user_profile.id, "sk-or-test-key")
    return "sk-or-test-key"


@pytest.fixture
def conversation(db, user_profile):
    from models.conversation import Conversation

    conv = Conversation(user_profile_id=user_profile.id, title="Python basics")
    db.add(conv)
    db.commit()
    db.refresh(conv)
    return conv


@pytest.fixture
def transcript(db, conversation):
    """``[U1, A1, U2, A2]`` stored with strictly increasing timestamps."""
    from datetime import datetime, timedelta

    from models.message import Message

    base = datetime(2024, 1, 1, 12, 0, 0)
    rows = [
        ("user", "What is a list?", None, None, None),
        ("assistant", "A mutable sequence.", "openai/gpt-4o-mini", 12, 5),
        ("user", "And a tuple?", None, None, None),
        ("assistant", "An immutable sequence.", "anthropic/claude-3.5-sonnet", 30, 6),
    ]
    messages = []
    for i, (role, content, model_name, prompt_t, completion_t) in enumerate(rows):
        msg = Message(
            conversation_id=conversation.id,
            role=role,
            content=content,
            model_name=model_name,
            prompt_tokens=prompt_t,
            completion_tokens=completion_t,
            created_at=base + timedelta(seconds=i),
        )
        db.add(msg)
        messages.append(msg)
    db.commit()
    return messages


def make_completion(text="Hello!", model="openai/gpt-4o-mini", prompt_tokens=10, completion_tokens=3):
    from services.llm import Completion

    return Completion(
        text=text, model=model, prompt_tokens=prompt_tokens, completion_tokens=completion_tokens
    )


@pytest.fixture
def completion_factory():
    return make_completion


@pytest.fixture
def fake_ai_response():
    """Factory for LangChain-like responses returned by ChatOpenAI.invoke."""

    def _make(content="Hi there", usage=None, model_name="openai/gpt-4o-mini"):
        return SimpleNamespace(
            content=content,
            usage_metadata=usage if usage is not None else {"input_tokens": 11, "output_tokens": 4},
            response_metadata={"model_name": model_name},
        )

    return _make
