"""User and API key models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(150), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    api_key: Mapped[APIKey | None] = relationship(
        "APIKey", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    provider_credential: Mapped["ProviderCredential | None"] = relationship(  # noqa: F821
        "ProviderCredential", back_populates="user_profile", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<UserProfile {self.username}>"


class APIKey(Base):
    """Bearer token that authenticates requests to the HTTP API."""

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        unique=True,
    )
    key: Mapped[str] = mapped_column(String(36), default=lambda: str(uuid.uuid4()), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    user: Mapped[UserProfile] = relationship("UserProfile", back_populates="api_key")

    def __repr__(self):
        return f"<APIKey for user_id={self.user_id}>"
