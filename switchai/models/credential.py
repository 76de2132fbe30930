"""Provider credential model: one encrypted OpenRouter key per user.

The column holds a Fernet token; encryption and decryption happen in
services/credentials.py so a key that no longer decrypts can be reported
instead of being handed to the provider as-is.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class ProviderCredential(Base):
    __tablename__ = "provider_credentials"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_profile_id: Mapped[int] = mapped_column(
        ForeignKey("user_profiles.id", ondelete="CASCADE"), unique=True
    )
    encrypted_key: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    user_profile: Mapped["UserProfile"] = relationship(  # noqa: F821
        "UserProfile", back_populates="provider_credential"
    )

    def __repr__(self):
        return f"<ProviderCredential user_id={self.user_profile_id}>"
