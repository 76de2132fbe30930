"""Per-user OpenRouter key storage (Fernet envelope encryption)."""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from models.credential import ProviderCredential
from services.errors import CredentialUnavailable, PersistenceError, ValidationError

logger = logging.getLogger(__name__)


def _fernet() -> Fernet:
    if not settings.FIELD_ENCRYPTION_KEY:
        raise CredentialUnavailable("Encryption key is not configured")
    return Fernet(settings.FIELD_ENCRYPTION_KEY.encode())


def encrypt_key(api_key: str) -> str:
    return _fernet().encrypt(api_key.encode()).decode()


def decrypt_key(token: str) -> str:
    try:
        return _fernet().decrypt(token.encode()).decode()
    except (InvalidToken, ValueError) as exc:
        raise CredentialUnavailable("Stored API key could not be decrypted") from exc


class CredentialStore:
    """Owner-scoped access to a user's provider key."""

    def __init__(self, db: Session):
        self.db = db

    def _find(self, user_id: int) -> ProviderCredential | None:
        stmt = select(ProviderCredential).where(ProviderCredential.user_profile_id == user_id)
        try:
            return self.db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to fetch API key") from exc

    def get_decrypted_key(self, user_id: int) -> str:
        cred = self._find(user_id)
        if cred is None:
            raise CredentialUnavailable()
        return decrypt_key(cred.encrypted_key)

    def has_key(self, user_id: int) -> bool:
        return self._find(user_id) is not None

    def upsert_key(self, user_id: int, api_key: str) -> None:
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValidationError("API key cannot be empty")
        encrypted = encrypt_key(api_key)
        try:
            cred = self._find(user_id)
            if cred is None:
                self.db.add(ProviderCredential(user_profile_id=user_id, encrypted_key=encrypted))
            else:
                cred.encrypted_key = encrypted
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Failed to save API key for user %s", user_id)
            raise PersistenceError("Failed to save API key") from exc

    def delete_key(self, user_id: int) -> None:
        """Remove the user's key. Deleting a missing key is a no-op."""
        try:
            cred = self._find(user_id)
            if cred is not None:
                self.db.delete(cred)
                self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("Failed to delete API key") from exc
