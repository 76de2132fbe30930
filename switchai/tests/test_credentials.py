"""Tests for services/credentials.py: encrypted key storage."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet
from sqlalchemy.exc import OperationalError

from services.credentials import CredentialStore, decrypt_key, encrypt_key
from services.errors import CredentialUnavailable, PersistenceError, ValidationError


def test_encrypted_value_is_not_plaintext():
    token = encrypt_key("sk-or-secret")
    assert "sk-or-secret" not in token
    assert decrypt_key(token) == "sk-or-secret"


def test_decrypt_with_other_key_is_unavailable():
    foreign = Fernet(Fernet.generate_key()).encrypt(b"sk-or-secret").decode()
    with pytest.raises(CredentialUnavailable):
        decrypt_key(foreign)


class TestCredentialStore:
    def test_missing_key(self, db, user_profile):
        store = CredentialStore(db)
        assert store.has_key(user_profile.id) is False
        with pytest.raises(CredentialUnavailable):
            store.get_decrypted_key(user_profile.id)

    def test_upsert_and_read(self, db, user_profile):
        from models.credential import ProviderCredential

        store = CredentialStore(db)
        store.upsert_key(user_profile.id, "  sk-or-first  ")
        store.upsert_key(user_profile.id, "sk-or-second")

        assert store.get_decrypted_key(user_profile.id) == "sk-or-second"
        assert db.query(ProviderCredential).count() == 1
        stored = db.query(ProviderCredential).one()
        assert stored.encrypted_key != "sk-or-second"

    def test_upsert_rejects_blank(self, db, user_profile):
        with pytest.raises(ValidationError):
            CredentialStore(db).upsert_key(user_profile.id, "   ")

    def test_keys_are_per_user(self, db, user_profile, other_user, credential):
        store = CredentialStore(db)
        assert store.get_decrypted_key(user_profile.id) == credential
        with pytest.raises(CredentialUnavailable):
            store.get_decrypted_key(other_user.id)

    def test_corrupt_ciphertext(self, db, user_profile):
        from models.credential import ProviderCredential

        db.add(ProviderCredential(user_profile_id=user_profile.id, encrypted_key="garbage"))
        db.commit()
        with pytest.raises(CredentialUnavailable):
            CredentialStore(db).get_decrypted_key(user_profile.id)

    def test_delete_key(self, db, user_profile, credential):
        store = CredentialStore(db)
        store.delete_key(user_profile.id)
        assert store.has_key(user_profile.id) is False
        store.delete_key(user_profile.id)  # no-op

    def test_storage_failure_is_persistence_error(self, db, user_profile):
        store = CredentialStore(db)
        with patch.object(db, "commit", side_effect=OperationalError("stmt", {}, Exception("locked"))):
            with pytest.raises(PersistenceError):
                store.upsert_key(user_profile.id, "sk-or-x")
