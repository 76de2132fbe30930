"""OpenRouter key management and model listing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from models.user import UserProfile
from schemas.credential import ApiKeyIn, ApiKeyStatusOut, ModelOut
from services.credentials import CredentialStore
from services.llm import ProviderGateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api-key/", response_model=ApiKeyStatusOut)
def get_api_key_status(
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    return {"configured": CredentialStore(db).has_key(profile.id)}


@router.put("/api-key/", response_model=ApiKeyStatusOut)
def set_api_key(
    payload: ApiKeyIn,
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    CredentialStore(db).upsert_key(profile.id, payload.api_key)
    logger.info("Stored OpenRouter key for user %s", profile.id)
    return {"configured": True}


@router.delete("/api-key/", status_code=204)
def delete_api_key(
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    CredentialStore(db).delete_key(profile.id)


@router.get("/models/", response_model=list[ModelOut])
def list_models(
    db: Session = Depends(get_db),
    profile: UserProfile = Depends(get_current_user),
):
    api_key = CredentialStore(db).get_decrypted_key(profile.id)
    return ProviderGateway().list_models(api_key)
