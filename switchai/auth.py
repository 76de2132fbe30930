"""Bearer token authentication dependency."""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from database import get_db
from models.user import APIKey, UserProfile

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> UserProfile:
    """Resolve the bearer token to its UserProfile or answer 401."""
    stmt = (
        select(UserProfile)
        .join(APIKey, APIKey.user_id == UserProfile.id)
        .where(APIKey.key == credentials.credentials)
    )
    user = db.execute(stmt).scalar_one_or_none()
    if user is None:
        logger.info("Rejected request with unknown API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
        )
    return user
