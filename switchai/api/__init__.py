"""FastAPI router aggregation."""

from fastapi import APIRouter

from api.conversations import router as conversations_router
from api.credentials import router as credentials_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(conversations_router, prefix="/conversations", tags=["conversations"])
api_router.include_router(credentials_router, tags=["credentials"])
