"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

# Ensure switchai/ is on sys.path for absolute imports
_package_dir = str(Path(__file__).resolve().parent)
if _package_dir not in sys.path:  # pragma: no cover
    sys.path.insert(0, _package_dir)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api import api_router
from api._helpers import chat_error_handler
from config import settings
from database import Base, engine
from logging_config import request_id_var, setup_logging
from services.errors import ChatError

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging("Server")

    import models  # noqa: F401  register tables with Base

    # Create tables if they don't exist
    Base.metadata.create_all(bind=engine)
    logger.info("switchai %s started (database: %s)", __version__, engine.url.render_as_string(hide_password=True))

    yield


app = FastAPI(title="switchai API", version=__version__, lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.CORS_ALLOW_ALL_ORIGINS else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    token = request_id_var.set(request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8])
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    return response


app.add_exception_handler(ChatError, chat_error_handler)

# API routes
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True, log_config=None)
