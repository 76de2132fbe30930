"""Root logger setup for switchai.

Each record carries the process role plus the request and conversation it was
logged for. The request id comes from the HTTP middleware in main.py; services
wrap their work on a conversation in ``conversation_context``. Modules keep
logging through ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path

STREAM_HANDLER_NAME = "_switchai_stream"
FILE_HANDLER_NAME = "_switchai_file"
HANDLER_NAMES = (STREAM_HANDLER_NAME, FILE_HANDLER_NAME)

QUIET_LOGGERS = ("httpx", "httpcore", "openai", "urllib3", "langchain")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")

request_id_var: ContextVar[str] = ContextVar("request_id_var", default="")
conversation_id_var: ContextVar[str] = ContextVar("conversation_id_var", default="")


@contextmanager
def conversation_context(conversation_id):
    """Tag records logged inside the block with *conversation_id*."""
    token = conversation_id_var.set(str(conversation_id))
    try:
        yield
    finally:
        conversation_id_var.reset(token)


class ContextFilter(logging.Filter):
    def __init__(self, role: str) -> None:
        super().__init__()
        self.role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.role = self.role  # type: ignore[attr-defined]
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        record.conversation_id = conversation_id_var.get()  # type: ignore[attr-defined]
        return True


class ContextFormatter(logging.Formatter):
    """``<time> [Server][Req ab12cd34][Conv 7][INFO] services.branching:88 - text``

    Request and conversation tags are left out when unset.
    """

    def _tags(self, record: logging.LogRecord) -> str:
        role = getattr(record, "role", "")
        request_id = getattr(record, "request_id", "")
        conversation_id = getattr(record, "conversation_id", "")
        tags = []
        if role:
            tags.append(role)
        if request_id:
            tags.append(f"Req {request_id[:8]}")
        if conversation_id:
            tags.append(f"Conv {conversation_id}")
        tags.append(record.levelname)
        return "".join(f"[{t}]" for t in tags)

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{self.formatTime(record, self.datefmt)} {self._tags(record)} "
            f"{record.name}:{record.lineno} - {record.getMessage()}"
        )
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        extra = [text for text in (record.exc_text, record.stack_info) if text]
        return "\n".join([line, *extra])


def _attach(root: logging.Logger, handler: logging.Handler, name: str, role: str) -> None:
    handler.name = name
    handler.addFilter(ContextFilter(role))
    handler.setFormatter(ContextFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)


def setup_logging(role: str) -> None:
    """Install switchai's handlers on the root logger once per process.

    stderr always; a size-rotated file as well when ``LOG_FILE`` is set.
    Server processes also route uvicorn's loggers through the root logger.
    """
    from config import settings

    root = logging.getLogger()
    if any(h.name == STREAM_HANDLER_NAME for h in root.handlers):
        return

    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    _attach(root, logging.StreamHandler(sys.stderr), STREAM_HANDLER_NAME, role)

    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        _attach(root, file_handler, FILE_HANDLER_NAME, role)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if role.lower() == "server":
        for name in UVICORN_LOGGERS:
            uv_logger = logging.getLogger(name)
            uv_logger.handlers.clear()
            uv_logger.propagate = True
