"""Root logger setup shared by the API server and the SMTP receiver.

Each line names the process role and, while a conversation is being handled,
the first characters of its reply token::

    2026-02-17 14:30:01 [SMTPD][Thread AbC123xy][INFO] mailrouter.services.dispatcher:140 - Admin reply relayed
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from contextvars import ContextVar
from pathlib import Path

STREAM_HANDLER_NAME = "_mailrouter_stream"
FILE_HANDLER_NAME = "_mailrouter_file"

QUIET_LOGGERS = ("httpx", "httpcore", "aiosmtplib", "mail.log")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")

TOKEN_PREFIX_CHARS = 8

# Set by the dispatcher and background tasks for the conversation in hand.
thread_token_var: ContextVar[str] = ContextVar("thread_token_var", default="")


class ContextFilter(logging.Filter):
    """Stamps ``role`` and ``thread_token`` on each record."""

    def __init__(self, role: str) -> None:
        super().__init__()
        self.role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.role = self.role  # type: ignore[attr-defined]
        record.thread_token = thread_token_var.get("")  # type: ignore[attr-defined]
        return True


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        tags = []
        role = getattr(record, "role", "")
        if role:
            tags.append(f"[{role}]")
        token = getattr(record, "thread_token", "")
        if token:
            # Tokens grant reply access; only a prefix is logged.
            tags.append(f"[Thread {token[:TOKEN_PREFIX_CHARS]}]")
        tags.append(f"[{record.levelname}]")

        line = (
            f"{self.formatTime(record, self.datefmt)} {''.join(tags)} "
            f"{record.name}:{record.lineno} - {record.getMessage()}"
        )
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            line += "\n" + record.exc_text
        if record.stack_info:
            line += "\n" + record.stack_info
        return line


def _attach(root: logging.Logger, handler: logging.Handler, name: str, role: str) -> None:
    handler.name = name
    handler.addFilter(ContextFilter(role))
    handler.setFormatter(ContextFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)


def setup_logging(role: str) -> None:
    """Configure the root logger for *role* (``"Server"`` or ``"SMTPD"``).

    Logs go to stderr, and also to a rotating file when ``LOG_FILE`` is set.
    Calling it again in the same process is a no-op.
    """
    from mailrouter.config import settings

    root = logging.getLogger()
    if any(getattr(h, "name", None) == STREAM_HANDLER_NAME for h in root.handlers):
        return

    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    _attach(root, logging.StreamHandler(sys.stderr), STREAM_HANDLER_NAME, role)

    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        _attach(root, file_handler, FILE_HANDLER_NAME, role)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # uvicorn installs its own handlers; route its records through ours.
    if role == "Server":
        for name in UVICORN_LOGGERS:
            uv_logger = logging.getLogger(name)
            uv_logger.handlers.clear()
            uv_logger.propagate = True
