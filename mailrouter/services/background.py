"""Guarded background work scheduled after a response has been decided."""
import logging
from typing import Any, Awaitable, Callable

from mailrouter.logging_config import thread_token_var

logger = logging.getLogger(__name__)


async def run_guarded(
    description: str,
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    thread_token: str = "",
    **kwargs: Any,
) -> bool:
    """Await ``func(*args, **kwargs)``, logging instead of raising on failure.

    Intended for ``BackgroundTasks.add_task``: the task runs to completion
    inside the request lifecycle, but its outcome never reaches the client.
    Returns True on success.
    """
    ctx_token = thread_token_var.set(thread_token)
    try:
        await func(*args, **kwargs)
        return True
    except Exception:
        logger.exception("Background task failed: %s", description)
        return False
    finally:
        thread_token_var.reset(ctx_token)
