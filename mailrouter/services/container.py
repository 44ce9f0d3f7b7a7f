"""Per-process service wiring: clients are opened once and closed on shutdown."""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx
import redis.asyncio as aioredis

from mailrouter.config import Settings
from mailrouter.db.threads import ThreadStore
from mailrouter.services.composer import EmailComposer
from mailrouter.services.dispatcher import InboundDispatcher
from mailrouter.services.mailer import ResendClient, SMTPNotifier
from mailrouter.services.rate_limit import RateLimiter
from mailrouter.services.submission import SubmissionService
from mailrouter.services.turnstile import TurnstileVerifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    threads_redis: aioredis.Redis
    rate_redis: aioredis.Redis
    submission: SubmissionService
    dispatcher: InboundDispatcher
    notifier: SMTPNotifier


def wire_services(
    settings: Settings,
    threads_redis: aioredis.Redis,
    rate_redis: aioredis.Redis,
    http_client: httpx.AsyncClient,
    notifier: SMTPNotifier | None = None,
) -> Services:
    """Assemble the service graph around already-open clients."""
    threads = ThreadStore(threads_redis, settings.THREAD_TTL_SECONDS)
    composer = EmailComposer(settings)
    notifier = notifier or SMTPNotifier.from_settings(settings)

    submission = SubmissionService(
        settings=settings,
        threads=threads,
        rate_limiter=RateLimiter(
            rate_redis, settings.RATE_WINDOW_SECONDS, settings.RATE_MAX_PER_WINDOW
        ),
        verifier=TurnstileVerifier(
            settings.TURNSTILE_SECRET, http_client, settings.TURNSTILE_VERIFY_URL
        ),
        composer=composer,
    )
    dispatcher = InboundDispatcher(
        settings=settings,
        threads=threads,
        composer=composer,
        notifier=notifier,
        resend=ResendClient(settings.RESEND_API_KEY, http_client, settings.RESEND_API_URL),
    )
    return Services(
        settings=settings,
        threads_redis=threads_redis,
        rate_redis=rate_redis,
        submission=submission,
        dispatcher=dispatcher,
        notifier=notifier,
    )


@asynccontextmanager
async def open_services(settings: Settings) -> AsyncIterator[Services]:
    """Open Redis and HTTP clients for the lifetime of the block."""
    threads_redis = aioredis.from_url(settings.threads_redis_url, decode_responses=True)
    rate_redis = aioredis.from_url(settings.rate_redis_url, decode_responses=True)
    http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
    try:
        yield wire_services(settings, threads_redis, rate_redis, http_client)
    finally:
        await http_client.aclose()
        await threads_redis.aclose()
        await rate_redis.aclose()
        logger.info("Service clients closed")
