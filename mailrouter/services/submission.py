"""Contact form submission: validation, abuse controls, thread creation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from email.message import EmailMessage

from mailrouter.config import Settings
from mailrouter.db.threads import ThreadStore
from mailrouter.errors import (
    OriginError,
    RateLimitedError,
    ValidationError,
    VerificationFailedError,
)
from mailrouter.models.schemas import ConversationThread, ParseError, parse_contact_payload
from mailrouter.services.composer import EmailComposer
from mailrouter.services.rate_limit import RateLimiter
from mailrouter.services.tokens import generate_token
from mailrouter.services.turnstile import GENERIC_FAILURE, TurnstileVerifier

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 10_000


@dataclass
class AcceptedSubmission:
    thread: ConversationThread
    notification: EmailMessage


class SubmissionService:
    """Checks run in order and stop at the first failure:

    origin -> body size -> JSON shape and fields -> bot verification -> rate limit
    """

    def __init__(
        self,
        settings: Settings,
        threads: ThreadStore,
        rate_limiter: RateLimiter,
        verifier: TurnstileVerifier,
        composer: EmailComposer,
    ):
        self.settings = settings
        self.threads = threads
        self.rate_limiter = rate_limiter
        self.verifier = verifier
        self.composer = composer

    def is_allowed_origin(self, origin: str | None) -> bool:
        return bool(origin) and origin in self.settings.allowed_origins_list

    def check_origin(self, origin: str | None) -> None:
        if not self.is_allowed_origin(origin):
            raise OriginError("Origin not allowed")

    async def accept(self, raw_body: bytes, client_ip: str) -> AcceptedSubmission:
        """Validate a submission and persist its thread.

        Raises a ``SubmissionError`` subclass on rejection. The returned
        notification still has to be sent; its outcome does not affect the
        submission.
        """
        if len(raw_body) > MAX_BODY_BYTES:
            raise ValidationError("Payload too large")

        parsed = parse_contact_payload(raw_body)
        if isinstance(parsed, ParseError):
            raise ValidationError(parsed.message)
        payload = parsed.payload

        verification = await self.verifier.verify(payload.bot_token, client_ip)
        if not verification.valid:
            raise VerificationFailedError(verification.error or GENERIC_FAILURE)

        rate = await self.rate_limiter.check(client_ip)
        if not rate.allowed:
            raise RateLimitedError("Too many requests. Try again in a minute.")

        thread = ConversationThread(
            token=generate_token(),
            visitor_email=payload.email,
            visitor_name=payload.name,
            subject=payload.subject or self.settings.DEFAULT_SUBJECT,
            last_visitor_message=payload.message,
        )
        await self.threads.put(thread)
        logger.info("Contact accepted from %s (%d requests left)", client_ip, rate.remaining)

        return AcceptedSubmission(
            thread=thread,
            notification=self.composer.contact_notification(thread, payload.message),
        )
