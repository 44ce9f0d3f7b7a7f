"""InboundDispatcher - route one inbound email between visitor and administrator.

Each message is classified on its own; no state survives between calls
except what is persisted in the thread store:

1. parse sender and recipients
2. resolve the reply token (header recipients first, then the envelope)
3. drop the system's own relayed mail (anti-loop marker)
4. load the thread, or create a fallback thread when none matches
5. admin sender  -> strip quotes, relay to the visitor via Resend
   other sender  -> forward to the admin mailbox; a sender that is not the
                    thread's visitor starts a new, independent thread
"""

from __future__ import annotations

import logging
from typing import Iterable, Pattern

from mailrouter.config import Settings
from mailrouter.db.threads import ThreadStore
from mailrouter.errors import RelayError
from mailrouter.logging_config import thread_token_var
from mailrouter.models.schemas import (
    ConversationThread,
    DispatchOutcome,
    InboundEnvelope,
    utcnow,
)
from mailrouter.services.composer import EmailComposer
from mailrouter.services.mailer import ResendClient, SMTPNotifier
from mailrouter.services.parsing import ParsedInbound, parse_inbound
from mailrouter.services.quoting import REPLY_MARKERS, extract_new_content
from mailrouter.services.tokens import (
    bare_address,
    extract_email_address,
    extract_token,
    generate_token,
)

logger = logging.getLogger(__name__)

FALLBACK_SUBJECT = "No subject"


class InboundDispatcher:
    def __init__(
        self,
        settings: Settings,
        threads: ThreadStore,
        composer: EmailComposer,
        notifier: SMTPNotifier,
        resend: ResendClient,
        quote_markers: Iterable[Pattern[str]] = REPLY_MARKERS,
    ):
        self.settings = settings
        self.threads = threads
        self.composer = composer
        self.notifier = notifier
        self.resend = resend
        self.quote_markers = tuple(quote_markers)

    async def handle(self, raw: bytes, envelope: InboundEnvelope) -> DispatchOutcome:
        """Dispatch one message; failures are logged, never raised.

        The mail transport that delivers inbound messages does not consume a
        result, so a failed relay simply drops the event.
        """
        ctx_token = thread_token_var.set("")
        try:
            return await self.dispatch(raw, envelope)
        except Exception:
            logger.exception(
                "Dropping inbound message from %s to %s",
                envelope.mail_from, envelope.rcpt_to,
            )
            return DispatchOutcome.FAILED
        finally:
            thread_token_var.reset(ctx_token)

    async def dispatch(self, raw: bytes, envelope: InboundEnvelope) -> DispatchOutcome:
        parsed = parse_inbound(raw, envelope)
        token = self.resolve_token(parsed, envelope)

        if self.is_loop(parsed, envelope):
            logger.info("Anti-loop: ignoring message marked as sent by this system")
            return DispatchOutcome.DROPPED_LOOP

        thread = await self.threads.get(token) if token else None
        if thread is None:
            thread = await self._create_fallback_thread(token, parsed)
        thread_token_var.set(thread.token)

        if parsed.sender == extract_email_address(self.settings.ADMIN_EMAIL):
            return await self._relay_admin_reply(thread, parsed)
        return await self._relay_visitor_reply(thread, parsed)

    def resolve_token(self, parsed: ParsedInbound, envelope: InboundEnvelope) -> str | None:
        local_part = self.settings.REPLY_LOCAL_PART
        domain = self.settings.DOMAIN
        for address in parsed.recipients:
            token = extract_token(address, local_part, domain)
            if token:
                return token
        return extract_token(bare_address(envelope.rcpt_to), local_part, domain)

    def is_loop(self, parsed: ParsedInbound, envelope: InboundEnvelope) -> bool:
        if not parsed.has_loop_marker:
            return False
        to_address = extract_email_address(envelope.rcpt_to)
        mailbox = extract_email_address(self.settings.DESTINATION_EMAIL)
        to_admin_mailbox = bool(mailbox) and mailbox in to_address
        from_system = parsed.sender == extract_email_address(self.settings.CONTACT_FROM)
        return to_admin_mailbox or from_system

    async def _create_fallback_thread(
        self, token: str | None, parsed: ParsedInbound
    ) -> ConversationThread:
        thread = ConversationThread(
            token=token or generate_token(),
            visitor_email=parsed.sender,
            visitor_name=_display_name(parsed),
            subject=parsed.subject or FALLBACK_SUBJECT,
            last_visitor_message=parsed.text,
        )
        await self.threads.put(thread)
        logger.info("Created fallback thread for %s", parsed.sender)
        return thread

    async def _relay_admin_reply(
        self, thread: ConversationThread, parsed: ParsedInbound
    ) -> DispatchOutcome:
        logger.info("Admin replying on thread")
        clean_text = extract_new_content(parsed.text, self.quote_markers)
        if not clean_text:
            logger.info("Reply is empty once quotes are removed, ignoring")
            return DispatchOutcome.DROPPED_EMPTY

        await self.resend.send(self.composer.admin_reply(thread, clean_text))

        thread.last_admin_reply_at = utcnow()
        await self.threads.put(thread)
        logger.info("Admin reply relayed to %s", thread.visitor_email)
        return DispatchOutcome.ADMIN_RELAYED

    async def _relay_visitor_reply(
        self, thread: ConversationThread, parsed: ParsedInbound
    ) -> DispatchOutcome:
        logger.info("Visitor %s replying on thread", parsed.sender)

        if thread.visitor_email.lower() != parsed.sender:
            logger.info(
                "Sender %s is not the thread visitor %s, starting a new thread",
                parsed.sender, thread.visitor_email,
            )
            new_thread = ConversationThread(
                token=generate_token(),
                visitor_email=parsed.sender,
                visitor_name=_display_name(parsed),
                subject=parsed.subject or thread.subject,
                last_visitor_message=parsed.text,
            )
            await self.threads.put(new_thread)
            thread_token_var.set(new_thread.token)
            await self._notify_admin(new_thread, parsed.text)
            return DispatchOutcome.NEW_THREAD

        await self._notify_admin(thread, parsed.text)

        thread.last_visitor_message = parsed.text
        await self.threads.put(thread)
        logger.info("Visitor reply forwarded to %s", self.settings.DESTINATION_EMAIL)
        return DispatchOutcome.VISITOR_RELAYED

    async def _notify_admin(self, thread: ConversationThread, text: str) -> None:
        try:
            await self.notifier.send(self.composer.visitor_reply_notification(thread, text))
        except RelayError:
            logger.exception("Failed to forward visitor reply")


def _display_name(parsed: ParsedInbound) -> str:
    return parsed.sender_name or parsed.sender.split("@")[0]
