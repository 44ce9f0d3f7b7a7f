#!/usr/bin/env python3
"""
SMTP receiver - accepts mail for the router's domain and hands each message
to the inbound dispatcher.

Run with ``python -m mailrouter.inbound.smtpd``.
"""
import asyncio
import logging

from aiosmtpd.smtp import SMTP, Envelope, Session

from mailrouter.config import Settings, get_settings
from mailrouter.models.schemas import InboundEnvelope
from mailrouter.services.container import open_services
from mailrouter.services.dispatcher import InboundDispatcher
from mailrouter.services.tokens import extract_token

logger = logging.getLogger(__name__)


class InboundSMTPHandler:
    def __init__(self, dispatcher: InboundDispatcher, settings: Settings):
        self.dispatcher = dispatcher
        self.settings = settings

    async def handle_RCPT(self, server, session: Session, envelope: Envelope, address: str, rcpt_options):
        if not address.lower().endswith(f"@{self.settings.DOMAIN.lower()}"):
            return "550 5.1.1 Recipient address rejected"
        envelope.rcpt_tos.append(address)
        return "250 OK"

    async def handle_DATA(self, server, session: Session, envelope: Envelope):
        raw = envelope.original_content or envelope.content
        if isinstance(raw, str):
            raw = raw.encode("utf-8", errors="surrogateescape")

        inbound = InboundEnvelope(
            mail_from=envelope.mail_from or "",
            rcpt_to=self._pick_recipient(envelope.rcpt_tos),
        )
        outcome = await self.dispatcher.handle(raw, inbound)
        logger.info("Inbound message from %s: %s", inbound.mail_from, outcome.value)
        # Delivery is one-way: the sender never sees dispatch failures.
        return "250 Message accepted for delivery"

    def _pick_recipient(self, rcpt_tos: list[str]) -> str:
        for address in rcpt_tos:
            if extract_token(address, self.settings.REPLY_LOCAL_PART, self.settings.DOMAIN):
                return address
        return rcpt_tos[0] if rcpt_tos else ""


async def serve(settings: Settings) -> None:
    """Serve SMTP until cancelled."""
    async with open_services(settings) as services:
        handler = InboundSMTPHandler(services.dispatcher, settings)
        loop = asyncio.get_running_loop()
        server = await loop.create_server(
            lambda: SMTP(
                handler,
                data_size_limit=settings.INBOUND_MAX_BYTES,
                enable_SMTPUTF8=True,
            ),
            host=settings.SMTPD_HOST,
            port=settings.SMTPD_PORT,
        )
        logger.info(f"SMTP receiver listening on {settings.SMTPD_HOST}:{settings.SMTPD_PORT}")
        async with server:
            await server.serve_forever()


def main() -> None:
    """Main entry point."""
    from mailrouter.logging_config import setup_logging

    setup_logging("SMTPD")
    try:
        asyncio.run(serve(get_settings()))
    except KeyboardInterrupt:
        logger.info("SMTP receiver stopped")


if __name__ == "__main__":
    main()
