"""Parse raw inbound RFC 822 messages into the fields the dispatcher needs."""
import logging
from dataclasses import dataclass, field
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses

from mailrouter.models.schemas import InboundEnvelope
from mailrouter.services.composer import LOOP_HEADER, LOOP_HEADER_VALUE
from mailrouter.services.tokens import bare_address, extract_email_address

logger = logging.getLogger(__name__)


@dataclass
class ParsedInbound:
    sender: str
    sender_name: str
    recipients: list[str] = field(default_factory=list)
    subject: str = ""
    text: str = ""
    has_loop_marker: bool = False


def parse_inbound(raw: bytes, envelope: InboundEnvelope) -> ParsedInbound:
    """Parse *raw* with the default policy, falling back to the envelope sender."""
    message = BytesParser(policy=policy.default).parsebytes(raw)

    sender_name, sender_addr = "", ""
    for name, addr in getaddresses([str(v) for v in message.get_all("From", [])]):
        if addr:
            sender_name, sender_addr = name, addr
            break
    if not sender_addr:
        sender_addr = envelope.mail_from

    recipients = [
        bare_address(addr)
        for _, addr in getaddresses(
            [str(v) for v in message.get_all("To", []) + message.get_all("Cc", [])]
        )
        if addr
    ]

    marker = message.get(LOOP_HEADER)
    return ParsedInbound(
        sender=extract_email_address(sender_addr),
        sender_name=sender_name.strip(),
        recipients=recipients,
        subject=str(message.get("Subject", "") or "").strip(),
        text=_plain_text(message),
        has_loop_marker=marker is not None and str(marker).strip() == LOOP_HEADER_VALUE,
    )


def _plain_text(message: EmailMessage) -> str:
    part = message.get_body(preferencelist=("plain",))
    if part is None:
        return ""
    try:
        content = part.get_content()
    except (LookupError, ValueError):
        # Unknown or broken charset
        logger.warning("Undecodable text part, falling back to lossy decode")
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")
    if isinstance(content, bytes):
        return content.decode(part.get_content_charset("utf-8"), errors="replace")
    return content
