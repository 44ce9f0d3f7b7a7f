"""Builds the outbound messages relayed between visitor and administrator.

Every message produced here carries the ``X-Mail-Router`` marker so that a
copy of it arriving back at the inbound dispatcher can be recognised and
dropped.
"""
import re
from dataclasses import dataclass, field
from email.message import EmailMessage
from urllib.parse import quote

from mailrouter.config import Settings
from mailrouter.models.schemas import ConversationThread
from mailrouter.services.tokens import reply_address

LOOP_HEADER = "X-Mail-Router"
LOOP_HEADER_VALUE = "1"

_LINE_BREAKS = re.compile(r"[\r\n]+")


def _single_line(value: str) -> str:
    # Header values must not contain line breaks.
    return _LINE_BREAKS.sub(" ", value)


@dataclass
class ResendEmail:
    """Payload for the transactional email API."""

    sender: str
    to: list[str]
    subject: str
    text: str
    headers: dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> dict:
        payload = {
            "from": self.sender,
            "to": self.to,
            "subject": self.subject,
            "text": self.text,
        }
        if self.headers:
            payload["headers"] = self.headers
        return payload


class EmailComposer:
    def __init__(self, settings: Settings):
        self.settings = settings

    def reply_to(self, thread: ConversationThread) -> str:
        return reply_address(thread.token, self.settings.REPLY_LOCAL_PART, self.settings.DOMAIN)

    def contact_notification(self, thread: ConversationThread, message: str) -> EmailMessage:
        """Notify the administrator mailbox of a new conversation."""
        reply_to = self.reply_to(thread)
        body = (
            f"New contact message from {self.settings.DOMAIN}\n"
            "\n"
            f"From: {thread.visitor_name}\n"
            f"Email: {thread.visitor_email}\n"
            f"Subject: {thread.subject}\n"
            "\n"
            "Message:\n"
            f"{message}\n"
            "\n"
            "---\n"
            "To answer, just reply to this email.\n"
            f"The visitor will receive your reply at {thread.visitor_email}.\n"
            "\n"
            f"Reply link: mailto:{reply_to}?subject=Re:{quote(thread.subject)}"
        )
        return self._notification(
            subject=f"[Contact] {thread.visitor_name} - {thread.subject}",
            reply_to=reply_to,
            body=body,
        )

    def visitor_reply_notification(self, thread: ConversationThread, message: str) -> EmailMessage:
        """Forward a visitor reply to the administrator mailbox."""
        reply_to = self.reply_to(thread)
        body = (
            "The visitor replied to the conversation.\n"
            "\n"
            f"From: {thread.visitor_name} <{thread.visitor_email}>\n"
            f"Original subject: {thread.subject}\n"
            "\n"
            "Message:\n"
            f"{message}\n"
            "\n"
            "---\n"
            "To answer, just reply to this email."
        )
        return self._notification(
            subject=f"[Visitor Reply] {thread.subject}",
            reply_to=reply_to,
            body=body,
        )

    def admin_reply(self, thread: ConversationThread, text: str) -> ResendEmail:
        """Relay of an administrator reply to the visitor."""
        return ResendEmail(
            sender=self.settings.RESEND_FROM_EMAIL,
            to=[thread.visitor_email],
            subject=_single_line(f"Re: {thread.subject}"),
            text=text,
            headers={
                "Reply-To": self.reply_to(thread),
                LOOP_HEADER: LOOP_HEADER_VALUE,
            },
        )

    def _notification(self, subject: str, reply_to: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.settings.CONTACT_FROM
        msg["To"] = self.settings.DESTINATION_EMAIL
        msg["Subject"] = _single_line(subject)
        msg["Reply-To"] = reply_to
        msg[LOOP_HEADER] = LOOP_HEADER_VALUE
        msg.set_content(body)
        return msg
