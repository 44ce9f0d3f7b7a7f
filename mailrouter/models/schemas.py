"""Pydantic schemas for data validation."""
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MAX_SUBJECT_LENGTH = 120


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


class ConversationThread(BaseModel):
    """Persisted conversation record, keyed by its reply token.

    Stored as JSON with camelCase keys (``visitorEmail``, ``createdAt``...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str
    visitor_email: str
    visitor_name: str
    subject: str
    created_at: datetime = Field(default_factory=utcnow)
    last_visitor_message: str | None = None
    last_admin_reply_at: datetime | None = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class ContactPayload(BaseModel):
    """Contact form submission."""

    name: StrictStr = Field(min_length=1, max_length=100)
    email: StrictStr = Field(min_length=3, max_length=254)
    subject: str | None = None
    message: StrictStr = Field(min_length=1, max_length=4000)
    bot_token: StrictStr = Field(
        min_length=1,
        validation_alias=AliasChoices("botToken", "turnstileToken", "bot_token"),
    )

    @field_validator("email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        if not EMAIL_RE.fullmatch(value):
            raise ValueError("email does not look like an address")
        return value

    @field_validator("subject", mode="before")
    @classmethod
    def _optional_subject(cls, value: object) -> str | None:
        # Anything but a usable string falls back to the default subject.
        if isinstance(value, str) and 0 < len(value) <= MAX_SUBJECT_LENGTH:
            return value
        return None


# Field order matters: the first failing field (in form order) is reported.
_FIELD_ERRORS = {
    "name": "Invalid name (1-100 characters)",
    "email": "Invalid email",
    "message": "Invalid message (1-4000 characters)",
    "bot_token": "Missing verification token",
}

_ALIASES = {
    "botToken": "bot_token",
    "turnstileToken": "bot_token",
}


@dataclass(frozen=True)
class ParseOk:
    payload: ContactPayload
    ok: bool = True


@dataclass(frozen=True)
class ParseError:
    message: str
    ok: bool = False


ParseResult = ParseOk | ParseError


def parse_contact_payload(raw: bytes | str) -> ParseResult:
    """Validate a raw JSON body into a tagged ``ParseOk``/``ParseError`` result."""
    try:
        payload = ContactPayload.model_validate_json(raw)
    except ValidationError as exc:
        return ParseError(_first_error_message(exc))
    return ParseOk(payload)


def _first_error_message(exc: ValidationError) -> str:
    order = list(_FIELD_ERRORS)
    failed: set[str] = set()
    for err in exc.errors():
        loc = err.get("loc") or ()
        if not loc:
            # Not JSON at all, or not a JSON object.
            return "Invalid JSON"
        field = _ALIASES.get(str(loc[0]), str(loc[0]))
        if field in _FIELD_ERRORS:
            failed.add(field)
    for field in order:
        if field in failed:
            return _FIELD_ERRORS[field]
    return "Invalid JSON"


class InboundEnvelope(BaseModel):
    """SMTP envelope of an inbound message."""

    mail_from: str = ""
    rcpt_to: str = ""


class DispatchOutcome(str, Enum):
    """What the inbound dispatcher did with one message."""

    DROPPED_LOOP = "dropped_loop"
    DROPPED_EMPTY = "dropped_empty"
    ADMIN_RELAYED = "admin_relayed"
    VISITOR_RELAYED = "visitor_relayed"
    NEW_THREAD = "new_thread"
    FAILED = "failed"
