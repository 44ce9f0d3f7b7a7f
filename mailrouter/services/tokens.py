"""Reply token utilities: generation and subaddress encoding."""
import base64
import re
import secrets

TOKEN_BYTES = 24

_ANGLE_ADDR_RE = re.compile(r"<([^>]+)>")


def generate_token() -> str:
    """Return a 32-character unpadded base64url token from 24 random bytes."""
    raw = secrets.token_bytes(TOKEN_BYTES)
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def reply_address(token: str, local_part: str, domain: str) -> str:
    """Build the ``local_part+token@domain`` reply address."""
    return f"{local_part}+{token}@{domain}"


def extract_token(address: str, local_part: str, domain: str) -> str | None:
    """Extract the token from ``local_part+TOKEN@domain``.

    Matching is case-insensitive but the token keeps its original casing.
    Returns None when the address is not a reply subaddress.
    """
    lower_address = address.lower()
    prefix = f"{local_part.lower()}+"
    suffix = f"@{domain.lower()}"

    if prefix not in lower_address or not lower_address.endswith(suffix):
        return None

    start = lower_address.index(prefix) + len(prefix)
    end = lower_address.rindex(suffix)
    if start >= end:
        return None

    return address[start:end]


def bare_address(value: str) -> str:
    """Strip a display name and angle brackets, keeping the original casing."""
    match = _ANGLE_ADDR_RE.search(value)
    if match:
        return match.group(1).strip()
    return value.strip()


def extract_email_address(value: str) -> str:
    """Extract a lower-cased address from a header value like ``Name <addr>``."""
    return bare_address(value).lower()
