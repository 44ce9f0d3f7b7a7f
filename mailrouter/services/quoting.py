"""Best-effort removal of quoted text from email replies.

This is a line heuristic, not a MIME-aware reply parser. It keeps the lines
above the first reply marker and drops inline ``>`` quotes. Clients with other
quoting conventions may leak quoted text through; extend ``REPLY_MARKERS`` for
them.
"""
import re
from typing import Iterable, Pattern

REPLY_MARKERS: tuple[Pattern[str], ...] = (
    re.compile(r"^On .+ wrote:$", re.IGNORECASE),
    re.compile(r"^Em .+ escreveu:$", re.IGNORECASE),
    re.compile(r"^-{3,}\s*Original Message\s*-{3,}$", re.IGNORECASE),
    re.compile(r"^-{3,}\s*Mensagem Original\s*-{3,}$", re.IGNORECASE),
    re.compile(r"^>{2,}"),
    re.compile(r"^From:\s+.+@.+$", re.IGNORECASE),
)


def is_reply_marker(line: str, markers: Iterable[Pattern[str]] = REPLY_MARKERS) -> bool:
    return any(marker.match(line) for marker in markers)


def extract_new_content(text: str, markers: Iterable[Pattern[str]] = REPLY_MARKERS) -> str:
    """Return the new part of a reply body, without quoted history."""
    markers = tuple(markers)
    result: list[str] = []

    for line in text.splitlines():
        if is_reply_marker(line, markers):
            break
        # Inline quote
        if line.startswith(">"):
            continue
        result.append(line)

    return "\n".join(result).strip()
