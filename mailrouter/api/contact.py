"""Public contact form endpoint."""
import logging

from fastapi import BackgroundTasks, Depends, Request

from mailrouter.api import get_services
from mailrouter.services.background import run_guarded
from mailrouter.services.container import Services

logger = logging.getLogger(__name__)


def client_identifier(request: Request, header_name: str) -> str:
    """Client IP for rate limiting: proxy header, then socket peer.

    The header is taken on trust, so *header_name* must be empty unless a
    proxy in front of the service always overwrites it.
    """
    value = request.headers.get(header_name, "") if header_name else ""
    if value:
        return value.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def submit_contact(
    request: Request,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> dict:
    """Accept a contact form submission.

    The administrator notification is sent after the response; a failed
    notification is logged and does not change the response.
    """
    submission = services.submission
    submission.check_origin(request.headers.get("origin"))

    client_ip = client_identifier(request, services.settings.CLIENT_IP_HEADER)
    accepted = await submission.accept(await request.body(), client_ip)

    background_tasks.add_task(
        run_guarded,
        "admin notification",
        services.notifier.send,
        accepted.notification,
        thread_token=accepted.thread.token,
    )
    return {"ok": True}
