"""Inbound mail webhook - raw RFC 822 messages pushed by the mail transport."""
import logging
import secrets

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from mailrouter.api import get_services
from mailrouter.models.schemas import InboundEnvelope
from mailrouter.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["inbound"])


@router.post("/api/inbound")
async def receive_inbound(
    request: Request,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
):
    """Queue one raw message for dispatch.

    Envelope addresses come from ``X-Envelope-From`` / ``X-Envelope-To`` and
    the caller authenticates with ``X-Inbound-Secret``. The route is disabled
    (404) while ``INBOUND_SECRET`` is unset.
    """
    settings = services.settings
    if not settings.INBOUND_SECRET:
        raise HTTPException(status_code=404)

    provided = request.headers.get("x-inbound-secret", "")
    if not secrets.compare_digest(provided.encode(), settings.INBOUND_SECRET.encode()):
        raise HTTPException(status_code=401, detail="Invalid inbound secret")

    raw = await request.body()
    if len(raw) > settings.INBOUND_MAX_BYTES:
        raise HTTPException(status_code=413, detail="Message too large")

    envelope = InboundEnvelope(
        mail_from=request.headers.get("x-envelope-from", ""),
        rcpt_to=request.headers.get("x-envelope-to", ""),
    )
    background_tasks.add_task(services.dispatcher.handle, raw, envelope)
    logger.info("Inbound message queued for %s", envelope.rcpt_to)
    return JSONResponse({"accepted": True}, status_code=202)
