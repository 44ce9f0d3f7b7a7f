"""HTTP routes."""
from fastapi import APIRouter, Request

from mailrouter.config import Settings
from mailrouter.services.container import Services


def get_services(request: Request) -> Services:
    """Dependency: the service graph opened by the app lifespan."""
    return request.app.state.services


def build_router(settings: Settings) -> APIRouter:
    from mailrouter.api import contact, health, inbound

    router = APIRouter()
    router.add_api_route(
        settings.CONTACT_PATH,
        contact.submit_contact,
        methods=["POST"],
        tags=["contact"],
    )
    router.include_router(inbound.router)
    router.include_router(health.router)
    return router
