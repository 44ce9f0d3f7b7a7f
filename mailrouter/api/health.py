"""Health check endpoint."""
from fastapi import APIRouter, Depends

from mailrouter import __version__
from mailrouter.api import get_services
from mailrouter.services.container import Services

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(services: Services = Depends(get_services)) -> dict:
    """Report Redis connectivity for both stores."""
    redis_ok = True
    for client in (services.threads_redis, services.rate_redis):
        try:
            await client.ping()
        except Exception:
            redis_ok = False

    return {
        "status": "ok" if redis_ok else "degraded",
        "redis": redis_ok,
        "version": __version__,
    }
