"""Shared fixtures: explicit settings, fake Redis, fake HTTP endpoints."""

from __future__ import annotations

import json
from email.message import EmailMessage
from unittest.mock import AsyncMock

import fakeredis
import httpx
import pytest

from mailrouter.config import Settings
from mailrouter.services.mailer import SMTPNotifier

ADMIN = "owner@gmail.com"
ORIGIN = "https://example.com"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DOMAIN="example.com",
        ADMIN_EMAIL=ADMIN,
        DESTINATION_EMAIL=ADMIN,
        CONTACT_FROM="contact@example.com",
        REPLY_LOCAL_PART="reply",
        ALLOWED_ORIGINS=f"{ORIGIN}, https://www.example.com",
        RESEND_FROM_EMAIL="hello@example.com",
        RESEND_API_KEY="re_test_key",
        TURNSTILE_SECRET="turnstile-secret",
        INBOUND_SECRET="inbound-secret",
        THREAD_TTL_SECONDS=3600,
        RATE_WINDOW_SECONDS=60,
        RATE_MAX_PER_WINDOW=3,
    )


@pytest.fixture
def redis_server():
    """One fake Redis server shared by the async clients and sync inspectors."""
    return fakeredis.FakeServer()


@pytest.fixture
def threads_db(redis_server):
    """Synchronous view of the thread store database, for assertions."""
    return fakeredis.FakeRedis(server=redis_server, db=0, decode_responses=True)


@pytest.fixture
def rate_db(redis_server):
    return fakeredis.FakeRedis(server=redis_server, db=1, decode_responses=True)


def async_redis(server, db: int):
    return fakeredis.FakeAsyncRedis(server=server, db=db, decode_responses=True)


class FakeEndpoints:
    """httpx MockTransport handler standing in for Turnstile and Resend."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.turnstile_reply: dict | None = None
        self.resend_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if "turnstile" in request.url.path:
            body = request.content.decode()
            if self.turnstile_reply is not None:
                return httpx.Response(200, json=self.turnstile_reply)
            if "response=bad-token" in body:
                return httpx.Response(
                    200, json={"success": False, "error-codes": ["invalid-input-response"]}
                )
            return httpx.Response(200, json={"success": True})
        if request.url.host == "api.resend.com":
            if self.resend_status >= 400:
                return httpx.Response(self.resend_status, text="rejected")
            return httpx.Response(200, json={"id": "email_123"})
        return httpx.Response(404)

    def resend_payloads(self) -> list[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.url.host == "api.resend.com"
        ]


@pytest.fixture
def endpoints():
    return FakeEndpoints()


@pytest.fixture
def http_client(endpoints):
    return httpx.AsyncClient(transport=httpx.MockTransport(endpoints))


@pytest.fixture
def notifier():
    mock = AsyncMock(spec=SMTPNotifier)
    mock.sent = []

    async def _send(message: EmailMessage) -> None:
        mock.sent.append(message)

    mock.send.side_effect = _send
    return mock


def build_raw_email(
    *,
    sender: str,
    to: str,
    subject: str = "Hello",
    body: str = "Hi there",
    headers: dict[str, str] | None = None,
) -> bytes:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to
    msg["Subject"] = subject
    for name, value in (headers or {}).items():
        msg[name] = value
    msg.set_content(body)
    return msg.as_bytes()


@pytest.fixture
def services(settings, redis_server, http_client, notifier):
    from mailrouter.services.container import wire_services

    return wire_services(
        settings,
        async_redis(redis_server, 0),
        async_redis(redis_server, 1),
        http_client,
        notifier=notifier,
    )


@pytest.fixture
def client(settings, services):
    from fastapi.testclient import TestClient

    from mailrouter.main import create_app

    with TestClient(create_app(settings, services=services)) as test_client:
        yield test_client
