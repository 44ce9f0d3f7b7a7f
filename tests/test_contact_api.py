"""Tests for the public contact endpoint."""

from __future__ import annotations

import json
import re

from conftest import ADMIN, ORIGIN
from mailrouter.errors import RelayError

TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{32}$")


def _submit(client, body=None, *, origin=ORIGIN, ip="203.0.113.7", raw=None):
    headers = {"Content-Type": "application/json", "CF-Connecting-IP": ip}
    if origin:
        headers["Origin"] = origin
    if raw is None:
        raw = json.dumps(body if body is not None else _form())
    return client.post("/api/contact", content=raw, headers=headers)


def _form(**overrides):
    form = {
        "name": "Jane",
        "email": "jane@x.com",
        "subject": "Hi",
        "message": "Hello",
        "botToken": "t",
    }
    form.update(overrides)
    return form


class TestAccepted:
    def test_creates_thread_and_notifies(self, client, threads_db, notifier):
        response = _submit(client)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert response.headers["access-control-allow-origin"] == ORIGIN

        [token] = threads_db.keys()
        assert TOKEN_RE.match(token)
        record = json.loads(threads_db.get(token))
        assert record["visitorEmail"] == "jane@x.com"
        assert record["visitorName"] == "Jane"
        assert record["subject"] == "Hi"
        assert record["lastVisitorMessage"] == "Hello"

        [msg] = notifier.sent
        assert msg["To"] == ADMIN
        assert msg["Subject"] == "[Contact] Jane - Hi"
        assert msg["Reply-To"] == f"reply+{token}@example.com"

    def test_default_subject(self, client, threads_db):
        _submit(client, _form(subject=None))
        [token] = threads_db.keys()
        assert json.loads(threads_db.get(token))["subject"] == "Website contact"

    def test_notification_failure_does_not_change_response(self, client, threads_db, notifier):
        notifier.send.side_effect = RelayError("smtp down")

        response = _submit(client)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert threads_db.dbsize() == 1

    def test_turnstile_receives_client_ip(self, client, endpoints):
        _submit(client, ip="198.51.100.1, 10.0.0.1")
        [request] = [r for r in endpoints.requests if "turnstile" in r.url.path]
        assert "remoteip=198.51.100.1" in request.content.decode()


class TestRejected:
    def test_unknown_origin(self, client, threads_db, endpoints):
        response = _submit(client, origin="https://evil.com")

        assert response.status_code == 403
        assert response.json() == {"error": "Origin not allowed"}
        assert "access-control-allow-origin" not in response.headers
        assert threads_db.dbsize() == 0
        assert endpoints.requests == []

    def test_missing_origin(self, client):
        assert _submit(client, origin=None).status_code == 403

    def test_payload_too_large(self, client):
        response = _submit(client, _form(message="x" * 10_001))
        assert response.status_code == 400
        assert response.json() == {"error": "Payload too large"}

    def test_invalid_json(self, client):
        response = _submit(client, raw="{not json")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON"}

    def test_invalid_field(self, client):
        response = _submit(client, _form(email="bad"))
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email"}

    def test_email_with_trailing_newline(self, client, threads_db):
        response = _submit(client, _form(email="jane@x.com\n"))
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email"}
        assert threads_db.dbsize() == 0

    def test_missing_token(self, client, endpoints):
        form = _form()
        del form["botToken"]
        response = _submit(client, form)
        assert response.json() == {"error": "Missing verification token"}
        assert endpoints.requests == []

    def test_bot_verification_failed(self, client, threads_db, rate_db):
        response = _submit(client, _form(botToken="bad-token"))

        assert response.status_code == 400
        assert response.json() == {"error": "invalid-input-response"}
        assert threads_db.dbsize() == 0
        assert rate_db.dbsize() == 0

    def test_rate_limited_after_max(self, client, threads_db, notifier):
        statuses = [_submit(client).status_code for _ in range(4)]

        assert statuses == [200, 200, 200, 429]
        response = _submit(client)
        assert response.json() == {"error": "Too many requests. Try again in a minute."}
        assert threads_db.dbsize() == 3
        assert len(notifier.sent) == 3

    def test_rate_limit_is_per_client(self, client):
        for _ in range(3):
            _submit(client, ip="192.0.2.1")
        assert _submit(client, ip="192.0.2.2").status_code == 200


class TestRouting:
    def test_preflight(self, client):
        response = client.options("/api/contact", headers={"Origin": ORIGIN})

        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == ORIGIN
        assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
        assert response.headers["access-control-allow-headers"] == "Content-Type"
        assert response.headers["access-control-max-age"] == "86400"

    def test_preflight_unknown_origin(self, client):
        response = client.options("/anything", headers={"Origin": "https://evil.com"})
        assert response.status_code == 204
        assert "access-control-allow-origin" not in response.headers

    def test_wrong_method(self, client):
        response = client.get("/api/contact")
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_wrong_path(self, client):
        response = client.post("/api/other", json=_form(), headers={"Origin": ORIGIN})
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}


class TestClientIdentifier:
    def _request(self, headers):
        from starlette.requests import Request

        scope = {
            "type": "http",
            "method": "POST",
            "path": "/api/contact",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
            "client": ("192.0.2.50", 51000),
        }
        return Request(scope)

    def test_proxy_header_first_value(self):
        from mailrouter.api.contact import client_identifier

        request = self._request({"CF-Connecting-IP": "198.51.100.9, 10.0.0.1"})
        assert client_identifier(request, "CF-Connecting-IP") == "198.51.100.9"

    def test_blank_header_setting_ignores_spoofed_header(self):
        from mailrouter.api.contact import client_identifier

        request = self._request({"CF-Connecting-IP": "6.6.6.6"})
        assert client_identifier(request, "") == "192.0.2.50"

    def test_spoofed_header_cannot_reset_window_without_proxy(self, client, settings):
        settings.CLIENT_IP_HEADER = ""
        statuses = [_submit(client, ip=f"6.6.6.{i}").status_code for i in range(4)]
        assert statuses == [200, 200, 200, 429]
