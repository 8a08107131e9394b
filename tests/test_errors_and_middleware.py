from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

from lendmarket.core import context, errors
from lendmarket.core.errors import NotFound, register_exception_handlers
from lendmarket.core.response_envelope import register_response_envelope
from lendmarket.middlewares.request_context import RequestContextMiddleware
from lendmarket.middlewares.security_headers import SecurityHeadersMiddleware
from lendmarket.middlewares.trust_proxies import TrustedProxiesMiddleware, client_ip_from_forwarded


def _build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    register_response_envelope(app)
    app.add_middleware(TrustedProxiesMiddleware, proxies_count=1)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, content_security_policy="default-src 'none'")

    @app.get("/ok")
    async def ok():
        return {"value": 1}

    @app.get("/missing")
    async def missing():
        raise NotFound("Application not found")

    @app.get("/db-timeout")
    async def db_timeout():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    @app.get("/db-error")
    async def db_error():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    @app.delete("/empty", status_code=204)
    async def empty():
        return None

    return app


_client = TestClient(_build_app(), raise_server_exceptions=False)


def test_success_is_enveloped():
    resp = _client.get("/ok")
    assert resp.json() == {"code": "ok", "message": "OK", "data": {"value": 1}, "details": {}}


def test_no_content_becomes_empty_envelope():
    resp = _client.delete("/empty")
    assert resp.status_code == 200
    assert resp.json()["data"] is None


def test_service_error_uses_envelope():
    resp = _client.get("/missing")
    assert resp.status_code == 404
    assert resp.json() == {
        "code": "not_found",
        "message": "Application not found",
        "data": None,
        "details": {},
    }


def test_unresponsive_database_is_504():
    resp = _client.get("/db-timeout")
    assert resp.status_code == 504
    assert resp.json()["code"] == "upstream_timeout"
    assert "connection refused" not in resp.text


def test_other_database_error_is_502():
    resp = _client.get("/db-error")
    assert resp.status_code == 502
    assert resp.json()["code"] == "upstream_failure"


def test_unhandled_error_is_500_without_details():
    resp = _client.get("/boom")
    assert resp.status_code == 500
    assert resp.json()["code"] == "internal_server_error"
    assert "secret internals" not in resp.text


def test_unhandled_error_is_logged_with_request_id(monkeypatch):
    logged_ids = []
    monkeypatch.setattr(
        errors.logger, "error", lambda *args, **kwargs: logged_ids.append(context.get_request_id())
    )

    resp = _client.get("/boom", headers={"X-Request-ID": "req-boom-1"})

    assert resp.status_code == 500
    assert logged_ids == ["req-boom-1"]


def test_unknown_route_is_enveloped_404():
    resp = _client.get("/nope")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_request_id_is_echoed_or_generated():
    resp = _client.get("/ok", headers={"X-Request-ID": "req-123"})
    assert resp.headers["x-request-id"] == "req-123"
    generated = _client.get("/ok").headers["x-request-id"]
    assert generated and generated != "req-123"


def test_security_headers_are_applied():
    resp = _client.get("/ok")
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"
    assert resp.headers["content-security-policy"] == "default-src 'none'"
    assert "strict-transport-security" not in resp.headers


def test_client_ip_from_forwarded_honours_trusted_hops():
    assert client_ip_from_forwarded("1.1.1.1, 10.0.0.1", 1) == "1.1.1.1"
    assert client_ip_from_forwarded("9.9.9.9, 1.1.1.1, 10.0.0.1", 1) == "1.1.1.1"
    assert client_ip_from_forwarded("10.0.0.1", 1) is None


def test_validation_error_is_422_envelope(client):
    resp = client.post("/api/v1/login", json={"email": "a@x.com"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "validation_error"
    assert body["message"].startswith("password")
