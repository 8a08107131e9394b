from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

# Framework-generated documents that clients parse as-is.
_PASSTHROUGH_PATHS = frozenset({"/openapi.json", "/docs", "/redoc"})


def _success_code(status_code: int) -> str:
    return {200: "ok", 201: "created", 202: "accepted"}.get(status_code, "ok")


def _success_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Success"


def _build_success_envelope(data: Any, status_code: int) -> dict[str, Any]:
    return {
        "code": _success_code(status_code),
        "message": _success_message(status_code),
        "data": data,
        "details": {},
    }


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    return "code" in payload and "message" in payload and ("data" in payload or "details" in payload)


def _rebuild(original: Response, status_code: int, content: dict[str, Any]) -> JSONResponse:
    new_response = JSONResponse(status_code=status_code, content=content)
    for key, value in original.headers.items():
        if key.lower() in {"content-length", "content-type"}:
            continue
        new_response.headers[key] = value
    return new_response


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap successful JSON payloads as ``{code, message, data, details}``."""

    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)

        if request.url.path in _PASSTHROUGH_PATHS:
            return response
        if response.status_code < 200 or response.status_code >= 300:
            return response

        if response.status_code == 204:
            return _rebuild(response, 200, _build_success_envelope(None, 200))

        if response.headers.get("content-type", "").split(";")[0] != "application/json":
            return response

        body = b""
        async for chunk in response.body_iterator:
            body += chunk
        try:
            payload = json.loads(body.decode("utf-8")) if body else None
        except ValueError:
            return Response(
                content=body,
                status_code=response.status_code,
                headers=dict(response.headers),
                media_type=response.media_type,
            )

        if _is_enveloped(payload):
            payload.setdefault("data", None)
            payload.setdefault("details", {})
            return _rebuild(response, response.status_code, payload)

        return _rebuild(
            response,
            response.status_code,
            _build_success_envelope(payload, response.status_code),
        )


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)
