from uuid import uuid4

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from lendmarket.core import context

REQUEST_ID_HEADER = b"x-request-id"


class RequestContextMiddleware:
    """Bind a request id to the logging context and echo it on the response."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers", [])).get(REQUEST_ID_HEADER, b"").decode()
        request_id = incoming[:128] or uuid4().hex
        context.clear_context()
        context.set_request_id(request_id)

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = [
                    (key, value)
                    for key, value in message.get("headers", [])
                    if key.lower() != REQUEST_ID_HEADER
                ]
                headers.append((REQUEST_ID_HEADER, request_id.encode()))
                message["headers"] = headers
            await send(message)

        # Stays bound for the outer 500 handler; cleared when the next request starts.
        await self.app(scope, receive, send_with_request_id)
