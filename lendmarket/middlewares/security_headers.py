from starlette.types import ASGIApp, Message, Receive, Scope, Send

_BASE_HEADERS: tuple[tuple[bytes, bytes], ...] = (
    (b"x-content-type-options", b"nosniff"),
    (b"x-frame-options", b"DENY"),
    (b"referrer-policy", b"no-referrer"),
    (b"x-xss-protection", b"0"),
    (b"cross-origin-opener-policy", b"same-origin"),
    (b"cross-origin-resource-policy", b"same-origin"),
)
_HSTS = (b"strict-transport-security", b"max-age=63072000; includeSubDomains; preload")


class SecurityHeadersMiddleware:
    """Add default security headers that the route did not set itself."""

    def __init__(
        self,
        app: ASGIApp,
        enable_hsts: bool = False,
        content_security_policy: str | None = None,
        csp_report_only: bool = False,
    ) -> None:
        self.app = app
        defaults = list(_BASE_HEADERS)
        if enable_hsts:
            defaults.append(_HSTS)
        if content_security_policy:
            name = (
                b"content-security-policy-report-only"
                if csp_report_only
                else b"content-security-policy"
            )
            defaults.append((name, content_security_policy.encode()))
        self._defaults = tuple(defaults)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                present = {key.lower() for key, _ in headers}
                headers.extend(item for item in self._defaults if item[0] not in present)
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_headers)
