from starlette.types import ASGIApp, Receive, Scope, Send


def client_ip_from_forwarded(header: str, proxies_count: int) -> str | None:
    """
    Pick the client address out of ``X-Forwarded-For``.

    The header reads ``client, proxy1, ..., proxyN``; with ``proxies_count``
    trusted hops appended at the end, the client sits just before them.
    Returns ``None`` when the chain is shorter than the trusted hop count.
    """
    hops = [hop.strip() for hop in header.split(",") if hop.strip()]
    if len(hops) <= proxies_count:
        return None
    return hops[-(proxies_count + 1)]


class TrustedProxiesMiddleware:
    """Rewrite ``scope["client"]`` so rate limiting and logs see the real caller."""

    def __init__(self, app: ASGIApp, proxies_count: int = 1) -> None:
        self.app = app
        self.proxies_count = proxies_count

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.proxies_count > 0:
            forwarded = dict(scope.get("headers", [])).get(b"x-forwarded-for", b"").decode()
            real_ip = client_ip_from_forwarded(forwarded, self.proxies_count) if forwarded else None
            if real_ip:
                port = scope["client"][1] if scope.get("client") else 0
                scope["client"] = (real_ip, port)

        await self.app(scope, receive, send)
