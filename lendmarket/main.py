from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from lendmarket import __version__
from lendmarket.api.v1 import api_router
from lendmarket.core.errors import register_exception_handlers
from lendmarket.core.limiter import limiter
from lendmarket.core.logging import configure_logging
from lendmarket.core.response_envelope import register_response_envelope
from lendmarket.core.settings import settings
from lendmarket.db.session import Database
from lendmarket.events import register_event_handlers
from lendmarket.middlewares.request_context import RequestContextMiddleware
from lendmarket.middlewares.security_headers import SecurityHeadersMiddleware
from lendmarket.middlewares.trust_proxies import TrustedProxiesMiddleware


def create_app(database: Database | None = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title="LendMarket Backend", version=__version__)
    app.state.database = database or Database(
        settings.database_url,
        pool_timeout=settings.db_pool_timeout_seconds,
    )
    register_exception_handlers(app)
    register_response_envelope(app)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(TrustedProxiesMiddleware, proxies_count=settings.proxies_count)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        SecurityHeadersMiddleware,
        enable_hsts=settings.enable_hsts,
        content_security_policy=settings.content_security_policy,
        csp_report_only=settings.content_security_policy_report_only,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix=settings.api_prefix)
    register_event_handlers(app)
    return app


app = create_app()
