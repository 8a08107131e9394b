import logging

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Application startup")
        app.state.database.init()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await app.state.database.close()
        logger.info("Application shutdown")
