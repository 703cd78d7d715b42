import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from switchboard.config import Settings, get_settings, reload_settings

reload_settings()
from switchboard.admin.api import router as admin_router
from switchboard.database import close_pool, get_pool
from switchboard.modules.bot.responder import BotResponder
from switchboard.modules.directory.base import UserDirectory
from switchboard.modules.directory.memory import InMemoryUserDirectory
from switchboard.modules.handoff.router import HandoffRouter
from switchboard.modules.messaging.sender import Delivery, ProviderDelivery
from switchboard.modules.messaging.webhook import router as messaging_router


async def build_directory(settings: Settings) -> UserDirectory:
    if settings.directory_backend == "postgres":
        from switchboard.modules.directory.postgres import PostgresUserDirectory
        directory = PostgresUserDirectory(await get_pool())
        await directory.ensure_schema()
        return directory
    return InMemoryUserDirectory()


def create_app(
    directory: UserDirectory | None = None,
    delivery: Delivery | None = None,
    bot: BotResponder | None = None,
) -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.directory = directory or await build_directory(settings)
        app.state.delivery = delivery or ProviderDelivery()
        app.state.handoff = HandoffRouter(app.state.directory, app.state.delivery, settings)
        app.state.bot = bot or BotResponder(settings)
        logger.info(
            "Switchboard ready (provider=%s, directory=%s)",
            settings.messaging_provider,
            settings.directory_backend,
        )
        yield
        await close_pool()

    app = FastAPI(
        title="Switchboard",
        description="Routes conversations between a bot, a queue and human agents",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(messaging_router, prefix="/messages", tags=["messages"])
    app.include_router(admin_router, prefix="/admin", tags=["admin"])

    @app.get("/health")
    async def health():
        return {"status": "ok", "environment": settings.environment}

    return app


app = create_app()
