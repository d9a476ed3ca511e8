"""Run the family calendar assistant webhook server."""
from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI

from family_calendar.bot.context import ServiceContainer, build_services
from family_calendar.bot.handlers import router
from family_calendar.bot.pipeline import ConversationPipeline
from family_calendar.config.settings import Settings, get_settings
from family_calendar.services.async_executor import shutdown_executor

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def build_application(
    settings: Settings | None = None,
    services: ServiceContainer | None = None,
    pipeline: ConversationPipeline | None = None,
) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not settings.telegram_bot_token:
            logger.warning("TELEGRAM_BOT_TOKEN is empty; webhook calls will be rejected")
        await services.telegram.initialize()
        try:
            yield
        finally:
            await services.telegram.shutdown()

    application = FastAPI(title="Family Calendar Assistant", lifespan=lifespan)
    application.state.services = services
    application.state.pipeline = pipeline or ConversationPipeline(services)
    application.include_router(router)
    return application


def main() -> None:
    settings = get_settings()
    application = build_application(settings)
    logger.info("Starting webhook server on %s:%s", settings.host, settings.port)
    try:
        uvicorn.run(application, host=settings.host, port=settings.port)
    finally:
        shutdown_executor()


if __name__ == "__main__":
    main()
