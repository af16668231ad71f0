"""Service entry point: webhook server plus the daily expiry sweep."""
import asyncio
import logging
from typing import Optional

from aiohttp import web
from sqlalchemy.ext.asyncio import async_sessionmaker

from api.config import settings
from api.handlers import setup_webhook_routes
from api.logging_config import setup_logging
from database.base import async_session_maker, close_db, init_db
from services.scheduler import create_scheduler

logger = logging.getLogger(__name__)


def build_app(session_maker: Optional[async_sessionmaker] = None) -> web.Application:
    """Create the aiohttp application with routes registered."""
    app = web.Application()
    app["session_maker"] = session_maker or async_session_maker
    setup_webhook_routes(app, settings.webhook_path)
    return app


async def main():
    setup_logging()
    await init_db()

    app = build_app()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, settings.web_host, settings.web_port)
    await site.start()
    logger.info(f"Webhook server listening on {settings.web_host}:{settings.web_port}")

    scheduler = create_scheduler(app["session_maker"])
    scheduler.start()

    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        await runner.cleanup()
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
