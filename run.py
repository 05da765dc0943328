"""Entry point for the Service Marketplace API.

Serves the FastAPI application with Uvicorn.  It is intended to be
executed from the project root, for example in Docker, where you only
specify a single Python file to run.

Configuration (``HOST``, ``PORT``, ``DATABASE_URL``, ``SECRET_KEY`` ...)
is read from environment variables, see
``service_marketplace_api/app/core/config.py``.

Usage:
    python run.py
"""
import asyncio
import logging

from uvicorn import Config, Server

from service_marketplace_api.app.core.config import settings
from service_marketplace_api.app.main import app


async def main() -> None:
    """Start the API using Uvicorn on ``settings.host``:``settings.port``."""
    config = Config(
        app=app,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )
    server = Server(config)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logging.getLogger(__name__).info("Server stopped")
