"""Serve the Volunteer Hub API.

This script starts the FastAPI application with Uvicorn.  It is
intended to be executed from the project root, for example under
Docker, where you only specify a single Python file to run.  Without
``SUPABASE_URL`` and ``SUPABASE_ANON_KEY`` the API keeps its data in
JSON files under ``DATA_DIR`` (``./data`` by default).

Usage:
    python run.py
"""
import asyncio
import logging

from uvicorn import Config, Server

from volunteer_hub_api.app.core.config import settings
from volunteer_hub_api.app.main import app


async def run_api() -> None:
    """Start the API using Uvicorn.

    Host and port are read from the environment variables ``HOST`` and
    ``PORT``.  Defaults are ``0.0.0.0`` and ``3001``.
    """
    config = Config(app=app, host=settings.host, port=settings.port, reload=False, log_level=settings.log_level.lower())
    server = Server(config)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(run_api())
    except (KeyboardInterrupt, SystemExit):
        logging.getLogger(__name__).info("Shutting down")
