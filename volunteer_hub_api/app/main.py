"""
Main entrypoint for the Volunteer Hub API.

This module assembles the FastAPI application: it sets up logging,
composes the data layer once, installs the error handlers and includes
the API router.  The ``create_app`` function builds and configures the
app, which is then instantiated at module import time as ``app``, so it
can be served directly::

    uvicorn volunteer_hub_api.app.main:app --reload

Every failure reaches clients as ``{"success": false, "error": ...}``
with the status code that belongs to the error.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.router import router as api_router
from .container import Services
from .core.config import Settings, settings as default_settings
from .core.errors import DataAccessError
from .core.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """Create and configure a FastAPI application.

    Parameters
    ----------
    settings : Optional[Settings]
        Configuration to use.  Defaults to the settings read from the
        environment.
    services : Optional[Services]
        Pre-built data layer.  Built from ``settings`` when omitted;
        tests pass their own.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    settings = settings or default_settings
    # Initialise logging before anything else so that the backend
    # selection below is logged.
    setup_logging(settings.log_level, settings.log_file)

    app = FastAPI(title=settings.project_name, version=settings.api_version)
    app.state.services = services or Services.from_settings(settings)

    @app.exception_handler(DataAccessError)
    async def data_access_error_handler(request: Request, exc: DataAccessError) -> JSONResponse:
        return _failure(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _failure(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return _failure(400, errors or "Invalid request")

    app.include_router(api_router, prefix="/api")
    logger.info("%s %s ready (%s backend)", settings.project_name, settings.api_version, app.state.services.backend.name)
    return app


# Create the application instance at import time so that tools such as
# uvicorn can discover it without calling create_app manually.
app = create_app()
