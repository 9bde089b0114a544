"""Main module of the FastAPI application.

This module sets up the FastAPI application, the middleware to log incoming requests
and unhandled exceptions, and the handlers mapping billing errors to HTTP responses.
"""

import os
import subprocess
from contextlib import asynccontextmanager
from typing import Optional, Union

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from storepilot.api.middleware import (
    add_request_id,
    exception_logging_middleware,
    invalid_transition_exception_handler,
    log_requests,
    not_found_exception_handler,
    provider_exception_handler,
    storepilot_exception_handler,
    validation_exception_handler,
)
from storepilot.api.router import TrailingSlashRouter
from storepilot.api.v1.api import api_router
from storepilot.core.config import settings
from storepilot.core.exceptions import (
    InvalidTransitionError,
    NotFoundException,
    ProviderError,
    StorePilotException,
)
from storepilot.core.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events.

    Runs alembic migrations when enabled.
    """
    if settings.RUN_ALEMBIC_MIGRATIONS:
        logger.info("Running alembic migrations...")
        env = os.environ.copy()
        backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        env["PYTHONPATH"] = backend_dir
        subprocess.run(
            ["alembic", "upgrade", "head"],
            check=True,
            cwd=backend_dir,
            env=env,
        )
    if not settings.STRIPE_ENABLED:
        logger.warning("Stripe is disabled, billing operations will fail with a provider error")

    yield


# Create FastAPI app with our custom router and disable FastAPI's built-in redirects
app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url="/openapi.json",
    lifespan=lifespan,
    router=TrailingSlashRouter(),
    redirect_slashes=False,
)

app.include_router(api_router)

# Register middleware directly
app.middleware("http")(add_request_id)
app.middleware("http")(log_requests)
app.middleware("http")(exception_logging_middleware)

# Register exception handlers
app.exception_handler(RequestValidationError)(validation_exception_handler)
app.exception_handler(ValidationError)(validation_exception_handler)
app.exception_handler(NotFoundException)(not_found_exception_handler)
app.exception_handler(InvalidTransitionError)(invalid_transition_exception_handler)
app.exception_handler(ProviderError)(provider_exception_handler)
app.exception_handler(StorePilotException)(storepilot_exception_handler)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]


def get_cors_origins(additional_origins: Optional[Union[str, list[str]]]) -> list[str]:
    """Build the allowed origins from the local frontends and the configured extras.

    Credentials are allowed, so a wildcard origin is dropped.
    """
    origins = list(DEFAULT_CORS_ORIGINS)
    if isinstance(additional_origins, str):
        additional_origins = additional_origins.split(",")
    for origin in additional_origins or []:
        origin = origin.strip()
        if origin and origin != "*" and origin not in origins:
            origins.append(origin)
    return origins


CORS_ORIGINS = get_cors_origins(settings.ADDITIONAL_CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
