"""Middleware for the FastAPI application.

This module contains middleware that process requests and responses, and the
exception handlers mapping billing errors to HTTP responses.
"""

import time
import traceback
import uuid
from typing import Union

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from storepilot.core.config import settings
from storepilot.core.exceptions import (
    InvalidTransitionError,
    NotFoundException,
    ProviderError,
    StaleEventError,
    StorePilotException,
    TerminalStateError,
    unpack_validation_error,
)
from storepilot.core.logging import logger


async def add_request_id(request: Request, call_next: callable) -> Response:
    """Middleware to generate and add a request ID to the request for tracing.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    request.state.request_id = str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


async def log_requests(request: Request, call_next: callable) -> Response:
    """Middleware to log incoming requests.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.info(
        f"Handled request {request.method} {request.url.path} in {duration:.2f} seconds. "
        f"Response code: {response.status_code}"
    )
    return response


async def exception_logging_middleware(request: Request, call_next: callable) -> Response:
    """Middleware to log unhandled exceptions.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}\n{traceback.format_exc()}")

        response_content = {
            "detail": f"Internal Server Error: {exc.__class__.__name__}: {str(exc)}"
        }
        # Include stack trace only in development mode
        if settings.DEBUG:
            response_content["trace"] = traceback.format_exc()

        return JSONResponse(status_code=500, content=response_content)


# Exception handlers
async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """Exception handler for validation errors that occur during request processing.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (Union[RequestValidationError, ValidationError]): The exception object that was raised.

    Returns:
    -------
        JSONResponse: A 422 Unprocessable Entity status response. Each error is a dictionary
            mapping the location of the invalid field to the error message, e.g.
            {"errors": [{"body.plan_id": "Field required"}]}

    """
    error_messages = unpack_validation_error(exc)
    logger.warning(f"Validation error on {request.method} {request.url.path}: {error_messages}")
    return JSONResponse(status_code=422, content=error_messages)


async def not_found_exception_handler(request: Request, exc: NotFoundException) -> JSONResponse:
    """Exception handler for NotFoundException.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (NotFoundException): The exception object that was raised.

    Returns:
    -------
        JSONResponse: A 404 Not Found status response that details the error message.

    """
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def invalid_transition_exception_handler(
    request: Request, exc: InvalidTransitionError
) -> JSONResponse:
    """Exception handler for InvalidTransitionError and TerminalStateError.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (InvalidTransitionError): The exception object that was raised.

    Returns:
    -------
        JSONResponse: A 409 Conflict status response with the error message and, when known,
            the subscription status that forbade the operation.

    """
    content = {"detail": str(exc)}
    if exc.current_status:
        content["status"] = exc.current_status
    if isinstance(exc, TerminalStateError):
        content["terminal"] = True
    return JSONResponse(status_code=409, content=content)


async def provider_exception_handler(request: Request, exc: ProviderError) -> JSONResponse:
    """Exception handler for ProviderError.

    The local record is untouched when this is raised, so the caller may retry.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (ProviderError): The exception object that was raised.

    Returns:
    -------
        JSONResponse: A 502 Bad Gateway status response with the provider's error detail.

    """
    logger.warning(f"Billing provider error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "provider": exc.service_name, "provider_detail": exc.detail},
    )


async def storepilot_exception_handler(
    request: Request, exc: StorePilotException
) -> JSONResponse:
    """Generic exception handler for StorePilotException types without a dedicated handler.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (StorePilotException): The exception object that was raised.

    Returns:
    -------
        JSONResponse: HTTP response with appropriate status code and error details.

    """
    # Stale events are absorbed by reconciliation; one reaching here is still not an error
    if isinstance(exc, StaleEventError):
        return JSONResponse(status_code=200, content={"detail": str(exc)})

    logger.error(f"Unmapped StorePilot exception: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})
