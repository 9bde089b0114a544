"""Dependencies that are used in the API endpoints."""

import uuid
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot.api.context import ApiContext
from storepilot.core.logging import logger
from storepilot.db.session import AsyncSessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session to be used in dependency injection.

    Yields:
    ------
        AsyncSession: An async database session

    """
    async with AsyncSessionLocal() as db:
        try:
            yield db
        finally:
            await db.close()


async def get_context(
    request: Request,
    x_account_id: Optional[str] = Header(None, alias="X-Account-ID"),
) -> ApiContext:
    """Create the API context for the request.

    The upstream authentication gateway resolves the caller and forwards the account
    in the X-Account-ID header.

    Args:
    ----
        request (Request): The FastAPI request object.
        x_account_id (Optional[str]): Account ID set by the authentication gateway.

    Returns:
    -------
        ApiContext: Context with the account and a pre-configured contextual logger.

    Raises:
    ------
        HTTPException: If the account header is missing or malformed.

    """
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    if not x_account_id:
        raise HTTPException(status_code=401, detail="Missing X-Account-ID header")
    try:
        account_id = UUID(x_account_id)
    except ValueError as e:
        raise HTTPException(status_code=401, detail="Invalid X-Account-ID header") from e

    return ApiContext(
        request_id=request_id,
        account_id=account_id,
        logger=logger.with_context(
            request_id=request_id,
            account_id=str(account_id),
            auth_method="gateway",
        ),
    )
