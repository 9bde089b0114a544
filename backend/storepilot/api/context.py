"""Unified application context for API requests.

This module provides a context object that combines the calling account, logging
and request metadata into a single injectable dependency.
"""

from uuid import UUID

from pydantic import BaseModel

from storepilot.core.logging import ContextualLogger


class ApiContext(BaseModel):
    """Unified context for API requests.

    The account is resolved by the upstream authentication gateway and passed along
    in the X-Account-ID header.
    """

    # Request metadata
    request_id: str

    # Caller
    account_id: UUID
    auth_method: str = "gateway"

    # Contextual logger with all dimensions pre-configured
    logger: ContextualLogger

    class Config:
        """Pydantic configuration."""

        arbitrary_types_allowed = True  # For ContextualLogger

    def __str__(self) -> str:
        """String representation for logging."""
        return (
            f"ApiContext(request_id={self.request_id[:8]}..., "
            f"method={self.auth_method}, account={self.account_id})"
        )
