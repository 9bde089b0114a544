"""Shared exceptions module."""

from typing import Optional

from pydantic import ValidationError


class StorePilotException(Exception):
    """Base exception for StorePilot services."""

    pass


class NotFoundException(StorePilotException):
    """Exception raised when an object is not found."""

    def __init__(self, message: Optional[str] = "Object not found"):
        """Create a new NotFoundException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class SubscriptionNotFoundException(NotFoundException):
    """Raised when an account has no subscription where one is required."""

    pass


class PlanNotFoundException(NotFoundException):
    """Raised when a plan is not in the catalog."""

    pass


class InvalidTransitionError(StorePilotException):
    """Exception raised when an operation is requested against a status that forbids it."""

    def __init__(
        self,
        message: Optional[str] = "Operation not allowed in the current subscription state",
        current_status: Optional[str] = None,
    ):
        """Create a new InvalidTransitionError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.
            current_status (str, optional): The subscription status that forbids the operation.

        """
        self.message = message
        self.current_status = current_status
        super().__init__(self.message)


class TerminalStateError(InvalidTransitionError):
    """Raised when the subscription is already canceled and cannot be resumed."""

    def __init__(
        self,
        message: Optional[str] = (
            "Subscription is canceled; a new subscription must be created instead"
        ),
    ):
        """Create a new TerminalStateError instance."""
        super().__init__(message, current_status="canceled")


class ProviderError(StorePilotException):
    """Exception raised when the billing provider fails, rejects a call or times out."""

    def __init__(
        self,
        service_name: str,
        message: Optional[str] = "Billing provider failed",
        detail: Optional[str] = None,
    ):
        """Create a new ProviderError instance.

        Args:
        ----
            service_name (str): The name of the billing provider.
            message (str, optional): The error message. Has default message.
            detail (str, optional): The provider's own error detail, when available.

        """
        self.service_name = service_name
        self.message = message
        self.detail = detail
        super().__init__(f"{service_name}: {message}")


class StaleEventError(StorePilotException):
    """Raised when a provider event is a duplicate or older than the last applied one.

    Reconciliation absorbs this error; it is never surfaced to a user.
    """

    def __init__(
        self,
        event_id: str,
        message: Optional[str] = "Stale provider event",
        simultaneous: bool = False,
    ):
        """Create a new StaleEventError instance.

        Args:
        ----
            event_id (str): The provider event id that was rejected.
            message (str, optional): The error message. Has default message.
            simultaneous (bool): Whether the event shares the last applied event's time,
                so their relative order is unknown.

        """
        self.event_id = event_id
        self.simultaneous = simultaneous
        self.message = message
        super().__init__(f"{message}: {event_id}")


def unpack_validation_error(exc: ValidationError) -> dict:
    """Unpack a Pydantic validation error into a dictionary.

    Args:
    ----
        exc (ValidationError): The Pydantic validation error.

    Returns:
    -------
        dict: The dictionary representation of the validation error.

    """
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        message = error["msg"]
        error_messages.append({field: message})

    return {"errors": error_messages}
