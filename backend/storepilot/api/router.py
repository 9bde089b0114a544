"""Custom router implementation that disables slash redirects."""

from typing import Any, Callable

from fastapi import APIRouter
from fastapi.types import DecoratedCallable


class TrailingSlashRouter(APIRouter):
    """Registers every endpoint for both the naked path and the path with a trailing slash.

    Only the naked path is exported in the OpenAPI schema, so the dashboard can call
    either form without a redirect.
    """

    def api_route(
        self, path: str, *, include_in_schema: bool = True, **kwargs: Any
    ) -> Callable[[DecoratedCallable], DecoratedCallable]:
        """Register the slash and non-slash versions of a route.

        Args:
            path (str): The path for the endpoint
            include_in_schema (bool): Whether to include the route in the OpenAPI schema
            **kwargs: Additional arguments to pass to the parent api_route method

        Returns:
            Callable[[DecoratedCallable], DecoratedCallable]: Decorator registering both paths.
        """
        if path.endswith("/"):
            path = path[:-1]

        add_path = super().api_route(path, include_in_schema=include_in_schema, **kwargs)
        add_alternate_path = super().api_route(path + "/", include_in_schema=False, **kwargs)

        def decorator(func: DecoratedCallable) -> DecoratedCallable:
            add_alternate_path(func)
            return add_path(func)

        return decorator
