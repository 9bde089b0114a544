"""The logging configuration module."""

import json
import logging
import sys
from datetime import datetime
from typing import Optional

# LogRecord attributes that are never copied into the JSON payload as extras
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "custom_dimensions",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Formats log records as JSON with support for custom dimensions, so billing logs
    can be filtered by account, request and provider event in the log backend.
    """

    def __init__(self):
        """Initialize the formatter with a module path cache."""
        super().__init__()
        self._module_cache = {}

    def _get_module_path(self, record: logging.LogRecord) -> str:
        """Extract the dotted module path (e.g. 'storepilot.platform.billing') from a record."""
        pathname = record.pathname
        if pathname in self._module_cache:
            return self._module_cache[pathname]

        parts = pathname.replace("\\", "/").split("/")
        package_indices = [i for i, part in enumerate(parts) if part == "storepilot"]
        if package_indices:
            module_parts = parts[package_indices[-1] :]
            if module_parts[-1].endswith(".py"):
                module_parts[-1] = module_parts[-1][:-3]
            module_path = ".".join(module_parts)
        else:
            module_path = record.module

        self._module_cache[pathname] = module_path
        return module_path

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
        ----
            record (logging.LogRecord): The log record to format

        Returns:
        -------
            str: JSON-formatted log message

        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": self._get_module_path(record),
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "custom_dimensions", None):
            log_entry["custom_dimensions"] = record.custom_dimensions

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS:
                continue
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class ContextualLogger(logging.LoggerAdapter):
    """A LoggerAdapter that supports both custom dimensions and prefixes."""

    def __init__(
        self,
        logger: logging.Logger,
        prefix: str = "",
        dimensions: Optional[dict] = None,
    ) -> None:
        """Initialize the contextual logger.

        Args:
        ----
            logger (logging.Logger): Base logger instance
            dimensions (Optional[dict]): Custom dimensions for structured logging
            prefix (str): Optional prefix for log messages

        """
        super().__init__(logger, {})
        self.prefix = prefix
        self.dimensions = dimensions or {}

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """Prefix the message and merge the adapter's dimensions into the record extras."""
        if self.prefix:
            msg = f"{self.prefix}{msg}"

        if "extra" not in kwargs:
            kwargs["extra"] = {}

        if self.dimensions:
            kwargs["extra"]["custom_dimensions"] = {
                **kwargs["extra"].get("custom_dimensions", {}),
                **self.dimensions,
            }

        return msg, kwargs

    def with_prefix(self, prefix: str) -> "ContextualLogger":
        """Create a new logger with an additional prefix while maintaining dimensions."""
        return ContextualLogger(self.logger, prefix, self.dimensions)

    def with_context(self, **dimensions: str | int | float | bool) -> "ContextualLogger":
        """Create a new logger with additional context dimensions.

        Args:
        ----
            dimensions: Keyword arguments to add to dimensions

        Returns:
        -------
            ContextualLogger: New logger instance with updated dimensions

        """
        new_dimensions = {**self.dimensions, **dimensions}
        return ContextualLogger(self.logger, self.prefix, new_dimensions)


class LoggerConfigurator:
    """Configures loggers with support for dimensions and prefixes.

    The base context is injected at the dependency injection level (the API context
    or the webhook processor). It carries dimensions such as request_id, account_id
    or provider_event_id, and can be augmented per operation:

    ```python
    log = logger.with_context(account_id=str(account_id), operation="change_plan")
    log.info("Requesting plan swap from provider")
    ```

    Configuration:
    -------------
    Uses settings from storepilot.core.config:
    - Text format when LOCAL_DEVELOPMENT=True, JSON format otherwise
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    @staticmethod
    def configure_logger(
        name: str,
        prefix: str = "",
        dimensions: Optional[dict] = None,
    ) -> ContextualLogger:
        """Configure and return a logger with the given name and initial context.

        Args:
        ----
            name (str): Logger name (typically __name__)
            dimensions (Optional[dict]): Initial custom dimensions
            prefix (str): Initial prefix for log messages

        Returns:
        -------
            ContextualLogger: Configured logger with context support

        """
        logger = logging.getLogger(name)

        # Import settings here to avoid circular imports
        from storepilot.core.config import settings

        log_level = settings.LOG_LEVEL.upper()
        logger.setLevel(getattr(logging, log_level, logging.INFO))

        # Handlers are attached here, so propagating would duplicate every line
        logger.propagate = False

        if getattr(logger, "_storepilot_configured", False):
            return ContextualLogger(logger, prefix, dimensions)

        logger.handlers.clear()

        stream_handler = logging.StreamHandler(sys.stdout)
        if settings.LOCAL_DEVELOPMENT:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        else:
            formatter = JSONFormatter()

        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

        logger._storepilot_configured = True

        return ContextualLogger(logger, prefix, dimensions)


# Default logger instance
logger = LoggerConfigurator.configure_logger(__name__)
