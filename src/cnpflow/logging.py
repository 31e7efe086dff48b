"""
Structured logging for cnpflow.

Provides:
- FlowLogger: Structured logger with context binding
- get_logger: Get a logger for a specific component
- configure_logging: Configure logging output format

Diagnostics are best effort. A failure inside a logging call is
reported to stderr by the stdlib handler and never reaches the caller.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional

import structlog


class FlowLogger:
    """
    Structured logger for flow computations.

    Example:
        log = FlowLogger("flow").bind(flow="hum_to_bio")

        log.debug("efficiency_resolved", year=2001, mat=12.1, efficiency=0.4116)
        log.error("mass_balance_failure", layer=3, deficit=0.2)
    """

    def __init__(
        self,
        component: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the logger.

        Args:
            component: Component name (e.g., "flow", "loop")
            context: Initial context bindings
        """
        self._component = component
        self._context = context or {}
        self._logger = structlog.wrap_logger(
            logging.getLogger(f"cnpflow.{component}"),
            wrapper_class=structlog.stdlib.BoundLogger,
        )
        if self._context:
            self._logger = self._logger.bind(**self._context)

    def bind(self, **kwargs: Any) -> "FlowLogger":
        """
        Create a new logger with additional context bindings.

        Args:
            **kwargs: Key-value pairs to bind to the logger

        Returns:
            New FlowLogger with bound context
        """
        return FlowLogger(self._component, {**self._context, **kwargs})

    def _emit(self, method: str, event: str, **kwargs: Any) -> None:
        try:
            getattr(self._logger, method)(event, **kwargs)
        except Exception:  # pragma: no cover
            logging.getLogger("cnpflow").handleError(
                logging.makeLogRecord({"msg": event, "levelname": method.upper()})
            )

    def debug(self, event: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._emit("debug", event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        """Log info message."""
        self._emit("info", event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._emit("warning", event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        """Log error message."""
        self._emit("error", event, **kwargs)


def get_logger(component: str) -> FlowLogger:
    """
    Get a logger for a specific component.

    Args:
        component: Component name (e.g., "flow", "loop", "cli")

    Returns:
        FlowLogger instance
    """
    return FlowLogger(component)


def configure_logging(
    level: str = "INFO",
    format: str = "console",
    output: str = "stderr",
) -> None:
    """
    Configure logging output.

    Args:
        level: Log level ("DEBUG", "INFO", "WARNING", "ERROR")
        format: Output format ("json" or "console")
        output: Output destination ("stderr", "stdout", or file path)

    Example:
        # Pretty console output while developing a flow configuration
        configure_logging(level="DEBUG", format="console")

        # JSON lines to a file for batch runs
        configure_logging(level="INFO", format="json", output="run.log")
    """
    level_num = getattr(logging, level.upper(), logging.INFO)

    if output == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    elif output == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.FileHandler(output)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger("cnpflow")
    root_logger.setLevel(level_num)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if format == "json":
        processors = [
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
