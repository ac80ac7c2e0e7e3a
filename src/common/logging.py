"""
Structured JSON logging setup for the bridge using structlog.

- Use structlog for structured JSON logging
- Include event, module, and elapsed_ms fields
- Never log tokens, secrets, or PII
"""

import logging
import logging.handlers
import time
from typing import Any, Optional

import structlog

from common.config import LoggingConfig

# Global config reference for pretty print setting
_config: Optional[LoggingConfig] = None


def pretty_renderer(logger: Any, method_name: str, event_dict: dict) -> str:
    """
    Render a log entry as compact JSON, or as a readable block when
    enable_pretty_print is set.
    """
    if _config and _config.enable_pretty_print:
        filtered_dict = {
            k: v for k, v in event_dict.items() if k not in ["timestamp", "level", "logger"]
        }

        event = filtered_dict.pop("event", "unknown_event")
        output_lines = [f"EVENT: {event}"]

        for key, value in filtered_dict.items():
            if isinstance(value, (dict, list)):
                formatted_value = str(value).replace(", ", ",\n    ")
                output_lines.append(f"{key}: {formatted_value}")
            else:
                output_lines.append(f"{key}: {value}")

        output_lines.append("-" * 50)
        return "\n".join(output_lines)

    return str(structlog.processors.JSONRenderer(default=str)(logger, method_name, event_dict))


def setup_logging(config: LoggingConfig, broker_log_level: str = "error") -> None:
    """
    Setup structured JSON logging using structlog.

    Args:
        config: Logging section of the bridge configuration
        broker_log_level: Level applied to the bridge.broker logger
    """
    global _config
    _config = config

    log_level = getattr(logging, config.level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            pretty_renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    handlers.append(console_handler)

    if config.save_to_file:
        file_handler = logging.handlers.RotatingFileHandler(
            filename=config.log_file_path,
            maxBytes=config.max_log_file_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, format="%(message)s", force=True)

    logging.getLogger("bridge.broker").setLevel(
        getattr(logging, broker_log_level.upper(), logging.ERROR)
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)


class TimedLogger:
    """Context manager for timing operations and logging elapsed time using structlog."""

    def __init__(self, logger: structlog.BoundLogger, event: str, module: str, **context: Any):
        """
        Initialize timed logger.

        Args:
            logger: structlog logger instance
            event: Event name for the log entry
            module: Module name reported with the entry
            **context: Additional context to include in logs
        """
        self.logger = logger
        self.event = event
        self.module = module
        self.context = context
        self.start_time: Optional[float] = None

    def __enter__(self) -> "TimedLogger":
        """Start timing."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Log elapsed time, unless the block raised."""
        if self.start_time is None or exc_type is not None:
            return

        elapsed_ms = (time.perf_counter() - self.start_time) * 1000
        self.logger.info(
            event=self.event,
            elapsed_ms=round(elapsed_ms, 2),
            module=self.module,
            **self.context,
        )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a configured structlog logger."""
    return structlog.get_logger(name)


def log_startup_message(message: str, **kwargs: Any) -> None:
    """Log an operator-facing startup message."""
    get_logger("startup").info(event=message, **kwargs)
