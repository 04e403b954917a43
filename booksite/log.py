import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "booksite"


class ExtraFieldFormatter(logging.Formatter):
    """Formatter that appends extra fields to the log message."""

    # Attributes that are considered part of the standard LogRecord
    STANDARD_ATTRS = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "asctime",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        extras = {
            k: v
            for k, v in record.__dict__.items()
            if k not in self.STANDARD_ATTRS and not k.startswith("_") and v is not None
        }
        if extras:
            # Sorted by key for stable output
            extra_parts = ", ".join(f"{k}={v!r}" for k, v in sorted(extras.items()))
            formatted = f"{formatted} | {extra_parts}"
        return formatted


def setup_logging(level: int = logging.INFO, console: Console | None = None) -> logging.Logger:
    """Set up and return the package logger.

    Log records go to stderr through rich. Extra fields passed via the
    ``extra`` kwarg are appended to the message, e.g.
    ``logger.warning("render failed", extra={"chapter": "intro.qmd"})``.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            show_time=False,
        )
        handler.setFormatter(ExtraFieldFormatter("%(message)s"))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger
