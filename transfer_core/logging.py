"""Structured logging configuration for transfer-core.

Transfer log lines carry their context (transaction id, payer, payee key,
value, attempt) in ``record.extra``. Build it with :func:`transfer_context`::

    logger.info("Transfer committed", extra=transfer_context(transaction_id=tx_id))

``JsonFormatter`` merges the context into the JSON object and
``ContextFormatter`` appends it as ``key=value`` pairs.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from transfer_core.config import TransferCoreConfig

# Order in which context fields are rendered by ContextFormatter
CONTEXT_FIELDS = ("transaction_id", "payer_id", "payee_key", "value", "attempt", "reason")


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
) -> None:
    """Configure logging for transfer-core.

    Parameters
    ----------
    level : str
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    format_type : str
        Format type: "standard" or "json".
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter: logging.Formatter = JsonFormatter() if format_type == "json" else ContextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("transfer_core").setLevel(log_level)

    # Reduce noise from external libraries
    logging.getLogger("confluent_kafka").setLevel(logging.WARNING)
    logging.getLogger("psycopg").setLevel(logging.WARNING)
    logging.getLogger("faker").setLevel(logging.WARNING)


def configure_logging(config: "TransferCoreConfig") -> None:
    """Apply ``config.log_level`` and ``config.log_format``."""
    setup_logging(config.log_level, config.log_format)


def transfer_context(**fields: Any) -> dict[str, Any]:
    """Build the ``extra`` mapping for a transfer log call, dropping unset fields."""
    return {"extra": {name: value for name, value in fields.items() if value is not None}}


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return dict(getattr(record, "extra", None) or {})


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends transfer context as ``key=value`` pairs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        ordered = [name for name in CONTEXT_FIELDS if name in context]
        ordered += sorted(name for name in context if name not in CONTEXT_FIELDS)
        pairs = " ".join(f"{name}={context[name]}" for name in ordered)
        # Keep tracebacks at the end
        head, sep, tail = line.partition("\n")
        return f"{head} | {pairs}{sep}{tail}"


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(_context(record))

        return json.dumps(log_data, default=str)
