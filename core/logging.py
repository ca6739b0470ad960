# PATH: core/logging.py
"""
Structured logging for FORKMAN.

All contextual fields are passed only via extra={"context": {...}}.
Per-chain node output goes to dedicated file loggers, see create_fork_logger().
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

FORK_LOGGER_PREFIX = "forkman.node"


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Includes context fields from extra={"context": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "context") and record.context:
            log_data["context"] = record.context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable formatter for console output.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        base = f"{timestamp} | {record.levelname:<9} | {record.name} | {record.getMessage()}"

        if hasattr(record, "context") and record.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in list(record.context.items())[:3])
            if len(record.context) > 3:
                ctx_str += f", ... (+{len(record.context) - 3} more)"
            base += f" | {ctx_str}"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


class NodeOutputFormatter(logging.Formatter):
    """Message-only formatter; node output already carries its own timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """
    Setup logging configuration.

    Args:
        level: Logging level
        log_file: Optional file path for log output
        json_format: Use JSON format (True) or console format (False)
    """
    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        StructuredFormatter() if json_format else ConsoleFormatter()
    )
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter())
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def create_fork_logger(chain_name: str, log_dir: Union[str, Path]) -> logging.Logger:
    """
    Create the file logger receiving a fork node's stdout/stderr.

    Writes to <log_dir>/<chain_name>-node.log, truncated on creation.
    The logger does not propagate, so node chatter stays out of the console.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    node_logger = logging.getLogger(f"{FORK_LOGGER_PREFIX}.{chain_name}")
    close_fork_logger(node_logger)

    handler = logging.FileHandler(
        log_path / f"{chain_name}-node.log", mode="w", encoding="utf-8"
    )
    handler.setFormatter(NodeOutputFormatter())
    node_logger.addHandler(handler)
    node_logger.setLevel(logging.INFO)
    node_logger.propagate = False
    return node_logger


def close_fork_logger(node_logger: logging.Logger) -> None:
    """Detach and close every handler of a fork logger."""
    for handler in list(node_logger.handlers):
        node_logger.removeHandler(handler)
        handler.close()
