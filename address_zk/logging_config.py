"""
Logging configuration for address_zk.

Structured logging through structlog, JSON for services and a console
renderer for interactive use. A correlation id bound in a context variable
ties together the log lines of one proof request across the accumulator,
prover pool and verifier.

Never log witness values (identifiers, salts, secrets, Merkle paths).
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Optional

import structlog
from structlog.types import EventDict

LOGGER_PREFIX = "address_zk"

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the context correlation id to log events when one is set."""
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current context.

    Args:
        correlation_id: Optional correlation ID. If None, generates a new UUID.

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs go to stderr.
        json_format: If True, use JSON format. If False, use human-readable format.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    if not name.startswith(LOGGER_PREFIX):
        name = f"{LOGGER_PREFIX}.{name}"
    return structlog.get_logger(name)


# Convenience functions for common logging patterns


def log_accumulator_write(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    index: int,
    old_root: int,
    new_root: int,
    **kwargs: Any,
) -> None:
    """
    Log a committed accumulator write.

    Args:
        logger: Logger instance
        operation: "insert", "remove" or "update"
        index: Leaf slot that changed
        old_root: Root before the write
        new_root: Root after the write
        **kwargs: Additional context to log
    """
    logger.info(
        "accumulator_write",
        event_type="accumulator_write",
        operation=operation,
        index=index,
        old_root=hex(old_root),
        new_root=hex(new_root),
        **kwargs,
    )


def log_proof_generated(
    logger: structlog.stdlib.BoundLogger,
    circuit_type: str,
    key_id: str,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    logger.info(
        "proof_generated",
        event_type="proof_generated",
        circuit_type=circuit_type,
        key_id=key_id,
        duration_ms=round(duration_ms, 2),
        **kwargs,
    )


def log_proof_verification(
    logger: structlog.stdlib.BoundLogger,
    circuit_type: str,
    key_id: str,
    valid: bool,
    duration_ms: float,
    reason: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """Log a verification outcome; rejections are logged at warning level."""
    log_data = {
        "event_type": "proof_verification",
        "circuit_type": circuit_type,
        "key_id": key_id,
        "valid": valid,
        "duration_ms": round(duration_ms, 2),
    }
    if reason is not None:
        log_data["reason"] = reason
    log_data.update(kwargs)
    if valid:
        logger.info("proof_verification", **log_data)
    else:
        logger.warning("proof_verification", **log_data)
