"""
Structured logging for the Somnia deployer.

Thin layer over the standard library: every module calls
``get_logger(__name__)`` and passes context through ``extra={...}``.
The formatter appends those extra fields as ``key=value`` pairs.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional, Union

ROOT_LOGGER_NAME = "somnia_deployer"

# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class KeyValueFormatter(logging.Formatter):
    """Formatter that renders ``extra`` fields after the message."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if not fields:
            return base
        rendered = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
        return f"{base} | {rendered}"


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger nested under the package root logger.

    Args:
        name: Usually ``__name__`` of the calling module.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    stream: Any = None,
    fmt: str = "%(asctime)s %(levelname)s %(name)s: %(message)s",
) -> logging.Logger:
    """
    Attach a key=value stream handler to the package root logger.

    Calling it again replaces the previously installed handler.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_somnia_deployer", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(KeyValueFormatter(fmt))
    handler._somnia_deployer = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
    root.disabled = False
    return root


def set_level(level: Union[int, str]) -> None:
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)


def disable_logging() -> None:
    logging.getLogger(ROOT_LOGGER_NAME).disabled = True


def enable_debug() -> None:
    configure_logging(logging.DEBUG)


class LogContext(logging.LoggerAdapter):
    """
    Logger adapter that merges a fixed context into every call.

    Example:
        >>> log = LogContext(_logger, {"contract": "MyToken", "network": "testnet"})
        >>> log.info("Simulating deployment", extra={"gas": 120000})
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(logger, dict(context or {}))

    def process(self, msg: Any, kwargs: Any) -> Any:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **context: Any) -> "LogContext":
        merged = dict(self.extra or {})
        merged.update(context)
        return LogContext(self.logger, merged)
