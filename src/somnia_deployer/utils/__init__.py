"""
Somnia deployer utilities.

Logging, retry, file and security helpers shared across the package.
"""

from somnia_deployer.utils.logging import (
    LogContext,
    configure_logging,
    disable_logging,
    enable_debug,
    get_logger,
    set_level,
)
from somnia_deployer.utils.retry import RetryConfig, calculate_delay, retry_async
from somnia_deployer.utils.security import (
    is_valid_address,
    validate_name_component,
    validate_path,
)

__all__ = [
    # Structured logging
    "get_logger",
    "configure_logging",
    "set_level",
    "disable_logging",
    "enable_debug",
    "LogContext",
    # Retry
    "RetryConfig",
    "calculate_delay",
    "retry_async",
    # Security
    "validate_path",
    "validate_name_component",
    "is_valid_address",
]
