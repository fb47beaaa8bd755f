"""
Security utilities.

Implements:
- Path traversal prevention for record and credential files
- Address format checks
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Union

# Valid Ethereum address pattern
ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

# Characters allowed in a record key component (contract or network name)
SAFE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")


def validate_path(requested_path: Union[str, Path], base_directory: Union[str, Path]) -> Path:
    """
    Resolve a path and ensure it stays inside the base directory.

    Args:
        requested_path: Path relative to ``base_directory`` (or absolute).
        base_directory: The allowed base directory.

    Returns:
        Absolute path within the base directory.

    Raises:
        ValueError: If the path escapes the base directory.

    Example:
        >>> validate_path("../../etc/passwd", "/app/.somnia")
        ValueError: Path traversal attempt detected
    """
    base = Path(base_directory).resolve()
    requested = Path(requested_path)

    if requested.is_absolute():
        full_path = requested.resolve()
    else:
        full_path = (base / requested).resolve()

    try:
        full_path.relative_to(base)
    except ValueError:
        raise ValueError(
            f"Path traversal attempt detected: {requested_path} escapes {base_directory}"
        ) from None

    return full_path


def validate_name_component(value: str, field: str = "name") -> str:
    """
    Validate a string that becomes part of a file name.

    Raises:
        ValueError: If the value is empty or has unsafe characters.
    """
    if not value or not SAFE_NAME_PATTERN.match(value):
        raise ValueError(f"{field} contains invalid characters: {value!r}")
    if value in (".", ".."):
        raise ValueError(f"{field} cannot be '.' or '..'")
    return value


def is_valid_address(address: str) -> bool:
    """Check that ``address`` looks like a 0x-prefixed 20-byte hex string."""
    if not isinstance(address, str):
        return False
    return bool(ADDRESS_PATTERN.match(address))

