"""Decoding of EVM revert payloads into human-readable reasons."""

from __future__ import annotations

from typing import Any, Optional

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from somnia_deployer.constants import ABI_SELECTOR_LENGTH, PANIC_SELECTOR, REVERT_SELECTOR

UNKNOWN_REASON = "unknown"

PANIC_CODES = {
    0x00: "generic compiler panic",
    0x01: "assertion failed",
    0x11: "arithmetic overflow or underflow",
    0x12: "division or modulo by zero",
    0x21: "invalid enum value",
    0x22: "invalid storage byte array encoding",
    0x31: "pop on empty array",
    0x32: "array index out of bounds",
    0x41: "out of memory",
    0x51: "call to zero-initialized function",
}


def decode_revert_data(raw: Optional[str]) -> Optional[str]:
    """Decode ``Error(string)`` or ``Panic(uint256)`` revert data.

    Args:
        raw: Hex-encoded error data (0x-prefixed)

    Returns:
        Decoded reason, or None if the payload is empty or not a known shape
    """
    if not raw or not isinstance(raw, str) or not raw.startswith("0x"):
        return None
    selector = raw[: 2 + ABI_SELECTOR_LENGTH * 2].lower()
    try:
        body = bytes.fromhex(raw[2 + ABI_SELECTOR_LENGTH * 2 :])
    except ValueError:
        return None

    try:
        if selector == REVERT_SELECTOR:
            (reason,) = decode(["string"], body)
            return reason
        if selector == PANIC_SELECTOR:
            (code,) = decode(["uint256"], body)
            label = PANIC_CODES.get(code, "unknown panic")
            return f"panic 0x{code:02x}: {label}"
    except (DecodingError, UnicodeDecodeError, ValueError):
        return None
    return None


def extract_revert_reason(error: Any) -> Optional[str]:
    """Pull a revert reason out of an RPC error (``RpcRevert`` or raw dict).

    Tries the encoded payload first, then a message of the form
    ``execution reverted: <reason>``.
    """
    data = getattr(error, "data", None)
    message = getattr(error, "message", None)
    if isinstance(error, dict):
        data = error.get("data")
        message = error.get("message")
    if isinstance(data, dict):
        data = data.get("data") or data.get("result")

    decoded = decode_revert_data(data) if isinstance(data, str) else None
    if decoded:
        return decoded

    if isinstance(message, str) and ":" in message and "revert" in message.lower():
        tail = message.split(":", 1)[1].strip()
        if tail:
            return tail
    return None
