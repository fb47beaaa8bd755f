"""
Deployment and call data encoding.

User-entered constructor values usually arrive as JSON or strings; they
are coerced to their declared ABI types, ABI-encoded with eth_abi and
appended to the creation bytecode. Function calls get the same coercion
behind a 4-byte selector.
"""

from __future__ import annotations

import json
import re
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address

from somnia_deployer.errors import ArgumentResolutionError

_ARRAY = re.compile(r"^(?P<base>.+)\[(?P<size>\d*)\]$")
_INTEGER = re.compile(r"^(?P<sign>u?)int(?P<bits>\d*)$")
_FIXED_BYTES = re.compile(r"^bytes(?P<size>\d+)$")


def canonical_type(param: Mapping[str, Any]) -> str:
    """ABI type string, expanding ``tuple`` parameters into ``(a,b,...)``."""
    abi_type = param.get("type", "")
    if abi_type.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components") or [])
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def parse_user_args(text: Optional[str]) -> List[Any]:
    """Parse constructor arguments given as a JSON array, e.g. '["My Token", "MTK", 18]'."""
    if text is None or not text.strip():
        return []
    try:
        parsed = json.loads(text)
    except ValueError:
        raise ArgumentResolutionError("Constructor args must be a valid JSON array") from None
    if not isinstance(parsed, list):
        raise ArgumentResolutionError("Constructor args must be a JSON array")
    return parsed


def _fail(name: str, abi_type: str, reason: str) -> ArgumentResolutionError:
    return ArgumentResolutionError(
        f"Invalid value for '{name}' ({abi_type}): {reason}",
        parameter=name,
        param_type=abi_type,
    )


def _coerce_integer(name: str, abi_type: str, value: Any, signed: bool, bits: int) -> int:
    if isinstance(value, bool):
        raise _fail(name, abi_type, "booleans are not integers")
    if isinstance(value, float):
        if not value.is_integer():
            raise _fail(name, abi_type, "fractional value")
        value = int(value)
    if isinstance(value, str):
        text = value.strip().replace("_", "")
        try:
            value = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError:
            raise _fail(name, abi_type, f"not a number: {value!r}") from None
    if not isinstance(value, int):
        raise _fail(name, abi_type, f"expected integer, got {type(value).__name__}")

    low, high = (-(1 << (bits - 1)), (1 << (bits - 1)) - 1) if signed else (0, (1 << bits) - 1)
    if not low <= value <= high:
        raise _fail(name, abi_type, "out of range")
    return value


def _coerce_bool(name: str, abi_type: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    raise _fail(name, abi_type, f"expected boolean, got {value!r}")


def _coerce_bytes(name: str, abi_type: str, value: Any, size: Optional[int]) -> bytes:
    if isinstance(value, str):
        text = value[2:] if value.startswith("0x") else value
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise _fail(name, abi_type, "expected hex string") from None
    if not isinstance(value, (bytes, bytearray)):
        raise _fail(name, abi_type, f"expected bytes, got {type(value).__name__}")
    if size is not None and len(value) > size:
        raise _fail(name, abi_type, f"longer than {size} bytes")
    return bytes(value)


def coerce_value(param: Mapping[str, Any], value: Any, name: Optional[str] = None) -> Any:
    """Convert ``value`` into the Python type eth_abi expects for ``param``."""
    abi_type = param.get("type", "")
    name = name or param.get("name") or "arg"

    array = _ARRAY.match(abi_type)
    if array:
        if isinstance(value, str):
            value = parse_user_args(value)
        if not isinstance(value, (list, tuple)):
            raise _fail(name, abi_type, "expected an array")
        size = array.group("size")
        if size and len(value) != int(size):
            raise _fail(name, abi_type, f"expected {size} elements")
        element = dict(param, type=array.group("base"))
        return [coerce_value(element, item, name) for item in value]

    if abi_type == "tuple":
        components = list(param.get("components") or [])
        if isinstance(value, Mapping):
            value = [value.get(c.get("name")) for c in components]
        if not isinstance(value, (list, tuple)) or len(value) != len(components):
            raise _fail(name, abi_type, f"expected {len(components)} tuple members")
        return tuple(coerce_value(c, v, f"{name}.{c.get('name')}") for c, v in zip(components, value))

    integer = _INTEGER.match(abi_type)
    if integer:
        bits = int(integer.group("bits") or 256)
        return _coerce_integer(name, abi_type, value, integer.group("sign") != "u", bits)

    if abi_type == "bool":
        return _coerce_bool(name, abi_type, value)

    if abi_type == "address":
        if not isinstance(value, str) or not is_address(value):
            raise _fail(name, abi_type, f"not an address: {value!r}")
        return to_checksum_address(value)

    if abi_type == "string":
        return value if isinstance(value, str) else str(value)

    if abi_type == "bytes":
        return _coerce_bytes(name, abi_type, value, None)

    fixed = _FIXED_BYTES.match(abi_type)
    if fixed:
        return _coerce_bytes(name, abi_type, value, int(fixed.group("size")))

    raise _fail(name, abi_type, "unsupported type")


def encode_arguments(
    inputs: Sequence[Mapping[str, Any]],
    values: Sequence[Any],
    *,
    label: str = "constructor",
) -> bytes:
    """ABI-encode values against their declared inputs."""
    if len(inputs) != len(values):
        raise ArgumentResolutionError(
            f"Expected {len(inputs)} {label} arguments, got {len(values)}"
        )
    if not inputs:
        return b""
    types = [canonical_type(p) for p in inputs]
    coerced = [coerce_value(p, v) for p, v in zip(inputs, values)]
    try:
        return encode(types, coerced)
    except (EncodingError, TypeError, ValueError) as e:
        raise ArgumentResolutionError(f"{label.capitalize()} arguments could not be encoded: {e}") from None


def encode_constructor_args(inputs: Sequence[Mapping[str, Any]], values: Sequence[Any]) -> bytes:
    """ABI-encode constructor values against their declared inputs."""
    return encode_arguments(inputs, values)


def encode_deployment_data(
    bytecode: str,
    inputs: Sequence[Mapping[str, Any]],
    values: Sequence[Any],
) -> str:
    """Creation bytecode followed by the encoded constructor arguments."""
    code = bytecode[2:] if bytecode.startswith("0x") else bytecode
    return "0x" + code + encode_constructor_args(inputs, values).hex()


def function_signature(function: Mapping[str, Any]) -> str:
    """Canonical signature, e.g. ``transfer(address,uint256)``."""
    inputs = ",".join(canonical_type(p) for p in function.get("inputs") or [])
    return f"{function['name']}({inputs})"


def encode_function_call(function: Mapping[str, Any], values: Sequence[Any]) -> str:
    """4-byte selector followed by the encoded arguments."""
    selector = function_signature_to_4byte_selector(function_signature(function))
    args = encode_arguments(function.get("inputs") or [], values, label=function["name"])
    return "0x" + (selector + args).hex()


def decode_function_result(function: Mapping[str, Any], data: str) -> Tuple[Any, ...]:
    """Decode ``eth_call`` return data against the function's outputs.

    Raises:
        ValueError: the data does not match the declared outputs
    """
    outputs = function.get("outputs") or []
    if not outputs:
        return ()
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    try:
        return tuple(decode([canonical_type(p) for p in outputs], raw))
    except (DecodingError, TypeError) as e:
        raise ValueError(str(e)) from None
