from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eth_utils import to_hex, to_int

__all__ = ["CallRequest", "FeeData", "TransactionReceipt", "to_quantity", "from_quantity"]


def to_quantity(value: int) -> str:
    """Encode an int as a JSON-RPC hex quantity."""
    return to_hex(value)


def from_quantity(value: Any) -> int:
    """Decode a JSON-RPC hex quantity (ints pass through)."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    return to_int(hexstr=value)


@dataclass(frozen=True)
class CallRequest:
    """Parameters of a call or transaction. ``to=None`` means contract creation."""

    data: str
    to: Optional[str] = None
    sender: Optional[str] = None
    value: int = 0
    gas: Optional[int] = None

    def to_rpc(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"data": self.data}
        if self.to is not None:
            params["to"] = self.to
        if self.sender is not None:
            params["from"] = self.sender
        if self.value:
            params["value"] = to_quantity(self.value)
        if self.gas is not None:
            params["gas"] = to_quantity(self.gas)
        return params


@dataclass(frozen=True)
class FeeData:
    gas_price: int
    base_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    max_fee_per_gas: Optional[int] = None

    @property
    def supports_eip1559(self) -> bool:
        return self.base_fee_per_gas is not None and self.max_fee_per_gas is not None

    @property
    def fee_per_gas(self) -> int:
        """Upper bound paid per gas unit, used for cost quotes."""
        if self.supports_eip1559 and self.max_fee_per_gas is not None:
            return self.max_fee_per_gas
        return self.gas_price


@dataclass
class TransactionReceipt:
    transaction_hash: str
    block_number: int
    status: int
    gas_used: int
    effective_gas_price: int = 0
    contract_address: Optional[str] = None
    sender: Optional[str] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)
    revert_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @property
    def cost(self) -> int:
        return self.gas_used * self.effective_gas_price

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "TransactionReceipt":
        return cls(
            transaction_hash=raw["transactionHash"],
            block_number=from_quantity(raw.get("blockNumber")),
            status=from_quantity(raw.get("status")),
            gas_used=from_quantity(raw.get("gasUsed")),
            effective_gas_price=from_quantity(raw.get("effectiveGasPrice")),
            contract_address=raw.get("contractAddress"),
            sender=raw.get("from"),
            logs=list(raw.get("logs") or []),
        )
