"""JSON-RPC network access."""

from somnia_deployer.network.client import NetworkClient, apply_gas_margin
from somnia_deployer.network.revert import (
    UNKNOWN_REASON,
    decode_revert_data,
    extract_revert_reason,
)
from somnia_deployer.network.transport import RpcTransport
from somnia_deployer.network.types import CallRequest, FeeData, TransactionReceipt

__all__ = [
    "NetworkClient",
    "RpcTransport",
    "CallRequest",
    "FeeData",
    "TransactionReceipt",
    "apply_gas_margin",
    "decode_revert_data",
    "extract_revert_reason",
    "UNKNOWN_REASON",
]
