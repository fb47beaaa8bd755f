"""Network client for a single JSON-RPC endpoint.

This module provides the NetworkClient used by the deployment pipeline.

The client supports:
- Balance, nonce, code and fee-data queries
- Gas estimation with a fixed 10% safety margin
- Call simulation (``eth_call``) with revert detection
- Raw transaction submission (never retried)
- Receipt polling with confirmations and a timeout outcome

Read-type calls are retried on NetworkTransient with exponential
backoff; reverts and malformed responses are not retried.

Example:
    >>> from somnia_deployer import NetworkClient, get_network_config
    >>> async with NetworkClient(get_network_config("testnet")) as client:
    ...     balance = await client.get_balance("0x...")
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Optional, Tuple, Union

from hexbytes import HexBytes

from somnia_deployer.config import DeployerSettings, NetworkEndpoint
from somnia_deployer.constants import GAS_MARGIN_PERCENT, MAX_FEE_MULTIPLIER
from somnia_deployer.errors import DeployerError, NetworkTransient, RpcError, RpcRevert
from somnia_deployer.network.revert import UNKNOWN_REASON, extract_revert_reason
from somnia_deployer.network.transport import RpcTransport
from somnia_deployer.network.types import CallRequest, FeeData, TransactionReceipt, from_quantity
from somnia_deployer.utils.logging import get_logger
from somnia_deployer.utils.retry import RetryConfig, retry_async
from somnia_deployer.utils.security import is_valid_address

_logger = get_logger(__name__)

# Fallback tip when the node does not implement eth_maxPriorityFeePerGas (1 gwei)
DEFAULT_PRIORITY_FEE_WEI = 1_000_000_000


def apply_gas_margin(raw_estimate: int, margin_percent: int = GAS_MARGIN_PERCENT) -> int:
    """Add the safety margin to a node estimate; the result is never below it."""
    if margin_percent < 0:
        raise ValueError("margin_percent must be non-negative")
    return raw_estimate + (raw_estimate * margin_percent) // 100


class NetworkClient:
    """Async JSON-RPC client with retry, error classification and receipt polling."""

    def __init__(
        self,
        endpoint: NetworkEndpoint,
        *,
        transport: Optional[RpcTransport] = None,
        settings: Optional[DeployerSettings] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self.endpoint = endpoint
        self.settings = settings or DeployerSettings()
        self._transport = transport or RpcTransport(
            endpoint.rpc_url, timeout=self.settings.rpc_timeout
        )
        self._retry_config = retry_config or RetryConfig(
            max_attempts=self.settings.retry_attempts,
            base_delay_ms=self.settings.retry_base_delay_ms,
        )

    async def __aenter__(self) -> "NetworkClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------
    async def _read(self, method: str, *params: Any) -> Any:
        """Read-type call: retried on NetworkTransient."""
        return await retry_async(
            lambda: self._transport.request(method, list(params)),
            self._retry_config,
            operation=method,
        )

    async def _bounded(self, awaitable: Awaitable[Any], timeout: float, operation: str) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            raise NetworkTransient(
                f"{operation} timed out after {timeout:g}s",
                method=operation,
                endpoint=self.endpoint.rpc_url,
            ) from None

    # ------------------------------------------------------------------
    # Account and chain queries
    # ------------------------------------------------------------------
    @staticmethod
    def _require_address(address: str) -> str:
        if not is_valid_address(address):
            raise ValueError(f"Invalid address: {address!r}")
        return address

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return from_quantity(await self._read("eth_getBalance", self._require_address(address), block))

    async def get_nonce(self, address: str, block: str = "pending") -> int:
        return from_quantity(
            await self._read("eth_getTransactionCount", self._require_address(address), block)
        )

    async def get_code(self, address: str, block: str = "latest") -> str:
        return await self._read("eth_getCode", self._require_address(address), block) or "0x"

    async def is_contract(self, address: str) -> bool:
        """Distinguish a contract account from a plain account."""
        code = await self.get_code(address)
        return code not in ("0x", "0x0", "")

    async def get_chain_id(self) -> int:
        return from_quantity(await self._read("eth_chainId"))

    async def get_block_number(self) -> int:
        return from_quantity(await self._read("eth_blockNumber"))

    async def get_fee_data(self) -> FeeData:
        """
        Current gas price plus EIP-1559 fields when the chain reports a base fee.

        ``max_fee_per_gas`` = base fee * 2 + priority fee.
        """
        gas_price = from_quantity(await self._read("eth_gasPrice"))
        block = await self._read("eth_getBlockByNumber", "latest", False)
        base_fee_raw = block.get("baseFeePerGas") if isinstance(block, dict) else None
        if base_fee_raw is None:
            return FeeData(gas_price=gas_price)

        base_fee = from_quantity(base_fee_raw)
        try:
            priority = from_quantity(await self._read("eth_maxPriorityFeePerGas"))
        except RpcError:
            priority = DEFAULT_PRIORITY_FEE_WEI
        return FeeData(
            gas_price=gas_price,
            base_fee_per_gas=base_fee,
            max_priority_fee_per_gas=priority,
            max_fee_per_gas=base_fee * MAX_FEE_MULTIPLIER + priority,
        )

    # ------------------------------------------------------------------
    # Estimation and simulation
    # ------------------------------------------------------------------
    async def raw_estimate_gas(self, call: CallRequest) -> int:
        """Node estimate without margin."""
        return from_quantity(await self._read("eth_estimateGas", call.to_rpc()))

    async def estimate_gas_detailed(self, call: CallRequest) -> Tuple[int, int]:
        """Return ``(raw, with_margin)``, bounded by ``settings.estimate_timeout``.

        Raises:
            RpcRevert: the call reverts during estimation
            NetworkTransient: transport failure or estimate timeout
        """
        raw = await self._bounded(
            self.raw_estimate_gas(call), self.settings.estimate_timeout, "eth_estimateGas"
        )
        estimate = apply_gas_margin(raw)
        _logger.debug("Gas estimated", extra={"raw": raw, "with_margin": estimate})
        return raw, estimate

    async def estimate_gas(self, call: CallRequest) -> int:
        """Node estimate plus the 10% safety margin."""
        _, estimate = await self.estimate_gas_detailed(call)
        return estimate

    async def simulate_call(self, call: CallRequest, block: str = "latest") -> str:
        """Dry-run ``call`` with ``eth_call``.

        Returns:
            Hex return data (for a creation call, the runtime bytecode)

        Raises:
            RpcRevert: the call reverted; ``data`` holds the error payload
        """
        return await self._bounded(
            self._read("eth_call", call.to_rpc(), block),
            self.settings.simulate_timeout,
            "eth_call",
        )

    async def explain_revert(self, call: CallRequest) -> str:
        """Re-run a failed call as a simulation and decode its revert reason.

        Never raises; returns "unknown" if no reason can be recovered.
        """
        try:
            await self.simulate_call(call)
        except RpcRevert as e:
            return extract_revert_reason(e) or UNKNOWN_REASON
        except DeployerError as e:
            _logger.debug("Revert re-simulation failed", extra={"error": str(e)})
        return UNKNOWN_REASON

    # ------------------------------------------------------------------
    # Submission and receipts
    # ------------------------------------------------------------------
    async def send_signed_transaction(self, raw: Union[bytes, str]) -> str:
        """Submit a signed transaction exactly once (never retried)."""
        raw_hex = HexBytes(raw).hex()
        if not raw_hex.startswith("0x"):
            raw_hex = "0x" + raw_hex
        tx_hash = await self._transport.request("eth_sendRawTransaction", [raw_hex])
        _logger.info("Transaction submitted", extra={"tx_hash": tx_hash})
        return tx_hash

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        raw = await self._read("eth_getTransactionReceipt", tx_hash)
        if not raw:
            return None
        return TransactionReceipt.from_rpc(raw)

    async def wait_for_receipt(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout: Optional[float] = None,
        *,
        call: Optional[CallRequest] = None,
        poll_interval: Optional[float] = None,
    ) -> Optional[TransactionReceipt]:
        """Poll until the receipt has ``confirmations`` blocks, or time out.

        Args:
            tx_hash: Submitted transaction hash
            confirmations: Blocks required including the receipt's own block
            timeout: Seconds to wait (defaults to settings.receipt_timeout)
            call: Original call, used to recover a revert reason on failure
            poll_interval: Seconds between polls

        Returns:
            The receipt, or None if the timeout expired first. A timeout is
            not an error: the transaction may still be included later.
        """
        timeout = self.settings.receipt_timeout if timeout is None else timeout
        poll_interval = poll_interval or self.settings.poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        receipt: Optional[TransactionReceipt] = None

        while receipt is None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return self._receipt_timed_out(tx_hash, timeout)
            try:
                receipt = await asyncio.wait_for(
                    self._confirmed_receipt(tx_hash, confirmations), remaining
                )
            except asyncio.TimeoutError:
                return self._receipt_timed_out(tx_hash, timeout)
            except NetworkTransient as e:
                _logger.warning(
                    "Receipt poll failed, will keep polling",
                    extra={"tx_hash": tx_hash, "error": str(e)},
                )
            if receipt is None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return self._receipt_timed_out(tx_hash, timeout)
                await asyncio.sleep(min(poll_interval, remaining))

        if not receipt.succeeded and call is not None:
            receipt.revert_reason = await self.explain_revert(call)
        return receipt

    async def _confirmed_receipt(
        self, tx_hash: str, confirmations: int
    ) -> Optional[TransactionReceipt]:
        """One poll: the receipt once it is ``confirmations`` blocks deep, else None."""
        receipt = await self.get_transaction_receipt(tx_hash)
        if receipt is None or confirmations <= 1:
            return receipt
        head = await self.get_block_number()
        if head - receipt.block_number + 1 >= confirmations:
            return receipt
        return None

    @staticmethod
    def _receipt_timed_out(tx_hash: str, timeout: float) -> None:
        _logger.warning(
            "Receipt wait timed out",
            extra={"tx_hash": tx_hash, "timeout_seconds": timeout},
        )
        return None
