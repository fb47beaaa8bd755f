"""
Deployment pipeline exceptions.

Only NetworkTransient is retried automatically (and only for read-type
RPC calls). Every other error is surfaced to the caller.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from somnia_deployer.errors.base import DeployerError


class CredentialUnreadable(DeployerError):
    """
    Raised when an encrypted credential cannot be decrypted.

    The message is fixed and never includes the passphrase, the blob or
    partially decrypted material.
    """

    default_code = "CREDENTIAL_UNREADABLE"

    def __init__(
        self,
        message: str = "Invalid passphrase or corrupted credential data",
        *,
        scheme: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if scheme:
            details["scheme"] = scheme
        super().__init__(message, details=details)
        self.scheme = scheme


class InvalidCredentialError(DeployerError):
    """Raised when a private key, mnemonic or passphrase is rejected at import."""

    default_code = "INVALID_CREDENTIAL"


class CompilationError(DeployerError):
    """Raised when the compiler collaborator cannot produce an artifact."""

    default_code = "COMPILATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        source_path: Optional[str] = None,
        output: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if source_path:
            details["source_path"] = source_path
        if output:
            details["output"] = output
        super().__init__(message, details=details)
        self.source_path = source_path
        self.output = output


class ArgumentResolutionError(DeployerError):
    """Raised when a constructor argument is missing and cannot be defaulted."""

    default_code = "ARGUMENT_RESOLUTION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        parameter: Optional[str] = None,
        param_type: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if parameter is not None:
            details["parameter"] = parameter
        if param_type is not None:
            details["type"] = param_type
        super().__init__(message, details=details)
        self.parameter = parameter
        self.param_type = param_type


class SimulationRevert(DeployerError):
    """
    Raised when the dry-run of a deployment fails before any funds are spent.

    ``reason`` is the decoded revert string, or "unknown".
    """

    default_code = "SIMULATION_REVERT"

    def __init__(
        self,
        reason: str,
        *,
        estimation_failed: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["reason"] = reason
        details["estimation_failed"] = estimation_failed
        prefix = "Gas estimation failed" if estimation_failed else "Simulation reverted"
        super().__init__(f"{prefix}: {reason}", details=details)
        self.reason = reason
        self.estimation_failed = estimation_failed


class InsufficientFunds(DeployerError):
    """Raised when the deployer balance is below the estimated cost."""

    default_code = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        message: str = "Insufficient funds for transaction",
        *,
        balance: Optional[int] = None,
        required: Optional[int] = None,
        address: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if balance is not None:
            details["balance"] = str(balance)
        if required is not None:
            details["required"] = str(required)
        if address:
            details["address"] = address
        super().__init__(message, details=details)
        self.balance = balance
        self.required = required
        self.address = address


class ContractCallError(DeployerError):
    """
    Raised when a function call on a deployed contract cannot be made or read.

    Covers an unknown function name, a missing interface for the address,
    a reverted read-only call and return data that does not decode.
    """

    default_code = "CONTRACT_CALL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        function: Optional[str] = None,
        address: Optional[str] = None,
        reason: Optional[str] = None,
        available: Optional[List[str]] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if function:
            details["function"] = function
        if address:
            details["address"] = address
        if reason is not None:
            details["reason"] = reason
        if available is not None:
            details["available"] = available
        super().__init__(message, details=details)
        self.function = function
        self.address = address
        self.reason = reason
        self.available = available or []


class RpcError(DeployerError):
    """Raised when the RPC endpoint returns a non-transient failure."""

    default_code = "RPC_ERROR"

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        rpc_code: Optional[int] = None,
        data: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if method:
            details["method"] = method
        if rpc_code is not None:
            details["rpc_code"] = rpc_code
        if data:
            details["data"] = data
        super().__init__(message, details=details)
        self.method = method
        self.rpc_code = rpc_code
        self.data = data


class RpcRevert(RpcError):
    """Raised when the node reports that a call reverted during execution."""

    default_code = "RPC_REVERT"


class NetworkTransient(DeployerError):
    """Transport-level failure that may succeed on retry."""

    default_code = "NETWORK_TRANSIENT"

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if method:
            details["method"] = method
        if endpoint:
            details["endpoint"] = endpoint
        super().__init__(message, details=details)
        self.method = method
        self.endpoint = endpoint


class DeploymentCancelled(DeployerError):
    """Raised when the confirmation step declines the quoted cost."""

    default_code = "USER_CANCELLED"


class ConfirmationTimeout(DeployerError):
    """
    No receipt was observed within the wait window.

    The transaction was submitted and may still land; the outcome is
    ambiguous rather than failed.
    """

    default_code = "CONFIRMATION_TIMEOUT"

    def __init__(self, tx_hash: str, timeout: float) -> None:
        super().__init__(
            f"Confirmation timed out after {timeout:g}s, transaction may still land",
            tx_hash=tx_hash,
            details={"timeout_seconds": timeout},
        )
        self.timeout = timeout


class TransactionReverted(DeployerError):
    """The transaction was mined but its receipt reported failure."""

    default_code = "TRANSACTION_REVERTED"

    def __init__(
        self,
        tx_hash: str,
        *,
        reason: str = "unknown",
        gas_used: Optional[int] = None,
        block_number: Optional[int] = None,
    ) -> None:
        details: Dict[str, Any] = {"reason": reason}
        if gas_used is not None:
            details["gas_used"] = gas_used
        if block_number is not None:
            details["block_number"] = block_number
        super().__init__(f"Transaction reverted: {reason}", tx_hash=tx_hash, details=details)
        self.reason = reason
        self.gas_used = gas_used
        self.block_number = block_number


class RecordStoreError(DeployerError):
    """Raised when a deployment or credential file cannot be read or written."""

    default_code = "RECORD_STORE_ERROR"

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        details: Dict[str, Any] = {}
        if path:
            details["path"] = path
        super().__init__(message, details=details)
        self.path = path


class InvalidStateTransitionError(DeployerError):
    """Raised when the orchestrator is asked to move between unconnected states."""

    default_code = "INVALID_STATE_TRANSITION"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            f"invalid transition {current} -> {target}",
            details={"from": current, "to": target},
        )
        self.current = current
        self.target = target
