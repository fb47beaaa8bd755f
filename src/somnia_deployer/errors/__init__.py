"""Exception hierarchy for the Somnia deployer."""

from somnia_deployer.errors.base import DeployerError
from somnia_deployer.errors.deployment import (
    ArgumentResolutionError,
    CompilationError,
    ConfirmationTimeout,
    ContractCallError,
    CredentialUnreadable,
    DeploymentCancelled,
    InsufficientFunds,
    InvalidCredentialError,
    InvalidStateTransitionError,
    NetworkTransient,
    RecordStoreError,
    RpcError,
    RpcRevert,
    SimulationRevert,
    TransactionReverted,
)

__all__ = [
    "DeployerError",
    "ArgumentResolutionError",
    "CompilationError",
    "ConfirmationTimeout",
    "ContractCallError",
    "CredentialUnreadable",
    "DeploymentCancelled",
    "InsufficientFunds",
    "InvalidCredentialError",
    "InvalidStateTransitionError",
    "NetworkTransient",
    "RecordStoreError",
    "RpcError",
    "RpcRevert",
    "SimulationRevert",
    "TransactionReverted",
]
