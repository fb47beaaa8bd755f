"""
Somnia deployer - contract deployment and transaction-simulation pipeline.

Turns a compiled contract artifact into a live contract on a Somnia
JSON-RPC endpoint: resolve constructor inputs, simulate, quote, confirm,
sign and submit, await the receipt, and record the outcome.

Quick Start:
    >>> import asyncio
    >>> from somnia_deployer import (
    ...     CredentialStore, DeployerSettings, DeploymentOrchestrator, load_artifact,
    ... )
    >>>
    >>> async def main():
    ...     settings = DeployerSettings.from_env()
    ...     credential = CredentialStore(settings.project_dir).load()
    ...     artifact = load_artifact("artifacts/contracts/MyToken.sol/MyToken.json")
    ...     result = await DeploymentOrchestrator(settings=settings).deploy(
    ...         artifact, credential, "passphrase", settings.endpoint(),
    ...     )
    ...     print(result.raise_for_status().record.address)
    ...
    >>> asyncio.run(main())

Modules:
- `config`: network catalogue and runtime settings
- `network`: JSON-RPC client with retry and receipt polling
- `credentials`: encrypted credential handling and signing
- `compiler`: artifact loading and Hardhat compilation
- `deploy`: argument resolution, simulation, orchestration, records, contract calls
- `errors`: exception hierarchy
- `utils`: logging, retry, file and security helpers
"""

from somnia_deployer.version import __version__, __version_info__

# Configuration
from somnia_deployer.config import (
    NETWORKS,
    DeployerSettings,
    Network,
    NetworkEndpoint,
    get_network_config,
)

# Network
from somnia_deployer.network import (
    CallRequest,
    FeeData,
    NetworkClient,
    RpcTransport,
    TransactionReceipt,
    apply_gas_margin,
)

# Credentials
from somnia_deployer.credentials import (
    Credential,
    CredentialManager,
    CredentialStore,
    EncryptionScheme,
)

# Compiler
from somnia_deployer.compiler import (
    CompiledArtifact,
    Compiler,
    HardhatArtifactCompiler,
    load_artifact,
)

# Deployment
from somnia_deployer.deploy import (
    ArgumentResolver,
    CallResult,
    ContractCaller,
    DeploymentOrchestrator,
    DeploymentQuote,
    DeploymentRecord,
    DeploymentRecordStore,
    DeploymentResult,
    DeploymentState,
    ResolutionSource,
    ResolvedArgument,
    SimulationOutcome,
    Simulator,
    auto_approve,
    max_cost_policy,
)

# Errors
from somnia_deployer.errors import (
    ArgumentResolutionError,
    CompilationError,
    ConfirmationTimeout,
    ContractCallError,
    CredentialUnreadable,
    DeployerError,
    DeploymentCancelled,
    InsufficientFunds,
    InvalidCredentialError,
    InvalidStateTransitionError,
    NetworkTransient,
    RecordStoreError,
    RpcError,
    SimulationRevert,
    TransactionReverted,
)

# Utilities
from somnia_deployer.utils import configure_logging, get_logger

__all__ = [
    "__version__",
    "__version_info__",
    # Configuration
    "NETWORKS",
    "DeployerSettings",
    "Network",
    "NetworkEndpoint",
    "get_network_config",
    # Network
    "CallRequest",
    "FeeData",
    "NetworkClient",
    "RpcTransport",
    "TransactionReceipt",
    "apply_gas_margin",
    # Credentials
    "Credential",
    "CredentialManager",
    "CredentialStore",
    "EncryptionScheme",
    # Compiler
    "CompiledArtifact",
    "Compiler",
    "HardhatArtifactCompiler",
    "load_artifact",
    # Deployment
    "ArgumentResolver",
    "CallResult",
    "ContractCaller",
    "DeploymentOrchestrator",
    "DeploymentQuote",
    "DeploymentRecord",
    "DeploymentRecordStore",
    "DeploymentResult",
    "DeploymentState",
    "ResolutionSource",
    "ResolvedArgument",
    "SimulationOutcome",
    "Simulator",
    "auto_approve",
    "max_cost_policy",
    # Errors
    "ArgumentResolutionError",
    "CompilationError",
    "ConfirmationTimeout",
    "ContractCallError",
    "CredentialUnreadable",
    "DeployerError",
    "DeploymentCancelled",
    "InsufficientFunds",
    "InvalidCredentialError",
    "InvalidStateTransitionError",
    "NetworkTransient",
    "RecordStoreError",
    "RpcError",
    "SimulationRevert",
    "TransactionReverted",
    # Utilities
    "configure_logging",
    "get_logger",
]
