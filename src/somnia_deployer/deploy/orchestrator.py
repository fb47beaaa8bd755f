"""Transaction orchestrator.

Drives one deployment through resolve -> simulate -> quote -> confirm ->
sign/submit -> await receipt -> record, as an explicit state machine.

Pipeline failures never escape :meth:`DeploymentOrchestrator.deploy`; they
land on the returned :class:`DeploymentResult` together with the state the
pipeline stopped in. Nothing is retried automatically once a transaction
has been submitted.

Example:
    >>> orchestrator = DeploymentOrchestrator(settings=DeployerSettings())
    >>> result = await orchestrator.deploy(
    ...     artifact, credential, passphrase, get_network_config("testnet"),
    ...     confirm=max_cost_policy(10**17),
    ... )
    >>> result.raise_for_status()
    >>> print(result.record.address)
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from eth_utils import to_checksum_address, to_hex
from web3.utils.address import get_create_address

from somnia_deployer.compiler import CompiledArtifact, Compiler, HardhatArtifactCompiler
from somnia_deployer.config import DeployerSettings, NetworkEndpoint
from somnia_deployer.constants import MAX_CONTRACT_SIZE_BYTES
from somnia_deployer.credentials.manager import Credential, CredentialManager
from somnia_deployer.deploy.arguments import ArgumentResolver, Prompt, ResolvedArgument
from somnia_deployer.deploy.encoding import encode_deployment_data
from somnia_deployer.deploy.records import DeploymentRecord, DeploymentRecordStore
from somnia_deployer.deploy.simulator import SimulationOutcome, SimulationStatus, Simulator
from somnia_deployer.errors import (
    ConfirmationTimeout,
    DeployerError,
    DeploymentCancelled,
    InsufficientFunds,
    InvalidStateTransitionError,
    SimulationRevert,
    TransactionReverted,
)
from somnia_deployer.network.client import NetworkClient
from somnia_deployer.network.types import CallRequest, FeeData, TransactionReceipt
from somnia_deployer.utils.logging import LogContext, get_logger
from somnia_deployer.utils.retry import RetryConfig

_logger = get_logger(__name__)


class DeploymentState(str, Enum):
    IDLE = "idle"
    ARGS_RESOLVED = "args_resolved"
    SIMULATED = "simulated"
    CONFIRMED = "confirmed"
    SUBMITTED = "submitted"
    AWAITING_RECEIPT = "awaiting_receipt"
    SETTLED_SUCCESS = "settled_success"
    SETTLED_REVERTED = "settled_reverted"
    RECORDED = "recorded"
    ABORTED = "aborted"


ALLOWED_TRANSITIONS = {
    DeploymentState.IDLE: {DeploymentState.ARGS_RESOLVED, DeploymentState.ABORTED},
    DeploymentState.ARGS_RESOLVED: {DeploymentState.SIMULATED, DeploymentState.ABORTED},
    DeploymentState.SIMULATED: {DeploymentState.CONFIRMED, DeploymentState.ABORTED},
    DeploymentState.CONFIRMED: {DeploymentState.SUBMITTED, DeploymentState.ABORTED},
    DeploymentState.SUBMITTED: {DeploymentState.AWAITING_RECEIPT, DeploymentState.ABORTED},
    DeploymentState.AWAITING_RECEIPT: {
        DeploymentState.SETTLED_SUCCESS,
        DeploymentState.SETTLED_REVERTED,
        DeploymentState.ABORTED,
    },
    DeploymentState.SETTLED_SUCCESS: {DeploymentState.RECORDED, DeploymentState.ABORTED},
    DeploymentState.SETTLED_REVERTED: set(),
    DeploymentState.RECORDED: set(),
    DeploymentState.ABORTED: set(),
}

TERMINAL_STATES = frozenset(state for state, nxt in ALLOWED_TRANSITIONS.items() if not nxt)


@dataclass(frozen=True)
class DeploymentQuote:
    """Cost shown to the confirmation policy before anything is signed."""

    contract_name: str
    network: str
    deployer_address: str
    gas_limit: int
    fee_per_gas: int
    estimated_cost: int
    balance: int
    formatted_cost: str
    fee_data: FeeData
    arguments: Sequence[ResolvedArgument] = ()

    @property
    def affordable(self) -> bool:
        return self.balance >= self.estimated_cost


ConfirmPolicy = Callable[[DeploymentQuote], Union[bool, Awaitable[bool]]]


def auto_approve(quote: DeploymentQuote) -> bool:
    return True


def max_cost_policy(limit_wei: int) -> ConfirmPolicy:
    """Approve only quotes whose estimated cost is at most ``limit_wei``."""

    def policy(quote: DeploymentQuote) -> bool:
        return quote.estimated_cost <= limit_wei

    return policy


async def confirm_quote(confirm: Callable[[Any], Union[bool, Awaitable[bool]]], quote: Any) -> bool:
    answer = confirm(quote)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


def build_transaction(
    data: str,
    *,
    gas_limit: int,
    fee_data: FeeData,
    nonce: int,
    chain_id: int,
    to: Optional[str] = None,
    value: int = 0,
) -> Dict[str, Any]:
    """Unsigned transaction dict; type 2 when the chain reports a base fee."""
    transaction: Dict[str, Any] = {
        "chainId": chain_id,
        "nonce": nonce,
        "gas": gas_limit,
        "value": value,
        "data": data,
    }
    if to is not None:
        transaction["to"] = to
    if fee_data.supports_eip1559:
        transaction["type"] = 2
        transaction["maxFeePerGas"] = fee_data.max_fee_per_gas
        transaction["maxPriorityFeePerGas"] = fee_data.max_priority_fee_per_gas
    else:
        transaction["gasPrice"] = fee_data.gas_price
    return transaction


@dataclass
class DeploymentResult:
    """Where a deployment ended up, and what it produced along the way."""

    contract_name: str
    network: str
    state: DeploymentState = DeploymentState.IDLE
    history: List[DeploymentState] = field(default_factory=lambda: [DeploymentState.IDLE])
    arguments: List[ResolvedArgument] = field(default_factory=list)
    simulation: Optional[SimulationOutcome] = None
    quote: Optional[DeploymentQuote] = None
    tx_hash: Optional[str] = None
    receipt: Optional[TransactionReceipt] = None
    contract_address: Optional[str] = None
    record: Optional[DeploymentRecord] = None
    error: Optional[DeployerError] = None

    @property
    def succeeded(self) -> bool:
        return self.state is DeploymentState.RECORDED

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, DeploymentCancelled)

    def advance(self, target: DeploymentState) -> None:
        allowed = ALLOWED_TRANSITIONS.get(self.state, set())
        if target not in allowed:
            raise InvalidStateTransitionError(self.state.name, target.name)
        self.state = target
        self.history.append(target)

    def raise_for_status(self) -> "DeploymentResult":
        """Re-raise the error that stopped the pipeline, if any."""
        if self.error is not None:
            raise self.error
        return self


ClientFactory = Callable[[NetworkEndpoint], NetworkClient]


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class DeploymentOrchestrator:
    """
    Runs deployments against one project directory.

    Sign-and-submit is serialized per deployer address inside one
    orchestrator instance so two deployments never read the same pending
    nonce. Separate orchestrators or processes using the same account are
    not coordinated.
    """

    def __init__(
        self,
        *,
        settings: Optional[DeployerSettings] = None,
        credential_manager: Optional[CredentialManager] = None,
        resolver: Optional[ArgumentResolver] = None,
        record_store: Optional[DeploymentRecordStore] = None,
        compiler: Optional[Compiler] = None,
        client_factory: Optional[ClientFactory] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self.settings = settings or DeployerSettings()
        self.credentials = credential_manager or CredentialManager()
        self.resolver = resolver or ArgumentResolver()
        self.records = record_store or DeploymentRecordStore(self.settings.project_dir)
        self.compiler = compiler or HardhatArtifactCompiler(self.settings.project_dir)
        self._retry_config = retry_config
        self._client_factory = client_factory or self._default_client
        self._locks: Dict[str, asyncio.Lock] = {}

    def _default_client(self, endpoint: NetworkEndpoint) -> NetworkClient:
        return NetworkClient(endpoint, settings=self.settings, retry_config=self._retry_config)

    def lock_for(self, address: str) -> asyncio.Lock:
        """Lock held around nonce read, signing and submission for ``address``."""
        return self._locks.setdefault(address.lower(), asyncio.Lock())

    def open_client(self, endpoint: NetworkEndpoint) -> NetworkClient:
        return self._client_factory(endpoint)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    async def deploy_source(
        self,
        source_path: Union[str, Path],
        credential: Credential,
        passphrase: str,
        endpoint: NetworkEndpoint,
        user_args: Optional[Sequence[Any]] = None,
        confirm: Optional[ConfirmPolicy] = None,
        prompt: Optional[Prompt] = None,
    ) -> DeploymentResult:
        """Compile ``source_path`` and deploy the result.

        Raises:
            CompilationError: before any network activity
        """
        artifact = await self.compiler.compile(source_path)
        return await self.deploy(
            artifact,
            credential,
            passphrase,
            endpoint,
            user_args=user_args,
            confirm=confirm,
            prompt=prompt,
        )

    async def deploy(
        self,
        artifact: CompiledArtifact,
        credential: Credential,
        passphrase: str,
        endpoint: NetworkEndpoint,
        user_args: Optional[Sequence[Any]] = None,
        confirm: Optional[ConfirmPolicy] = None,
        prompt: Optional[Prompt] = None,
    ) -> DeploymentResult:
        """Run the full pipeline once.

        Args:
            artifact: Compiled contract
            credential: Deploying credential
            passphrase: Unlocks ``credential`` for the single signature
            endpoint: Target network, passed explicitly
            user_args: Constructor values, positionally; may be partial
            confirm: Policy deciding on the quote (defaults to auto_approve)
            prompt: Asked for parameters no default rule covers

        Returns:
            DeploymentResult; check ``state`` / ``error`` or call
            ``raise_for_status()``.
        """
        result = DeploymentResult(contract_name=artifact.name, network=endpoint.record_key)
        log = LogContext(
            _logger,
            {"contract": artifact.name, "network": endpoint.record_key, "deployer": credential.address},
        )

        async with self.open_client(endpoint) as client:
            try:
                await self._run(
                    result, log, client, artifact, credential, passphrase, endpoint,
                    user_args, confirm or auto_approve, prompt,
                )
            except DeployerError as e:
                result.error = e
                if result.state not in TERMINAL_STATES:
                    result.advance(DeploymentState.ABORTED)
                if isinstance(e, DeploymentCancelled):
                    log.info("Deployment cancelled")
                elif isinstance(e, TransactionReverted):
                    log.error("Deployment reverted", extra={"tx_hash": e.tx_hash, "reason": e.reason})
                else:
                    log.error(
                        "Deployment aborted",
                        extra={"kind": e.kind, "error": e.message, "tx_hash": result.tx_hash},
                    )
        return result

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    async def _run(
        self,
        result: DeploymentResult,
        log: LogContext,
        client: NetworkClient,
        artifact: CompiledArtifact,
        credential: Credential,
        passphrase: str,
        endpoint: NetworkEndpoint,
        user_args: Optional[Sequence[Any]],
        confirm: ConfirmPolicy,
        prompt: Optional[Prompt],
    ) -> None:
        if artifact.bytecode_size > MAX_CONTRACT_SIZE_BYTES:
            log.warning(
                "Contract exceeds the 24KB size limit, deployment may fail",
                extra={"bytecode_bytes": artifact.bytecode_size},
            )

        result.arguments = self.resolver.resolve(
            artifact.constructor_inputs,
            user_args,
            credential.address,
            artifact.name,
            prompt=prompt,
        )
        result.advance(DeploymentState.ARGS_RESOLVED)
        log.info("Constructor arguments resolved", extra={"count": len(result.arguments)})
        data = encode_deployment_data(
            artifact.bytecode,
            artifact.constructor_inputs,
            [a.value for a in result.arguments],
        )

        call = CallRequest(data=data, sender=credential.address)
        outcome = await Simulator(client).simulate(call)
        result.simulation = outcome
        if not outcome.success:
            raise SimulationRevert(
                outcome.revert_reason or "unknown",
                estimation_failed=outcome.status is SimulationStatus.ESTIMATION_FAILED,
            )
        result.advance(DeploymentState.SIMULATED)

        quote = await self._quote(client, artifact, credential, endpoint, outcome, result.arguments)
        result.quote = quote
        log.info(
            "Deployment quoted",
            extra={"gas_limit": quote.gas_limit, "cost": quote.formatted_cost},
        )
        if not quote.affordable:
            raise InsufficientFunds(
                f"Insufficient funds: need {quote.formatted_cost}, have {endpoint.format_amount(quote.balance)}",
                balance=quote.balance,
                required=quote.estimated_cost,
                address=credential.address,
            )

        if not await confirm_quote(confirm, quote):
            raise DeploymentCancelled("Deployment cancelled by user")
        result.advance(DeploymentState.CONFIRMED)

        async with self.lock_for(credential.address):
            nonce = await client.get_nonce(credential.address)
            chain_id = await client.get_chain_id()
            transaction = build_transaction(
                data, gas_limit=quote.gas_limit, fee_data=quote.fee_data, nonce=nonce, chain_id=chain_id
            )
            signed = self.credentials.sign_transaction(credential, passphrase, transaction)
            expected = get_create_address(credential.address, nonce)
            # signed hash; the node's answer replaces it on success
            result.tx_hash = to_hex(signed.hash)
            result.tx_hash = await client.send_signed_transaction(signed.raw_transaction)
        result.advance(DeploymentState.SUBMITTED)
        log.info(
            "Deployment submitted",
            extra={"tx_hash": result.tx_hash, "nonce": nonce, "expected_address": expected},
        )

        result.advance(DeploymentState.AWAITING_RECEIPT)
        receipt = await client.wait_for_receipt(
            result.tx_hash,
            self.settings.confirmations,
            self.settings.receipt_timeout,
            call=call,
        )
        if receipt is None:
            raise ConfirmationTimeout(result.tx_hash, self.settings.receipt_timeout)
        result.receipt = receipt

        if not receipt.succeeded:
            result.advance(DeploymentState.SETTLED_REVERTED)
            raise TransactionReverted(
                result.tx_hash,
                reason=receipt.revert_reason or "unknown",
                gas_used=receipt.gas_used,
                block_number=receipt.block_number,
            )

        result.advance(DeploymentState.SETTLED_SUCCESS)
        result.contract_address = to_checksum_address(receipt.contract_address or expected)
        if receipt.contract_address is None:
            log.warning(
                "Receipt carries no contract address, using the derived one",
                extra={"address": result.contract_address},
            )

        record = DeploymentRecord(
            contract_name=artifact.name,
            address=result.contract_address,
            transaction_hash=result.tx_hash,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
            cost=receipt.cost,
            network=endpoint.record_key,
            deployer_address=credential.address,
            constructor_args=[_jsonable(a.value) for a in result.arguments],
            abi=artifact.abi,
            bytecode=artifact.bytecode,
            source_path=artifact.source_path,
            explorer_url=endpoint.explorer_address_url(result.contract_address),
        )
        self.records.save(record)
        result.record = record
        result.advance(DeploymentState.RECORDED)
        log.info(
            "Contract deployed",
            extra={
                "address": record.address,
                "block": record.block_number,
                "gas_used": record.gas_used,
                "cost": endpoint.format_amount(record.cost),
            },
        )

    async def _quote(
        self,
        client: NetworkClient,
        artifact: CompiledArtifact,
        credential: Credential,
        endpoint: NetworkEndpoint,
        outcome: SimulationOutcome,
        arguments: Sequence[ResolvedArgument],
    ) -> DeploymentQuote:
        fee_data = await client.get_fee_data()
        balance = await client.get_balance(credential.address)
        cost = outcome.gas_estimate * fee_data.fee_per_gas
        return DeploymentQuote(
            contract_name=artifact.name,
            network=endpoint.record_key,
            deployer_address=credential.address,
            gas_limit=outcome.gas_estimate,
            fee_per_gas=fee_data.fee_per_gas,
            estimated_cost=cost,
            balance=balance,
            formatted_cost=endpoint.format_amount(cost),
            fee_data=fee_data,
            arguments=tuple(arguments),
        )

