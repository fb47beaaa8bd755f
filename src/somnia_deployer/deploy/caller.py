"""Function calls on deployed contracts.

View and pure functions are answered with ``eth_call`` and decoded
against the function's outputs. Anything else is a transaction and takes
the same road as a deployment: simulate, quote, confirm, then sign and
submit under the account lock and wait for the receipt. Calls never
write deployment records.

The interface can be passed in; otherwise it is looked up in the
deployment records by address, falling back to a minimal token
interface.

Example:
    >>> caller = ContractCaller(orchestrator)
    >>> supply = await caller.read(token_address, "totalSupply", endpoint=endpoint)
    >>> result = await caller.transact(
    ...     token_address, "transfer", [recipient, 10**18],
    ...     credential=credential, passphrase=passphrase, endpoint=endpoint,
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from eth_utils import is_address, to_checksum_address, to_hex

from somnia_deployer.config import NetworkEndpoint
from somnia_deployer.credentials.manager import Credential
from somnia_deployer.deploy.encoding import (
    decode_function_result,
    encode_function_call,
    function_signature,
)
from somnia_deployer.deploy.orchestrator import (
    DeploymentOrchestrator,
    auto_approve,
    build_transaction,
    confirm_quote,
)
from somnia_deployer.deploy.simulator import SimulationOutcome, SimulationStatus, Simulator
from somnia_deployer.errors import (
    ArgumentResolutionError,
    ConfirmationTimeout,
    ContractCallError,
    DeployerError,
    DeploymentCancelled,
    InsufficientFunds,
    RpcRevert,
    SimulationRevert,
    TransactionReverted,
)
from somnia_deployer.network.revert import UNKNOWN_REASON, extract_revert_reason
from somnia_deployer.network.types import CallRequest, FeeData, TransactionReceipt
from somnia_deployer.utils.logging import LogContext, get_logger

_logger = get_logger(__name__)

AbiSource = Union[Sequence[Mapping[str, Any]], Mapping[str, Any]]


def _view(name: str, output: str) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [],
        "outputs": [{"name": "", "type": output}],
        "stateMutability": "view",
    }


BASIC_TOKEN_ABI: List[Dict[str, Any]] = [
    _view("name", "string"),
    _view("symbol", "string"),
    _view("decimals", "uint8"),
    _view("totalSupply", "uint256"),
    {
        "type": "function",
        "name": "balanceOf",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
]


def abi_entries(abi: AbiSource) -> List[Mapping[str, Any]]:
    """Accept a bare ABI list or a Hardhat artifact with an ``abi`` key."""
    if isinstance(abi, Mapping):
        abi = abi.get("abi") or []
    return [entry for entry in abi if isinstance(entry, Mapping)]


def is_read_only(function: Mapping[str, Any]) -> bool:
    mutability = function.get("stateMutability")
    if mutability is None:
        return bool(function.get("constant"))
    return mutability in ("view", "pure")


def is_payable(function: Mapping[str, Any]) -> bool:
    return function.get("stateMutability") == "payable" or bool(function.get("payable"))


def find_function(
    abi: AbiSource,
    name: str,
    arg_count: Optional[int] = None,
) -> Mapping[str, Any]:
    """
    Look up a function by name, or by full signature for overloads.

    Args:
        abi: Interface to search
        name: ``transfer`` or ``transfer(address,uint256)``
        arg_count: Narrows overloaded names to the one taking this many inputs

    Raises:
        ContractCallError: no match, or an overload that stays ambiguous
    """
    functions = [e for e in abi_entries(abi) if e.get("type", "function") == "function" and e.get("name")]
    available = [function_signature(f) for f in functions]

    if "(" in name:
        candidates = [f for f in functions if function_signature(f) == name.replace(" ", "")]
    else:
        candidates = [f for f in functions if f["name"] == name]
        if len(candidates) > 1 and arg_count is not None:
            candidates = [f for f in candidates if len(f.get("inputs") or []) == arg_count]

    if not candidates:
        raise ContractCallError(
            f"Function '{name}' not found in contract interface",
            function=name,
            available=available,
        )
    if len(candidates) > 1:
        raise ContractCallError(
            f"Function '{name}' is overloaded; use the full signature",
            function=name,
            available=[function_signature(f) for f in candidates],
        )
    return candidates[0]


@dataclass(frozen=True)
class CallQuote:
    """Cost of a state-changing call, shown to the confirmation policy."""

    contract_address: str
    function: str
    network: str
    sender: str
    gas_limit: int
    fee_per_gas: int
    value: int
    estimated_cost: int
    balance: int
    formatted_cost: str
    fee_data: FeeData

    @property
    def affordable(self) -> bool:
        return self.balance >= self.estimated_cost


CallConfirmPolicy = Callable[[CallQuote], Union[bool, Awaitable[bool]]]


@dataclass
class CallResult:
    """Decoded outputs of a read, or the settled receipt of a transaction."""

    address: str
    function: str
    read_only: bool
    outputs: Tuple[Any, ...] = ()
    simulation: Optional[SimulationOutcome] = None
    quote: Optional[CallQuote] = None
    tx_hash: Optional[str] = None
    receipt: Optional[TransactionReceipt] = None

    @property
    def output(self) -> Any:
        """The single return value, or the tuple when there are several."""
        if len(self.outputs) == 1:
            return self.outputs[0]
        return self.outputs


class ContractCaller:
    """
    Reads from and transacts with deployed contracts.

    Shares the orchestrator's settings, credential manager, record store,
    network clients and per-account locks, so a call and a deployment from
    the same account never read the same pending nonce.
    """

    def __init__(self, orchestrator: Optional[DeploymentOrchestrator] = None) -> None:
        self.orchestrator = orchestrator or DeploymentOrchestrator()

    def resolve_abi(
        self,
        address: str,
        endpoint: NetworkEndpoint,
        abi: Optional[AbiSource] = None,
    ) -> List[Mapping[str, Any]]:
        """Given interface, else the recorded one for ``address``, else BASIC_TOKEN_ABI."""
        if abi is not None:
            return abi_entries(abi)
        record = self.orchestrator.records.find_by_address(address, endpoint.record_key)
        if record is not None and record.abi:
            _logger.debug(
                "Using recorded interface",
                extra={"address": address, "contract": record.contract_name},
            )
            return list(record.abi)
        _logger.warning(
            "No recorded interface for address, using basic token interface",
            extra={"address": address, "network": endpoint.record_key},
        )
        return list(BASIC_TOKEN_ABI)

    async def call(
        self,
        address: str,
        function: str,
        args: Optional[Sequence[Any]] = None,
        *,
        endpoint: NetworkEndpoint,
        abi: Optional[AbiSource] = None,
        credential: Optional[Credential] = None,
        passphrase: Optional[str] = None,
        value: int = 0,
        confirm: Optional[CallConfirmPolicy] = None,
    ) -> CallResult:
        """Read or transact depending on the function's state mutability.

        Raises:
            ContractCallError: unknown function, or a state-changing call
                without a credential and passphrase
        """
        address = _checked_address(address)
        args = list(args or [])
        entries = self.resolve_abi(address, endpoint, abi)
        target = find_function(entries, function, len(args))

        if is_read_only(target):
            sender = credential.address if credential is not None else None
            return await self._read(address, target, args, endpoint, sender)
        if credential is None or passphrase is None:
            raise ContractCallError(
                f"Function '{target['name']}' changes state and needs a credential",
                function=target["name"],
                address=address,
            )
        return await self._transact(
            address, target, args, endpoint, credential, passphrase, value, confirm or auto_approve
        )

    async def read(
        self,
        address: str,
        function: str,
        args: Optional[Sequence[Any]] = None,
        *,
        endpoint: NetworkEndpoint,
        abi: Optional[AbiSource] = None,
        sender: Optional[str] = None,
    ) -> Any:
        """Call a function with ``eth_call`` and return its decoded output.

        State-changing functions may be read too; the node runs them
        without persisting anything.
        """
        address = _checked_address(address)
        args = list(args or [])
        target = find_function(self.resolve_abi(address, endpoint, abi), function, len(args))
        result = await self._read(address, target, args, endpoint, sender)
        return result.output

    async def transact(
        self,
        address: str,
        function: str,
        args: Optional[Sequence[Any]] = None,
        *,
        credential: Credential,
        passphrase: str,
        endpoint: NetworkEndpoint,
        abi: Optional[AbiSource] = None,
        value: int = 0,
        confirm: Optional[CallConfirmPolicy] = None,
    ) -> CallResult:
        """Send a state-changing call and wait for its receipt.

        Raises:
            SimulationRevert: the dry-run failed; nothing was signed
            InsufficientFunds: balance below gas cost plus ``value``
            DeploymentCancelled: ``confirm`` declined the quote
            ConfirmationTimeout: submitted, but no receipt in time
            TransactionReverted: mined with a failed status
        """
        address = _checked_address(address)
        args = list(args or [])
        target = find_function(self.resolve_abi(address, endpoint, abi), function, len(args))
        return await self._transact(
            address, target, args, endpoint, credential, passphrase, value, confirm or auto_approve
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _read(
        self,
        address: str,
        function: Mapping[str, Any],
        args: Sequence[Any],
        endpoint: NetworkEndpoint,
        sender: Optional[str],
    ) -> CallResult:
        name = function["name"]
        data = encode_function_call(function, args)
        call = CallRequest(data=data, to=address, sender=sender)

        async with self.orchestrator.open_client(endpoint) as client:
            try:
                returned = await client.simulate_call(call)
            except RpcRevert as e:
                reason = extract_revert_reason(e) or UNKNOWN_REASON
                raise ContractCallError(
                    f"Call to '{name}' reverted: {reason}",
                    function=name,
                    address=address,
                    reason=reason,
                ) from None

        try:
            outputs = decode_function_result(function, returned)
        except ValueError as e:
            raise ContractCallError(
                f"Return data of '{name}' could not be decoded: {e}",
                function=name,
                address=address,
            ) from None
        _logger.debug("Contract read", extra={"address": address, "function": name})
        return CallResult(address=address, function=name, read_only=True, outputs=outputs)

    async def _transact(
        self,
        address: str,
        function: Mapping[str, Any],
        args: Sequence[Any],
        endpoint: NetworkEndpoint,
        credential: Credential,
        passphrase: str,
        value: int,
        confirm: CallConfirmPolicy,
    ) -> CallResult:
        name = function["name"]
        if value and not is_payable(function):
            raise ArgumentResolutionError(
                f"Function '{name}' is not payable but a value was given",
                parameter="value",
            )
        data = encode_function_call(function, args)
        call = CallRequest(data=data, to=address, sender=credential.address, value=value)
        result = CallResult(address=address, function=name, read_only=False)
        log = LogContext(
            _logger,
            {"address": address, "function": name, "network": endpoint.record_key, "sender": credential.address},
        )
        settings = self.orchestrator.settings

        async with self.orchestrator.open_client(endpoint) as client:
            outcome = await Simulator(client).simulate(call)
            result.simulation = outcome
            if not outcome.success:
                raise SimulationRevert(
                    outcome.revert_reason or UNKNOWN_REASON,
                    estimation_failed=outcome.status is SimulationStatus.ESTIMATION_FAILED,
                )

            fee_data = await client.get_fee_data()
            balance = await client.get_balance(credential.address)
            cost = outcome.gas_estimate * fee_data.fee_per_gas + value
            quote = CallQuote(
                contract_address=address,
                function=function_signature(function),
                network=endpoint.record_key,
                sender=credential.address,
                gas_limit=outcome.gas_estimate,
                fee_per_gas=fee_data.fee_per_gas,
                value=value,
                estimated_cost=cost,
                balance=balance,
                formatted_cost=endpoint.format_amount(cost),
                fee_data=fee_data,
            )
            result.quote = quote
            log.info("Call quoted", extra={"gas_limit": quote.gas_limit, "cost": quote.formatted_cost})
            if not quote.affordable:
                raise InsufficientFunds(
                    f"Insufficient funds: need {quote.formatted_cost}, have {endpoint.format_amount(balance)}",
                    balance=balance,
                    required=cost,
                    address=credential.address,
                )
            if not await confirm_quote(confirm, quote):
                raise DeploymentCancelled("Transaction cancelled by user")

            async with self.orchestrator.lock_for(credential.address):
                nonce = await client.get_nonce(credential.address)
                chain_id = await client.get_chain_id()
                transaction = build_transaction(
                    data,
                    gas_limit=quote.gas_limit,
                    fee_data=fee_data,
                    nonce=nonce,
                    chain_id=chain_id,
                    to=address,
                    value=value,
                )
                signed = self.orchestrator.credentials.sign_transaction(credential, passphrase, transaction)
                result.tx_hash = to_hex(signed.hash)
                try:
                    result.tx_hash = await client.send_signed_transaction(signed.raw_transaction)
                except DeployerError as e:
                    e.tx_hash = e.tx_hash or result.tx_hash
                    raise
            log.info("Call submitted", extra={"tx_hash": result.tx_hash, "nonce": nonce})

            receipt = await client.wait_for_receipt(
                result.tx_hash,
                settings.confirmations,
                settings.receipt_timeout,
                call=call,
            )

        if receipt is None:
            raise ConfirmationTimeout(result.tx_hash, settings.receipt_timeout)
        result.receipt = receipt
        if not receipt.succeeded:
            log.error("Call reverted", extra={"tx_hash": result.tx_hash, "reason": receipt.revert_reason})
            raise TransactionReverted(
                result.tx_hash,
                reason=receipt.revert_reason or UNKNOWN_REASON,
                gas_used=receipt.gas_used,
                block_number=receipt.block_number,
            )
        log.info(
            "Call confirmed",
            extra={"tx_hash": result.tx_hash, "block": receipt.block_number, "gas_used": receipt.gas_used},
        )
        return result


def _checked_address(address: str) -> str:
    if not isinstance(address, str) or not is_address(address):
        raise ContractCallError(f"Not a contract address: {address!r}", address=str(address))
    return to_checksum_address(address)
