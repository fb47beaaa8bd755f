"""
Tests for ContractCaller: interface lookup, read-only calls and
state-changing calls against the fake node.
"""

import asyncio

import httpx
import pytest
from eth_abi import encode
from eth_account import Account
from eth_utils import keccak, to_hex

from somnia_deployer.deploy import (
    BASIC_TOKEN_ABI,
    ContractCaller,
    DeploymentOrchestrator,
    DeploymentRecord,
    DeploymentRecordStore,
    find_function,
)
from somnia_deployer.errors import (
    ArgumentResolutionError,
    ConfirmationTimeout,
    ContractCallError,
    DeploymentCancelled,
    InsufficientFunds,
    NetworkTransient,
    SimulationRevert,
    TransactionReverted,
)

from ..conftest import (
    DEFAULT_GAS_PRICE,
    ONE_ETHER,
    TEST_ADDRESS,
    TEST_CONTRACT_ADDRESS,
    TEST_PASSPHRASE,
    TEST_TX_HASH,
    TOKEN_ABI,
    TOKEN_BYTECODE,
    RpcFailure,
    revert_data,
)

RECIPIENT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

CALL_ABI = TOKEN_ABI + [
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "getReserves",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "reserve0", "type": "uint112"}, {"name": "reserve1", "type": "uint112"}],
    },
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "deposit",
        "stateMutability": "payable",
        "inputs": [],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "mint",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "mint",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [],
    },
]

# transfer(address,uint256)
TRANSFER_SELECTOR = "0xa9059cbb"
GAS_COST = 110_000 * DEFAULT_GAS_PRICE


def returns(types, values) -> str:
    return "0x" + encode(types, values).hex()


@pytest.fixture
def orchestrator(settings, manager, make_client) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(settings=settings, credential_manager=manager, client_factory=make_client)


@pytest.fixture
def caller(orchestrator) -> ContractCaller:
    return ContractCaller(orchestrator)


@pytest.fixture
def records(settings) -> DeploymentRecordStore:
    return DeploymentRecordStore(settings.project_dir)


# =============================================================================
# Function lookup
# =============================================================================


class TestFindFunction:
    def test_by_name(self) -> None:
        assert find_function(CALL_ABI, "transfer")["name"] == "transfer"

    def test_accepts_artifact_mapping(self) -> None:
        artifact = {"contractName": "MyToken", "abi": CALL_ABI}

        assert find_function(artifact, "balanceOf")["inputs"][0]["type"] == "address"

    def test_overload_by_signature(self) -> None:
        function = find_function(CALL_ABI, "mint(address, uint256)")

        assert len(function["inputs"]) == 2

    def test_overload_narrowed_by_argument_count(self) -> None:
        assert len(find_function(CALL_ABI, "mint", arg_count=1)["inputs"]) == 1

    def test_ambiguous_overload(self) -> None:
        with pytest.raises(ContractCallError, match="overloaded") as exc_info:
            find_function(CALL_ABI, "mint")

        assert exc_info.value.available == ["mint(address)", "mint(address,uint256)"]

    def test_unknown_function_lists_available(self) -> None:
        with pytest.raises(ContractCallError, match="'burn' not found") as exc_info:
            find_function(CALL_ABI, "burn")

        assert "transfer(address,uint256)" in exc_info.value.available
        assert exc_info.value.kind == "CONTRACT_CALL_ERROR"

    def test_constructor_is_not_callable(self) -> None:
        with pytest.raises(ContractCallError):
            find_function(TOKEN_ABI, "constructor")


# =============================================================================
# Read-only calls
# =============================================================================


class TestRead:
    @pytest.mark.asyncio
    async def test_view_function_uses_eth_call(self, caller, node, endpoint) -> None:
        node.respond("eth_call", returns(["uint256"], [1_000_000]))

        supply = await caller.read(TEST_CONTRACT_ADDRESS, "totalSupply", endpoint=endpoint, abi=CALL_ABI)

        assert supply == 1_000_000
        call_params = node.params("eth_call")[0][0]
        assert call_params["to"] == TEST_CONTRACT_ADDRESS
        assert call_params["data"] == "0x18160ddd"
        assert node.sent == []

    @pytest.mark.asyncio
    async def test_arguments_are_coerced_and_encoded(self, caller, node, endpoint) -> None:
        node.respond("eth_call", returns(["uint256"], [5 * ONE_ETHER]))

        balance = await caller.read(
            TEST_CONTRACT_ADDRESS, "balanceOf", [TEST_ADDRESS.lower()], endpoint=endpoint, abi=CALL_ABI
        )

        assert balance == 5 * ONE_ETHER
        data = node.params("eth_call")[0][0]["data"]
        assert data == "0x70a08231" + encode(["address"], [TEST_ADDRESS]).hex()

    @pytest.mark.asyncio
    async def test_multiple_outputs(self, caller, node, endpoint) -> None:
        node.respond("eth_call", returns(["uint112", "uint112"], [7, 9]))

        result = await caller.call(TEST_CONTRACT_ADDRESS, "getReserves", endpoint=endpoint, abi=CALL_ABI)

        assert result.read_only
        assert result.outputs == (7, 9)
        assert result.output == (7, 9)
        assert result.tx_hash is None

    @pytest.mark.asyncio
    async def test_read_revert(self, caller, node, endpoint) -> None:
        node.respond("eth_call", RpcFailure(3, "execution reverted", revert_data("Pausable: paused")))

        with pytest.raises(ContractCallError, match="Pausable: paused") as exc_info:
            await caller.read(TEST_CONTRACT_ADDRESS, "totalSupply", endpoint=endpoint, abi=CALL_ABI)

        assert exc_info.value.reason == "Pausable: paused"
        assert exc_info.value.function == "totalSupply"

    @pytest.mark.asyncio
    async def test_empty_return_data_is_not_decodable(self, caller, node, endpoint) -> None:
        node.respond("eth_call", "0x")

        with pytest.raises(ContractCallError, match="could not be decoded"):
            await caller.read(TEST_CONTRACT_ADDRESS, "totalSupply", endpoint=endpoint, abi=CALL_ABI)

    @pytest.mark.asyncio
    async def test_wrong_argument_count(self, caller, endpoint) -> None:
        with pytest.raises(ArgumentResolutionError, match="Expected 1 balanceOf arguments, got 0"):
            await caller.read(TEST_CONTRACT_ADDRESS, "balanceOf", endpoint=endpoint, abi=CALL_ABI)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", ["0x1234", "not-an-address", ""])
    async def test_invalid_address(self, caller, node, endpoint, address) -> None:
        with pytest.raises(ContractCallError, match="Not a contract address"):
            await caller.read(address, "totalSupply", endpoint=endpoint, abi=CALL_ABI)
        assert node.calls == []


# =============================================================================
# Interface lookup
# =============================================================================


class TestInterfaceLookup:
    @pytest.mark.asyncio
    async def test_recorded_interface_used_for_address(self, caller, records, node, endpoint) -> None:
        records.save(
            DeploymentRecord(
                contract_name="MyToken",
                address=TEST_CONTRACT_ADDRESS,
                transaction_hash=TEST_TX_HASH,
                block_number=16,
                gas_used=90_000,
                cost=GAS_COST,
                network="testnet",
                deployer_address=TEST_ADDRESS,
                abi=CALL_ABI,
                bytecode=TOKEN_BYTECODE,
            )
        )
        node.respond("eth_call", returns(["uint112", "uint112"], [1, 2]))

        reserves = await caller.read(TEST_CONTRACT_ADDRESS.lower(), "getReserves", endpoint=endpoint)

        assert reserves == (1, 2)

    @pytest.mark.asyncio
    async def test_falls_back_to_basic_token_interface(self, caller, node, endpoint) -> None:
        node.respond("eth_call", returns(["string"], ["MYTOK"]))

        assert await caller.read(TEST_CONTRACT_ADDRESS, "symbol", endpoint=endpoint) == "MYTOK"

    def test_record_on_other_network_is_ignored(self, caller, records, endpoint) -> None:
        records.save(
            DeploymentRecord(
                contract_name="MyToken",
                address=TEST_CONTRACT_ADDRESS,
                transaction_hash=TEST_TX_HASH,
                block_number=16,
                gas_used=90_000,
                cost=GAS_COST,
                network="mainnet",
                deployer_address=TEST_ADDRESS,
                abi=CALL_ABI,
                bytecode=TOKEN_BYTECODE,
            )
        )

        assert caller.resolve_abi(TEST_CONTRACT_ADDRESS, endpoint) == BASIC_TOKEN_ABI


# =============================================================================
# State-changing calls
# =============================================================================


class TestTransact:
    @pytest.mark.asyncio
    async def test_transfer_signed_submitted_and_settled(
        self, caller, records, node, credential, endpoint
    ) -> None:
        quotes = []

        def confirm(quote):
            quotes.append(quote)
            return True

        result = await caller.transact(
            TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, "1000"],
            credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint,
            abi=CALL_ABI, confirm=confirm,
        )

        assert not result.read_only
        assert result.tx_hash == TEST_TX_HASH
        assert result.receipt.succeeded
        assert result.simulation.success
        assert quotes == [result.quote]
        assert result.quote.function == "transfer(address,uint256)"
        assert result.quote.estimated_cost == GAS_COST
        assert result.quote.value == 0

        estimate = node.params("eth_estimateGas")[0][0]
        assert estimate["to"] == TEST_CONTRACT_ADDRESS
        assert estimate["from"] == TEST_ADDRESS
        assert estimate["data"].startswith(TRANSFER_SELECTOR)
        assert len(node.sent) == 1
        assert Account.recover_transaction(node.sent[0]) == TEST_ADDRESS
        assert records.list() == []

    @pytest.mark.asyncio
    async def test_call_dispatches_on_mutability(self, caller, node, credential, endpoint) -> None:
        result = await caller.call(
            TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, 1],
            endpoint=endpoint, abi=CALL_ABI, credential=credential, passphrase=TEST_PASSPHRASE,
        )

        assert not result.read_only
        assert len(node.sent) == 1

    @pytest.mark.asyncio
    async def test_state_change_without_credential(self, caller, node, endpoint) -> None:
        with pytest.raises(ContractCallError, match="needs a credential"):
            await caller.call(TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, 1], endpoint=endpoint, abi=CALL_ABI)
        assert node.calls == []

    @pytest.mark.asyncio
    async def test_payable_value_is_quoted_and_sent(self, caller, node, credential, endpoint) -> None:
        value = ONE_ETHER // 10

        result = await caller.transact(
            TEST_CONTRACT_ADDRESS, "deposit",
            credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint,
            abi=CALL_ABI, value=value,
        )

        assert result.quote.estimated_cost == GAS_COST + value
        assert node.params("eth_call")[0][0]["value"] == hex(value)
        assert len(node.sent) == 1

    @pytest.mark.asyncio
    async def test_value_on_non_payable_function(self, caller, node, credential, endpoint) -> None:
        with pytest.raises(ArgumentResolutionError, match="not payable"):
            await caller.transact(
                TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, 1],
                credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint,
                abi=CALL_ABI, value=1,
            )
        assert node.calls == []

    @pytest.mark.asyncio
    async def test_simulation_revert_sends_nothing(self, caller, node, credential, endpoint) -> None:
        node.respond("eth_call", RpcFailure(3, "execution reverted", revert_data("ERC20: insufficient balance")))

        with pytest.raises(SimulationRevert) as exc_info:
            await caller.transact(
                TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, 1],
                credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint, abi=CALL_ABI,
            )

        assert exc_info.value.reason == "ERC20: insufficient balance"
        assert node.sent == []

    @pytest.mark.asyncio
    async def test_insufficient_funds_counts_value(self, caller, node, credential, endpoint) -> None:
        value = ONE_ETHER // 10
        node.respond("eth_getBalance", hex(GAS_COST + value - 1))

        with pytest.raises(InsufficientFunds) as exc_info:
            await caller.transact(
                TEST_CONTRACT_ADDRESS, "deposit",
                credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint,
                abi=CALL_ABI, value=value,
            )

        assert exc_info.value.required == GAS_COST + value
        assert node.sent == []

    @pytest.mark.asyncio
    async def test_declined_quote(self, caller, node, credential, endpoint) -> None:
        with pytest.raises(DeploymentCancelled):
            await caller.transact(
                TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, 1],
                credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint,
                abi=CALL_ABI, confirm=lambda quote: False,
            )
        assert node.sent == []

    @pytest.mark.asyncio
    async def test_reverted_receipt(self, caller, node, credential, endpoint) -> None:
        node.receipt.update(status="0x0", contractAddress=None)
        node.sequence(
            "eth_call",
            returns(["bool"], [True]),
            RpcFailure(3, "execution reverted", revert_data("Ownable: caller is not the owner")),
        )

        with pytest.raises(TransactionReverted) as exc_info:
            await caller.transact(
                TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, 1],
                credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint, abi=CALL_ABI,
            )

        assert exc_info.value.reason == "Ownable: caller is not the owner"
        assert exc_info.value.tx_hash == TEST_TX_HASH

    @pytest.mark.asyncio
    async def test_confirmation_timeout(self, caller, node, credential, endpoint) -> None:
        node.respond("eth_getTransactionReceipt", None)

        with pytest.raises(ConfirmationTimeout) as exc_info:
            await caller.transact(
                TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, 1],
                credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint, abi=CALL_ABI,
            )

        assert exc_info.value.tx_hash == TEST_TX_HASH

    @pytest.mark.asyncio
    async def test_lost_send_response_carries_signed_hash(self, caller, node, credential, endpoint) -> None:
        def lost(params):
            node.sent.append(params[0])
            return httpx.ReadTimeout("response lost")

        node.respond("eth_sendRawTransaction", lost)

        with pytest.raises(NetworkTransient) as exc_info:
            await caller.transact(
                TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, 1],
                credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint, abi=CALL_ABI,
            )

        assert node.count("eth_sendRawTransaction") == 1
        assert exc_info.value.tx_hash == to_hex(keccak(hexstr=node.sent[0]))

    @pytest.mark.asyncio
    async def test_shares_account_lock_with_deployments(
        self, orchestrator, caller, node, credential, endpoint, token_artifact
    ) -> None:
        issued = []

        def next_nonce(params):
            issued.append(len(node.sent))
            return hex(len(node.sent))

        node.respond("eth_getTransactionCount", next_nonce)

        deployed, called = await asyncio.gather(
            orchestrator.deploy(token_artifact, credential, TEST_PASSPHRASE, endpoint),
            caller.transact(
                TEST_CONTRACT_ADDRESS, "transfer", [RECIPIENT, 1],
                credential=credential, passphrase=TEST_PASSPHRASE, endpoint=endpoint, abi=CALL_ABI,
            ),
        )

        assert deployed.succeeded
        assert called.receipt.succeeded
        submission = [
            method for method, _ in node.calls
            if method in ("eth_getTransactionCount", "eth_chainId", "eth_sendRawTransaction")
        ]
        assert submission == ["eth_getTransactionCount", "eth_chainId", "eth_sendRawTransaction"] * 2
        assert issued == [0, 1]
