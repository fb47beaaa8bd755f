"""
Shared fixtures: a scriptable JSON-RPC node behind httpx.MockTransport,
fast settings, a throwaway credential and a token-shaped artifact.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from eth_abi import encode
from eth_account import Account

from somnia_deployer.compiler import CompiledArtifact
from somnia_deployer.config import DeployerSettings, get_network_config
from somnia_deployer.credentials import CredentialManager, EncryptionScheme
from somnia_deployer.network import NetworkClient, RpcTransport
from somnia_deployer.utils.retry import RetryConfig


# =============================================================================
# Test Constants
# =============================================================================

TEST_PRIVATE_KEY = "0x" + "4c0883a69102937d6231471b5dbb6204fe512961708279f0e0c3d1d3b1f7a4e2"
TEST_ADDRESS = Account.from_key(TEST_PRIVATE_KEY).address
TEST_PASSPHRASE = "correct horse battery"

TEST_RPC_URL = "http://fake-node.test"
TEST_TX_HASH = "0x" + "ab" * 32
TEST_CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"

ONE_GWEI = 10**9
ONE_ETHER = 10**18
DEFAULT_GAS = 100_000
DEFAULT_GAS_PRICE = 10 * ONE_GWEI

# Minimal creation code; only its presence and size matter to the pipeline
TOKEN_BYTECODE = "0x6080604052348015600f57600080fd5b50603f80601d6000396000f3fe"

TOKEN_ABI: List[Dict[str, Any]] = [
    {
        "type": "constructor",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "name", "type": "string"},
            {"name": "symbol", "type": "string"},
            {"name": "decimals", "type": "uint8"},
            {"name": "initialSupply", "type": "uint256"},
        ],
    },
    {
        "type": "function",
        "name": "totalSupply",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


def revert_data(reason: str) -> str:
    """ABI-encode ``Error(string)`` revert data."""
    return "0x08c379a0" + encode(["string"], [reason]).hex()


# =============================================================================
# Fake JSON-RPC node
# =============================================================================


class RpcFailure:
    """Scripted JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Optional[str] = None) -> None:
        self.code = code
        self.message = message
        self.data = data

    def to_json(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


Responder = Callable[[List[Any]], Any]


class FakeNode:
    """
    In-memory JSON-RPC node.

    Each method answers from ``responses``: a plain value, an ``RpcFailure``,
    an ``httpx.Response`` (for HTTP-level failures), an exception instance
    (raised by the transport), or a callable taking the params and
    returning any of those.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, List[Any]]] = []
        self.sent: List[str] = []
        self.receipt: Dict[str, Any] = {
            "transactionHash": TEST_TX_HASH,
            "blockNumber": hex(16),
            "status": "0x1",
            "gasUsed": hex(90_000),
            "effectiveGasPrice": hex(DEFAULT_GAS_PRICE),
            "contractAddress": TEST_CONTRACT_ADDRESS,
            "from": TEST_ADDRESS,
            "logs": [],
        }
        self.responses: Dict[str, Any] = {
            "eth_chainId": hex(50312),
            "eth_blockNumber": hex(16),
            "eth_getBalance": hex(ONE_ETHER),
            "eth_getTransactionCount": "0x0",
            "eth_getCode": "0x",
            "eth_gasPrice": hex(DEFAULT_GAS_PRICE),
            "eth_getBlockByNumber": {"number": hex(16)},
            "eth_maxPriorityFeePerGas": hex(ONE_GWEI),
            "eth_estimateGas": hex(DEFAULT_GAS),
            "eth_call": "0x6080",
            "eth_sendRawTransaction": self._accept,
            "eth_getTransactionReceipt": lambda params: self.receipt,
        }

    def _accept(self, params: List[Any]) -> str:
        self.sent.append(params[0])
        return TEST_TX_HASH

    def respond(self, method: str, outcome: Any) -> None:
        self.responses[method] = outcome

    def sequence(self, method: str, *outcomes: Any) -> None:
        """Answer successive calls with ``outcomes``; the last one repeats."""
        remaining = list(outcomes)

        def responder(params: List[Any]) -> Any:
            return remaining.pop(0) if len(remaining) > 1 else remaining[0]

        self.responses[method] = responder

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def params(self, method: str) -> List[List[Any]]:
        return [params for name, params in self.calls if name == method]

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method, params = body["method"], body.get("params", [])
        self.calls.append((method, params))

        outcome = self.responses.get(method, RpcFailure(-32601, f"method {method} not found"))
        if callable(outcome) and not isinstance(outcome, (RpcFailure, httpx.Response)):
            outcome = outcome(params)

        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, httpx.Response):
            return outcome
        if isinstance(outcome, RpcFailure):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": outcome.to_json()})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": outcome})


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def endpoint():
    return get_network_config("testnet", rpc_url=TEST_RPC_URL)


@pytest.fixture
def settings(tmp_path) -> DeployerSettings:
    return DeployerSettings(
        project_dir=tmp_path,
        rpc_url=TEST_RPC_URL,
        receipt_timeout=0.3,
        poll_interval=0.01,
        estimate_timeout=2,
        simulate_timeout=2,
        retry_base_delay_ms=0,
    )


@pytest.fixture
def fast_retry() -> RetryConfig:
    return RetryConfig(max_attempts=3, base_delay_ms=0)


@pytest.fixture
def make_client(node, settings, fast_retry):
    """Factory building NetworkClients wired to the fake node."""

    def factory(endpoint) -> NetworkClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(node.handle))
        transport = RpcTransport(endpoint.rpc_url, client=http)
        return NetworkClient(endpoint, transport=transport, settings=settings, retry_config=fast_retry)

    return factory


@pytest.fixture
def client(make_client, endpoint) -> NetworkClient:
    return make_client(endpoint)


@pytest.fixture
def manager() -> CredentialManager:
    # pbkdf2 with a tiny work factor keeps keystore tests fast
    return CredentialManager(kdf="pbkdf2", kdf_iterations=2)


@pytest.fixture
def credential(manager):
    return manager.import_private_key(TEST_PRIVATE_KEY, TEST_PASSPHRASE, network="testnet")


@pytest.fixture
def aes_credential(manager):
    return manager.import_private_key(
        TEST_PRIVATE_KEY,
        TEST_PASSPHRASE,
        network="testnet",
        scheme=EncryptionScheme.AES_PASSPHRASE,
    )


@pytest.fixture
def token_artifact() -> CompiledArtifact:
    return CompiledArtifact(
        name="MyToken",
        bytecode=TOKEN_BYTECODE,
        abi=TOKEN_ABI,
        source_path="contracts/MyToken.sol",
    )
