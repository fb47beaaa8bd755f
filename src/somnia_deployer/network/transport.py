"""
JSON-RPC transport: a web3 async provider that posts over httpx.

Request framing and response decoding come from web3's
``AsyncJSONBaseProvider``, so the transport also plugs straight into
``AsyncWeb3``. Every failure is mapped into the deployer error taxonomy;
NetworkTransient is the only retryable outcome.
"""

from __future__ import annotations

from typing import Any, List, Optional

import httpx
from web3.providers.async_base import AsyncJSONBaseProvider
from web3.types import RPCEndpoint, RPCResponse

from somnia_deployer.constants import RPC_TIMEOUT_SECONDS
from somnia_deployer.errors import (
    InsufficientFunds,
    NetworkTransient,
    RpcError,
    RpcRevert,
)
from somnia_deployer.utils.logging import get_logger

_logger = get_logger(__name__)

# JSON-RPC error codes that indicate the node is shedding load
_RATE_LIMIT_CODES = frozenset({-32005, 429})

# EVM execution error (geth and most clients report reverts with code 3)
_REVERT_CODE = 3

_JSON_HEADERS = {"Content-Type": "application/json"}


class RpcTransport(AsyncJSONBaseProvider):
    """
    Async JSON-RPC 2.0 provider bound to a single endpoint.

    ``make_request`` returns the raw JSON-RPC response like any web3
    provider; ``request`` unwraps ``result`` and raises deployer errors.

    Example:
        ```python
        transport = RpcTransport("https://dream-rpc.somnia.network")
        block = await transport.request("eth_blockNumber", [])
        await transport.aclose()
        ```
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = RPC_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__()
        self.endpoint_uri = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    def __str__(self) -> str:
        return f"RPC connection {self.endpoint_uri}"

    @property
    def url(self) -> str:
        return self.endpoint_uri

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def is_connected(self, show_traceback: bool = False) -> bool:
        try:
            await self.request("web3_clientVersion", [])
        except (NetworkTransient, RpcError) as e:
            if show_traceback:
                raise
            _logger.debug("Endpoint not reachable", extra={"endpoint": self.endpoint_uri, "error": str(e)})
            return False
        return True

    async def make_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        """
        POST one encoded request and return the decoded JSON-RPC response.

        Raises:
            NetworkTransient: transport failure or HTTP 429/5xx
            RpcError: other HTTP status or a body that is not JSON
        """
        _logger.debug("RPC request", extra={"method": method, "endpoint": self.endpoint_uri})
        try:
            response = await self._client.post(
                self.endpoint_uri,
                content=self.encode_rpc_request(method, params),
                headers=_JSON_HEADERS,
            )
        except httpx.TransportError as e:
            raise NetworkTransient(
                f"{method} transport failure: {e.__class__.__name__}",
                method=method,
                endpoint=self.endpoint_uri,
            ) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise NetworkTransient(
                f"{method} failed: HTTP {response.status_code}",
                method=method,
                endpoint=self.endpoint_uri,
            )
        if response.status_code != 200:
            raise RpcError(f"{method} failed: HTTP {response.status_code}", method=method)

        try:
            return self.decode_rpc_response(response.content)
        except ValueError as e:
            raise RpcError(f"{method} returned a non-JSON response", method=method) from e

    async def request(self, method: str, params: List[Any]) -> Any:
        """
        Issue one JSON-RPC call and return its ``result``.

        Raises:
            NetworkTransient: transport failure, HTTP 429/5xx, rate limiting
            InsufficientFunds: node rejected the call for lack of funds
            RpcRevert: the call reverted during execution
            RpcError: any other error or a malformed response
        """
        body = await self.make_request(RPCEndpoint(method), params)

        if not isinstance(body, dict):
            raise RpcError(f"{method} returned a malformed response", method=method)

        error = body.get("error")
        if error is not None:
            raise self._classify_error(method, error)

        if "result" not in body:
            raise RpcError(f"{method} response has no result", method=method)
        return body["result"]

    def _classify_error(self, method: str, error: Any) -> Exception:
        if not isinstance(error, dict):
            return RpcError(f"{method} failed: {error}", method=method)

        code = error.get("code")
        message = str(error.get("message") or "unknown RPC error")
        data = error.get("data")
        if isinstance(data, dict):
            data = data.get("data")
        if not isinstance(data, str):
            data = None
        lowered = message.lower()

        if code in _RATE_LIMIT_CODES or "rate limit" in lowered:
            return NetworkTransient(f"{method} rate limited: {message}", method=method, endpoint=self.endpoint_uri)
        if "insufficient funds" in lowered:
            return InsufficientFunds(message)
        if code == _REVERT_CODE or "revert" in lowered:
            return RpcRevert(message, method=method, rpc_code=code, data=data)
        return RpcError(message, method=method, rpc_code=code, data=data)
