"""Network catalogue and runtime settings.

The selected :class:`NetworkEndpoint` is passed explicitly to every
component; nothing in the package keeps a "current network" global.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from somnia_deployer.constants import (
    DEFAULT_CONFIRMATIONS,
    ESTIMATE_TIMEOUT_SECONDS,
    RECEIPT_POLL_INTERVAL_SECONDS,
    RECEIPT_TIMEOUT_SECONDS,
    RPC_RETRY_ATTEMPTS,
    RPC_RETRY_BASE_DELAY_MS,
    RPC_TIMEOUT_SECONDS,
    SIMULATE_TIMEOUT_SECONDS,
)

__all__ = [
    "Network",
    "NetworkEndpoint",
    "NETWORKS",
    "get_network_config",
    "DeployerSettings",
]


class Network(str, Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"
    LOCAL = "local"


@dataclass(frozen=True)
class NetworkEndpoint:
    name: str
    chain_id: int
    rpc_url: str
    native_currency_symbol: str
    native_currency_decimals: int
    block_explorer_base_url: str
    key: str = ""
    """Short identifier used in record file names (e.g. ``testnet``)."""

    @property
    def record_key(self) -> str:
        return self.key or self.name

    def format_amount(self, wei: int) -> str:
        """Render a base-unit amount in the native currency, e.g. ``0.0021 STT``."""
        value = Decimal(wei) / (Decimal(10) ** self.native_currency_decimals)
        text = format(value.normalize(), "f") if value else "0"
        return f"{text} {self.native_currency_symbol}"

    def explorer_address_url(self, address: str) -> Optional[str]:
        if not self.block_explorer_base_url:
            return None
        return f"{self.block_explorer_base_url.rstrip('/')}/address/{address}"

    def explorer_tx_url(self, tx_hash: str) -> Optional[str]:
        if not self.block_explorer_base_url:
            return None
        return f"{self.block_explorer_base_url.rstrip('/')}/tx/{tx_hash}"


NETWORKS: dict[Network, NetworkEndpoint] = {
    Network.TESTNET: NetworkEndpoint(
        name="Somnia Testnet",
        chain_id=50312,
        rpc_url="https://dream-rpc.somnia.network",
        native_currency_symbol="STT",
        native_currency_decimals=18,
        block_explorer_base_url="https://shannon-explorer.somnia.network",
        key=Network.TESTNET.value,
    ),
    Network.MAINNET: NetworkEndpoint(
        name="Somnia Mainnet",
        chain_id=2648,
        rpc_url="https://rpc.somnia.network",
        native_currency_symbol="SOM",
        native_currency_decimals=18,
        block_explorer_base_url="https://somnia.blockscout.com",
        key=Network.MAINNET.value,
    ),
    Network.LOCAL: NetworkEndpoint(
        name="Local Somnia",
        chain_id=31337,
        rpc_url="http://localhost:8545",
        native_currency_symbol="ETH",
        native_currency_decimals=18,
        block_explorer_base_url="",
        key=Network.LOCAL.value,
    ),
}


def get_network_config(
    network: Union[Network, str], rpc_url: Optional[str] = None
) -> NetworkEndpoint:
    cfg = NETWORKS[Network(network)]
    if rpc_url:
        return replace(cfg, rpc_url=rpc_url)
    return cfg


class DeployerSettings(BaseModel):
    """
    Runtime settings for one deployment session.

    Example:
        ```python
        settings = DeployerSettings.from_env()
        endpoint = get_network_config(settings.network, settings.rpc_url)
        ```
    """

    model_config = ConfigDict(frozen=True)

    network: Network = Field(
        default=Network.TESTNET,
        description="Network to deploy to",
    )
    rpc_url: Optional[str] = Field(
        default=None,
        description="Override for the network's default RPC URL",
    )
    project_dir: Path = Field(
        default_factory=Path.cwd,
        description="Directory holding .somnia/ (credential and deployment records)",
    )
    rpc_timeout: float = Field(default=RPC_TIMEOUT_SECONDS, gt=0)
    estimate_timeout: float = Field(default=ESTIMATE_TIMEOUT_SECONDS, gt=0)
    simulate_timeout: float = Field(default=SIMULATE_TIMEOUT_SECONDS, gt=0)
    receipt_timeout: float = Field(default=RECEIPT_TIMEOUT_SECONDS, gt=0)
    poll_interval: float = Field(default=RECEIPT_POLL_INTERVAL_SECONDS, gt=0)
    confirmations: int = Field(default=DEFAULT_CONFIRMATIONS, ge=1)
    retry_attempts: int = Field(default=RPC_RETRY_ATTEMPTS, ge=1)
    retry_base_delay_ms: int = Field(default=RPC_RETRY_BASE_DELAY_MS, ge=0)

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "DeployerSettings":
        """
        Build settings from ``SOMNIA_*`` environment variables.

        A ``.env`` file is loaded first (without overriding variables that
        are already set).
        """
        load_dotenv(env_file)
        mapping = {
            "network": "SOMNIA_NETWORK",
            "rpc_url": "SOMNIA_RPC_URL",
            "project_dir": "SOMNIA_PROJECT_DIR",
            "rpc_timeout": "SOMNIA_RPC_TIMEOUT",
            "estimate_timeout": "SOMNIA_ESTIMATE_TIMEOUT",
            "simulate_timeout": "SOMNIA_SIMULATE_TIMEOUT",
            "receipt_timeout": "SOMNIA_RECEIPT_TIMEOUT",
            "poll_interval": "SOMNIA_POLL_INTERVAL",
            "confirmations": "SOMNIA_CONFIRMATIONS",
            "retry_attempts": "SOMNIA_RETRY_ATTEMPTS",
            "retry_base_delay_ms": "SOMNIA_RETRY_BASE_DELAY_MS",
        }
        values = {
            field: os.environ[var]
            for field, var in mapping.items()
            if os.environ.get(var)
        }
        return cls.model_validate(values)

    def endpoint(self) -> NetworkEndpoint:
        return get_network_config(self.network, self.rpc_url)
