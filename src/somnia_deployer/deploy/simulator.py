"""
Gas estimation and dry-run simulation.

Classifies a prepared call as success, revert or estimation failure
without submitting anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from somnia_deployer.errors import NetworkTransient, RpcError, RpcRevert
from somnia_deployer.network.client import NetworkClient
from somnia_deployer.network.revert import UNKNOWN_REASON, extract_revert_reason
from somnia_deployer.network.types import CallRequest
from somnia_deployer.utils.logging import get_logger

_logger = get_logger(__name__)


class SimulationStatus(str, Enum):
    SUCCESS = "success"
    REVERT = "revert"
    ESTIMATION_FAILED = "estimation_failed"


@dataclass(frozen=True)
class SimulationOutcome:
    status: SimulationStatus
    gas_estimate: int = 0
    raw_gas_estimate: int = 0
    revert_reason: Optional[str] = None
    return_data: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is SimulationStatus.SUCCESS


class Simulator:
    """
    Dry-runs a call then estimates its gas.

    InsufficientFunds raised by the node is not an outcome of the call
    itself and propagates to the caller.
    """

    def __init__(self, client: NetworkClient) -> None:
        self._client = client

    async def simulate(self, call: CallRequest) -> SimulationOutcome:
        try:
            return_data = await self._client.simulate_call(call)
        except RpcRevert as e:
            return self._reverted(e)
        except (RpcError, NetworkTransient) as e:
            return self._estimation_failed(e)

        try:
            raw, estimate = await self._client.estimate_gas_detailed(call)
        except RpcRevert as e:
            return self._reverted(e)
        except (RpcError, NetworkTransient) as e:
            return self._estimation_failed(e)

        _logger.info(
            "Simulation succeeded",
            extra={"raw_gas": raw, "gas_estimate": estimate},
        )
        return SimulationOutcome(
            status=SimulationStatus.SUCCESS,
            gas_estimate=estimate,
            raw_gas_estimate=raw,
            return_data=return_data,
        )

    @staticmethod
    def _reverted(error: RpcRevert) -> SimulationOutcome:
        reason = extract_revert_reason(error) or UNKNOWN_REASON
        _logger.warning("Simulation reverted", extra={"reason": reason})
        return SimulationOutcome(status=SimulationStatus.REVERT, revert_reason=reason)

    @staticmethod
    def _estimation_failed(error: Exception) -> SimulationOutcome:
        reason = getattr(error, "message", None) or str(error)
        _logger.warning("Gas estimation failed", extra={"reason": reason})
        return SimulationOutcome(status=SimulationStatus.ESTIMATION_FAILED, revert_reason=reason)
