"""
Deployment Record Store.

One JSON file per (contract name, network) under
``<project>/.somnia/deployments/{contractName}-{network}.json``. Records are
written atomically and a new deployment of the same contract on the same
network replaces the previous file.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_serializer

from somnia_deployer.constants import DEPLOYMENTS_DIR_NAME, STATE_DIR_NAME
from somnia_deployer.errors import RecordStoreError
from somnia_deployer.utils.files import read_json, write_json_atomic
from somnia_deployer.utils.logging import get_logger
from somnia_deployer.utils.security import validate_name_component, validate_path

_logger = get_logger(__name__)


class DeploymentRecord(BaseModel):
    """
    Durable note of a successfully deployed contract.

    Only created for receipts that reported success; never mutated, only
    superseded by a newer record with the same key.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    contract_name: str = Field(..., alias="contractName", min_length=1)
    address: str = Field(..., pattern=r"^0x[0-9a-fA-F]{40}$")
    transaction_hash: str = Field(..., alias="transactionHash", pattern=r"^0x[0-9a-fA-F]{64}$")
    block_number: int = Field(..., alias="blockNumber", ge=0)
    gas_used: int = Field(..., alias="gasUsed", ge=0)
    cost: int = Field(..., ge=0, description="gasUsed * effectiveGasPrice, in wei")
    network: str = Field(..., min_length=1)
    deployer_address: str = Field(
        ...,
        validation_alias=AliasChoices("deployerAddress", "deployer", "deployer_address"),
        serialization_alias="deployerAddress",
    )
    deployed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="deployedAt",
    )
    constructor_args: List[Any] = Field(default_factory=list, alias="constructorArgs")
    abi: List[Dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("interfaceDescriptor", "abi"),
        serialization_alias="interfaceDescriptor",
    )
    bytecode: str = Field(...)
    source_path: Optional[str] = Field(default=None, alias="sourcePath")
    explorer_url: Optional[str] = Field(default=None, alias="explorerUrl")

    @field_serializer("gas_used", "cost")
    def _as_decimal_string(self, value: int) -> str:
        return str(value)

    @property
    def key(self) -> str:
        return f"{self.contract_name}-{self.network}"

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DeploymentRecordStore:
    """
    File-backed store keyed by (contract name, network).

    Example:
        ```python
        store = DeploymentRecordStore(project_dir)
        store.save(record)
        latest = store.load("MyToken", "testnet")
        ```
    """

    def __init__(self, project_dir: Union[str, Path]) -> None:
        self._directory = Path(project_dir) / STATE_DIR_NAME / DEPLOYMENTS_DIR_NAME

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, contract_name: str, network: str) -> Path:
        try:
            validate_name_component(contract_name, "contract_name")
            validate_name_component(network, "network")
            return validate_path(f"{contract_name}-{network}.json", self._directory)
        except ValueError as e:
            raise RecordStoreError(str(e)) from None

    def save(self, record: DeploymentRecord) -> Path:
        """Write ``record``, replacing any previous record with the same key."""
        path = self.path_for(record.contract_name, record.network)
        replaced = path.exists()
        write_json_atomic(path, record.to_json_dict())
        _logger.info(
            "Deployment record saved",
            extra={"key": record.key, "address": record.address, "replaced": replaced},
        )
        return path

    def _read(self, path: Path) -> DeploymentRecord:
        try:
            return DeploymentRecord.model_validate(read_json(path))
        except ValidationError as e:
            raise RecordStoreError(
                f"Invalid deployment record: {e.error_count()} validation error(s)",
                path=str(path),
            ) from None

    def load(self, contract_name: str, network: str) -> Optional[DeploymentRecord]:
        path = self.path_for(contract_name, network)
        if not path.is_file():
            return None
        return self._read(path)

    def exists(self, contract_name: str, network: str) -> bool:
        return self.path_for(contract_name, network).is_file()

    def list(self, network: Optional[str] = None) -> List[DeploymentRecord]:
        """All readable records, oldest first. Unreadable files are logged and skipped."""
        if not self._directory.is_dir():
            return []
        records = []
        for path in sorted(self._directory.glob("*.json")):
            try:
                record = self._read(path)
            except RecordStoreError as e:
                _logger.warning("Skipping unreadable deployment record", extra={"path": str(path), "error": e.message})
                continue
            if network is None or record.network == network:
                records.append(record)
        return sorted(records, key=lambda r: r.deployed_at)

    def find_by_address(self, address: str, network: Optional[str] = None) -> Optional[DeploymentRecord]:
        """Newest record deployed at ``address`` (case-insensitive), if any."""
        wanted = address.lower()
        matches = [r for r in self.list(network) if r.address.lower() == wanted]
        return matches[-1] if matches else None

    def delete(self, contract_name: str, network: str) -> bool:
        path = self.path_for(contract_name, network)
        if not path.is_file():
            return False
        path.unlink()
        _logger.info("Deployment record deleted", extra={"key": f"{contract_name}-{network}"})
        return True
