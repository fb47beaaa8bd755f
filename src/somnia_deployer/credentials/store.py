"""Single active credential per project directory (``.somnia/wallet.json``)."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from somnia_deployer.constants import STATE_DIR_NAME, WALLET_FILE_NAME
from somnia_deployer.credentials.manager import Credential
from somnia_deployer.errors import RecordStoreError
from somnia_deployer.utils.files import read_json, write_json_atomic
from somnia_deployer.utils.logging import get_logger

_logger = get_logger(__name__)


class CredentialStore:
    """Reads and writes the project's active credential file."""

    def __init__(self, project_dir: Union[str, Path]) -> None:
        self._path = Path(project_dir) / STATE_DIR_NAME / WALLET_FILE_NAME

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> Optional[Credential]:
        """Return the active credential, or None if none has been saved."""
        if not self.exists():
            return None
        raw = read_json(self._path)
        try:
            return Credential.model_validate(raw)
        except ValidationError as e:
            raise RecordStoreError(
                f"Invalid credential file: {e.error_count()} validation error(s)",
                path=str(self._path),
            ) from None

    def save(self, credential: Credential) -> Path:
        """Replace the active credential. The file is written owner-readable only."""
        write_json_atomic(self._path, credential.to_json_dict(), mode=0o600)
        _logger.info("Credential saved", extra={"address": credential.address, "path": str(self._path)})
        return self._path

    def delete(self) -> bool:
        if not self.exists():
            return False
        self._path.unlink()
        _logger.info("Credential deleted", extra={"path": str(self._path)})
        return True
