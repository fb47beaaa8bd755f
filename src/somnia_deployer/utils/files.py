"""Atomic JSON file helpers shared by the record and credential stores."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from somnia_deployer.errors import RecordStoreError


def write_json_atomic(path: Path, payload: Any, *, mode: int = 0o644) -> None:
    """
    Write JSON to ``path`` so readers never observe a partial file.

    The content goes to a temp file in the same directory and is moved
    into place with ``os.replace``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as e:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise RecordStoreError(f"Failed to write {path.name}: {e}", path=str(path)) from e


def read_json(path: Path) -> Any:
    """Read a JSON file, mapping I/O and decode failures to RecordStoreError."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as e:
        raise RecordStoreError(f"Corrupted JSON in {path.name}: {e}", path=str(path)) from e
    except OSError as e:
        raise RecordStoreError(f"Failed to read {path.name}: {e}", path=str(path)) from e
