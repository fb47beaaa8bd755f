"""
Root of the deployer exception hierarchy.

Every failure the pipeline reports is a DeployerError. Subclasses set
``default_code`` so callers can branch on ``error.kind`` (or catch the
class) and decide whether re-running the deployment makes sense.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DeployerError(Exception):
    """
    Base exception for deployment pipeline errors.

    Attributes:
        message: Human-readable description, safe to show to the user.
        code: Error kind, e.g. "SIMULATION_REVERT".
        tx_hash: Hash of the submitted transaction, when there is one.
        details: Extra context (amounts as strings, revert reason, ...).

    Example:
        >>> try:
        ...     await orchestrator.deploy(artifact, credential, passphrase, endpoint)
        ... except DeployerError as e:
        ...     print(e.kind, e.to_dict())
    """

    default_code = "DEPLOYER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.tx_hash = tx_hash
        self.details = details or {}

    @property
    def kind(self) -> str:
        return self.code

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.tx_hash:
            text += f" (tx: {self.tx_hash[:10]}...)"
        return text

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{name}={getattr(self, name)!r}" for name in ("message", "code", "tx_hash", "details")
        )
        return f"{type(self).__name__}({fields})"

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view of the error."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "tx_hash": self.tx_hash,
            "details": self.details,
        }
