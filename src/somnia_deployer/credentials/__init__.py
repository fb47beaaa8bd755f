"""Credential encryption, import and storage."""

from somnia_deployer.credentials.manager import Credential, CredentialManager
from somnia_deployer.credentials.schemes import (
    EncryptionScheme,
    decrypt,
    detect_scheme,
    encrypt,
    normalize_private_key,
)
from somnia_deployer.credentials.store import CredentialStore

__all__ = [
    "Credential",
    "CredentialManager",
    "CredentialStore",
    "EncryptionScheme",
    "decrypt",
    "detect_scheme",
    "encrypt",
    "normalize_private_key",
]
