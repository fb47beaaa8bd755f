"""
Credential manager.

Holds no key material itself: every signing operation decrypts the
credential, signs exactly one payload and lets the key go out of scope.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Tuple

from eth_account import Account
from eth_account.datastructures import SignedMessage, SignedTransaction
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from pydantic import BaseModel, ConfigDict, Field, field_validator

from somnia_deployer.constants import DEFAULT_DERIVATION_PATH
from somnia_deployer.credentials.schemes import (
    EncryptionScheme,
    decrypt,
    encrypt,
    normalize_private_key,
)
from somnia_deployer.errors import CredentialUnreadable, InvalidCredentialError
from somnia_deployer.utils.logging import get_logger

_logger = get_logger(__name__)

Account.enable_unaudited_hdwallet_features()

CredentialKind = Literal["created", "imported", "hd"]


class Credential(BaseModel):
    """
    Address plus encrypted signing key, as stored in ``.somnia/wallet.json``.

    ``scheme`` may be missing on records written by older tooling; the
    blob's structure is authoritative either way.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    address: str = Field(
        ...,
        pattern=r"^0x[0-9a-fA-F]{40}$",
        description="Checksummed account address",
    )
    encrypted: str = Field(
        ...,
        description="Encrypted signing key (keystore JSON or OpenSSL base64)",
    )
    scheme: Optional[EncryptionScheme] = Field(
        default=None,
        description="Scheme tag written at creation time",
    )
    network: str = Field(
        ...,
        description="Network key the credential was created for",
    )
    kind: CredentialKind = Field(
        default="imported",
        alias="type",
        description="How the credential came to exist",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="createdAt",
    )

    @field_validator("scheme", mode="before")
    @classmethod
    def _drop_unknown_scheme(cls, value: Any) -> Any:
        if value is None or isinstance(value, EncryptionScheme):
            return value
        try:
            return EncryptionScheme(value)
        except ValueError:
            _logger.warning("Ignoring unknown credential scheme tag", extra={"stored": str(value)})
            return None

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CredentialManager:
    """
    Encrypts, decrypts and signs with credentials.

    Example:
        ```python
        manager = CredentialManager()
        credential = manager.import_private_key(key, "correct horse", network="testnet")
        signed = manager.sign_transaction(credential, "correct horse", tx)
        ```
    """

    def __init__(
        self,
        *,
        default_scheme: EncryptionScheme = EncryptionScheme.KEYSTORE_V3,
        kdf: Optional[str] = None,
        kdf_iterations: Optional[int] = None,
    ) -> None:
        self.default_scheme = default_scheme
        self._kdf = kdf
        self._kdf_iterations = kdf_iterations

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------
    def encrypt(
        self,
        signing_key: str,
        passphrase: str,
        scheme: Optional[EncryptionScheme] = None,
    ) -> Tuple[str, EncryptionScheme]:
        return encrypt(
            signing_key,
            passphrase,
            scheme or self.default_scheme,
            kdf=self._kdf,
            iterations=self._kdf_iterations,
        )

    def decrypt(
        self,
        encrypted: str,
        scheme: Optional[EncryptionScheme],
        passphrase: str,
    ) -> str:
        return decrypt(encrypted, scheme, passphrase)

    # ------------------------------------------------------------------
    # Creation and import
    # ------------------------------------------------------------------
    def _build(
        self,
        account: LocalAccount,
        passphrase: str,
        network: str,
        kind: CredentialKind,
        scheme: Optional[EncryptionScheme],
    ) -> Credential:
        blob, used = self.encrypt("0x" + bytes(account.key).hex(), passphrase, scheme)
        credential = Credential(
            address=account.address,
            encrypted=blob,
            scheme=used,
            network=network,
            kind=kind,
        )
        _logger.info(
            "Credential encrypted",
            extra={"address": account.address, "scheme": used.value, "kind": kind},
        )
        return credential

    def import_private_key(
        self,
        private_key: str,
        passphrase: str,
        network: str,
        scheme: Optional[EncryptionScheme] = None,
    ) -> Credential:
        account = Account.from_key(normalize_private_key(private_key))
        return self._build(account, passphrase, network, "imported", scheme)

    def import_mnemonic(
        self,
        mnemonic: str,
        passphrase: str,
        network: str,
        derivation_path: str = DEFAULT_DERIVATION_PATH,
        scheme: Optional[EncryptionScheme] = None,
    ) -> Credential:
        """Derive the key at ``derivation_path`` and encrypt it like a raw key."""
        try:
            account = Account.from_mnemonic(" ".join(mnemonic.split()), account_path=derivation_path)
        except Exception:
            raise InvalidCredentialError("Invalid mnemonic phrase (not shown for security)") from None
        return self._build(account, passphrase, network, "imported", scheme)

    def create(
        self,
        passphrase: str,
        network: str,
        scheme: Optional[EncryptionScheme] = None,
    ) -> Tuple[Credential, str]:
        """
        Create a fresh HD credential.

        Returns:
            (credential, mnemonic). The mnemonic is returned once for the
            user to back up and is never persisted.
        """
        account, mnemonic = Account.create_with_mnemonic(account_path=DEFAULT_DERIVATION_PATH)
        return self._build(account, passphrase, network, "hd", scheme), mnemonic

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------
    def _unlock(self, credential: Credential, passphrase: str) -> LocalAccount:
        key = decrypt(credential.encrypted, credential.scheme, passphrase)
        account = Account.from_key(key)
        if account.address.lower() != credential.address.lower():
            raise CredentialUnreadable("Decrypted key does not match the credential address")
        return account

    def verify_passphrase(self, credential: Credential, passphrase: str) -> bool:
        try:
            self._unlock(credential, passphrase)
        except CredentialUnreadable:
            return False
        return True

    def sign_transaction(
        self,
        credential: Credential,
        passphrase: str,
        transaction: Dict[str, Any],
    ) -> SignedTransaction:
        """Decrypt, sign one transaction, and drop the key."""
        account = self._unlock(credential, passphrase)
        try:
            return account.sign_transaction(transaction)
        finally:
            del account

    def sign_message(self, credential: Credential, passphrase: str, message: str) -> SignedMessage:
        """EIP-191 personal message signature."""
        account = self._unlock(credential, passphrase)
        try:
            return account.sign_message(encode_defunct(text=message))
        finally:
            del account
