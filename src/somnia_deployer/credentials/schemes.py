"""
Credential encryption schemes.

Two formats exist in the wild for the same wallet file:

- ``keystore-v3``: Web3 Secret Storage JSON (scrypt/pbkdf2 + AES-128-CTR),
  handled by ``eth_account``.
- ``aes-passphrase``: OpenSSL "Salted__" AES-256-CBC with an MD5
  EVP_BytesToKey derivation, as produced by CryptoJS
  ``AES.encrypt(privateKey, password)``. The plaintext is the 0x-prefixed
  private key string.

The scheme of a blob is detected from its structure, and each scheme has
exactly one decoder and one encoder.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import os
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from eth_account import Account

from somnia_deployer.constants import (
    MIN_PASSPHRASE_LENGTH,
    OPENSSL_SALT_MAGIC,
    OPENSSL_SALT_PREFIX_B64,
)
from somnia_deployer.errors import CredentialUnreadable, InvalidCredentialError
from somnia_deployer.utils.logging import get_logger

_logger = get_logger(__name__)

_AES_KEY_BYTES = 32
_AES_IV_BYTES = 16
_SALT_BYTES = 8


class EncryptionScheme(str, Enum):
    KEYSTORE_V3 = "keystore-v3"
    AES_PASSPHRASE = "aes-passphrase"


def normalize_private_key(private_key: str) -> str:
    """
    Return the key as lowercase 0x-prefixed hex.

    Raises:
        InvalidCredentialError: if the value is not a valid secp256k1 key.
            The message never echoes the input.
    """
    try:
        account = Account.from_key(private_key)
    except Exception:
        raise InvalidCredentialError("Invalid private key format (key not shown for security)") from None
    return "0x" + bytes(account.key).hex()


def detect_scheme(blob: str) -> EncryptionScheme:
    """
    Identify the scheme that produced ``blob`` from its structure.

    Raises:
        CredentialUnreadable: if the blob matches neither format.
    """
    text = (blob or "").strip()
    if text.startswith("{"):
        try:
            parsed = json.loads(text)
        except ValueError:
            raise CredentialUnreadable("Corrupted keystore data") from None
        if isinstance(parsed, dict) and ("crypto" in parsed or "Crypto" in parsed):
            return EncryptionScheme.KEYSTORE_V3
        raise CredentialUnreadable("Keystore JSON has no crypto section")
    if text.startswith(OPENSSL_SALT_PREFIX_B64):
        return EncryptionScheme.AES_PASSPHRASE
    raise CredentialUnreadable("Unrecognized credential format")


# ----------------------------------------------------------------------
# keystore-v3
# ----------------------------------------------------------------------

def _encrypt_keystore(private_key: str, passphrase: str, kdf: Optional[str], iterations: Optional[int]) -> str:
    keystore = Account.encrypt(private_key, passphrase, kdf=kdf, iterations=iterations)
    return json.dumps(keystore)


def _decrypt_keystore(blob: str, passphrase: str) -> str:
    try:
        key = Account.decrypt(blob, passphrase)
    except Exception:
        raise CredentialUnreadable(scheme=EncryptionScheme.KEYSTORE_V3.value) from None
    return "0x" + bytes(key).hex()


# ----------------------------------------------------------------------
# aes-passphrase (OpenSSL / CryptoJS compatible)
# ----------------------------------------------------------------------

def evp_bytes_to_key(passphrase: bytes, salt: bytes) -> Tuple[bytes, bytes]:
    """OpenSSL EVP_BytesToKey with MD5 and one iteration: returns (key, iv)."""
    derived = b""
    block = b""
    while len(derived) < _AES_KEY_BYTES + _AES_IV_BYTES:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:_AES_KEY_BYTES], derived[_AES_KEY_BYTES : _AES_KEY_BYTES + _AES_IV_BYTES]


def _encrypt_aes(private_key: str, passphrase: str, salt: Optional[bytes] = None) -> str:
    salt = salt or os.urandom(_SALT_BYTES)
    key, iv = evp_bytes_to_key(passphrase.encode("utf-8"), salt)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(private_key.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(OPENSSL_SALT_MAGIC + salt + ciphertext).decode("ascii")


def _decrypt_aes(blob: str, passphrase: str) -> str:
    unreadable = CredentialUnreadable(scheme=EncryptionScheme.AES_PASSPHRASE.value)
    try:
        raw = base64.b64decode(blob.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise unreadable from None

    header = len(OPENSSL_SALT_MAGIC) + _SALT_BYTES
    ciphertext = raw[header:]
    if not raw.startswith(OPENSSL_SALT_MAGIC) or not ciphertext or len(ciphertext) % 16:
        raise unreadable

    salt = raw[len(OPENSSL_SALT_MAGIC) : header]
    key, iv = evp_bytes_to_key(passphrase.encode("utf-8"), salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    try:
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
    except ValueError:
        # Bad padding or non-UTF-8 output: wrong passphrase or corrupted blob
        raise unreadable from None

    try:
        return normalize_private_key(plaintext.strip())
    except InvalidCredentialError:
        raise unreadable from None


_DECODERS: Dict[EncryptionScheme, Callable[[str, str], str]] = {
    EncryptionScheme.KEYSTORE_V3: _decrypt_keystore,
    EncryptionScheme.AES_PASSPHRASE: _decrypt_aes,
}


def decrypt(encrypted: str, scheme: Optional[EncryptionScheme], passphrase: str) -> str:
    """
    Decrypt a credential blob to its 0x-prefixed signing key.

    The scheme is sniffed from the blob; the stored ``scheme`` tag is only
    cross-checked, since older records may carry a missing or stale tag.

    Raises:
        CredentialUnreadable: wrong passphrase, corrupted or unknown blob.
    """
    detected = detect_scheme(encrypted)
    if scheme is not None and scheme != detected:
        _logger.warning(
            "Stored scheme tag disagrees with blob structure",
            extra={"stored": str(getattr(scheme, "value", scheme)), "detected": detected.value},
        )
    return _DECODERS[detected](encrypted.strip(), passphrase)


def encrypt(
    signing_key: str,
    passphrase: str,
    scheme: EncryptionScheme = EncryptionScheme.KEYSTORE_V3,
    *,
    kdf: Optional[str] = None,
    iterations: Optional[int] = None,
) -> Tuple[str, EncryptionScheme]:
    """
    Encrypt a signing key under ``scheme``.

    Args:
        signing_key: Private key (hex)
        passphrase: At least MIN_PASSPHRASE_LENGTH characters
        scheme: Target scheme
        kdf: keystore-v3 only, "scrypt" (default) or "pbkdf2"
        iterations: keystore-v3 only, KDF work factor override

    Returns:
        (blob, scheme)
    """
    if len(passphrase or "") < MIN_PASSPHRASE_LENGTH:
        raise InvalidCredentialError(
            f"Passphrase must be at least {MIN_PASSPHRASE_LENGTH} characters"
        )
    key = normalize_private_key(signing_key)
    scheme = EncryptionScheme(scheme)
    if scheme is EncryptionScheme.KEYSTORE_V3:
        return _encrypt_keystore(key, passphrase, kdf, iterations), scheme
    return _encrypt_aes(key, passphrase), scheme
