"""
Tests for credential encryption schemes.
"""

import base64
import json
import logging

import pytest

from somnia_deployer.credentials import (
    EncryptionScheme,
    decrypt,
    detect_scheme,
    encrypt,
    normalize_private_key,
)
from somnia_deployer.credentials.schemes import evp_bytes_to_key
from somnia_deployer.errors import CredentialUnreadable, InvalidCredentialError

from ..conftest import TEST_PASSPHRASE, TEST_PRIVATE_KEY

# Produced by `openssl enc -aes-256-cbc -md md5 -salt -a` (same format as CryptoJS AES.encrypt)
OPENSSL_BLOB = (
    "U2FsdGVkX18UP+kJmtYYNr3zaX0vxj09nSQqbBejNKfrlkax1ZV6BlXS66ReXrpS"
    "+BY8DMBW3exZn/pQLO7qZ0ViOopfJRrop1ruR2IRekvr3jBMeRA+obEPtzO3dYwq"
)

FAST_KDF = {"kdf": "pbkdf2", "iterations": 2}


class TestNormalizePrivateKey:
    def test_adds_prefix_and_lowercases(self) -> None:
        bare = TEST_PRIVATE_KEY[2:].upper()
        assert normalize_private_key(bare) == TEST_PRIVATE_KEY

    @pytest.mark.parametrize("value", ["", "0x1234", "0x" + "zz" * 32, "0x" + "00" * 32])
    def test_invalid_key_message_does_not_echo_input(self, value) -> None:
        with pytest.raises(InvalidCredentialError) as exc_info:
            normalize_private_key(value)

        assert "key not shown" in exc_info.value.message
        if value:
            assert value not in str(exc_info.value)


class TestDetectScheme:
    def test_keystore_json(self) -> None:
        blob, _ = encrypt(TEST_PRIVATE_KEY, TEST_PASSPHRASE, EncryptionScheme.KEYSTORE_V3, **FAST_KDF)
        assert detect_scheme(blob) is EncryptionScheme.KEYSTORE_V3

    def test_openssl_base64(self) -> None:
        assert detect_scheme(OPENSSL_BLOB) is EncryptionScheme.AES_PASSPHRASE

    @pytest.mark.parametrize("blob", ["", "hello", "{broken json", json.dumps({"address": "0x1"})])
    def test_unknown_formats(self, blob) -> None:
        with pytest.raises(CredentialUnreadable):
            detect_scheme(blob)


class TestAesPassphrase:
    def test_decrypts_openssl_output(self) -> None:
        assert decrypt(OPENSSL_BLOB, EncryptionScheme.AES_PASSPHRASE, TEST_PASSPHRASE) == TEST_PRIVATE_KEY

    def test_round_trip_uses_salted_header(self) -> None:
        blob, scheme = encrypt(TEST_PRIVATE_KEY, TEST_PASSPHRASE, EncryptionScheme.AES_PASSPHRASE)

        assert scheme is EncryptionScheme.AES_PASSPHRASE
        assert base64.b64decode(blob).startswith(b"Salted__")
        assert decrypt(blob, scheme, TEST_PASSPHRASE) == TEST_PRIVATE_KEY

    def test_fresh_salt_each_time(self) -> None:
        first, _ = encrypt(TEST_PRIVATE_KEY, TEST_PASSPHRASE, EncryptionScheme.AES_PASSPHRASE)
        second, _ = encrypt(TEST_PRIVATE_KEY, TEST_PASSPHRASE, EncryptionScheme.AES_PASSPHRASE)
        assert first != second

    def test_wrong_passphrase(self) -> None:
        with pytest.raises(CredentialUnreadable) as exc_info:
            decrypt(OPENSSL_BLOB, EncryptionScheme.AES_PASSPHRASE, "wrong passphrase")

        message = str(exc_info.value)
        assert message == "[CREDENTIAL_UNREADABLE] Invalid passphrase or corrupted credential data"
        assert TEST_PRIVATE_KEY[2:] not in message
        assert exc_info.value.scheme == "aes-passphrase"

    def test_truncated_blob(self) -> None:
        with pytest.raises(CredentialUnreadable):
            decrypt(OPENSSL_BLOB[:30], None, TEST_PASSPHRASE)

    def test_evp_bytes_to_key_sizes(self) -> None:
        key, iv = evp_bytes_to_key(b"pass", b"12345678")
        assert (len(key), len(iv)) == (32, 16)


class TestKeystoreV3:
    def test_round_trip(self) -> None:
        blob, scheme = encrypt(TEST_PRIVATE_KEY, TEST_PASSPHRASE, **FAST_KDF)

        assert scheme is EncryptionScheme.KEYSTORE_V3
        assert json.loads(blob)["version"] == 3
        assert decrypt(blob, scheme, TEST_PASSPHRASE) == TEST_PRIVATE_KEY

    def test_wrong_passphrase(self) -> None:
        blob, scheme = encrypt(TEST_PRIVATE_KEY, TEST_PASSPHRASE, **FAST_KDF)

        with pytest.raises(CredentialUnreadable) as exc_info:
            decrypt(blob, scheme, "not the passphrase")

        assert exc_info.value.scheme == "keystore-v3"
        assert TEST_PRIVATE_KEY[2:] not in str(exc_info.value)


class TestSchemeTagging:
    def test_structure_wins_over_stale_tag(self) -> None:
        # A blob written before scheme tags existed, mislabelled later
        assert decrypt(OPENSSL_BLOB, EncryptionScheme.KEYSTORE_V3, TEST_PASSPHRASE) == TEST_PRIVATE_KEY

    def test_missing_tag(self) -> None:
        blob, _ = encrypt(TEST_PRIVATE_KEY, TEST_PASSPHRASE, **FAST_KDF)
        assert decrypt(blob, None, TEST_PASSPHRASE) == TEST_PRIVATE_KEY

    def test_short_passphrase_rejected(self) -> None:
        with pytest.raises(InvalidCredentialError, match="at least 8"):
            encrypt(TEST_PRIVATE_KEY, "short", EncryptionScheme.AES_PASSPHRASE)

    @pytest.mark.parametrize("tag", ["chacha20", "KEYSTORE", ""])
    def test_unknown_tag_falls_back_to_structure(self, tag, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="somnia_deployer"):
            assert decrypt(OPENSSL_BLOB, tag, TEST_PASSPHRASE) == TEST_PRIVATE_KEY

        warning = next(r for r in caplog.records if r.getMessage() == "Stored scheme tag disagrees with blob structure")
        assert warning.stored == tag
        assert warning.detected == "aes-passphrase"
