"""Tests for the token cipher used to store GitHub PATs and OpenAI keys."""
import base64

import pytest

from config.settings import decode_master_key
from core.errors import ConfigurationError, DecryptionError
from services.encryption import EncryptionService, decrypt_token, encrypt_token


@pytest.fixture
def service():
    return EncryptionService(key=b"a" * 32)


class TestEncryptDecrypt:
    def test_round_trip(self, service):
        token = "ghp_exampleToken1234567890"
        encrypted = service.encrypt_token(token)

        assert encrypted != token
        assert token not in encrypted
        assert service.decrypt_token(encrypted) == token

    def test_same_plaintext_gives_different_ciphertexts(self, service):
        first = service.encrypt_token("sk-same")
        second = service.encrypt_token("sk-same")

        assert first != second
        assert service.decrypt_token(first) == service.decrypt_token(second) == "sk-same"

    def test_token_format(self, service):
        version, iv, ciphertext = service.encrypt_token("secret").split(":")

        assert version == "v1"
        assert len(base64.b64decode(iv)) == 12
        # GCM appends a 16 byte tag
        assert len(base64.b64decode(ciphertext)) == len("secret") + 16

    def test_unicode_and_empty_plaintext(self, service):
        assert service.decrypt_token(service.encrypt_token("clé-🔑")) == "clé-🔑"
        assert service.decrypt_token(service.encrypt_token("")) == ""

    def test_module_helpers_use_configured_key(self):
        encrypted = encrypt_token("from-env")
        assert decrypt_token(encrypted) == "from-env"


class TestDecryptionFailures:
    def test_wrong_key(self, service):
        encrypted = service.encrypt_token("secret")
        other = EncryptionService(key=b"b" * 32)

        with pytest.raises(DecryptionError):
            other.decrypt_token(encrypted)

    def test_tampered_ciphertext(self, service):
        version, iv, ciphertext = service.encrypt_token("secret").split(":")
        raw = bytearray(base64.b64decode(ciphertext))
        raw[0] ^= 0x01
        tampered = ":".join((version, iv, base64.b64encode(bytes(raw)).decode()))

        with pytest.raises(DecryptionError):
            service.decrypt_token(tampered)

    @pytest.mark.parametrize("value", ["", "not-a-token", "v1:only-two", "v1:!!!:???"])
    def test_malformed_input(self, service, value):
        with pytest.raises(DecryptionError):
            service.decrypt_token(value)

    def test_unknown_version(self, service):
        _, iv, ciphertext = service.encrypt_token("secret").split(":")
        with pytest.raises(DecryptionError):
            service.decrypt_token(f"v9:{iv}:{ciphertext}")


class TestKeyConfiguration:
    def test_short_key_rejected(self):
        with pytest.raises(ConfigurationError):
            EncryptionService(key=b"short")

    def test_missing_master_key(self):
        with pytest.raises(ConfigurationError):
            decode_master_key(None)

    def test_master_key_must_be_base64(self):
        with pytest.raises(ConfigurationError):
            decode_master_key("not base64 !!")

    def test_master_key_must_be_32_bytes(self):
        with pytest.raises(ConfigurationError):
            decode_master_key(base64.b64encode(b"x" * 16).decode())

    def test_from_encoded_key(self):
        encoded = base64.b64encode(b"c" * 32).decode()
        service = EncryptionService.from_encoded_key(encoded)
        assert service.decrypt_token(service.encrypt_token("ok")) == "ok"
