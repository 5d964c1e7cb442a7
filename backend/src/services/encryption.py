"""Encryption of user secrets (GitHub PATs, OpenAI keys) before they are stored."""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from config.settings import decode_master_key, get_settings
from core.errors import ConfigurationError, DecryptionError

TOKEN_PREFIX = "v1"
_SEPARATOR = ":"


@dataclass(slots=True)
class EncryptionEnvelope:
    """Serialized payload for storage."""

    version: str
    iv: str
    ciphertext: str

    def to_dict(self) -> Dict[str, str]:
        return {"v": self.version, "iv": self.iv, "ct": self.ciphertext}

    def to_token(self) -> str:
        return _SEPARATOR.join((f"v{self.version}", self.iv, self.ciphertext))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptionEnvelope":
        missing = [k for k in ("v", "iv", "ct") if not data.get(k)]
        if missing:
            raise DecryptionError(f"Invalid envelope: missing {', '.join(missing)}")
        return cls(version=str(data["v"]), iv=str(data["iv"]), ciphertext=str(data["ct"]))

    @classmethod
    def from_token(cls, token: str) -> "EncryptionEnvelope":
        if not isinstance(token, str):
            raise DecryptionError("Encrypted secret must be a string.")
        parts = token.split(_SEPARATOR)
        if len(parts) != 3 or not parts[0].startswith("v"):
            raise DecryptionError("Encrypted secret is not in a recognised format.")
        return cls(version=parts[0][1:], iv=parts[1], ciphertext=parts[2])


class EncryptionService:
    """
    AES-GCM based encryption for at-rest storage.

    - Uses a 32-byte key (ENCRYPTION_MASTER_KEY, base64) unless one is passed in
    - Every call draws a fresh 96-bit nonce, so equal plaintexts never produce
      equal ciphertexts
    - Wrong key, tampering or malformed input raise DecryptionError
    """

    DEFAULT_VERSION = "1"

    def __init__(self, *, key: Optional[bytes] = None) -> None:
        key_bytes = key if key is not None else get_settings().encryption_key
        if len(key_bytes) != 32:
            raise ConfigurationError("Encryption key must be 32 bytes (256-bit).")
        self._cipher = AESGCM(key_bytes)

    @classmethod
    def from_encoded_key(cls, encoded: str) -> "EncryptionService":
        return cls(key=decode_master_key(encoded))

    def encrypt_bytes(self, data: bytes, *, version: str = DEFAULT_VERSION) -> EncryptionEnvelope:
        """Encrypt raw bytes and return an envelope."""
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("Data must be bytes.")

        iv = secrets.token_bytes(12)
        ciphertext = self._cipher.encrypt(iv, bytes(data), None)
        return EncryptionEnvelope(
            version=version,
            iv=self._b64_encode(iv),
            ciphertext=self._b64_encode(ciphertext),
        )

    def decrypt_bytes(self, envelope: EncryptionEnvelope | Dict[str, Any]) -> bytes:
        """Decrypt an envelope produced by encrypt_bytes."""
        parsed = envelope if isinstance(envelope, EncryptionEnvelope) else EncryptionEnvelope.from_dict(envelope)

        if parsed.version != self.DEFAULT_VERSION:
            raise DecryptionError(f"Unsupported encryption version: {parsed.version}")

        iv = self._b64_decode(parsed.iv)
        ciphertext = self._b64_decode(parsed.ciphertext)
        if len(iv) != 12:
            raise DecryptionError("Invalid nonce length.")

        try:
            return self._cipher.decrypt(iv, ciphertext, None)
        except InvalidTag as exc:
            raise DecryptionError(
                "Failed to decrypt secret. It was encrypted with a different key or has been modified."
            ) from exc

    def encrypt_token(self, plaintext: str) -> str:
        """Encrypt a text secret into a compact ``v1:<iv>:<ct>`` string."""
        return self.encrypt_bytes(plaintext.encode("utf-8")).to_token()

    def decrypt_token(self, token: str) -> str:
        """Reverse ``encrypt_token``; never returns partial or garbage text."""
        raw = self.decrypt_bytes(EncryptionEnvelope.from_token(token))
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Decrypted secret is not valid UTF-8.") from exc

    @staticmethod
    def _b64_encode(data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")

    @staticmethod
    def _b64_decode(data: str) -> bytes:
        try:
            return base64.b64decode(data.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
            raise DecryptionError(f"Invalid base64 payload: {exc}") from exc


def encrypt_token(token: str, service: Optional[EncryptionService] = None) -> str:
    return (service or EncryptionService()).encrypt_token(token)


def decrypt_token(encrypted: str, service: Optional[EncryptionService] = None) -> str:
    return (service or EncryptionService()).decrypt_token(encrypted)
