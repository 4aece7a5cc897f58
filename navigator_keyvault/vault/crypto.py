"""
Vault Crypto Core — Key derivation, AEAD encryption/decryption, envelopes.

Envelope format (compact JSON, binary fields base64):
    {"content": <ciphertext>, "iv": <nonce 12B>, "authTag": <tag 16B>, "keyId": <id>}

The key id is bound into the AEAD as associated data, so an envelope can only
be opened with the master key that produced it. Envelopes without ``keyId``
(the older three-field format) were sealed without associated data and are
opened under the active key.

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import base64
import logging
from typing import Optional

import orjson
from pydantic import BaseModel, Field
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .config import VaultConfig
from .exceptions import DecryptionFailed
from .models import MasterKeyRecord

logger = logging.getLogger("navigator.keyvault")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # 128-bit authentication tag

_DIGESTS = {
    "sha512": hashes.SHA512,
    "sha384": hashes.SHA384,
    "sha256": hashes.SHA256,
}


def get_cipher_cls(backend: str) -> type:
    """Return the AEAD cipher class for a cipher backend name."""
    if backend == "chacha20":
        return ChaCha20Poly1305
    if backend == "aesgcm":
        return AESGCM
    raise ValueError(f"Unsupported cipher backend: {backend}")


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    """Strict base64 decoding; raises ValueError on any non-alphabet input."""
    if not isinstance(data, str):
        raise ValueError("expected a base64 string")
    return base64.b64decode(data.encode("ascii"), validate=True)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def new_kdf(
    salt: bytes,
    iterations: int,
    length: int,
    digest: str = "sha512",
) -> PBKDF2HMAC:
    """Build a single-use PBKDF2-HMAC instance."""
    return PBKDF2HMAC(
        algorithm=_DIGESTS[digest](),
        length=length,
        salt=salt,
        iterations=iterations,
    )


def derive_key(
    secret: str,
    salt: bytes,
    iterations: int,
    length: int = 32,
    digest: str = "sha512",
) -> bytes:
    """Derive key material from a low-entropy secret using PBKDF2.

    Args:
        secret: Password or secret string.
        salt: Random salt.
        iterations: PBKDF2 iteration count.
        length: Derived key length in bytes.
        digest: HMAC digest name.

    Returns:
        Derived key bytes.
    """
    return new_kdf(salt, iterations, length, digest).derive(secret.encode("utf-8"))


# ---------------------------------------------------------------------------
# Raw AEAD
# ---------------------------------------------------------------------------

def aead_encrypt(
    key: bytes,
    plaintext: bytes,
    nonce: bytes,
    backend: str = "aesgcm",
    aad: Optional[bytes] = None,
) -> tuple[bytes, bytes]:
    """Encrypt and return ``(ciphertext, auth_tag)`` split apart."""
    cipher = get_cipher_cls(backend)(key[:32])
    sealed = cipher.encrypt(nonce, plaintext, aad)
    return sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]


def aead_decrypt(
    key: bytes,
    ciphertext: bytes,
    nonce: bytes,
    tag: bytes,
    backend: str = "aesgcm",
    aad: Optional[bytes] = None,
) -> bytes:
    """Verify the tag and decrypt.

    Raises:
        ValueError: If nonce or tag have the wrong length.
        InvalidTag: If authentication fails.
    """
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    if len(tag) != TAG_SIZE:
        raise ValueError(f"auth tag must be {TAG_SIZE} bytes, got {len(tag)}")
    cipher = get_cipher_cls(backend)(key[:32])
    return cipher.decrypt(nonce, ciphertext + tag, aad)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

class EncryptedEnvelope(BaseModel):
    """Serialized result of a single encryption."""

    ciphertext: str = Field(alias="content")
    nonce: str = Field(alias="iv")
    auth_tag: str = Field(alias="authTag")
    key_id: Optional[str] = Field(default=None, alias="keyId")

    model_config = {"frozen": True, "populate_by_name": True}

    def dumps(self) -> str:
        data = self.model_dump(by_alias=True, exclude_none=True)
        return orjson.dumps(data).decode("utf-8")

    @classmethod
    def loads(cls, data: str) -> "EncryptedEnvelope":
        """Parse a serialized envelope.

        Raises:
            ValueError: If the input is not a well-formed envelope.
        """
        parsed = orjson.loads(data)
        if not isinstance(parsed, dict):
            raise ValueError("envelope must be a JSON object")
        return cls.model_validate(parsed)


class BatchResult(BaseModel):
    """Per-element outcome of decrypt_batch."""

    value: Optional[str] = None
    error: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.error is None


class CipherEngine:
    """Authenticated encryption of strings under an explicit master key handle.

    The engine holds no key state: every call receives the
    :class:`MasterKeyRecord` to use, read once by the caller.
    """

    def __init__(self, config: Optional[VaultConfig] = None):
        self._config = config or VaultConfig()
        self._backend = self._config.cipher_backend

    @property
    def algorithm(self) -> str:
        return self._config.algorithm

    def encrypt(self, plaintext: str, key: MasterKeyRecord) -> str:
        """Encrypt a string into a serialized envelope.

        Args:
            plaintext: Text to encrypt.
            key: Master key handle.

        Returns:
            Envelope JSON string.
        """
        nonce = os.urandom(NONCE_SIZE)
        ct, tag = aead_encrypt(
            key.key,
            plaintext.encode("utf-8"),
            nonce,
            self._backend,
            aad=key.key_id.encode("utf-8"),
        )
        return EncryptedEnvelope(
            ciphertext=b64encode(ct),
            nonce=b64encode(nonce),
            auth_tag=b64encode(tag),
            key_id=key.key_id,
        ).dumps()

    def decrypt(self, envelope: str, key: MasterKeyRecord) -> str:
        """Decrypt a serialized envelope.

        Args:
            envelope: Envelope JSON string produced by :meth:`encrypt`.
            key: Master key handle.

        Returns:
            Decrypted plaintext.

        Raises:
            DecryptionFailed: On malformed input, unknown key or tag mismatch.
        """
        try:
            env = EncryptedEnvelope.loads(envelope)
        except (ValueError, TypeError) as err:
            raise DecryptionFailed("Malformed encrypted envelope") from err
        if env.key_id is not None and env.key_id != key.key_id:
            logger.debug(
                "Envelope key %s is not the active key %s", env.key_id, key.key_id
            )
            raise DecryptionFailed("Encryption key for envelope is unavailable")
        try:
            plaintext = aead_decrypt(
                key.key,
                b64decode(env.ciphertext),
                b64decode(env.nonce),
                b64decode(env.auth_tag),
                self._backend,
                aad=env.key_id.encode("utf-8") if env.key_id is not None else None,
            )
            return plaintext.decode("utf-8")
        except InvalidTag as err:
            raise DecryptionFailed("Envelope failed authentication") from err
        except ValueError as err:
            raise DecryptionFailed("Malformed encrypted envelope") from err

    def encrypt_batch(self, values: list[str], key: MasterKeyRecord) -> list[str]:
        """Encrypt each value independently under the same key handle."""
        return [self.encrypt(value, key) for value in values]

    def decrypt_batch(
        self, envelopes: list[str], key: MasterKeyRecord
    ) -> list[BatchResult]:
        """Decrypt each envelope independently.

        A failing element yields a ``BatchResult`` with ``error`` set and
        does not affect the others.
        """
        results = []
        for envelope in envelopes:
            try:
                results.append(BatchResult(value=self.decrypt(envelope, key)))
            except DecryptionFailed as err:
                results.append(BatchResult(error=str(err)))
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(
                "Batch decryption: %d of %d envelope(s) failed",
                failed, len(results),
            )
        return results
