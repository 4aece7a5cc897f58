"""
Vault Configuration — Validated cryptographic parameters.

Reads optional overrides from environment variables:
    VAULT_CIPHER_BACKEND = aesgcm | chacha20
    VAULT_KDF_ITERATIONS = <integer>
    VAULT_KDF_DIGEST = sha512 | sha384 | sha256
    VAULT_KEY_LENGTH = <bytes, >= 32>
    VAULT_SALT_LENGTH = <bytes, >= 16>
    VAULT_MASTER_SECRET = <optional secret to derive the first master key>

Security Note:
    Never log key material or the master secret. Only log key IDs.
"""
import os
import base64
import secrets
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("navigator.keyvault")

_ALGORITHMS = {
    "aesgcm": "aes-256-gcm",
    "chacha20": "chacha20-poly1305",
}

_DIGESTS = ("sha512", "sha384", "sha256")


def load_master_secret() -> Optional[str]:
    """Read the optional master secret from VAULT_MASTER_SECRET.

    Returns:
        The secret string, or None when unset or empty.
    """
    secret = os.environ.get("VAULT_MASTER_SECRET")
    if not secret:
        return None
    logger.debug("Master secret provided through environment")
    return secret


def generate_master_key(length: int = 32) -> str:
    """Generate a random master key and return as base64 string.

    This is a utility for operators to generate new keys.

    Args:
        length: Key length in bytes (minimum 32).

    Returns:
        Base64-encoded key string.
    """
    if length < 32:
        raise ValueError(f"Master key must be at least 32 bytes, got {length}")
    return base64.b64encode(secrets.token_bytes(length)).decode("ascii")


def algorithm_backend(algorithm: str) -> str:
    """Map a wire algorithm name back to its cipher backend.

    Raises:
        ValueError: If the algorithm is not supported.
    """
    for backend, name in _ALGORITHMS.items():
        if name == algorithm:
            return backend
    raise ValueError(f"Unsupported algorithm: {algorithm}")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    cipher_backend: str = Field(default="aesgcm")
    iterations: int = Field(default=100000, ge=1000)
    key_length: int = Field(default=32, ge=32)
    digest: str = Field(default="sha512")
    salt_length: int = Field(default=16, ge=16)
    nonce_length: int = Field(default=12, ge=12, le=12)
    api_key_bytes: int = Field(default=24, ge=24)
    token_bytes: int = Field(default=32, ge=16)

    model_config = {"frozen": True}

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in _ALGORITHMS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("digest")
    @classmethod
    def validate_digest(cls, v: str) -> str:
        """Validate the KDF digest is supported."""
        v = v.lower()
        if v not in _DIGESTS:
            raise ValueError(f"Unsupported KDF digest: {v}")
        return v

    @property
    def algorithm(self) -> str:
        """Wire name of the configured AEAD algorithm."""
        return _ALGORITHMS[self.cipher_backend]

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        values = {}
        backend = os.environ.get("VAULT_CIPHER_BACKEND")
        if backend:
            values["cipher_backend"] = backend
        digest = os.environ.get("VAULT_KDF_DIGEST")
        if digest:
            values["digest"] = digest
        for name, env in (
            ("iterations", "VAULT_KDF_ITERATIONS"),
            ("key_length", "VAULT_KEY_LENGTH"),
            ("salt_length", "VAULT_SALT_LENGTH"),
        ):
            raw = os.environ.get(env)
            if raw:
                values[name] = int(raw)
        return cls(**values)
