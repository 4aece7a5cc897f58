"""
Vault Tokens — Cryptographically secure random tokens and API keys.
"""
import re
import secrets
from typing import Optional

from .config import VaultConfig

_PREFIX_PATTERN = re.compile(r"[A-Za-z0-9]+")


class TokenGenerator:
    """Issues URL-safe tokens from the operating system CSPRNG."""

    def __init__(self, config: Optional[VaultConfig] = None):
        self._config = config or VaultConfig()

    def generate_token(self, byte_length: Optional[int] = None) -> str:
        """Return a URL-safe token carrying ``byte_length`` random bytes.

        Raises:
            ValueError: If byte_length is not positive.
        """
        length = self._config.token_bytes if byte_length is None else byte_length
        if length <= 0:
            raise ValueError(f"Token length must be positive, got {length}")
        return secrets.token_urlsafe(length)

    def generate_api_key(self, prefix: str = "ak") -> str:
        """Return ``<prefix>_<random>`` with at least 24 random bytes.

        Raises:
            ValueError: If the prefix is empty or not alphanumeric.
        """
        if not _PREFIX_PATTERN.fullmatch(prefix or ""):
            raise ValueError("API key prefix must be a non-empty alphanumeric string")
        return f"{prefix}_{secrets.token_urlsafe(self._config.api_key_bytes)}"
