"""
Vault Hashing — Salted one-way hashing and timing-safe verification.

Hash format: base64(salt || derived_key), with salt_length and key_length
taken from VaultConfig. Changing those parameters invalidates existing
hashes; migrating them is up to the caller.
"""
import re
import base64
import binascii
import hashlib
import logging
import secrets
from typing import Optional

from cryptography.exceptions import InvalidKey

from .config import VaultConfig
from .crypto import new_kdf
from .models import PasswordStrength

logger = logging.getLogger("navigator.keyvault")

DETERMINISTIC_SALT = "navigator-keyvault-fixed-salt"

_COMMON_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"^123", r"password", r"admin", r"user", r"welcome",
        r"qwerty", r"abc123", r"letmein", r"monkey", r"login",
    )
]
_REPEATED = re.compile(r"(.)\1{2,}")


class HashEngine:
    """PBKDF2-HMAC hashing of secrets with a fresh salt per call."""

    def __init__(self, config: Optional[VaultConfig] = None):
        self._config = config or VaultConfig()

    def _derive(self, data: str, salt: bytes) -> bytes:
        cfg = self._config
        kdf = new_kdf(salt, cfg.iterations, cfg.key_length, cfg.digest)
        return kdf.derive(data.encode("utf-8"))

    def hash(self, data: str) -> str:
        """Hash ``data`` with a random salt.

        Returns:
            Base64 string of salt followed by the derived key.
        """
        salt = secrets.token_bytes(self._config.salt_length)
        derived = self._derive(data, salt)
        return base64.b64encode(salt + derived).decode("ascii")

    def secure_hash(self, value: str) -> str:
        """Hash an API key or password for storage."""
        return self.hash(value)

    def verify(self, data: str, hashed: str) -> bool:
        """Check ``data`` against a stored hash in constant time.

        Never raises: malformed input simply does not verify.
        """
        cfg = self._config
        try:
            raw = base64.b64decode(hashed.encode("ascii"), validate=True)
            if len(raw) != cfg.salt_length + cfg.key_length:
                return False
            salt, stored = raw[:cfg.salt_length], raw[cfg.salt_length:]
            kdf = new_kdf(salt, cfg.iterations, cfg.key_length, cfg.digest)
            kdf.verify(data.encode("utf-8"), stored)
            return True
        except InvalidKey:
            return False
        except (AttributeError, TypeError, ValueError, binascii.Error):
            logger.debug("Rejected malformed hash during verification")
            return False


def deterministic_hash(data: str, salt: Optional[str] = None) -> str:
    """SHA-256 hex digest of ``salt + data``.

    Produces stable identifiers from input data. Not suitable for passwords.
    """
    prefix = salt or DETERMINISTIC_SALT
    return hashlib.sha256((prefix + data).encode("utf-8")).hexdigest()


def validate_password_strength(password: str) -> PasswordStrength:
    """Score a password from 0 to 5 and collect improvement hints."""
    feedback = []
    score = 0

    if len(password) >= 12:
        score += 2
    elif len(password) >= 8:
        score += 1
        feedback.append(
            "Password should be at least 12 characters long for better security"
        )
    else:
        feedback.append("Password is too short, it should be at least 8 characters")

    for pattern, hint in (
        (r"[A-Z]", "Password should include uppercase letters"),
        (r"[a-z]", "Password should include lowercase letters"),
        (r"[0-9]", "Password should include numbers"),
        (r"[^A-Za-z0-9]", "Password should include special characters"),
    ):
        if re.search(pattern, password):
            score += 1
        else:
            feedback.append(hint)

    if any(p.search(password) for p in _COMMON_PATTERNS):
        score -= 1
        feedback.append("Password contains common patterns that are easy to guess")

    if _REPEATED.search(password):
        score -= 1
        feedback.append("Password contains repeated character sequences")

    return PasswordStrength(
        is_strong=score >= 4,
        score=max(0, min(5, score)),
        feedback=feedback or ["Password strength is good"],
    )
