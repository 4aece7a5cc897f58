"""
CryptoService — Public entry point of the vault.

Provides the narrow surface the rest of the application calls:
- ``initialize()`` — load or create the master key (once, at startup)
- ``encrypt()`` / ``decrypt()`` — AEAD envelopes under the active key
- ``hash()`` / ``verify()`` — salted one-way hashing
- ``rotate_key()`` / ``export_key()`` / ``import_key()`` — key lifecycle
- ``is_sensitive_value()`` / ``encrypt_if_sensitive()`` — classification
- ``generate_token()`` / ``generate_api_key()`` — random credentials

Security Note:
    Never log plaintext or ciphertext values. Decryption errors must be
    turned into generic integrity errors before they reach end users.
"""
import logging
from typing import Optional
from collections.abc import Iterable

from .classifier import PatternLike, SensitivityClassifier
from .config import VaultConfig
from .crypto import BatchResult, CipherEngine
from .hashing import HashEngine, deterministic_hash, validate_password_strength
from .key_manager import MasterKeyManager
from .keystore import KeyStore
from .models import KeyInfo, KeyRotationRecord, PasswordStrength, SensitiveResult
from .tokens import TokenGenerator

logger = logging.getLogger("navigator.keyvault")


class CryptoService:
    """Encryption, hashing and key management over one KeyStore.

    Every cryptographic call reads the active master key exactly once and
    passes it down to the engines, so a concurrent rotation never mixes two
    keys inside a single operation.
    """

    def __init__(
        self,
        store: KeyStore,
        config: Optional[VaultConfig] = None,
        classifier: Optional[SensitivityClassifier] = None,
    ):
        self._config = config or VaultConfig()
        self._keys = MasterKeyManager(store, self._config)
        self._cipher = CipherEngine(self._config)
        self._hasher = HashEngine(self._config)
        self._classifier = classifier or SensitivityClassifier()
        self._tokens = TokenGenerator(self._config)

    @property
    def keys(self) -> MasterKeyManager:
        return self._keys

    @property
    def classifier(self) -> SensitivityClassifier:
        return self._classifier

    # ------------------------------------------------------------------
    # Key lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, secret: Optional[str] = None) -> KeyInfo:
        return await self._keys.initialize(secret)

    def is_initialized(self) -> bool:
        return self._keys.is_initialized()

    def get_key_info(self) -> KeyInfo:
        return self._keys.get_key_info()

    async def rotate_key(self, new_secret: Optional[str] = None) -> KeyInfo:
        return await self._keys.rotate_key(new_secret)

    async def list_key_rotations(self) -> list[KeyRotationRecord]:
        return await self._keys.list_key_rotations()

    def export_key(self, password: str) -> str:
        return self._keys.export_key(password)

    async def import_key(self, blob: str, password: str) -> bool:
        return await self._keys.import_key(blob, password)

    def generate_key(self) -> str:
        return self._keys.generate_key()

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string under the active master key.

        Raises:
            NotInitialized: If called before initialize().
        """
        return self._cipher.encrypt(plaintext, self._keys.current())

    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope produced by :meth:`encrypt`.

        Raises:
            NotInitialized: If called before initialize().
            DecryptionFailed: If the envelope is malformed, was tampered with,
                or belongs to another key.
        """
        return self._cipher.decrypt(envelope, self._keys.current())

    def encrypt_batch(self, values: Iterable[str]) -> list[str]:
        return self._cipher.encrypt_batch(list(values), self._keys.current())

    def decrypt_batch(self, envelopes: Iterable[str]) -> list[BatchResult]:
        return self._cipher.decrypt_batch(list(envelopes), self._keys.current())

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    def hash(self, data: str) -> str:
        return self._hasher.hash(data)

    def secure_hash(self, value: str) -> str:
        return self._hasher.secure_hash(value)

    def verify(self, data: str, hashed: str) -> bool:
        return self._hasher.verify(data, hashed)

    def deterministic_hash(self, data: str, salt: Optional[str] = None) -> str:
        return deterministic_hash(data, salt)

    def validate_password_strength(self, password: str) -> PasswordStrength:
        return validate_password_strength(password)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def is_sensitive_value(
        self,
        value: str,
        patterns: Optional[Iterable[PatternLike]] = None,
    ) -> bool:
        return self._classifier.is_sensitive_value(value, patterns)

    def encrypt_if_sensitive(
        self,
        value: str,
        patterns: Optional[Iterable[PatternLike]] = None,
    ) -> SensitiveResult:
        """Encrypt ``value`` only when the classifier flags it.

        Raises:
            NotInitialized: If the value is sensitive and no key is loaded.
        """
        matcher = self._classifier.match(value, patterns)
        if matcher is None:
            return SensitiveResult(value=value, encrypted=False)
        logger.debug("Value matched sensitive pattern %s", matcher.name)
        return SensitiveResult(value=self.encrypt(value), encrypted=True)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def generate_token(self, byte_length: int = 32) -> str:
        return self._tokens.generate_token(byte_length)

    def generate_api_key(self, prefix: str = "ak") -> str:
        return self._tokens.generate_api_key(prefix)
