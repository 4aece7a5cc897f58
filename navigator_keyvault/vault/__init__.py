"""KeyVault — Encrypted configuration values under a rotating master key.

Security Note (Threat Model):
    The active master key lives in process memory for the lifetime of the
    service. A memory dump of the application process exposes it, and with
    it every value encrypted under it. This is an accepted limitation —
    mitigation requires HSM/KMS integration which is out of scope.
"""

from .service import CryptoService
from .config import VaultConfig, load_master_secret, generate_master_key
from .crypto import CipherEngine, EncryptedEnvelope, BatchResult
from .hashing import HashEngine, deterministic_hash, validate_password_strength
from .key_manager import MasterKeyManager
from .keystore import KeyStore, MemoryKeyStore, FileKeyStore, SQLKeyStore
from .classifier import SensitivityClassifier, SensitivePattern, DEFAULT_PATTERNS
from .tokens import TokenGenerator
from .models import (
    KeyInfo,
    KeyRotationRecord,
    MasterKeyRecord,
    PasswordStrength,
    SensitiveResult,
)
from .exceptions import (
    VaultError,
    NotInitialized,
    DecryptionFailed,
    PersistenceFailure,
    ImportFailure,
)

__all__ = [
    "CryptoService",
    "VaultConfig",
    "load_master_secret",
    "generate_master_key",
    "CipherEngine",
    "EncryptedEnvelope",
    "BatchResult",
    "HashEngine",
    "deterministic_hash",
    "validate_password_strength",
    "MasterKeyManager",
    "KeyStore",
    "MemoryKeyStore",
    "FileKeyStore",
    "SQLKeyStore",
    "SensitivityClassifier",
    "SensitivePattern",
    "DEFAULT_PATTERNS",
    "TokenGenerator",
    "KeyInfo",
    "KeyRotationRecord",
    "MasterKeyRecord",
    "PasswordStrength",
    "SensitiveResult",
    "VaultError",
    "NotInitialized",
    "DecryptionFailed",
    "PersistenceFailure",
    "ImportFailure",
]
