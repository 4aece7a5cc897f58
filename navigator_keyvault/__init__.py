"""Navigator KeyVault.

Secret encryption, master key management, salted hashing and token
generation for configuration values stored at rest.
"""
from .version import __version__
from .vault import (
    CryptoService,
    VaultConfig,
    NotInitialized,
    DecryptionFailed,
    PersistenceFailure,
)

__all__ = (
    "__version__",
    "CryptoService",
    "VaultConfig",
    "NotInitialized",
    "DecryptionFailed",
    "PersistenceFailure",
)
