"""
Vault Exceptions.

Security Note:
    Messages must never carry key material, plaintext or KDF parameters.
    Callers translate these into generic integrity/service errors.
"""


class VaultError(Exception):
    """Base exception for all vault errors."""


class NotInitialized(VaultError):
    """Raised when an operation needs a master key before initialize()."""

    def __init__(self, message: str = None):
        super().__init__(
            message or "Vault is not initialized. Call initialize() first."
        )


class DecryptionFailed(VaultError):
    """Raised on malformed envelopes, tag mismatch or unavailable key."""


class PersistenceFailure(VaultError):
    """Raised when the key store cannot read or durably write key material."""


class ImportFailure(VaultError):
    """Raised internally when a key backup cannot be restored.

    ``import_key`` converts it into a ``False`` result.
    """
