"""
Vault Models — Immutable records shared by the vault components.

Security Note:
    MasterKeyRecord hides its key material from repr(); use info() whenever
    a key needs to be reported outside the vault.
"""
import base64
import binascii
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyInfo(BaseModel):
    """Public, material-free description of the current master key."""

    id: str
    created_at: datetime

    model_config = {"frozen": True}


class MasterKeyRecord(BaseModel):
    """The active master key. Replaced on rotation, never mutated."""

    key_id: str
    key: bytes = Field(repr=False)
    created_at: datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}

    def info(self) -> KeyInfo:
        return KeyInfo(id=self.key_id, created_at=self.created_at)

    def to_store(self) -> dict:
        """Serialize to the persisted ``master_key`` value."""
        return {
            "id": self.key_id,
            "key": base64.b64encode(self.key).decode("ascii"),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_store(cls, data: dict, min_length: int = 32) -> "MasterKeyRecord":
        """Build a record from a persisted ``master_key`` value.

        Args:
            data: Stored mapping with ``id``, ``key`` and optional ``createdAt``.
            min_length: Minimum accepted key length in bytes.

        Raises:
            ValueError: If the record is incomplete or the key is too short.
        """
        if not isinstance(data, dict) or not data.get("id") or not data.get("key"):
            raise ValueError("master key record is incomplete")
        try:
            key = base64.b64decode(data["key"], validate=True)
        except (binascii.Error, TypeError) as err:
            raise ValueError("master key is not valid base64") from err
        if len(key) < min_length:
            raise ValueError(
                f"master key must be at least {min_length} bytes, got {len(key)}"
            )
        created = data.get("createdAt")
        if created is None:
            created_at = utcnow()
        elif isinstance(created, str):
            created_at = datetime.fromisoformat(created)
        else:
            raise ValueError("master key createdAt must be an ISO-8601 string")
        return cls(key_id=str(data["id"]), key=key, created_at=created_at)


class KeyRotationRecord(BaseModel):
    """Immutable lineage entry, one per rotation."""

    new_key_id: str
    previous_key_id: Optional[str]
    rotated_at: datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}


class SensitiveResult(BaseModel):
    """Outcome of encrypt_if_sensitive."""

    value: str
    encrypted: bool

    model_config = {"frozen": True}


class PasswordStrength(BaseModel):
    """Heuristic password strength report."""

    is_strong: bool
    score: int = Field(ge=0, le=5)
    feedback: list[str]

    model_config = {"frozen": True}
