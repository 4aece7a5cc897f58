"""
Vault Key Rotation — Lineage records linking each master key to its predecessor.

One immutable ``key_rotation_<newKeyId>`` entry is written per rotation:
    {"previousKeyId": <old id>, "timestamp": <ISO-8601>}

Rotation never re-encrypts existing ciphertext. Callers that need it export
the old key before rotating, decrypt with it, and encrypt again with the new
one.

Security Note:
    Lineage entries hold key IDs only, never key material.
"""
import logging
from datetime import datetime

from .keystore import KeyStore
from .models import KeyRotationRecord

logger = logging.getLogger("navigator.keyvault")

ROTATION_PREFIX = "key_rotation_"


def rotation_key(new_key_id: str) -> str:
    """Store key holding the lineage entry for ``new_key_id``."""
    return f"{ROTATION_PREFIX}{new_key_id}"


async def record_rotation(store: KeyStore, record: KeyRotationRecord) -> None:
    """Append a lineage entry.

    Raises:
        Whatever the store raises; the caller decides whether it is fatal.
    """
    await store.upsert(
        rotation_key(record.new_key_id),
        {
            "previousKeyId": record.previous_key_id,
            "timestamp": record.rotated_at.isoformat(),
        },
    )
    logger.info(
        "Recorded key rotation %s -> %s",
        record.previous_key_id, record.new_key_id,
    )


async def list_rotations(store: KeyStore) -> list[KeyRotationRecord]:
    """Return all lineage entries ordered by rotation time.

    Entries that cannot be parsed are skipped and logged.
    """
    records = []
    for key, value in await store.scan(ROTATION_PREFIX):
        try:
            records.append(
                KeyRotationRecord(
                    new_key_id=key[len(ROTATION_PREFIX):],
                    previous_key_id=value.get("previousKeyId"),
                    rotated_at=datetime.fromisoformat(value["timestamp"]),
                )
            )
        except (AttributeError, KeyError, TypeError, ValueError) as err:
            logger.error("Skipping malformed rotation entry %s: %s", key, err)
    records.sort(key=lambda r: r.rotated_at)
    return records
