"""
MasterKeyManager — Owns the master key: load-or-generate, rotate, backup/restore.

Persisted state (through a KeyStore):
- ``master_key`` -> {"id", "key" (base64), "createdAt"}; overwritten on rotation
- ``key_rotation_<newKeyId>`` -> lineage entry (see ``key_rotation``)

Backup blob (JSON):
    {"salt", "iv", "authTag", "data", "iterations", "algorithm", "digest"}
``data`` decrypts with a PBKDF2 key derived from the export password.

State machine:
    Uninitialized -> Initialized (initialize or a successful import_key);
    rotate_key and import_key keep it Initialized with a new key.

Concurrency:
    The active key is a frozen MasterKeyRecord. Rotation and import build a
    new record, persist it, then swap the reference in a single assignment,
    so callers that read ``current()`` once see one consistent key.

Security Note:
    Never log key material, secrets or passwords. Only log key IDs.
"""
import os
import uuid
import asyncio
import secrets
import logging
from typing import Optional

import orjson
from cryptography.exceptions import InvalidTag

from .config import (
    VaultConfig,
    algorithm_backend,
    generate_master_key,
    load_master_secret,
)
from .crypto import (
    NONCE_SIZE,
    aead_encrypt,
    aead_decrypt,
    b64encode,
    b64decode,
    derive_key,
)
from .exceptions import ImportFailure, NotInitialized, PersistenceFailure
from .keystore import KeyStore
from .key_rotation import list_rotations, record_rotation
from .models import KeyInfo, KeyRotationRecord, MasterKeyRecord

logger = logging.getLogger("navigator.keyvault")

MASTER_KEY = "master_key"
MIN_KEY_LENGTH = 32
# upper bound on KDF work an untrusted backup blob may request
MAX_EXPORT_ITERATIONS = 10_000_000

_BLOB_FIELDS = ("salt", "iv", "authTag", "data", "iterations", "algorithm")


class MasterKeyManager:
    """Master key lifecycle bound to one KeyStore.

    Each instance holds its own key; there is no process-wide singleton.

    Args:
        store: Durable key/value store.
        config: Cryptographic parameters.
    """

    def __init__(self, store: KeyStore, config: Optional[VaultConfig] = None):
        self._store = store
        self._config = config or VaultConfig()
        self._current: Optional[MasterKeyRecord] = None
        self._lock: Optional[asyncio.Lock] = None

    @property
    def config(self) -> VaultConfig:
        return self._config

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self._current is not None

    def current(self) -> MasterKeyRecord:
        """Return the active key handle.

        Raises:
            NotInitialized: If no key has been loaded yet.
        """
        record = self._current
        if record is None:
            raise NotInitialized()
        return record

    def get_key_info(self) -> KeyInfo:
        return self.current().info()

    def generate_key(self) -> str:
        """Random base64 key of the configured length, not stored anywhere."""
        return generate_master_key(self._config.key_length)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _new_record(self, secret: Optional[str] = None) -> MasterKeyRecord:
        cfg = self._config
        if secret:
            salt = secrets.token_bytes(cfg.salt_length)
            key = derive_key(secret, salt, cfg.iterations, cfg.key_length, cfg.digest)
        else:
            key = secrets.token_bytes(cfg.key_length)
        return MasterKeyRecord(key_id=str(uuid.uuid4()), key=key)

    def _guard(self) -> asyncio.Lock:
        # created on first use so it binds to the loop that runs the lifecycle
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def _persist(self, record: MasterKeyRecord) -> None:
        try:
            await self._store.upsert(MASTER_KEY, record.to_store())
        except Exception as err:
            logger.error("Failed to store master key %s: %s", record.key_id, err)
            raise PersistenceFailure(
                f"Failed to store master key {record.key_id}"
            ) from err

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, secret: Optional[str] = None) -> KeyInfo:
        """Load the stored master key, or generate and persist a new one.

        Args:
            secret: Optional secret to derive a new key from, falling back
                to VAULT_MASTER_SECRET. Ignored when a key is already stored.

        Returns:
            Info about the active key.

        Raises:
            PersistenceFailure: If the store cannot be read or written, or
                holds a corrupt master key record.
        """
        async with self._guard():
            try:
                stored = await self._store.get(MASTER_KEY)
            except Exception as err:
                logger.error("Failed to load master key: %s", err)
                raise PersistenceFailure("Failed to load master key") from err

            if stored is not None:
                try:
                    record = MasterKeyRecord.from_store(stored, MIN_KEY_LENGTH)
                except (TypeError, ValueError) as err:
                    raise PersistenceFailure(
                        "Stored master key record is corrupt"
                    ) from err
                logger.info("Loaded master key %s", record.key_id)
            else:
                secret = secret or load_master_secret()
                record = self._new_record(secret)
                await self._persist(record)
                logger.info(
                    "Generated master key %s (%s)",
                    record.key_id, "derived" if secret else "random",
                )
            self._current = record
        return record.info()

    async def rotate_key(self, new_secret: Optional[str] = None) -> KeyInfo:
        """Replace the master key and record the lineage.

        Existing ciphertext is not touched; it stays bound to the old key.

        Raises:
            NotInitialized: If called before initialize().
            PersistenceFailure: If the new key cannot be stored. The old key
                stays active.
        """
        async with self._guard():
            previous = self.current()
            record = self._new_record(new_secret)
            await self._persist(record)
            self._current = record

        lineage = KeyRotationRecord(
            new_key_id=record.key_id,
            previous_key_id=previous.key_id,
            rotated_at=record.created_at,
        )
        try:
            await record_rotation(self._store, lineage)
        except Exception as err:
            logger.warning(
                "Failed to record key rotation %s -> %s: %s",
                previous.key_id, record.key_id, err,
            )
        logger.info("Rotated master key %s -> %s", previous.key_id, record.key_id)
        return record.info()

    async def list_key_rotations(self) -> list[KeyRotationRecord]:
        """Return the rotation lineage, oldest first.

        Raises:
            NotInitialized: If called before initialize().
            PersistenceFailure: If the store cannot be scanned.
        """
        self.current()
        try:
            return await list_rotations(self._store)
        except Exception as err:
            raise PersistenceFailure("Failed to list key rotations") from err

    # ------------------------------------------------------------------
    # Backup / restore
    # ------------------------------------------------------------------

    def export_key(self, password: str) -> str:
        """Export the active key wrapped with a password-derived key.

        Raises:
            NotInitialized: If called before initialize().
            ValueError: If the password is empty.
        """
        if not password:
            raise ValueError("Export password cannot be empty")
        record = self.current()
        cfg = self._config
        payload = orjson.dumps({
            **record.to_store(),
            "algorithm": cfg.algorithm,
        })
        salt = secrets.token_bytes(cfg.salt_length)
        wrapping = derive_key(password, salt, cfg.iterations, 32, cfg.digest)
        nonce = os.urandom(NONCE_SIZE)
        data, tag = aead_encrypt(wrapping, payload, nonce, cfg.cipher_backend)
        logger.info("Exported master key %s", record.key_id)
        return orjson.dumps({
            "salt": b64encode(salt),
            "iv": b64encode(nonce),
            "authTag": b64encode(tag),
            "data": b64encode(data),
            "iterations": cfg.iterations,
            "algorithm": cfg.algorithm,
            "digest": cfg.digest,
        }).decode("utf-8")

    def _unwrap(self, blob: str, password: str) -> MasterKeyRecord:
        """Decrypt and validate a backup blob.

        Raises:
            ImportFailure: On any problem with the blob or password.
        """
        try:
            parsed = orjson.loads(blob)
            if not isinstance(parsed, dict) or any(f not in parsed for f in _BLOB_FIELDS):
                raise ImportFailure("Backup blob is incomplete")
            algorithm = parsed["algorithm"]
            if algorithm != self._config.algorithm:
                raise ImportFailure(
                    f"Backup algorithm {algorithm} does not match {self._config.algorithm}"
                )
            backend = algorithm_backend(algorithm)
            iterations = parsed["iterations"]
            if not isinstance(iterations, int) or isinstance(iterations, bool) \
                    or not 0 < iterations <= MAX_EXPORT_ITERATIONS:
                raise ImportFailure("Backup blob has invalid iterations")
            digest = parsed.get("digest", "sha512")
            wrapping = derive_key(
                password, b64decode(parsed["salt"]), iterations, 32, digest
            )
            payload = aead_decrypt(
                wrapping,
                b64decode(parsed["data"]),
                b64decode(parsed["iv"]),
                b64decode(parsed["authTag"]),
                backend,
            )
            inner = orjson.loads(payload)
            if inner.get("algorithm", algorithm) != algorithm:
                raise ImportFailure("Backup payload algorithm mismatch")
            return MasterKeyRecord.from_store(inner, MIN_KEY_LENGTH)
        except ImportFailure:
            raise
        except InvalidTag as err:
            raise ImportFailure("Wrong password or corrupt backup") from err
        except (AttributeError, KeyError, TypeError, ValueError) as err:
            raise ImportFailure("Malformed backup blob") from err

    async def import_key(self, blob: str, password: str) -> bool:
        """Restore a key exported with :meth:`export_key`.

        The restored key is persisted first and only then made active; on
        any failure the current key and the store are left as they were.

        Returns:
            True on success, False otherwise. Never raises.
        """
        try:
            record = self._unwrap(blob, password)
        except ImportFailure as err:
            logger.warning("Key import rejected: %s", err)
            return False
        async with self._guard():
            try:
                await self._persist(record)
            except PersistenceFailure:
                return False
            self._current = record
        logger.info("Imported master key %s", record.key_id)
        return True
