"""
End-to-end tests for the CryptoService facade.
"""
import asyncio

import pytest

from navigator_keyvault import (
    CryptoService,
    DecryptionFailed,
    NotInitialized,
)
from navigator_keyvault.vault import MemoryKeyStore, SensitivityClassifier


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_uninitialized_operations_fail(self, store, config):
        service = CryptoService(store, config)
        assert service.is_initialized() is False
        with pytest.raises(NotInitialized):
            service.encrypt("value")
        with pytest.raises(NotInitialized):
            service.decrypt("{}")
        with pytest.raises(NotInitialized):
            service.get_key_info()
        with pytest.raises(NotInitialized):
            await service.rotate_key()
        with pytest.raises(NotInitialized):
            service.encrypt_batch(["a"])

    @pytest.mark.asyncio
    async def test_hash_and_tokens_do_not_need_a_key(self, store, config):
        service = CryptoService(store, config)
        assert service.verify("pw", service.hash("pw"))
        assert service.generate_token()
        assert service.generate_api_key().startswith("ak_")
        assert service.is_sensitive_value("API_KEY")

    @pytest.mark.asyncio
    async def test_initialize(self, service):
        assert service.is_initialized() is True
        assert service.get_key_info().id


class TestEncryption:

    @pytest.mark.asyncio
    async def test_round_trip(self, service):
        assert service.decrypt(service.encrypt("value")) == "value"

    @pytest.mark.asyncio
    async def test_ciphertext_after_rotation(self, service):
        envelope = service.encrypt("value")
        await service.rotate_key()
        with pytest.raises(DecryptionFailed):
            service.decrypt(envelope)

    @pytest.mark.asyncio
    async def test_caller_driven_reencryption(self, service, config):
        """Export before rotating, then move values to the new key."""
        envelopes = service.encrypt_batch(["a", "b"])
        backup = service.export_key("backup-pw")
        await service.rotate_key()

        old = CryptoService(MemoryKeyStore(), config)
        assert await old.import_key(backup, "backup-pw")
        moved = service.encrypt_batch(r.value for r in old.decrypt_batch(envelopes))
        assert [r.value for r in service.decrypt_batch(moved)] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_concurrent_rotation_and_encryption(self, service):
        async def worker():
            for _ in range(50):
                envelope = service.encrypt("value")
                assert service.decrypt(envelope) == "value"
                await asyncio.sleep(0)

        async def rotator():
            for _ in range(5):
                await service.rotate_key()
                await asyncio.sleep(0)

        await asyncio.gather(worker(), worker(), rotator())
        assert len(await service.list_key_rotations()) == 5


class TestHashing:

    @pytest.mark.asyncio
    async def test_hash_verify(self, service):
        hashed = service.hash("p")
        assert service.verify("p", hashed) is True
        assert service.verify("p2", hashed) is False

    @pytest.mark.asyncio
    async def test_secure_hash(self, service):
        assert service.verify("ak_x", service.secure_hash("ak_x"))

    @pytest.mark.asyncio
    async def test_deterministic_hash(self, service):
        assert service.deterministic_hash("x") == service.deterministic_hash("x")

    @pytest.mark.asyncio
    async def test_password_strength(self, service):
        assert service.validate_password_strength("Tr0ub4dor&3xyz!").is_strong


class TestEncryptIfSensitive:

    @pytest.mark.asyncio
    async def test_sensitive_value_is_encrypted(self, service):
        result = service.encrypt_if_sensitive("my_api_key_value")
        assert result.encrypted is True
        assert result.value != "my_api_key_value"
        assert service.decrypt(result.value) == "my_api_key_value"

    @pytest.mark.asyncio
    async def test_plain_value_passes_through(self, service):
        result = service.encrypt_if_sensitive("dark")
        assert result.encrypted is False
        assert result.value == "dark"

    @pytest.mark.asyncio
    async def test_custom_patterns(self, service):
        result = service.encrypt_if_sensitive("dark", [r"^dark$"])
        assert result.encrypted is True

    @pytest.mark.asyncio
    async def test_custom_classifier(self, store, config):
        service = CryptoService(store, config, classifier=SensitivityClassifier([r"dsn"]))
        await service.initialize()
        assert service.encrypt_if_sensitive("DATABASE_DSN").encrypted is True
        assert service.encrypt_if_sensitive("API_KEY").encrypted is False

    @pytest.mark.asyncio
    async def test_plain_value_needs_no_key(self, store, config):
        service = CryptoService(store, config)
        assert service.encrypt_if_sensitive("dark").encrypted is False
        with pytest.raises(NotInitialized):
            service.encrypt_if_sensitive("PASSWORD")


class TestKeyManagementSurface:

    @pytest.mark.asyncio
    async def test_rotation_lineage(self, service):
        old = service.get_key_info()
        new = await service.rotate_key()
        rotations = await service.list_key_rotations()
        assert rotations[-1].previous_key_id == old.id
        assert rotations[-1].new_key_id == new.id

    @pytest.mark.asyncio
    async def test_export_import(self, service):
        blob = service.export_key("pw")
        await service.rotate_key()
        assert await service.import_key(blob, "wrong") is False
        assert await service.import_key(blob, "pw") is True
        assert service.decrypt(service.encrypt("v")) == "v"

    @pytest.mark.asyncio
    async def test_generate_key(self, service):
        assert service.generate_key() != service.generate_key()
