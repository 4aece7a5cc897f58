"""Shared fixtures for the vault test-suite."""
import pytest
import pytest_asyncio

from navigator_keyvault.vault import (
    CryptoService,
    KeyStore,
    MasterKeyManager,
    MemoryKeyStore,
    VaultConfig,
)


class FlakyKeyStore(KeyStore):
    """MemoryKeyStore wrapper whose writes can be made to fail per key prefix."""

    def __init__(self):
        self.inner = MemoryKeyStore()
        self.fail_prefixes: set[str] = set()
        self.fail_reads = False

    async def get(self, key):
        if self.fail_reads:
            raise OSError("store unavailable")
        return await self.inner.get(key)

    async def upsert(self, key, value):
        if any(key.startswith(p) for p in self.fail_prefixes):
            raise OSError(f"write to {key} failed")
        await self.inner.upsert(key, value)

    async def scan(self, prefix):
        return await self.inner.scan(prefix)


@pytest.fixture
def config():
    """Fast KDF parameters for tests."""
    return VaultConfig(iterations=1000)


@pytest.fixture
def store():
    return MemoryKeyStore()


@pytest.fixture
def flaky_store():
    return FlakyKeyStore()


@pytest.fixture
def manager(store, config):
    return MasterKeyManager(store, config)


@pytest_asyncio.fixture
async def service(store, config):
    """An initialized CryptoService over an in-memory store."""
    svc = CryptoService(store, config)
    await svc.initialize()
    return svc
