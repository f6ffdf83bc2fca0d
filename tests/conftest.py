"""Shared fixtures for Tax Track tests."""

import asyncio

import pytest
import structlog

from taxtrack.config import get_settings
from taxtrack.models.records import BasLabel, Category, Client, Provider
from taxtrack.security import EncryptionKey, FieldCipher, get_field_cipher
from taxtrack.services.storage import InMemoryAuditStorage, InMemoryTaxRecordStorage


TEST_KEY = "a" * 64


@pytest.fixture(autouse=True)
def clear_cached_settings():
    """Settings and the shared cipher are cached per process."""
    get_settings.cache_clear()
    get_field_cipher.cache_clear()
    yield
    get_settings.cache_clear()
    get_field_cipher.cache_clear()
    structlog.reset_defaults()


@pytest.fixture
def key() -> EncryptionKey:
    return EncryptionKey.from_hex(TEST_KEY)


@pytest.fixture
def cipher(key) -> FieldCipher:
    return FieldCipher(key)


@pytest.fixture
def storage(cipher) -> InMemoryTaxRecordStorage:
    return InMemoryTaxRecordStorage(cipher)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def software() -> Category:
    return Category(name="Software", bas_label=BasLabel.G11)


@pytest.fixture
def equipment() -> Category:
    return Category(name="Equipment", bas_label=BasLabel.G10)


@pytest.fixture
def other() -> Category:
    return Category(name="Other", bas_label=BasLabel.G11)


@pytest.fixture
def officeworks(equipment) -> Provider:
    return Provider(name="Officeworks", default_category_id=equipment.id)


@pytest.fixture
def github() -> Provider:
    return Provider(name="GitHub", is_international=True)


@pytest.fixture
def telstra() -> Provider:
    return Provider(name="Telstra")


@pytest.fixture
def client() -> Client:
    return Client(name="Acme Pty Ltd", abn="51 824 753 556")


@pytest.fixture
def seeded_storage(storage, software, equipment, other, officeworks, github, telstra, client):
    """Storage holding three categories, three providers and one client."""
    async def seed():
        for category in (software, equipment, other):
            await storage.save_category(category)
        for provider in (officeworks, github, telstra):
            await storage.save_provider(provider)
        await storage.save_client(client)

    asyncio.run(seed())
    return storage
