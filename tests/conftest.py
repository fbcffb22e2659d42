"""Fixtures compartidos: configuración aislada y base SQLite temporal."""

import pytest
import pytest_asyncio

from feedsync.core.config import get_settings, reload_settings
from feedsync.db.catalog_store import CatalogStore
from feedsync.db.connection import ConnDB

TEST_SHOP = "test-shop.myshopify.com"
TEST_TOKEN = "shpat_test_token_1234567890"


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Apunta base de datos, exports y config.json a un directorio temporal."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'settings.db'}")
    monkeypatch.setenv("EXPORTS_DIR", str(tmp_path / "exports"))
    monkeypatch.setenv("CONFIG_FILE_PATH", str(tmp_path / "data" / "config.json"))
    monkeypatch.setenv("SHOPIFY_SHOP_URL", TEST_SHOP)
    monkeypatch.setenv("SHOPIFY_ACCESS_TOKEN", TEST_TOKEN)
    monkeypatch.setenv("SHOPIFY_MIN_REQUEST_INTERVAL", "0")
    monkeypatch.setenv("SHOPIFY_RATE_LIMIT_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("RETRY_DELAY_SECONDS", "0")
    monkeypatch.setenv("HIGHER_VARIANT_LABEL_POLICY", "percentage")
    settings = reload_settings()
    yield settings
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def store(tmp_path):
    catalog_store = CatalogStore(ConnDB(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}"))
    await catalog_store.initialize()
    yield catalog_store
    await catalog_store.close()
