"""
Fachada de control del motor de sincronización y del feed.

Es la única superficie que usa la capa de presentación (CLI, API o
dashboard): arranca/cancela sincronizaciones, consulta el estado,
genera feeds y lee/guarda la configuración.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from feedsync.core.config import get_environment_info
from feedsync.db.catalog_store import CatalogStore
from feedsync.db.shopify_client import MAX_PAGE_SIZE, RemoteCatalogClient
from feedsync.schemas.config_schemas import AppConfig, ConfigValidationResult
from feedsync.schemas.feed_schemas import ExportRecord, FeedFilters, FeedResult
from feedsync.schemas.sync_schemas import (
    ConnectionTestResult,
    ProductPage,
    SyncRun,
    SyncRunPage,
    SyncStatus,
    ValidationReport,
)
from feedsync.services.catalog_sync import SyncCoordinator
from feedsync.services.config_manager import ConfigManager, validate_config
from feedsync.services.feed import FeedAnalyticsEngine
from feedsync.utils.error_handler import ConfigurationException

logger = logging.getLogger(__name__)


class ControlSurface:
    """
    Punto de entrada asíncrono para todas las operaciones del sistema.

    Las credenciales guardadas en config.json tienen prioridad sobre las
    variables de entorno SHOPIFY_SHOP_URL / SHOPIFY_ACCESS_TOKEN.
    """

    def __init__(
        self,
        store: Optional[CatalogStore] = None,
        client: Optional[RemoteCatalogClient] = None,
        config_manager: Optional[ConfigManager] = None,
    ):
        self.store = store or CatalogStore()
        self.client = client or RemoteCatalogClient()
        self.config_manager = config_manager or ConfigManager()
        self.coordinator = SyncCoordinator(self.store, self.client)
        self.feed_engine: Optional[FeedAnalyticsEngine] = None
        self._initialized = False

    async def __aenter__(self) -> "ControlSurface":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def initialize(self) -> None:
        """Inicializa el almacén local y aplica la configuración guardada."""
        if self._initialized:
            return

        logger.info("🚀 Initializing control surface...")
        await self.store.initialize()
        self._apply_config(self.config_manager.get_config())
        self._initialized = True
        logger.info("✅ Control surface ready")

    async def close(self) -> None:
        await self.client.close()
        await self.store.close()
        self._initialized = False
        logger.info("👋 Control surface closed")

    def _apply_config(self, config: AppConfig) -> None:
        if config.shop_url or config.access_token:
            self.client.configure(
                config.shop_url or self.client.shop_url,
                config.access_token or self.client.access_token,
            )

        performance = config.performance
        if performance.batch_size is not None:
            self.client.page_size = min(performance.batch_size, MAX_PAGE_SIZE)
        if performance.rate_limit_delay_ms is not None:
            self.client.min_request_interval = performance.rate_limit_delay_ms / 1000
            self.client.current_request_interval = self.client.min_request_interval
        self.coordinator.max_retries = performance.max_retries

        self.feed_engine = FeedAnalyticsEngine(
            self.store,
            self.client,
            higher_variant_policy=config.labels.higher_variant_policy,
            currency=config.feed_settings.currency,
            image_size=config.feed_settings.image_size,
            max_products=config.feed_settings.max_products,
            adult_content=config.google_merchant.adult_content,
        )

    # === SYNC ===

    async def trigger_full_sync(self) -> SyncRun:
        return await self.coordinator.run_full()

    async def trigger_incremental_sync(self) -> SyncRun:
        return await self.coordinator.run_incremental()

    async def cancel_sync(self) -> bool:
        return await self.coordinator.cancel()

    async def get_sync_status(self) -> SyncStatus:
        return await self.coordinator.get_status()

    async def resync_products(self, product_ids: List[str]) -> Dict[str, int]:
        return await self.coordinator.resync_products(product_ids)

    async def get_logs(self, page: int = 1, limit: int = 50) -> SyncRunPage:
        return await self.store.list_sync_runs(page=page, limit=limit)

    async def validate(self) -> ValidationReport:
        return await self.coordinator.validate()

    async def cleanup(self, max_age_days: Optional[int] = None, include_synced: bool = False) -> int:
        return await self.coordinator.cleanup(max_age_days=max_age_days, include_synced=include_synced)

    async def export_sync_report(self) -> Dict[str, Any]:
        return await self.coordinator.export_sync_report()

    # === CATALOG ===

    async def get_products(self, page: int = 1, limit: int = 50, search: Optional[str] = None) -> ProductPage:
        return await self.store.query_products(page=page, limit=limit, search=search)

    async def get_statistics(self) -> Dict[str, Any]:
        return await self.store.statistics()

    # === FEED ===

    def _feed(self) -> FeedAnalyticsEngine:
        if self.feed_engine is None:
            raise ConfigurationException("Control surface not initialized. Call initialize() first.")
        return self.feed_engine

    async def generate_feed(self, filters: Union[FeedFilters, Dict[str, Any], None] = None) -> FeedResult:
        """
        Genera el feed; sin filtros explícitos se usan los filtros por defecto de la configuración.
        """
        if filters is None:
            filters = self.config_manager.get_config().default_filters.model_dump(exclude_none=True)
        return await self._feed().generate_feed(filters)

    async def get_export_history(self, limit: int = 10) -> List[ExportRecord]:
        return await self._feed().get_export_history(limit=limit)

    def list_export_files(self) -> List[Dict[str, Any]]:
        return self._feed().list_export_files()

    def delete_export_file(self, filename: str) -> bool:
        return self._feed().delete_export_file(filename)

    # === CONFIGURATION ===

    async def get_config(self) -> AppConfig:
        return self.config_manager.get_config()

    async def save_config(self, update: Union[AppConfig, Dict[str, Any]]) -> AppConfig:
        """Guarda la configuración y la aplica al cliente y al generador del feed."""
        config = self.config_manager.save_config(update)
        self._apply_config(config)
        return config

    async def validate_config(self) -> ConfigValidationResult:
        return validate_config(self.config_manager.get_config())

    async def test_connection(self, domain: Optional[str] = None, token: Optional[str] = None) -> ConnectionTestResult:
        """
        Prueba credenciales sin modificar las que están en uso.

        Sin argumentos se prueban las credenciales actuales.
        """
        return await self.client.test_connection(domain or self.client.shop_url, token or self.client.access_token)

    def get_environment(self) -> Dict[str, Any]:
        return {**get_environment_info(), "shop_configured": self.client.is_configured}
