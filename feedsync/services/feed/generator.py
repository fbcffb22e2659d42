import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from feedsync.core.config import get_settings
from feedsync.core.logging_config import LogContext
from feedsync.db.catalog_store import CatalogStore
from feedsync.db.shopify_client import RemoteCatalogClient
from feedsync.schemas.feed_schemas import ExportRecord, FeedFilters, FeedResult
from feedsync.services.feed.analytics import analyze_feed_rows
from feedsync.services.feed.excel_writer import FeedWorkbookWriter
from feedsync.services.feed.formatter import FEED_COLUMNS, format_feed_row
from feedsync.services.feed.labels import LABEL_SCHEME_VERSION, derive_labels, label_statistics
from feedsync.utils.error_handler import ConfigurationException, ValidationException

logger = logging.getLogger(__name__)

FEED_FILE_EXTENSION = ".xlsx"
REQUIRED_FEED_FIELDS = ("title", "link", "image_link", "price")


class FeedAnalyticsEngine:
    """
    Generates the Google Merchant feed workbook from the local catalog.

    Rows are analysed as a whole (price groups, cohorts, inventory
    quartiles) before any label is derived, so the same catalog and filters
    always produce the same labels.
    """

    def __init__(
        self,
        store: CatalogStore,
        client: RemoteCatalogClient,
        exports_dir: Optional[str] = None,
        batch_size: Optional[int] = None,
        higher_variant_policy: Optional[str] = None,
        currency: str = "USD",
        image_size: str = "master",
        max_products: Optional[int] = None,
        adult_content: bool = False,
    ):
        settings = get_settings()
        self.store = store
        self.client = client
        self.exports_dir = Path(exports_dir or settings.EXPORTS_DIR)
        self.batch_size = batch_size or settings.FEED_BATCH_SIZE
        self.higher_variant_policy = higher_variant_policy or settings.HIGHER_VARIANT_LABEL_POLICY
        self.currency = currency
        self.image_size = image_size
        self.max_products = max_products
        self.adult_content = adult_content
        self.download_url_prefix = settings.DOWNLOAD_URL_PREFIX.rstrip("/")
        self.validate_before_export = settings.FEED_VALIDATE_BEFORE_EXPORT

    @staticmethod
    def _parse_filters(filters: Union[FeedFilters, Dict[str, Any], None]) -> FeedFilters:
        if isinstance(filters, FeedFilters):
            return filters
        try:
            return FeedFilters.model_validate(filters or {})
        except ValidationError as e:
            raise ValidationException(
                f"Invalid feed filters: {e.errors()[0]['msg']}",
                field="filters",
                invalid_value=filters,
                expected_format="vendor, product_type, min_price, max_price",
            ) from e

    def _image_url(self, src: Optional[str]) -> str:
        return self.client.get_image_url(src, self.image_size)

    @staticmethod
    def build_filename(row_count: int, today: Optional[datetime] = None) -> str:
        today = today or datetime.now(timezone.utc)
        return f"google_merchant_feed_{today:%Y-%m-%d}_{row_count}_products{FEED_FILE_EXTENSION}"

    async def generate_feed(self, filters: Union[FeedFilters, Dict[str, Any], None] = None) -> FeedResult:
        """
        Genera el feed de Google Merchant en formato xlsx.

        Args:
            filters: Filtros opcionales (vendor, product_type, min_price, max_price)

        Returns:
            FeedResult: Archivo generado, número de filas y estadísticas de etiquetas

        Raises:
            ValidationException: Filtros inválidos o ningún producto coincide
            ConfigurationException: No hay dominio de tienda configurado
        """
        feed_filters = self._parse_filters(filters)

        if not self.client.shop_url:
            raise ConfigurationException(
                "Shop domain is required to build product links", missing_fields=["shop_url"]
            )

        with LogContext(operation="feed_generation"):
            logger.info(f"📊 Generating Google Merchant feed with filters: {feed_filters.model_dump(exclude_none=True)}")

            rows = await self.store.query_feed_rows(feed_filters)
            if not rows:
                raise ValidationException(
                    "No products found matching the specified filters",
                    field="filters",
                    invalid_value=feed_filters.model_dump(exclude_none=True),
                )

            if self.max_products and len(rows) > self.max_products:
                logger.warning(f"⚠️ {len(rows)} products match, feed limited to the first {self.max_products}")
                rows = rows[: self.max_products]

            analysis = analyze_feed_rows(rows)
            labels = [derive_labels(row, analysis, self.higher_variant_policy) for row in rows]
            feed_rows = [
                format_feed_row(
                    row,
                    row_labels,
                    self.client.format_product_url,
                    self.currency,
                    image_url=self._image_url,
                    adult=self.adult_content,
                )
                for row, row_labels in zip(rows, labels)
            ]

            if self.validate_before_export:
                self.validate_feed_rows(feed_rows)

            filename = self.build_filename(len(feed_rows))
            filepath = self.exports_dir / filename
            writer = FeedWorkbookWriter(FEED_COLUMNS, batch_size=self.batch_size)
            file_size = await asyncio.to_thread(writer.write, feed_rows, filepath)

            await self.store.append_export_record(
                ExportRecord(
                    filename=filename,
                    products_count=len(feed_rows),
                    file_size=file_size,
                    filters=feed_filters.model_dump(exclude_none=True),
                )
            )

            result = FeedResult(
                filename=filename,
                filepath=str(filepath),
                row_count=len(feed_rows),
                file_size_kb=round(file_size / 1024),
                download_url=f"{self.download_url_prefix}/{filename}",
                label_stats=label_statistics(labels),
                label_scheme_version=LABEL_SCHEME_VERSION,
            )

        logger.info(f"✅ Feed generated: {filename} ({result.row_count} products, {result.file_size_kb} KB)")
        return result

    @staticmethod
    def validate_feed_rows(feed_rows: List[Dict[str, Any]]) -> Dict[str, int]:
        """
        Cuenta filas sin los campos que Google Merchant exige.

        No bloquea la exportación; sólo deja constancia en el log.

        Returns:
            Dict: campo -> número de filas sin valor
        """
        missing = {field: 0 for field in REQUIRED_FEED_FIELDS}
        for row in feed_rows:
            for field in REQUIRED_FEED_FIELDS:
                if not row.get(field):
                    missing[field] += 1

        missing = {field: count for field, count in missing.items() if count}
        if missing:
            logger.warning(f"⚠️ Feed rows missing required fields: {missing}")
        return missing

    # === EXPORT FILES ===

    async def get_export_history(self, limit: int = 10) -> List[ExportRecord]:
        return await self.store.list_export_history(limit=limit)

    def list_export_files(self) -> List[Dict[str, Any]]:
        """Feed workbooks in the exports directory, newest first."""
        if not self.exports_dir.exists():
            return []

        files = []
        for path in self.exports_dir.iterdir():
            if not path.is_file() or path.suffix != FEED_FILE_EXTENSION:
                continue
            stat = path.stat()
            files.append(
                {
                    "filename": path.name,
                    "size": stat.st_size,
                    "size_kb": round(stat.st_size / 1024),
                    "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                }
            )

        files.sort(key=lambda item: item["modified"], reverse=True)
        return files

    def delete_export_file(self, filename: str) -> bool:
        """
        Delete one workbook from the exports directory.

        Returns:
            bool: False if the file does not exist

        Raises:
            ValidationException: If ``filename`` points outside the exports directory
        """
        exports_dir = self.exports_dir.resolve()
        target = (exports_dir / filename).resolve()
        if target.parent != exports_dir or target.suffix != FEED_FILE_EXTENSION:
            raise ValidationException(
                "Invalid export filename", field="filename", invalid_value=filename, expected_format="*.xlsx"
            )

        if not target.is_file():
            logger.warning(f"Export file not found: {filename}")
            return False

        target.unlink()
        logger.info(f"🗑️ Deleted export file: {filename}")
        return True
