"""
Catalog Store - local persistence of the mirrored Shopify catalog.

This repository owns every persisted row: products, the single retained
variant and image per product, sync run logs and export history. All
writes are upserts keyed by the Shopify id and stamp ``updated_locally``
with an ISO-8601 UTC timestamp.
"""

import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from feedsync.db import queries
from feedsync.db.base import BaseRepository, log_operation, with_retry
from feedsync.schemas.catalog_schemas import ShopifyImage, ShopifyProduct, ShopifyVariant
from feedsync.schemas.feed_schemas import ExportRecord, FeedFilters
from feedsync.schemas.sync_schemas import Pagination, ProductPage, SyncRun, SyncRunPage
from feedsync.utils.error_handler import PersistenceException

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


class CatalogStore(BaseRepository):
    """
    Repository for the local catalog tables.
    """

    async def _create_schema(self) -> None:
        """Create tables and indexes idempotently."""
        statements = [(sql, {}) for sql in queries.CREATE_TABLE_STATEMENTS + queries.CREATE_INDEX_STATEMENTS]
        await self.execute_in_transaction(statements)

    async def _verify_table_access(self) -> None:
        for table in queries.REQUIRED_TABLES:
            if await self.fetch_one(queries.TABLE_EXISTS_QUERY, {"name": table}) is None:
                raise PersistenceException(message=f"Required table '{table}' is missing", operation="verify_tables")

    async def close(self) -> None:
        """Close the repository and dispose the engine it was using."""
        await super().close()
        await self.conn_db.close()

    # === UPSERTS ===

    async def upsert_product(self, product: ShopifyProduct, sync_status: str = "pending") -> None:
        """
        Insert or update a product by its Shopify id.

        Args:
            product: Normalized Shopify product
            sync_status: Value stored in sync_status ('pending' until fully processed)
        """
        params = product.to_row(sync_status)
        params["now"] = _now_iso()
        await self.execute_query_with_commit(queries.UPSERT_PRODUCT, params)

    async def upsert_variant(self, variant: ShopifyVariant, product_id: str) -> None:
        """
        Insert or update the retained variant of a product.

        Any other variant stored for the same product is removed in the same
        transaction, so at most one variant per product is ever persisted.
        """
        params = variant.to_row(product_id)
        params["now"] = _now_iso()
        await self.execute_in_transaction(
            [
                (queries.DELETE_SIBLING_VARIANTS, {"product_id": product_id, "shopify_id": params["shopify_id"]}),
                (queries.UPSERT_VARIANT, params),
            ]
        )

    async def upsert_image(self, image: ShopifyImage, product_id: str) -> None:
        """Insert or update the retained image of a product, replacing any previous one."""
        params = image.to_row(product_id)
        params["now"] = _now_iso()
        await self.execute_in_transaction(
            [
                (queries.DELETE_SIBLING_IMAGES, {"product_id": product_id, "shopify_id": params["shopify_id"]}),
                (queries.UPSERT_IMAGE, params),
            ]
        )

    async def mark_product_synced(self, product_id: str) -> None:
        await self.execute_query_with_commit(queries.MARK_PRODUCT_SYNCED, {"shopify_id": product_id, "now": _now_iso()})

    async def product_exists(self, product_id: str) -> bool:
        return await self.fetch_one(queries.PRODUCT_EXISTS, {"shopify_id": product_id}) is not None

    # === READS ===

    @log_operation()
    async def query_feed_rows(self, filters: Optional[FeedFilters] = None) -> List[Dict[str, Any]]:
        """
        Get one row per active product joined to its lowest positive-priced variant.

        Ties on price are broken by the lowest local variant id. The retained
        image is left-joined, so products without images are still returned.

        Args:
            filters: Optional vendor / product_type / min_price / max_price filters

        Returns:
            List[Dict]: Feed rows ordered by title, then product id
        """
        filters = filters or FeedFilters()
        conditions = []
        params: Dict[str, Any] = {}

        if filters.vendor:
            conditions.append("p.vendor = :vendor")
            params["vendor"] = filters.vendor
        if filters.product_type:
            conditions.append("p.product_type = :product_type")
            params["product_type"] = filters.product_type
        if filters.min_price is not None:
            conditions.append("rv.price >= :min_price")
            params["min_price"] = filters.min_price
        if filters.max_price is not None:
            conditions.append("rv.price <= :max_price")
            params["max_price"] = filters.max_price

        clause = "".join(f" AND {condition}" for condition in conditions)
        rows = await self.fetch_all(queries.FEED_ROWS_QUERY_TEMPLATE.format(conditions=clause), params)
        logger.info(f"📦 Feed query returned {len(rows)} rows")
        return rows

    async def query_products(self, page: int = 1, limit: int = 50, search: Optional[str] = None) -> ProductPage:
        """
        Paginated product listing with per-product variant aggregates.

        Args:
            page: Page number (1-based)
            limit: Page size
            search: Case-insensitive substring matched against title, vendor and tags

        Returns:
            ProductPage: Rows plus pagination info
        """
        page = max(page, 1)
        limit = max(limit, 1)
        search_params: Dict[str, Any] = {}
        search_clause = ""
        if search:
            search_clause = queries.PRODUCTS_SEARCH_CLAUSE
            search_params["search"] = f"%{search.lower()}%"

        rows = await self.fetch_all(
            queries.PRODUCTS_PAGE_QUERY_TEMPLATE.format(search=search_clause),
            {**search_params, "limit": limit, "offset": (page - 1) * limit},
        )
        total = await self.fetch_scalar(queries.PRODUCTS_COUNT_QUERY_TEMPLATE.format(search=search_clause), search_params)

        return ProductPage(products=rows, pagination=_pagination(page, limit, total or 0))

    async def statistics(self) -> Dict[str, Any]:
        """
        Scalar aggregates over the local catalog.

        Returns:
            Dict: total_products, total_variants, published_products,
            avg_price, total_inventory and last_sync_time
        """
        row = await self.fetch_one(queries.STATISTICS_QUERY) or {}
        return {
            "total_products": row.get("total_products") or 0,
            "total_variants": row.get("total_variants") or 0,
            "published_products": row.get("published_products") or 0,
            "avg_price": round(row["avg_price"], 2) if row.get("avg_price") is not None else 0.0,
            "total_inventory": row.get("total_inventory") or 0,
            "last_sync_time": row.get("last_sync_time"),
        }

    async def get_last_sync_time(self) -> Optional[str]:
        """Watermark for incremental syncs: newest remote updated_at among synced products."""
        return await self.fetch_scalar(queries.LAST_SYNC_WATERMARK_QUERY)

    # === SYNC LOGS ===

    @with_retry(max_attempts=3, delay=0.5)
    async def append_sync_run(self, run: SyncRun) -> None:
        """Append a terminal sync run to the log."""
        params = run.to_row()
        params["created_at"] = _now_iso()
        await self.execute_query_with_commit(queries.INSERT_SYNC_LOG, params)
        logger.info(f"📝 Sync log recorded: {run.sync_type.value} -> {run.status.value}")

    async def list_sync_runs(self, page: int = 1, limit: int = 50) -> SyncRunPage:
        page = max(page, 1)
        limit = max(limit, 1)
        rows = await self.fetch_all(queries.SYNC_LOGS_PAGE_QUERY, {"limit": limit, "offset": (page - 1) * limit})
        total = await self.fetch_scalar(queries.SYNC_LOGS_COUNT_QUERY)
        return SyncRunPage(
            logs=[SyncRun.model_validate(row) for row in rows],
            pagination=_pagination(page, limit, total or 0),
        )

    async def list_recent_sync_runs(self, limit: int = 10) -> List[SyncRun]:
        return (await self.list_sync_runs(page=1, limit=limit)).logs

    async def get_last_sync_run(self) -> Optional[SyncRun]:
        runs = await self.list_recent_sync_runs(limit=1)
        return runs[0] if runs else None

    # === EXPORT HISTORY ===

    async def append_export_record(self, record: ExportRecord) -> None:
        await self.execute_query_with_commit(
            queries.INSERT_EXPORT_RECORD,
            {
                "filename": record.filename,
                "products_count": record.products_count,
                "file_size": record.file_size,
                "filters": json.dumps(record.filters),
                "status": record.status,
                "created_at": record.created_at.isoformat(),
            },
        )

    async def list_export_history(self, limit: int = 50) -> List[ExportRecord]:
        rows = await self.fetch_all(queries.EXPORT_HISTORY_QUERY, {"limit": limit})
        records = []
        for row in rows:
            row["filters"] = json.loads(row["filters"]) if row.get("filters") else {}
            records.append(ExportRecord.model_validate(row))
        return records

    # === CLEANUP ===

    @log_operation()
    async def delete_stale_products(self, cutoff: datetime, include_synced: bool = False) -> Dict[str, int]:
        """
        Delete products not touched locally since ``cutoff``, then orphaned rows.

        By default only products whose sync never completed are removed;
        ``include_synced`` also ages out stale synced products.

        Returns:
            Dict: Deleted row counts for products, variants and images
        """
        product_query = queries.DELETE_STALE_PRODUCTS if include_synced else queries.DELETE_STALE_UNSYNCED_PRODUCTS
        products, variants, images = await self.execute_in_transaction(
            [
                (product_query, {"cutoff": cutoff.astimezone(timezone.utc).isoformat()}),
                (queries.DELETE_ORPHAN_VARIANTS, {}),
                (queries.DELETE_ORPHAN_IMAGES, {}),
            ]
        )
        return {"products": products, "variants": variants, "images": images}

    # === VALIDATION SCANS ===

    async def scan_products_without_variants(self) -> List[Dict[str, Any]]:
        return await self.fetch_all(queries.PRODUCTS_WITHOUT_VARIANTS_QUERY)

    async def scan_invalid_price_variants(self) -> List[Dict[str, Any]]:
        return await self.fetch_all(queries.INVALID_PRICE_VARIANTS_QUERY)

    async def scan_products_without_images(self) -> List[Dict[str, Any]]:
        return await self.fetch_all(queries.PRODUCTS_WITHOUT_IMAGES_QUERY)

    async def scan_duplicate_skus(self) -> List[Dict[str, Any]]:
        return await self.fetch_all(queries.DUPLICATE_SKUS_QUERY)
