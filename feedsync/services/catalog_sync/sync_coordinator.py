import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from feedsync.core.config import get_settings
from feedsync.core.logging_config import LogContext
from feedsync.db.catalog_store import CatalogStore
from feedsync.db.shopify_client import RemoteCatalogClient
from feedsync.schemas.sync_schemas import (
    SyncRun,
    SyncRunStatus,
    SyncStatus,
    SyncType,
    ValidationIssue,
    ValidationReport,
)
from feedsync.services.catalog_sync.product_processor import ProcessOutcome, ProductProcessor
from feedsync.services.catalog_sync.progress_tracker import SyncProgressTracker
from feedsync.services.catalog_sync.report_generator import ReportGenerator
from feedsync.utils.error_handler import PersistenceException, SyncInProgressException, log_error
from feedsync.utils.retry_handler import batched, retry_bounded

logger = logging.getLogger(__name__)

CANCEL_MESSAGE = "Sync canceled by user"
VALIDATION_SAMPLE_SIZE = 10
RECENT_RUNS_IN_STATUS = 5
RECENT_RUNS_IN_REPORT = 20
RESYNC_BATCH_SIZE = 10
RESYNC = "resync"


class SyncCoordinator:
    """
    Orchestrates full and incremental catalog syncs.

    At most one run is active at a time. The current run is owned by this
    object and every transition of it happens under ``self._lock``.
    Products are processed strictly one after another; a failing product is
    counted and skipped without aborting the run.
    """

    def __init__(
        self,
        store: CatalogStore,
        client: RemoteCatalogClient,
        processor: Optional[ProductProcessor] = None,
    ):
        self.store = store
        self.client = client
        self.processor = processor or ProductProcessor(store)
        self.report_generator = ReportGenerator()
        self._lock = asyncio.Lock()
        self._current_run: Optional[SyncRun] = None
        self._resync_active = False
        # Intentos por producto en resync_products; None usa MAX_RETRIES
        self.max_retries: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self._current_run is not None or self._resync_active

    @property
    def current_run(self) -> Optional[SyncRun]:
        return self._current_run

    # === RUN LIFECYCLE ===

    def _ensure_idle(self) -> None:
        """Must be called while holding ``self._lock``."""
        if self._current_run is not None:
            raise SyncInProgressException(running_sync_type=self._current_run.sync_type.value)
        if self._resync_active:
            raise SyncInProgressException("Product re-sync in progress", running_sync_type=RESYNC)

    async def _start_run(self, sync_type: SyncType) -> SyncRun:
        async with self._lock:
            self._ensure_idle()
            run = SyncRun(sync_type=sync_type)
            self._current_run = run

        logger.info(f"🚀 Starting {sync_type.value} sync")
        return run

    async def _finish_run(self, run: SyncRun, status: SyncRunStatus, error_message: Optional[str] = None) -> bool:
        """
        Move the run to a terminal status, release the slot and append its log record.

        Returns:
            bool: False if the run was already terminal (e.g. canceled meanwhile)
        """
        async with self._lock:
            if run.is_terminal:
                return False
            run.finish(status, error_message)
            if self._current_run is run:
                self._current_run = None

        await self.store.append_sync_run(run)
        return True

    async def _release(self, run: SyncRun) -> None:
        async with self._lock:
            if self._current_run is run:
                self._current_run = None

    # === PUBLIC OPERATIONS ===

    async def run_full(self) -> SyncRun:
        """
        Pull the whole catalog and upsert every product.

        Returns:
            SyncRun: The terminal run record

        Raises:
            SyncInProgressException: If another sync is running
            AppException: Any run-level failure, after the run is recorded as failed
        """
        run = await self._start_run(SyncType.FULL)
        return await self._execute(run, self._fetch_full)

    async def run_incremental(self) -> SyncRun:
        """
        Pull only products updated since the last synced watermark.

        Without a watermark the run is performed as a full sync.
        """
        run = await self._start_run(SyncType.INCREMENTAL)
        return await self._execute(run, self._fetch_incremental)

    async def cancel(self) -> bool:
        """
        Cancel the current run cooperatively.

        The run is recorded as canceled immediately; the processing loop stops
        before its next product. Requests already in flight are not interrupted.

        Returns:
            bool: False when no sync is running
        """
        run = self._current_run
        if run is None:
            return False

        logger.info("🛑 Canceling current sync...")
        return await self._finish_run(run, SyncRunStatus.CANCELED, CANCEL_MESSAGE)

    # === EXECUTION ===

    async def _fetch_full(self, run: SyncRun) -> List[Dict[str, Any]]:
        total = await self.client.get_products_count()
        logger.info(f"Total products in Shopify: {total}")
        return await self.client.fetch_all_since()

    async def _fetch_incremental(self, run: SyncRun) -> List[Dict[str, Any]]:
        watermark = await self.store.get_last_sync_time()
        if not watermark:
            logger.info("No previous sync watermark found, performing full sync instead")
            run.sync_type = SyncType.FULL
            return await self._fetch_full(run)

        logger.info(f"Fetching products updated since {watermark}")
        return await self.client.fetch_updated_since(watermark)

    async def _execute(
        self, run: SyncRun, fetch: Callable[[SyncRun], Awaitable[List[Dict[str, Any]]]]
    ) -> SyncRun:
        with LogContext(sync_id=run.sync_id, operation="catalog_sync"):
            try:
                products = await fetch(run)
                logger.info(f"Fetched {len(products)} products from Shopify")

                if products:
                    await self._process_products(run, products)
                else:
                    logger.info("📭 No products to process")

                if await self._finish_run(run, SyncRunStatus.COMPLETED):
                    logger.info(
                        f"🎉 {run.sync_type.value.capitalize()} sync completed - "
                        f"✅ {run.products_added} added, 🔄 {run.products_updated} updated, "
                        f"⏭️ {run.products_skipped} skipped, ❌ {run.errors_count} errors "
                        f"in {run.duration_seconds}s"
                    )
                return run

            except Exception as e:
                logger.error(f"❌ {run.sync_type.value.capitalize()} sync failed: {e}")
                try:
                    await self._finish_run(run, SyncRunStatus.FAILED, str(e))
                except PersistenceException as log_exc:
                    log_error(log_exc, {"operation": "record_failed_sync"})
                raise

            finally:
                await self._release(run)

    async def _process_products(self, run: SyncRun, products: List[Dict[str, Any]]) -> None:
        tracker = SyncProgressTracker(run, total_items=len(products))

        for raw_product in products:
            if run.is_terminal:
                logger.info(f"Sync canceled, stopping after {run.products_processed} products")
                return

            run.products_processed += 1
            try:
                outcome = await self.processor.process(raw_product)
            except Exception as e:
                outcome = None
                log_error(e, {"product_id": raw_product.get("id")}, level=logging.WARNING)

            # Canceled while this product was in flight: the stored record is final
            if run.is_terminal:
                logger.info(f"Sync canceled, stopping after {run.products_processed} products")
                return

            if outcome is None:
                run.products_skipped += 1
                run.errors_count += 1
            elif outcome == ProcessOutcome.UPDATED:
                run.products_updated += 1
            else:
                run.products_added += 1

            tracker.maybe_log()

    async def resync_products(self, product_ids: List[str], batch_size: int = RESYNC_BATCH_SIZE) -> Dict[str, int]:
        """
        Re-fetch and store specific products outside of a sync run.

        Products are fetched in small concurrent batches, each request retried
        a bounded number of times, then stored one after another. The re-sync
        holds the run slot until it returns, so no sync can start meanwhile.
        No sync log record is written.

        Raises:
            SyncInProgressException: If a sync run or another re-sync is active
        """
        async with self._lock:
            self._ensure_idle()
            self._resync_active = True

        try:
            return await self._resync(product_ids, batch_size)
        finally:
            async with self._lock:
                self._resync_active = False

    async def _resync(self, product_ids: List[str], batch_size: int) -> Dict[str, int]:
        settings = get_settings()

        async def fetch(product_id: str) -> Optional[Dict[str, Any]]:
            return await retry_bounded(
                lambda: self.client.get_product(product_id),
                max_attempts=self.max_retries or settings.MAX_RETRIES,
                base_delay=settings.RETRY_DELAY_SECONDS,
            )

        logger.info(f"🔄 Re-syncing {len(product_ids)} products")
        fetched = [product for product in await batched(product_ids, batch_size, fetch) if product]

        result = {"requested": len(product_ids), "fetched": len(fetched), "stored": 0, "errors": 0}
        for raw_product in fetched:
            try:
                await self.processor.process(raw_product)
                result["stored"] += 1
            except Exception as e:
                result["errors"] += 1
                log_error(e, {"product_id": raw_product.get("id")}, level=logging.WARNING)

        logger.info(f"Re-sync finished: {result}")
        return result

    # === MAINTENANCE ===

    async def cleanup(self, max_age_days: Optional[int] = None, include_synced: bool = False) -> int:
        """
        Delete products not touched locally for ``max_age_days`` that never finished syncing.

        Args:
            max_age_days: Age cutoff in days (default CLEANUP_MAX_AGE_DAYS)
            include_synced: Also delete stale products whose sync completed

        Returns:
            int: Number of deleted products
        """
        max_age_days = get_settings().CLEANUP_MAX_AGE_DAYS if max_age_days is None else max_age_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=max_age_days)
        logger.info(f"🧹 Cleaning up products older than {max_age_days} days ({cutoff.isoformat()})")

        deleted = await self.store.delete_stale_products(cutoff, include_synced=include_synced)
        logger.info(
            f"Cleaned up {deleted['products']} products, "
            f"{deleted['variants']} orphan variants, {deleted['images']} orphan images"
        )
        return deleted["products"]

    async def validate(self) -> ValidationReport:
        """Read-only consistency scan of the local catalog."""
        logger.info("Validating product data...")
        scans = [
            ("missing_variants", "Products without variants", self.store.scan_products_without_variants),
            ("invalid_prices", "Variants with missing or invalid prices", self.store.scan_invalid_price_variants),
            ("missing_images", "Products without images", self.store.scan_products_without_images),
            ("duplicate_skus", "Duplicate SKUs found", self.store.scan_duplicate_skus),
        ]

        issues: Dict[str, ValidationIssue] = {}
        for issue_type, description, scan in scans:
            rows = await scan()
            if rows:
                issues[issue_type] = ValidationIssue(
                    count=len(rows), description=description, sample=rows[:VALIDATION_SAMPLE_SIZE]
                )

        logger.info(f"Data validation completed. Found {len(issues)} issue types.")
        return ValidationReport(valid=not issues, issues=issues)

    # === STATUS ===

    async def get_status(self) -> SyncStatus:
        current = self._current_run
        return SyncStatus(
            is_running=self.is_running,
            current_run=current.model_copy() if current else None,
            last_run=await self.store.get_last_sync_run(),
            stats=await self.store.statistics(),
            recent_runs=await self.store.list_recent_sync_runs(limit=RECENT_RUNS_IN_STATUS),
        )

    async def export_sync_report(self) -> Dict[str, Any]:
        """Statistics, the last runs and a validation pass bundled in one report."""
        stats = await self.store.statistics()
        recent_runs = await self.store.list_recent_sync_runs(limit=RECENT_RUNS_IN_REPORT)
        validation = await self.validate()
        return self.report_generator.generate_sync_report(stats, recent_runs, validation)
