"""Tests unitarios para SyncCoordinator con almacén SQLite real y cliente simulado."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from feedsync.schemas.sync_schemas import SyncRunStatus, SyncType
from feedsync.services.catalog_sync import SyncCoordinator
from feedsync.services.catalog_sync.sync_coordinator import CANCEL_MESSAGE
from feedsync.utils.error_handler import RemoteAPIException, SyncInProgressException
from tests.factories import make_product


def mock_client(products=None, updated=None) -> MagicMock:
    client = MagicMock()
    client.get_products_count = AsyncMock(return_value=len(products or []))
    client.fetch_all_since = AsyncMock(return_value=products or [])
    client.fetch_updated_since = AsyncMock(return_value=updated or [])
    client.get_product = AsyncMock()
    return client


async def wait_until(predicate, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0)


class TestFullSync:
    """Tests para la sincronización completa."""

    @pytest.mark.asyncio
    async def test_full_sync_adds_products(self, store):
        products = [make_product(1, title="A"), make_product(2, title="B")]
        coordinator = SyncCoordinator(store, mock_client(products))

        run = await coordinator.run_full()

        assert run.status == SyncRunStatus.COMPLETED
        assert run.products_processed == 2
        assert run.products_added == 2
        assert run.end_time is not None
        assert coordinator.is_running is False
        assert (await store.statistics())["total_products"] == 2

    @pytest.mark.asyncio
    async def test_full_sync_twice_is_idempotent(self, store):
        """Dos sincronizaciones con los mismos datos no duplican productos."""
        products = [make_product(1, title="A"), make_product(2, title="B")]
        coordinator = SyncCoordinator(store, mock_client(products))

        await coordinator.run_full()
        second = await coordinator.run_full()

        stats = await store.statistics()
        assert stats["total_products"] == 2
        assert stats["total_variants"] == 2
        assert second.products_updated == 2
        assert second.products_added == 0

    @pytest.mark.asyncio
    async def test_failing_product_is_isolated(self, store):
        """Un producto inválido se cuenta como error y no aborta la ejecución."""
        products = [make_product(1, title="A"), {"id": 2}, make_product(3, title="C")]
        coordinator = SyncCoordinator(store, mock_client(products))

        run = await coordinator.run_full()

        assert run.status == SyncRunStatus.COMPLETED
        assert run.products_processed == 3
        assert run.products_added == 2
        assert run.products_skipped == 1
        assert run.errors_count == 1

    @pytest.mark.asyncio
    async def test_run_level_failure_is_recorded_and_propagated(self, store):
        client = mock_client()
        client.fetch_all_since.side_effect = RemoteAPIException("Shopify API error 503", api_response_code=503)
        coordinator = SyncCoordinator(store, client)

        with pytest.raises(RemoteAPIException):
            await coordinator.run_full()

        last = await store.get_last_sync_run()
        assert last.status == SyncRunStatus.FAILED
        assert "503" in last.error_message
        assert coordinator.is_running is False

    @pytest.mark.asyncio
    async def test_terminal_record_is_written_once(self, store):
        coordinator = SyncCoordinator(store, mock_client([make_product(1)]))

        await coordinator.run_full()

        page = await store.list_sync_runs()
        assert page.pagination.total == 1
        assert page.logs[0].status == SyncRunStatus.COMPLETED


class TestMutualExclusion:
    """Tests para la exclusión mutua entre ejecuciones."""

    @pytest.mark.asyncio
    async def test_second_sync_is_rejected_while_running(self, store):
        """Iniciar otra sync mientras una corre lanza SyncInProgressException sin tocar la primera."""
        release = asyncio.Event()
        client = mock_client()

        async def blocked_fetch(*args, **kwargs):
            await release.wait()
            return [make_product(1)]

        client.fetch_all_since = AsyncMock(side_effect=blocked_fetch)
        coordinator = SyncCoordinator(store, client)

        first = asyncio.create_task(coordinator.run_full())
        await wait_until(lambda: coordinator.is_running and client.fetch_all_since.await_count == 1)
        counters_before = coordinator.current_run.counters()

        with pytest.raises(SyncInProgressException):
            await coordinator.run_incremental()
        with pytest.raises(SyncInProgressException):
            await coordinator.run_full()

        assert coordinator.current_run.sync_type == SyncType.FULL
        assert coordinator.current_run.counters() == counters_before

        release.set()
        run = await first

        assert run.status == SyncRunStatus.COMPLETED
        assert run.products_added == 1
        assert (await store.list_sync_runs()).pagination.total == 1

    @pytest.mark.asyncio
    async def test_status_reports_running_run(self, store):
        release = asyncio.Event()
        client = mock_client()

        async def blocked_fetch(*args, **kwargs):
            await release.wait()
            return []

        client.fetch_all_since = AsyncMock(side_effect=blocked_fetch)
        coordinator = SyncCoordinator(store, client)

        task = asyncio.create_task(coordinator.run_full())
        await wait_until(lambda: client.fetch_all_since.await_count == 1)

        status = await coordinator.get_status()
        assert status.is_running is True
        assert status.current_run.status == SyncRunStatus.RUNNING

        release.set()
        await task

        status = await coordinator.get_status()
        assert status.is_running is False
        assert status.last_run.status == SyncRunStatus.COMPLETED


class TestCancel:
    """Tests para la cancelación cooperativa."""

    @pytest.mark.asyncio
    async def test_cancel_when_idle_returns_false(self, store):
        coordinator = SyncCoordinator(store, mock_client())

        assert await coordinator.cancel() is False

    @pytest.mark.asyncio
    async def test_cancel_stops_before_next_product(self, store):
        products = [make_product(1, title="A"), make_product(2, title="B"), make_product(3, title="C")]
        coordinator = SyncCoordinator(store, mock_client(products))
        real_process = coordinator.processor.process

        async def process_then_cancel(raw_product):
            outcome = await real_process(raw_product)
            await coordinator.cancel()
            return outcome

        coordinator.processor.process = process_then_cancel

        run = await coordinator.run_full()

        assert run.status == SyncRunStatus.CANCELED
        assert run.error_message == CANCEL_MESSAGE
        assert run.products_processed == 1
        assert coordinator.is_running is False

        page = await store.list_sync_runs()
        assert page.pagination.total == 1
        assert page.logs[0].status == SyncRunStatus.CANCELED

    @pytest.mark.asyncio
    async def test_in_flight_product_does_not_change_stored_counters(self, store):
        """El registro cancelado guardado coincide con la ejecución en memoria."""
        products = [make_product(1, title="A"), make_product(2, title="B")]
        coordinator = SyncCoordinator(store, mock_client(products))
        real_process = coordinator.processor.process

        async def cancel_mid_product(raw_product):
            await coordinator.cancel()
            return await real_process(raw_product)

        coordinator.processor.process = cancel_mid_product

        run = await coordinator.run_full()
        stored = (await store.list_sync_runs()).logs[0]

        assert run.products_added == 0
        assert stored.counters() == run.counters()
        assert (await store.statistics())["total_products"] == 1

    @pytest.mark.asyncio
    async def test_new_sync_can_start_after_cancel(self, store):
        release = asyncio.Event()
        client = mock_client()

        async def blocked_fetch(*args, **kwargs):
            await release.wait()
            return [make_product(1)]

        client.fetch_all_since = AsyncMock(side_effect=blocked_fetch)
        coordinator = SyncCoordinator(store, client)

        task = asyncio.create_task(coordinator.run_full())
        await wait_until(lambda: client.fetch_all_since.await_count == 1)

        assert await coordinator.cancel() is True
        assert coordinator.is_running is False

        release.set()
        canceled = await task
        assert canceled.status == SyncRunStatus.CANCELED
        assert canceled.products_processed == 0

        client.fetch_all_since = AsyncMock(return_value=[make_product(1)])
        run = await coordinator.run_full()
        assert run.status == SyncRunStatus.COMPLETED


class TestIncrementalSync:
    """Tests para la sincronización incremental."""

    @pytest.mark.asyncio
    async def test_without_watermark_runs_as_full(self, store):
        client = mock_client([make_product(1)])
        coordinator = SyncCoordinator(store, client)

        run = await coordinator.run_incremental()

        assert run.sync_type == SyncType.FULL
        client.fetch_all_since.assert_awaited_once()
        client.fetch_updated_since.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_uses_last_synced_watermark(self, store):
        client = mock_client([make_product(1, updated_at="2024-05-01T12:00:00Z")])
        coordinator = SyncCoordinator(store, client)
        await coordinator.run_full()

        run = await coordinator.run_incremental()

        client.fetch_updated_since.assert_awaited_once_with("2024-05-01T12:00:00Z")
        assert run.sync_type == SyncType.INCREMENTAL
        assert run.status == SyncRunStatus.COMPLETED
        assert run.products_processed == 0

    @pytest.mark.asyncio
    async def test_updated_products_are_counted_as_updates(self, store):
        client = mock_client([make_product(1, title="Old title")])
        coordinator = SyncCoordinator(store, client)
        await coordinator.run_full()

        client.fetch_updated_since.return_value = [make_product(1, title="New title")]
        run = await coordinator.run_incremental()

        assert run.products_updated == 1
        rows = await store.query_feed_rows()
        assert rows[0]["title"] == "New title"


class TestResyncProducts:
    """Tests para la re-sincronización puntual de productos."""

    @pytest.mark.asyncio
    async def test_resync_fetches_and_stores_products(self, store):
        client = mock_client()
        client.get_product = AsyncMock(side_effect=lambda product_id: make_product(int(product_id)))
        coordinator = SyncCoordinator(store, client)

        result = await coordinator.resync_products(["1", "2", "3"], batch_size=2)

        assert result == {"requested": 3, "fetched": 3, "stored": 3, "errors": 0}
        assert (await store.statistics())["total_products"] == 3

    @pytest.mark.asyncio
    async def test_resync_retries_transient_errors(self, store):
        client = mock_client()
        client.get_product = AsyncMock(side_effect=[RemoteAPIException("timeout"), make_product(1)])
        coordinator = SyncCoordinator(store, client)

        result = await coordinator.resync_products(["1"])

        assert result["stored"] == 1
        assert client.get_product.await_count == 2

    @pytest.mark.asyncio
    async def test_resync_attempts_follow_max_retries(self, store):
        client = mock_client()
        client.get_product = AsyncMock(side_effect=[RemoteAPIException("timeout"), make_product(1)])
        coordinator = SyncCoordinator(store, client)
        coordinator.max_retries = 1

        result = await coordinator.resync_products(["1"])

        assert result == {"requested": 1, "fetched": 0, "stored": 0, "errors": 0}
        assert client.get_product.await_count == 1

    @pytest.mark.asyncio
    async def test_resync_rejected_while_sync_running(self, store):
        release = asyncio.Event()
        client = mock_client()

        async def blocked_fetch(*args, **kwargs):
            await release.wait()
            return []

        client.fetch_all_since = AsyncMock(side_effect=blocked_fetch)
        coordinator = SyncCoordinator(store, client)
        task = asyncio.create_task(coordinator.run_full())
        await wait_until(lambda: coordinator.is_running)

        with pytest.raises(SyncInProgressException):
            await coordinator.resync_products(["1"])

        release.set()
        await task

    @pytest.mark.asyncio
    async def test_sync_rejected_while_resync_running(self, store):
        """Una re-sincronización ocupa el slot: no puede arrancar una sync completa a la vez."""
        release = asyncio.Event()
        client = mock_client([make_product(1)])

        async def blocked_get_product(product_id):
            await release.wait()
            return make_product(int(product_id))

        client.get_product = AsyncMock(side_effect=blocked_get_product)
        coordinator = SyncCoordinator(store, client)
        task = asyncio.create_task(coordinator.resync_products(["1"]))
        await wait_until(lambda: client.get_product.await_count == 1)

        assert coordinator.is_running is True
        with pytest.raises(SyncInProgressException) as exc_info:
            await coordinator.run_full()
        assert exc_info.value.running_sync_type == "resync"
        with pytest.raises(SyncInProgressException):
            await coordinator.resync_products(["2"])

        release.set()
        assert (await task)["stored"] == 1
        assert coordinator.is_running is False

        run = await coordinator.run_full()
        assert run.status == SyncRunStatus.COMPLETED
        client.fetch_all_since.assert_awaited_once()


class TestMaintenance:
    """Tests para cleanup, validación y reporte."""

    @pytest.mark.asyncio
    async def test_cleanup_keeps_synced_products_by_default(self, store):
        coordinator = SyncCoordinator(store, mock_client([make_product(1)]))
        await coordinator.run_full()

        assert await coordinator.cleanup(max_age_days=0) == 0
        assert await coordinator.cleanup(max_age_days=0, include_synced=True) == 1

    @pytest.mark.asyncio
    async def test_validate_reports_issues(self, store):
        products = [make_product(1, with_image=False), make_product(2, prices=["0"])]
        coordinator = SyncCoordinator(store, mock_client(products))
        await coordinator.run_full()

        report = await coordinator.validate()

        assert report.valid is False
        assert report.issues["missing_images"].count == 1
        assert report.issues["invalid_prices"].count == 1
        assert "duplicate_skus" not in report.issues

    @pytest.mark.asyncio
    async def test_validate_clean_catalog(self, store):
        coordinator = SyncCoordinator(store, mock_client([make_product(1)]))
        await coordinator.run_full()

        report = await coordinator.validate()

        assert report.valid is True
        assert report.issues == {}

    @pytest.mark.asyncio
    async def test_export_sync_report(self, store):
        coordinator = SyncCoordinator(store, mock_client([make_product(1, with_image=False)]))
        await coordinator.run_full()

        report = await coordinator.export_sync_report()

        assert report["summary"]["total_products"] == 1
        assert report["summary"]["data_quality"] == "Issues Found"
        assert len(report["recent_syncs"]) == 1
        assert any("image" in item for item in report["recommendations"])
