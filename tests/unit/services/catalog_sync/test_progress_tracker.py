"""Tests unitarios para SyncProgressTracker y ReportGenerator."""

from unittest.mock import patch

from feedsync.schemas.sync_schemas import SyncRun, SyncRunStatus, SyncType, ValidationIssue, ValidationReport
from feedsync.services.catalog_sync.progress_tracker import SyncProgressTracker, format_duration
from feedsync.services.catalog_sync.report_generator import ReportGenerator


def advance(run: SyncRun, added: int = 0, updated: int = 0, skipped: int = 0) -> None:
    run.products_processed += added + updated + skipped
    run.products_added += added
    run.products_updated += updated
    run.products_skipped += skipped
    run.errors_count += skipped


class TestSyncProgressTracker:
    """Tests para el seguimiento de progreso."""

    def test_initial_progress_is_zero(self):
        info = SyncProgressTracker(SyncRun(sync_type=SyncType.FULL), total_items=10).snapshot()

        assert info["percentage"] == 0.0
        assert info["processed"] == 0
        assert info["rate_per_minute"] == 0.0
        assert info["eta"] == "00:00:00"

    def test_progress_follows_run_counters(self):
        """El tracker no lleva contadores propios: lee los de la ejecución."""
        run = SyncRun(sync_type=SyncType.FULL)
        tracker = SyncProgressTracker(run, total_items=4)

        advance(run, added=1, updated=1, skipped=1)

        assert tracker.snapshot()["processed"] == 3
        assert tracker.snapshot()["percentage"] == 75.0

    def test_zero_total_does_not_divide_by_zero(self):
        run = SyncRun(sync_type=SyncType.FULL)
        tracker = SyncProgressTracker(run, total_items=0)

        advance(run, added=1)

        assert tracker.snapshot()["percentage"] == 100.0

    def test_logs_once_per_decile(self):
        """Debe loguear al cruzar cada 10% y no repetir dentro del mismo decil."""
        run = SyncRun(sync_type=SyncType.FULL)
        tracker = SyncProgressTracker(run, total_items=20)

        advance(run, added=1)
        assert tracker.maybe_log() is False

        advance(run, added=1)
        assert tracker.maybe_log() is True
        assert tracker.maybe_log() is False

    def test_logs_after_interval_without_progress(self):
        run = SyncRun(sync_type=SyncType.FULL)
        tracker = SyncProgressTracker(run, total_items=1000)

        later = tracker.started_at + 31
        with patch("feedsync.services.catalog_sync.progress_tracker.time.monotonic", return_value=later):
            assert tracker.maybe_log() is True

    def test_log_line_includes_sync_id_and_counters(self, caplog):
        run = SyncRun(sync_type=SyncType.INCREMENTAL)
        advance(run, added=2, skipped=1)

        with caplog.at_level("INFO", logger="feedsync.services.catalog_sync.progress_tracker"):
            SyncProgressTracker(run, total_items=3).log_progress()

        assert run.sync_id in caplog.text
        assert "2 added" in caplog.text
        assert "1 errors" in caplog.text

    def test_format_duration(self):
        assert format_duration(3725) == "01:02:05"
        assert format_duration(-5) == "00:00:00"


class TestReportGenerator:
    """Tests para el reporte de sincronización."""

    def test_empty_history_recommends_full_sync(self):
        report = ReportGenerator().generate_sync_report({"total_products": 0}, [], ValidationReport(valid=True))

        assert report["summary"]["data_quality"] == "Good"
        assert report["recommendations"] == ["Run a full sync to populate the local catalog"]

    def test_failed_last_run_and_duplicates(self):
        run = SyncRun(sync_type=SyncType.FULL)
        run.finish(SyncRunStatus.FAILED, "boom")
        validation = ValidationReport(
            valid=False,
            issues={"duplicate_skus": ValidationIssue(count=1, description="Duplicate SKUs found")},
        )

        report = ReportGenerator().generate_sync_report({"total_products": 3, "avg_price": 12.5}, [run], validation)

        assert report["summary"]["avg_price"] == "12.50"
        assert report["summary"]["data_quality"] == "Issues Found"
        assert len(report["recommendations"]) == 2
        assert report["recent_syncs"][0]["status"] == "failed"
