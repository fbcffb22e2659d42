import logging
import time
from typing import Any, Dict

from feedsync.schemas.sync_schemas import SyncRun

logger = logging.getLogger(__name__)

# Intervalo máximo sin registrar progreso
LOG_INTERVAL_SECONDS = 30


def format_duration(seconds: float) -> str:
    """Formatea segundos como HH:MM:SS."""
    seconds = max(int(seconds), 0)
    return f"{seconds // 3600:02d}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"


class SyncProgressTracker:
    """
    Registra en el log el avance de una SyncRun.

    Los contadores son los de la propia ejecución; el tracker sólo aporta
    el tiempo transcurrido, el ritmo y la ETA.
    """

    def __init__(self, run: SyncRun, total_items: int):
        self.run = run
        self.total_items = max(1, total_items)
        self.started_at = time.monotonic()
        self._last_logged_at = self.started_at
        self._last_decile = 0

    def snapshot(self) -> Dict[str, Any]:
        elapsed = time.monotonic() - self.started_at
        processed = self.run.products_processed
        rate_per_minute = processed / elapsed * 60 if processed and elapsed > 0 else 0.0
        remaining = max(self.total_items - processed, 0)

        return {
            "processed": processed,
            "total": self.total_items,
            "percentage": processed / self.total_items * 100,
            "rate_per_minute": rate_per_minute,
            "elapsed": format_duration(elapsed),
            "eta": format_duration(remaining / rate_per_minute * 60 if rate_per_minute else 0),
        }

    def maybe_log(self) -> bool:
        """Registra el progreso al cruzar cada 10% o tras LOG_INTERVAL_SECONDS sin hacerlo."""
        now = time.monotonic()
        decile = self.run.products_processed * 10 // self.total_items
        if decile <= self._last_decile and now - self._last_logged_at < LOG_INTERVAL_SECONDS:
            return False

        self._last_decile = decile
        self._last_logged_at = now
        self.log_progress()
        return True

    def log_progress(self) -> None:
        info = self.snapshot()
        counters = self.run.counters()
        logger.info(
            f"📊 {self.run.sync_type.value} sync [{self.run.sync_id}]: "
            f"{info['processed']}/{info['total']} ({info['percentage']:.1f}%) | "
            f"⏱️ {info['elapsed']} elapsed, ETA {info['eta']} | ⚡ {info['rate_per_minute']:.1f}/min | "
            f"✅ {counters['added']} added, 🔄 {counters['updated']} updated, "
            f"⏭️ {counters['skipped']} skipped, ❌ {counters['errors']} errors"
        )
