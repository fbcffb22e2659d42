import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from feedsync.schemas.sync_schemas import SyncRun, SyncRunStatus, ValidationReport

logger = logging.getLogger(__name__)


class ReportGenerator:
    """Generates sync reports and recommendations."""

    def generate_sync_report(
        self, stats: Dict[str, Any], recent_runs: List[SyncRun], validation: ValidationReport
    ) -> Dict[str, Any]:
        """
        Genera reporte de sincronización.

        Args:
            stats: Estadísticas del catálogo local
            recent_runs: Ejecuciones recientes (más nueva primero)
            validation: Resultado de la validación del catálogo

        Returns:
            Dict: Reporte completo
        """
        report = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "statistics": stats,
            "recent_syncs": [run.model_dump(mode="json") for run in recent_runs],
            "data_validation": validation.model_dump(mode="json"),
            "summary": {
                "total_products": stats.get("total_products", 0),
                "total_variants": stats.get("total_variants", 0),
                "avg_price": f"{stats['avg_price']:.2f}" if stats.get("avg_price") else 0,
                "last_sync": stats.get("last_sync_time"),
                "data_quality": "Good" if validation.valid else "Issues Found",
            },
            "recommendations": self._generate_recommendations(recent_runs, validation),
        }

        logger.info(
            f"📋 Sync report generated - {report['summary']['total_products']} products, "
            f"data quality: {report['summary']['data_quality']}"
        )
        return report

    def _generate_recommendations(self, recent_runs: List[SyncRun], validation: ValidationReport) -> List[str]:
        recommendations = []

        if not recent_runs:
            recommendations.append("Run a full sync to populate the local catalog")
        elif recent_runs[0].status == SyncRunStatus.FAILED:
            recommendations.append("Last sync failed - check credentials and API availability")
        elif recent_runs[0].errors_count / max(recent_runs[0].products_processed, 1) > 0.1:
            recommendations.append("High per-product error rate in last sync - review error logs")

        if "missing_images" in validation.issues:
            recommendations.append("Some products have no image and will be rejected by Google Merchant")
        if "duplicate_skus" in validation.issues:
            recommendations.append("Duplicate SKUs found - review variant data in Shopify")

        return recommendations
