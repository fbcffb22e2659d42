"""
Modelos Pydantic para el estado de sincronización.

Incluye el registro de ejecución (SyncRun), el estado expuesto a la
capa de control y el reporte de validación del catálogo.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SyncType(str, Enum):
    """Tipos de sincronización."""

    FULL = "full"
    INCREMENTAL = "incremental"


class SyncRunStatus(str, Enum):
    """Estados de una ejecución de sincronización."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_STATUSES = (SyncRunStatus.COMPLETED, SyncRunStatus.FAILED, SyncRunStatus.CANCELED)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncRun(BaseModel):
    """Registro de una ejecución de sincronización."""

    id: Optional[int] = None
    sync_type: SyncType
    status: SyncRunStatus = SyncRunStatus.RUNNING
    products_processed: int = 0
    products_added: int = 0
    products_updated: int = 0
    products_skipped: int = 0
    errors_count: int = 0
    start_time: datetime = Field(default_factory=utc_now)
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def sync_id(self) -> str:
        """Identificador legible usado en los logs, p. ej. full_20240115_100000."""
        return f"{self.sync_type.value}_{self.start_time:%Y%m%d_%H%M%S}"

    def finish(self, status: SyncRunStatus, error_message: Optional[str] = None) -> None:
        """
        Cierra la ejecución con un estado terminal.

        Raises:
            ValueError: Si la ejecución ya estaba cerrada o el estado no es terminal
        """
        if self.is_terminal:
            raise ValueError(f"Sync run already finished with status {self.status.value}")
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status.value} is not a terminal status")

        self.status = status
        self.end_time = utc_now()
        self.duration_seconds = round((self.end_time - self.start_time).total_seconds())
        self.error_message = error_message

    def counters(self) -> Dict[str, int]:
        return {
            "processed": self.products_processed,
            "added": self.products_added,
            "updated": self.products_updated,
            "skipped": self.products_skipped,
            "errors": self.errors_count,
        }

    def to_row(self) -> Dict[str, Any]:
        """Parámetros para insertar el registro en sync_logs."""
        return {
            "sync_type": self.sync_type.value,
            "status": self.status.value,
            "products_processed": self.products_processed,
            "products_added": self.products_added,
            "products_updated": self.products_updated,
            "products_skipped": self.products_skipped,
            "errors_count": self.errors_count,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
        }


class SyncStatus(BaseModel):
    """Estado de sincronización expuesto a la capa de control."""

    is_running: bool
    current_run: Optional[SyncRun] = None
    last_run: Optional[SyncRun] = None
    stats: Dict[str, Any] = Field(default_factory=dict)
    recent_runs: List[SyncRun] = Field(default_factory=list)


class ValidationIssue(BaseModel):
    """Problema detectado por la validación del catálogo."""

    count: int
    description: str
    sample: List[Dict[str, Any]] = Field(default_factory=list)


class ValidationReport(BaseModel):
    """Reporte de consistencia del catálogo local (solo lectura)."""

    valid: bool
    issues: Dict[str, ValidationIssue] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class ConnectionTestResult(BaseModel):
    """Resultado de probar credenciales contra Shopify."""

    success: bool
    shop: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    error: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ProductPage(BaseModel):
    """Página del listado de productos con agregados por producto."""

    products: List[Dict[str, Any]]
    pagination: Pagination


class SyncRunPage(BaseModel):
    """Página del historial de sincronizaciones."""

    logs: List[SyncRun]
    pagination: Pagination
