"""
Modelos Pydantic para la generación del feed de Google Merchant.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from feedsync.schemas.sync_schemas import utc_now


class FeedFilters(BaseModel):
    """Filtros aplicados a las filas del feed."""

    model_config = ConfigDict(extra="forbid")

    vendor: Optional[str] = None
    product_type: Optional[str] = None
    min_price: Optional[float] = Field(default=None, ge=0)
    max_price: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_price_range(self):
        """min_price no puede ser mayor que max_price."""
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must be less than or equal to max_price")
        return self


class ExportRecord(BaseModel):
    """Registro del historial de exportaciones."""

    id: Optional[int] = None
    filename: str
    products_count: int
    file_size: int
    filters: Dict[str, Any] = Field(default_factory=dict)
    status: str = "completed"
    created_at: datetime = Field(default_factory=utc_now)


class FeedResult(BaseModel):
    """Resultado de generar un feed."""

    filename: str
    filepath: str
    row_count: int
    file_size_kb: float
    download_url: str
    label_stats: Dict[str, Dict[str, int]]
    label_scheme_version: str
