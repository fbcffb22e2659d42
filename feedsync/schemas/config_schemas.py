"""
Modelos Pydantic para la configuración de la aplicación (config.json).

La configuración de proceso (variables de entorno) vive en core/config.py;
aquí se modela la configuración editable por el operador.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from feedsync.schemas.sync_schemas import utc_now


class ConfigSection(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_assignment=True)


class SyncSettings(ConfigSection):
    auto_sync: bool = True
    sync_interval: str = "daily"
    sync_time: str = "02:00"


class FeedSettings(ConfigSection):
    currency: str = "USD"
    # Filas máximas por feed; el resto se descarta con un aviso
    max_products: int = Field(default=50000, ge=1)
    # Tamaño de imagen de Shopify ("master" conserva el original)
    image_size: str = "master"


class DefaultFilters(ConfigSection):
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None


class GoogleMerchantSettings(ConfigSection):
    adult_content: bool = False


class PerformanceSettings(ConfigSection):
    """Ajustes del cliente de Shopify; None usa la variable de entorno correspondiente."""

    batch_size: Optional[int] = Field(default=None, ge=1)
    rate_limit_delay_ms: Optional[int] = Field(default=None, ge=0)
    max_retries: Optional[int] = Field(default=None, ge=1)


class LabelSettings(ConfigSection):
    higher_variant_policy: str = "percentage"


class AppConfig(BaseModel):
    """Configuración completa de la aplicación."""

    model_config = ConfigDict(extra="ignore")

    shop_url: str = ""
    access_token: str = ""
    sync: SyncSettings = Field(default_factory=SyncSettings)
    feed_settings: FeedSettings = Field(default_factory=FeedSettings)
    default_filters: DefaultFilters = Field(default_factory=DefaultFilters)
    google_merchant: GoogleMerchantSettings = Field(default_factory=GoogleMerchantSettings)
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)
    labels: LabelSettings = Field(default_factory=LabelSettings)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def public_dict(self) -> dict:
        """Representación sin el token de acceso."""
        data = self.model_dump(mode="json")
        data["access_token"] = "***" if self.access_token else ""
        return data


class ConfigValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
