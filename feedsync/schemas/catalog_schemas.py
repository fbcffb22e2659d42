"""
Modelos Pydantic para datos de la API REST de productos de Shopify.

Este módulo define los schemas usados para normalizar los productos
recibidos de Shopify antes de persistirlos en el catálogo local.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_optional_str(v: Any) -> Optional[str]:
    if v is None or v == "":
        return None
    return str(v)


class ShopifyVariant(BaseModel):
    """Modelo para variante de producto."""

    model_config = ConfigDict(extra="ignore")

    id: str
    product_id: Optional[str] = None
    title: Optional[str] = None
    price: float = 0.0
    compare_at_price: Optional[float] = None
    sku: Optional[str] = None
    position: Optional[int] = None
    inventory_policy: Optional[str] = None
    option1: Optional[str] = None
    option2: Optional[str] = None
    option3: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    barcode: Optional[str] = None
    grams: Optional[int] = None
    weight: Optional[float] = None
    weight_unit: Optional[str] = None
    inventory_item_id: Optional[str] = None
    inventory_quantity: int = 0
    requires_shipping: Optional[bool] = None

    @field_validator("id", "product_id", "inventory_item_id", mode="before")
    @classmethod
    def validate_ids(cls, v):
        """Los IDs de Shopify llegan como enteros; se guardan como texto."""
        return _to_optional_str(v)

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v):
        """Convierte el precio (string en la API REST) a float."""
        if v is None or v == "":
            return 0.0
        return float(v)

    @field_validator("compare_at_price", mode="before")
    @classmethod
    def validate_compare_at_price(cls, v):
        """Convierte el precio de comparación a float."""
        if v is None or v == "":
            return None
        return float(v)

    @field_validator("inventory_quantity", mode="before")
    @classmethod
    def validate_inventory(cls, v):
        """Inventario nulo se considera cero."""
        return v if v is not None else 0

    def to_row(self, product_id: str) -> Dict[str, Any]:
        """Parámetros para el upsert de la variante."""
        row = self.model_dump(exclude={"product_id"})
        row["shopify_id"] = row.pop("id")
        row["product_id"] = product_id
        return row


class ShopifyImage(BaseModel):
    """Modelo para imagen de producto."""

    model_config = ConfigDict(extra="ignore")

    id: str
    position: Optional[int] = None
    src: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    alt: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        return _to_optional_str(v)

    def to_row(self, product_id: str) -> Dict[str, Any]:
        """Parámetros para el upsert de la imagen."""
        row = self.model_dump()
        row["shopify_id"] = row.pop("id")
        row["product_id"] = product_id
        return row


class ShopifyProduct(BaseModel):
    """Modelo para producto de Shopify (API REST)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    handle: Optional[str] = None
    body_html: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    published_at: Optional[str] = None
    status: Optional[str] = None
    tags: str = ""
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    google_product_category: Optional[str] = None
    brand: Optional[str] = None
    variants: List[ShopifyVariant] = Field(default_factory=list)
    images: List[ShopifyImage] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        return _to_optional_str(v)

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, v):
        """Normaliza tags a string separado por comas."""
        if v is None:
            return ""
        if isinstance(v, list):
            return ", ".join(str(tag).strip() for tag in v if str(tag).strip())
        return v

    def to_row(self, sync_status: str) -> Dict[str, Any]:
        """Parámetros para el upsert del producto."""
        row = self.model_dump(exclude={"variants", "images"})
        row["shopify_id"] = row.pop("id")
        row["brand"] = row["brand"] or self.vendor
        row["sync_status"] = sync_status
        return row

    def lowest_priced_variant(self) -> Optional[ShopifyVariant]:
        """
        Selecciona la variante a persistir.

        Parte de la primera variante y la reemplaza por cualquier otra con
        precio positivo menor (o cuando la elegida no tiene precio).
        """
        if not self.variants:
            return None

        lowest = self.variants[0]
        for variant in self.variants:
            if variant.price > 0 and (lowest.price <= 0 or variant.price < lowest.price):
                lowest = variant
        return lowest

    def first_image(self) -> Optional[ShopifyImage]:
        """Primera imagen del producto, si existe."""
        return self.images[0] if self.images else None
