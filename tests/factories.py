"""Payloads de prueba con la forma de la API REST de Shopify."""

from typing import Any, Dict, List, Optional


def make_product(
    product_id: int,
    title: str = "Test Product",
    vendor: Optional[str] = "Acme",
    product_type: Optional[str] = "Apparel",
    prices: Optional[List[Any]] = None,
    compare_at_price: Optional[str] = None,
    inventory: int = 10,
    tags: str = "",
    status: str = "active",
    with_image: bool = True,
    updated_at: str = "2024-01-15T10:00:00-05:00",
    sku_prefix: str = "SKU",
) -> Dict[str, Any]:
    """Payload con la forma de la API REST de productos de Shopify."""
    prices = prices if prices is not None else ["19.99"]
    variants = [
        {
            "id": product_id * 100 + index,
            "product_id": product_id,
            "title": f"Variant {index}",
            "price": str(price),
            "compare_at_price": compare_at_price,
            "sku": f"{sku_prefix}-{product_id}-{index}",
            "option1": "Default Title",
            "barcode": f"00{product_id}{index}",
            "weight": 0.5,
            "weight_unit": "kg",
            "inventory_quantity": inventory,
        }
        for index, price in enumerate(prices, start=1)
    ]
    images = (
        [{"id": product_id * 1000, "product_id": product_id, "src": f"https://cdn.shopify.com/{product_id}.jpg"}]
        if with_image
        else []
    )
    return {
        "id": product_id,
        "title": title,
        "handle": title.lower().replace(" ", "-"),
        "body_html": f"<p>{title} description</p>",
        "vendor": vendor,
        "product_type": product_type,
        "created_at": "2024-01-01T10:00:00-05:00",
        "updated_at": updated_at,
        "published_at": "2024-01-01T10:00:00-05:00",
        "status": status,
        "tags": tags,
        "variants": variants,
        "images": images,
    }


def make_feed_row(
    product_id: str,
    title: str = "Test Product",
    vendor: Optional[str] = "Acme",
    product_type: Optional[str] = "Apparel",
    price: Any = 20.0,
    compare_at_price: Any = None,
    inventory_quantity: int = 10,
    tags: str = "",
    **extra: Any,
) -> Dict[str, Any]:
    """Fila con la forma de CatalogStore.query_feed_rows."""
    row = {
        "product_id": product_id,
        "variant_id": f"{product_id}01",
        "title": title,
        "handle": title.lower().replace(" ", "-"),
        "body_html": f"<p>{title}</p>",
        "vendor": vendor,
        "product_type": product_type,
        "tags": tags,
        "price": price,
        "compare_at_price": compare_at_price,
        "inventory_quantity": inventory_quantity,
        "sku": f"SKU-{product_id}",
        "barcode": None,
        "option1": "Default Title",
        "option2": None,
        "option3": None,
        "weight": None,
        "weight_unit": None,
        "image_src": f"https://cdn.shopify.com/{product_id}.jpg",
    }
    row.update(extra)
    return row
