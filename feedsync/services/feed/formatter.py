"""
Formato de filas para el feed de Google Merchant Center.
"""

import re
from typing import Any, Callable, Dict, Optional

from feedsync.services.feed.analytics import to_price
from feedsync.services.feed.labels import CustomLabels

FEED_COLUMNS = (
    "id",
    "title",
    "description",
    "link",
    "image_link",
    "additional_image_link",
    "availability",
    "price",
    "sale_price",
    "brand",
    "gtin",
    "mpn",
    "condition",
    "adult",
    "multipack",
    "is_bundle",
    "age_group",
    "color",
    "gender",
    "material",
    "pattern",
    "size",
    "size_type",
    "size_system",
    "item_group_id",
    "google_product_category",
    "product_type",
    "shipping",
    "shipping_label",
    "shipping_weight",
    "shipping_length",
    "shipping_width",
    "shipping_height",
    "tax",
    "tax_category",
    "custom_label_0",
    "custom_label_1",
    "custom_label_2",
    "custom_label_3",
    "custom_label_4",
)

MAX_TITLE_LENGTH = 150
MAX_DESCRIPTION_LENGTH = 5000
DEFAULT_WEIGHT_UNIT = "kg"

COLORS = (
    "black", "white", "red", "blue", "green", "yellow", "purple", "pink",
    "orange", "brown", "gray", "grey", "silver", "gold", "beige", "navy",
    "maroon", "teal", "olive", "lime", "aqua", "fuchsia",
)

# Las tallas de varias palabras van primero
SIZES = (
    "one size", "free size", "onesize", "xxxl", "xxl", "2xl", "3xl", "4xl", "5xl",
    "xl", "xs", "sm", "small", "md", "medium", "lg", "large", "os", "s", "m", "l",
)

MATERIALS = (
    "cotton", "polyester", "wool", "silk", "linen", "denim", "leather",
    "suede", "canvas", "nylon", "spandex", "bamboo", "cashmere",
    "fleece", "chiffon", "velvet", "satin", "jersey", "lycra",
)

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_UNSAFE_CHARS_RE = re.compile(r"[^\w\s\-.,!?()]")
_NUMERIC_SIZE_RE = re.compile(r"\b(\d+(?:\.\d+)?)\b")


def clean_description(html: Optional[str]) -> str:
    """Quita etiquetas HTML, colapsa espacios y elimina caracteres problemáticos."""
    if not html:
        return ""
    text = _HTML_TAG_RE.sub(" ", html)
    text = _UNSAFE_CHARS_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def truncate_text(text: Optional[str], max_length: int) -> str:
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def _joined(row: Dict[str, Any], *keys: str) -> str:
    return " ".join(str(row[key]) for key in keys if row.get(key)).lower()


def _find_word(text: str, vocabulary) -> Optional[str]:
    for word in vocabulary:
        if re.search(rf"\b{re.escape(word)}\b", text):
            return word
    return None


def extract_color(row: Dict[str, Any]) -> str:
    """Color a partir de las opciones de la variante o del título."""
    return _find_word(_joined(row, "option1", "option2", "option3", "title"), COLORS) or ""


def extract_size(row: Dict[str, Any]) -> str:
    """Talla a partir de las opciones; si no hay talla conocida, la primera cifra."""
    sources = _joined(row, "option1", "option2", "option3")
    size = _find_word(sources, SIZES)
    if size:
        return size.upper()

    numeric = _NUMERIC_SIZE_RE.search(sources)
    return numeric.group(1) if numeric else ""


def extract_material(row: Dict[str, Any]) -> str:
    sources = _joined(row, "title", "body_html", "tags", "product_type")
    for material in MATERIALS:
        if material in sources:
            return material.capitalize()
    return ""


def get_availability(inventory_quantity: Optional[int]) -> str:
    return "in stock" if inventory_quantity and inventory_quantity > 0 else "out of stock"


def format_price(value: Any, currency: str) -> str:
    price = to_price(value)
    return f"{price:.2f} {currency}" if price else ""


def format_feed_row(
    row: Dict[str, Any],
    labels: CustomLabels,
    product_url: Callable[[str], str],
    currency: str = "USD",
    image_url: Optional[Callable[[Optional[str]], str]] = None,
    adult: bool = False,
) -> Dict[str, Any]:
    """
    Convierte una fila del catálogo en una fila del feed de Google Merchant.

    Args:
        row: Fila de CatalogStore.query_feed_rows
        labels: Etiquetas derivadas para la fila
        product_url: Función handle -> URL pública del producto
        currency: Código de moneda para precios
        image_url: Función src -> URL de imagen a publicar (por defecto src tal cual)
        adult: Marca todas las filas como contenido adulto

    Returns:
        Dict: Valores por cada columna de FEED_COLUMNS
    """
    price = to_price(row.get("price"))
    compare_at_price = to_price(row.get("compare_at_price"))
    weight = row.get("weight")

    formatted = {column: "" for column in FEED_COLUMNS}
    formatted.update(
        {
            "id": f"{row['product_id']}_{row.get('variant_id') or ''}",
            "title": truncate_text(row.get("title"), MAX_TITLE_LENGTH),
            "description": truncate_text(
                clean_description(row.get("body_html") or row.get("title")), MAX_DESCRIPTION_LENGTH
            ),
            "link": product_url(row.get("handle") or ""),
            "image_link": image_url(row.get("image_src")) if image_url else row.get("image_src") or "",
            "availability": get_availability(row.get("inventory_quantity")),
            "price": format_price(price, currency),
            # El precio vigente va en sale_price cuando hay precio de comparación mayor
            "sale_price": format_price(price, currency) if compare_at_price > price else "",
            "brand": row.get("vendor") or row.get("brand") or "",
            "gtin": row.get("barcode") or "",
            "mpn": row.get("sku") or "",
            "condition": "new",
            "adult": "yes" if adult else "no",
            "is_bundle": "no",
            "color": extract_color(row),
            "material": extract_material(row),
            "size": extract_size(row),
            "item_group_id": row["product_id"],
            "google_product_category": row.get("google_product_category") or "",
            "product_type": row.get("product_type") or "",
            "shipping_weight": f"{weight} {row.get('weight_unit') or DEFAULT_WEIGHT_UNIT}" if weight else "",
        }
    )
    formatted.update(labels.as_columns())
    return formatted
