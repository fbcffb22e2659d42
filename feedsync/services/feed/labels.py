"""
Derivación de las cinco etiquetas personalizadas (custom_label_0..4).

- L0: posición de precio dentro del producto base (variante más barata)
- L1: posición competitiva frente a la cohorte (tipo de producto, vendor)
- L2: nivel de inventario según cuartiles
- L3: tamaño del vendor y posición de precio dentro del vendor
- L4: atributo estacional / promocional
"""

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable

from feedsync.services.feed.analytics import UNKNOWN_VENDOR, FeedAnalysis, cohort_key, to_price

LABEL_SCHEME_VERSION = "2"

HIGHER_VARIANT_PERCENTAGE = "percentage"
HIGHER_VARIANT_BLANK = "blank"

LABEL_STAT_KEYS = (
    "lowest_variants",
    "competitive_positions",
    "inventory_levels",
    "vendor_categories",
    "seasonal_attributes",
)


@dataclass(frozen=True)
class CustomLabels:
    lowest_variant: str
    competitive_position: str
    inventory_level: str
    vendor_category: str
    seasonal_attribute: str

    def values(self):
        return (
            self.lowest_variant,
            self.competitive_position,
            self.inventory_level,
            self.vendor_category,
            self.seasonal_attribute,
        )

    def as_columns(self) -> Dict[str, str]:
        return {f"custom_label_{index}": value for index, value in enumerate(self.values())}


def _lowest_variant_label(row: Dict[str, Any], analysis: FeedAnalysis, price: float, policy: str) -> str:
    variant = analysis.lowest_variants.get(row["product_id"])

    if variant is None:
        band = analysis.price_band_for(price)
        return f"Price_{band.label}" if band else "Single_Product"

    if variant.is_lowest:
        return "Lowest_Variant" if variant.total_variants > 1 else "Single_Variant"

    if policy == HIGHER_VARIANT_BLANK:
        return ""
    return f"Higher_Variant_+{variant.price_difference_pct:.0f}%"


def _competitive_label(row: Dict[str, Any], analysis: FeedAnalysis, price: float) -> str:
    cohort = analysis.cohorts.get(cohort_key(row))
    if cohort is None:
        return "Unique_Product"
    if cohort.is_price_leader:
        return "Price_Leader"
    if price < cohort.avg_price:
        return "Below_Average"
    if price > cohort.avg_price * 1.1:
        return "Premium_Priced"
    return "Market_Rate"


def _inventory_label(quantity: int, analysis: FeedAnalysis) -> str:
    if analysis.inventory is None:
        return ""
    if quantity == 0:
        return "Out_of_Stock"
    if quantity <= 5:
        return "Critical_Stock"
    if quantity <= analysis.inventory.q1:
        return "Low_Stock"
    if quantity <= analysis.inventory.q3:
        return "Medium_Stock"
    return "High_Stock"


def _vendor_label(row: Dict[str, Any], analysis: FeedAnalysis, price: float) -> str:
    vendor = analysis.vendor_groups.get(row.get("vendor") or UNKNOWN_VENDOR)
    if vendor is None:
        return ""

    if vendor.count >= 50:
        label = "Major_Brand"
    elif vendor.count >= 10:
        label = "Regular_Brand"
    else:
        label = "Boutique_Brand"

    if price > vendor.avg_price * 1.2:
        label += "_Premium"
    elif price < vendor.avg_price * 0.8:
        label += "_Value"
    return label


def _seasonal_label(row: Dict[str, Any], analysis: FeedAnalysis, price: float) -> str:
    season = analysis.seasonal.get(row["product_id"])
    if season:
        return season.capitalize()

    tags = (row.get("tags") or "").lower()
    compare_at_price = to_price(row.get("compare_at_price"))
    luxury_min = analysis.luxury_min

    if compare_at_price > price:
        return "On_Sale"
    if "new" in tags:
        return "New_Arrival"
    if "bestseller" in tags:
        return "Bestseller"
    if price > 0 and luxury_min is not None and price >= luxury_min:
        return "Luxury_Item"
    return "Standard"


def derive_labels(
    row: Dict[str, Any], analysis: FeedAnalysis, higher_variant_policy: str = HIGHER_VARIANT_PERCENTAGE
) -> CustomLabels:
    """
    Deriva las cinco etiquetas de una fila del feed.

    Args:
        row: Fila de CatalogStore.query_feed_rows
        analysis: Resultado de analyze_feed_rows sobre el mismo conjunto de filas
        higher_variant_policy: "percentage" (Higher_Variant_+N%) o "blank" (cadena vacía)

    Returns:
        CustomLabels: Etiquetas L0..L4
    """
    price = to_price(row.get("price"))
    quantity = row.get("inventory_quantity") or 0

    return CustomLabels(
        lowest_variant=_lowest_variant_label(row, analysis, price, higher_variant_policy),
        competitive_position=_competitive_label(row, analysis, price),
        inventory_level=_inventory_label(quantity, analysis),
        vendor_category=_vendor_label(row, analysis, price),
        seasonal_attribute=_seasonal_label(row, analysis, price),
    )


def label_statistics(labels: Iterable[CustomLabels]) -> Dict[str, Dict[str, int]]:
    """Conteo por valor de cada etiqueta; las etiquetas vacías no se cuentan."""
    counters = {key: Counter() for key in LABEL_STAT_KEYS}
    for item in labels:
        for key, value in zip(LABEL_STAT_KEYS, item.values()):
            if value:
                counters[key][value] += 1
    return {key: dict(counter) for key, counter in counters.items()}
