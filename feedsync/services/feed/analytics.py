"""
Análisis del catálogo para etiquetas personalizadas del feed.

Calcula, sobre las filas filtradas del feed:
- Grupos de producto base (título + vendor) y su variante de menor precio
- Bandas de precio (5 rangos de igual ancho sobre precios positivos)
- Estadísticas por vendor y por cohorte (tipo de producto, vendor)
- Cuartiles de inventario
- Coincidencias de palabras clave estacionales
"""

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

PRICE_BAND_LABELS = ("Budget", "Value", "Standard", "Premium", "Luxury")

# Orden relevante: la última estación que coincide gana
SEASONAL_KEYWORDS: "OrderedDict[str, Tuple[str, ...]]" = OrderedDict(
    [
        ("spring", ("spring", "easter", "fresh", "bloom", "renewal")),
        ("summer", ("summer", "beach", "vacation", "sun", "outdoor", "pool")),
        ("fall", ("fall", "autumn", "harvest", "cozy", "warm")),
        ("winter", ("winter", "holiday", "christmas", "warm", "indoor", "gift")),
        ("clearance", ("clearance", "sale", "discount", "end of season", "final")),
        ("trending", ("new", "latest", "trending", "popular", "hot")),
    ]
)

UNKNOWN_VENDOR = "Unknown"


def to_price(value: Any) -> float:
    """Precio como float; valores vacíos o inválidos cuentan como 0."""
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def group_key(row: Dict[str, Any]) -> str:
    """Clave de producto base: título y vendor normalizados."""
    title = (row.get("title") or "").lower().strip()
    vendor = (row.get("vendor") or "").lower().strip()
    return f"{title}_{vendor}"


def cohort_key(row: Dict[str, Any]) -> str:
    """Clave de cohorte competitiva: (tipo de producto, vendor)."""
    return f"{row.get('product_type') or ''}_{row.get('vendor') or ''}".lower()


@dataclass
class VariantAnalysis:
    """Posición de una fila dentro de su grupo de producto base."""

    is_lowest: bool
    lowest_price: float
    current_price: float
    total_variants: int
    group_key: str

    @property
    def price_difference_pct(self) -> float:
        if self.lowest_price <= 0:
            return 0.0
        return (self.current_price - self.lowest_price) / self.lowest_price * 100


@dataclass
class PriceBand:
    label: str
    min: float
    max: float


@dataclass
class VendorStats:
    count: int = 0
    total_price: float = 0.0

    @property
    def avg_price(self) -> float:
        return self.total_price / self.count if self.count else 0.0


@dataclass
class CohortStats:
    avg_price: float
    min_price: float

    @property
    def is_price_leader(self) -> bool:
        return self.min_price < self.avg_price * 0.9


@dataclass
class InventoryQuartiles:
    q1: int
    q3: int
    median: int


@dataclass
class FeedAnalysis:
    """Resultado del análisis usado para derivar las etiquetas."""

    lowest_variants: Dict[str, VariantAnalysis] = field(default_factory=dict)
    price_bands: List[PriceBand] = field(default_factory=list)
    vendor_groups: Dict[str, VendorStats] = field(default_factory=dict)
    cohorts: Dict[str, CohortStats] = field(default_factory=dict)
    inventory: Optional[InventoryQuartiles] = None
    seasonal: Dict[str, str] = field(default_factory=dict)

    def price_band_for(self, price: float) -> Optional[PriceBand]:
        """Banda de precio de ``price``; los límites pertenecen a la banda superior."""
        if not self.price_bands or price <= 0:
            return None

        low = self.price_bands[0].min
        width = (self.price_bands[-1].max - low) / len(self.price_bands)
        if width <= 0:
            return self.price_bands[-1]

        index = int((price - low) // width)
        return self.price_bands[max(0, min(index, len(self.price_bands) - 1))]

    @property
    def luxury_min(self) -> Optional[float]:
        return self.price_bands[-1].min if self.price_bands else None


def group_rows(rows: List[Dict[str, Any]]) -> "OrderedDict[str, List[Dict[str, Any]]]":
    groups: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    for row in rows:
        groups.setdefault(group_key(row), []).append(row)
    return groups


def analyze_lowest_variants(groups: Dict[str, List[Dict[str, Any]]]) -> Dict[str, VariantAnalysis]:
    """
    Marca la fila de menor precio positivo de cada grupo.

    Ante empates gana la primera fila encontrada. Los grupos sin precios
    positivos no se analizan.

    Returns:
        Dict: product_id -> VariantAnalysis
    """
    analysis: Dict[str, VariantAnalysis] = {}

    for key, members in groups.items():
        lowest_row = None
        lowest_price = math.inf
        for row in members:
            price = to_price(row.get("price"))
            if 0 < price < lowest_price:
                lowest_price = price
                lowest_row = row

        if lowest_row is None:
            continue

        for row in members:
            analysis[row["product_id"]] = VariantAnalysis(
                is_lowest=row is lowest_row,
                lowest_price=lowest_price,
                current_price=to_price(row.get("price")),
                total_variants=len(members),
                group_key=key,
            )

    lowest_count = sum(1 for item in analysis.values() if item.is_lowest)
    logger.info(
        f"Lowest variant analysis: {len(groups)} groups, {lowest_count} lowest-priced, "
        f"{len(analysis) - lowest_count} higher-priced"
    )
    return analysis


def calculate_price_bands(prices: List[float]) -> List[PriceBand]:
    """Cinco bandas de igual ancho entre el precio positivo mínimo y máximo."""
    positive = [price for price in prices if price > 0]
    if not positive:
        return []

    low, high = min(positive), max(positive)
    width = (high - low) / len(PRICE_BAND_LABELS)
    bands = []
    for index, label in enumerate(PRICE_BAND_LABELS):
        band_max = high if index == len(PRICE_BAND_LABELS) - 1 else low + width * (index + 1)
        bands.append(PriceBand(label=label, min=low + width * index, max=band_max))
    return bands


def calculate_inventory_quartiles(quantities: List[int]) -> Optional[InventoryQuartiles]:
    """Cuartiles empíricos: Q1 = sorted[floor(n*0.25)], Q3 = sorted[floor(n*0.75)]."""
    if not quantities:
        return None

    ordered = sorted(quantities)
    n = len(ordered)
    return InventoryQuartiles(
        q1=ordered[math.floor(n * 0.25)],
        q3=ordered[math.floor(n * 0.75)],
        median=ordered[math.floor(n * 0.5)],
    )


def match_season(row: Dict[str, Any]) -> Optional[str]:
    """Última entrada del vocabulario estacional que coincide con título, tags y tipo."""
    search_text = f"{row.get('title') or ''} {row.get('tags') or ''} {row.get('product_type') or ''}".lower()
    matched = None
    for season, keywords in SEASONAL_KEYWORDS.items():
        if any(keyword in search_text for keyword in keywords):
            matched = season
    return matched


def analyze_feed_rows(rows: List[Dict[str, Any]]) -> FeedAnalysis:
    """
    Calcula todas las estadísticas necesarias para las etiquetas.

    Args:
        rows: Filas devueltas por CatalogStore.query_feed_rows

    Returns:
        FeedAnalysis: Estadísticas de grupos, bandas, vendors, cohortes, inventario y estaciones
    """
    prices: List[float] = []
    quantities: List[int] = []
    vendor_groups: Dict[str, VendorStats] = {}
    cohort_prices: Dict[str, List[float]] = {}
    cohort_sizes: Dict[str, int] = {}
    seasonal: Dict[str, str] = {}

    for row in rows:
        price = to_price(row.get("price"))
        prices.append(price)
        quantities.append(row.get("inventory_quantity") or 0)

        vendor = vendor_groups.setdefault(row.get("vendor") or UNKNOWN_VENDOR, VendorStats())
        vendor.count += 1
        vendor.total_price += price

        key = cohort_key(row)
        cohort_sizes[key] = cohort_sizes.get(key, 0) + 1
        if price > 0:
            cohort_prices.setdefault(key, []).append(price)

        season = match_season(row)
        if season:
            seasonal[row["product_id"]] = season

    cohorts = {
        key: CohortStats(avg_price=sum(values) / len(values), min_price=min(values))
        for key, values in cohort_prices.items()
        if cohort_sizes[key] > 1 and len(values) > 1
    }

    analysis = FeedAnalysis(
        lowest_variants=analyze_lowest_variants(group_rows(rows)),
        price_bands=calculate_price_bands(prices),
        vendor_groups=vendor_groups,
        cohorts=cohorts,
        inventory=calculate_inventory_quartiles(quantities),
        seasonal=seasonal,
    )

    logger.info(
        f"Product analysis completed: {len(rows)} products, {len(vendor_groups)} vendors, "
        f"{len(cohorts)} competitive cohorts, {len(seasonal)} seasonal matches"
    )
    return analysis
