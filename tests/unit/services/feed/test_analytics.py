"""Tests unitarios para el análisis del catálogo del feed."""

import pytest

from feedsync.services.feed.analytics import (
    FeedAnalysis,
    PriceBand,
    analyze_feed_rows,
    analyze_lowest_variants,
    calculate_inventory_quartiles,
    calculate_price_bands,
    group_rows,
    match_season,
    to_price,
)
from tests.factories import make_feed_row


class TestLowestVariants:
    """Tests para la detección de la variante de menor precio por producto base."""

    def test_groups_by_normalized_title_and_vendor(self):
        rows = [
            make_feed_row("1", title="Blue Shirt ", vendor="Acme"),
            make_feed_row("2", title="blue shirt", vendor="ACME"),
            make_feed_row("3", title="Blue Shirt", vendor="Zeta"),
        ]

        groups = group_rows(rows)

        assert list(groups) == ["blue shirt_acme", "blue shirt_zeta"]
        assert len(groups["blue shirt_acme"]) == 2

    def test_lowest_and_difference(self):
        rows = [
            make_feed_row("1", title="Shirt", price=12.0),
            make_feed_row("2", title="Shirt", price=10.0),
        ]

        analysis = analyze_lowest_variants(group_rows(rows))

        assert analysis["2"].is_lowest is True
        assert analysis["1"].is_lowest is False
        assert analysis["1"].total_variants == 2
        assert analysis["1"].price_difference_pct == pytest.approx(20.0)

    def test_tie_keeps_first_row(self):
        rows = [make_feed_row("1", title="Shirt", price=10.0), make_feed_row("2", title="Shirt", price=10.0)]

        analysis = analyze_lowest_variants(group_rows(rows))

        assert analysis["1"].is_lowest is True
        assert analysis["2"].is_lowest is False

    def test_group_without_positive_price_is_skipped(self):
        rows = [make_feed_row("1", title="Free", price=0), make_feed_row("2", title="Free", price=None)]

        assert analyze_lowest_variants(group_rows(rows)) == {}


class TestPriceBands:
    """Tests para las bandas de precio."""

    def test_five_equal_width_bands(self):
        bands = calculate_price_bands([20.0, 100.0, 50.0, 0.0])

        assert [band.label for band in bands] == ["Budget", "Value", "Standard", "Premium", "Luxury"]
        assert bands[0].min == 20.0
        assert bands[1].min == pytest.approx(36.0)
        assert bands[-1].min == pytest.approx(84.0)
        assert bands[-1].max == 100.0

    def test_no_positive_prices(self):
        assert calculate_price_bands([0.0, 0.0]) == []

    def test_band_lookup(self):
        analysis = FeedAnalysis(price_bands=calculate_price_bands([20.0, 100.0]))

        assert analysis.price_band_for(20.0).label == "Budget"
        assert analysis.price_band_for(36.0).label == "Value"
        assert analysis.price_band_for(100.0).label == "Luxury"
        assert analysis.price_band_for(0) is None
        assert analysis.luxury_min == pytest.approx(84.0)

    def test_single_price_maps_to_top_band(self):
        analysis = FeedAnalysis(price_bands=[PriceBand(label, 10.0, 10.0) for label in ("Budget", "Luxury")])

        assert analysis.price_band_for(10.0).label == "Luxury"


class TestInventoryAndSeasons:
    """Tests para cuartiles de inventario y palabras clave estacionales."""

    def test_quartiles_use_floor_index(self):
        quartiles = calculate_inventory_quartiles([10, 0, 3])

        assert (quartiles.q1, quartiles.median, quartiles.q3) == (0, 3, 10)

    def test_quartiles_empty(self):
        assert calculate_inventory_quartiles([]) is None

    def test_last_matching_season_wins(self):
        """'warm' aparece en otoño e invierno; gana invierno."""
        assert match_season(make_feed_row("1", title="Warm Blanket")) == "winter"

    def test_season_from_tags(self):
        assert match_season(make_feed_row("1", title="Towel", tags="beach")) == "summer"

    def test_no_season(self):
        assert match_season(make_feed_row("1", title="Plain Mug", product_type="Kitchen")) is None

    def test_to_price(self):
        assert to_price("12.5") == 12.5
        assert to_price(None) == 0.0
        assert to_price("n/a") == 0.0


class TestAnalyzeFeedRows:
    """Tests para el análisis completo."""

    def test_vendor_and_cohort_stats(self):
        rows = [
            make_feed_row("1", title="Alpha", vendor="Acme", product_type="Outerwear", price=100.0),
            make_feed_row("2", title="Beta", vendor="Acme", product_type="Outerwear", price=50.0),
            make_feed_row("3", title="Gamma", vendor=None, product_type="Accessories", price=20.0),
        ]

        analysis = analyze_feed_rows(rows)

        assert analysis.vendor_groups["Acme"].count == 2
        assert analysis.vendor_groups["Acme"].avg_price == 75.0
        assert analysis.vendor_groups["Unknown"].count == 1
        assert list(analysis.cohorts) == ["outerwear_acme"]
        assert analysis.cohorts["outerwear_acme"].is_price_leader is True

    def test_cohort_needs_two_positive_prices(self):
        rows = [
            make_feed_row("1", title="Alpha", price=30.0),
            make_feed_row("2", title="Beta", price=0),
        ]

        assert analyze_feed_rows(rows).cohorts == {}

    def test_analysis_is_deterministic(self):
        rows = [make_feed_row(str(i), title=f"Item {i % 3}", price=10 + i) for i in range(9)]

        assert analyze_feed_rows(rows) == analyze_feed_rows(list(rows))
