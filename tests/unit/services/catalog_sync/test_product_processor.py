"""Tests unitarios para ProductProcessor."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from feedsync.schemas.catalog_schemas import ShopifyProduct
from feedsync.services.catalog_sync.product_processor import ProcessOutcome, ProductProcessor
from tests.factories import make_product


def mock_store(exists: bool = False) -> MagicMock:
    store = MagicMock()
    store.product_exists = AsyncMock(return_value=exists)
    store.upsert_product = AsyncMock()
    store.upsert_variant = AsyncMock()
    store.upsert_image = AsyncMock()
    store.mark_product_synced = AsyncMock()
    return store


class TestLowestVariantSelection:
    """Tests para la selección de la variante de menor precio."""

    def test_lowest_positive_price_is_selected(self):
        """Con precios [10, 15, 8] se retiene la variante de 8."""
        product = ShopifyProduct.model_validate(make_product(1, prices=["10", "15", "8"]))

        assert product.lowest_priced_variant().price == 8.0

    def test_zero_priced_first_variant_is_replaced(self):
        product = ShopifyProduct.model_validate(make_product(1, prices=["0", "12", "20"]))

        assert product.lowest_priced_variant().price == 12.0

    def test_all_zero_prices_keep_first_variant(self):
        product = ShopifyProduct.model_validate(make_product(1, prices=["0", "0"]))

        assert product.lowest_priced_variant().id == "101"

    def test_no_variants(self):
        product = ShopifyProduct.model_validate(make_product(1, prices=[]))

        assert product.lowest_priced_variant() is None


class TestProcess:
    """Tests para el flujo de persistencia de un producto."""

    @pytest.mark.asyncio
    async def test_new_product_is_added_with_single_variant(self):
        store = mock_store(exists=False)

        outcome = await ProductProcessor(store).process(make_product(1, prices=["10", "15", "8"]))

        assert outcome == ProcessOutcome.ADDED
        store.upsert_product.assert_awaited_once()
        assert store.upsert_product.await_args.kwargs["sync_status"] == "pending"
        store.upsert_variant.assert_awaited_once()
        assert store.upsert_variant.await_args.args[0].price == 8.0
        store.upsert_image.assert_awaited_once()
        store.mark_product_synced.assert_awaited_once_with("1")

    @pytest.mark.asyncio
    async def test_existing_product_is_updated(self):
        store = mock_store(exists=True)

        outcome = await ProductProcessor(store).process(make_product(1))

        assert outcome == ProcessOutcome.UPDATED

    @pytest.mark.asyncio
    async def test_product_without_image_skips_image_upsert(self):
        store = mock_store()

        await ProductProcessor(store).process(make_product(1, with_image=False))

        store.upsert_image.assert_not_awaited()
        store.mark_product_synced.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_malformed_payload_raises_before_writing(self):
        store = mock_store()

        with pytest.raises(ValidationError):
            await ProductProcessor(store).process({"id": 1})

        store.upsert_product.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_product_is_not_marked_synced_when_variant_write_fails(self):
        """Si falla la escritura de la variante el producto queda 'pending'."""
        store = mock_store()
        store.upsert_variant.side_effect = RuntimeError("disk full")

        with pytest.raises(RuntimeError):
            await ProductProcessor(store).process(make_product(1))

        store.mark_product_synced.assert_not_awaited()
