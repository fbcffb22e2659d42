import logging
from enum import Enum
from typing import Any, Dict

from feedsync.db.catalog_store import CatalogStore
from feedsync.schemas.catalog_schemas import ShopifyProduct

logger = logging.getLogger(__name__)


class ProcessOutcome(str, Enum):
    ADDED = "added"
    UPDATED = "updated"


class ProductProcessor:
    """Persists a single remote product into the local catalog."""

    def __init__(self, store: CatalogStore):
        self.store = store

    async def process(self, raw_product: Dict[str, Any]) -> ProcessOutcome:
        """
        Upsert one product with its lowest-priced variant and first image.

        The product is written as 'pending' first and only marked 'synced'
        once its variant and image are stored, so an interrupted product is
        left for the cleanup job.

        Args:
            raw_product: Product payload from the Shopify REST API

        Returns:
            ProcessOutcome: ADDED if the product was not stored before, else UPDATED

        Raises:
            pydantic.ValidationError: If the payload is malformed
            PersistenceException: If a write fails
        """
        product = ShopifyProduct.model_validate(raw_product)
        is_update = await self.store.product_exists(product.id)

        await self.store.upsert_product(product, sync_status="pending")

        variant = product.lowest_priced_variant()
        if variant is not None:
            await self.store.upsert_variant(variant, product.id)

        image = product.first_image()
        if image is not None:
            await self.store.upsert_image(image, product.id)

        await self.store.mark_product_synced(product.id)

        logger.debug(
            f"Product {product.id} stored ({'updated' if is_update else 'added'}) "
            f"- variant: {variant.id if variant else None}, price: {variant.price if variant else None}"
        )
        return ProcessOutcome.UPDATED if is_update else ProcessOutcome.ADDED
