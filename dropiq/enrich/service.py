"""Cached recommendations and price comparisons for a product row."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dropiq import metrics
from dropiq.enrich.price_comparison import PriceComparisonClient
from dropiq.enrich.recommendations import RecommendationsClient
from dropiq.errors import ProductNotFoundError
from dropiq.repository.products import ProductRepository
from dropiq.search.retailers import get_retailer

logger = logging.getLogger(__name__)

recommendations_client = RecommendationsClient()
price_comparison_client = PriceComparisonClient()


class EnrichmentService:
    """
    Serves enrichment lists from the product row when present.

    A non-empty cached list is returned as-is. Otherwise the provider is
    called and a non-empty answer is written back; empty answers are not
    cached so the next request tries again.
    """

    def __init__(
        self,
        session: AsyncSession,
        recommendations: Optional[RecommendationsClient] = None,
        price_comparisons: Optional[PriceComparisonClient] = None,
    ):
        self.repository = ProductRepository(session)
        self.recommendations = recommendations or recommendations_client
        self.price_comparisons = price_comparisons or price_comparison_client

    async def _load(self, retailer: str, product_id: str) -> Dict[str, Any]:
        get_retailer(retailer)  # InvalidRetailerError before any lookup
        product = await self.repository.get_by_id(retailer, product_id)
        if product is None:
            raise ProductNotFoundError(f"{retailer} product {product_id} not found")
        return product

    def _envelope(self, product: Dict[str, Any], key: str, items: list, cached: bool) -> Dict[str, Any]:
        return {
            "success": True,
            "product_id": str(product["id"]),
            "product_name": product["product_name"],
            key: items,
            "cached": cached,
        }

    async def get_recommendations(self, retailer: str, product_id: str) -> Dict[str, Any]:
        product = await self._load(retailer, product_id)
        cached = product.get("recommendations")
        if isinstance(cached, list) and cached:
            metrics.enrichment_requests_total.labels(kind="recommendations", source="cache").inc()
            return self._envelope(product, "recommendations", cached, cached=True)

        logger.info(f"Fetching new recommendations for {product['product_name']}")
        items = await self.recommendations.get_recommendations(product, str(product["id"]))
        metrics.enrichment_requests_total.labels(kind="recommendations", source="provider").inc()

        body = self._envelope(product, "recommendations", items, cached=False)
        if not items:
            body["message"] = "No recommendations available"
            return body

        await self.repository.set_enrichment(retailer, product["id"], "recommendations", items)
        return body

    async def get_price_comparisons(self, retailer: str, product_id: str) -> Dict[str, Any]:
        """Raises EnrichmentError when the provider fails."""
        product = await self._load(retailer, product_id)
        cached = product.get("price_comparisons")
        if isinstance(cached, list) and cached:
            metrics.enrichment_requests_total.labels(kind="price_comparisons", source="cache").inc()
            return self._envelope(product, "comparisons", cached, cached=True)

        logger.info(f"Fetching price comparisons for {product['product_name']}")
        items = await self.price_comparisons.get_price_comparisons(product)
        metrics.enrichment_requests_total.labels(kind="price_comparisons", source="provider").inc()

        body = self._envelope(product, "comparisons", items, cached=False)
        if not items:
            body["message"] = "No price comparisons available"
            return body

        await self.repository.set_enrichment(retailer, product["id"], "price_comparisons", items)
        return body


async def close_clients():
    """Close the shared provider HTTP clients."""
    await recommendations_client.close()
    await price_comparison_client.close()
