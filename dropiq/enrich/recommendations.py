"""Sovrn shopping-gallery recommendations for a product page."""

import logging
import math
from typing import Any, Dict, List, Optional

import httpx

from dropiq.config import settings

logger = logging.getLogger(__name__)


def usd_price_range(price_inr: Any, usd_to_inr: float) -> Optional[tuple[int, int]]:
    """±30% of the INR price, converted to whole USD. None without a price."""
    try:
        price = float(price_inr)
    except (TypeError, ValueError):
        return None
    if not price or math.isnan(price):
        return None
    price_usd = price / usd_to_inr
    return math.floor(price_usd * 0.7), math.ceil(price_usd * 1.3)


def build_content(product: Dict[str, Any]) -> str:
    """Short text describing the product page."""
    parts = []
    if product.get("product_name"):
        parts.append(product["product_name"])
    if product.get("category"):
        parts.append(f"Category: {product['category']}")
    if product.get("price_inr"):
        parts.append(f"Price: ₹{product['price_inr']}")
    if product.get("description"):
        parts.append(product["description"][:100])
    return ". ".join(parts)


class RecommendationsClient:
    """Fetches similar products from Sovrn. Never raises."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        market: Optional[str] = None,
        usd_to_inr: Optional[float] = None,
        num_products: int = 5,
    ):
        self.api_key = settings.sovrn_api_key if api_key is None else api_key
        self.base_url = base_url or settings.sovrn_recommendations_url
        self.market = market or settings.sovrn_market
        self.usd_to_inr = usd_to_inr or settings.usd_to_inr_rate
        self.num_products = num_products
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=settings.sovrn_timeout_seconds,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _map_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        sale_price = item.get("salePrice")
        merchant = item.get("merchant") or {}
        return {
            "name": item.get("name") or "Product",
            "price_inr": round(float(sale_price) * self.usd_to_inr) if sale_price else None,
            "image_url": item.get("imageURL") or item.get("thumbnailURL"),
            # deepLink is already an affiliate link
            "product_url": item.get("deepLink"),
            "affiliate_url": item.get("deepLink"),
            "merchant": merchant.get("name") or "Unknown",
            "merchant_id": merchant.get("id"),
            "in_stock": bool(item.get("inStock")),
        }

    async def get_recommendations(self, product: Dict[str, Any], product_id: str) -> List[Dict[str, Any]]:
        """
        Recommendations for one product.

        Args:
            product: Product fields (name, category, price, description)
            product_id: Stable ID, used for the page URL and as cuid

        Returns:
            Mapped recommendations; [] on any failure
        """
        if not self.api_key:
            logger.warning("SOVRN_API_KEY not configured for recommendations")
            return []

        params: Dict[str, Any] = {
            "apiKey": self.api_key,
            "pageUrl": f"{settings.public_site_url}/product/{product_id}",
            "numProducts": self.num_products,
            "market": self.market,
            "cuid": product_id,
        }
        price_range = usd_price_range(product.get("price_inr"), self.usd_to_inr)
        if price_range:
            params["priceMin"], params["priceMax"] = price_range

        body = {
            "title": product.get("product_name") or "Product",
            "content": build_content(product),
        }

        try:
            client = await self._get_client()
            response = await client.post(self.base_url, params=params, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Sovrn recommendations API error: {e.response.status_code} {e.response.text[:200]}")
            return []
        except Exception as e:
            logger.error(f"Sovrn recommendations request failed: {e}")
            return []

        if not isinstance(data, list):
            logger.warning("Invalid response from Sovrn recommendations API")
            return []

        try:
            recommendations = [self._map_item(item) for item in data if isinstance(item, dict)]
        except (TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed item in Sovrn recommendations response: {e}")
            return []
        logger.info(f"Fetched {len(recommendations)} recommendations for {product.get('product_name')}")
        return recommendations
