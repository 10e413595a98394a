"""Sovrn cross-merchant price comparisons."""

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from dropiq.config import settings
from dropiq.enrich.recommendations import usd_price_range
from dropiq.errors import EnrichmentError

logger = logging.getLogger(__name__)

_PARENTHESIZED = re.compile(r"\(.*?\)")
_BRACKETED = re.compile(r"\[.*?\]")


def search_keywords(product_name: str, max_words: int = 8) -> str:
    """Product name without parenthesized/bracketed parts, first ``max_words`` words."""
    cleaned = _BRACKETED.sub("", _PARENTHESIZED.sub("", product_name)).strip()
    return " ".join(cleaned.split()[:max_words])


class PriceComparisonClient:
    """Looks up the same product at other merchants. Failures raise EnrichmentError."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        market: Optional[str] = None,
        usd_to_inr: Optional[float] = None,
        limit: int = 10,
    ):
        self.api_key = settings.sovrn_api_key if api_key is None else api_key
        self.secret_key = settings.sovrn_secret_key if secret_key is None else secret_key
        self.base_url = (base_url or settings.sovrn_comparisons_url).rstrip("/")
        self.market = market or settings.sovrn_market
        self.usd_to_inr = usd_to_inr or settings.usd_to_inr_rate
        self.limit = limit
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.sovrn_timeout_seconds)
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/sites/{self.api_key}/compare/prices/{self.market}/by/accuracy"

    def _map_item(self, item: Dict[str, Any], fallback_name: str) -> Dict[str, Any]:
        price_usd = item.get("salePrice") or item.get("retailPrice") or item.get("price") or 0
        merchant = item.get("merchant") or {}
        product_url = item.get("deeplink") or item.get("url") or item.get("link") or item.get("productUrl") or ""
        return {
            "merchant": merchant.get("name") or item.get("merchantName") or item.get("seller") or "Unknown",
            "name": item.get("name") or item.get("title") or item.get("productName") or fallback_name,
            "price_usd": price_usd,
            "price_inr": round(float(price_usd) * self.usd_to_inr),
            "image_url": item.get("image") or item.get("imageUrl") or item.get("thumbnailUrl") or item.get("thumbnail") or "",
            "product_url": product_url,
            # deeplink already carries affiliate tracking
            "affiliate_url": product_url,
            "availability": item.get("availability") or ("in_stock" if item.get("affiliatable") else "unknown"),
            "condition": item.get("condition") or "new",
            "discount_rate": item.get("discountRate") or 0,
            "retail_price": item.get("retailPrice") or price_usd,
            "epc": item.get("epc") or 0,
        }

    async def get_price_comparisons(self, product: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Merchant offers for a product, cheapest first.

        Raises:
            EnrichmentError: missing credentials/name, HTTP failure or bad payload
        """
        if not self.secret_key:
            raise EnrichmentError("SOVRN_SECRET_KEY not configured")
        product_name = product.get("product_name")
        if not product_name:
            raise EnrichmentError("Product must have product_name")

        params: Dict[str, Any] = {
            "limit": self.limit,
            "epc-sort": "true",
            "search-keywords": search_keywords(product_name),
        }
        price_range = usd_price_range(product.get("price_inr"), self.usd_to_inr)
        if price_range:
            params["price-range"] = f"{price_range[0]}-{price_range[1]}"

        try:
            client = await self._get_client()
            response = await client.get(
                self.endpoint,
                params=params,
                headers={"Authorization": f"secret {self.secret_key}", "Accept": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Sovrn price comparison API error: {e.response.status_code} {e.response.text[:200]}")
            raise EnrichmentError(f"Price comparison API returned {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Sovrn price comparison request failed: {e}")
            raise EnrichmentError(str(e)) from e

        if isinstance(data, list):
            offers = data
        elif isinstance(data, dict) and isinstance(data.get("products"), list):
            offers = data["products"]
        else:
            logger.warning(f"Unexpected price comparison response format: {type(data).__name__}")
            return []

        try:
            comparisons = [self._map_item(item, product_name) for item in offers if isinstance(item, dict)]
        except (TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed offer in price comparison response: {e}")
            raise EnrichmentError(f"Malformed price comparison offer: {e}") from e
        comparisons.sort(key=lambda c: c["price_inr"])
        logger.info(f"Found {len(comparisons)} merchant offers for {product_name}")
        return comparisons
