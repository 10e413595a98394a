"""Sovrn Commerce affiliate link wrapping."""

import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

from dropiq.config import settings

logger = logging.getLogger(__name__)

SOVRN_REDIRECT_URL = "https://sovrn.co"
UTM_SOURCE = "dropiq_search"
UTM_MEDIUM = "product_listing"


class AffiliateLinkGenerator:
    """Wraps product URLs with Sovrn tracking."""

    def __init__(self, api_key: Optional[str] = None, bid_floor: Optional[float] = None):
        self.api_key = settings.sovrn_api_key if api_key is None else api_key
        self.bid_floor = settings.sovrn_bid_floor if bid_floor is None else bid_floor

    def generate(
        self,
        destination_url: Optional[str],
        cuid: Optional[str] = None,
        utm_source: Optional[str] = None,
        utm_medium: Optional[str] = None,
        utm_campaign: Optional[str] = None,
    ) -> Optional[str]:
        """
        Build the affiliate URL for a product page.

        The destination doubles as the fallback URL. Without an API key, or
        for an empty URL, the destination is returned unchanged.
        """
        if not destination_url or not destination_url.strip():
            return destination_url
        if not self.api_key:
            logger.warning("SOVRN_API_KEY not configured, returning original URL")
            return destination_url

        encoded = quote(destination_url, safe="")
        url = f"{SOVRN_REDIRECT_URL}?key={self.api_key}&u={encoded}&bf={self.bid_floor}&fbu={encoded}"

        optional = (
            ("cuid", cuid),
            ("utm_source", utm_source),
            ("utm_medium", utm_medium),
            ("utm_campaign", utm_campaign),
        )
        for name, value in optional:
            if value:
                url += f"&{name}={quote(str(value), safe='')}"
        return url

    def for_product(self, retailer_slug: str, product_url: Optional[str], tracking_id: Optional[str]) -> Optional[str]:
        """Affiliate URL with the standard campaign tags for one listing."""
        return self.generate(
            product_url,
            cuid=f"{retailer_slug}_{tracking_id or 'unknown'}",
            utm_source=UTM_SOURCE,
            utm_medium=UTM_MEDIUM,
            utm_campaign=retailer_slug.lower(),
        )

    def generate_batch(self, products: Iterable[Dict[str, Any]], retailer_slug: str = "unknown") -> List[Dict[str, Any]]:
        """Copy each product dict with ``affiliate_url`` filled in."""
        return [
            {
                **product,
                "affiliate_url": self.for_product(
                    retailer_slug, product.get("product_url"), product.get("product_id")
                ),
            }
            for product in products
        ]


affiliate_links = AffiliateLinkGenerator()
