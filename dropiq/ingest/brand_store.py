"""
Brand-store ingestion (Samsung, Sony).

Brand stores list many products also sold on the marketplaces. For each
incoming record:
- skip it when the other brand table already has it
- refresh the Amazon/Flipkart row when one matches by name
- otherwise upsert it into the brand's own table

Usage:
    python -m dropiq.ingest.brand_store records.json

where records.json maps a brand to its list of scraped records:
    {"samsung": [{"name": "...", "price": "₹12,999", ...}], "sony": [...]}
"""

import asyncio
import json
import re
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dropiq.logging_config import get_logger
from dropiq.repository.products import BRAND_STORE_SLUGS, ProductRepository

logger = get_logger(__name__, component="brand_ingest")

CATEGORY_CODES = {
    "earbuds": "1",
    "headphones": "2",
    "neckbands": "3",
    "wired_earphones": "4",
    "robot_vacuums": "5",
}

_NUMBER = re.compile(r"[\d,]+\.?\d*")
_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def determine_category(product_name: str, description: Optional[str] = None) -> str:
    """Infer a category from free text; earbuds when nothing matches."""
    text = f"{product_name} {description or ''}".lower()

    if "robot" in text and "vacuum" in text:
        return "robot_vacuums"
    if "neckband" in text:
        return "neckbands"
    if "earbud" in text or "ear bud" in text or "buds" in text:
        return "earbuds"
    if "wired" in text and ("earphone" in text or "headphone" in text):
        return "wired_earphones"
    if "headphone" in text or "headset" in text:
        return "headphones"
    return "earbuds"


def parse_number(value: Any) -> Optional[float]:
    """First number in a scraped string ("₹12,999.00" -> 12999.0)."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER.search(str(value))
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


class ProductIdAllocator:
    """
    Hands out ``<brand3>_<category code>_<NN>`` product IDs.

    Serials restart at 01 per brand and category for each allocator, so one
    ingestion run owns one allocator.
    """

    def __init__(self):
        self._counters: Dict[tuple[str, str], int] = {}

    def next_id(self, brand: str, category: str) -> str:
        brand_code = brand.lower()[:3]
        category_code = CATEGORY_CODES.get(category, "1")
        key = (brand.lower(), category_code)
        serial = self._counters.get(key, 0) + 1
        self._counters[key] = serial
        return f"{brand_code}_{category_code}_{serial:02d}"


def default_product_url(brand: str, product_name: str) -> str:
    """Brand-store URL built from the product name when the record has none."""
    slug = _SLUG_CHARS.sub("-", product_name.lower()).strip("-")
    if brand.lower() == "samsung":
        section = "galaxy-buds" if "galaxy buds" in product_name.lower() else "others"
        return f"https://www.samsung.com/in/audio-sound/{section}/{slug}/"
    if brand.lower() == "sony":
        return f"https://www.sony.co.in/electronics/{slug}"
    return ""


def normalize_brand_product(raw: Dict[str, Any], brand: str, allocator: ProductIdAllocator) -> Dict[str, Any]:
    """Map a scraped brand-store record onto product columns."""
    name = (raw.get("name") or raw.get("product_name") or "").strip()
    colors = raw.get("colors")
    description = raw.get("description") or (f"Available in: {colors}" if colors else None)
    category = raw.get("category") or determine_category(name, description)

    features = raw.get("features")
    if not (isinstance(features, list) and features):
        features = [f"Available in: {colors}"] if colors else None

    reviews_count = parse_number(raw.get("reviews_count"))
    return {
        "product_name": name,
        "brand": brand,
        "product_id": allocator.next_id(brand, category),
        "category": category,
        "price_inr": parse_number(raw.get("price")),
        "rating": parse_number(raw.get("rating")),
        "reviews_count": int(reviews_count) if reviews_count is not None else None,
        "description": description,
        "features": features,
        "image_url": raw.get("image_url"),
        "product_url": raw.get("product_url") or default_product_url(brand, name),
        "availability_status": raw.get("availability") or "in_stock",
    }


@dataclass
class BrandStats:
    total: int = 0
    inserted: int = 0
    updated: int = 0
    duplicates: int = 0
    errors: int = 0


@dataclass
class IngestionReport:
    brands: Dict[str, BrandStats] = field(default_factory=dict)
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brands": {brand: asdict(stats) for brand, stats in self.brands.items()},
            "duration_seconds": round(self.duration_seconds, 2),
        }


class BrandStoreIngestor:
    """Ingests brand-store records with cross-table duplicate checks."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.allocator = ProductIdAllocator()

    async def ingest_product(self, repository: ProductRepository, brand: str, raw: Dict[str, Any]) -> str:
        """
        Ingest one record.

        Returns:
            "duplicate", "updated" or "inserted"
        """
        product = normalize_brand_product(raw, brand, self.allocator)
        if not product["product_name"]:
            raise ValueError("record has no product name")

        for other in BRAND_STORE_SLUGS:
            if other == brand.lower():
                continue
            if await repository.find_in_brand_table(other, product["product_name"]):
                logger.info(f"Duplicate in {other}: {product['product_name']}")
                return "duplicate"

        match = await repository.find_in_retailers(product["product_name"])
        if match is not None:
            await repository.update_with_brand_data(match.retailer, match.product_name, product)
            logger.info(f"Updated {match.retailer}: {product['product_name']}")
            return "updated"

        await repository.upsert(brand, product)
        logger.info(f"Inserted {brand}: {product['product_name']}")
        return "inserted"

    async def ingest_brand(self, brand: str, records: Iterable[Dict[str, Any]]) -> BrandStats:
        stats = BrandStats()
        async with self.session_factory() as session:
            repository = ProductRepository(session)
            for raw in records:
                stats.total += 1
                try:
                    outcome = await self.ingest_product(repository, brand, raw)
                except Exception as e:
                    await session.rollback()
                    logger.error(f"Error processing {brand} product: {e}")
                    stats.errors += 1
                    continue
                if outcome == "duplicate":
                    stats.duplicates += 1
                elif outcome == "updated":
                    stats.updated += 1
                else:
                    stats.inserted += 1
        return stats

    async def run(self, records_by_brand: Dict[str, List[Dict[str, Any]]]) -> IngestionReport:
        """Ingest every brand's records and return per-brand stats."""
        start = time.time()
        report = IngestionReport()
        for brand, records in records_by_brand.items():
            slug = brand.lower()
            if slug not in BRAND_STORE_SLUGS:
                logger.warning(f"Skipping unknown brand store: {brand}")
                continue
            display = slug.capitalize()
            report.brands[slug] = await self.ingest_brand(display, records)
            stats = report.brands[slug]
            logger.info(
                f"{display}: total={stats.total} inserted={stats.inserted} updated={stats.updated} "
                f"duplicates={stats.duplicates} errors={stats.errors}"
            )
        report.duration_seconds = time.time() - start
        return report


async def ingest_file(path: Path) -> IngestionReport:
    from dropiq.db.session import AsyncSessionLocal

    records = json.loads(path.read_text(encoding="utf-8"))
    return await BrandStoreIngestor(AsyncSessionLocal).run(records)


if __name__ == "__main__":
    import argparse

    from dropiq.logging_config import setup_logging

    parser = argparse.ArgumentParser(description="Ingest brand-store product records")
    parser.add_argument("records", type=Path, help="JSON file mapping brand -> list of records")
    args = parser.parse_args()

    setup_logging()
    result = asyncio.run(ingest_file(args.records))
    print(json.dumps(result.to_dict(), indent=2))
