"""Registry of the per-retailer product tables."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Type

from dropiq.db.models import (
    AmazonProduct,
    FlipkartProduct,
    RetailerProductMixin,
    SamsungProduct,
    SonyProduct,
)
from dropiq.errors import InvalidRetailerError

# Logical field name -> column name. All four tables currently share names.
DEFAULT_COLUMNS: Mapping[str, str] = MappingProxyType(
    {
        "product_name": "product_name",
        "description": "description",
        "brand": "brand",
        "category": "category",
        "price_inr": "price_inr",
        "rating": "rating",
        "availability_status": "availability_status",
        "is_deleted": "is_deleted",
    }
)


@dataclass(frozen=True)
class RetailerTable:
    """One retailer's product table."""

    name: str  # Display name, also the retailer_name tag on results
    slug: str  # Path/campaign form: amazon, flipkart, ...
    model: Type[RetailerProductMixin]
    natural_id_field: str  # asin / product_id, used for affiliate cuid
    default_brand: Optional[str] = None
    columns: Mapping[str, str] = field(default_factory=lambda: DEFAULT_COLUMNS, hash=False)

    def column(self, logical_name: str):
        """Resolve a logical field to the mapped column on this table."""
        return getattr(self.model, self.columns[logical_name])


RETAILER_TABLES: tuple[RetailerTable, ...] = (
    RetailerTable("Amazon", "amazon", AmazonProduct, natural_id_field="asin"),
    RetailerTable("Flipkart", "flipkart", FlipkartProduct, natural_id_field="product_id"),
    RetailerTable(
        "Samsung", "samsung", SamsungProduct, natural_id_field="product_id", default_brand="Samsung"
    ),
    RetailerTable("Sony", "sony", SonyProduct, natural_id_field="product_id", default_brand="Sony"),
)

_BY_SLUG = {t.slug: t for t in RETAILER_TABLES}


def get_retailer(retailer: str) -> RetailerTable:
    """Look up a table by name or slug, case-insensitively."""
    table = _BY_SLUG.get((retailer or "").strip().lower())
    if table is None:
        raise InvalidRetailerError(f"Unknown retailer: {retailer!r}")
    return table


def select_tables(retailer: Optional[str] = None) -> tuple[RetailerTable, ...]:
    """Tables to query for a search; a retailer filter narrows to one."""
    if not retailer:
        return RETAILER_TABLES
    return (get_retailer(retailer),)
