"""Product persistence across the retailer tables."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dropiq.db.models import CATEGORIES
from dropiq.enrich.affiliate import AffiliateLinkGenerator, affiliate_links
from dropiq.search.fetcher import row_to_dict
from dropiq.search.retailers import RetailerTable, get_retailer

logger = logging.getLogger(__name__)

# Marketplaces consulted before a brand-store product gets its own row
MARKETPLACE_SLUGS = ("amazon", "flipkart")
BRAND_STORE_SLUGS = ("samsung", "sony")

# Fields a brand-store record may refresh on an existing marketplace row
BRAND_UPDATE_FIELDS = ("price_inr", "rating", "reviews_count", "description", "image_url")


@dataclass(frozen=True)
class UpsertResult:
    id: uuid.UUID
    inserted: bool


@dataclass(frozen=True)
class ProductMatch:
    """A product found by name in one of the tables."""

    retailer: str  # table slug
    id: uuid.UUID
    product_name: str


def frequent_searches() -> List[str]:
    """Suggested searches shown before the user types."""
    return list(CATEGORIES)


def parse_product_id(product_id: Any) -> Optional[uuid.UUID]:
    """UUID from a path parameter, None when it isn't one."""
    if isinstance(product_id, uuid.UUID):
        return product_id
    try:
        return uuid.UUID(str(product_id))
    except (TypeError, ValueError):
        return None


class ProductRepository:
    """Reads and writes product rows for one session."""

    def __init__(self, session: AsyncSession, affiliate: Optional[AffiliateLinkGenerator] = None):
        self.session = session
        self.affiliate = affiliate or affiliate_links

    @staticmethod
    def _column_names(table: RetailerTable) -> set[str]:
        return {column.key for column in table.model.__table__.columns}

    async def upsert(self, retailer: str, data: Dict[str, Any]) -> UpsertResult:
        """
        Insert or update a product keyed on ``product_name``.

        Unknown keys in ``data`` are ignored. The affiliate URL is always
        regenerated from ``product_url``.

        Args:
            retailer: Table name or slug
            data: Column values; ``product_name`` and ``category`` required

        Returns:
            UpsertResult with the row id and whether it was newly inserted
        """
        table = get_retailer(retailer)
        if not data.get("product_name"):
            raise ValueError("product_name is required")

        columns = self._column_names(table)
        ignored = sorted(set(data) - columns)
        if ignored:
            logger.debug(f"Ignoring unknown {table.name} fields: {ignored}")
        values = {k: v for k, v in data.items() if k in columns and k not in ("id", "created_at")}

        if not values.get("brand") and table.default_brand:
            values["brand"] = table.default_brand
        values.setdefault("availability_status", "in_stock")
        tracking_id = values.get(table.natural_id_field) or values["product_name"]
        values["affiliate_url"] = self.affiliate.for_product(
            table.slug, values.get("product_url"), tracking_id
        )
        values["last_updated"] = datetime.utcnow()

        result = await self.session.execute(
            select(table.model).where(table.model.product_name == values["product_name"])
        )
        product = result.scalar_one_or_none()

        inserted = product is None
        if inserted:
            product = table.model(id=uuid.uuid4(), **values)
            self.session.add(product)
        else:
            for key, value in values.items():
                setattr(product, key, value)

        await self.session.commit()
        logger.debug(f"{'Inserted' if inserted else 'Updated'} {table.name}: {product.product_name}")
        return UpsertResult(id=product.id, inserted=inserted)

    async def _find_by_name(self, table: RetailerTable, product_name: str) -> Optional[ProductMatch]:
        model = table.model
        result = await self.session.execute(
            select(model.id, model.product_name)
            .where(func.lower(model.product_name) == product_name.lower())
            .limit(1)
        )
        row = result.first()
        if row is None:
            return None
        return ProductMatch(retailer=table.slug, id=row.id, product_name=row.product_name)

    async def find_in_retailers(self, product_name: str) -> Optional[ProductMatch]:
        """Case-insensitive exact name match in Amazon, then Flipkart."""
        for slug in MARKETPLACE_SLUGS:
            match = await self._find_by_name(get_retailer(slug), product_name)
            if match is not None:
                return match
        return None

    async def find_in_brand_table(self, brand: str, product_name: str) -> Optional[ProductMatch]:
        """Case-insensitive exact name match in one brand-store table."""
        return await self._find_by_name(get_retailer(brand), product_name)

    async def update_with_brand_data(self, retailer: str, product_name: str, data: Dict[str, Any]) -> Optional[uuid.UUID]:
        """
        Refresh an existing row from a brand-store record.

        Only fields present (not None) in ``data`` overwrite stored values.
        Returns the updated row id, or None when no row matched.
        """
        table = get_retailer(retailer)
        model = table.model
        changes: Dict[str, Any] = {
            field: data[field] for field in BRAND_UPDATE_FIELDS if data.get(field) is not None
        }
        changes["last_updated"] = datetime.utcnow()

        match = await self._find_by_name(table, product_name)
        if match is None:
            return None

        await self.session.execute(update(model).where(model.id == match.id).values(**changes))
        await self.session.commit()
        return match.id

    async def get_by_id(self, retailer: str, product_id: Any, include_deleted: bool = False) -> Optional[Dict[str, Any]]:
        """One product as a result dict, or None."""
        table = get_retailer(retailer)
        parsed = parse_product_id(product_id)
        if parsed is None:
            return None

        query = select(table.model).where(table.model.id == parsed)
        if not include_deleted:
            query = query.where(table.model.is_deleted.is_(False))
        result = await self.session.execute(query)
        product = result.scalar_one_or_none()
        return row_to_dict(product, table.name) if product is not None else None

    async def find_any(self, product_id: Any) -> Optional[Dict[str, Any]]:
        """Product by id from the marketplace tables (Amazon first)."""
        for slug in MARKETPLACE_SLUGS:
            product = await self.get_by_id(slug, product_id, include_deleted=True)
            if product is not None:
                return product
        return None

    async def set_enrichment(self, retailer: str, product_id: uuid.UUID, field: str, value: List[Dict[str, Any]]) -> None:
        """Cache recommendations / price comparisons on a row."""
        if field not in ("recommendations", "price_comparisons"):
            raise ValueError(f"Not an enrichment field: {field}")
        model = get_retailer(retailer).model
        await self.session.execute(update(model).where(model.id == product_id).values({field: value}))
        await self.session.commit()
