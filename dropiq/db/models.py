"""SQLAlchemy database models."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    Numeric,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

CATEGORIES = ("headphones", "earbuds", "neckbands", "wired_earphones", "robot_vacuums")
AVAILABILITY_STATUSES = ("in_stock", "out_of_stock", "archived")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class RetailerProductMixin:
    """Columns shared by every retailer product table."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_name: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    brand: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    price_inr: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True, index=True)
    rating: Mapped[Optional[Decimal]] = mapped_column(Numeric(2, 1), nullable=True, index=True)
    reviews_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    specifications: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    affiliate_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    availability_status: Mapped[str] = mapped_column(
        Text, default="in_stock", nullable=False, index=True
    )

    # Lazily cached enrichment data
    recommendations: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    price_comparisons: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    @declared_attr.directive
    def __table_args__(cls):
        prefix = cls.__table_prefix__
        categories = ", ".join(f"'{c}'" for c in CATEGORIES)
        statuses = ", ".join(f"'{s}'" for s in AVAILABILITY_STATUSES)
        return (
            CheckConstraint(f"category IN ({categories})", name=f"ck_{prefix}_category"),
            CheckConstraint(
                f"availability_status IN ({statuses})", name=f"ck_{prefix}_availability"
            ),
            CheckConstraint("price_inr >= 0", name=f"ck_{prefix}_price"),
            CheckConstraint("rating >= 0.0 AND rating <= 5.0", name=f"ck_{prefix}_rating"),
            CheckConstraint("reviews_count >= 0", name=f"ck_{prefix}_reviews_count"),
        )


class AmazonProduct(RetailerProductMixin, Base):
    """Product scraped from Amazon India."""

    __tablename__ = "amazon_products"
    __table_prefix__ = "amazon"

    asin: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    features: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    reviews: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)


class FlipkartProduct(RetailerProductMixin, Base):
    """Product scraped from Flipkart."""

    __tablename__ = "flipkart_products"
    __table_prefix__ = "flipkart"

    product_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    key_specs: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    reviews: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)


class SamsungProduct(RetailerProductMixin, Base):
    """Product from the Samsung brand store."""

    __tablename__ = "samsung_products"
    __table_prefix__ = "samsung"

    product_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    features: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)


class SonyProduct(RetailerProductMixin, Base):
    """Product from the Sony brand store."""

    __tablename__ = "sony_products"
    __table_prefix__ = "sony"

    product_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    features: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)


class SearchHistory(Base):
    """Normalized search term with a running count."""

    __tablename__ = "search_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    search_query: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    search_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    last_searched_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
