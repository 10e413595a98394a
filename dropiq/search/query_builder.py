"""
Search predicate construction.

Filters are first composed into a small boolean tree over logical field
names (``product_name``, ``brand``, ``price_inr``...). The tree knows nothing
about SQL; ``to_sql`` lowers it to a SQLAlchemy expression for one retailer
table using that table's column mapping, so the same tree is shared by every
table in a search.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Sequence, Union

from sqlalchemy import and_, false, or_
from sqlalchemy.sql.elements import ColumnElement

from dropiq.search.keywords import Classification
from dropiq.search.retailers import RetailerTable

logger = logging.getLogger(__name__)


# ============================================================================
# Predicate tree
# ============================================================================


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match."""

    field: str
    value: str

    def to_sql(self, table: RetailerTable) -> ColumnElement:
        return table.column(self.field).ilike(f"%{_escape_like(self.value)}%", escape="\\")


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any

    def to_sql(self, table: RetailerTable) -> ColumnElement:
        return table.column(self.field) == self.value


@dataclass(frozen=True)
class IsFalse:
    field: str

    def to_sql(self, table: RetailerTable) -> ColumnElement:
        return table.column(self.field).is_(false())


@dataclass(frozen=True)
class Between:
    """Inclusive range; either bound may be open."""

    field: str
    low: Optional[Decimal] = None
    high: Optional[Decimal] = None

    def to_sql(self, table: RetailerTable) -> ColumnElement:
        column = table.column(self.field)
        clauses = []
        if self.low is not None:
            clauses.append(column >= self.low)
        if self.high is not None:
            clauses.append(column <= self.high)
        return and_(*clauses)


@dataclass(frozen=True)
class AllOf:
    children: tuple["Predicate", ...] = ()

    def to_sql(self, table: RetailerTable) -> ColumnElement:
        return and_(*(child.to_sql(table) for child in self.children))


@dataclass(frozen=True)
class AnyOf:
    children: tuple["Predicate", ...] = ()

    def to_sql(self, table: RetailerTable) -> ColumnElement:
        return or_(*(child.to_sql(table) for child in self.children))


Predicate = Union[Contains, Equals, IsFalse, Between, AllOf, AnyOf]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def to_sql(predicate: Predicate, table: RetailerTable) -> ColumnElement:
    """Lower a predicate tree to a WHERE clause for ``table``."""
    return predicate.to_sql(table)


# ============================================================================
# Filters
# ============================================================================


@dataclass(frozen=True)
class SearchFilters:
    """Raw filter set of one search request."""

    search_term: str = ""
    category: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    retailer: Optional[str] = None
    sort_by: str = "rating"
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True)
class SearchPlan:
    """Everything the fetcher and ranker need for one search."""

    predicate: Predicate
    corrected_term: str
    classification: Classification = field(default_factory=Classification)


class SearchQueryBuilder:
    """Build the shared predicate for a search."""

    def build_text_predicate(
        self, corrected_term: str, classification: Classification
    ) -> Optional[Predicate]:
        """Predicate for the free-text part of the search, or None without a term."""
        if not corrected_term:
            return None

        brands = classification.brands
        categories = classification.categories
        brand_match = AnyOf(tuple(Contains("brand", brand) for brand in brands))

        if categories:
            # Category match, with name/description as a broad fallback
            category_or_text = AnyOf(
                tuple(Contains("category", category) for category in categories)
                + (
                    Contains("product_name", corrected_term),
                    Contains("description", corrected_term),
                )
            )
            if brands:
                return AllOf((category_or_text, brand_match))
            return category_or_text

        options: list[Predicate] = [Contains("product_name", corrected_term)]
        if brands:
            options.append(brand_match)
        options.append(Contains("description", corrected_term))
        return AnyOf(tuple(options))

    def build(
        self,
        filters: SearchFilters,
        corrected_term: str = "",
        classification: Optional[Classification] = None,
    ) -> SearchPlan:
        """
        Compose the full predicate.

        Args:
            filters: Raw request filters
            corrected_term: Output of spelling correction ("" for no text search)
            classification: Brands/categories detected in ``corrected_term``

        Returns:
            SearchPlan holding the predicate tree
        """
        classification = classification or Classification()

        clauses: list[Predicate] = [
            IsFalse("is_deleted"),
            Equals("availability_status", "in_stock"),
        ]

        text_predicate = self.build_text_predicate(corrected_term, classification)
        if text_predicate is not None:
            clauses.append(text_predicate)

        if filters.category:
            clauses.append(Equals("category", filters.category))

        if filters.min_price is not None or filters.max_price is not None:
            clauses.append(Between("price_inr", filters.min_price, filters.max_price))

        predicate = AllOf(tuple(clauses))
        logger.debug(
            f"Built search predicate: term={corrected_term!r} brands={classification.brands} "
            f"categories={classification.categories} clauses={len(clauses)}"
        )
        return SearchPlan(
            predicate=predicate,
            corrected_term=corrected_term,
            classification=classification,
        )


def fields_referenced(predicate: Predicate) -> Sequence[str]:
    """Logical fields a predicate touches, in first-seen order."""
    seen: list[str] = []

    def _walk(node: Predicate) -> None:
        if isinstance(node, (AllOf, AnyOf)):
            for child in node.children:
                _walk(child)
        elif node.field not in seen:
            seen.append(node.field)

    _walk(predicate)
    return seen
