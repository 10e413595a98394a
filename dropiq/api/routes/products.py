"""Product search and detail routes."""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dropiq.api.deps import get_database, get_enrichment_service, get_search_service
from dropiq.config import settings
from dropiq.enrich.service import EnrichmentService
from dropiq.errors import DropIQError, ProductNotFoundError
from dropiq.repository.products import ProductRepository, frequent_searches
from dropiq.search.query_builder import SearchFilters
from dropiq.search.service import SearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


class HistoryError(DropIQError):
    public_message = "Failed to fetch search history"


@router.get("/search")
async def search_products(
    q: str = Query("", max_length=500, description="Search query"),
    category: Optional[str] = Query(None, description="Exact category"),
    min_price: Optional[Decimal] = Query(None, alias="minPrice", ge=0, description="Minimum price (INR)"),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice", ge=0, description="Maximum price (INR)"),
    retailer: Optional[str] = Query(None, description="amazon, flipkart, samsung or sony"),
    sort_by: str = Query("rating", alias="sortBy", description="rating, price_asc or price_desc"),
    limit: Optional[int] = Query(None, ge=0, description="Results per page"),
    offset: int = Query(0, ge=0, description="Results to skip"),
    service: SearchService = Depends(get_search_service),
) -> Dict[str, Any]:
    """
    Search products across retailer tables.

    Misspellings are corrected, brand/category words in the query narrow and
    order the results. Failures return 500 with no partial results.
    """
    page_size = settings.search_default_limit if limit is None else limit
    filters = SearchFilters(
        search_term=q,
        category=category or None,
        min_price=min_price,
        max_price=max_price,
        retailer=retailer or None,
        sort_by=sort_by,
        limit=min(page_size, settings.search_max_limit),
        offset=offset,
    )

    outcome = await service.search_products(filters)

    return {
        "success": True,
        "count": len(outcome.products),
        "filters": {
            "searchTerm": filters.search_term,
            "correctedTerm": outcome.correction.corrected,
            "category": filters.category,
            "minPrice": filters.min_price,
            "maxPrice": filters.max_price,
            "retailer": filters.retailer,
            "sortBy": filters.sort_by,
            "limit": filters.limit,
            "offset": filters.offset,
        },
        "products": outcome.products,
    }


@router.get("/search-history")
async def get_search_history(
    limit: int = Query(settings.history_default_limit, ge=1, le=100),
    service: SearchService = Depends(get_search_service),
):
    """Most recent searches."""
    try:
        history = await service.history.recent(limit)
    except Exception as e:
        logger.error(f"Error fetching search history: {e}", exc_info=True)
        raise HistoryError(str(e)) from e
    return {"success": True, "count": len(history), "history": history}


@router.get("/popular-searches")
async def get_popular_searches(
    limit: int = Query(settings.history_default_limit, ge=1, le=100),
    service: SearchService = Depends(get_search_service),
):
    """Most frequent searches."""
    try:
        searches = await service.history.popular(limit)
    except Exception as e:
        logger.error(f"Error fetching popular searches: {e}", exc_info=True)
        raise HistoryError(str(e), public_message="Failed to fetch popular searches") from e
    return {"success": True, "count": len(searches), "searches": searches}


@router.delete("/search-history")
async def clear_search_history(service: SearchService = Depends(get_search_service)):
    """Delete all search history."""
    try:
        removed = await service.history.clear()
    except Exception as e:
        logger.error(f"Error clearing search history: {e}", exc_info=True)
        raise HistoryError(str(e), public_message="Failed to clear search history") from e
    return {"success": True, "message": f"Search history cleared ({removed} entries)"}


@router.get("/frequent-searches")
async def get_frequent_searches():
    """Suggested category searches."""
    return {"success": True, "searches": frequent_searches()}


@router.get("/{retailer}/{product_id}/recommendations")
async def get_recommendations(
    retailer: str,
    product_id: str,
    service: EnrichmentService = Depends(get_enrichment_service),
):
    """Similar products, cached on the product row after the first fetch."""
    return await service.get_recommendations(retailer, product_id)


@router.get("/{retailer}/{product_id}/price-comparisons")
async def get_price_comparisons(
    retailer: str,
    product_id: str,
    service: EnrichmentService = Depends(get_enrichment_service),
):
    """Offers for the same product at other merchants."""
    return await service.get_price_comparisons(retailer, product_id)


@router.get("/{product_id}")
async def get_product(product_id: str, db: AsyncSession = Depends(get_database)):
    """Single product from the Amazon or Flipkart table."""
    product = await ProductRepository(db).find_any(product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return {"success": True, "product": product}
