"""Cross-table ordering and pagination of merged search results."""

import math
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

SORT_RATING = "rating"
SORT_PRICE_ASC = "price_asc"
SORT_PRICE_DESC = "price_desc"
SORT_OPTIONS = (SORT_RATING, SORT_PRICE_ASC, SORT_PRICE_DESC)


def _number(value: Optional[Decimal | float | int], default: float) -> float:
    return default if value is None else float(value)


def brand_rank(brand: Optional[str], detected_brands: Sequence[str]) -> int:
    """Index of the first detected brand contained in ``brand``; len() if none."""
    if brand:
        lowered = brand.lower()
        for index, detected in enumerate(detected_brands):
            if detected.lower() in lowered:
                return index
    return len(detected_brands)


def sort_results(
    results: List[Dict[str, Any]],
    detected_brands: Sequence[str] = (),
    sort_by: str = SORT_RATING,
) -> List[Dict[str, Any]]:
    """
    Sort merged results in place and return them.

    With detected brands, products rank by the position of their brand in the
    detected list (unmatched last), then by rating. Otherwise ``sort_by``
    decides: price_asc (missing prices last), price_desc, or rating.
    """
    if detected_brands:
        results.sort(
            key=lambda r: (
                brand_rank(r.get("brand"), detected_brands),
                -_number(r.get("rating"), 0.0),
            )
        )
    elif sort_by == SORT_PRICE_ASC:
        results.sort(key=lambda r: _number(r.get("price_inr"), math.inf))
    elif sort_by == SORT_PRICE_DESC:
        results.sort(key=lambda r: -_number(r.get("price_inr"), 0.0))
    else:
        results.sort(key=lambda r: -_number(r.get("rating"), 0.0))
    return results


def paginate(results: Sequence[Dict[str, Any]], offset: int = 0, limit: int = 50) -> List[Dict[str, Any]]:
    """Slice one page out of the globally ordered results."""
    offset = max(offset, 0)
    limit = max(limit, 0)
    return list(results[offset : offset + limit])


def review_score(rating: Optional[Decimal | float], reviews_count: Optional[int]) -> float:
    """
    Rating weighted by review volume, in [0, 1].

    ``(rating / 5) * min(log10(reviews + 1) / 3, 1)``: a 5-star product needs
    about a thousand reviews to reach a full score.
    """
    if not rating:
        return 0.0
    rating_norm = float(rating) / 5
    confidence = min(math.log10((reviews_count or 0) + 1) / 3, 1.0)
    return max(0.0, min(1.0, rating_norm * confidence))
