"""
Product search service.

Pipeline for one request:
- Spelling correction (static table, optional LLM fallback)
- Brand/category detection
- Predicate construction shared by all retailer tables
- Concurrent per-table fetch
- Cross-table ranking and in-memory pagination
- Detached search history write
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dropiq import metrics
from dropiq.errors import SearchError
from dropiq.search.fetcher import MultiTableFetcher
from dropiq.search.history import SearchHistoryRecorder
from dropiq.search.keywords import Classification, classify
from dropiq.search.query_builder import SearchFilters, SearchQueryBuilder
from dropiq.search.ranking import paginate, review_score, sort_results
from dropiq.search.retailers import select_tables
from dropiq.search.spelling import Correction, SpellingCorrector

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    """One page of results plus how the query was interpreted."""

    products: List[Dict[str, Any]]
    total_matches: int
    correction: Correction
    classification: Classification = field(default_factory=Classification)
    retailers_queried: tuple[str, ...] = ()


class SearchService:
    """High-level product search across the retailer tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        spelling_corrector: Optional[SpellingCorrector] = None,
        history: Optional[SearchHistoryRecorder] = None,
    ):
        self.query_builder = SearchQueryBuilder()
        self.fetcher = MultiTableFetcher(session_factory)
        self.spelling = spelling_corrector or SpellingCorrector()
        self.history = history or SearchHistoryRecorder(session_factory)

    async def search_products(self, filters: SearchFilters) -> SearchOutcome:
        """
        Search every (or the one filtered) retailer table.

        Raises:
            InvalidRetailerError: unknown retailer filter
            SearchError: a table query failed; no partial results are returned
        """
        start_time = time.time()
        tables = select_tables(filters.retailer)

        correction = await self.spelling.correct(filters.search_term)
        classification = classify(correction.corrected)
        plan = self.query_builder.build(filters, correction.corrected, classification)

        try:
            merged = await self.fetcher.fetch(tables, plan.predicate)
        except Exception as e:
            metrics.record_search(success=False, duration=time.time() - start_time)
            logger.error(f"Product search failed: {e}", exc_info=True)
            raise SearchError(str(e)) from e
        finally:
            # Recorded whether or not the fetch succeeds; never awaited
            self.history.record_in_background(filters.search_term)

        sort_results(merged, classification.brands, filters.sort_by)
        page = paginate(merged, filters.offset, filters.limit)
        for product in page:
            product["review_score"] = review_score(product.get("rating"), product.get("reviews_count"))

        duration = time.time() - start_time
        metrics.record_search(success=True, duration=duration, result_count=len(page))
        logger.info(
            f'Search "{filters.search_term}" -> "{correction.corrected}" '
            f"(correction: {correction.method}, brands: {list(classification.brands)}, "
            f"categories: {list(classification.categories)}): "
            f"{len(merged)} matches, returning {len(page)} in {int(duration * 1000)}ms"
        )

        return SearchOutcome(
            products=page,
            total_matches=len(merged),
            correction=correction,
            classification=classification,
            retailers_queried=tuple(t.name for t in tables),
        )
