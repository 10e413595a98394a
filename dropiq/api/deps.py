"""FastAPI dependencies."""

from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dropiq.db.session import AsyncSessionLocal, get_db
from dropiq.enrich.service import EnrichmentService
from dropiq.search.service import SearchService

_search_service: SearchService | None = None


async def get_database() -> AsyncIterator[AsyncSession]:
    """Dependency for database session."""
    async for session in get_db():
        yield session
        break  # Only yield once, as FastAPI handles the session lifecycle


def get_search_service() -> SearchService:
    """Process-wide search service; it owns the pending history writes."""
    global _search_service
    if _search_service is None:
        _search_service = SearchService(AsyncSessionLocal)
    return _search_service


def get_enrichment_service(db: AsyncSession = Depends(get_database)) -> EnrichmentService:
    return EnrichmentService(db)
