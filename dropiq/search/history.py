"""Search history: keyed counts of normalized search terms."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dropiq import metrics
from dropiq.db.models import SearchHistory

logger = logging.getLogger(__name__)


def history_key(search_term: Optional[str]) -> str:
    """Key a term is stored under: trimmed and lowercased."""
    return (search_term or "").strip().lower()


def _entry_to_dict(entry: SearchHistory) -> Dict[str, Any]:
    return {
        "search_query": entry.search_query,
        "search_count": entry.search_count,
        "last_searched_at": entry.last_searched_at.isoformat() if entry.last_searched_at else None,
    }


class SearchHistoryRecorder:
    """
    Records searches without holding up the search response.

    ``record_in_background`` schedules the upsert as a detached task with its
    own session. The task is kept referenced until it finishes; its outcome
    is only logged.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._pending: Set[asyncio.Task] = set()

    async def save(self, search_term: str) -> Optional[Dict[str, Any]]:
        """Upsert a term: insert with count 1, or increment and touch."""
        key = history_key(search_term)
        if not key:
            return None

        async with self.session_factory() as session:
            try:
                entry = await self._upsert(session, key)
            except IntegrityError:
                # A concurrent request inserted the same term first
                await session.rollback()
                entry = await self._upsert(session, key)
            return _entry_to_dict(entry)

    async def _upsert(self, session: AsyncSession, key: str) -> SearchHistory:
        result = await session.execute(select(SearchHistory).where(SearchHistory.search_query == key))
        entry = result.scalar_one_or_none()
        now = datetime.utcnow()
        if entry is None:
            entry = SearchHistory(search_query=key, search_count=1, last_searched_at=now)
            session.add(entry)
        else:
            # Incremented in SQL so concurrent writers don't lose counts
            entry.search_count = SearchHistory.search_count + 1
            entry.last_searched_at = now
        await session.commit()
        await session.refresh(entry)
        return entry

    def record_in_background(self, search_term: Optional[str]) -> Optional[asyncio.Task]:
        """Schedule ``save`` without awaiting it. Returns the task, or None for blank terms."""
        if not history_key(search_term):
            return None

        task = asyncio.create_task(self.save(search_term), name=f"search-history:{history_key(search_term)}")
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning(f"Search history write cancelled: {task.get_name()}")
            metrics.record_history_write(success=False)
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Failed to save search query: {error}")
            metrics.record_history_write(success=False)
        else:
            metrics.record_history_write(success=True)

    async def drain(self) -> None:
        """Wait for outstanding history writes (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recently searched terms."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(SearchHistory).order_by(desc(SearchHistory.last_searched_at)).limit(limit)
            )
            return [_entry_to_dict(e) for e in result.scalars().all()]

    async def popular(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most searched terms, ties broken by recency."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(SearchHistory)
                .order_by(desc(SearchHistory.search_count), desc(SearchHistory.last_searched_at))
                .limit(limit)
            )
            return [_entry_to_dict(e) for e in result.scalars().all()]

    async def clear(self) -> int:
        """Delete every history entry. Returns the number removed."""
        async with self.session_factory() as session:
            result = await session.execute(delete(SearchHistory))
            await session.commit()
            logger.info(f"Cleared {result.rowcount} search history entries")
            return result.rowcount
