"""Run one search predicate against each retailer table concurrently."""

import asyncio
import logging
from typing import Any, Dict, List, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dropiq import metrics
from dropiq.search.query_builder import Predicate, fields_referenced, to_sql
from dropiq.search.retailers import RetailerTable

logger = logging.getLogger(__name__)


def row_to_dict(row: Any, retailer_name: str) -> Dict[str, Any]:
    """Flatten an ORM row into a result dict tagged with its retailer."""
    data = {column.key: getattr(row, column.key) for column in row.__table__.columns}
    data["retailer_name"] = retailer_name
    return data


class MultiTableFetcher:
    """
    Fan a predicate out over retailer tables.

    Each table is queried in its own session so the queries can run in
    parallel. A failure in any table propagates and fails the whole fetch;
    the remaining queries are cancelled.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def fetch_table(self, table: RetailerTable, predicate: Predicate) -> List[Dict[str, Any]]:
        """Fetch matching rows from one table."""
        missing = [f for f in fields_referenced(predicate) if f not in table.columns]
        if missing:
            raise ValueError(f"{table.name} table has no mapping for fields: {missing}")

        query = select(table.model).where(to_sql(predicate, table))
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except Exception:
            metrics.record_table_query(table.slug, success=False)
            logger.error(f"Query against {table.model.__tablename__} failed", exc_info=True)
            raise

        metrics.record_table_query(table.slug, success=True)
        logger.debug(f"{table.name}: {len(rows)} rows")
        return [row_to_dict(row, table.name) for row in rows]

    async def fetch(
        self, tables: Sequence[RetailerTable], predicate: Predicate
    ) -> List[Dict[str, Any]]:
        """Query every table and concatenate results in table order."""
        tasks = [asyncio.create_task(self.fetch_table(table, predicate)) for table in tables]
        try:
            per_table = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # Collect sibling outcomes so their errors are not reported as unretrieved
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        merged: List[Dict[str, Any]] = []
        for rows in per_table:
            merged.extend(rows)
        return merged
