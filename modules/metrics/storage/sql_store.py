"""
SQLAlchemy-backed metric store.

Reads the ``user_metrics`` table. Date bounds and login are pushed down as SQL
clauses; the segment and model/language criteria live inside JSON columns and are
applied in Python on the returned rows.
"""

from typing import Callable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modules.metrics.exceptions import MetricStoreError
from modules.metrics.filters import MatchQuery
from modules.metrics.models import MetricRecord
from modules.metrics.storage.metric_store import MetricStore
from shared.utils.logger import setup_logger
from src.database.models import UserMetric

logger = setup_logger(__name__)


class SQLAlchemyMetricStore(MetricStore):
    """
    Metric store over an async SQLAlchemy session factory.

    Example:
        >>> from src.database.connection import get_session
        >>> store = SQLAlchemyMetricStore(get_session)
        >>> records = await store.fetch(MatchQueryBuilder().build())
    """

    def __init__(self, session_factory: Callable):
        """
        Initialize SQL store.

        Args:
            session_factory: Callable returning an async context manager that
                yields an AsyncSession (e.g. ``get_session``)
        """
        if not callable(session_factory):
            raise MetricStoreError("session_factory must be callable")
        self.session_factory = session_factory

    async def fetch(self, query: MatchQuery) -> List[MetricRecord]:
        """Select candidate rows by day window and login, then apply the full predicate."""
        statement = select(UserMetric)

        first_day, last_day = query.day_bounds()
        if first_day is not None:
            statement = statement.where(UserMetric.day >= first_day)
        if last_day is not None:
            statement = statement.where(UserMetric.day <= last_day)
        if query.user_login is not None:
            statement = statement.where(UserMetric.user_login == query.user_login)

        statement = statement.order_by(UserMetric.day, UserMetric.user_id)

        async with self.session_factory() as session:
            rows = await self._scalars(session, statement)

        records = [MetricRecord.from_mapping(row.to_dict()) for row in rows]
        matched = [record for record in records if query.matches(record)]
        logger.debug(f"Fetched {len(rows)} candidate rows, {len(matched)} matched")
        return matched

    async def distinct_features(self) -> List[str]:
        """Distinct feature keys from the feature JSON column."""
        async with self.session_factory() as session:
            result = await session.execute(select(UserMetric.totals_by_feature))
            columns = result.scalars().all()

        features = {
            item.get("feature")
            for items in columns
            for item in (items or [])
            if item.get("feature")
        }
        return sorted(features)

    @staticmethod
    async def _scalars(session: AsyncSession, statement) -> list:
        result = await session.execute(statement)
        return list(result.scalars().all())
