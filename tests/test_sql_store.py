"""
Tests for the SQLAlchemy metric store against an in-memory SQLite database.
"""
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from modules.metrics import MatchQueryBuilder, MetricsFilter, MetricsService, MetricStoreError
from modules.metrics.storage import SQLAlchemyMetricStore
from src.database.connection import Base
from src.database.models import UserMetric

from conftest import DAY_2


@pytest_asyncio.fixture
async def test_db_engine(sample_records) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a test database engine seeded with the sample records.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        session.add_all([UserMetric(**data) for data in sample_records])
        await session.commit()

    yield engine

    await engine.dispose()


@pytest.fixture
def sql_store(test_db_engine) -> SQLAlchemyMetricStore:
    return SQLAlchemyMetricStore(async_sessionmaker(test_db_engine, expire_on_commit=False))


async def test_fetch_all_ordered(sql_store):
    records = await sql_store.fetch(MatchQueryBuilder().build())

    assert [(record.user_login, record.day.isoformat()) for record in records] == [
        ("alice", "2025-01-01"),
        ("alice", "2025-01-02"),
        ("bob", "2025-01-02"),
    ]
    assert records[0].totals_by_language_model[1].model == "claude"
    assert records[0].counters.loc_added == 30


async def test_fetch_pushes_down_dates_and_login(sql_store):
    query = MatchQueryBuilder().build(MetricsFilter(start_date=DAY_2, user_login="bob"))
    records = await sql_store.fetch(query)

    assert [record.user_login for record in records] == ["bob"]


async def test_fetch_applies_json_criteria(sql_store):
    query = MatchQueryBuilder().build(MetricsFilter(segment="BACKEND", model="claude"))
    records = await sql_store.fetch(query)

    assert len(records) == 1
    assert records[0].day.isoformat() == "2025-01-01"


async def test_distinct_features(sql_store):
    assert await sql_store.distinct_features() == [
        "section_Backend",
        "section_Backend_chat",
        "section_Frontend",
    ]


async def test_service_over_sql_matches_memory(sql_store, metrics_service):
    sql_service = MetricsService(sql_store)

    assert await sql_service.get_summary() == await metrics_service.get_summary()
    assert await sql_service.get_breakdown("model") == await metrics_service.get_breakdown("model")


def test_rejects_non_callable_factory():
    with pytest.raises(MetricStoreError):
        SQLAlchemyMetricStore(object())
