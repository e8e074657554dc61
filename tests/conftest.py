"""
Pytest configuration for the application
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from modules.metrics import MetricsService
from modules.metrics.models import SOURCE_FIELDS
from modules.metrics.storage import InMemoryMetricStore
from modules.snapshots import SnapshotCache


def element(interactions: int = 0, suggestions: int = 0, acceptances: int = 0,
            loc_added: int = 0, **keys: str) -> Dict[str, Any]:
    """Nested collection element in ingestion shape."""
    data: Dict[str, Any] = dict(keys)
    data.update(counters(interactions, suggestions, acceptances, loc_added))
    return data


def counters(interactions: int = 0, suggestions: int = 0, acceptances: int = 0,
             loc_added: int = 0) -> Dict[str, int]:
    values = {name: 0 for name in SOURCE_FIELDS}
    values.update(
        interactions=interactions,
        suggestions=suggestions,
        acceptances=acceptances,
        loc_added=loc_added,
    )
    return {SOURCE_FIELDS[name]: value for name, value in values.items()}


def make_record(user_id: int, login: str, day: date, *, name: Optional[str] = None,
                interactions: int = 0, suggestions: int = 0, acceptances: int = 0,
                loc_added: int = 0, used_agent: bool = False, used_chat: bool = False,
                ides: List[Dict] = (), features: List[Dict] = (),
                language_models: List[Dict] = (), language_features: List[Dict] = (),
                model_features: List[Dict] = ()) -> Dict[str, Any]:
    """Per-user daily usage document in ingestion shape."""
    return {
        "user_id": user_id,
        "user_login": login,
        "user_name": name,
        "day": day,
        **counters(interactions, suggestions, acceptances, loc_added),
        "used_agent": used_agent,
        "used_chat": used_chat,
        "totals_by_ide": list(ides),
        "totals_by_feature": list(features),
        "totals_by_language_model": list(language_models),
        "totals_by_language_feature": list(language_features),
        "totals_by_model_feature": list(model_features),
    }


DAY_1 = date(2025, 1, 1)
DAY_2 = date(2025, 1, 2)


@pytest.fixture
def sample_records() -> List[Dict[str, Any]]:
    """
    Two users over two days.

    alice: day 1 in vscode (agent), day 2 in jetbrains (chat); Backend team.
    bob:   day 2 in vscode; Frontend team; no display name.
    """
    return [
        make_record(
            1, "alice", DAY_1, name="Alice",
            interactions=10, suggestions=20, acceptances=5, loc_added=30,
            used_agent=True,
            ides=[element(10, 20, 5, 30, ide="vscode")],
            features=[element(10, 20, 5, 30, feature="section_Backend_chat")],
            language_models=[
                element(6, 12, 3, language="python", model="gpt-4o"),
                element(4, 8, 2, language="go", model="claude"),
            ],
            language_features=[element(10, 20, 5, language="python", feature="section_Backend_chat")],
            model_features=[element(10, 20, 5, model="gpt-4o", feature="section_Backend_chat")],
        ),
        make_record(
            1, "alice", DAY_2, name="Alice",
            interactions=20, suggestions=10, acceptances=5,
            used_chat=True,
            ides=[element(20, 10, 5, ide="jetbrains")],
            features=[element(20, 10, 5, feature="section_Backend")],
            language_models=[element(20, 10, 5, language="python", model="gpt-4o")],
            language_features=[element(20, 10, 5, language="python", feature="section_Backend")],
            model_features=[element(20, 10, 5, model="gpt-4o", feature="section_Backend")],
        ),
        make_record(
            2, "bob", DAY_2,
            interactions=5,
            ides=[element(5, ide="vscode")],
            features=[element(5, feature="section_Frontend")],
            language_models=[element(5, language="typescript", model="gpt-4o")],
            language_features=[element(5, language="typescript", feature="section_Frontend")],
            model_features=[element(5, model="gpt-4o", feature="section_Frontend")],
        ),
    ]


@pytest.fixture
def memory_store(sample_records) -> InMemoryMetricStore:
    return InMemoryMetricStore(sample_records)


@pytest.fixture
def metrics_service(memory_store) -> MetricsService:
    return MetricsService(memory_store)


class FakeClock:
    """Controllable clock for snapshot expiry."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def snapshot_cache(clock) -> SnapshotCache:
    return SnapshotCache(max_entries=50, ttl_seconds=600, clock=clock)
