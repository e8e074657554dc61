"""
Core data types for the metrics module.

MetricRecord mirrors one ingested per-user-per-day usage document. Records are
read-only here: the ingestion job owns the write path.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


# ==============================================================================
# ENUMS
# ==============================================================================

class BreakdownDimension(str, Enum):
    """Categorical axes a breakdown can group on."""
    MODEL = "model"
    IDE = "ide"
    FEATURE = "feature"
    LANGUAGE_MODEL = "language_model"
    LANGUAGE_FEATURE = "language_feature"
    MODEL_FEATURE = "model_feature"


class BreakdownMetricKey(str, Enum):
    """Metrics that comparisons, stability and multi-series trends can select."""
    INTERACTIONS = "interactions"
    SUGGESTIONS = "suggestions"
    ACCEPTANCES = "acceptances"
    LOC_SUGGESTED_TO_ADD = "loc_suggested_to_add"
    LOC_SUGGESTED_TO_DELETE = "loc_suggested_to_delete"
    LOC_ADDED = "loc_added"
    LOC_DELETED = "loc_deleted"
    ACCEPTANCE_RATE = "acceptance_rate"


# Counter name -> field name used by the ingestion documents
SOURCE_FIELDS: Dict[str, str] = {
    "interactions": "user_initiated_interaction_count",
    "suggestions": "code_generation_activity_count",
    "acceptances": "code_acceptance_activity_count",
    "loc_suggested_to_add": "loc_suggested_to_add_sum",
    "loc_suggested_to_delete": "loc_suggested_to_delete_sum",
    "loc_added": "loc_added_sum",
    "loc_deleted": "loc_deleted_sum",
}

COUNTER_NAMES: Tuple[str, ...] = tuple(SOURCE_FIELDS)

# Nested sub-total collections carried by every record
COLLECTIONS: Tuple[str, ...] = (
    "totals_by_ide",
    "totals_by_feature",
    "totals_by_language_model",
    "totals_by_language_feature",
    "totals_by_model_feature",
)

# Key fields an element of a nested collection may carry
ELEMENT_KEY_FIELDS: Tuple[str, ...] = ("ide", "feature", "model", "language")


def acceptance_rate(acceptances: float, suggestions: float) -> float:
    """Accepted suggestions divided by generated suggestions, 0 when nothing was suggested."""
    if suggestions > 0:
        return acceptances / suggestions
    return 0


def to_day(value: Any) -> date:
    """Truncate a date, datetime or ISO string to its calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    raise TypeError(f"Cannot interpret {value!r} as a calendar day")


# ==============================================================================
# COUNTERS
# ==============================================================================

@dataclass(frozen=True)
class UsageCounters:
    """The scalar counters shared by records and their nested elements."""
    interactions: int = 0
    suggestions: int = 0
    acceptances: int = 0
    loc_suggested_to_add: int = 0
    loc_suggested_to_delete: int = 0
    loc_added: int = 0
    loc_deleted: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "UsageCounters":
        """Read counters from an ingestion document; missing or null values count as 0."""
        return cls(**{
            name: data.get(source) or 0
            for name, source in SOURCE_FIELDS.items()
        })

    def __add__(self, other: "UsageCounters") -> "UsageCounters":
        return UsageCounters(**{
            name: getattr(self, name) + getattr(other, name)
            for name in COUNTER_NAMES
        })

    @property
    def acceptance_rate(self) -> float:
        return acceptance_rate(self.acceptances, self.suggestions)

    def value_of(self, metric_key: str) -> float:
        """Value of a breakdown metric key computed from these counters."""
        if metric_key == BreakdownMetricKey.ACCEPTANCE_RATE.value:
            return self.acceptance_rate
        return getattr(self, metric_key)

    def to_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in COUNTER_NAMES}

    def to_source_dict(self) -> Dict[str, int]:
        """Counters under their ingestion field names."""
        return {source: getattr(self, name) for name, source in SOURCE_FIELDS.items()}


# ==============================================================================
# RECORDS
# ==============================================================================

@dataclass(frozen=True)
class DimensionElement:
    """One element of a nested sub-total collection."""
    counters: UsageCounters = field(default_factory=UsageCounters)
    ide: Optional[str] = None
    feature: Optional[str] = None
    model: Optional[str] = None
    language: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DimensionElement":
        return cls(
            counters=UsageCounters.from_mapping(data),
            **{key: data.get(key) for key in ELEMENT_KEY_FIELDS},
        )

    def key_value(self, key_field: str) -> Optional[str]:
        return getattr(self, key_field)

    def to_dict(self) -> Dict[str, Any]:
        """Element in ingestion document shape; unset key fields are omitted."""
        data: Dict[str, Any] = {
            key: getattr(self, key)
            for key in ELEMENT_KEY_FIELDS
            if getattr(self, key) is not None
        }
        data.update(self.counters.to_source_dict())
        return data


@dataclass(frozen=True)
class MetricRecord:
    """
    Usage activity of one user on one calendar day.

    At most one record exists per (user_id, day); each nested collection holds at
    most one element per unique key combination.
    """
    user_id: int
    user_login: str
    day: date
    user_name: Optional[str] = None
    enterprise_id: Optional[str] = None
    counters: UsageCounters = field(default_factory=UsageCounters)
    used_agent: bool = False
    used_chat: bool = False
    totals_by_ide: Tuple[DimensionElement, ...] = ()
    totals_by_feature: Tuple[DimensionElement, ...] = ()
    totals_by_language_model: Tuple[DimensionElement, ...] = ()
    totals_by_language_feature: Tuple[DimensionElement, ...] = ()
    totals_by_model_feature: Tuple[DimensionElement, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MetricRecord":
        """
        Build a record from an ingestion document or a database row mapping.

        Args:
            data: Mapping using the ingestion field names

        Returns:
            MetricRecord instance
        """
        return cls(
            user_id=data["user_id"],
            user_login=data["user_login"],
            day=to_day(data["day"]),
            user_name=data.get("user_name"),
            enterprise_id=data.get("enterprise_id"),
            counters=UsageCounters.from_mapping(data),
            used_agent=bool(data.get("used_agent")),
            used_chat=bool(data.get("used_chat")),
            **{
                name: tuple(DimensionElement.from_mapping(item) for item in data.get(name) or ())
                for name in COLLECTIONS
            },
        )

    def collection(self, name: str) -> Tuple[DimensionElement, ...]:
        """Nested sub-total collection by attribute name."""
        if name not in COLLECTIONS:
            raise KeyError(f"Unknown sub-collection: {name}")
        return getattr(self, name)

    @property
    def display_name(self) -> str:
        return self.user_name or self.user_login
