"""
Query criteria and the match predicate built from them.

MetricsFilter is the normalized set of criteria every engine operation takes.
MatchQueryBuilder turns it into a MatchQuery: a predicate over MetricRecord plus
an element predicate for nested collections that carry model/language keys.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, FrozenSet, Iterable, Optional, Pattern, Tuple

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.metrics.models import DimensionElement, MetricRecord


# Filter fields that may be matched on an exploded element instead of the parent record
NESTED_FILTER_FIELDS: Tuple[str, ...] = ("model", "language")


def to_instant(value: Any) -> Optional[datetime]:
    """
    Normalize a filter bound to an aware UTC datetime.

    Dates mean midnight UTC; naive datetimes are read as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = date_parser.isoparse(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise ValueError(f"Invalid date bound: {value!r}")


def day_instant(day: date) -> datetime:
    """Start of a calendar day as an aware UTC datetime."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class CompareEntityConfig(BaseModel):
    """One side of a comparison: a label plus the criteria that select it."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    label: str = Field(..., min_length=1)
    segment: Optional[str] = None
    user_login: Optional[str] = Field(default=None, alias="userLogin")
    model: Optional[str] = None
    language: Optional[str] = None


class MetricsFilter(BaseModel):
    """
    Query criteria shared by all aggregation operations.

    Date bounds are absolute instants, inclusive on both ends.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    segment: Optional[str] = None
    user_login: Optional[str] = Field(default=None, alias="userLogin")
    model: Optional[str] = None
    language: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _normalize_bound(cls, value: Any) -> Optional[datetime]:
        return to_instant(value)

    @field_validator("segment", "user_login", "model", "language", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def merge_entity(self, entity: CompareEntityConfig) -> "MetricsFilter":
        """Base filter with the entity's own criteria layered on top."""
        update = {
            name: getattr(entity, name)
            for name in ("segment", "user_login", "model", "language")
            if getattr(entity, name) is not None
        }
        return self.model_copy(update=update)

    def with_dates(self, start_date: Any, end_date: Any) -> "MetricsFilter":
        """Same criteria over a different date window."""
        return self.model_copy(update={
            "start_date": to_instant(start_date),
            "end_date": to_instant(end_date),
        })

    def has_nested_criteria(self) -> bool:
        return any(getattr(self, name) for name in NESTED_FILTER_FIELDS)


@dataclass(frozen=True)
class MatchQuery:
    """
    Predicate over MetricRecord.

    Model/language criteria listed in ``element_fields`` are not checked on the
    record; they are checked per exploded element by ``element_matches``.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    segment_pattern: Optional[Pattern[str]] = None
    user_login: Optional[str] = None
    model: Optional[str] = None
    language: Optional[str] = None
    element_fields: FrozenSet[str] = frozenset()

    @property
    def record_fields(self) -> Tuple[str, ...]:
        return tuple(
            name for name in NESTED_FILTER_FIELDS
            if getattr(self, name) is not None and name not in self.element_fields
        )

    def day_bounds(self) -> Tuple[Optional[date], Optional[date]]:
        """Date bounds widened to whole days, for pushing down to a store."""
        return (
            self.start.date() if self.start else None,
            self.end.date() if self.end else None,
        )

    def matches(self, record: MetricRecord) -> bool:
        instant = day_instant(record.day)
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False

        if self.user_login is not None and record.user_login != self.user_login:
            return False

        if self.segment_pattern is not None and not any(
            element.feature and self.segment_pattern.search(element.feature)
            for element in record.totals_by_feature
        ):
            return False

        # Top-level model/language: some language x model element carries the value
        for name in self.record_fields:
            expected = getattr(self, name)
            if not any(
                element.key_value(name) == expected
                for element in record.totals_by_language_model
            ):
                return False

        return True

    def element_matches(self, element: DimensionElement) -> bool:
        for name in self.element_fields:
            expected = getattr(self, name)
            if expected is not None and element.key_value(name) != expected:
                return False
        return True


class MatchQueryBuilder:
    """
    Turns a MetricsFilter into a MatchQuery.

    Example:
        >>> builder = MatchQueryBuilder()
        >>> query = builder.build(MetricsFilter(segment="Backend"))
        >>> query.segment_pattern.pattern
        'Backend'
    """

    def build(
        self,
        filters: Optional[MetricsFilter] = None,
        nested_fields: Iterable[str] = ()
    ) -> MatchQuery:
        """
        Build the record predicate for a filter.

        Args:
            filters: Query criteria (empty filter when omitted)
            nested_fields: Keys carried by the collection the query explodes;
                model/language criteria on these keys move to the element predicate

        Returns:
            MatchQuery instance
        """
        filters = filters or MetricsFilter()
        element_fields = frozenset(
            name for name in nested_fields
            if name in NESTED_FILTER_FIELDS and getattr(filters, name) is not None
        )

        return MatchQuery(
            start=filters.start_date,
            end=filters.end_date,
            segment_pattern=self.segment_pattern(filters.segment),
            user_login=filters.user_login,
            model=filters.model,
            language=filters.language,
            element_fields=element_fields,
        )

    @staticmethod
    def segment_pattern(segment: Optional[str]) -> Optional[Pattern[str]]:
        """Case-insensitive substring pattern; feature keys carry a prefix and suffix variants."""
        if not segment:
            return None
        return re.compile(re.escape(segment), re.IGNORECASE)
