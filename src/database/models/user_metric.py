"""
User Metric Model.

One row per (user, calendar day) of AI coding assistant usage, written by the
external ingestion job and read by the metrics engine.
"""

from sqlalchemy import Column, String, Integer, BigInteger, Date, Boolean, JSON, Index
from src.database.connection import Base


class UserMetric(Base):
    """
    Per-user daily usage row.

    Scalar counters use the ingestion field names. The five nested sub-total
    collections are JSON arrays of objects carrying the same counters keyed by
    ide / feature / language / model.
    """

    __tablename__ = "user_metrics"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    # Identity
    user_id = Column(BigInteger, nullable=False, index=True)
    user_login = Column(String(255), nullable=False, index=True)
    user_name = Column(String(255), nullable=True)
    enterprise_id = Column(String(100), nullable=True)
    day = Column(Date, nullable=False, index=True)

    # Scalar counters
    user_initiated_interaction_count = Column(Integer, nullable=False, default=0)
    code_generation_activity_count = Column(Integer, nullable=False, default=0)
    code_acceptance_activity_count = Column(Integer, nullable=False, default=0)
    loc_suggested_to_add_sum = Column(Integer, nullable=False, default=0)
    loc_suggested_to_delete_sum = Column(Integer, nullable=False, default=0)
    loc_added_sum = Column(Integer, nullable=False, default=0)
    loc_deleted_sum = Column(Integer, nullable=False, default=0)

    # Flags
    used_agent = Column(Boolean, nullable=False, default=False)
    used_chat = Column(Boolean, nullable=False, default=False)

    # Nested sub-total collections
    totals_by_ide = Column(JSON, nullable=False, default=list)
    totals_by_feature = Column(JSON, nullable=False, default=list)
    totals_by_language_model = Column(JSON, nullable=False, default=list)
    totals_by_language_feature = Column(JSON, nullable=False, default=list)
    totals_by_model_feature = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("ix_user_metrics_user_id_day", "user_id", "day", unique=True),
    )

    def __repr__(self):
        return f"<UserMetric(user_login={self.user_login}, day={self.day})>"

    def to_dict(self):
        """Convert to an ingestion-shaped mapping."""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
            if column.name != "id"
        }
