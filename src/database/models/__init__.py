"""
Database ORM models package.
"""

from src.database.models.user_metric import UserMetric

__all__ = ["UserMetric"]
