from datetime import datetime, timezone

from sqlalchemy import Column, DateTime


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def timestamp_column(nullable: bool = False) -> Column:
    """Plain naive DateTime column, so sqlmodel does not pick the column type."""
    return Column(DateTime(timezone=False), nullable=nullable)
