from datetime import datetime
from uuid import uuid4

from sqlmodel import Field, SQLModel

from ..enums import PlanTier
from ..timeutils import timestamp_column, utcnow


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(index=True, unique=True)
    username: str = Field(index=True, unique=True)
    display_name: str | None = Field(default=None)
    plan_tier: PlanTier = Field(default=PlanTier.FREE)
    plan_expires_at: datetime | None = Field(
        default=None, sa_column=timestamp_column(nullable=True)
    )
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
