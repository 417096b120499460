from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import Field, SQLModel

from ..enums import RewardTaskStatus, RewardType
from ..timeutils import timestamp_column, utcnow


class RewardTask(SQLModel, table=True):
    """
    Outbox row written in the same transaction that completes a tournament.
    The reward dispatcher picks it up after commit and retries on failure.
    """

    __tablename__ = "tournament_reward_tasks"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tournament_id: str = Field(foreign_key="tournaments.id", unique=True)
    placements: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    status: RewardTaskStatus = Field(default=RewardTaskStatus.PENDING, index=True)
    attempts: int = Field(default=0)
    last_error: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
    processed_at: datetime | None = Field(
        default=None, sa_column=timestamp_column(nullable=True)
    )


class ProfileBadge(SQLModel, table=True):
    __tablename__ = "profile_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_key", "tournament_id", name="uq_badge_per_tournament"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    badge_key: str
    label: str
    game_id: str | None = Field(default=None)
    tournament_id: str | None = Field(default=None, foreign_key="tournaments.id")
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())


class TournamentReward(SQLModel, table=True):
    __tablename__ = "tournament_rewards"
    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", "reward_type", name="uq_reward_per_user"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tournament_id: str = Field(foreign_key="tournaments.id", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    reward_type: RewardType
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
