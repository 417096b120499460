from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import Field, SQLModel

from ..enums import (
    MatchStatus,
    OutcomeMethod,
    ParticipantStatus,
    ReportStatus,
    TournamentStatus,
)
from ..timeutils import timestamp_column, utcnow


class Tournament(SQLModel, table=True):
    __tablename__ = "tournaments"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    host_id: str = Field(foreign_key="users.id", index=True)
    game_id: str = Field(index=True)
    game_name: str
    title: str
    description: str | None = Field(default=None)
    platform: str
    status: TournamentStatus = Field(default=TournamentStatus.OPEN, index=True)
    max_participants: int = Field(default=8)
    start_at: datetime = Field(sa_column=timestamp_column())
    registration_deadline: datetime = Field(sa_column=timestamp_column())
    check_in_required: bool = Field(default=False)
    check_in_deadline: datetime | None = Field(
        default=None, sa_column=timestamp_column(nullable=True)
    )
    rules: str | None = Field(default=None)
    discord_link: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())


class TournamentParticipant(SQLModel, table=True):
    __tablename__ = "tournament_participants"
    __table_args__ = (UniqueConstraint("tournament_id", "user_id", name="uq_participant_user"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tournament_id: str = Field(foreign_key="tournaments.id", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    seed: int | None = Field(default=None)
    status: ParticipantStatus = Field(default=ParticipantStatus.REGISTERED)
    checked_in_at: datetime | None = Field(
        default=None, sa_column=timestamp_column(nullable=True)
    )
    final_placement: int | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())


class TournamentMatch(SQLModel, table=True):
    __tablename__ = "tournament_matches"
    __table_args__ = (
        UniqueConstraint("tournament_id", "round_number", "match_number", name="uq_match_position"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tournament_id: str = Field(foreign_key="tournaments.id", index=True)
    round_number: int
    match_number: int
    participant1_id: str | None = Field(default=None, foreign_key="tournament_participants.id")
    participant2_id: str | None = Field(default=None, foreign_key="tournament_participants.id")
    winner_id: str | None = Field(default=None, foreign_key="tournament_participants.id")
    score1: int = Field(default=0)
    score2: int = Field(default=0)
    status: MatchStatus = Field(default=MatchStatus.PENDING)
    outcome_method: OutcomeMethod = Field(default=OutcomeMethod.MANUAL)
    outcome_notes: str | None = Field(default=None)
    finalized_by: str | None = Field(default=None, foreign_key="users.id")
    finalized_at: datetime | None = Field(
        default=None, sa_column=timestamp_column(nullable=True)
    )
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())

    @property
    def participant_ids(self) -> tuple[str | None, str | None]:
        return self.participant1_id, self.participant2_id

    def loser_id(self) -> str | None:
        if self.winner_id is None:
            return None
        if self.winner_id == self.participant1_id:
            return self.participant2_id
        return self.participant1_id


class TournamentMatchReport(SQLModel, table=True):
    """
    A participant's unverified claim about a match result. The host reads
    these before finalizing; they never complete a match on their own.
    """

    __tablename__ = "tournament_match_reports"
    __table_args__ = (UniqueConstraint("match_id", "reporter_user_id", name="uq_report_reporter"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tournament_id: str = Field(foreign_key="tournaments.id", index=True)
    match_id: str = Field(foreign_key="tournament_matches.id", index=True)
    reporter_participant_id: str = Field(foreign_key="tournament_participants.id")
    reporter_user_id: str = Field(foreign_key="users.id")
    claimed_winner_participant_id: str | None = Field(
        default=None, foreign_key="tournament_participants.id"
    )
    claimed_score1: int | None = Field(default=None)
    claimed_score2: int | None = Field(default=None)
    claimed_method: str = Field(default=OutcomeMethod.MANUAL.value)
    notes: str | None = Field(default=None)
    proof_paths: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    status: ReportStatus = Field(default=ReportStatus.SUBMITTED)
    created_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=timestamp_column())
