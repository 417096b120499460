from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator

from ..enums import MatchStatus, OutcomeMethod, ParticipantStatus, TournamentState, TournamentStatus
from ..timeutils import as_naive_utc


class TournamentCreate(BaseModel):
    game_id: str = Field(min_length=1)
    game_name: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    platform: str = Field(min_length=1)
    max_participants: Literal[4, 8, 16, 32] = 8
    start_at: datetime
    registration_deadline: datetime
    check_in_required: bool = False
    check_in_deadline: datetime | None = None
    rules: str | None = Field(default=None, max_length=2000)
    discord_link: str | None = None

    @field_validator("start_at", "registration_deadline", "check_in_deadline")
    @classmethod
    def normalize_timezone(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return value
        return as_naive_utc(value)


class TournamentPublic(BaseModel):
    id: str
    host_id: str
    game_id: str
    game_name: str
    title: str
    description: str | None = None
    platform: str
    status: TournamentStatus
    state: TournamentState | None = None
    max_participants: int
    current_participants: int = 0
    start_at: datetime
    registration_deadline: datetime
    check_in_required: bool
    check_in_deadline: datetime | None = None
    rules: str | None = None
    discord_link: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class TournamentListResponse(BaseModel):
    tournaments: List[TournamentPublic]
    total: int
    page: int
    limit: int


class ParticipantPublic(BaseModel):
    id: str
    tournament_id: str
    user_id: str
    seed: int | None = None
    status: ParticipantStatus
    checked_in_at: datetime | None = None
    final_placement: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class ParticipantResponse(BaseModel):
    participant: ParticipantPublic
    message: str


class MessageResponse(BaseModel):
    message: str


class TournamentMatchPublic(BaseModel):
    id: str
    tournament_id: str
    round_number: int
    match_number: int
    participant1_id: str | None = None
    participant2_id: str | None = None
    winner_id: str | None = None
    score1: int
    score2: int
    status: MatchStatus
    outcome_method: OutcomeMethod
    outcome_notes: str | None = None
    finalized_by: str | None = None
    finalized_at: datetime | None = None

    class Config:
        from_attributes = True


class BracketRoundPublic(BaseModel):
    round_number: int
    matches: List[TournamentMatchPublic]


class BracketPublic(BaseModel):
    rounds: List[BracketRoundPublic]


class StartTournamentResponse(BaseModel):
    message: str
    bracket: BracketPublic


class UserParticipation(BaseModel):
    is_registered: bool
    is_checked_in: bool
    status: ParticipantStatus | None = None


class TournamentBundleResponse(BaseModel):
    tournament: TournamentPublic
    participants: List[ParticipantPublic]
    bracket: BracketPublic
    user_participation: UserParticipation | None = None
