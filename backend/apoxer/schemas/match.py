from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from ..enums import OutcomeMethod, ReportStatus


class FinalizeMatchRequest(BaseModel):
    winner_id: str = Field(min_length=1)
    score1: int = Field(ge=0)
    score2: int = Field(ge=0)
    outcome_method: OutcomeMethod
    outcome_notes: str | None = Field(default=None, max_length=500)


class FinalizeMatchResponse(BaseModel):
    message: str
    tournament_complete: bool


class MatchReportRequest(BaseModel):
    claimed_winner_participant_id: str = Field(min_length=1)
    claimed_score1: int = Field(ge=0)
    claimed_score2: int = Field(ge=0)
    claimed_method: str | None = None
    notes: str | None = Field(default=None, max_length=500)
    proof_paths: List[str] = Field(min_length=1, max_length=5)


class MatchReportPublic(BaseModel):
    id: str
    tournament_id: str
    match_id: str
    reporter_participant_id: str
    reporter_user_id: str
    claimed_winner_participant_id: str | None = None
    claimed_score1: int | None = None
    claimed_score2: int | None = None
    claimed_method: str
    notes: str | None = None
    proof_paths: List[str]
    status: ReportStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MatchReportResponse(BaseModel):
    report: MatchReportPublic
    message: str


class MatchReportListResponse(BaseModel):
    reports: List[MatchReportPublic]
