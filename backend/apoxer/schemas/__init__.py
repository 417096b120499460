from .user import UserPublic
from .tournament import (
    TournamentCreate,
    TournamentPublic,
    TournamentListResponse,
    ParticipantPublic,
    ParticipantResponse,
    MessageResponse,
    TournamentMatchPublic,
    BracketRoundPublic,
    BracketPublic,
    StartTournamentResponse,
    TournamentBundleResponse,
    UserParticipation,
)
from .match import (
    FinalizeMatchRequest,
    FinalizeMatchResponse,
    MatchReportRequest,
    MatchReportPublic,
    MatchReportResponse,
    MatchReportListResponse,
)

__all__ = [
    "UserPublic",
    "TournamentCreate",
    "TournamentPublic",
    "TournamentListResponse",
    "ParticipantPublic",
    "ParticipantResponse",
    "MessageResponse",
    "TournamentMatchPublic",
    "BracketRoundPublic",
    "BracketPublic",
    "StartTournamentResponse",
    "TournamentBundleResponse",
    "UserParticipation",
    "FinalizeMatchRequest",
    "FinalizeMatchResponse",
    "MatchReportRequest",
    "MatchReportPublic",
    "MatchReportResponse",
    "MatchReportListResponse",
]
