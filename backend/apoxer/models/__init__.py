from .user import User
from .tournament import Tournament, TournamentParticipant, TournamentMatch, TournamentMatchReport
from .reward import RewardTask, ProfileBadge, TournamentReward

__all__ = [
    "User",
    "Tournament",
    "TournamentParticipant",
    "TournamentMatch",
    "TournamentMatchReport",
    "RewardTask",
    "ProfileBadge",
    "TournamentReward",
]
