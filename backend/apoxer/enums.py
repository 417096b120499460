from enum import Enum


class TournamentStatus(str, Enum):
    DRAFT = "draft"
    OPEN = "open"
    REGISTRATION_CLOSED = "registration_closed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TournamentState(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"


class ParticipantStatus(str, Enum):
    REGISTERED = "registered"
    CHECKED_IN = "checked_in"
    WITHDRAWN = "withdrawn"
    DISQUALIFIED = "disqualified"


class MatchStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FORFEITED = "forfeited"


class OutcomeMethod(str, Enum):
    MANUAL = "manual"
    FORFEIT = "forfeit"
    TIMEOUT = "timeout"
    DISCONNECT = "disconnect"


class ReportStatus(str, Enum):
    SUBMITTED = "submitted"
    WITHDRAWN = "withdrawn"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class RewardType(str, Enum):
    BADGE = "badge"
    PRO_DAYS = "pro_days"
    VISIBILITY = "visibility"


class RewardTaskStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"
