from .generator import MatchPlan, is_power_of_two, plan_single_elimination
from .placements import Placements, compute_placements
from .progression import Bracket, BracketRound, SlotAddress, advance

__all__ = [
    "Bracket",
    "BracketRound",
    "MatchPlan",
    "Placements",
    "SlotAddress",
    "advance",
    "compute_placements",
    "is_power_of_two",
    "plan_single_elimination",
]
