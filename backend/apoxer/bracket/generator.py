from dataclasses import dataclass
from typing import List, Optional, Sequence

MIN_BRACKET_SIZE = 2


@dataclass
class MatchPlan:
    round_number: int
    match_number: int
    participant1_id: Optional[str] = None
    participant2_id: Optional[str] = None


def is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


def number_of_rounds(participant_count: int) -> int:
    return participant_count.bit_length() - 1


def plan_single_elimination(participant_ids: Sequence[str]) -> List[MatchPlan]:
    """Every match of a single elimination bracket, first round seeded.

    Entrants are paired in the given order; later rounds start empty and
    are filled as winners advance. N entrants give N-1 matches.
    """
    count = len(participant_ids)
    if count < MIN_BRACKET_SIZE or not is_power_of_two(count):
        raise ValueError(f"Bracket needs a power-of-two number of participants, got {count}")

    plans = [
        MatchPlan(
            round_number=1,
            match_number=index // 2 + 1,
            participant1_id=participant_ids[index],
            participant2_id=participant_ids[index + 1],
        )
        for index in range(0, count, 2)
    ]

    matches_in_round = count // 2
    for round_number in range(2, number_of_rounds(count) + 1):
        matches_in_round //= 2
        plans.extend(
            MatchPlan(round_number=round_number, match_number=number)
            for number in range(1, matches_in_round + 1)
        )
    return plans
