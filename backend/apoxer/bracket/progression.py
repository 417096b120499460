from dataclasses import dataclass, field
from itertools import groupby
from typing import Iterable, List, Optional

from ..enums import MatchStatus
from ..models import TournamentMatch


@dataclass(frozen=True)
class SlotAddress:
    round_number: int
    match_number: int
    slot: int

    @property
    def column(self) -> str:
        return "participant1_id" if self.slot == 1 else "participant2_id"


def advance(round_number: int, position: int) -> SlotAddress:
    """Where the winner of the match at ``position`` (0-indexed) goes next.

    Matches 2k-1 and 2k of round r feed match k of round r+1; the odd one
    fills slot 1 and the even one slot 2.
    """
    if round_number < 1 or position < 0:
        raise ValueError("round_number must be >= 1 and position >= 0")
    return SlotAddress(
        round_number=round_number + 1,
        match_number=position // 2 + 1,
        slot=1 if position % 2 == 0 else 2,
    )


@dataclass
class BracketRound:
    round_number: int
    matches: List[TournamentMatch] = field(default_factory=list)

    def position_of(self, match: TournamentMatch) -> int:
        for index, candidate in enumerate(self.matches):
            if candidate.match_number == match.match_number:
                return index
        raise ValueError(f"match {match.match_number} is not in round {self.round_number}")

    def match_number(self, match_number: int) -> Optional[TournamentMatch]:
        return next((m for m in self.matches if m.match_number == match_number), None)


@dataclass
class Bracket:
    rounds: List[BracketRound]

    @classmethod
    def from_matches(cls, matches: Iterable[TournamentMatch]) -> "Bracket":
        ordered = sorted(matches, key=lambda m: (m.round_number, m.match_number))
        rounds = [
            BracketRound(round_number=round_number, matches=list(group))
            for round_number, group in groupby(ordered, key=lambda m: m.round_number)
        ]
        return cls(rounds=rounds)

    def validate(self) -> None:
        if not self.rounds:
            raise ValueError("bracket has no matches")
        for expected, bracket_round in enumerate(self.rounds, start=1):
            if bracket_round.round_number != expected:
                raise ValueError(f"round {expected} is missing")
            numbers = [m.match_number for m in bracket_round.matches]
            if numbers != list(range(1, len(numbers) + 1)):
                raise ValueError(f"round {expected} match numbers are not contiguous")
            if expected > 1:
                previous = len(self.rounds[expected - 2].matches)
                if len(numbers) != (previous + 1) // 2:
                    raise ValueError(f"round {expected} should hold {(previous + 1) // 2} matches")
        if len(self.final_round.matches) != 1:
            raise ValueError("final round must hold exactly one match")

    def round(self, round_number: int) -> Optional[BracketRound]:
        return next((r for r in self.rounds if r.round_number == round_number), None)

    @property
    def final_round(self) -> BracketRound:
        return self.rounds[-1]

    @property
    def final_match(self) -> Optional[TournamentMatch]:
        if not self.rounds or len(self.final_round.matches) != 1:
            return None
        return self.final_round.matches[0]

    @property
    def semifinal_round(self) -> Optional[BracketRound]:
        if len(self.rounds) < 2:
            return None
        return self.rounds[-2]

    def next_slot(self, match: TournamentMatch) -> Optional[SlotAddress]:
        """Slot the winner of ``match`` advances into, or None for the final."""
        current = self.round(match.round_number)
        if current is None:
            raise ValueError(f"round {match.round_number} is not part of this bracket")
        if self.round(match.round_number + 1) is None:
            return None
        return advance(match.round_number, current.position_of(match))

    def match_at(self, address: SlotAddress) -> Optional[TournamentMatch]:
        bracket_round = self.round(address.round_number)
        if bracket_round is None:
            return None
        return bracket_round.match_number(address.match_number)

    def is_complete(self) -> bool:
        final = self.final_match
        return (
            final is not None
            and final.status == MatchStatus.COMPLETED
            and final.winner_id is not None
        )
