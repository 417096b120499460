from dataclasses import dataclass, field
from typing import List, Optional

from .progression import Bracket


@dataclass
class Placements:
    first: Optional[str] = None
    second: Optional[str] = None
    third: Optional[str] = None
    fourth: List[str] = field(default_factory=list)

    def as_placement_map(self) -> dict[str, int]:
        """participant id -> final placement"""
        mapping: dict[str, int] = {}
        for participant_id in self.fourth:
            mapping[participant_id] = 4
        for participant_id, place in ((self.third, 3), (self.second, 2), (self.first, 1)):
            if participant_id:
                mapping[participant_id] = place
        return mapping

    def to_payload(self) -> dict:
        return {
            "first": self.first,
            "second": self.second,
            "third": self.third,
            "fourth": list(self.fourth),
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "Placements":
        return cls(
            first=payload.get("first"),
            second=payload.get("second"),
            third=payload.get("third"),
            fourth=list(payload.get("fourth") or []),
        )


def compute_placements(bracket: Bracket) -> Placements:
    """Podium for a finished single elimination bracket.

    Third place goes to the player knocked out by the champion in the
    semifinals; the remaining semifinal losers share fourth. Only the final
    and semifinal losers are placed, so an 8 or 16 player bracket yields
    exactly one third and one fourth and quarterfinal losers get nothing.
    Brackets with no semifinal round only produce first and second.
    """
    final = bracket.final_match
    if final is None or final.winner_id is None:
        return Placements()

    placements = Placements(first=final.winner_id, second=final.loser_id())

    semifinals = bracket.semifinal_round
    if semifinals is None:
        return placements

    for match in semifinals.matches:
        loser = match.loser_id()
        if match.winner_id is None or loser is None:
            continue
        if match.winner_id == placements.first and placements.third is None:
            placements.third = loser
        else:
            placements.fourth.append(loser)
    return placements
