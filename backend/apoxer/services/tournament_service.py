import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..bracket import plan_single_elimination
from ..enums import ParticipantStatus, TournamentState, TournamentStatus
from ..exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from ..models import Tournament, TournamentMatch, TournamentParticipant, User
from ..schemas.tournament import TournamentCreate
from ..timeutils import utcnow

logger = logging.getLogger(__name__)

STARTABLE_STATUSES = (TournamentStatus.OPEN, TournamentStatus.REGISTRATION_CLOSED)
ACTIVE_PARTICIPANT_STATUSES = (ParticipantStatus.REGISTERED, ParticipantStatus.CHECKED_IN)


@dataclass
class TournamentBundle:
    tournament: Tournament
    participants: List[TournamentParticipant]
    matches: List[TournamentMatch]


def tournament_state(tournament: Tournament, now: datetime | None = None) -> TournamentState:
    now = now or utcnow()
    if tournament.status in (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED):
        return TournamentState.COMPLETED
    if (
        tournament.status in (TournamentStatus.IN_PROGRESS, TournamentStatus.REGISTRATION_CLOSED)
        or now >= tournament.start_at
    ):
        return TournamentState.LIVE
    return TournamentState.UPCOMING


class TournamentService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, tournament_id: str) -> Tournament:
        statement = select(Tournament).where(Tournament.id == tournament_id)
        tournament = (await self.session.execute(statement)).scalar_one_or_none()
        if not tournament:
            raise NotFoundError("Tournament not found")
        return tournament

    async def create(self, *, host: User, payload: TournamentCreate) -> Tournament:
        if payload.registration_deadline >= payload.start_at:
            raise ValidationFailedError("Registration deadline must be before start time")

        if payload.check_in_required:
            deadline = payload.check_in_deadline
            if deadline is None:
                raise ValidationFailedError("Check-in deadline is required when check-in is enabled")
            if deadline >= payload.start_at or deadline <= payload.registration_deadline:
                raise ValidationFailedError(
                    "Check-in deadline must be between registration deadline and start time"
                )

        tournament = Tournament(
            host_id=host.id,
            status=TournamentStatus.OPEN,
            **payload.model_dump(),
        )
        self.session.add(tournament)
        await self.session.commit()
        await self.session.refresh(tournament)
        logger.info("Tournament %s created by %s", tournament.id, host.id)
        return tournament

    async def list_tournaments(
        self,
        *,
        status: TournamentStatus | None = None,
        game_id: str | None = None,
        platform: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[List[Tournament], int]:
        statement = select(Tournament)
        count_statement = select(func.count()).select_from(Tournament)
        filters = []
        if status:
            filters.append(Tournament.status == status)
        if game_id:
            filters.append(Tournament.game_id == game_id)
        if platform:
            filters.append(Tournament.platform == platform)
        for condition in filters:
            statement = statement.where(condition)
            count_statement = count_statement.where(condition)

        statement = (
            statement.order_by(Tournament.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        tournaments = (await self.session.execute(statement)).scalars().all()
        total = (await self.session.execute(count_statement)).scalar_one()
        return list(tournaments), total

    async def participant_counts(self, tournament_ids: List[str]) -> dict[str, int]:
        if not tournament_ids:
            return {}
        statement = (
            select(TournamentParticipant.tournament_id, func.count())
            .where(TournamentParticipant.tournament_id.in_(tournament_ids))
            .where(TournamentParticipant.status.in_(ACTIVE_PARTICIPANT_STATUSES))
            .group_by(TournamentParticipant.tournament_id)
        )
        rows = (await self.session.execute(statement)).all()
        return {tournament_id: count for tournament_id, count in rows}

    async def get_bundle(self, tournament_id: str) -> TournamentBundle:
        tournament = await self.get(tournament_id)
        participant_stmt = (
            select(TournamentParticipant)
            .where(TournamentParticipant.tournament_id == tournament_id)
            .order_by(TournamentParticipant.created_at)
        )
        participants = (await self.session.execute(participant_stmt)).scalars().all()
        matches = await self.list_matches(tournament_id)
        return TournamentBundle(tournament=tournament, participants=list(participants), matches=matches)

    async def list_matches(self, tournament_id: str) -> List[TournamentMatch]:
        statement = (
            select(TournamentMatch)
            .where(TournamentMatch.tournament_id == tournament_id)
            .order_by(TournamentMatch.round_number, TournamentMatch.match_number)
        )
        return list((await self.session.execute(statement)).scalars().all())

    async def find_participant(self, tournament_id: str, user_id: str) -> Optional[TournamentParticipant]:
        statement = select(TournamentParticipant).where(
            TournamentParticipant.tournament_id == tournament_id,
            TournamentParticipant.user_id == user_id,
        )
        return (await self.session.execute(statement)).scalar_one_or_none()

    async def register(self, *, tournament: Tournament, user: User) -> TournamentParticipant:
        if tournament.status != TournamentStatus.OPEN:
            raise ValidationFailedError("Tournament registration is not open")
        if tournament.registration_deadline < utcnow():
            raise ValidationFailedError("Registration deadline has passed")

        participant = await self.find_participant(tournament.id, user.id)
        if participant and participant.status != ParticipantStatus.WITHDRAWN:
            raise ValidationFailedError("Already registered for this tournament")

        counts = await self.participant_counts([tournament.id])
        if counts.get(tournament.id, 0) >= tournament.max_participants:
            raise ValidationFailedError("Tournament is full")

        if participant:
            participant.status = ParticipantStatus.REGISTERED
            participant.checked_in_at = None
        else:
            participant = TournamentParticipant(tournament_id=tournament.id, user_id=user.id)
        self.session.add(participant)
        await self.session.commit()
        await self.session.refresh(participant)
        return participant

    async def check_in(self, *, tournament: Tournament, user: User) -> TournamentParticipant:
        if not tournament.check_in_required:
            raise ValidationFailedError("Check-in is not required for this tournament")
        if tournament.check_in_deadline and tournament.check_in_deadline < utcnow():
            raise ValidationFailedError("Check-in deadline has passed")

        participant = await self.find_participant(tournament.id, user.id)
        if not participant:
            raise ValidationFailedError("Not registered for this tournament")
        if participant.status == ParticipantStatus.CHECKED_IN:
            raise ValidationFailedError("Already checked in")
        if participant.status in (ParticipantStatus.WITHDRAWN, ParticipantStatus.DISQUALIFIED):
            raise ValidationFailedError("Cannot check in after withdrawing")

        participant.status = ParticipantStatus.CHECKED_IN
        participant.checked_in_at = utcnow()
        self.session.add(participant)
        await self.session.commit()
        await self.session.refresh(participant)
        return participant

    async def withdraw(self, *, tournament: Tournament, user: User) -> TournamentParticipant:
        if tournament.status in (TournamentStatus.IN_PROGRESS, TournamentStatus.COMPLETED):
            raise ValidationFailedError("Cannot withdraw from tournament in progress")

        participant = await self.find_participant(tournament.id, user.id)
        if not participant:
            raise NotFoundError("Not registered for this tournament")

        participant.status = ParticipantStatus.WITHDRAWN
        participant.checked_in_at = None
        self.session.add(participant)
        await self.session.commit()
        await self.session.refresh(participant)
        return participant

    async def start(self, *, tournament: Tournament, host: User) -> List[TournamentMatch]:
        if tournament.host_id != host.id:
            raise ForbiddenError("Only tournament host can start the tournament")
        if tournament.status not in STARTABLE_STATUSES:
            raise ValidationFailedError("Tournament cannot be started in current status")

        if await self.list_matches(tournament.id):
            raise ConflictError("Bracket has already been generated")

        statuses = (
            (ParticipantStatus.CHECKED_IN,)
            if tournament.check_in_required
            else ACTIVE_PARTICIPANT_STATUSES
        )
        statement = select(TournamentParticipant).where(
            TournamentParticipant.tournament_id == tournament.id,
            TournamentParticipant.status.in_(statuses),
        )
        entrants = sorted(
            (await self.session.execute(statement)).scalars().all(),
            key=lambda p: (p.seed is None, p.seed or 0, p.created_at),
        )
        if len(entrants) > tournament.max_participants:
            raise ValidationFailedError(
                f"Tournament allows {tournament.max_participants} participants, got {len(entrants)}"
            )

        try:
            plans = plan_single_elimination([p.id for p in entrants])
        except ValueError as exc:
            raise ValidationFailedError(str(exc)) from exc

        for seed, participant in enumerate(entrants, start=1):
            participant.seed = seed
            self.session.add(participant)

        matches = [
            TournamentMatch(
                tournament_id=tournament.id,
                round_number=plan.round_number,
                match_number=plan.match_number,
                participant1_id=plan.participant1_id,
                participant2_id=plan.participant2_id,
            )
            for plan in plans
        ]
        self.session.add_all(matches)

        tournament.status = TournamentStatus.IN_PROGRESS
        tournament.updated_at = utcnow()
        self.session.add(tournament)
        await self.session.commit()
        logger.info(
            "Tournament %s started with %s participants (%s matches)",
            tournament.id,
            len(entrants),
            len(matches),
        )
        return await self.list_matches(tournament.id)
