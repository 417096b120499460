import logging
from typing import List

from sqlalchemy import or_, update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..bracket import Bracket, Placements, compute_placements
from ..enums import MatchStatus, OutcomeMethod, ReportStatus, TournamentStatus
from ..exceptions import (
    AlreadyFinalizedError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from ..models import (
    Tournament,
    TournamentMatch,
    TournamentMatchReport,
    TournamentParticipant,
    User,
)
from ..schemas.match import FinalizeMatchRequest, MatchReportRequest
from ..timeutils import utcnow
from .rewards import enqueue_tournament_rewards

logger = logging.getLogger(__name__)


class MatchService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _get_tournament(self, tournament_id: str) -> Tournament:
        tournament = await self.session.get(Tournament, tournament_id)
        if not tournament:
            raise NotFoundError("Tournament not found")
        return tournament

    async def _get_match(self, tournament_id: str, match_id: str) -> TournamentMatch:
        statement = select(TournamentMatch).where(
            TournamentMatch.id == match_id,
            TournamentMatch.tournament_id == tournament_id,
        )
        match = (await self.session.execute(statement)).scalar_one_or_none()
        if not match:
            raise NotFoundError("Match not found")
        return match

    async def finalize(
        self,
        *,
        tournament_id: str,
        match_id: str,
        actor: User,
        payload: FinalizeMatchRequest,
    ) -> bool:
        """Record the host's result for one match and propagate it.

        Writes the result, advances the winner, and on the final assigns
        placements, queues rewards and completes the tournament, all in one
        transaction. Returns whether the tournament is now complete.
        """
        tournament = await self._get_tournament(tournament_id)
        if tournament.host_id != actor.id:
            raise ForbiddenError("Only tournament host can finalize matches")

        match = await self._get_match(tournament_id, match_id)
        if match.status == MatchStatus.COMPLETED:
            raise AlreadyFinalizedError("Match already finalized")
        if tournament.status != TournamentStatus.IN_PROGRESS:
            raise ValidationFailedError("Tournament is not in progress")

        slots = {pid for pid in match.participant_ids if pid}
        if payload.winner_id not in slots:
            raise ValidationFailedError("Winner must be one of the match participants")

        try:
            complete = await self._apply_result(tournament, match, actor, payload)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Match %s (round %s, match %s) of tournament %s finalized; winner %s",
            match_id,
            match.round_number,
            match.match_number,
            tournament_id,
            payload.winner_id,
        )
        if complete:
            logger.info("Tournament %s completed", tournament_id)
        return complete

    async def _apply_result(
        self,
        tournament: Tournament,
        match: TournamentMatch,
        actor: User,
        payload: FinalizeMatchRequest,
    ) -> bool:
        now = utcnow()
        result = await self.session.execute(
            sa_update(TournamentMatch)
            .execution_options(synchronize_session=False)
            .where(TournamentMatch.id == match.id)
            .where(TournamentMatch.status != MatchStatus.COMPLETED)
            .values(
                winner_id=payload.winner_id,
                score1=payload.score1,
                score2=payload.score2,
                outcome_method=payload.outcome_method,
                outcome_notes=payload.outcome_notes,
                status=MatchStatus.COMPLETED,
                finalized_by=actor.id,
                finalized_at=now,
                updated_at=now,
            )
        )
        if result.rowcount != 1:
            raise ConflictError("Match was finalized by another request")

        matches = (
            await self.session.execute(
                select(TournamentMatch)
                .where(TournamentMatch.tournament_id == tournament.id)
                .order_by(TournamentMatch.round_number, TournamentMatch.match_number)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        bracket = Bracket.from_matches(matches)
        bracket.validate()

        completed = next(m for m in matches if m.id == match.id)
        address = bracket.next_slot(completed)
        if address is not None:
            target = bracket.match_at(address)
            if target is None:
                raise ConflictError(
                    f"Round {address.round_number} has no match {address.match_number}"
                )
            column = getattr(TournamentMatch, address.column)
            advanced = await self.session.execute(
                sa_update(TournamentMatch)
                .execution_options(synchronize_session=False)
                .where(TournamentMatch.id == target.id)
                .where(TournamentMatch.status != MatchStatus.COMPLETED)
                .where(or_(column.is_(None), column == payload.winner_id))
                .values({address.column: payload.winner_id, "updated_at": now})
            )
            if advanced.rowcount != 1:
                raise ConflictError(
                    f"Slot {address.slot} of round {address.round_number} match "
                    f"{address.match_number} is already taken"
                )

        if not bracket.is_complete():
            return False

        placements = compute_placements(bracket)
        await self._complete_tournament(tournament, placements, now)
        return True

    async def _complete_tournament(self, tournament: Tournament, placements: Placements, now) -> None:
        for participant_id, place in placements.as_placement_map().items():
            await self.session.execute(
                sa_update(TournamentParticipant)
                .execution_options(synchronize_session=False)
                .where(TournamentParticipant.id == participant_id)
                .where(TournamentParticipant.tournament_id == tournament.id)
                .values(final_placement=place)
            )

        await enqueue_tournament_rewards(self.session, tournament.id, placements)

        result = await self.session.execute(
            sa_update(Tournament)
            .execution_options(synchronize_session=False)
            .where(Tournament.id == tournament.id)
            .where(Tournament.status == TournamentStatus.IN_PROGRESS)
            .values(status=TournamentStatus.COMPLETED, updated_at=now)
        )
        if result.rowcount != 1:
            raise ConflictError("Tournament was completed by another request")

    async def submit_report(
        self,
        *,
        tournament_id: str,
        match_id: str,
        user: User,
        payload: MatchReportRequest,
    ) -> tuple[TournamentMatchReport, bool]:
        """Upsert the caller's report. Returns the report and whether it is new."""
        match = await self._get_match(tournament_id, match_id)
        if match.status == MatchStatus.COMPLETED:
            raise AlreadyFinalizedError("Match already finalized")

        participant_stmt = select(TournamentParticipant).where(
            TournamentParticipant.tournament_id == tournament_id,
            TournamentParticipant.user_id == user.id,
        )
        participant = (await self.session.execute(participant_stmt)).scalar_one_or_none()
        if not participant:
            raise ForbiddenError("Not a participant in this tournament")

        slots = {pid for pid in match.participant_ids if pid}
        if participant.id not in slots:
            raise ForbiddenError("Not a participant in this match")
        if payload.claimed_winner_participant_id not in slots:
            raise ValidationFailedError("Claimed winner must be a participant in this match")

        existing_stmt = select(TournamentMatchReport).where(
            TournamentMatchReport.match_id == match.id,
            TournamentMatchReport.reporter_user_id == user.id,
        )
        report = (await self.session.execute(existing_stmt)).scalar_one_or_none()
        created = report is None
        if created:
            report = TournamentMatchReport(
                tournament_id=tournament_id,
                match_id=match.id,
                reporter_participant_id=participant.id,
                reporter_user_id=user.id,
            )

        report.claimed_winner_participant_id = payload.claimed_winner_participant_id
        report.claimed_score1 = payload.claimed_score1
        report.claimed_score2 = payload.claimed_score2
        report.claimed_method = payload.claimed_method or OutcomeMethod.MANUAL.value
        report.notes = payload.notes
        report.proof_paths = list(payload.proof_paths)
        report.status = ReportStatus.SUBMITTED
        report.updated_at = utcnow()
        self.session.add(report)

        try:
            await self._touch_open_match(match)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("A report for this match was submitted concurrently") from exc
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(report)
        return report, created

    async def _touch_open_match(self, match: TournamentMatch) -> None:
        """Lock the match row while it is still open and start it if pending.

        The match read earlier may be stale, so both writes are conditional
        on the stored status and a finalized match is never written back.
        """
        now = utcnow()
        touched = await self.session.execute(
            sa_update(TournamentMatch)
            .execution_options(synchronize_session=False)
            .where(TournamentMatch.id == match.id)
            .where(TournamentMatch.status != MatchStatus.COMPLETED)
            .values(updated_at=now)
        )
        if touched.rowcount != 1:
            raise AlreadyFinalizedError("Match already finalized")

        # the first report starts the match
        await self.session.execute(
            sa_update(TournamentMatch)
            .execution_options(synchronize_session=False)
            .where(TournamentMatch.id == match.id)
            .where(TournamentMatch.status == MatchStatus.PENDING)
            .values(status=MatchStatus.IN_PROGRESS, updated_at=now)
        )

    async def list_reports(
        self,
        *,
        tournament_id: str,
        match_id: str,
        user: User,
    ) -> List[TournamentMatchReport]:
        tournament = await self._get_tournament(tournament_id)
        if tournament.host_id != user.id:
            raise ForbiddenError("Only tournament host can view match reports")

        match = await self._get_match(tournament_id, match_id)
        statement = (
            select(TournamentMatchReport)
            .where(TournamentMatchReport.match_id == match.id)
            .where(TournamentMatchReport.status == ReportStatus.SUBMITTED)
            .order_by(TournamentMatchReport.created_at)
        )
        return list((await self.session.execute(statement)).scalars().all())
