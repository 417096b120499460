from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..bracket import Bracket
from ..database import get_session
from ..dependencies import get_current_user, get_optional_user
from ..enums import ParticipantStatus, TournamentStatus
from ..exceptions import TournamentError
from ..models import Tournament, TournamentMatch, TournamentParticipant, User
from ..schemas.tournament import (
    BracketPublic,
    BracketRoundPublic,
    MessageResponse,
    ParticipantPublic,
    ParticipantResponse,
    StartTournamentResponse,
    TournamentBundleResponse,
    TournamentCreate,
    TournamentListResponse,
    TournamentMatchPublic,
    TournamentPublic,
    UserParticipation,
)
from ..services.tournament_service import (
    ACTIVE_PARTICIPANT_STATUSES,
    TournamentService,
    tournament_state,
)

router = APIRouter(prefix="/tournaments", tags=["tournaments"])


def _http_error(exc: TournamentError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def _tournament_public(tournament: Tournament, participant_count: int = 0) -> TournamentPublic:
    public = TournamentPublic.model_validate(tournament)
    public.state = tournament_state(tournament)
    public.current_participants = participant_count
    return public


def _bracket_public(matches: list[TournamentMatch]) -> BracketPublic:
    bracket = Bracket.from_matches(matches)
    return BracketPublic(
        rounds=[
            BracketRoundPublic(
                round_number=bracket_round.round_number,
                matches=[TournamentMatchPublic.model_validate(m) for m in bracket_round.matches],
            )
            for bracket_round in bracket.rounds
        ]
    )


@router.post("", response_model=TournamentPublic, status_code=status.HTTP_201_CREATED)
async def create_tournament(
    payload: TournamentCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    service = TournamentService(session)
    try:
        tournament = await service.create(host=current_user, payload=payload)
    except TournamentError as exc:
        raise _http_error(exc) from exc
    return _tournament_public(tournament)


@router.get("", response_model=TournamentListResponse)
async def list_tournaments(
    status_filter: TournamentStatus | None = Query(default=None, alias="status"),
    game_id: str | None = None,
    platform: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    service = TournamentService(session)
    tournaments, total = await service.list_tournaments(
        status=status_filter,
        game_id=game_id,
        platform=platform,
        page=page,
        limit=limit,
    )
    counts = await service.participant_counts([t.id for t in tournaments])
    return TournamentListResponse(
        tournaments=[_tournament_public(t, counts.get(t.id, 0)) for t in tournaments],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{tournament_id}", response_model=TournamentPublic)
async def get_tournament(tournament_id: str, session: AsyncSession = Depends(get_session)):
    service = TournamentService(session)
    try:
        tournament = await service.get(tournament_id)
    except TournamentError as exc:
        raise _http_error(exc) from exc
    counts = await service.participant_counts([tournament.id])
    return _tournament_public(tournament, counts.get(tournament.id, 0))


def _user_participation(
    participants: list[TournamentParticipant], user: User | None
) -> UserParticipation | None:
    if user is None:
        return None
    participant = next((p for p in participants if p.user_id == user.id), None)
    if participant is None:
        return UserParticipation(is_registered=False, is_checked_in=False)
    return UserParticipation(
        is_registered=participant.status in ACTIVE_PARTICIPANT_STATUSES,
        is_checked_in=participant.status == ParticipantStatus.CHECKED_IN,
        status=participant.status,
    )


@router.get("/{tournament_id}/bundle", response_model=TournamentBundleResponse)
async def get_tournament_bundle(
    tournament_id: str,
    current_user: User | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    service = TournamentService(session)
    try:
        bundle = await service.get_bundle(tournament_id)
    except TournamentError as exc:
        raise _http_error(exc) from exc
    counts = await service.participant_counts([tournament_id])
    return TournamentBundleResponse(
        tournament=_tournament_public(bundle.tournament, counts.get(tournament_id, 0)),
        participants=[ParticipantPublic.model_validate(p) for p in bundle.participants],
        bracket=_bracket_public(bundle.matches),
        user_participation=_user_participation(bundle.participants, current_user),
    )


@router.get("/{tournament_id}/matches", response_model=BracketPublic)
async def get_bracket(tournament_id: str, session: AsyncSession = Depends(get_session)):
    service = TournamentService(session)
    try:
        await service.get(tournament_id)
    except TournamentError as exc:
        raise _http_error(exc) from exc
    return _bracket_public(await service.list_matches(tournament_id))


@router.post(
    "/{tournament_id}/register",
    response_model=ParticipantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_for_tournament(
    tournament_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    service = TournamentService(session)
    try:
        tournament = await service.get(tournament_id)
        participant = await service.register(tournament=tournament, user=current_user)
    except TournamentError as exc:
        raise _http_error(exc) from exc
    return ParticipantResponse(
        participant=ParticipantPublic.model_validate(participant),
        message="Successfully registered for tournament",
    )


@router.post("/{tournament_id}/check-in", response_model=ParticipantResponse)
async def check_in(
    tournament_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    service = TournamentService(session)
    try:
        tournament = await service.get(tournament_id)
        participant = await service.check_in(tournament=tournament, user=current_user)
    except TournamentError as exc:
        raise _http_error(exc) from exc
    return ParticipantResponse(
        participant=ParticipantPublic.model_validate(participant),
        message="Successfully checked in",
    )


@router.post("/{tournament_id}/withdraw", response_model=MessageResponse)
async def withdraw(
    tournament_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    service = TournamentService(session)
    try:
        tournament = await service.get(tournament_id)
        await service.withdraw(tournament=tournament, user=current_user)
    except TournamentError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(message="Successfully withdrew from tournament")


@router.post("/{tournament_id}/start", response_model=StartTournamentResponse)
async def start_tournament(
    tournament_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    service = TournamentService(session)
    try:
        tournament = await service.get(tournament_id)
        matches = await service.start(tournament=tournament, host=current_user)
    except TournamentError as exc:
        raise _http_error(exc) from exc
    return StartTournamentResponse(
        message="Tournament started successfully",
        bracket=_bracket_public(matches),
    )
