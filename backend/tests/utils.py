from datetime import timedelta
from typing import Sequence

from apoxer.enums import ParticipantStatus, TournamentStatus
from apoxer.models import Tournament, TournamentParticipant, User
from apoxer.security import create_access_token
from apoxer.services.tournament_service import TournamentService
from apoxer.timeutils import utcnow


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def create_user(session_factory, username: str) -> User:
    async with session_factory() as session:
        user = User(email=f"{username}@example.com", username=username)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def create_tournament(
    session_factory,
    host: User,
    *,
    status: TournamentStatus = TournamentStatus.OPEN,
    max_participants: int = 8,
    check_in_required: bool = False,
) -> Tournament:
    now = utcnow()
    async with session_factory() as session:
        tournament = Tournament(
            host_id=host.id,
            game_id="game-1",
            game_name="Rocket League",
            title="Friday Cup",
            platform="pc",
            status=status,
            max_participants=max_participants,
            start_at=now + timedelta(days=2),
            registration_deadline=now + timedelta(days=1),
            check_in_required=check_in_required,
            check_in_deadline=now + timedelta(days=1, hours=12) if check_in_required else None,
        )
        session.add(tournament)
        await session.commit()
        await session.refresh(tournament)
        return tournament


async def add_participants(
    session_factory, tournament: Tournament, users: Sequence[User]
) -> list[TournamentParticipant]:
    participants = []
    async with session_factory() as session:
        for offset, user in enumerate(users):
            participant = TournamentParticipant(
                tournament_id=tournament.id,
                user_id=user.id,
                status=ParticipantStatus.CHECKED_IN,
                created_at=utcnow() + timedelta(seconds=offset),
            )
            session.add(participant)
            participants.append(participant)
        await session.commit()
        for participant in participants:
            await session.refresh(participant)
    return participants


async def started_tournament(session_factory, size: int):
    """Host, entrants (in bracket order) and tournament with its bracket generated."""
    host = await create_user(session_factory, "host")
    players = [await create_user(session_factory, f"player{index}") for index in range(1, size + 1)]
    tournament = await create_tournament(session_factory, host, max_participants=max(size, 4))
    participants = await add_participants(session_factory, tournament, players)
    async with session_factory() as session:
        service = TournamentService(session)
        fresh = await service.get(tournament.id)
        await service.start(tournament=fresh, host=host)
    return host, players, participants, tournament


async def load_matches(session_factory, tournament_id: str):
    async with session_factory() as session:
        return await TournamentService(session).list_matches(tournament_id)


def find_match(matches, round_number: int, match_number: int):
    return next(
        m for m in matches if m.round_number == round_number and m.match_number == match_number
    )


def run_before_first_write(monkeypatch, session, interleaved) -> None:
    """Await ``interleaved()`` once, right before ``session`` executes its first UPDATE."""
    execute = session.execute
    pending = [interleaved]

    async def execute_after_interleaved(statement, *args, **kwargs):
        if pending and getattr(statement, "is_dml", False):
            await pending.pop()()
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(session, "execute", execute_after_interleaved)
