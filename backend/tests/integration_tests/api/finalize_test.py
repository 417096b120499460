import pytest
from sqlmodel import select

from apoxer.enums import MatchStatus, OutcomeMethod, RewardTaskStatus, TournamentStatus
from apoxer.exceptions import ConflictError
from apoxer.models import RewardTask, Tournament, TournamentMatch, TournamentParticipant
from apoxer.schemas.match import FinalizeMatchRequest
from apoxer.services.match_service import MatchService
from tests.utils import (
    auth_headers,
    create_tournament,
    create_user,
    find_match,
    load_matches,
    run_before_first_write,
    started_tournament,
)


def _finalize_url(tournament_id: str, match_id: str) -> str:
    return f"/api/tournaments/{tournament_id}/matches/{match_id}/finalize"


def _result(winner_id: str, score1: int = 2, score2: int = 1) -> dict:
    return {
        "winner_id": winner_id,
        "score1": score1,
        "score2": score2,
        "outcome_method": "manual",
    }


async def _finalize(client, host, tournament_id, match, winner_id):
    response = await client.post(
        _finalize_url(tournament_id, match.id),
        json=_result(winner_id),
        headers=auth_headers(host),
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.asyncio
async def test_winner_lands_in_slot_by_position(client, session_factory) -> None:
    host, _, (a, b, c, d), tournament = await started_tournament(session_factory, 4)
    matches = await load_matches(session_factory, tournament.id)

    body = await _finalize(client, host, tournament.id, find_match(matches, 1, 2), c.id)
    assert body == {"message": "Match finalized successfully", "tournament_complete": False}
    await _finalize(client, host, tournament.id, find_match(matches, 1, 1), a.id)

    final = find_match(await load_matches(session_factory, tournament.id), 2, 1)
    assert final.participant1_id == a.id
    assert final.participant2_id == c.id
    assert final.status == MatchStatus.PENDING


@pytest.mark.asyncio
async def test_finalize_records_result(client, session_factory) -> None:
    host, _, (a, b, _c, _d), tournament = await started_tournament(session_factory, 4)
    match = find_match(await load_matches(session_factory, tournament.id), 1, 1)

    response = await client.post(
        _finalize_url(tournament.id, match.id),
        json={**_result(b.id, 0, 3), "outcome_method": "forfeit", "outcome_notes": "no show"},
        headers=auth_headers(host),
    )
    assert response.status_code == 200

    stored = find_match(await load_matches(session_factory, tournament.id), 1, 1)
    assert stored.winner_id == b.id
    assert (stored.score1, stored.score2) == (0, 3)
    assert stored.status == MatchStatus.COMPLETED
    assert stored.outcome_method.value == "forfeit"
    assert stored.outcome_notes == "no show"
    assert stored.finalized_by == host.id
    assert stored.finalized_at is not None


@pytest.mark.asyncio
async def test_invalid_winner_is_rejected_without_changes(client, session_factory) -> None:
    host, _, (_a, _b, c, _d), tournament = await started_tournament(session_factory, 4)
    match = find_match(await load_matches(session_factory, tournament.id), 1, 1)

    response = await client.post(
        _finalize_url(tournament.id, match.id), json=_result(c.id), headers=auth_headers(host)
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Winner must be one of the match participants"
    stored = find_match(await load_matches(session_factory, tournament.id), 1, 1)
    assert stored.status == MatchStatus.PENDING
    assert stored.winner_id is None


@pytest.mark.asyncio
async def test_winner_must_fill_a_populated_slot(client, session_factory) -> None:
    host, _, (a, _b, _c, _d), tournament = await started_tournament(session_factory, 4)
    final = find_match(await load_matches(session_factory, tournament.id), 2, 1)

    response = await client.post(
        _finalize_url(tournament.id, final.id), json=_result(a.id), headers=auth_headers(host)
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_second_finalize_is_rejected_and_writes_nothing(client, session_factory) -> None:
    host, _, (a, b, _c, _d), tournament = await started_tournament(session_factory, 4)
    match = find_match(await load_matches(session_factory, tournament.id), 1, 1)
    await _finalize(client, host, tournament.id, match, a.id)
    before = find_match(await load_matches(session_factory, tournament.id), 1, 1)
    final_before = find_match(await load_matches(session_factory, tournament.id), 2, 1)

    response = await client.post(
        _finalize_url(tournament.id, match.id), json=_result(b.id), headers=auth_headers(host)
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Match already finalized"
    after = find_match(await load_matches(session_factory, tournament.id), 1, 1)
    final_after = find_match(await load_matches(session_factory, tournament.id), 2, 1)
    assert after.winner_id == a.id
    assert after.updated_at == before.updated_at
    assert final_after.participant1_id == final_before.participant1_id == a.id


@pytest.mark.asyncio
async def test_only_host_can_finalize(client, session_factory) -> None:
    _, players, (a, _b, _c, _d), tournament = await started_tournament(session_factory, 4)
    match = find_match(await load_matches(session_factory, tournament.id), 1, 1)

    response = await client.post(
        _finalize_url(tournament.id, match.id), json=_result(a.id), headers=auth_headers(players[0])
    )
    assert response.status_code == 403

    response = await client.post(_finalize_url(tournament.id, match.id), json=_result(a.id))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_tournament_or_foreign_match_is_not_found(client, session_factory) -> None:
    host, _, (a, _b, _c, _d), tournament = await started_tournament(session_factory, 4)
    match = find_match(await load_matches(session_factory, tournament.id), 1, 1)
    other = await create_tournament(session_factory, host, status=TournamentStatus.IN_PROGRESS)

    response = await client.post(
        _finalize_url("missing", match.id), json=_result(a.id), headers=auth_headers(host)
    )
    assert response.status_code == 404

    response = await client.post(
        _finalize_url(other.id, match.id), json=_result(a.id), headers=auth_headers(host)
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Match not found"


@pytest.mark.asyncio
async def test_malformed_body_is_invalid_input(client, session_factory) -> None:
    host, _, (a, _b, _c, _d), tournament = await started_tournament(session_factory, 4)
    match = find_match(await load_matches(session_factory, tournament.id), 1, 1)

    response = await client.post(
        _finalize_url(tournament.id, match.id),
        json={"winner_id": a.id, "score1": -1, "score2": 0, "outcome_method": "coin_flip"},
        headers=auth_headers(host),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid input"


@pytest.mark.asyncio
async def test_full_four_player_run_completes_tournament(client, session_factory) -> None:
    host, _, (a, b, c, d), tournament = await started_tournament(session_factory, 4)
    matches = await load_matches(session_factory, tournament.id)

    await _finalize(client, host, tournament.id, find_match(matches, 1, 1), a.id)
    await _finalize(client, host, tournament.id, find_match(matches, 1, 2), d.id)
    body = await _finalize(client, host, tournament.id, find_match(matches, 2, 1), d.id)
    assert body["tournament_complete"] is True

    async with session_factory() as session:
        stored = await session.get(Tournament, tournament.id)
        assert stored.status == TournamentStatus.COMPLETED
        rows = (
            await session.execute(
                select(TournamentParticipant).where(TournamentParticipant.tournament_id == tournament.id)
            )
        ).scalars().all()
        placements = {p.id: p.final_placement for p in rows}
        assert placements == {d.id: 1, a.id: 2, c.id: 3, b.id: 4}

        task = (
            await session.execute(select(RewardTask).where(RewardTask.tournament_id == tournament.id))
        ).scalar_one()
        assert task.status == RewardTaskStatus.PENDING
        assert task.placements == {"first": d.id, "second": a.id, "third": c.id, "fourth": [b.id]}


@pytest.mark.asyncio
async def test_full_eight_player_run_assigns_one_of_each_podium_place(client, session_factory) -> None:
    host, _, participants, tournament = await started_tournament(session_factory, 8)

    for round_number in (1, 2, 3):
        matches = await load_matches(session_factory, tournament.id)
        for match in [m for m in matches if m.round_number == round_number]:
            body = await _finalize(client, host, tournament.id, match, match.participant2_id)
    assert body["tournament_complete"] is True

    async with session_factory() as session:
        rows = (
            await session.execute(
                select(TournamentParticipant).where(TournamentParticipant.tournament_id == tournament.id)
            )
        ).scalars().all()
    places = sorted(p.final_placement for p in rows if p.final_placement is not None)
    assert places == [1, 2, 3, 4]
    champion = next(p for p in rows if p.final_placement == 1)
    assert champion.id == participants[7].id


@pytest.mark.asyncio
async def test_matches_are_frozen_once_tournament_is_complete(client, session_factory) -> None:
    host, _, (a, b), tournament = await started_tournament(session_factory, 2)
    final = find_match(await load_matches(session_factory, tournament.id), 1, 1)

    body = await _finalize(client, host, tournament.id, final, b.id)
    assert body["tournament_complete"] is True

    response = await client.post(
        _finalize_url(tournament.id, final.id), json=_result(a.id), headers=auth_headers(host)
    )
    assert response.status_code == 400

    stored = find_match(await load_matches(session_factory, tournament.id), 1, 1)
    assert stored.winner_id == b.id
    async with session_factory() as session:
        assert (await session.get(Tournament, tournament.id)).status == TournamentStatus.COMPLETED
        rows = (
            await session.execute(
                select(TournamentParticipant).where(TournamentParticipant.tournament_id == tournament.id)
            )
        ).scalars().all()
    assert {p.id: p.final_placement for p in rows} == {b.id: 1, a.id: 2}


@pytest.mark.asyncio
async def test_concurrent_finalize_of_same_match_is_a_conflict(session_factory, monkeypatch) -> None:
    host, _, (a, b, _c, _d), tournament = await started_tournament(session_factory, 4)
    match = find_match(await load_matches(session_factory, tournament.id), 1, 1)

    async def other_request_finalizes_first():
        async with session_factory() as other:
            await MatchService(other).finalize(
                tournament_id=tournament.id,
                match_id=match.id,
                actor=host,
                payload=FinalizeMatchRequest(
                    winner_id=b.id, score1=0, score2=2, outcome_method=OutcomeMethod.MANUAL
                ),
            )

    async with session_factory() as session:
        run_before_first_write(monkeypatch, session, other_request_finalizes_first)
        with pytest.raises(ConflictError):
            await MatchService(session).finalize(
                tournament_id=tournament.id,
                match_id=match.id,
                actor=host,
                payload=FinalizeMatchRequest(
                    winner_id=a.id, score1=2, score2=0, outcome_method=OutcomeMethod.MANUAL
                ),
            )

    matches = await load_matches(session_factory, tournament.id)
    stored = find_match(matches, 1, 1)
    assert stored.winner_id == b.id
    assert (stored.score1, stored.score2) == (0, 2)
    final = find_match(matches, 2, 1)
    assert final.participant1_id == b.id
    assert final.participant2_id is None


@pytest.mark.asyncio
async def test_bracket_is_empty_before_start(client, session_factory) -> None:
    host = await create_user(session_factory, "host")
    tournament = await create_tournament(session_factory, host, status=TournamentStatus.OPEN)

    response = await client.get(f"/api/tournaments/{tournament.id}/matches")
    assert response.status_code == 200
    assert response.json() == {"rounds": []}


@pytest.mark.asyncio
async def test_occupied_next_slot_is_a_conflict_and_rolls_back(client, session_factory) -> None:
    host, _, (a, b, c, _d), tournament = await started_tournament(session_factory, 4)
    matches = await load_matches(session_factory, tournament.id)
    async with session_factory() as session:
        final = await session.get(TournamentMatch, find_match(matches, 2, 1).id)
        final.participant1_id = c.id
        session.add(final)
        await session.commit()

    response = await client.post(
        _finalize_url(tournament.id, find_match(matches, 1, 1).id),
        json=_result(a.id),
        headers=auth_headers(host),
    )

    assert response.status_code == 409
    first = find_match(await load_matches(session_factory, tournament.id), 1, 1)
    assert first.status == MatchStatus.PENDING
    assert first.winner_id is None
