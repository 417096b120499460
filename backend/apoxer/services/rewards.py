"""
Tournament rewards.

Completing a tournament only writes a ``RewardTask`` row in the same
transaction. ``dispatch_pending_rewards`` runs later (from the background
loop in ``main``) and grants badges, Pro days and visibility boosts. Every
grant checks for an existing row first, so a task that failed halfway can be
retried safely.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..bracket import Placements
from ..config import get_settings
from ..enums import PlanTier, RewardTaskStatus, RewardType
from ..models import (
    ProfileBadge,
    RewardTask,
    Tournament,
    TournamentParticipant,
    TournamentReward,
    User,
)
from ..timeutils import utcnow

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BadgeConfig:
    label: str
    pro_days: int = 0
    visibility_days: int = 0


BADGE_CONFIG = {
    "tournament_winner": BadgeConfig(label="Tournament Winner", pro_days=7, visibility_days=7),
    "tournament_finalist": BadgeConfig(label="Tournament Finalist", pro_days=3),
    "tournament_top4": BadgeConfig(label="Top 4"),
}


async def enqueue_tournament_rewards(
    session: AsyncSession, tournament_id: str, placements: Placements
) -> RewardTask:
    """Add the outbox row; the caller owns the transaction."""
    statement = select(RewardTask).where(RewardTask.tournament_id == tournament_id)
    task = (await session.execute(statement)).scalar_one_or_none()
    if task:
        return task
    task = RewardTask(tournament_id=tournament_id, placements=placements.to_payload())
    session.add(task)
    await session.flush()
    return task


async def grant_tournament_rewards(
    session: AsyncSession, tournament_id: str, placements: Placements
) -> int:
    """Grant every reward for the podium. Returns the number of new rows."""
    tournament = await session.get(Tournament, tournament_id)
    game_id = tournament.game_id if tournament else None

    awards: list[tuple[str, str]] = []
    if placements.first:
        awards.append((placements.first, "tournament_winner"))
    if placements.second:
        awards.append((placements.second, "tournament_finalist"))
    if placements.third:
        awards.append((placements.third, "tournament_finalist"))
    awards.extend((participant_id, "tournament_top4") for participant_id in placements.fourth)

    granted = 0
    for participant_id, badge_key in awards:
        user_id = await _user_for_participant(session, participant_id)
        if user_id is None:
            logger.warning("Participant %s has no user; skipping %s", participant_id, badge_key)
            continue
        granted += await _grant_reward(session, tournament_id, game_id, user_id, badge_key)
    return granted


async def _user_for_participant(session: AsyncSession, participant_id: str) -> Optional[str]:
    participant = await session.get(TournamentParticipant, participant_id)
    return participant.user_id if participant else None


async def _grant_reward(
    session: AsyncSession,
    tournament_id: str,
    game_id: str | None,
    user_id: str,
    badge_key: str,
) -> int:
    config = BADGE_CONFIG[badge_key]
    granted = 0

    badge_stmt = select(ProfileBadge).where(
        ProfileBadge.user_id == user_id,
        ProfileBadge.badge_key == badge_key,
        ProfileBadge.tournament_id == tournament_id,
    )
    if (await session.execute(badge_stmt)).scalar_one_or_none() is None:
        session.add(
            ProfileBadge(
                user_id=user_id,
                badge_key=badge_key,
                label=config.label,
                game_id=game_id,
                tournament_id=tournament_id,
            )
        )
        granted += 1

    if config.pro_days > 0 and not await _has_reward(session, tournament_id, user_id, RewardType.PRO_DAYS):
        user = await session.get(User, user_id)
        if user:
            now = utcnow()
            base = user.plan_expires_at if user.plan_expires_at and user.plan_expires_at > now else now
            expires_at = base + timedelta(days=config.pro_days)
            user.plan_tier = PlanTier.PRO
            user.plan_expires_at = expires_at
            session.add(user)
            session.add(
                TournamentReward(
                    tournament_id=tournament_id,
                    user_id=user_id,
                    reward_type=RewardType.PRO_DAYS,
                    payload={"days": config.pro_days, "expires_at": expires_at.isoformat()},
                )
            )
            granted += 1

    if config.visibility_days > 0 and not await _has_reward(
        session, tournament_id, user_id, RewardType.VISIBILITY
    ):
        session.add(
            TournamentReward(
                tournament_id=tournament_id,
                user_id=user_id,
                reward_type=RewardType.VISIBILITY,
                payload={"days": config.visibility_days},
            )
        )
        granted += 1

    await session.flush()
    return granted


async def _has_reward(
    session: AsyncSession, tournament_id: str, user_id: str, reward_type: RewardType
) -> bool:
    statement = select(TournamentReward.id).where(
        TournamentReward.tournament_id == tournament_id,
        TournamentReward.user_id == user_id,
        TournamentReward.reward_type == reward_type,
    )
    return (await session.execute(statement)).first() is not None


async def dispatch_pending_rewards(session: AsyncSession, *, limit: int | None = None) -> int:
    """Process pending outbox rows. Returns how many finished successfully."""
    statement = (
        select(RewardTask)
        .where(RewardTask.status == RewardTaskStatus.PENDING)
        .order_by(RewardTask.created_at)
        .limit(limit or settings.reward_batch_size)
    )
    task_ids = [task.id for task in (await session.execute(statement)).scalars().all()]

    done = 0
    for task_id in task_ids:
        task = await session.get(RewardTask, task_id)
        if task is None or task.status != RewardTaskStatus.PENDING:
            continue
        try:
            granted = await grant_tournament_rewards(
                session, task.tournament_id, Placements.from_payload(task.placements)
            )
            task.status = RewardTaskStatus.DONE
            task.attempts += 1
            task.processed_at = utcnow()
            session.add(task)
            await session.commit()
            done += 1
            logger.info("Granted %s rewards for tournament %s", granted, task.tournament_id)
        except Exception as exc:  # noqa: BLE001
            await session.rollback()
            await _record_failure(session, task_id, exc)
    return done


async def _record_failure(session: AsyncSession, task_id: str, exc: Exception) -> None:
    task = await session.get(RewardTask, task_id)
    if task is None:
        return
    task.attempts += 1
    task.last_error = str(exc)[:500]
    if task.attempts >= settings.reward_max_attempts:
        task.status = RewardTaskStatus.FAILED
        task.processed_at = utcnow()
        logger.error(
            "Reward task %s for tournament %s failed permanently after %s attempts",
            task.id,
            task.tournament_id,
            task.attempts,
        )
    else:
        logger.warning(
            "Reward task %s attempt %s failed: %s", task.id, task.attempts, exc, exc_info=exc
        )
    session.add(task)
    await session.commit()
