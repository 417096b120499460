from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_session
from ..dependencies import get_current_user
from ..exceptions import TournamentError
from ..models import User
from ..schemas.match import (
    FinalizeMatchRequest,
    FinalizeMatchResponse,
    MatchReportListResponse,
    MatchReportPublic,
    MatchReportRequest,
    MatchReportResponse,
)
from ..services.match_service import MatchService

router = APIRouter(prefix="/tournaments/{tournament_id}/matches", tags=["matches"])


@router.post("/{match_id}/finalize", response_model=FinalizeMatchResponse)
async def finalize_match(
    tournament_id: str,
    match_id: str,
    payload: FinalizeMatchRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    service = MatchService(session)
    try:
        complete = await service.finalize(
            tournament_id=tournament_id,
            match_id=match_id,
            actor=current_user,
            payload=payload,
        )
    except TournamentError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return FinalizeMatchResponse(message="Match finalized successfully", tournament_complete=complete)


@router.post("/{match_id}/report", response_model=MatchReportResponse)
async def submit_match_report(
    tournament_id: str,
    match_id: str,
    payload: MatchReportRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    service = MatchService(session)
    try:
        report, created = await service.submit_report(
            tournament_id=tournament_id,
            match_id=match_id,
            user=current_user,
            payload=payload,
        )
    except TournamentError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return MatchReportResponse(
        report=MatchReportPublic.model_validate(report),
        message="Match report submitted successfully",
    )


@router.get("/{match_id}/report", response_model=MatchReportListResponse)
async def list_match_reports(
    tournament_id: str,
    match_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    service = MatchService(session)
    try:
        reports = await service.list_reports(
            tournament_id=tournament_id,
            match_id=match_id,
            user=current_user,
        )
    except TournamentError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return MatchReportListResponse(reports=[MatchReportPublic.model_validate(r) for r in reports])
