from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_board_service, participant_header, respond
from app.core.board_service import BoardService
from app.core.errors import ActionResult
from app.core.surveys import survey_view
from app.schemas.board import HealthCheckVote, PollVote

router = APIRouter(prefix="/api/boards/{board_id}", tags=["surveys"])


@router.get("/surveys")
async def get_surveys(
    participant_id: Optional[str] = None,
    header_participant: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    """Own ratings, plus aggregates once the matching results phase is open."""
    return survey_view(service.board, participant_id or header_participant)


@router.post("/health-check/votes", response_model=ActionResult)
async def submit_health_check_vote(
    data: HealthCheckVote,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    voter = data.participant_id or participant_id
    if not voter:
        raise HTTPException(status_code=422, detail="A participant id is required")
    return respond(await service.submit_health_check_vote(data.question_id, data.rating, voter))


@router.post("/poll/votes", response_model=ActionResult)
async def submit_poll_vote(
    data: PollVote,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    voter = data.participant_id or participant_id
    if not voter:
        raise HTTPException(status_code=422, detail="A participant id is required")
    return respond(await service.submit_poll_vote(data.rating, voter))
