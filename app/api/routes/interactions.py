from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_board_service, participant_header, respond
from app.core.board_service import BoardService
from app.core.errors import ActionResult
from app.schemas.board import CommentCreate, CommentUpdate, Confirmation, ReactionToggle, VoteCreate
from app.schemas.retro import EntityKind

router = APIRouter(prefix="/api/boards/{board_id}", tags=["interactions"])


def _require_participant(participant_id: Optional[str]) -> str:
    if not participant_id:
        raise HTTPException(status_code=422, detail="A participant id is required")
    return participant_id


@router.post("/columns/{column_id}/{kind}/{entity_id}/votes", response_model=ActionResult)
async def vote(
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    data: VoteCreate,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    """Apply +1 or -1 to a card or group on behalf of a participant."""
    voter = _require_participant(data.participant_id or participant_id)
    return respond(await service.vote(column_id, kind, entity_id, voter, data.delta))


@router.post("/votes/reset", response_model=ActionResult)
async def reset_votes(data: Confirmation, service: BoardService = Depends(get_board_service)):
    return respond(await service.reset_all_votes(data.confirmed))


@router.post("/columns/{column_id}/{kind}/{entity_id}/reactions", response_model=ActionResult)
async def toggle_reaction(
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    data: ReactionToggle,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    reactor = _require_participant(data.participant_id or participant_id)
    return respond(await service.toggle_reaction(column_id, kind, entity_id, data.emoji, reactor))


@router.post("/columns/{column_id}/{kind}/{entity_id}/comments", response_model=ActionResult)
async def add_comment(
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    data: CommentCreate,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    author = data.participant_id or participant_id
    return respond(await service.add_comment(column_id, kind, entity_id, data.content, author))


@router.patch("/columns/{column_id}/{kind}/{entity_id}/comments/{comment_id}", response_model=ActionResult)
async def edit_comment(
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    comment_id: str,
    data: CommentUpdate,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    author = data.participant_id or participant_id
    return respond(await service.edit_comment(column_id, kind, entity_id, comment_id, data.content, author))


@router.delete("/columns/{column_id}/{kind}/{entity_id}/comments/{comment_id}", response_model=ActionResult)
async def delete_comment(
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    comment_id: str,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    return respond(await service.delete_comment(column_id, kind, entity_id, comment_id, participant_id))
