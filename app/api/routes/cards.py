from typing import Optional

from fastapi import APIRouter, Depends

from app.api.deps import get_board_service, participant_header, respond
from app.core.board_service import BoardService
from app.core.errors import ActionResult
from app.schemas.board import (
    CardCreate,
    CardMove,
    CardUpdate,
    ColumnCreate,
    ColumnUpdate,
    GroupCreate,
    GroupUpdate,
)

router = APIRouter(prefix="/api/boards/{board_id}", tags=["cards"])


# --- Columns --- #


@router.post("/columns", response_model=ActionResult)
async def add_column(data: ColumnCreate, service: BoardService = Depends(get_board_service)):
    return respond(await service.add_column(data.title))


@router.patch("/columns/{column_id}", response_model=ActionResult)
async def rename_column(column_id: str, data: ColumnUpdate, service: BoardService = Depends(get_board_service)):
    return respond(await service.rename_column(column_id, data.title))


@router.delete("/columns/{column_id}", response_model=ActionResult)
async def delete_column(column_id: str, service: BoardService = Depends(get_board_service)):
    return respond(await service.delete_column(column_id))


# --- Cards --- #


@router.post("/columns/{column_id}/cards", response_model=ActionResult)
async def add_card(
    column_id: str,
    data: CardCreate,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    """Add a card; the returned ``entity_id`` is the new card's id."""
    return respond(await service.add_card(column_id, data.content, data.participant_id or participant_id))


@router.patch("/columns/{column_id}/cards/{card_id}", response_model=ActionResult)
async def edit_card(
    column_id: str,
    card_id: str,
    data: CardUpdate,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    """Replace the card text. Blank text deletes the card."""
    return respond(await service.edit_card(column_id, card_id, data.content, data.participant_id or participant_id))


@router.delete("/columns/{column_id}/cards/{card_id}", response_model=ActionResult)
async def delete_card(
    column_id: str,
    card_id: str,
    participant_id: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    return respond(await service.delete_card(column_id, card_id, participant_id))


@router.post("/cards/{card_id}/move", response_model=ActionResult)
async def move_card(card_id: str, data: CardMove, service: BoardService = Depends(get_board_service)):
    return respond(await service.move_card(card_id, data.from_column_id, data.to_column_id, data.to_group_id))


# --- Groups --- #


@router.post("/columns/{column_id}/groups", response_model=ActionResult)
async def create_group(column_id: str, data: GroupCreate, service: BoardService = Depends(get_board_service)):
    return respond(await service.create_group(column_id, data.card_ids, data.name))


@router.patch("/columns/{column_id}/groups/{group_id}", response_model=ActionResult)
async def rename_group(
    column_id: str,
    group_id: str,
    data: GroupUpdate,
    service: BoardService = Depends(get_board_service),
):
    return respond(await service.rename_group(column_id, group_id, data.name))


@router.post("/columns/{column_id}/groups/{group_id}/toggle", response_model=ActionResult)
async def toggle_group(column_id: str, group_id: str, service: BoardService = Depends(get_board_service)):
    return respond(await service.toggle_group_expanded(column_id, group_id))


@router.delete("/columns/{column_id}/groups/{group_id}", response_model=ActionResult)
async def ungroup_cards(column_id: str, group_id: str, service: BoardService = Depends(get_board_service)):
    """Dissolve a group; its cards stay in the column."""
    return respond(await service.ungroup_cards(column_id, group_id))
