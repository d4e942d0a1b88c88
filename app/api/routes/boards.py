import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_board_service, participant_header, respond
from app.core.board_service import BoardService
from app.core.errors import ActionResult
from app.core.repository import generate_id
from app.db.session import get_db
from app.db.models.board import BoardRecord
from app.schemas.board import BoardCreate, BoardPreview, BoardUpdate, SettingsUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/boards", tags=["boards"])


@router.post("/", response_model=BoardPreview)
async def create_board(
    board: BoardCreate,
    request: Request,
    participant_id: Optional[str] = Depends(participant_header),
    db: AsyncSession = Depends(get_db),
):
    """Register a board in the catalog and seed its live state."""
    title = (board.title or "").strip() or "Untitled Board"
    owner = board.owner or participant_id

    db_board = BoardRecord(id=generate_id(), title=title, owner=owner)
    db.add(db_board)
    await db.commit()
    await db.refresh(db_board)

    service = BoardService(request.app.state.store, db_board.id)
    try:
        await service.create(title, owner=owner, columns=board.columns, votes_per_user=board.votes_per_user)
    except Exception as e:
        logger.error(f"Seeding board {db_board.id} failed: {e}", exc_info=True)
        await db.delete(db_board)
        await db.commit()
        raise HTTPException(status_code=503, detail="Something went wrong, please try again")

    return db_board


@router.get("/", response_model=list[BoardPreview])
async def list_boards(db: AsyncSession = Depends(get_db)):
    """List all boards, newest first."""
    result = await db.execute(select(BoardRecord).order_by(BoardRecord.created_at.desc()))
    return result.scalars().all()


@router.get("/{board_id}")
async def get_board(
    participant_id: Optional[str] = None,
    active_users: int = 0,
    header_participant: Optional[str] = Depends(participant_header),
    service: BoardService = Depends(get_board_service),
):
    """Fetch the board as the given participant is allowed to see it."""
    return service.view(participant_id or header_participant, active_users)


@router.patch("/{board_id}", response_model=BoardPreview)
async def update_board_title(
    board_id: str,
    data: BoardUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    title = data.title.strip()
    if not title:
        raise HTTPException(status_code=422, detail="Title is required")

    result = await db.execute(select(BoardRecord).where(BoardRecord.id == board_id))
    board = result.scalar_one_or_none()

    if not board:
        raise HTTPException(status_code=404, detail="Board not found")

    service = BoardService(request.app.state.store, board_id)
    await service.load()
    if service.exists:
        respond(await service.rename(title))

    board.title = title
    await db.commit()
    await db.refresh(board)
    return board


@router.delete("/{board_id}")
async def delete_board(
    board_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Delete a board from the catalog along with its live state."""
    result = await db.execute(select(BoardRecord).where(BoardRecord.id == board_id))
    board = result.scalar_one_or_none()

    if not board:
        raise HTTPException(status_code=404, detail="Board not found")

    await BoardService(request.app.state.store, board_id).delete()

    await db.delete(board)
    await db.commit()

    return {"message": f"Board {board_id} deleted"}


@router.patch("/{board_id}/settings", response_model=ActionResult)
async def update_settings(
    data: SettingsUpdate,
    service: BoardService = Depends(get_board_service),
):
    changes = data.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=422, detail="No settings to update")
    return respond(await service.update_settings(changes))


@router.post("/{board_id}/repair", response_model=ActionResult)
async def repair_board(service: BoardService = Depends(get_board_service)):
    """Re-derive group membership indexes right away."""
    return respond(await service.repair())
