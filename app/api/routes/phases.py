from fastapi import APIRouter, Depends

from app.api.deps import get_board_service, respond
from app.core.board_service import BoardService
from app.core.errors import ActionResult
from app.schemas.board import Confirmation, PhaseStart, ResultsNavigation, RetrospectiveMode

router = APIRouter(prefix="/api/boards/{board_id}", tags=["phases"])


@router.post("/phase", response_model=ActionResult)
async def start_phase(data: PhaseStart, service: BoardService = Depends(get_board_service)):
    """Advance the board to the next phase."""
    return respond(await service.start_phase(data.phase))


@router.post("/phase/previous", response_model=ActionResult)
async def previous_phase(data: Confirmation, service: BoardService = Depends(get_board_service)):
    """Step back one phase. Leaving grouping for creation needs ``confirmed``."""
    return respond(await service.go_to_previous_phase(data.confirmed))


@router.post("/retrospective", response_model=ActionResult)
async def set_retrospective_mode(data: RetrospectiveMode, service: BoardService = Depends(get_board_service)):
    return respond(await service.set_retrospective_mode(data.enabled))


@router.post("/results/navigate", response_model=ActionResult)
async def navigate_results(data: ResultsNavigation, service: BoardService = Depends(get_board_service)):
    return respond(await service.navigate_results(data.direction))
