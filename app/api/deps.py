from typing import Optional

from fastapi import Header, HTTPException, Request

from app.core.board_service import BoardService
from app.core.errors import ActionResult, ErrorKind

STATUS_BY_ERROR = {
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.SILENT_NO_OP: 403,
    ErrorKind.BOUNDARY_REJECTED: 422,
    ErrorKind.CONFIRMATION_REQUIRED: 409,
    ErrorKind.TRANSIENT_WRITE_FAILURE: 503,
}


async def participant_header(x_participant_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_participant_id


async def get_board_service(board_id: str, request: Request) -> BoardService:
    """Load the live board for this request, 404 when it does not exist."""
    service = BoardService(request.app.state.store, board_id, redis=request.app.state.redis)
    await service.load()
    if not service.exists:
        raise HTTPException(status_code=404, detail="Board not found")
    return service


def respond(result: ActionResult) -> ActionResult:
    """Return successful results, raise the matching HTTP error otherwise."""
    if result.ok:
        return result
    raise HTTPException(
        status_code=STATUS_BY_ERROR.get(result.error, 400),
        detail=result.message or result.error.value,
    )
