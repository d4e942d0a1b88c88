from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    BOUNDARY_REJECTED = "boundary_rejected"
    CONFIRMATION_REQUIRED = "confirmation_required"
    TRANSIENT_WRITE_FAILURE = "transient_write_failure"
    SILENT_NO_OP = "silent_no_op"


GENERIC_FAILURE_MESSAGE = "Something went wrong, please try again"


class BoardActionError(Exception):
    """Base class for every rejected board action.

    ``message`` is the user-facing notice; ``None`` means the rejection is
    reported without telling the user anything.
    """

    kind = ErrorKind.BOUNDARY_REJECTED

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.kind.value)
        self.message = message


class PermissionDenied(BoardActionError):
    kind = ErrorKind.PERMISSION_DENIED


class BoundaryRejected(BoardActionError):
    kind = ErrorKind.BOUNDARY_REJECTED


class ConfirmationRequired(BoardActionError):
    kind = ErrorKind.CONFIRMATION_REQUIRED


class TransientWriteFailure(BoardActionError):
    kind = ErrorKind.TRANSIENT_WRITE_FAILURE

    def __init__(self, message: Optional[str] = GENERIC_FAILURE_MESSAGE):
        super().__init__(message)


class SilentNoOp(BoardActionError):
    kind = ErrorKind.SILENT_NO_OP

    def __init__(self):
        super().__init__(None)


class ActionResult(BaseModel):
    ok: bool
    message: Optional[str] = None
    error: Optional[ErrorKind] = None
    entity_id: Optional[str] = None

    @classmethod
    def success(cls, message: Optional[str] = None, entity_id: Optional[str] = None) -> "ActionResult":
        return cls(ok=True, message=message, entity_id=entity_id)

    @classmethod
    def failure(cls, error: BoardActionError) -> "ActionResult":
        return cls(ok=False, message=error.message, error=error.kind)
