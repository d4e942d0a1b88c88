"""Board-wide workflow phases.

The phase is a single field of the board settings record shared by every
participant. Advancing moves one step forward along the sequence; going back
is a single generic operation, and leaving GROUPING for CREATION deletes all
groups, so it needs explicit confirmation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pydantic import ValidationError

from app.core import paths
from app.core.errors import BoundaryRejected, ConfirmationRequired, PermissionDenied
from app.core.repository import delete_all_groups, results_items
from app.core.store import Write
from app.schemas.retro import Board, BoardSettings, Phase

logger = logging.getLogger(__name__)

HEALTH_CHECK_PHASES = [Phase.HEALTH_CHECK, Phase.HEALTH_CHECK_RESULTS]
CORE_PHASES = [
    Phase.CREATION,
    Phase.GROUPING,
    Phase.INTERACTIONS,
    Phase.INTERACTION_REVEAL,
    Phase.RESULTS,
    Phase.POLL,
    Phase.POLL_RESULTS,
]

START_MESSAGES = {
    Phase.HEALTH_CHECK: "Health check started - rate how the team is doing",
    Phase.HEALTH_CHECK_RESULTS: "Health check results revealed",
    Phase.CREATION: "Creation phase started - add your cards",
    Phase.GROUPING: "Grouping phase started - cards revealed, grouping enabled",
    Phase.INTERACTIONS: "Interactions phase started - add comments, votes, and reactions",
    Phase.INTERACTION_REVEAL: "Interactions revealed!",
    Phase.RESULTS: "Results phase started - view top items by votes",
    Phase.POLL: "Poll phase started - rate the effectiveness of this retrospective",
    Phase.POLL_RESULTS: "Poll results revealed - view effectiveness ratings",
}

PHASE_DESCRIPTIONS = {
    Phase.HEALTH_CHECK: "Rate the health of the team",
    Phase.HEALTH_CHECK_RESULTS: "Review the team health check",
    Phase.CREATION: "Create and add cards to the board",
    Phase.GROUPING: "Group related cards together",
    Phase.INTERACTIONS: "Add comments, votes, and reactions",
    Phase.INTERACTION_REVEAL: "Review all interactions and feedback",
    Phase.RESULTS: "View top-voted items",
    Phase.POLL: "Rate the effectiveness of this retrospective",
    Phase.POLL_RESULTS: "Review the effectiveness ratings",
}

# settings that only change through dedicated operations
_MANAGED_SETTINGS = {"phase", "retrospective_mode_enabled", "results_view_index"}


@dataclass
class PhaseOutcome:
    writes: List[Write]
    message: str
    phase: Phase
    extra: Dict[str, Any] = field(default_factory=dict)


def phase_sequence(settings: BoardSettings) -> List[Phase]:
    if settings.health_check_enabled:
        return HEALTH_CHECK_PHASES + CORE_PHASES
    return list(CORE_PHASES)


def _phase_write(board: Board, phase: Phase) -> Write:
    return (paths.settings_path(board.id, "phase"), phase.value)


def _require_retrospective(board: Board) -> None:
    if not board.settings.retrospective_mode_enabled:
        raise PermissionDenied("Phases are only available in retrospective mode")


def start_phase(board: Board, target: Phase) -> PhaseOutcome:
    """Advance to ``target``, which must be the phase after the current one."""
    _require_retrospective(board)
    settings = board.settings
    sequence = phase_sequence(settings)
    if target not in sequence:
        raise PermissionDenied("The health check is not enabled on this board")

    current = settings.phase
    if current == target:
        return PhaseOutcome(writes=[], message=START_MESSAGES[target], phase=target)

    position = sequence.index(current) if current in sequence else -1
    # the health check opens a session that is still in the creation phase
    opens_health_check = target == Phase.HEALTH_CHECK and current == Phase.CREATION
    if not opens_health_check and (position + 1 >= len(sequence) or sequence[position + 1] != target):
        raise PermissionDenied(f"Cannot start {target.value} from {current.value}")

    writes = [_phase_write(board, target)]
    if target == Phase.RESULTS:
        writes.append((paths.settings_path(board.id, "results_view_index"), 0))
    logger.info(f"Board {board.id}: {current.value} -> {target.value}")
    return PhaseOutcome(writes=writes, message=START_MESSAGES[target], phase=target)


def start_health_check_phase(board: Board) -> PhaseOutcome:
    return start_phase(board, Phase.HEALTH_CHECK)


def start_health_check_results_phase(board: Board) -> PhaseOutcome:
    return start_phase(board, Phase.HEALTH_CHECK_RESULTS)


def start_creation_phase(board: Board) -> PhaseOutcome:
    return start_phase(board, Phase.CREATION)


def start_grouping_phase(board: Board) -> PhaseOutcome:
    return start_phase(board, Phase.GROUPING)


def start_interactions_phase(board: Board) -> PhaseOutcome:
    return start_phase(board, Phase.INTERACTIONS)


def start_interaction_reveal_phase(board: Board) -> PhaseOutcome:
    return start_phase(board, Phase.INTERACTION_REVEAL)


def start_results_phase(board: Board) -> PhaseOutcome:
    return start_phase(board, Phase.RESULTS)


def start_poll_phase(board: Board) -> PhaseOutcome:
    return start_phase(board, Phase.POLL)


def start_poll_results_phase(board: Board) -> PhaseOutcome:
    return start_phase(board, Phase.POLL_RESULTS)


def go_to_previous_phase(board: Board, confirmed: bool = False) -> PhaseOutcome:
    _require_retrospective(board)
    settings = board.settings
    sequence = phase_sequence(settings)
    current = settings.phase
    position = sequence.index(current) if current in sequence else 0
    if position == 0:
        raise PermissionDenied("Already at the first phase")

    previous = sequence[position - 1]
    writes: List[Write] = []
    if current == Phase.GROUPING and previous == Phase.CREATION:
        if not confirmed:
            raise ConfirmationRequired(
                "Going back to the creation phase deletes every group. This cannot be undone."
            )
        writes += delete_all_groups(board)
        logger.warning(f"Board {board.id}: groups deleted by rollback to creation")

    writes.append(_phase_write(board, previous))
    return PhaseOutcome(
        writes=writes,
        message=f"Returned to {previous.value.lower().replace('_', ' ')} phase",
        phase=previous,
    )


def set_retrospective_mode(board: Board, enabled: bool) -> PhaseOutcome:
    writes: List[Write] = [(paths.settings_path(board.id, "retrospective_mode_enabled"), enabled)]
    phase = board.settings.phase
    if enabled:
        phase = Phase.CREATION
        writes.append(_phase_write(board, phase))
        writes.append((paths.settings_path(board.id, "results_view_index"), 0))
    message = "Retrospective mode enabled" if enabled else "Retrospective mode disabled"
    return PhaseOutcome(writes=writes, message=message, phase=phase)


def navigate_results(board: Board, direction: str) -> PhaseOutcome:
    settings = board.settings
    if settings.phase != Phase.RESULTS or not settings.retrospective_mode_enabled:
        raise PermissionDenied("Results can only be browsed during the results phase")
    if direction not in ("next", "prev"):
        raise BoundaryRejected("Direction must be 'next' or 'prev'")

    count = len(results_items(board))
    step = 1 if direction == "next" else -1
    index = max(0, min(settings.results_view_index + step, count - 1))
    writes: List[Write] = []
    if index != settings.results_view_index:
        writes.append((paths.settings_path(board.id, "results_view_index"), index))
    return PhaseOutcome(
        writes=writes,
        message=f"Result {index + 1} of {count}" if count else "No results to show",
        phase=settings.phase,
        extra={"index": index, "count": count},
    )


def update_settings(board: Board, changes: Dict[str, Any]) -> List[Write]:
    """Write plain settings fields, one path per field."""
    managed = _MANAGED_SETTINGS & set(changes)
    if managed:
        raise BoundaryRejected(f"Use the phase operations to change: {', '.join(sorted(managed))}")
    unknown = set(changes) - set(BoardSettings.model_fields)
    if unknown:
        raise BoundaryRejected(f"Unknown settings: {', '.join(sorted(unknown))}")

    merged = {**board.settings.model_dump(), **changes}
    try:
        validated = BoardSettings.model_validate(merged)
    except ValidationError as e:
        raise BoundaryRejected(f"Invalid settings: {e.errors()[0]['msg']}") from e

    writes: List[Write] = []
    for name in changes:
        value = getattr(validated, name)
        writes.append((paths.settings_path(board.id, name), value))
    if "health_check_enabled" in changes and not validated.health_check_enabled:
        # a board parked in a health check phase falls through to creation
        if board.settings.phase in HEALTH_CHECK_PHASES:
            writes.append(_phase_write(board, Phase.CREATION))
    return writes
