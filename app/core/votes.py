"""Vote ledger and per-participant vote limits.

A participant's weight on an entity lives in ``voters[participant]`` and the
entity total in ``votes``; both are written together. While retrospective
mode is on, the sum of a participant's absolute weights across the whole
board is capped at ``votes_per_user``.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List

from app.core import paths
from app.core.errors import BoundaryRejected, ConfirmationRequired, PermissionDenied
from app.core.permissions import InteractionType, board_capabilities, disabled_message
from app.core.repository import get_column
from app.core.store import Write
from app.schemas.retro import Board, EntityKind

logger = logging.getLogger(__name__)


@dataclass
class VoteOutcome:
    writes: List[Write]
    applied_delta: int
    message: str


def limit_enforced(board: Board) -> bool:
    return board.settings.retrospective_mode_enabled


def user_vote_count(board: Board, participant_id: str) -> int:
    """Votes a participant has spent across every card and group."""
    return sum(abs(entity.voters.get(participant_id, 0)) for entity in board.iter_entities())


def votes_remaining(board: Board, participant_id: str) -> int:
    return max(0, board.settings.votes_per_user - user_vote_count(board, participant_id))


def total_votes_remaining(board: Board, active_users: int) -> int:
    used = sum(abs(w) for entity in board.iter_entities() for w in entity.voters.values())
    return max(0, active_users * board.settings.votes_per_user - used)


def participants(board: Board) -> Iterable[str]:
    seen = set()
    for entity in board.iter_entities():
        seen.update(entity.voters)
    return sorted(seen)


def apply_vote(
    board: Board,
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    participant_id: str,
    delta: int,
) -> VoteOutcome:
    if delta not in (1, -1):
        raise BoundaryRejected("A vote must be +1 or -1")

    settings = board.settings
    if not settings.voting_enabled:
        raise PermissionDenied("Voting is disabled on this board")

    caps = board_capabilities(board)
    if not caps.interactions_allowed:
        raise PermissionDenied(disabled_message(InteractionType.VOTE, caps.disabled_reason))

    get_column(board, column_id)
    entity = board.entity(column_id, kind, entity_id)
    if entity is None:
        raise BoundaryRejected("Card not found" if kind == EntityKind.CARD else "Group not found")

    if delta < 0 and entity.votes <= 0:
        raise BoundaryRejected("Can't have negative votes")

    prior = entity.voters.get(participant_id, 0)

    if delta < 0 and not settings.downvoting_enabled and prior <= 0:
        raise PermissionDenied("Downvoting is disabled on this board")

    message = "Upvoted" if delta > 0 else "Downvoted"
    if not settings.multiple_votes_allowed:
        if prior == delta:
            raise BoundaryRejected("You've already voted")
        if prior != 0:
            # opposite direction only cancels the earlier vote
            delta = -prior
            message = "Vote removed"

    # a vote that grows the participant's absolute weight counts against the limit
    if limit_enforced(board) and abs(prior + delta) > abs(prior):
        limit = settings.votes_per_user
        if user_vote_count(board, participant_id) >= limit:
            raise BoundaryRejected(f"You've used all {limit} votes")

    entity_path = paths.entity_path(board.id, column_id, kind, entity_id)
    weight = prior + delta
    writes: List[Write] = [
        (f"{entity_path}/votes", entity.votes + delta),
        (f"{entity_path}/voters/{participant_id}", weight if weight != 0 else None),
    ]
    return VoteOutcome(writes=writes, applied_delta=delta, message=message)


def reset_all_votes(board: Board, confirmed: bool = False) -> List[Write]:
    if not confirmed:
        raise ConfirmationRequired("Resetting votes cannot be undone; confirm to continue")
    writes: List[Write] = []
    for column_id, column in board.columns.items():
        for kind, entities in ((EntityKind.CARD, column.cards), (EntityKind.GROUP, column.groups)):
            for entity_id in entities:
                path = paths.entity_path(board.id, column_id, kind, entity_id)
                writes.append((f"{path}/votes", 0))
                writes.append((f"{path}/voters", None))
    logger.info(f"Resetting votes on board {board.id}")
    return writes
