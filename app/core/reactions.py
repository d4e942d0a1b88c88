"""Reactions and comments on cards and groups."""

from dataclasses import dataclass
from typing import List, Optional

from app.core import paths
from app.core.errors import BoundaryRejected, PermissionDenied, SilentNoOp
from app.core.permissions import InteractionType, board_capabilities, can_modify, disabled_message
from app.core.repository import generate_id, get_column, now_ms
from app.core.store import Write
from app.schemas.retro import Board, Comment, EntityKind, Interactive, dump_entity

COMMON_EMOJIS = [
    # faces
    "😄", "😍", "🤩", "😎", "🤔", "😂", "😭", "😅", "😬", "😲", "😱", "💀",
    # hands
    "👍", "👎", "👏", "🙌", "💪", "🤝", "🙏", "🫡",
    # hearts
    "❤️", "💔", "💯",
    # symbols
    "✅", "❗", "⚠️", "❓", "✨", "⭐", "🏆", "💡", "⚡",
    "👀", "🧠",
    "🎉", "🚀", "🌈", "🐳",
    "🍺", "🍔",
]


@dataclass
class LedgerOutcome:
    writes: List[Write]
    message: str
    entity_id: Optional[str] = None


def _require_interactions(board: Board, interaction: InteractionType) -> None:
    caps = board_capabilities(board)
    if caps.interactions_allowed:
        return
    message = disabled_message(interaction, caps.disabled_reason)
    if message is None:
        raise SilentNoOp()
    raise PermissionDenied(message)


def _entity(board: Board, column_id: str, kind: EntityKind, entity_id: str) -> Interactive:
    get_column(board, column_id)
    entity = board.entity(column_id, kind, entity_id)
    if entity is None:
        raise BoundaryRejected("Card not found" if kind == EntityKind.CARD else "Group not found")
    return entity


def toggle_reaction(
    board: Board,
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    emoji: str,
    participant_id: str,
) -> LedgerOutcome:
    """Add the participant's reaction, or take it back if already present."""
    _require_interactions(board, InteractionType.REACTION)
    entity = _entity(board, column_id, kind, entity_id)
    if not emoji:
        raise BoundaryRejected("Pick an emoji")

    reaction = entity.reactions.get(emoji)
    users = dict(reaction.users) if reaction else {}
    base = f"{paths.entity_path(board.id, column_id, kind, entity_id)}/reactions/{emoji}"

    if users.get(participant_id):
        del users[participant_id]
        if not users:
            return LedgerOutcome(writes=[(base, None)], message="Your reaction removed")
        # count follows the set even if the stored number drifted
        return LedgerOutcome(
            writes=[(f"{base}/users/{participant_id}", None), (f"{base}/count", len(users))],
            message="Your reaction removed",
        )

    users[participant_id] = True
    return LedgerOutcome(
        writes=[(f"{base}/users/{participant_id}", True), (f"{base}/count", len(users))],
        message="Reaction added",
    )


def has_reacted(entity: Interactive, emoji: str, participant_id: str) -> bool:
    reaction = entity.reactions.get(emoji)
    return bool(reaction and reaction.users.get(participant_id))


def add_comment(
    board: Board,
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    content: str,
    participant_id: Optional[str],
) -> LedgerOutcome:
    _require_interactions(board, InteractionType.COMMENT)
    _entity(board, column_id, kind, entity_id)
    if not content or not content.strip():
        raise BoundaryRejected("Comment cannot be empty")

    comment_id = generate_id()
    comment = Comment(content=content.strip(), created_by=participant_id, timestamp=now_ms())
    path = f"{paths.entity_path(board.id, column_id, kind, entity_id)}/comments/{comment_id}"
    return LedgerOutcome(writes=[(path, dump_entity(comment))], message="Comment added", entity_id=comment_id)


def _authored_comment(
    board: Board,
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    comment_id: str,
    participant_id: Optional[str],
) -> Comment:
    entity = _entity(board, column_id, kind, entity_id)
    comment = entity.comments.get(comment_id)
    if comment is None:
        raise BoundaryRejected("Comment not found")
    if not can_modify(comment.created_by, participant_id):
        raise PermissionDenied("Only the author can change this comment")
    return comment


def edit_comment(
    board: Board,
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    comment_id: str,
    content: str,
    participant_id: Optional[str],
) -> LedgerOutcome:
    _require_interactions(board, InteractionType.COMMENT)
    if not content or not content.strip():
        raise BoundaryRejected("Comment cannot be empty")
    _authored_comment(board, column_id, kind, entity_id, comment_id, participant_id)
    path = f"{paths.entity_path(board.id, column_id, kind, entity_id)}/comments/{comment_id}/content"
    return LedgerOutcome(writes=[(path, content.strip())], message="Comment updated", entity_id=comment_id)


def delete_comment(
    board: Board,
    column_id: str,
    kind: EntityKind,
    entity_id: str,
    comment_id: str,
    participant_id: Optional[str],
) -> LedgerOutcome:
    _require_interactions(board, InteractionType.COMMENT)
    _authored_comment(board, column_id, kind, entity_id, comment_id, participant_id)
    path = f"{paths.entity_path(board.id, column_id, kind, entity_id)}/comments/{comment_id}"
    return LedgerOutcome(writes=[(path, None)], message="Comment deleted", entity_id=comment_id)
