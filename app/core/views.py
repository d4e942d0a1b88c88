"""Per-participant read model of a board.

Applies obfuscation and hides other participants' interactions according to
the phase, so the presentation layer can render the result as is.
"""

from typing import Dict, Optional

from app.core import votes
from app.core.permissions import (
    Capability,
    ControlState,
    InteractionType,
    allows,
    board_capabilities,
    can_modify,
    disabled_message,
    downvote_visible,
    obfuscate,
    should_obfuscate,
)
from app.core.phases import PHASE_DESCRIPTIONS
from app.core.repository import results_items, sorted_group_cards, sorted_items
from app.core.surveys import survey_view
from app.schemas.retro import Board, Card, Column, Comment, Group, Interactive, Phase, Reaction


def _own_reactions(reactions: Dict[str, Reaction], viewer: Optional[str]) -> Dict[str, Reaction]:
    return {
        emoji: Reaction(count=1, users={viewer: True})
        for emoji, reaction in reactions.items()
        if viewer and reaction.users.get(viewer)
    }


def _own_comments(comments: Dict[str, Comment], viewer: Optional[str]) -> Dict[str, Comment]:
    return {cid: c for cid, c in comments.items() if viewer and c.created_by == viewer}


def interaction_view(board: Board, entity: Interactive, viewer: Optional[str]) -> Optional[dict]:
    """Votes, reactions and comments as ``viewer`` may see them.

    ``None`` when interactions are not visible at all in this phase, in which
    case the presentation layer renders no controls.
    """
    caps = board_capabilities(board)
    if not caps.interactions_visible:
        return None

    total = entity.votes
    voters = dict(entity.voters)
    reactions = dict(entity.reactions)
    comments = dict(entity.comments)
    if not caps.others_interactions_visible:
        voters = {p: w for p, w in voters.items() if p == viewer}
        total = sum(voters.values())
        reactions = _own_reactions(reactions, viewer)
        comments = _own_comments(comments, viewer)

    state = caps.control_state
    voting = board.settings.voting_enabled
    hidden = ControlState.HIDDEN
    return {
        "votes": total,
        "voters": voters,
        "my_vote": entity.voters.get(viewer, 0) if viewer else 0,
        "reactions": {
            emoji: {"count": r.count, "reacted": bool(viewer and r.users.get(viewer))}
            for emoji, r in reactions.items()
        },
        "comments": [
            {
                "id": c.id,
                "content": c.content,
                "created_by": c.created_by,
                "timestamp": c.timestamp,
                "editable": state == ControlState.ENABLED and can_modify(c.created_by, viewer),
            }
            for c in sorted(comments.values(), key=lambda c: c.timestamp)
        ],
        "controls": {
            "upvote": state if voting else hidden,
            "downvote": state if voting and downvote_visible(board, entity, viewer) else hidden,
            "reaction": state,
            "comment": state,
        },
        "messages": {
            kind.value: disabled_message(kind, caps.disabled_reason) for kind in InteractionType
        },
    }


def card_view(board: Board, card: Card, viewer: Optional[str]) -> dict:
    settings = board.settings
    caps = board_capabilities(board)
    is_creator = card.created_by is not None and card.created_by == viewer
    content = card.content
    if should_obfuscate(settings.phase, settings.retrospective_mode_enabled, is_creator):
        content = obfuscate(content)
    return {
        "id": card.id,
        "content": content,
        "group_id": card.group_id,
        "created": card.created,
        "is_creator": is_creator,
        "editable": caps.card_editing_allowed and can_modify(card.created_by, viewer),
        "draggable": caps.card_dragging_allowed,
        "interactions": interaction_view(board, card, viewer),
    }


def group_view(board: Board, column: Column, group: Group, viewer: Optional[str]) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "expanded": group.expanded,
        "created": group.created,
        "cards": [
            card_view(board, card, viewer)
            for card in sorted_group_cards(column, group, board.settings.sort_by_votes)
        ],
        "interactions": interaction_view(board, group, viewer),
    }


def column_view(board: Board, column: Column, viewer: Optional[str]) -> dict:
    items = []
    for kind, item in sorted_items(column, board.settings.sort_by_votes):
        if kind == "group":
            items.append({"type": "group", "data": group_view(board, column, item, viewer)})
        else:
            items.append({"type": "card", "data": card_view(board, item, viewer)})
    return {"id": column.id, "title": column.title, "items": items}


def results_view(board: Board, viewer: Optional[str]) -> dict:
    """The item under the results cursor, with its position."""
    items = results_items(board)
    if not items:
        return {"index": 0, "count": 0, "item": None}
    index = min(board.settings.results_view_index, len(items) - 1)
    column_id, kind, item = items[index]
    column = board.columns[column_id]
    data = group_view(board, column, item, viewer) if kind == "group" else card_view(board, item, viewer)
    return {"index": index, "count": len(items), "item": {"type": kind, "column_id": column_id, "data": data}}


def board_view(board: Board, viewer: Optional[str], active_users: int = 0) -> dict:
    settings = board.settings
    caps = board_capabilities(board)
    view = {
        "id": board.id,
        "title": board.title,
        "settings": settings.model_dump(mode="json"),
        "phase_description": PHASE_DESCRIPTIONS[settings.phase],
        "capabilities": {
            cap.value: allows(cap, settings.phase, settings.retrospective_mode_enabled) for cap in Capability
        },
        "disabled_reason": caps.disabled_reason,
        "columns": [
            column_view(board, column, viewer)
            for column in sorted(board.columns.values(), key=lambda c: c.created)
        ],
        "votes": None,
        "results": None,
        "surveys": survey_view(board, viewer),
    }

    if settings.voting_enabled and caps.interactions_visible:
        view["votes"] = {
            "per_user": settings.votes_per_user,
            "used": votes.user_vote_count(board, viewer) if viewer else 0,
            "remaining": votes.votes_remaining(board, viewer) if viewer else settings.votes_per_user,
            "total_remaining": votes.total_votes_remaining(board, active_users) if active_users else None,
        }
    if settings.retrospective_mode_enabled and settings.phase == Phase.RESULTS:
        view["results"] = results_view(board, viewer)
    return view
