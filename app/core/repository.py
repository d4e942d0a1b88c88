"""Cards, groups and columns.

Every operation validates against a board snapshot and returns the list of
sibling writes that realises it; nothing here talks to the store. The card's
``group_id`` is the authoritative membership edge, ``Group.card_ids`` is an
ordered index kept in step with it inside the same batch.
"""

import logging
import time
import uuid
from typing import Iterable, List, Optional, Tuple

from app.core import paths
from app.core.errors import BoundaryRejected, PermissionDenied
from app.core.permissions import Capability, allows, can_modify
from app.core.store import Write
from app.schemas.retro import Board, Card, Column, Group, dump_entity

logger = logging.getLogger(__name__)

DEFAULT_COLUMN_TITLE = "New Column"


def generate_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


def _require(board: Board, capability: Capability, message: str) -> None:
    settings = board.settings
    if not allows(capability, settings.phase, settings.retrospective_mode_enabled):
        raise PermissionDenied(message)


def get_column(board: Board, column_id: str) -> Column:
    column = board.column(column_id)
    if column is None:
        raise BoundaryRejected("Column not found")
    return column


def get_card(column: Column, card_id: str) -> Card:
    card = column.cards.get(card_id)
    if card is None:
        raise BoundaryRejected("Card not found")
    return card


def get_group(column: Column, group_id: str) -> Group:
    group = column.groups.get(group_id)
    if group is None:
        raise BoundaryRejected("Group not found")
    return group


# --- Columns --- #


def add_column(board: Board, title: str = DEFAULT_COLUMN_TITLE) -> Tuple[str, List[Write]]:
    _require(board, Capability.CARD_CREATION, "Columns can only be changed during the creation phase")
    column_id = generate_id()
    column = Column(title=title.strip() or DEFAULT_COLUMN_TITLE, created=now_ms())
    return column_id, [(paths.column_path(board.id, column_id), {"title": column.title, "created": column.created})]


def rename_column(board: Board, column_id: str, title: str) -> List[Write]:
    _require(board, Capability.CARD_CREATION, "Columns can only be changed during the creation phase")
    get_column(board, column_id)
    if not title.strip():
        raise BoundaryRejected("Column title is required")
    return [(f"{paths.column_path(board.id, column_id)}/title", title.strip())]


def delete_column(board: Board, column_id: str) -> List[Write]:
    _require(board, Capability.CARD_CREATION, "Columns can only be changed during the creation phase")
    get_column(board, column_id)
    return [(paths.column_path(board.id, column_id), None)]


# --- Cards --- #


def add_card(
    board: Board,
    column_id: str,
    content: str,
    participant_id: Optional[str] = None,
    created: Optional[int] = None,
) -> Tuple[str, List[Write]]:
    _require(board, Capability.CARD_CREATION, "Cards can only be added during the creation phase")
    get_column(board, column_id)
    if not content or not content.strip():
        raise BoundaryRejected("Card content is required")

    card_id = generate_id()
    card = Card(
        content=content.strip(),
        created=created if created is not None else now_ms(),
        created_by=participant_id,
    )
    return card_id, [(paths.card_path(board.id, column_id, card_id), dump_entity(card))]


def edit_card(
    board: Board,
    column_id: str,
    card_id: str,
    content: str,
    participant_id: Optional[str],
) -> List[Write]:
    """Replace a card's text; blank text deletes the card."""
    _require(board, Capability.CARD_EDITING, "Card editing is only allowed during creation and grouping phases")
    column = get_column(board, column_id)
    card = get_card(column, card_id)
    if not can_modify(card.created_by, participant_id):
        raise PermissionDenied("Only the author can edit this card")

    if not content or not content.strip():
        return _delete_card_writes(board, column, card)
    return [(f"{paths.card_path(board.id, column_id, card_id)}/content", content.strip())]


def delete_card(board: Board, column_id: str, card_id: str, participant_id: Optional[str]) -> List[Write]:
    _require(board, Capability.CARD_EDITING, "Card editing is only allowed during creation and grouping phases")
    column = get_column(board, column_id)
    card = get_card(column, card_id)
    if not can_modify(card.created_by, participant_id):
        raise PermissionDenied("Only the author can delete this card")
    return _delete_card_writes(board, column, card)


def _delete_card_writes(board: Board, column: Column, card: Card) -> List[Write]:
    writes: List[Write] = [(paths.card_path(board.id, column.id, card.id), None)]
    writes += _leave_group_writes(board, column, card)
    return writes


def _leave_group_writes(board: Board, column: Column, card: Card) -> List[Write]:
    """Drop a card from its group's index; an emptied group keeps its interactions."""
    group = column.groups.get(card.group_id) if card.group_id else None
    if group is None or card.id not in group.card_ids:
        return []
    remaining = [cid for cid in group.card_ids if cid != card.id]
    return [(f"{paths.group_path(board.id, column.id, group.id)}/card_ids", remaining)]


def _join_group_writes(board: Board, column: Column, group: Group, card_id: str) -> List[Write]:
    if card_id in group.card_ids:
        return []
    path = paths.group_path(board.id, column.id, group.id)
    return [(f"{path}/card_ids", group.card_ids + [card_id])]


def move_card(
    board: Board,
    card_id: str,
    from_column_id: str,
    to_column_id: str,
    to_group_id: Optional[str] = None,
) -> List[Write]:
    """Move a card to another column and/or group as one batch of writes."""
    _require(board, Capability.CARD_DRAGGING, "Card dragging is only allowed during the grouping phase")
    source = get_column(board, from_column_id)
    target = get_column(board, to_column_id)
    card = get_card(source, card_id)

    target_group = None
    if to_group_id is not None:
        _require(board, Capability.GROUPING, "Grouping is only allowed during the grouping phase")
        target_group = get_group(target, to_group_id)

    if from_column_id == to_column_id:
        if card.group_id == to_group_id:
            return []
        card_path = paths.card_path(board.id, from_column_id, card_id)
        writes: List[Write] = [(f"{card_path}/group_id", to_group_id)]
        if target_group is not None:
            writes += _join_group_writes(board, target, target_group, card_id)
        writes += _leave_group_writes(board, source, card)
        return writes

    moved = card.model_copy(update={"group_id": to_group_id})
    writes = [
        (paths.card_path(board.id, from_column_id, card_id), None),
        (paths.card_path(board.id, to_column_id, card_id), dump_entity(moved)),
    ]
    writes += _leave_group_writes(board, source, card)
    if target_group is not None:
        writes += _join_group_writes(board, target, target_group, card_id)
    return writes


# --- Groups --- #


def create_group(
    board: Board,
    column_id: str,
    card_ids: Iterable[str],
    name: str,
    created: Optional[int] = None,
) -> Tuple[str, List[Write]]:
    _require(board, Capability.GROUPING, "Grouping is only allowed during the grouping phase")
    column = get_column(board, column_id)
    card_ids = list(dict.fromkeys(card_ids))
    if not card_ids:
        raise BoundaryRejected("A group needs at least one card")
    if not name or not name.strip():
        raise BoundaryRejected("Please enter a group name")

    cards = [get_card(column, cid) for cid in card_ids]
    for card in cards:
        if card.group_id and card.group_id in column.groups:
            raise BoundaryRejected("Card is already in a group")

    group_id = generate_id()
    group = Group(
        name=name.strip(),
        card_ids=card_ids,
        created=created if created is not None else min(c.created for c in cards),
    )
    writes: List[Write] = [(paths.group_path(board.id, column_id, group_id), dump_entity(group))]
    for card in cards:
        writes.append((f"{paths.card_path(board.id, column_id, card.id)}/group_id", group_id))
    return group_id, writes


def _ungroup_writes(board: Board, column: Column, group: Group) -> List[Write]:
    writes: List[Write] = []
    members = list(group.card_ids) + [
        cid for cid, card in column.cards.items() if card.group_id == group.id and cid not in group.card_ids
    ]
    for card_id in members:
        card = column.cards.get(card_id)
        # already detached or deleted by someone else
        if card is None or card.group_id != group.id:
            continue
        writes.append((f"{paths.card_path(board.id, column.id, card_id)}/group_id", None))
    writes.append((paths.group_path(board.id, column.id, group.id), None))
    return writes


def ungroup_cards(board: Board, column_id: str, group_id: str) -> List[Write]:
    _require(board, Capability.GROUPING, "Grouping is only allowed during the grouping phase")
    column = get_column(board, column_id)
    group = get_group(column, group_id)
    return _ungroup_writes(board, column, group)


def rename_group(board: Board, column_id: str, group_id: str, name: str) -> List[Write]:
    _require(board, Capability.GROUPING, "Grouping is only allowed during the grouping phase")
    column = get_column(board, column_id)
    get_group(column, group_id)
    if not name or not name.strip():
        raise BoundaryRejected("Please enter a group name")
    return [(f"{paths.group_path(board.id, column_id, group_id)}/name", name.strip())]


def toggle_group_expanded(board: Board, column_id: str, group_id: str) -> List[Write]:
    column = get_column(board, column_id)
    group = get_group(column, group_id)
    return [(f"{paths.group_path(board.id, column_id, group_id)}/expanded", not group.expanded)]


def delete_all_groups(board: Board) -> List[Write]:
    writes: List[Write] = []
    for column in board.columns.values():
        for group in column.groups.values():
            writes += _ungroup_writes(board, column, group)
    return writes


def rebuild_group_index(board: Board) -> List[Write]:
    """Re-derive every ``card_ids`` index from the cards' own ``group_id``.

    Returns only the writes needed to repair drift: stale or missing index
    entries and cards pointing at a group that no longer exists. Groups are
    never removed here, even when no card references them.
    """
    writes: List[Write] = []
    for column in board.columns.values():
        for group in column.groups.values():
            members = {cid for cid, card in column.cards.items() if card.group_id == group.id}
            expected = [cid for cid in group.card_ids if cid in members]
            extra = sorted(members - set(expected), key=lambda cid: column.cards[cid].created)
            expected += extra
            if expected != group.card_ids:
                path = paths.group_path(board.id, column.id, group.id)
                writes.append((f"{path}/card_ids", expected))

        for card in column.cards.values():
            if card.group_id and card.group_id not in column.groups:
                writes.append((f"{paths.card_path(board.id, column.id, card.id)}/group_id", None))

    if writes:
        logger.info(f"Repairing {len(writes)} membership entries on board {board.id}")
    return writes


def check_membership(board: Board) -> List[str]:
    """Describe every place where the card and group sides disagree."""
    problems = []
    for column in board.columns.values():
        for group in column.groups.values():
            for cid in group.card_ids:
                card = column.cards.get(cid)
                if card is None or card.group_id != group.id:
                    problems.append(f"{column.id}/{group.id} lists {cid} which is not a member")
        for card in column.cards.values():
            group = column.groups.get(card.group_id) if card.group_id else None
            if card.group_id and group is None:
                problems.append(f"{column.id}/{card.id} points at missing group {card.group_id}")
            elif group is not None and card.id not in group.card_ids:
                problems.append(f"{column.id}/{card.id} missing from {group.id} index")
    return problems


# --- Ordering --- #


def ungrouped_cards(column: Column) -> List[Card]:
    return [c for c in column.cards.values() if not c.group_id or c.group_id not in column.groups]


def sorted_items(column: Column, sort_by_votes: bool = False) -> List[Tuple[str, object]]:
    """Top-level items of a column: ungrouped cards and groups.

    Votes mode orders by descending votes, otherwise by ascending creation
    time. Ties keep their original relative order.
    """
    cards = [("card", c) for c in ungrouped_cards(column)]
    groups = [("group", g) for g in column.groups.values()]
    if sort_by_votes:
        return sorted(cards + groups, key=lambda item: -item[1].votes)
    return sorted(groups + cards, key=lambda item: item[1].created)


def sorted_group_cards(column: Column, group: Group, sort_by_votes: bool = False) -> List[Card]:
    cards = [column.cards[cid] for cid in group.card_ids if cid in column.cards]
    if sort_by_votes:
        return sorted(cards, key=lambda c: -c.votes)
    return sorted(cards, key=lambda c: c.created)


def results_items(board: Board) -> List[Tuple[str, str, object]]:
    """Every ungrouped card and group on the board, most voted first."""
    items = []
    for column_id, column in board.columns.items():
        items += [(column_id, "card", c) for c in ungrouped_cards(column)]
        items += [(column_id, "group", g) for g in column.groups.values()]
    return sorted(items, key=lambda item: -item[2].votes)
