"""
Board Fixtures

Hand-built boards with fixed ids and timestamps, plus a helper that applies
rule writes through a real MemoryStore and reads the result back.
"""

import asyncio
from typing import Dict, List, Optional

from app.core import paths
from app.core.store import MemoryStore, Write
from app.schemas.retro import Board, BoardSettings, Card, Column, Group, Phase

BOARD_ID = "b1"
T1 = 1_700_000_000_000
T2 = T1 + 1000
T3 = T1 + 2000


def make_board(phase: Phase = Phase.CREATION, retro: bool = True, **settings) -> Board:
    """Two empty columns, ``c1`` and ``c2``."""
    return Board(
        id=BOARD_ID,
        title="Sprint 42",
        created=T1,
        settings=BoardSettings(phase=phase, retrospective_mode_enabled=retro, **settings),
        columns={
            "c1": Column(title="Went well", created=T1),
            "c2": Column(title="To improve", created=T2),
        },
    )


def put_card(
    board: Board,
    column_id: str,
    card_id: str,
    content: str = "note",
    created_by: Optional[str] = None,
    created: int = T1,
    group_id: Optional[str] = None,
    voters: Optional[Dict[str, int]] = None,
) -> Card:
    voters = voters or {}
    card = Card(
        id=card_id,
        content=content,
        created_by=created_by,
        created=created,
        group_id=group_id,
        voters=voters,
        votes=sum(voters.values()),
    )
    board.columns[column_id].cards[card_id] = card
    return card


def put_group(
    board: Board,
    column_id: str,
    group_id: str,
    card_ids: List[str],
    name: str = "Theme",
    created: int = T1,
) -> Group:
    group = Group(id=group_id, name=name, card_ids=list(card_ids), created=created)
    column = board.columns[column_id]
    column.groups[group_id] = group
    for card_id in card_ids:
        if card_id in column.cards:
            column.cards[card_id].group_id = group_id
    return group


def board_tree(board: Board) -> dict:
    return board.model_dump(mode="json", exclude={"id"})


def seed_store(board: Board) -> MemoryStore:
    store = MemoryStore()
    asyncio.run(store.set(paths.board_path(board.id), board_tree(board)))
    return store


def apply(board: Board, writes: List[Write]) -> Board:
    """Persist ``writes`` on top of ``board`` and read the board back."""
    store = seed_store(board)
    asyncio.run(store.write_batch(writes))
    snapshot = asyncio.run(store.get(paths.board_path(board.id)))
    return Board.from_snapshot(board.id, snapshot)
