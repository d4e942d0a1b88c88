"""Board service: runs rule functions against the live board and writes results.

Rule functions in ``app.core`` validate against a snapshot and return writes.
This service owns the snapshot (kept fresh by a store subscription), issues
the writes, and turns every outcome into an ``ActionResult``. Messages go to
the ``notify`` callback, the way the board UI shows toast notifications.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from app.core import paths, phases, reactions, repository, surveys, views, votes
from app.core.config import DEFAULT_COLUMNS, DEFAULT_VOTES_PER_USER
from app.core.errors import ActionResult, BoardActionError, BoundaryRejected, TransientWriteFailure
from app.core.store import SyncStore, Unsubscribe, Write
from app.schemas.retro import Board, BoardSettings, EntityKind, Phase

logger = logging.getLogger(__name__)

Notify = Callable[[str], None]


def initial_board(
    title: str,
    owner: Optional[str] = None,
    columns: Optional[Iterable[str]] = None,
    votes_per_user: int = DEFAULT_VOTES_PER_USER,
) -> dict:
    """Store tree of a new board with its starting columns."""
    created = repository.now_ms()
    board = Board(
        title=title or "Untitled Board",
        created=created,
        owner=owner,
        settings=BoardSettings(votes_per_user=votes_per_user),
    )
    data = board.model_dump(mode="json", exclude={"id", "columns", "health_check", "poll"})
    titles = list(columns) if columns is not None else DEFAULT_COLUMNS
    # offset keeps the template order stable
    data["columns"] = {
        repository.generate_id(): {"title": name, "created": created + i} for i, name in enumerate(titles)
    }
    return data


def _normalize(outcome: Any) -> Tuple[List[Write], Optional[str], Optional[str]]:
    """Unpack the different shapes rule functions return."""
    if isinstance(outcome, tuple):
        entity_id, writes = outcome
        return writes, None, entity_id
    if isinstance(outcome, list):
        return outcome, None, None
    return outcome.writes, outcome.message, getattr(outcome, "entity_id", None)


class BoardService:
    def __init__(
        self,
        store: SyncStore,
        board_id: str,
        notify: Optional[Notify] = None,
        redis=None,
    ):
        self.store = store
        self.board_id = board_id
        self.notify = notify
        # arq pool used to queue background repairs; optional
        self.redis = redis
        self.board = Board.from_snapshot(board_id, None)
        self.exists = False
        self._unsubscribe: Optional[Unsubscribe] = None

    # --- Read model --- #

    def _on_snapshot(self, snapshot: Optional[dict]) -> None:
        self.exists = snapshot is not None
        self.board = Board.from_snapshot(self.board_id, snapshot)

    async def load(self) -> Board:
        """Read the board once without subscribing."""
        self._on_snapshot(await self.store.get(paths.board_path(self.board_id)))
        return self.board

    async def open(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = await self.store.subscribe(paths.board_path(self.board_id), self._on_snapshot)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def __aenter__(self) -> "BoardService":
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def view(self, viewer: Optional[str], active_users: int = 0) -> dict:
        return views.board_view(self.board, viewer, active_users)

    # --- Execution --- #

    def _emit(self, message: Optional[str]) -> None:
        if message and self.notify is not None:
            self.notify(message)

    async def _write(self, writes: List[Write]) -> None:
        if not writes:
            return
        try:
            await self.store.write_batch(writes)
        except Exception as e:
            logger.error(f"Write to board {self.board_id} failed: {e}", exc_info=True)
            raise TransientWriteFailure() from e

    async def _execute(self, rule: Callable[..., Any], *args, **kwargs) -> ActionResult:
        try:
            outcome = rule(self.board, *args, **kwargs)
            writes, message, entity_id = _normalize(outcome)
            await self._write(writes)
        except BoardActionError as e:
            if e.message:
                logger.info(f"Board {self.board_id}: {rule.__name__} rejected ({e.kind.value}): {e.message}")
            self._emit(e.message)
            return ActionResult.failure(e)

        self._emit(message)
        return ActionResult.success(message, entity_id)

    async def _schedule_repair(self) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.enqueue_job("repair_board", self.board_id)
        except Exception as e:
            logger.warning(f"Could not enqueue repair for board {self.board_id}: {e}")

    # --- Board --- #

    async def create(
        self,
        title: str,
        owner: Optional[str] = None,
        columns: Optional[Iterable[str]] = None,
        votes_per_user: int = DEFAULT_VOTES_PER_USER,
    ) -> Board:
        await self.store.set(paths.board_path(self.board_id), initial_board(title, owner, columns, votes_per_user))
        logger.info(f"Created board {self.board_id}")
        return await self.load()

    async def rename(self, title: str) -> ActionResult:
        return await self._execute(_rename_board, title)

    async def delete(self) -> None:
        await self.store.remove(paths.board_path(self.board_id))
        logger.info(f"Deleted board {self.board_id}")

    async def update_settings(self, changes: Dict[str, Any]) -> ActionResult:
        return await self._execute(_settings_changed, changes)

    # --- Phases --- #

    async def start_phase(self, target: Phase) -> ActionResult:
        return await self._execute(phases.start_phase, target)

    async def start_health_check_phase(self) -> ActionResult:
        return await self._execute(phases.start_health_check_phase)

    async def start_health_check_results_phase(self) -> ActionResult:
        return await self._execute(phases.start_health_check_results_phase)

    async def start_creation_phase(self) -> ActionResult:
        return await self._execute(phases.start_creation_phase)

    async def start_grouping_phase(self) -> ActionResult:
        return await self._execute(phases.start_grouping_phase)

    async def start_interactions_phase(self) -> ActionResult:
        return await self._execute(phases.start_interactions_phase)

    async def start_interaction_reveal_phase(self) -> ActionResult:
        return await self._execute(phases.start_interaction_reveal_phase)

    async def start_results_phase(self) -> ActionResult:
        return await self._execute(phases.start_results_phase)

    async def start_poll_phase(self) -> ActionResult:
        return await self._execute(phases.start_poll_phase)

    async def start_poll_results_phase(self) -> ActionResult:
        return await self._execute(phases.start_poll_results_phase)

    async def go_to_previous_phase(self, confirmed: bool = False) -> ActionResult:
        return await self._execute(phases.go_to_previous_phase, confirmed)

    async def set_retrospective_mode(self, enabled: bool) -> ActionResult:
        return await self._execute(phases.set_retrospective_mode, enabled)

    async def navigate_results(self, direction: str) -> ActionResult:
        return await self._execute(phases.navigate_results, direction)

    # --- Columns and cards --- #

    async def add_column(self, title: str = repository.DEFAULT_COLUMN_TITLE) -> ActionResult:
        return await self._execute(repository.add_column, title)

    async def rename_column(self, column_id: str, title: str) -> ActionResult:
        return await self._execute(repository.rename_column, column_id, title)

    async def delete_column(self, column_id: str) -> ActionResult:
        return await self._execute(repository.delete_column, column_id)

    async def add_card(self, column_id: str, content: str, participant_id: Optional[str] = None) -> ActionResult:
        return await self._execute(repository.add_card, column_id, content, participant_id)

    async def edit_card(self, column_id: str, card_id: str, content: str, participant_id: Optional[str]) -> ActionResult:
        return await self._execute(repository.edit_card, column_id, card_id, content, participant_id)

    async def delete_card(self, column_id: str, card_id: str, participant_id: Optional[str]) -> ActionResult:
        return await self._execute(repository.delete_card, column_id, card_id, participant_id)

    async def move_card(
        self,
        card_id: str,
        from_column_id: str,
        to_column_id: str,
        to_group_id: Optional[str] = None,
    ) -> ActionResult:
        result = await self._execute(repository.move_card, card_id, from_column_id, to_column_id, to_group_id)
        if result.ok:
            await self._schedule_repair()
        return result

    # --- Groups --- #

    async def create_group(self, column_id: str, card_ids: List[str], name: str) -> ActionResult:
        return await self._execute(repository.create_group, column_id, card_ids, name)

    async def ungroup_cards(self, column_id: str, group_id: str) -> ActionResult:
        return await self._execute(repository.ungroup_cards, column_id, group_id)

    async def rename_group(self, column_id: str, group_id: str, name: str) -> ActionResult:
        return await self._execute(repository.rename_group, column_id, group_id, name)

    async def toggle_group_expanded(self, column_id: str, group_id: str) -> ActionResult:
        return await self._execute(repository.toggle_group_expanded, column_id, group_id)

    async def repair(self) -> ActionResult:
        return await self._execute(repository.rebuild_group_index)

    # --- Votes, reactions, comments --- #

    async def vote(
        self,
        column_id: str,
        kind: EntityKind,
        entity_id: str,
        participant_id: str,
        delta: int,
    ) -> ActionResult:
        return await self._execute(votes.apply_vote, column_id, kind, entity_id, participant_id, delta)

    async def upvote(self, column_id: str, kind: EntityKind, entity_id: str, participant_id: str) -> ActionResult:
        return await self.vote(column_id, kind, entity_id, participant_id, 1)

    async def downvote(self, column_id: str, kind: EntityKind, entity_id: str, participant_id: str) -> ActionResult:
        return await self.vote(column_id, kind, entity_id, participant_id, -1)

    async def reset_all_votes(self, confirmed: bool = False) -> ActionResult:
        return await self._execute(_votes_reset, confirmed)

    async def toggle_reaction(
        self,
        column_id: str,
        kind: EntityKind,
        entity_id: str,
        emoji: str,
        participant_id: str,
    ) -> ActionResult:
        return await self._execute(reactions.toggle_reaction, column_id, kind, entity_id, emoji, participant_id)

    async def add_comment(
        self,
        column_id: str,
        kind: EntityKind,
        entity_id: str,
        content: str,
        participant_id: Optional[str],
    ) -> ActionResult:
        return await self._execute(reactions.add_comment, column_id, kind, entity_id, content, participant_id)

    async def edit_comment(
        self,
        column_id: str,
        kind: EntityKind,
        entity_id: str,
        comment_id: str,
        content: str,
        participant_id: Optional[str],
    ) -> ActionResult:
        return await self._execute(
            reactions.edit_comment, column_id, kind, entity_id, comment_id, content, participant_id
        )

    async def delete_comment(
        self,
        column_id: str,
        kind: EntityKind,
        entity_id: str,
        comment_id: str,
        participant_id: Optional[str],
    ) -> ActionResult:
        return await self._execute(reactions.delete_comment, column_id, kind, entity_id, comment_id, participant_id)

    # --- Surveys --- #

    async def submit_health_check_vote(self, question_id: str, rating: int, participant_id: str) -> ActionResult:
        return await self._execute(_health_check_voted, question_id, rating, participant_id)

    async def submit_poll_vote(self, rating: int, participant_id: str) -> ActionResult:
        return await self._execute(_poll_voted, rating, participant_id)


# Rules without a message of their own get one here.


@dataclass
class Outcome:
    writes: List[Write]
    message: str


def _rename_board(board: Board, title: str) -> Outcome:
    title = (title or "").strip()
    if not title:
        raise BoundaryRejected("Title is required")
    writes = [(f"{paths.board_path(board.id)}/title", title)]
    return Outcome(writes, "Board renamed")


def _settings_changed(board: Board, changes: Dict[str, Any]) -> Outcome:
    writes = phases.update_settings(board, changes)
    return Outcome(writes, "Settings updated")


def _votes_reset(board: Board, confirmed: bool) -> Outcome:
    writes = votes.reset_all_votes(board, confirmed)
    return Outcome(writes, "All votes have been reset")


def _health_check_voted(board: Board, question_id: str, rating: int, participant_id: str) -> Outcome:
    writes = surveys.submit_health_check_vote(board, question_id, rating, participant_id)
    return Outcome(writes, "Health check vote saved")


def _poll_voted(board: Board, rating: int, participant_id: str) -> Outcome:
    writes = surveys.submit_poll_vote(board, rating, participant_id)
    return Outcome(writes, "Poll vote saved")
