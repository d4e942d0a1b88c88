"""
Board Service Tests

Actions against a live MemoryStore: results, notifications, write failures.
"""

import asyncio

from app.core import arq_worker
from app.core.board_service import BoardService, initial_board
from app.core.config import DEFAULT_COLUMNS
from app.core.errors import ErrorKind, GENERIC_FAILURE_MESSAGE
from app.core.store import MemoryStore
from app.schemas.retro import EntityKind, Phase


class FailingStore(MemoryStore):
    async def write_batch(self, writes):
        raise ConnectionError("store unreachable")


class RecordingRedis:
    def __init__(self):
        self.jobs = []

    async def enqueue_job(self, name, *args):
        self.jobs.append((name, args))


def _column_ids(service):
    columns = sorted(service.board.columns.values(), key=lambda c: c.created)
    return [c.id for c in columns]


class TestInitialBoard:
    def test_default_columns(self):
        tree = initial_board("Sprint 42", owner="alice")
        titles = [c["title"] for c in sorted(tree["columns"].values(), key=lambda c: c["created"])]
        assert titles == DEFAULT_COLUMNS
        assert tree["settings"]["phase"] == "CREATION"
        assert tree["owner"] == "alice"


class TestActions:
    def test_retrospective_flow(self):
        async def scenario():
            notices = []
            store = MemoryStore()
            async with BoardService(store, "b1", notify=notices.append) as service:
                await service.create("Sprint 42", owner="alice")
                first = _column_ids(service)[0]

                await service.set_retrospective_mode(True)
                added = await service.add_card(first, "Fast deploys", "alice")
                await service.start_grouping_phase()
                await service.start_interactions_phase()
                voted = await service.upvote(first, EntityKind.CARD, added.entity_id, "bob")
                view = service.view("carol")
                return service, notices, added, voted, view

        service, notices, added, voted, view = asyncio.run(scenario())

        assert added.ok and added.entity_id
        assert voted.ok and voted.message == "Upvoted"
        assert service.board.settings.phase == Phase.INTERACTIONS
        assert "Upvoted" in notices
        assert "Retrospective mode enabled" in notices
        # carol sees the text but not bob's vote before the reveal
        card = view["columns"][0]["items"][0]["data"]
        assert card["content"] == "Fast deploys"
        assert card["interactions"]["votes"] == 0

    def test_rejection_notifies_and_reports_kind(self):
        async def scenario():
            notices = []
            async with BoardService(MemoryStore(), "b1", notify=notices.append) as service:
                await service.create("Sprint 42")
                await service.set_retrospective_mode(True)
                result = await service.start_results_phase()
            return notices, result

        notices, result = asyncio.run(scenario())

        assert not result.ok
        assert result.error == ErrorKind.PERMISSION_DENIED
        assert notices[-1] == result.message

    def test_silent_rejection_does_not_notify(self):
        async def scenario():
            notices = []
            async with BoardService(MemoryStore(), "b1", notify=notices.append) as service:
                await service.create("Sprint 42")
                first = _column_ids(service)[0]
                added = await service.add_card(first, "Note", "alice")
                await service.set_retrospective_mode(True)
                await service.start_grouping_phase()
                await service.start_interactions_phase()
                await service.start_interaction_reveal_phase()
                notices.clear()
                result = await service.add_comment(first, EntityKind.CARD, added.entity_id, "late", "bob")
            return notices, result

        notices, result = asyncio.run(scenario())

        assert result.error == ErrorKind.SILENT_NO_OP
        assert result.message is None
        assert notices == []

    def test_write_failure_is_transient(self):
        async def scenario():
            store = FailingStore()
            notices = []
            service = BoardService(store, "b1", notify=notices.append)
            await service.create("Sprint 42")
            first = _column_ids(service)[0]
            result = await service.add_card(first, "Note", "alice")
            await service.load()
            return service, notices, result, first

        service, notices, result, first = asyncio.run(scenario())

        assert result.error == ErrorKind.TRANSIENT_WRITE_FAILURE
        assert notices == [GENERIC_FAILURE_MESSAGE]
        assert service.board.columns[first].cards == {}

    def test_move_schedules_repair(self):
        async def scenario():
            redis = RecordingRedis()
            async with BoardService(MemoryStore(), "b1", redis=redis) as service:
                await service.create("Sprint 42")
                first, second = _column_ids(service)[:2]
                added = await service.add_card(first, "Note")
                await service.set_retrospective_mode(True)
                await service.start_grouping_phase()
                result = await service.move_card(added.entity_id, first, second)
            return redis, result

        redis, result = asyncio.run(scenario())

        assert result.ok
        assert redis.jobs == [("repair_board", ("b1",))]


class TestRepairJob:
    def test_repairs_stored_board(self):
        async def scenario():
            store = MemoryStore()
            await store.set("boards/b1", {
                "title": "T",
                "columns": {
                    "c1": {
                        "title": "A",
                        "cards": {"a": {"content": "x", "group_id": "g"}},
                        "groups": {"g": {"name": "G", "card_ids": ["a", "ghost"]}},
                    },
                },
            })
            repaired = await arq_worker.repair_board({"store": store}, "b1")
            snapshot = await store.get("boards/b1/columns/c1/groups/g/card_ids")
            again = await arq_worker.repair_board({"store": store}, "b1")
            return repaired, snapshot, again

        repaired, snapshot, again = asyncio.run(scenario())

        assert repaired == 1
        assert snapshot == ["a"]
        assert again == 0

    def test_missing_board(self):
        assert asyncio.run(arq_worker.repair_board({"store": MemoryStore()}, "nope")) == 0
