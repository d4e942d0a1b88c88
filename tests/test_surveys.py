"""
Health Check and Poll Tests
"""

import pytest

from app.core import surveys
from app.core.errors import BoundaryRejected, PermissionDenied
from app.schemas.retro import Phase

from .fixtures import apply, make_board


class TestHealthCheck:
    def test_vote_only_during_health_check(self):
        board = make_board(Phase.CREATION, health_check_enabled=True)
        with pytest.raises(PermissionDenied):
            surveys.submit_health_check_vote(board, "fun", 4, "alice")

    def test_rejects_unknown_question_and_rating(self):
        board = make_board(Phase.HEALTH_CHECK, health_check_enabled=True)
        with pytest.raises(BoundaryRejected):
            surveys.submit_health_check_vote(board, "coffee", 4, "alice")
        with pytest.raises(BoundaryRejected):
            surveys.submit_health_check_vote(board, "fun", 6, "alice")

    def test_stats(self):
        board = make_board(Phase.HEALTH_CHECK, health_check_enabled=True)
        board = apply(board, surveys.submit_health_check_vote(board, "fun", 4, "alice"))
        board = apply(board, surveys.submit_health_check_vote(board, "fun", 2, "bob"))
        board = apply(board, surveys.submit_health_check_vote(board, "pace", 5, "alice"))

        stats = {q["id"]: q for q in surveys.health_check_stats(board)}
        assert stats["fun"]["total_votes"] == 2
        assert stats["fun"]["average"] == 3.0
        assert stats["fun"]["distribution"] == [0, 1, 0, 1, 0]
        assert stats["teamwork"]["total_votes"] == 0
        assert surveys.health_check_participants(board) == 2
        assert surveys.user_health_check_votes(board, "alice") == {"fun": 4, "pace": 5}

    def test_results_hidden_until_results_phase(self):
        board = make_board(Phase.HEALTH_CHECK, health_check_enabled=True)
        board = apply(board, surveys.submit_health_check_vote(board, "fun", 4, "alice"))

        assert surveys.survey_view(board, "bob")["health_check_results"] is None

        board.settings.phase = Phase.HEALTH_CHECK_RESULTS
        summary = surveys.survey_view(board, "bob")["health_check_results"]
        assert summary["overall_average"] == 4.0
        assert summary["overall_label"] == "Good"


class TestPoll:
    def test_change_vote(self):
        board = make_board(Phase.POLL)
        board = apply(board, surveys.submit_poll_vote(board, 2, "alice"))
        board = apply(board, surveys.submit_poll_vote(board, 5, "alice"))
        board = apply(board, surveys.submit_poll_vote(board, 4, "bob"))

        stats = surveys.poll_stats(board)
        assert stats["total_votes"] == 2
        assert stats["average"] == 4.5
        assert stats["label"] == "Extremely Effective"
        assert surveys.user_poll_vote(board, "alice") == 5

    def test_poll_closed(self):
        with pytest.raises(PermissionDenied):
            surveys.submit_poll_vote(make_board(Phase.POLL_RESULTS), 3, "alice")

    def test_labels(self):
        assert surveys.effectiveness_label(0) == "Not Effective"
        assert surveys.effectiveness_label(3.4) == "Moderately Effective"
        assert surveys.health_label(1.5) == "Poor"
