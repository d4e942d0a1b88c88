"""
Vote Ledger Tests

Vote totals never go negative, single-vote mode keeps weights in {-1, 0, 1}
and the per-participant limit holds across the whole board.
"""

import pytest

from app.core import votes
from app.core.errors import BoundaryRejected, ConfirmationRequired, PermissionDenied
from app.schemas.retro import EntityKind, Phase

from .fixtures import apply, make_board, put_card, put_group

CARD = EntityKind.CARD


class TestApplyVote:
    def test_upvote(self):
        board = make_board(Phase.INTERACTIONS)
        put_card(board, "c1", "a")

        outcome = votes.apply_vote(board, "c1", CARD, "a", "alice", 1)
        board = apply(board, outcome.writes)

        card = board.columns["c1"].cards["a"]
        assert card.votes == 1
        assert card.voters == {"alice": 1}
        assert outcome.message == "Upvoted"

    def test_never_below_zero(self):
        board = make_board(Phase.INTERACTIONS)
        put_card(board, "c1", "a")
        with pytest.raises(BoundaryRejected, match="negative"):
            votes.apply_vote(board, "c1", CARD, "a", "alice", -1)

    def test_already_voted(self):
        board = make_board(Phase.INTERACTIONS)
        put_card(board, "c1", "a", voters={"alice": 1})
        with pytest.raises(BoundaryRejected):
            votes.apply_vote(board, "c1", CARD, "a", "alice", 1)

    def test_opposite_direction_removes_vote(self):
        board = make_board(Phase.INTERACTIONS)
        put_card(board, "c1", "a", voters={"alice": 1, "bob": 1})

        outcome = votes.apply_vote(board, "c1", CARD, "a", "alice", -1)
        board = apply(board, outcome.writes)

        card = board.columns["c1"].cards["a"]
        assert outcome.message == "Vote removed"
        assert card.votes == 1
        assert card.voters == {"bob": 1}

    def test_weight_stays_within_one(self):
        board = make_board(Phase.INTERACTIONS, votes_per_user=10)
        put_card(board, "c1", "a", voters={"bob": 1})
        for delta in (1, -1, -1, 1, 1):
            try:
                board = apply(board, votes.apply_vote(board, "c1", CARD, "a", "alice", delta).writes)
            except BoundaryRejected:
                pass
            assert board.columns["c1"].cards["a"].voters.get("alice", 0) in (-1, 0, 1)
            assert board.columns["c1"].cards["a"].votes >= 0

    def test_multiple_votes_stack(self):
        board = make_board(Phase.INTERACTIONS, multiple_votes_allowed=True)
        put_card(board, "c1", "a")
        for _ in range(3):
            board = apply(board, votes.apply_vote(board, "c1", CARD, "a", "alice", 1).writes)
        assert board.columns["c1"].cards["a"].voters == {"alice": 3}

    def test_votes_on_groups(self):
        board = make_board(Phase.INTERACTIONS)
        put_card(board, "c1", "a")
        put_group(board, "c1", "g", ["a"])

        board = apply(board, votes.apply_vote(board, "c1", EntityKind.GROUP, "g", "alice", 1).writes)

        assert board.columns["c1"].groups["g"].votes == 1

    def test_rejects_odd_delta(self):
        board = make_board(Phase.INTERACTIONS)
        put_card(board, "c1", "a")
        with pytest.raises(BoundaryRejected):
            votes.apply_vote(board, "c1", CARD, "a", "alice", 2)


class TestGating:
    def test_voting_disabled(self):
        board = make_board(Phase.INTERACTIONS, voting_enabled=False)
        put_card(board, "c1", "a")
        with pytest.raises(PermissionDenied, match="Voting is disabled"):
            votes.apply_vote(board, "c1", CARD, "a", "alice", 1)

    def test_before_reveal(self):
        board = make_board(Phase.CREATION)
        put_card(board, "c1", "a")
        with pytest.raises(PermissionDenied, match="until cards are revealed"):
            votes.apply_vote(board, "c1", CARD, "a", "alice", 1)

    def test_frozen(self):
        board = make_board(Phase.INTERACTION_REVEAL)
        put_card(board, "c1", "a")
        with pytest.raises(PermissionDenied, match="frozen"):
            votes.apply_vote(board, "c1", CARD, "a", "alice", 1)

    def test_downvoting_disabled_still_allows_retracting(self):
        board = make_board(Phase.INTERACTIONS, downvoting_enabled=False)
        put_card(board, "c1", "a", voters={"alice": 1, "bob": 1})

        with pytest.raises(PermissionDenied):
            votes.apply_vote(board, "c1", CARD, "a", "carol", -1)

        outcome = votes.apply_vote(board, "c1", CARD, "a", "alice", -1)
        assert outcome.applied_delta == -1

    def test_unknown_card(self):
        board = make_board(Phase.INTERACTIONS)
        with pytest.raises(BoundaryRejected, match="Card not found"):
            votes.apply_vote(board, "c1", CARD, "missing", "alice", 1)


class TestLimit:
    def test_limit_of_one(self):
        """A participant who spent their only vote cannot vote elsewhere."""
        board = make_board(Phase.INTERACTIONS, votes_per_user=1)
        put_card(board, "c1", "a", voters={"alice": 1})
        put_card(board, "c1", "b")

        with pytest.raises(BoundaryRejected, match="You've used all 1 votes"):
            votes.apply_vote(board, "c1", CARD, "b", "alice", 1)

    def test_downvote_counts_against_limit(self):
        board = make_board(Phase.INTERACTIONS, votes_per_user=1)
        put_card(board, "c1", "a", voters={"alice": 1})
        put_card(board, "c1", "b", voters={"bob": 1})

        with pytest.raises(BoundaryRejected, match="You've used all 1 votes"):
            votes.apply_vote(board, "c1", CARD, "b", "alice", -1)
        assert votes.user_vote_count(board, "alice") == 1

    def test_retracting_is_allowed_at_the_limit(self):
        board = make_board(Phase.INTERACTIONS, votes_per_user=1, multiple_votes_allowed=True)
        put_card(board, "c1", "a", voters={"alice": 1})

        board = apply(board, votes.apply_vote(board, "c1", CARD, "a", "alice", -1).writes)

        assert votes.user_vote_count(board, "alice") == 0
        assert board.columns["c1"].cards["a"].votes == 0

    def test_sum_never_exceeds_limit(self):
        board = make_board(Phase.INTERACTIONS, votes_per_user=2, multiple_votes_allowed=True)
        put_card(board, "c1", "a")
        put_card(board, "c2", "b")
        for column_id, card_id in [("c1", "a"), ("c2", "b"), ("c1", "a"), ("c2", "b")]:
            try:
                board = apply(board, votes.apply_vote(board, column_id, CARD, card_id, "alice", 1).writes)
            except BoundaryRejected:
                pass
            assert votes.user_vote_count(board, "alice") <= 2
        assert votes.votes_remaining(board, "alice") == 0

    def test_no_limit_outside_retrospective_mode(self):
        board = make_board(Phase.CREATION, retro=False, votes_per_user=1)
        put_card(board, "c1", "a", voters={"alice": 1})
        put_card(board, "c1", "b")

        outcome = votes.apply_vote(board, "c1", CARD, "b", "alice", 1)
        assert outcome.applied_delta == 1

    def test_total_remaining(self):
        board = make_board(Phase.INTERACTIONS, votes_per_user=3)
        put_card(board, "c1", "a", voters={"alice": 1, "bob": 1})
        assert votes.total_votes_remaining(board, active_users=2) == 4


class TestReset:
    def test_requires_confirmation(self):
        with pytest.raises(ConfirmationRequired):
            votes.reset_all_votes(make_board(Phase.INTERACTIONS))

    def test_clears_every_entity(self):
        board = make_board(Phase.INTERACTIONS)
        put_card(board, "c1", "a", voters={"alice": 1})
        put_card(board, "c2", "b", voters={"bob": 1})
        put_group(board, "c1", "g", ["a"])
        board.columns["c1"].groups["g"].votes = 2
        board.columns["c1"].groups["g"].voters = {"alice": 1, "bob": 1}

        board = apply(board, votes.reset_all_votes(board, confirmed=True))

        assert all(entity.votes == 0 and entity.voters == {} for entity in board.iter_entities())
