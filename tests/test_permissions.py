"""
Permission and Visibility Tests

Phase predicates, control states, obfuscation and per-viewer projections.
"""

import pytest

from app.core import permissions
from app.core.permissions import (
    ControlState,
    DisabledReason,
    FROZEN_MESSAGE,
    InteractionType,
    MASK_GLYPH,
)
from app.core.views import board_view, card_view, interaction_view
from app.schemas.retro import Phase

from .fixtures import make_board, put_card, put_group

ALL_PHASES = list(Phase)


class TestPlainBoard:
    """With retrospective mode off every phase behaves the same."""

    @pytest.mark.parametrize("phase", ALL_PHASES)
    def test_grouping_never_allowed(self, phase):
        assert permissions.grouping_allowed(phase, False) is False

    @pytest.mark.parametrize("phase", ALL_PHASES)
    def test_interactions_always_allowed(self, phase):
        assert permissions.interactions_allowed(phase, False) is True

    @pytest.mark.parametrize("phase", ALL_PHASES)
    def test_controls_enabled(self, phase):
        assert permissions.control_state(phase, False) == ControlState.ENABLED
        assert permissions.disabled_reason(phase, False) is None

    def test_nothing_obfuscated(self):
        assert permissions.should_obfuscate(Phase.CREATION, False, is_creator=False) is False


class TestRetrospectivePhases:
    def test_creation(self):
        caps = permissions.resolve(Phase.CREATION, True)
        assert caps.card_creation_allowed
        assert caps.card_editing_allowed
        assert not caps.cards_revealed
        assert not caps.interactions_visible
        assert not caps.card_dragging_allowed
        assert caps.disabled_reason == DisabledReason.CARDS_NOT_REVEALED

    def test_grouping(self):
        caps = permissions.resolve(Phase.GROUPING, True)
        assert caps.grouping_allowed
        assert caps.card_dragging_allowed
        assert caps.card_editing_allowed
        assert not caps.card_creation_allowed
        assert not caps.interactions_allowed

    def test_interactions(self):
        caps = permissions.resolve(Phase.INTERACTIONS, True)
        assert caps.interactions_allowed
        assert caps.interactions_visible
        assert caps.cards_revealed
        assert not caps.others_interactions_visible
        assert caps.control_state == ControlState.ENABLED

    @pytest.mark.parametrize("phase", [Phase.INTERACTION_REVEAL, Phase.RESULTS])
    def test_frozen_phases(self, phase):
        caps = permissions.resolve(phase, True)
        assert caps.interactions_revealed
        assert caps.others_interactions_visible
        assert not caps.interactions_allowed
        assert caps.disabled_reason == DisabledReason.FROZEN
        assert caps.control_state == ControlState.HIDDEN

    @pytest.mark.parametrize("phase", [Phase.CREATION, Phase.GROUPING, Phase.HEALTH_CHECK, Phase.HEALTH_CHECK_RESULTS])
    def test_not_revealed_controls_are_disabled(self, phase):
        assert permissions.control_state(phase, True) == ControlState.DISABLED

    @pytest.mark.parametrize("phase", [Phase.POLL, Phase.POLL_RESULTS])
    def test_interactions_stay_closed_during_poll(self, phase):
        assert permissions.disabled_reason(phase, True) == DisabledReason.FROZEN
        assert permissions.control_state(phase, True) == ControlState.HIDDEN


class TestDisabledMessages:
    def test_frozen_comments_are_silent(self):
        assert permissions.disabled_message(InteractionType.COMMENT, DisabledReason.FROZEN) is None

    def test_frozen_votes_and_reactions(self):
        assert permissions.disabled_message(InteractionType.VOTE, DisabledReason.FROZEN) == FROZEN_MESSAGE
        assert permissions.disabled_message(InteractionType.REACTION, DisabledReason.FROZEN) == FROZEN_MESSAGE

    def test_not_revealed(self):
        message = permissions.disabled_message(InteractionType.VOTE, DisabledReason.CARDS_NOT_REVEALED)
        assert message == "Voting is disabled until cards are revealed"

    def test_enabled_has_no_message(self):
        assert permissions.disabled_message(InteractionType.REACTION, None) is None


class TestObfuscation:
    def test_keeps_newline_and_masks_the_rest(self):
        masked = permissions.obfuscate("Hi\nBob!")
        assert masked == MASK_GLYPH * 2 + "\n" + MASK_GLYPH * 4
        assert len(masked) == len("Hi\nBob!")

    def test_keeps_spaces(self):
        assert permissions.obfuscate("a b") == f"{MASK_GLYPH} {MASK_GLYPH}"

    def test_creator_sees_own_card(self):
        assert permissions.should_obfuscate(Phase.CREATION, True, is_creator=True) is False
        assert permissions.should_obfuscate(Phase.CREATION, True, is_creator=False) is True
        assert permissions.should_obfuscate(Phase.INTERACTIONS, True, is_creator=False) is False

    @pytest.mark.parametrize(
        "phase", [Phase.HEALTH_CHECK, Phase.HEALTH_CHECK_RESULTS, Phase.RESULTS, Phase.POLL, Phase.POLL_RESULTS]
    )
    def test_masking_limited_to_creation_and_grouping(self, phase):
        assert permissions.should_obfuscate(phase, True, is_creator=False) is False

    def test_poll_shows_plain_text(self):
        board = make_board(Phase.POLL)
        card = put_card(board, "c1", "a", content="Keep it", created_by="alice")
        assert card_view(board, card, "bob")["content"] == "Keep it"


class TestAuthorship:
    def test_unattributed_content_is_editable_by_anyone(self):
        assert permissions.can_modify(None, "alice")

    def test_only_author(self):
        assert permissions.can_modify("alice", "alice")
        assert not permissions.can_modify("alice", "bob")


class TestProjections:
    def test_creation_masks_content_and_hides_interactions(self):
        board = make_board(Phase.CREATION)
        card = put_card(board, "c1", "a", content="Hi\nBob!", created_by="alice")

        view = card_view(board, card, "bob")

        assert view["content"] == MASK_GLYPH * 2 + "\n" + MASK_GLYPH * 4
        assert view["interactions"] is None
        assert view["is_creator"] is False

    def test_creator_sees_plain_text(self):
        board = make_board(Phase.CREATION)
        card = put_card(board, "c1", "a", content="Hi\nBob!", created_by="alice")

        assert card_view(board, card, "alice")["content"] == "Hi\nBob!"

    def test_others_votes_hidden_until_reveal(self):
        board = make_board(Phase.INTERACTIONS)
        card = put_card(board, "c1", "a", voters={"alice": 1, "bob": 1})

        view = interaction_view(board, card, "alice")

        assert view["votes"] == 1
        assert view["voters"] == {"alice": 1}
        assert view["my_vote"] == 1

    def test_everything_visible_after_reveal(self):
        board = make_board(Phase.INTERACTION_REVEAL)
        card = put_card(board, "c1", "a", voters={"alice": 1, "bob": 1})

        view = interaction_view(board, card, "alice")

        assert view["votes"] == 2
        assert view["controls"]["upvote"] == ControlState.HIDDEN
        assert view["controls"]["reaction"] == ControlState.HIDDEN

    def test_downvote_hidden_when_disabled_and_nothing_to_retract(self):
        board = make_board(Phase.INTERACTIONS, downvoting_enabled=False)
        card = put_card(board, "c1", "a", voters={"alice": 1})

        assert interaction_view(board, card, "alice")["controls"]["downvote"] == ControlState.ENABLED
        assert interaction_view(board, card, "bob")["controls"]["downvote"] == ControlState.HIDDEN

    def test_board_view_lists_groups_and_loose_cards(self):
        board = make_board(Phase.GROUPING)
        put_card(board, "c1", "a", created=1)
        put_card(board, "c1", "b", created=2)
        put_card(board, "c1", "c", created=3)
        put_group(board, "c1", "g", ["a", "b"], created=1)

        view = board_view(board, "alice")
        items = view["columns"][0]["items"]

        assert [item["type"] for item in items] == ["group", "card"]
        assert [c["id"] for c in items[0]["data"]["cards"]] == ["a", "b"]
        assert view["capabilities"]["grouping_allowed"] is True
        assert view["votes"] is None

    def test_results_cursor(self):
        board = make_board(Phase.RESULTS, results_view_index=1)
        put_card(board, "c1", "a", voters={"alice": 1})
        put_card(board, "c2", "b", voters={"alice": 1, "bob": 1})

        results = board_view(board, "carol")["results"]

        assert results["count"] == 2
        assert results["index"] == 1
        assert results["item"]["data"]["id"] == "a"
        assert results["item"]["column_id"] == "c1"
