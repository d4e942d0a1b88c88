"""Phase driven permission and visibility rules.

Everything here is a pure function of the board phase, the retrospective mode
flag and, where noted, who is looking. Callers never compare phases directly;
they ask for a capability.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from app.schemas.retro import Board, Interactive, Phase

MASK_GLYPH = "█"


class Capability(str, Enum):
    GROUPING = "grouping_allowed"
    INTERACTIONS = "interactions_allowed"
    INTERACTIONS_VISIBLE = "interactions_visible"
    OTHERS_INTERACTIONS_VISIBLE = "others_interactions_visible"
    CARDS_REVEALED = "cards_revealed"
    INTERACTIONS_REVEALED = "interactions_revealed"
    CARD_EDITING = "card_editing_allowed"
    CARD_CREATION = "card_creation_allowed"
    CARD_DRAGGING = "card_dragging_allowed"


_REVEALED = frozenset({Phase.INTERACTIONS, Phase.INTERACTION_REVEAL, Phase.RESULTS})
_FROZEN = frozenset({Phase.INTERACTION_REVEAL, Phase.RESULTS})
# card text is masked for everyone but its author
_CONCEALED = frozenset({Phase.CREATION, Phase.GROUPING})
# interactions are over for good once revealed
_CLOSED = _FROZEN | {Phase.POLL, Phase.POLL_RESULTS}

# phases in which a capability holds while retrospective mode is on
CAPABILITY_PHASES: Dict[Capability, FrozenSet[Phase]] = {
    Capability.GROUPING: frozenset({Phase.GROUPING}),
    Capability.INTERACTIONS: frozenset({Phase.INTERACTIONS}),
    Capability.INTERACTIONS_VISIBLE: _REVEALED,
    Capability.OTHERS_INTERACTIONS_VISIBLE: _FROZEN,
    Capability.CARDS_REVEALED: _REVEALED,
    Capability.INTERACTIONS_REVEALED: _FROZEN,
    Capability.CARD_EDITING: frozenset({Phase.CREATION, Phase.GROUPING}),
    Capability.CARD_CREATION: frozenset({Phase.CREATION}),
    Capability.CARD_DRAGGING: frozenset({Phase.GROUPING}),
}

# value of each capability on a plain board (retrospective mode off)
PLAIN_BOARD: Dict[Capability, bool] = {
    Capability.GROUPING: False,
    Capability.INTERACTIONS: True,
    Capability.INTERACTIONS_VISIBLE: True,
    Capability.OTHERS_INTERACTIONS_VISIBLE: True,
    Capability.CARDS_REVEALED: True,
    Capability.INTERACTIONS_REVEALED: False,
    Capability.CARD_EDITING: True,
    Capability.CARD_CREATION: True,
    Capability.CARD_DRAGGING: True,
}


def allows(capability: Capability, phase: Phase, retrospective_mode: bool) -> bool:
    if not retrospective_mode:
        return PLAIN_BOARD[capability]
    return Phase(phase) in CAPABILITY_PHASES[capability]


def grouping_allowed(phase: Phase, retrospective_mode: bool = False) -> bool:
    return allows(Capability.GROUPING, phase, retrospective_mode)


def interactions_allowed(phase: Phase, retrospective_mode: bool = False) -> bool:
    return allows(Capability.INTERACTIONS, phase, retrospective_mode)


def interactions_visible(phase: Phase, retrospective_mode: bool = False) -> bool:
    return allows(Capability.INTERACTIONS_VISIBLE, phase, retrospective_mode)


def others_interactions_visible(phase: Phase, retrospective_mode: bool = False) -> bool:
    return allows(Capability.OTHERS_INTERACTIONS_VISIBLE, phase, retrospective_mode)


def cards_revealed(phase: Phase, retrospective_mode: bool = False) -> bool:
    return allows(Capability.CARDS_REVEALED, phase, retrospective_mode)


def interactions_revealed(phase: Phase, retrospective_mode: bool = False) -> bool:
    return allows(Capability.INTERACTIONS_REVEALED, phase, retrospective_mode)


def card_editing_allowed(phase: Phase, retrospective_mode: bool = False) -> bool:
    return allows(Capability.CARD_EDITING, phase, retrospective_mode)


def card_creation_allowed(phase: Phase, retrospective_mode: bool = False) -> bool:
    return allows(Capability.CARD_CREATION, phase, retrospective_mode)


def card_dragging_allowed(phase: Phase, retrospective_mode: bool = False) -> bool:
    return allows(Capability.CARD_DRAGGING, phase, retrospective_mode)


# --- Disabled reasons and control states --- #


class DisabledReason(str, Enum):
    CARDS_NOT_REVEALED = "cards-not-revealed"
    FROZEN = "frozen"


class ControlState(str, Enum):
    ENABLED = "enabled"
    # rendered, greyed out, with explanatory text
    DISABLED = "disabled"
    # not rendered at all
    HIDDEN = "hidden"


class InteractionType(str, Enum):
    VOTE = "vote"
    REACTION = "reaction"
    COMMENT = "comment"


FROZEN_MESSAGE = "Interactions are now frozen - no more changes allowed"

_NOT_REVEALED_MESSAGES = {
    InteractionType.VOTE: "Voting is disabled until cards are revealed",
    InteractionType.REACTION: "Reactions disabled until cards are revealed",
    InteractionType.COMMENT: "Comments are disabled until cards are revealed",
}


def disabled_reason(phase: Phase, retrospective_mode: bool = False) -> Optional[DisabledReason]:
    """Why interactions are unavailable, or ``None`` when they are available."""
    frozen = retrospective_mode and Phase(phase) in _CLOSED
    not_revealed = retrospective_mode and not cards_revealed(phase, retrospective_mode)
    if frozen:
        return DisabledReason.FROZEN
    if not_revealed:
        return DisabledReason.CARDS_NOT_REVEALED
    return None


def control_state(phase: Phase, retrospective_mode: bool = False) -> ControlState:
    reason = disabled_reason(phase, retrospective_mode)
    if reason is None:
        return ControlState.ENABLED
    if reason == DisabledReason.FROZEN:
        return ControlState.HIDDEN
    return ControlState.DISABLED


def disabled_message(interaction: InteractionType, reason: Optional[DisabledReason]) -> Optional[str]:
    """User notice for a rejected interaction; comments stay silent once frozen."""
    if reason is None:
        return None
    if reason == DisabledReason.FROZEN:
        return None if interaction == InteractionType.COMMENT else FROZEN_MESSAGE
    return _NOT_REVEALED_MESSAGES[interaction]


@dataclass(frozen=True)
class PhaseCapabilities:
    phase: Phase
    retrospective_mode: bool
    grouping_allowed: bool
    interactions_allowed: bool
    interactions_visible: bool
    others_interactions_visible: bool
    cards_revealed: bool
    interactions_revealed: bool
    card_editing_allowed: bool
    card_creation_allowed: bool
    card_dragging_allowed: bool
    disabled_reason: Optional[DisabledReason]
    control_state: ControlState


def resolve(phase: Phase, retrospective_mode: bool = False) -> PhaseCapabilities:
    flags = {cap.value: allows(cap, phase, retrospective_mode) for cap in Capability}
    return PhaseCapabilities(
        phase=Phase(phase),
        retrospective_mode=retrospective_mode,
        disabled_reason=disabled_reason(phase, retrospective_mode),
        control_state=control_state(phase, retrospective_mode),
        **flags,
    )


def board_capabilities(board: Board) -> PhaseCapabilities:
    settings = board.settings
    return resolve(settings.phase, settings.retrospective_mode_enabled)


# --- Authorship and obfuscation --- #


def can_modify(created_by: Optional[str], participant_id: Optional[str]) -> bool:
    """Unattributed content stays editable by anyone."""
    # TODO: decide whether unattributed cards and comments should be backfilled
    # with an owner instead of staying editable by every participant.
    if created_by is None:
        return True
    return created_by == participant_id


def obfuscate(content: str) -> str:
    return "".join(ch if ch in (" ", "\n") else MASK_GLYPH for ch in content)


def should_obfuscate(phase: Phase, retrospective_mode: bool, is_creator: bool) -> bool:
    return retrospective_mode and Phase(phase) in _CONCEALED and not is_creator


def downvote_visible(board: Board, entity: Interactive, participant_id: Optional[str]) -> bool:
    """Participants can always retract their own upvote."""
    if board.settings.downvoting_enabled:
        return True
    return bool(participant_id) and entity.voters.get(participant_id, 0) > 0


