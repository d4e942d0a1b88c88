from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class Phase(str, Enum):
    HEALTH_CHECK = "HEALTH_CHECK"
    HEALTH_CHECK_RESULTS = "HEALTH_CHECK_RESULTS"
    CREATION = "CREATION"
    GROUPING = "GROUPING"
    INTERACTIONS = "INTERACTIONS"
    INTERACTION_REVEAL = "INTERACTION_REVEAL"
    RESULTS = "RESULTS"
    POLL = "POLL"
    POLL_RESULTS = "POLL_RESULTS"


class EntityKind(str, Enum):
    """Which map of a column an interactive entity lives in."""

    CARD = "cards"
    GROUP = "groups"


class Reaction(BaseModel):
    count: int = 0
    users: Dict[str, bool] = Field(default_factory=dict)


class Comment(BaseModel):
    id: str = ""
    content: str
    created_by: Optional[str] = None
    timestamp: int = 0


class Interactive(BaseModel):
    """Fields shared by cards and groups: votes, reactions, comments."""

    id: str = ""
    votes: int = 0
    voters: Dict[str, int] = Field(default_factory=dict)
    reactions: Dict[str, Reaction] = Field(default_factory=dict)
    comments: Dict[str, Comment] = Field(default_factory=dict)
    created: int = 0

    @model_validator(mode="after")
    def _attach_comment_ids(self):
        for comment_id, comment in self.comments.items():
            comment.id = comment_id
        return self


class Card(Interactive):
    content: str = ""
    group_id: Optional[str] = None
    created_by: Optional[str] = None


class Group(Interactive):
    name: str = ""
    card_ids: List[str] = Field(default_factory=list)
    expanded: bool = True


class Column(BaseModel):
    id: str = ""
    title: str = ""
    created: int = 0
    cards: Dict[str, Card] = Field(default_factory=dict)
    groups: Dict[str, Group] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _attach_ids(self):
        for card_id, card in self.cards.items():
            card.id = card_id
        for group_id, group in self.groups.items():
            group.id = group_id
        return self


class BoardSettings(BaseModel):
    voting_enabled: bool = True
    downvoting_enabled: bool = True
    multiple_votes_allowed: bool = False
    votes_per_user: int = Field(default=5, ge=1)
    retrospective_mode_enabled: bool = False
    phase: Phase = Phase.CREATION
    results_view_index: int = Field(default=0, ge=0)
    sort_by_votes: bool = False
    health_check_enabled: bool = False


class HealthCheckState(BaseModel):
    votes: Dict[str, Dict[str, int]] = Field(default_factory=dict)


class PollState(BaseModel):
    votes: Dict[str, int] = Field(default_factory=dict)


class Board(BaseModel):
    id: str = ""
    title: str = "Untitled Board"
    created: int = 0
    owner: Optional[str] = None
    settings: BoardSettings = Field(default_factory=BoardSettings)
    columns: Dict[str, Column] = Field(default_factory=dict)
    health_check: HealthCheckState = Field(default_factory=HealthCheckState)
    poll: PollState = Field(default_factory=PollState)

    @model_validator(mode="after")
    def _attach_column_ids(self):
        for column_id, column in self.columns.items():
            column.id = column_id
        return self

    @classmethod
    def from_snapshot(cls, board_id: str, snapshot: Optional[dict]) -> "Board":
        """Build a board from the raw store subtree (``None`` means empty)."""
        board = cls.model_validate(snapshot or {})
        board.id = board_id
        return board

    def column(self, column_id: str) -> Optional[Column]:
        return self.columns.get(column_id)

    def entity(self, column_id: str, kind: EntityKind, entity_id: str) -> Optional[Interactive]:
        column = self.columns.get(column_id)
        if column is None:
            return None
        if kind == EntityKind.CARD:
            return column.cards.get(entity_id)
        return column.groups.get(entity_id)

    def iter_entities(self):
        """Yield every card and group on the board."""
        for column in self.columns.values():
            yield from column.cards.values()
            yield from column.groups.values()


def dump_entity(entity: BaseModel) -> dict:
    """Persisted shape of an entity: ids live in the map keys."""
    data = entity.model_dump(mode="json", exclude={"id"})
    if "comments" in data:
        for comment in data["comments"].values():
            comment.pop("id", None)
    return data
