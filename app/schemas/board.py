from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.core.config import DEFAULT_VOTES_PER_USER
from app.schemas.retro import Phase


class BoardCreate(BaseModel):
    title: Optional[str] = None
    owner: Optional[str] = None
    # column titles; the default template is used when omitted
    columns: Optional[List[str]] = None
    votes_per_user: int = Field(default=DEFAULT_VOTES_PER_USER, ge=1)


class BoardUpdate(BaseModel):
    title: str


class BoardPreview(BaseModel):
    id: str
    title: str
    owner: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SettingsUpdate(BaseModel):
    voting_enabled: Optional[bool] = None
    downvoting_enabled: Optional[bool] = None
    multiple_votes_allowed: Optional[bool] = None
    votes_per_user: Optional[int] = None
    sort_by_votes: Optional[bool] = None
    health_check_enabled: Optional[bool] = None


# --- Request bodies --- #


class ParticipantBody(BaseModel):
    participant_id: Optional[str] = None


class ColumnCreate(BaseModel):
    title: str = "New Column"


class ColumnUpdate(BaseModel):
    title: str


class CardCreate(ParticipantBody):
    content: str


class CardUpdate(ParticipantBody):
    content: str


class CardMove(ParticipantBody):
    from_column_id: str
    to_column_id: str
    to_group_id: Optional[str] = None


class GroupCreate(ParticipantBody):
    card_ids: List[str]
    name: str


class GroupUpdate(ParticipantBody):
    name: str


class VoteCreate(ParticipantBody):
    delta: int = 1


class ReactionToggle(ParticipantBody):
    emoji: str


class CommentCreate(ParticipantBody):
    content: str


class CommentUpdate(ParticipantBody):
    content: str


class Confirmation(ParticipantBody):
    confirmed: bool = False


class PhaseStart(ParticipantBody):
    phase: Phase


class RetrospectiveMode(ParticipantBody):
    enabled: bool


class ResultsNavigation(ParticipantBody):
    direction: str


class HealthCheckVote(ParticipantBody):
    question_id: str
    rating: int


class PollVote(ParticipantBody):
    rating: int
