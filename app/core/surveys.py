"""Team health check and effectiveness poll."""

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from app.core import paths
from app.core.errors import BoundaryRejected, PermissionDenied
from app.core.store import Write
from app.schemas.retro import Board, Phase

RATINGS = range(1, 6)


@dataclass(frozen=True)
class HealthCheckQuestion:
    id: str
    label: str
    description: str


HEALTH_CHECK_QUESTIONS = [
    HealthCheckQuestion("teamwork", "Teamwork", "How well is the team collaborating?"),
    HealthCheckQuestion("fun", "Fun", "How much fun are we having at work?"),
    HealthCheckQuestion("pace", "Pace", "Are we working at a sustainable pace?"),
    HealthCheckQuestion("mission", "Mission", "Do we know why we are here and are we excited about it?"),
    HealthCheckQuestion("learning", "Learning", "Are we learning lots of interesting stuff?"),
    HealthCheckQuestion("support", "Support", "Do we get the help we need when we ask?"),
    HealthCheckQuestion("codebase", "Health of Codebase", "Is our code clean and easy to work with?"),
    HealthCheckQuestion("process", "Suitable Process", "Does our way of working suit us?"),
]

_QUESTIONS_BY_ID = {q.id: q for q in HEALTH_CHECK_QUESTIONS}

POLL_DESCRIPTIONS = {
    1: "Not effective at all",
    2: "Slightly effective",
    3: "Moderately effective",
    4: "Very effective",
    5: "Extremely effective",
}


def _check_rating(rating: int) -> None:
    if rating not in RATINGS:
        raise BoundaryRejected("Rating must be between 1 and 5")


def rating_stats(ratings: List[int]) -> dict:
    distribution = [0] * len(RATINGS)
    for rating in ratings:
        if rating in RATINGS:
            distribution[rating - 1] += 1
    total = sum(distribution)
    average = sum((i + 1) * n for i, n in enumerate(distribution)) / total if total else 0.0
    return {"total_votes": total, "average": average, "distribution": distribution}


def effectiveness_label(average: float) -> str:
    if average >= 4.5:
        return "Extremely Effective"
    if average >= 3.5:
        return "Very Effective"
    if average >= 2.5:
        return "Moderately Effective"
    if average >= 1.5:
        return "Slightly Effective"
    return "Not Effective"


def health_label(average: float) -> str:
    if average >= 4.5:
        return "Great"
    if average >= 3.5:
        return "Good"
    if average >= 2.5:
        return "Okay"
    if average >= 1.5:
        return "Poor"
    return "Terrible"


# --- Health check --- #


def submit_health_check_vote(board: Board, question_id: str, rating: int, participant_id: str) -> List[Write]:
    if board.settings.phase != Phase.HEALTH_CHECK or not board.settings.retrospective_mode_enabled:
        raise PermissionDenied("Health check voting is only open during the health check")
    if question_id not in _QUESTIONS_BY_ID:
        raise BoundaryRejected("Unknown health check question")
    _check_rating(rating)
    path = f"{paths.board_path(board.id)}/health_check/votes/{question_id}/{participant_id}"
    return [(path, rating)]


def user_health_check_votes(board: Board, participant_id: str) -> Dict[str, int]:
    return {
        question_id: votes[participant_id]
        for question_id, votes in board.health_check.votes.items()
        if participant_id in votes
    }


def health_check_participants(board: Board) -> int:
    voters = set()
    for votes in board.health_check.votes.values():
        voters.update(votes)
    return len(voters)


def health_check_stats(board: Board) -> List[dict]:
    stats = []
    for question in HEALTH_CHECK_QUESTIONS:
        votes = board.health_check.votes.get(question.id, {})
        entry = rating_stats(list(votes.values()))
        entry.update({"id": question.id, "label": question.label, "description": question.description})
        stats.append(entry)
    return stats


def health_check_summary(board: Board) -> dict:
    stats = health_check_stats(board)
    answered = [q for q in stats if q["total_votes"] > 0]
    overall = sum(q["average"] for q in answered) / len(answered) if answered else 0.0
    return {
        "questions": stats,
        "participants": max((q["total_votes"] for q in answered), default=0),
        "overall_average": overall,
        "overall_label": health_label(overall),
    }


# --- Poll --- #


def submit_poll_vote(board: Board, rating: int, participant_id: str) -> List[Write]:
    """Participants may change their rating for as long as the poll is open."""
    if board.settings.phase != Phase.POLL or not board.settings.retrospective_mode_enabled:
        raise PermissionDenied("Poll voting is only open during the poll phase")
    _check_rating(rating)
    return [(f"{paths.board_path(board.id)}/poll/votes/{participant_id}", rating)]


def user_poll_vote(board: Board, participant_id: str) -> Optional[int]:
    return board.poll.votes.get(participant_id)


def poll_stats(board: Board) -> dict:
    stats = rating_stats(list(board.poll.votes.values()))
    stats["label"] = effectiveness_label(stats["average"])
    return stats


def survey_view(board: Board, participant_id: Optional[str]) -> dict:
    """Own ratings always; aggregate results only in the matching results phase."""
    phase = board.settings.phase
    view = {
        "questions": [asdict(q) for q in HEALTH_CHECK_QUESTIONS],
        "poll_options": [{"rating": r, "description": d} for r, d in POLL_DESCRIPTIONS.items()],
        "my_health_check": user_health_check_votes(board, participant_id) if participant_id else {},
        "my_poll_vote": user_poll_vote(board, participant_id) if participant_id else None,
        "health_check_participants": health_check_participants(board),
        "health_check_results": None,
        "poll_results": None,
    }
    if phase == Phase.HEALTH_CHECK_RESULTS:
        view["health_check_results"] = health_check_summary(board)
    if phase == Phase.POLL_RESULTS:
        view["poll_results"] = poll_stats(board)
    return view
