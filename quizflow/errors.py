"""
Exception hierarchy and non-fatal condition records for QuizFlow.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class QuizFlowError(Exception):
    """Base exception for QuizFlow errors."""
    pass


class ContentError(QuizFlowError):
    """Raised when a level, question set, answer pool or mode reference cannot be resolved."""
    pass


class ContentLoadError(ContentError):
    """Raised when theme content cannot be read or is structurally invalid."""

    def __init__(self, theme_id: str, message: str):
        super().__init__(f"Failed to load theme '{theme_id}': {message}")
        self.theme_id = theme_id
        self.reason = message


class InvalidTransition(Enum):
    """Reasons an answer submission is ignored."""
    NOT_PLAYING = "not_playing"
    ALREADY_ANSWERED = "already_answered"
    LOCKED = "locked"
    TIME_EXPIRED = "time_expired"
    NO_QUESTION = "no_question"


@dataclass(frozen=True)
class ContentDefect:
    """An authoring problem found while building options for a question."""
    question_id: str
    reason: str
    category: Optional[str] = None
    distractors_found: int = 0
