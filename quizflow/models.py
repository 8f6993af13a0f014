"""
Core data models for the QuizFlow session rules engine.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class GameMode(Enum):
    """Supported play modes."""
    PRACTICE = "practice"
    VERSUS = "versus"
    SPEED = "speed"


# Deprecated spellings still found in older theme files
MODE_ALIASES = {
    "duel": GameMode.VERSUS,
}


class SessionPhase(Enum):
    """Round controller phases."""
    IDLE = "idle"
    SETUP = "setup"
    COUNTDOWN = "countdown"
    PLAYING = "playing"
    ENDED = "ended"


PLAYER_IDS = ("p1", "p2")
SOLO_SLOT = "sp"


@dataclass(frozen=True)
class Question:
    """A single quiz question, identified by its id."""
    id: str
    content: str
    correct_answer_id: str
    content_type: str = "text"
    answer_pool_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AnswerItem:
    """An answer resolved against the pool that holds it."""
    id: str
    content: str
    content_type: str = "text"
    category: str = "default"


@dataclass(frozen=True)
class AnswerPool:
    """A categorized group of interchangeable answers."""
    id: str
    category: str
    items: Tuple[AnswerItem, ...]
    content_type: str = "text"
    name: str = ""


@dataclass(frozen=True)
class QuestionSet:
    """Questions played by a level, plus the pools their options come from."""
    id: str
    questions: Tuple[Question, ...]
    answer_pool_ids: Tuple[str, ...] = ()
    name: str = ""

    def pool_ids_for(self, question: Question) -> Tuple[str, ...]:
        """Pools referenced by a question, falling back to the set's pools."""
        return question.answer_pool_ids or self.answer_pool_ids


@dataclass(frozen=True)
class Level:
    """A playable level bound to one question set."""
    id: str
    question_set_id: str
    name: str = ""
    target_score: Optional[int] = None


@dataclass(frozen=True)
class ModeSettings:
    """Per-mode rules read from the theme configuration."""
    time_limit: int = 30
    first_bonus: int = 2
    second_bonus: int = 1
    target_score: int = 0
    max_questions: Optional[int] = None


@dataclass(frozen=True)
class ThemeMessages:
    """Themed thresholds and texts shown by presentation layers."""
    warning_time: int = 5
    warning_text: str = "Hurry"
    combo_threshold: int = 2
    combo_text: str = "COMBO"
    penalty_threshold: int = 2
    penalty_deduction: int = -2
    penalty_text: str = "BROKEN"
    win: Tuple[str, ...] = ("WIN",)
    lose: Tuple[str, ...] = ("LOSE",)
    draw: Tuple[str, ...] = ("DRAW",)


@dataclass
class ContentBundle:
    """
    Normalized theme content consumed by the rules engine.

    Answer lookups and category partitions are indexed once, when the bundle
    is built, so per-turn option building never rescans the pools.
    """
    theme_id: str
    levels: Dict[str, Level]
    modes: Dict[str, ModeSettings]
    question_sets: Dict[str, QuestionSet]
    answer_pools: Dict[str, AnswerPool]
    messages: ThemeMessages = field(default_factory=ThemeMessages)
    name: str = ""
    _answer_index: Dict[str, AnswerItem] = field(default_factory=dict, init=False, repr=False)
    _category_index: Dict[Tuple[str, str], Tuple[AnswerItem, ...]] = field(
        default_factory=dict, init=False, repr=False
    )

    def __post_init__(self):
        for pool_id, pool in self.answer_pools.items():
            for item in pool.items:
                # First pool to declare an id wins
                self._answer_index.setdefault(item.id, item)
            self._category_index[(pool_id, pool.category)] = pool.items

    def resolve_answer(self, answer_id: str) -> Optional[AnswerItem]:
        """Look up an answer id across all pools."""
        return self._answer_index.get(answer_id)

    def items_in_category(self, category: str, pool_ids) -> List[AnswerItem]:
        """Collect the items of the given pools that belong to a category."""
        items: List[AnswerItem] = []
        for pool_id in pool_ids:
            items.extend(self._category_index.get((pool_id, category), ()))
        return items

    def get_level(self, level_id: str) -> Optional[Level]:
        return self.levels.get(level_id)

    def get_question_set(self, question_set_id: str) -> Optional[QuestionSet]:
        return self.question_sets.get(question_set_id)


@dataclass
class PlayerState:
    """Mutable per-session record for one player."""
    player_id: str
    score: int = 0
    combo_streak: int = 0
    wrong_streak: int = 0
    locked: bool = False
    answered: bool = False
    current_question: Optional[Question] = None
    deck: List[Question] = field(default_factory=list)
    missed_history: List[Question] = field(default_factory=list)
    review_misses: List[Question] = field(default_factory=list)
    questions_seen: int = 0

    @staticmethod
    def _add_once(questions: List[Question], question: Question) -> bool:
        if any(existing.id == question.id for existing in questions):
            return False
        questions.append(question)
        return True

    def remember_missed(self, question: Question) -> bool:
        """Queue a missed question for practice replay, once per id."""
        return self._add_once(self.missed_history, question)

    def remember_review(self, question: Question) -> bool:
        """Record a missed question for the post-game review, once per id."""
        return self._add_once(self.review_misses, question)


@dataclass
class Session:
    """State of one round, owned by the round controller."""
    mode: GameMode
    level_id: str
    question_set: QuestionSet
    mode_settings: ModeSettings
    target_score: int = 0
    generation: int = 0
    phase: SessionPhase = SessionPhase.SETUP
    first_solver: Optional[str] = None
    timer: int = 0
    players: Dict[str, PlayerState] = field(
        default_factory=lambda: {pid: PlayerState(pid) for pid in PLAYER_IDS}
    )

    @property
    def is_solo(self) -> bool:
        return self.mode is GameMode.PRACTICE

    def player(self, player_id: str) -> PlayerState:
        """Return a player record, mapping the solo slot onto p1."""
        if player_id == SOLO_SLOT:
            player_id = "p1"
        return self.players[player_id]

    def opponent_of(self, player_id: str) -> str:
        return "p2" if player_id == "p1" else "p1"


@dataclass(frozen=True)
class TurnRender:
    """Render request handed to presentation sinks for one turn."""
    player_slot: str
    question: Question
    options: Tuple[AnswerItem, ...]


@dataclass(frozen=True)
class RoundResult:
    """Outcome of a finished round."""
    winner: str
    scores: Dict[str, int]
    missed_questions: Dict[str, List[Question]]
    messages: Dict[str, str] = field(default_factory=dict)
    mode: Optional[GameMode] = None


@dataclass
class GameSettings:
    """Engine timing and session options (milliseconds unless noted)."""
    practice_next_delay_ms: int = 500
    versus_next_delay_ms: int = 1000
    speed_next_delay_ms: int = 500
    end_delay_ms: int = 500
    base_lockout_ms: int = 800
    lockout_growth: float = 1.5
    max_lockout_ms: int = 3000
    tick_interval_ms: int = 1000
    urgent_time: int = 3
    countdown_from: int = 3
    countdown_step_ms: int = 1000
    max_questions: Optional[int] = None
    themes_directory: str = "./themes/"
