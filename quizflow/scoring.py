"""
Score, combo and penalty rules.

Everything here is pure bookkeeping on a PlayerState: no scheduling, no
signals. The round controller decides when each rule applies and what
happens afterwards.
"""
from dataclasses import dataclass
from typing import Dict

from .models import GameSettings, ModeSettings, PlayerState, ThemeMessages

DRAW = "draw"


@dataclass(frozen=True)
class ScoreOutcome:
    """Effect of a correct answer."""
    delta: int
    score: int
    combo_streak: int
    combo_struck: bool


@dataclass(frozen=True)
class PenaltyOutcome:
    """Effect of a wrong answer."""
    delta: int
    applied: int
    score: int
    wrong_streak: int
    broken: bool
    lockout_ms: int


@dataclass(frozen=True)
class ScoringRules:
    """Thresholds, bonuses and lockout parameters for one session."""
    combo_threshold: int = 2
    penalty_threshold: int = 2
    penalty_deduction: int = -2
    wrong_deduction: int = -1
    first_bonus: int = 2
    second_bonus: int = 1
    base_lockout_ms: int = 800
    lockout_growth: float = 1.5
    max_lockout_ms: int = 3000

    @classmethod
    def from_settings(
        cls,
        settings: GameSettings,
        messages: ThemeMessages,
        mode_settings: ModeSettings
    ) -> "ScoringRules":
        """Combine engine settings, theme thresholds and mode bonuses."""
        return cls(
            combo_threshold=messages.combo_threshold,
            penalty_threshold=messages.penalty_threshold,
            penalty_deduction=-abs(messages.penalty_deduction),
            first_bonus=mode_settings.first_bonus,
            second_bonus=mode_settings.second_bonus,
            base_lockout_ms=settings.base_lockout_ms,
            lockout_growth=settings.lockout_growth,
            max_lockout_ms=settings.max_lockout_ms,
        )

    def lockout_duration(self, wrong_streak: int) -> int:
        """
        Lockout length after the given number of consecutive wrong answers.

        Grows exponentially from ``base_lockout_ms`` and is capped at
        ``max_lockout_ms``: streak 1 -> 800ms, 3 -> 1800ms, 8+ -> 3000ms.
        """
        streak = max(1, wrong_streak)
        duration = self.base_lockout_ms * (self.lockout_growth ** (streak - 1))
        return int(min(self.max_lockout_ms, duration))

    def buzzer_bonus(self, first: bool) -> int:
        return self.first_bonus if first else self.second_bonus

    def apply_correct(self, player: PlayerState, points: int, solo: bool) -> ScoreOutcome:
        """
        Record a correct answer worth ``points``.

        The combo strike only applies between two players.
        """
        player.combo_streak += 1
        player.wrong_streak = 0
        player.score += points
        return ScoreOutcome(
            delta=points,
            score=player.score,
            combo_streak=player.combo_streak,
            combo_struck=(not solo and player.combo_streak >= self.combo_threshold),
        )

    def apply_wrong(self, player: PlayerState) -> PenaltyOutcome:
        """
        Record a wrong answer.

        The deduction only applies while the score is positive and never takes
        it below zero.
        """
        player.combo_streak = 0
        player.wrong_streak += 1

        broken = player.wrong_streak >= self.penalty_threshold
        delta = self.penalty_deduction if broken else self.wrong_deduction

        before = player.score
        if player.score > 0:
            player.score = max(0, player.score + delta)

        return PenaltyOutcome(
            delta=delta,
            applied=player.score - before,
            score=player.score,
            wrong_streak=player.wrong_streak,
            broken=broken,
            lockout_ms=self.lockout_duration(player.wrong_streak),
        )


def determine_winner(scores: Dict[str, int]) -> str:
    """Strict comparison of p1 and p2 scores: "p1", "p2" or "draw"."""
    p1, p2 = scores.get("p1", 0), scores.get("p2", 0)
    if p1 > p2:
        return "p1"
    if p2 > p1:
        return "p2"
    return DRAW
