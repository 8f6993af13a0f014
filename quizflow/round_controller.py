"""
Round controller for QuizFlow sessions.
Owns the active Session and drives it through setup, countdown, play and end.
"""
import logging
import random
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, Optional, Union

from . import signals as sig
from .config_manager import ConfigManager
from .deck import DeckManager
from .distractors import DistractorSelector
from .errors import ContentError, InvalidTransition
from .models import (
    ContentBundle,
    GameMode,
    MODE_ALIASES,
    PLAYER_IDS,
    RoundResult,
    Session,
    SessionPhase,
    SOLO_SLOT,
    TurnRender,
)
from .scheduler import AsyncioScheduler, TaskScheduler
from .scoring import DRAW, ScoringRules, determine_winner
from .signals import SignalBus
from .timer import RaceTimer


@dataclass(frozen=True)
class AnswerResult:
    """Outcome of one answer submission."""
    accepted: bool
    correct: Optional[bool] = None
    delta: int = 0
    score: int = 0
    broken: bool = False
    lockout_ms: int = 0
    rejected: Optional[InvalidTransition] = None


class RoundController:
    """
    Orchestrates one quiz session at a time.

    The controller is the only writer of session state. Everything that
    happens later (next question, lockout release, round end, countdown and
    timer steps) is handed to the scheduler as a one-shot task tagged with the
    current generation, and every new session or return to the menu starts a
    new generation so late tasks are discarded.
    """

    def __init__(
        self,
        content: ContentBundle,
        config_manager: Optional[ConfigManager] = None,
        scheduler: Optional[TaskScheduler] = None,
        signals: Optional[SignalBus] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the round controller.

        Args:
            content: Normalized theme content
            config_manager: Source of engine timing settings
            scheduler: Deferred task scheduler, asyncio-backed by default
            signals: Signal bus for presentation layers
            rng: Random source shared by deck and option building
        """
        self.logger = logging.getLogger(__name__)
        self.content = content
        self.config_manager = config_manager or ConfigManager()
        self.scheduler = scheduler or AsyncioScheduler()
        self.signals = signals or SignalBus()
        self._rng = rng or random.Random()

        self.deck_manager = DeckManager(self._rng)
        self.selector = DistractorSelector(content, self._rng)

        self._settings = self.config_manager.get_game_settings()
        self._session: Optional[Session] = None
        self._rules: Optional[ScoringRules] = None
        self._timer: Optional[RaceTimer] = None
        self._turns: Dict[str, TurnRender] = {}
        self._result: Optional[RoundResult] = None

        self.signals.connect(sig.TIMER_TICK, self._on_timer_tick)

        self.logger.info(f"RoundController initialized for theme '{content.theme_id}'")

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def resolve_mode(self, mode: Union[GameMode, str]) -> GameMode:
        """
        Map a mode name onto a GameMode.

        Raises:
            ContentError: If the mode is unknown
        """
        if isinstance(mode, GameMode):
            return mode

        name = str(mode).strip().lower()
        if name in MODE_ALIASES:
            canonical = MODE_ALIASES[name]
            self.logger.warning(f"Mode '{name}' is deprecated, use '{canonical.value}'")
            return canonical

        try:
            return GameMode(name)
        except ValueError:
            raise ContentError(f"Unknown game mode: {mode}") from None

    def start_session(self, mode: Union[GameMode, str], level_id: str) -> Session:
        """
        Set up a new session and start its countdown.

        Any session in progress is abandoned first.

        Args:
            mode: "practice", "versus" (or "duel") or "speed"
            level_id: Level to play

        Returns:
            The new Session, in the COUNTDOWN phase

        Raises:
            ContentError: If the mode, level or question set cannot be resolved
        """
        game_mode = self.resolve_mode(mode)

        mode_settings = self.content.modes.get(game_mode.value)
        if mode_settings is None:
            raise ContentError(f"Theme '{self.content.theme_id}' has no settings for mode '{game_mode.value}'")

        level = self.content.get_level(level_id)
        if level is None:
            raise ContentError(f"Level not found: {level_id}")

        question_set = self.content.get_question_set(level.question_set_id)
        if question_set is None:
            raise ContentError(f"Question set not found: {level.question_set_id}")

        if not question_set.questions:
            raise ContentError(f"Question set '{question_set.id}' has no questions")

        referenced_pools = list(question_set.answer_pool_ids)
        for question in question_set.questions:
            referenced_pools.extend(question.answer_pool_ids)
        for pool_id in referenced_pools:
            if pool_id not in self.content.answer_pools:
                raise ContentError(f"Answer pool not found: {pool_id}")

        target_score = level.target_score if level.target_score is not None else mode_settings.target_score
        if game_mode is GameMode.VERSUS and target_score <= 0:
            raise ContentError(f"Versus mode on level '{level_id}' needs a positive target score")

        self._abandon_session()
        self._result = None
        self._turns.clear()
        generation = self.scheduler.new_generation()
        self._settings = self.config_manager.get_game_settings()

        session = Session(
            mode=game_mode,
            level_id=level.id,
            question_set=question_set,
            mode_settings=mode_settings,
            target_score=target_score,
            generation=generation,
            phase=SessionPhase.SETUP,
        )
        self._rules = ScoringRules.from_settings(self._settings, self.content.messages, mode_settings)
        self.deck_manager.build_decks(session)
        self._session = session

        self.logger.info(
            f"Started {game_mode.value} session on level '{level.id}' "
            f"({len(question_set.questions)} questions, target {target_score})",
            extra={
                'event_type': 'session_started',
                'generation': generation,
                'mode': game_mode.value,
                'level_id': level.id,
                'timestamp': time.time()
            }
        )

        session.phase = SessionPhase.COUNTDOWN
        self._countdown_step(self._settings.countdown_from)
        return session

    def _countdown_step(self, value: int) -> None:
        if value < 0:
            self._begin_play()
            return

        self.signals.emit(sig.COUNTDOWN_STEP, value=value, label="GO" if value == 0 else str(value))
        self.scheduler.schedule(
            self._settings.countdown_step_ms,
            partial(self._countdown_step, value - 1),
            name="countdown_step"
        )

    def _begin_play(self) -> None:
        session = self._session
        if session is None or session.phase is not SessionPhase.COUNTDOWN:
            return

        session.phase = SessionPhase.PLAYING
        self.logger.info(
            f"Session {session.generation} playing",
            extra={
                'event_type': 'session_playing',
                'generation': session.generation,
                'timestamp': time.time()
            }
        )

        if session.mode is GameMode.SPEED:
            session.timer = session.mode_settings.time_limit
            self._timer = RaceTimer(
                self.scheduler,
                self.signals,
                time_limit=session.mode_settings.time_limit,
                warning_time=self.content.messages.warning_time,
                urgent_time=self._settings.urgent_time,
                tick_interval_ms=self._settings.tick_interval_ms,
                on_expired=self._on_timer_expired,
            )
            self._timer.start()

        if session.mode is GameMode.PRACTICE:
            self._next_independent_question(SOLO_SLOT)
        elif session.mode is GameMode.VERSUS:
            self._next_shared_question()
        else:
            for player_id in PLAYER_IDS:
                self._next_independent_question(player_id)

    # ------------------------------------------------------------------
    # Turn generation
    # ------------------------------------------------------------------

    def _next_shared_question(self) -> None:
        """Both players get the same question; bonuses depend on who solves it first."""
        session = self._session
        if session is None or session.phase is not SessionPhase.PLAYING:
            return

        session.first_solver = None
        question = self.deck_manager.next_question(session, "p1")
        for player_id in PLAYER_IDS:
            player = session.player(player_id)
            player.answered = False
            player.current_question = question
            player.questions_seen += 1
            self._render_turn(player_id, question)

    def _next_independent_question(self, slot: str) -> None:
        session = self._session
        if session is None or session.phase is not SessionPhase.PLAYING:
            return

        player = session.player(slot)
        player.answered = False
        question = self.deck_manager.next_question(session, player.player_id)
        player.current_question = question
        player.questions_seen += 1
        self._render_turn(slot, question)

    def _render_turn(self, slot: str, question) -> None:
        option_set = self.selector.build_options(question, self._session.question_set)
        if option_set.defect is not None:
            self.signals.emit(sig.CONTENT_DEFECT, defect=option_set.defect)

        turn = TurnRender(player_slot=slot, question=question, options=option_set.options)
        self._turns[slot] = turn
        self.signals.emit(sig.TURN_READY, turn=turn)

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------

    def submit_answer(self, slot: str, answer_id: str) -> AnswerResult:
        """
        Submit a player's answer for their current question.

        Submissions while locked, after answering this turn, after the race
        timer expired or outside the PLAYING phase are ignored.

        Args:
            slot: "p1", "p2" or the solo slot "sp"
            answer_id: Id of the chosen AnswerItem

        Returns:
            AnswerResult describing what happened
        """
        session = self._session
        if session is None or session.phase is not SessionPhase.PLAYING:
            return self._reject(slot, InvalidTransition.NOT_PLAYING)

        player = session.player(slot)
        if player.answered:
            return self._reject(slot, InvalidTransition.ALREADY_ANSWERED)
        if player.locked:
            return self._reject(slot, InvalidTransition.LOCKED)
        if session.mode is GameMode.SPEED and self._timer is not None and self._timer.remaining_time <= 0:
            return self._reject(slot, InvalidTransition.TIME_EXPIRED)
        if player.current_question is None:
            return self._reject(slot, InvalidTransition.NO_QUESTION)

        if answer_id == player.current_question.correct_answer_id:
            return self._handle_correct(slot)
        return self._handle_wrong(slot)

    def _reject(self, slot: str, reason: InvalidTransition) -> AnswerResult:
        self.logger.debug(f"Ignored answer from {slot}: {reason.value}")
        return AnswerResult(accepted=False, rejected=reason)

    def _handle_correct(self, slot: str) -> AnswerResult:
        session = self._session
        player = session.player(slot)
        settings = self._settings

        if session.mode is GameMode.VERSUS:
            first = session.first_solver is None
            if first:
                session.first_solver = player.player_id
            points = self._rules.buzzer_bonus(first)
        else:
            points = 1

        player.answered = True
        outcome = self._rules.apply_correct(player, points, solo=session.is_solo)

        if outcome.combo_struck:
            self.signals.emit(
                sig.COMBO_STRUCK,
                source=player.player_id,
                target=session.opponent_of(player.player_id),
                combo=outcome.combo_streak,
            )
        self.signals.emit(sig.ANSWER_ACCEPTED, player=slot, delta=outcome.delta, score=outcome.score)

        if session.mode is GameMode.PRACTICE:
            limit = self.practice_limit
            if limit is not None and player.questions_seen >= limit:
                self.scheduler.schedule(settings.end_delay_ms, self.end_round, name="round_end")
            else:
                self.scheduler.schedule(
                    settings.practice_next_delay_ms,
                    partial(self._next_independent_question, SOLO_SLOT),
                    name="next_question"
                )
        elif session.mode is GameMode.VERSUS:
            if player.score >= session.target_score:
                self.scheduler.schedule(settings.end_delay_ms, self.end_round, name="round_end")
            elif all(p.answered for p in session.players.values()):
                self.scheduler.schedule(
                    settings.versus_next_delay_ms, self._next_shared_question, name="next_shared_question"
                )
        else:
            self.scheduler.schedule(
                settings.speed_next_delay_ms,
                partial(self._next_independent_question, player.player_id),
                name=f"next_question_{player.player_id}"
            )

        return AnswerResult(accepted=True, correct=True, delta=outcome.delta, score=outcome.score)

    def _handle_wrong(self, slot: str) -> AnswerResult:
        session = self._session
        player = session.player(slot)
        question = player.current_question

        outcome = self._rules.apply_wrong(player)
        if session.is_solo:
            player.remember_missed(question)
        player.remember_review(question)

        player.locked = True
        self.scheduler.schedule(
            outcome.lockout_ms,
            partial(self._unlock, player.player_id),
            name=f"unlock_{player.player_id}"
        )

        self.signals.emit(
            sig.ANSWER_REJECTED_PENALTY,
            player=slot,
            delta=outcome.delta,
            applied=outcome.applied,
            score=outcome.score,
            broken=outcome.broken,
            lockout_ms=outcome.lockout_ms,
        )
        self.logger.debug(
            f"{player.player_id} wrong on {question.id}: streak {outcome.wrong_streak}, "
            f"locked {outcome.lockout_ms}ms",
            extra={
                'event_type': 'answer_wrong',
                'generation': session.generation,
                'player': player.player_id,
                'lockout_ms': outcome.lockout_ms,
                'timestamp': time.time()
            }
        )

        return AnswerResult(
            accepted=True,
            correct=False,
            delta=outcome.delta,
            score=outcome.score,
            broken=outcome.broken,
            lockout_ms=outcome.lockout_ms,
        )

    def _unlock(self, player_id: str) -> None:
        session = self._session
        if session is None or session.phase is SessionPhase.ENDED:
            return
        session.player(player_id).locked = False
        self.signals.emit(sig.PLAYER_UNLOCKED, player=player_id)

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _on_timer_tick(self, value: int, percent: float) -> None:
        if self._session is not None:
            self._session.timer = value

    def _on_timer_expired(self) -> None:
        self.end_round()

    # ------------------------------------------------------------------
    # Ending
    # ------------------------------------------------------------------

    def end_round(self) -> Optional[RoundResult]:
        """
        Finish the active session and announce the result.

        Returns:
            RoundResult, or None if no session is active. Ending an already
            ended session returns the existing result.
        """
        session = self._session
        if session is None:
            return None
        if session.phase is SessionPhase.ENDED:
            return self._result

        if self._timer is not None:
            self._timer.stop()
        self.scheduler.new_generation()
        session.phase = SessionPhase.ENDED

        scores = {player_id: session.player(player_id).score for player_id in PLAYER_IDS}
        winner = determine_winner(scores)
        result = RoundResult(
            winner=winner,
            scores=scores,
            missed_questions={
                player_id: list(session.player(player_id).review_misses) for player_id in PLAYER_IDS
            },
            messages=self._result_messages(winner),
            mode=session.mode,
        )
        self._result = result

        self.logger.info(
            f"Session {session.generation} ended: winner={winner} scores={scores}",
            extra={
                'event_type': 'session_ended',
                'generation': session.generation,
                'winner': winner,
                'timestamp': time.time()
            }
        )
        self.signals.emit(sig.ROUND_ENDED, result=result)
        return result

    def _result_messages(self, winner: str) -> Dict[str, str]:
        messages = self.content.messages
        if winner == DRAW:
            return {player_id: self._pick(messages.draw) for player_id in PLAYER_IDS}
        loser = "p2" if winner == "p1" else "p1"
        return {winner: self._pick(messages.win), loser: self._pick(messages.lose)}

    def _pick(self, options) -> str:
        return self._rng.choice(options) if options else ""

    def show_menu(self) -> None:
        """Abandon the current session, if any, and return to the idle state."""
        self._abandon_session()
        self.scheduler.new_generation()
        self._session = None
        self._result = None
        self._turns.clear()

    def _abandon_session(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        if self._session is not None and self._session.phase is not SessionPhase.ENDED:
            self.logger.info(f"Abandoning session {self._session.generation}")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def phase(self) -> SessionPhase:
        return self._session.phase if self._session is not None else SessionPhase.IDLE

    @property
    def result(self) -> Optional[RoundResult]:
        return self._result

    @property
    def rules(self) -> Optional[ScoringRules]:
        return self._rules

    @property
    def timer(self) -> Optional[RaceTimer]:
        return self._timer

    @property
    def practice_limit(self) -> Optional[int]:
        """Question count that ends a bounded practice session, or None."""
        session = self._session
        if session is None or session.mode is not GameMode.PRACTICE:
            return None
        return self._settings.max_questions or session.mode_settings.max_questions

    def current_turn(self, slot: str) -> Optional[TurnRender]:
        """Last render request issued for a slot."""
        return self._turns.get(slot)

    def snapshot(self) -> Dict[str, Any]:
        """
        Plain-dict view of the session for presentation layers.

        Returns:
            Dictionary with phase and per-player state; only the phase when idle
        """
        session = self._session
        if session is None:
            return {'phase': SessionPhase.IDLE.value}

        return {
            'phase': session.phase.value,
            'mode': session.mode.value,
            'level_id': session.level_id,
            'generation': session.generation,
            'target_score': session.target_score,
            'timer': session.timer,
            'first_solver': session.first_solver,
            'players': {
                player_id: {
                    'score': player.score,
                    'combo_streak': player.combo_streak,
                    'wrong_streak': player.wrong_streak,
                    'locked': player.locked,
                    'answered': player.answered,
                    'question_id': player.current_question.id if player.current_question else None,
                    'deck_remaining': len(player.deck),
                    'missed': [q.id for q in player.missed_history],
                }
                for player_id, player in session.players.items()
            },
        }
