"""
Race timer for speed mode.
Counts down once per tick, emitting warning, urgency and expiry signals.
"""
import logging
import time
from typing import Any, Callable, Optional

from . import signals as sig
from .scheduler import DeferredTask, TaskScheduler
from .signals import SignalBus

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for race timer lifecycle events."""

    @staticmethod
    def log_timer_start(generation: int, time_limit: int) -> None:
        """Log timer countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Session {generation}, Limit {time_limit}s",
            extra={
                'event_type': 'timer_countdown_start',
                'generation': generation,
                'time_limit': time_limit,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(generation: int, remaining_time: int, total_duration: int) -> None:
        """Log timer update events (throttled to avoid spam)."""
        # Log only at specific intervals to avoid log spam
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100
            logger.debug(
                f"Timer lifecycle: UPDATE - Session {generation}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'generation': generation,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_warning(generation: int, remaining_time: int) -> None:
        logger.info(
            f"Timer lifecycle: WARNING - Session {generation}, {remaining_time}s left",
            extra={
                'event_type': 'timer_warning',
                'generation': generation,
                'remaining_time': remaining_time,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_completion(generation: int, completion_type: str, total_duration: int) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Session {generation}, Type {completion_type}, Duration {total_duration}s",
            extra={
                'event_type': 'timer_completed',
                'generation': generation,
                'completion_type': completion_type,
                'total_duration': total_duration,
                'timestamp': time.time()
            }
        )


class RaceTimer:
    """
    Monotonic integer countdown for speed mode.

    The timer never pauses: it runs until it reaches zero or is stopped when
    the session is abandoned. Each tick is a scheduled one-shot task, so
    stopping the session generation also silences any pending tick.
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        signals: SignalBus,
        time_limit: int = 30,
        warning_time: int = 5,
        urgent_time: int = 3,
        tick_interval_ms: int = 1000,
        on_expired: Optional[Callable[[], Any]] = None
    ):
        """
        Initialize the timer.

        Args:
            scheduler: Scheduler driving the ticks
            signals: Bus receiving timer signals
            time_limit: Starting value in seconds
            warning_time: Value at which the one-shot warning fires
            urgent_time: Values in (0, urgent_time] emit an urgency signal
            tick_interval_ms: Delay between ticks
            on_expired: Called once after the timer reaches zero
        """
        if time_limit <= 0:
            raise ValueError("time_limit must be positive")

        self._scheduler = scheduler
        self._signals = signals
        self._time_limit = time_limit
        self._warning_time = warning_time
        self._urgent_time = urgent_time
        self._tick_interval_ms = tick_interval_ms
        self._on_expired = on_expired

        self._remaining_time = time_limit
        self._running = False
        self._expired = False
        self._warned = False
        self._next_tick: Optional[DeferredTask] = None

    def start(self) -> None:
        """Start counting down from the configured limit."""
        self._remaining_time = self._time_limit
        self._running = True
        self._expired = False
        self._warned = False
        TimerLifecycleLogger.log_timer_start(self._scheduler.generation, self._time_limit)
        self._schedule_tick()

    def stop(self) -> None:
        """Stop the countdown without firing the expiry callback."""
        if not self._running:
            return
        self._running = False
        self._scheduler.cancel(self._next_tick)
        self._next_tick = None
        TimerLifecycleLogger.log_timer_completion(
            self._scheduler.generation, "cancelled", self._time_limit
        )

    def _schedule_tick(self) -> None:
        self._next_tick = self._scheduler.schedule(self._tick_interval_ms, self.tick, name="timer_tick")

    def tick(self) -> None:
        """Advance the countdown by one step."""
        if not self._running:
            return

        self._remaining_time -= 1
        TimerLifecycleLogger.log_timer_update(
            self._scheduler.generation, self._remaining_time, self._time_limit
        )
        self._signals.emit(sig.TIMER_TICK, value=self._remaining_time, percent=self.percent_remaining)

        if self._remaining_time == self._warning_time and not self._warned:
            self._warned = True
            TimerLifecycleLogger.log_timer_warning(self._scheduler.generation, self._remaining_time)
            self._signals.emit(sig.COUNTDOWN_WARNING, value=self._remaining_time)

        if 0 < self._remaining_time <= self._urgent_time:
            self._signals.emit(sig.TIMER_URGENT, value=self._remaining_time)

        if self._remaining_time <= 0:
            self._remaining_time = 0
            self._running = False
            self._expired = True
            self._next_tick = None
            TimerLifecycleLogger.log_timer_completion(
                self._scheduler.generation, "natural_expiry", self._time_limit
            )
            self._signals.emit(sig.TIMER_EXPIRED)
            if self._on_expired is not None:
                self._on_expired()
            return

        self._schedule_tick()

    @property
    def percent_remaining(self) -> float:
        """Remaining time as a percentage of the limit."""
        return (self._remaining_time / self._time_limit) * 100

    @property
    def remaining_time(self) -> int:
        """Get remaining time in seconds."""
        return self._remaining_time

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_expired(self) -> bool:
        return self._expired
