"""
Named signals emitted by the rules engine for presentation and audio layers.
"""
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

TURN_READY = "turnReady"
COMBO_STRUCK = "comboStruck"
ANSWER_ACCEPTED = "answerAccepted"
ANSWER_REJECTED_PENALTY = "answerRejectedPenalty"
PLAYER_UNLOCKED = "playerUnlocked"
COUNTDOWN_STEP = "countdownStep"
COUNTDOWN_WARNING = "countdownWarning"
TIMER_TICK = "timerTick"
TIMER_URGENT = "timerUrgent"
TIMER_EXPIRED = "timerExpired"
CONTENT_DEFECT = "contentDefect"
ROUND_ENDED = "roundEnded"

ALL_SIGNALS = (
    TURN_READY,
    COMBO_STRUCK,
    ANSWER_ACCEPTED,
    ANSWER_REJECTED_PENALTY,
    PLAYER_UNLOCKED,
    COUNTDOWN_STEP,
    COUNTDOWN_WARNING,
    TIMER_TICK,
    TIMER_URGENT,
    TIMER_EXPIRED,
    CONTENT_DEFECT,
    ROUND_ENDED,
)


class SignalBus:
    """Synchronous publish/subscribe hub for engine signals."""

    def __init__(self):
        self._handlers: Dict[str, List[Callable[..., Any]]] = {name: [] for name in ALL_SIGNALS}

    def connect(self, name: str, handler: Callable[..., Any]) -> None:
        """
        Subscribe a handler to a signal.

        Args:
            name: One of ALL_SIGNALS
            handler: Called with the signal payload as keyword arguments

        Raises:
            ValueError: If the signal name is unknown
        """
        if name not in self._handlers:
            raise ValueError(f"Unknown signal: {name}")
        self._handlers[name].append(handler)

    def disconnect(self, name: str, handler: Callable[..., Any]) -> bool:
        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def emit(self, name: str, **payload: Any) -> None:
        """Deliver a signal to every subscribed handler, in subscription order."""
        for handler in list(self._handlers.get(name, ())):
            try:
                handler(**payload)
            except Exception:
                logger.exception(f"Handler for signal {name} failed")
