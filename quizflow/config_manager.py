"""
Configuration manager for QuizFlow engine timing and session options.
"""
import logging
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import GameSettings


class ConfigManager:
    """Manages engine configuration settings and session parameters."""

    # Default configuration values
    DEFAULT_THEMES_DIRECTORY = "./themes/"
    DEFAULT_BOUNDED_QUESTION_COUNT = 20

    # Validation limits
    MIN_DELAY_MS = 0
    MAX_DELAY_MS = 10000
    MIN_LOCKOUT_MS = 100
    MAX_LOCKOUT_MS = 30000
    MIN_LOCKOUT_GROWTH = 1.0
    MAX_LOCKOUT_GROWTH = 5.0
    MIN_TICK_MS = 50
    MAX_TICK_MS = 5000
    MIN_COUNTDOWN = 0
    MAX_COUNTDOWN = 10
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 200

    DELAY_SETTINGS = (
        "practice_next_delay_ms",
        "versus_next_delay_ms",
        "speed_next_delay_ms",
        "end_delay_ms",
        "countdown_step_ms",
    )

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._settings = GameSettings()

    def get_game_settings(self) -> GameSettings:
        """
        Get a copy of the current game settings.

        Returns:
            GameSettings object with current configuration
        """
        return replace(self._settings)

    def _reject(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {
            'success': False,
            'error': error_msg,
            'user_message': user_message
        }

    def _accept(self, message: str, user_message: str) -> Dict[str, Any]:
        self.logger.info(message)
        return {
            'success': True,
            'message': message,
            'user_message': user_message
        }

    def _check_int(self, name: str, value: Any, minimum: int, maximum: int) -> Optional[Dict[str, Any]]:
        """Return a failure result when value is not an int inside [minimum, maximum]."""
        # bool is an int subclass but never a valid count or duration
        if not isinstance(value, int) or isinstance(value, bool):
            return self._reject(
                f"{name} must be an integer, got {type(value).__name__}",
                f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            )
        if value < minimum:
            return self._reject(
                f"{name} must be at least {minimum}",
                f"❌ Too small: Minimum {name} is {minimum}"
            )
        if value > maximum:
            return self._reject(
                f"{name} cannot exceed {maximum}",
                f"❌ Too large: Maximum {name} is {maximum}"
            )
        return None

    def set_delay(self, name: str, delay_ms: int) -> Dict[str, Any]:
        """
        Set one of the inter-question, round-end or countdown delays.

        Args:
            name: Setting name, one of DELAY_SETTINGS
            delay_ms: Delay in milliseconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if name not in self.DELAY_SETTINGS:
            return self._reject(
                f"Unknown delay setting: {name}",
                f"❌ Unknown delay: {name}"
            )

        failure = self._check_int(name, delay_ms, self.MIN_DELAY_MS, self.MAX_DELAY_MS)
        if failure:
            return failure

        setattr(self._settings, name, delay_ms)
        return self._accept(
            f"{name} set to {delay_ms}ms",
            f"✅ {name} set to {delay_ms}ms"
        )

    def set_lockout(self, base_ms: int, growth: float, max_ms: int) -> Dict[str, Any]:
        """
        Set the wrong-answer lockout backoff parameters.

        Lockout after the n-th consecutive wrong answer lasts
        min(max_ms, base_ms * growth ** (n - 1)).

        Args:
            base_ms: Lockout after the first wrong answer
            growth: Multiplier applied for every further wrong answer
            max_ms: Upper bound for any lockout

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        failure = (
            self._check_int("base_lockout_ms", base_ms, self.MIN_LOCKOUT_MS, self.MAX_LOCKOUT_MS)
            or self._check_int("max_lockout_ms", max_ms, self.MIN_LOCKOUT_MS, self.MAX_LOCKOUT_MS)
        )
        if failure:
            return failure

        if not isinstance(growth, (int, float)) or isinstance(growth, bool):
            return self._reject(
                f"lockout_growth must be a number, got {type(growth).__name__}",
                f"❌ Invalid input: Expected a number, got {type(growth).__name__}"
            )

        if not self.MIN_LOCKOUT_GROWTH <= growth <= self.MAX_LOCKOUT_GROWTH:
            return self._reject(
                f"lockout_growth must be between {self.MIN_LOCKOUT_GROWTH} and {self.MAX_LOCKOUT_GROWTH}",
                f"❌ Lockout growth out of range: {growth}"
            )

        if base_ms > max_ms:
            return self._reject(
                f"base_lockout_ms ({base_ms}) cannot exceed max_lockout_ms ({max_ms})",
                "❌ Base lockout must not be longer than the maximum lockout"
            )

        self._settings.base_lockout_ms = base_ms
        self._settings.lockout_growth = float(growth)
        self._settings.max_lockout_ms = max_ms
        return self._accept(
            f"Lockout set to base={base_ms}ms growth={growth} max={max_ms}ms",
            f"✅ Lockout starts at {base_ms}ms and caps at {max_ms}ms"
        )

    def set_tick_interval(self, tick_ms: int) -> Dict[str, Any]:
        """
        Set the race timer tick interval.

        Args:
            tick_ms: Milliseconds between timer ticks

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        failure = self._check_int("tick_interval_ms", tick_ms, self.MIN_TICK_MS, self.MAX_TICK_MS)
        if failure:
            return failure

        self._settings.tick_interval_ms = tick_ms
        return self._accept(
            f"Timer tick interval set to {tick_ms}ms",
            f"✅ Timer ticks every {tick_ms}ms"
        )

    def set_countdown_from(self, start: int) -> Dict[str, Any]:
        """
        Set the first number of the pre-round countdown (0 skips straight to GO).

        Args:
            start: Countdown start value

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        failure = self._check_int("countdown_from", start, self.MIN_COUNTDOWN, self.MAX_COUNTDOWN)
        if failure:
            return failure

        self._settings.countdown_from = start
        return self._accept(
            f"Countdown set to start from {start}",
            f"✅ Countdown starts at {start}"
        )

    def set_max_questions(self, count: Optional[int]) -> Dict[str, Any]:
        """
        Bound practice sessions to a fixed number of questions.

        Args:
            count: Number of questions, or None for unbounded practice

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if count is None:
            self._settings.max_questions = None
            return self._accept(
                "Practice sessions are unbounded",
                "✅ Practice continues until you leave"
            )

        failure = self._check_int("max_questions", count, self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT)
        if failure:
            return failure

        self._settings.max_questions = count
        return self._accept(
            f"Practice sessions bounded to {count} questions",
            f"✅ Practice ends after {count} questions"
        )

    def enable_bounded_practice(self) -> Dict[str, Any]:
        """Bound practice sessions using the default question count."""
        return self.set_max_questions(self.DEFAULT_BOUNDED_QUESTION_COUNT)

    def set_themes_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory holding theme folders.

        Args:
            directory: Path to the themes directory

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(directory, str):
            return self._reject(
                f"Themes directory must be a string, got {type(directory).__name__}",
                f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            )

        if not directory.strip():
            return self._reject(
                "Themes directory cannot be empty",
                "❌ Directory path cannot be empty"
            )

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            return self._reject(
                f"Invalid directory path format: {e}",
                f"❌ Invalid path format: {directory}"
            )

        self._settings.themes_directory = normalized_path
        return self._accept(
            f"Themes directory set to {normalized_path}",
            f"✅ Themes directory set to {normalized_path}"
        )

    def get_themes_directory(self) -> str:
        return self._settings.themes_directory

    def load_from_dict(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the ``game`` section of a configuration file.

        Unknown keys are ignored; invalid values keep their previous setting.

        Args:
            config: Parsed configuration dictionary

        Returns:
            List of error messages for rejected values
        """
        game = config.get('game', {}) or {}
        errors: List[str] = []

        results = []
        for name in self.DELAY_SETTINGS:
            if name in game:
                results.append(self.set_delay(name, game[name]))

        if any(key in game for key in ("base_lockout_ms", "lockout_growth", "max_lockout_ms")):
            results.append(self.set_lockout(
                game.get("base_lockout_ms", self._settings.base_lockout_ms),
                game.get("lockout_growth", self._settings.lockout_growth),
                game.get("max_lockout_ms", self._settings.max_lockout_ms),
            ))

        if "tick_interval_ms" in game:
            results.append(self.set_tick_interval(game["tick_interval_ms"]))
        if "countdown_from" in game:
            results.append(self.set_countdown_from(game["countdown_from"]))
        if "max_questions" in game:
            results.append(self.set_max_questions(game["max_questions"]))
        if "themes_directory" in game:
            results.append(self.set_themes_directory(game["themes_directory"]))

        for result in results:
            if not result['success']:
                errors.append(result['error'])

        if errors:
            self.logger.warning(f"Ignored {len(errors)} invalid configuration values")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = GameSettings(themes_directory=self.DEFAULT_THEMES_DIRECTORY)
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        settings = self._settings

        def flag(issue: str) -> None:
            validation_result["valid"] = False
            validation_result["issues"].append(issue)

        for name in self.DELAY_SETTINGS:
            value = getattr(settings, name)
            if not isinstance(value, int) or not self.MIN_DELAY_MS <= value <= self.MAX_DELAY_MS:
                flag(f"Invalid delay {name}: {value}")

        if settings.base_lockout_ms > settings.max_lockout_ms:
            flag(f"Invalid lockout: base {settings.base_lockout_ms} exceeds max {settings.max_lockout_ms}")

        if not self.MIN_LOCKOUT_GROWTH <= settings.lockout_growth <= self.MAX_LOCKOUT_GROWTH:
            flag(f"Invalid lockout growth: {settings.lockout_growth}")

        if not self.MIN_TICK_MS <= settings.tick_interval_ms <= self.MAX_TICK_MS:
            flag(f"Invalid tick interval: {settings.tick_interval_ms}")

        if settings.max_questions is not None and (
            settings.max_questions < self.MIN_QUESTION_COUNT
            or settings.max_questions > self.MAX_QUESTION_COUNT
        ):
            flag(f"Invalid question count: {settings.max_questions}")

        if not isinstance(settings.themes_directory, str) or not settings.themes_directory.strip():
            flag(f"Invalid themes directory: {settings.themes_directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._settings
        question_count_str = (
            str(settings.max_questions)
            if settings.max_questions is not None
            else "unbounded"
        )

        return (
            f"Game Settings:\n"
            f"• Practice length: {question_count_str}\n"
            f"• Lockout: {settings.base_lockout_ms}ms x{settings.lockout_growth} "
            f"(max {settings.max_lockout_ms}ms)\n"
            f"• Next question delay: practice {settings.practice_next_delay_ms}ms, "
            f"versus {settings.versus_next_delay_ms}ms, speed {settings.speed_next_delay_ms}ms\n"
            f"• Countdown: from {settings.countdown_from}\n"
            f"• Themes Directory: {settings.themes_directory}"
        )

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self._settings)
