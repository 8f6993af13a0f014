#!/usr/bin/env python3
"""
QuizFlow - Main Entry Point

Loads a theme and plays one round between two simulated players, printing
the engine's signals to the console. Useful for checking new theme content
end to end.

Usage:
    python main.py [theme] [mode] [level]

Configuration:
    Engine timing, logging and the default theme are read from config.json.
"""

import asyncio
import json
import logging
import random
import sys
from pathlib import Path

from quizflow import signals as sig
from quizflow.config_manager import ConfigManager
from quizflow.content_loader import ContentLoader
from quizflow.errors import ContentError
from quizflow.round_controller import RoundController
from quizflow.scheduler import AsyncioScheduler

# Simulated players answer correctly this often
SIMULATED_ACCURACY = 0.75
# Upper bound for rounds that have no natural end (unbounded practice)
DEMO_TIMEOUT_SECONDS = 60


def load_config():
    """Load configuration from config.json file."""
    config_path = Path("config.json")

    if not config_path.exists():
        print("⚠️ config.json not found, using defaults")
        return {}

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
        return config
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in config.json: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error loading config.json: {e}")
        sys.exit(1)


def setup_logging_from_config(config):
    """Set up logging based on configuration."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, log_config.get('level', 'INFO').upper())
    log_directory = Path(log_config.get('log_directory', './logs/'))

    # Create logs directory
    log_directory.mkdir(exist_ok=True)

    # Configure logging
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "quizflow.log", encoding='utf-8')
        ]
    )


def attach_console_output(controller: RoundController, finished: asyncio.Event):
    """Print engine signals and let simulated players answer each turn."""
    loop = asyncio.get_running_loop()

    def on_countdown(value, label):
        print(f"  {label}")

    def on_turn(turn):
        print(f"[{turn.player_slot}] {turn.question.content}  ({len(turn.options)} options)")
        if not turn.options:
            return
        correct = turn.question.correct_answer_id
        wrong = [o.id for o in turn.options if o.id != correct]
        choice = correct if random.random() < SIMULATED_ACCURACY or not wrong else random.choice(wrong)
        loop.call_later(random.uniform(0.3, 1.5), answer, turn.player_slot, choice, correct)

    def answer(slot, answer_id, correct):
        result = controller.submit_answer(slot, answer_id)
        if result.correct is False:
            # Try the right answer once the lockout is over
            loop.call_later(result.lockout_ms / 1000 + 0.2, answer, slot, correct, correct)

    def on_accepted(player, delta, score):
        print(f"  ✅ {player} +{delta} -> {score}")

    def on_penalty(player, delta, applied, score, broken, lockout_ms):
        mark = " 💥" if broken else ""
        print(f"  ❌ {player} {delta}{mark} -> {score} (locked {lockout_ms}ms)")

    def on_warning(value):
        print(f"  ⏰ {value}s left!")

    def on_ended(result):
        print(f"🏁 Winner: {result.winner}  scores: {result.scores}")
        for player_id, message in result.messages.items():
            print(f"  {player_id}: {message}")
        finished.set()

    controller.signals.connect(sig.COUNTDOWN_STEP, on_countdown)
    controller.signals.connect(sig.TURN_READY, on_turn)
    controller.signals.connect(sig.ANSWER_ACCEPTED, on_accepted)
    controller.signals.connect(sig.ANSWER_REJECTED_PENALTY, on_penalty)
    controller.signals.connect(sig.COUNTDOWN_WARNING, on_warning)
    controller.signals.connect(sig.ROUND_ENDED, on_ended)


async def run_demo_with_config():
    """Run one simulated round with configuration."""
    config = load_config()
    setup_logging_from_config(config)

    config_manager = ConfigManager()
    for error in config_manager.load_from_dict(config):
        print(f"⚠️ {error}")

    loader = ContentLoader(config_manager.get_themes_directory())
    demo_config = config.get('demo', {})
    args = sys.argv[1:]
    theme_id = args[0] if len(args) > 0 else demo_config.get('theme')
    if not theme_id:
        themes = loader.list_themes()
        if not themes:
            print(f"❌ No themes found in {loader.themes_directory}")
            sys.exit(1)
        theme_id = themes[0]

    content = loader.load_content(theme_id)
    mode = args[1] if len(args) > 1 else demo_config.get('mode', 'speed')
    level_id = args[2] if len(args) > 2 else demo_config.get('level', next(iter(content.levels)))

    print(f"🎮 {content.name}: {mode} on level {level_id}")
    print(config_manager.get_settings_summary())

    controller = RoundController(content, config_manager, AsyncioScheduler())
    finished = asyncio.Event()
    attach_console_output(controller, finished)

    controller.start_session(mode, level_id)
    try:
        await asyncio.wait_for(finished.wait(), timeout=DEMO_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        controller.end_round()


if __name__ == "__main__":
    try:
        print("🤖 Starting QuizFlow demo...")
        asyncio.run(run_demo_with_config())
    except KeyboardInterrupt:
        print("\n👋 Demo stopped by user")
    except ContentError as e:
        print(f"❌ {e}")
        sys.exit(1)
