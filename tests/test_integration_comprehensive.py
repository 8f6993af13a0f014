"""
Comprehensive integration tests for QuizFlow.
Tests complete rounds played on content loaded from disk.
"""
import asyncio
import logging
import random
import shutil
import tempfile
import unittest

from quizflow import signals as sig
from quizflow.config_manager import ConfigManager
from quizflow.content_loader import ContentLoader
from quizflow.models import SessionPhase
from quizflow.round_controller import RoundController
from quizflow.scheduler import AsyncioScheduler
from quizflow.signals import SignalBus
from tests.test_fixtures import (
    COUNTDOWN_MS,
    ManualScheduler,
    SignalRecorder,
    TestFixtures,
    wrong_option_id,
)


class TestCompleteRoundFlow(unittest.TestCase):
    """Test complete rounds from theme loading to the final result."""

    def setUp(self):
        """Set up integration test environment."""
        self.temp_dir = tempfile.mkdtemp()
        TestFixtures.create_temp_theme(self.temp_dir, "waves")

        self.config_manager = ConfigManager()
        self.loader = ContentLoader(self.temp_dir)
        self.content = self.loader.load_content("waves")
        self.scheduler = ManualScheduler()
        self.bus = SignalBus()
        self.recorder = SignalRecorder(self.bus)
        self.controller = RoundController(
            self.content, self.config_manager, self.scheduler, self.bus, random.Random(11)
        )
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up test environment."""
        logging.disable(logging.NOTSET)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _correct(self, slot):
        turn = self.controller.current_turn(slot)
        return self.controller.submit_answer(slot, turn.question.correct_answer_id)

    def test_complete_versus_round(self):
        """Test a duel-configured theme played to its target score."""
        self.controller.start_session("duel", "lvl1")
        self.scheduler.advance(COUNTDOWN_MS)

        self.assertEqual(self._correct("p1").delta, 3)
        self.assertEqual(self._correct("p2").delta, 1)
        self.scheduler.advance(1000)
        self.assertEqual(self._correct("p1").score, 6)
        self.scheduler.advance(500)

        self.assertEqual(self.controller.phase, SessionPhase.ENDED)
        result = self.controller.result
        self.assertEqual(result.winner, "p1")
        self.assertEqual(result.scores, {"p1": 6, "p2": 1})
        self.assertEqual(result.messages, {"p1": "Bravo", "p2": "Try again"})

    def test_theme_thresholds_drive_scoring(self):
        """Test that combo and penalty thresholds come from the theme file."""
        self.controller.start_session("speed", "lvl1")
        self.scheduler.advance(COUNTDOWN_MS)

        for _ in range(3):
            self._correct("p1")
            self.scheduler.advance(500)
        self.assertEqual(len(self.recorder.of(sig.COMBO_STRUCK)), 1)

        results = []
        for _ in range(3):
            turn = self.controller.current_turn("p1")
            result = self.controller.submit_answer("p1", wrong_option_id(turn))
            results.append(result)
            self.scheduler.advance(result.lockout_ms)

        self.assertEqual([r.score for r in results], [2, 1, 0])
        self.assertEqual([r.broken for r in results], [False, False, True])
        self.assertEqual([r.lockout_ms for r in results], [800, 1200, 1800])
        self.assertEqual(results[2].delta, -3)

    def test_speed_round_warning_uses_theme_time(self):
        self.controller.start_session("speed", "lvl1")
        self.scheduler.advance(COUNTDOWN_MS + 20000)

        self.assertEqual(self.recorder.of(sig.COUNTDOWN_WARNING), [{"value": 7}])
        self.assertEqual(self.controller.phase, SessionPhase.ENDED)

    def test_defective_level_still_playable(self):
        """Test that a level whose category is too small degrades but keeps playing."""
        self.controller.start_session("practice", "lvl2")
        self.scheduler.advance(COUNTDOWN_MS)

        self.assertEqual(len(self.recorder.of(sig.CONTENT_DEFECT)), 1)
        turn = self.controller.current_turn("sp")
        self.assertEqual([o.id for o in turn.options], ["sine"])
        self.assertTrue(self._correct("sp").correct)

    def test_switching_sessions_mid_round(self):
        self.controller.start_session("speed", "lvl1")
        self.scheduler.advance(COUNTDOWN_MS + 2000)

        self.controller.start_session("duel", "lvl2")
        self.recorder.clear()
        self.scheduler.advance(COUNTDOWN_MS + 30000)

        self.assertEqual(self.controller.phase, SessionPhase.PLAYING)
        self.assertEqual(self.recorder.of(sig.TIMER_TICK), [])
        self.assertEqual(self.controller.session.target_score, 4)

    def test_configuration_from_file_applies(self):
        errors = self.config_manager.load_from_dict({
            'game': {'countdown_from': 1, 'base_lockout_ms': 400, 'max_questions': 1}
        })
        self.assertEqual(errors, [])

        self.controller.start_session("practice", "lvl1")
        self.scheduler.advance(2000)
        self.assertEqual(self.controller.phase, SessionPhase.PLAYING)

        turn = self.controller.current_turn("sp")
        wrong = self.controller.submit_answer("sp", wrong_option_id(turn))
        self.assertEqual(wrong.lockout_ms, 400)

        self.scheduler.advance(400)
        self._correct("sp")
        self.scheduler.advance(500)

        self.assertEqual(self.controller.phase, SessionPhase.ENDED)
        self.assertEqual(
            [q.id for q in self.controller.result.missed_questions["p1"]], [turn.question.id]
        )


class TestAsyncIntegration(unittest.IsolatedAsyncioTestCase):
    """Test rounds driven by the real event loop."""

    async def asyncSetUp(self):
        self.temp_dir = tempfile.mkdtemp()
        TestFixtures.create_temp_theme(self.temp_dir, "waves")
        self.content = ContentLoader(self.temp_dir).load_content("waves")

        self.config_manager = ConfigManager()
        for name in ConfigManager.DELAY_SETTINGS:
            self.config_manager.set_delay(name, 10)
        self.config_manager.set_countdown_from(0)
        logging.disable(logging.CRITICAL)

    async def asyncTearDown(self):
        logging.disable(logging.NOTSET)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    async def test_bounded_practice_on_event_loop(self):
        self.config_manager.set_max_questions(3)
        controller = RoundController(self.content, self.config_manager, AsyncioScheduler())
        loop = asyncio.get_running_loop()
        finished = asyncio.Event()
        results = []

        def on_turn(turn):
            loop.call_soon(controller.submit_answer, turn.player_slot, turn.question.correct_answer_id)

        def on_ended(result):
            results.append(result)
            finished.set()

        controller.signals.connect(sig.TURN_READY, on_turn)
        controller.signals.connect(sig.ROUND_ENDED, on_ended)

        controller.start_session("practice", "lvl1")
        await asyncio.wait_for(finished.wait(), timeout=2.0)

        self.assertEqual(results[0].scores, {"p1": 3, "p2": 0})
        self.assertEqual(controller.scheduler.pending_count, 0)

    async def test_speed_timer_on_event_loop(self):
        self.config_manager.set_tick_interval(50)
        controller = RoundController(self.content, self.config_manager, AsyncioScheduler())
        finished = asyncio.Event()
        controller.signals.connect(sig.ROUND_ENDED, lambda result: finished.set())

        controller.start_session("speed", "lvl1")
        await asyncio.wait_for(finished.wait(), timeout=3.0)

        self.assertTrue(controller.timer.is_expired)
        self.assertEqual(controller.result.winner, "draw")


if __name__ == '__main__':
    unittest.main()
