"""
Unit tests for the DeckManager class.
"""
import random
import unittest
from collections import Counter

from quizflow.deck import DeckManager
from quizflow.models import GameMode, ModeSettings, Session
from tests.test_fixtures import TestFixtures


class TestDeckManager(unittest.TestCase):
    """Test cases for deck cycling and practice sampling."""

    def setUp(self):
        """Set up test fixtures."""
        self.deck_manager = DeckManager(random.Random(7))
        self.question_sets = TestFixtures.create_question_sets()
        self.europe = self.question_sets["europe"]

    def _session(self, mode: GameMode, set_id: str = "europe") -> Session:
        session = Session(
            mode=mode,
            level_id="lvl",
            question_set=self.question_sets[set_id],
            mode_settings=ModeSettings(),
        )
        self.deck_manager.build_decks(session)
        return session

    def test_shuffle_questions_leaves_input_untouched(self):
        """Test that shuffling returns a permutation and leaves the input untouched."""
        before = list(self.europe.questions)
        shuffled = self.deck_manager.shuffle_questions(self.europe.questions)

        self.assertEqual(list(self.europe.questions), before)
        self.assertEqual(sorted(q.id for q in shuffled), sorted(q.id for q in before))

    def test_build_decks_fills_every_player(self):
        """Test that both players start with a full deck."""
        session = self._session(GameMode.SPEED)

        for player in session.players.values():
            self.assertEqual(len(player.deck), len(self.europe.questions))

    def test_no_repeat_within_cycle(self):
        """Test that K draws from a K-question deck are all distinct."""
        session = self._session(GameMode.SPEED)
        size = len(self.europe.questions)

        for _ in range(3):
            cycle = [self.deck_manager.next_question(session, "p1").id for _ in range(size)]
            self.assertEqual(len(set(cycle)), size)

    def test_deck_exhaustion_refills(self):
        """Test that N draws cover every question at least floor(N/size) times."""
        session = self._session(GameMode.SPEED)
        size = len(self.europe.questions)
        draws = size * 4 + 3

        counts = Counter(self.deck_manager.next_question(session, "p2").id for _ in range(draws))

        self.assertEqual(sum(counts.values()), draws)
        for question in self.europe.questions:
            self.assertGreaterEqual(counts[question.id], draws // size)

    def test_refill_only_when_empty(self):
        """Test that the deck shrinks by one per draw and refills once exhausted."""
        session = self._session(GameMode.SPEED)
        player = session.players["p1"]
        size = len(self.europe.questions)

        for expected_remaining in range(size - 1, -1, -1):
            self.deck_manager.next_question(session, "p1")
            self.assertEqual(len(player.deck), expected_remaining)

        self.deck_manager.next_question(session, "p1")
        self.assertEqual(len(player.deck), size - 1)

    def test_speed_decks_are_independent(self):
        """Test that drawing for p1 does not consume p2's deck."""
        session = self._session(GameMode.SPEED)

        self.deck_manager.next_question(session, "p1")
        self.deck_manager.next_question(session, "p1")

        self.assertEqual(len(session.players["p2"].deck), len(self.europe.questions))

    def test_versus_shares_p1_deck(self):
        """Test that versus draws always come from p1's deck."""
        session = self._session(GameMode.VERSUS)
        size = len(self.europe.questions)

        self.deck_manager.next_question(session, "p2")

        self.assertEqual(len(session.players["p1"].deck), size - 1)
        self.assertEqual(len(session.players["p2"].deck), size)
        self.assertEqual(self.deck_manager.deck_key(session, "p2"), "p1")

    def test_single_question_set_repeats(self):
        """Test that a one-question set keeps serving its only question."""
        session = self._session(GameMode.SPEED, "single")

        ids = {self.deck_manager.next_question(session, "p1").id for _ in range(5)}

        self.assertEqual(ids, {"pt"})

    def test_practice_without_misses_draws_from_full_set(self):
        """Test that practice draws come from the full set when nothing was missed."""
        session = self._session(GameMode.PRACTICE)
        valid_ids = {q.id for q in self.europe.questions}

        for _ in range(50):
            self.assertIn(self.deck_manager.next_question(session, "sp").id, valid_ids)

    def test_practice_replays_missed_questions(self):
        """Test that roughly half of practice draws replay a missed question."""
        session = self._session(GameMode.PRACTICE)
        missed = self.europe.questions[0]
        session.player("sp").remember_missed(missed)

        draws = [self.deck_manager.next_question(session, "sp").id for _ in range(400)]
        replay_share = draws.count(missed.id) / len(draws)

        # 0.5 replay chance plus 1/5 of the remaining uniform draws
        self.assertGreater(replay_share, 0.45)
        self.assertLess(replay_share, 0.75)

    def test_empty_question_set_raises(self):
        """Test that drawing from an empty set is refused."""
        session = self._session(GameMode.SPEED, "empty")

        with self.assertRaises(ValueError):
            self.deck_manager.next_question(session, "p1")


if __name__ == '__main__':
    unittest.main()
