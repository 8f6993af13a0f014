"""
Unit tests for DistractorSelector option building.
"""
import logging
import random
import unittest

from quizflow.distractors import OPTION_COUNT, DistractorSelector
from quizflow.models import Question
from tests.test_fixtures import TestFixtures


class TestDistractorSelector(unittest.TestCase):
    """Test cases for same-category distractor selection."""

    def setUp(self):
        """Set up test fixtures."""
        self.content = TestFixtures.create_content_bundle()
        self.selector = DistractorSelector(self.content, random.Random(3))
        self.europe = self.content.question_sets["europe"]

        # Suppress content defect errors during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_four_options_with_correct_once(self):
        """Test that a full category yields four options containing the answer exactly once."""
        for _ in range(25):
            for question in self.europe.questions:
                option_set = self.selector.build_options(question, self.europe)

                ids = [option.id for option in option_set.options]
                self.assertEqual(len(ids), OPTION_COUNT)
                self.assertEqual(ids.count(question.correct_answer_id), 1)
                self.assertEqual(len(set(ids)), OPTION_COUNT)
                self.assertTrue(option_set.complete)

    def test_distractors_share_category(self):
        """Test that question-level pools are used and other categories are excluded."""
        mixed = self.content.question_sets["mixed"]
        question = mixed.questions[0]

        for _ in range(25):
            option_set = self.selector.build_options(question, mixed)
            for option in option_set.options:
                self.assertEqual(option.category, "capital")
                self.assertNotIn(option.id, {"seine", "rhine", "danube"})

    def test_set_pools_used_when_question_has_none(self):
        """Test the fallback to the question set's pools."""
        question = self.europe.questions[0]
        self.assertEqual(question.answer_pool_ids, ())

        option_set = self.selector.build_options(question, self.europe)
        europe_ids = {item.id for item in self.content.answer_pools["capitals_eu"].items}

        for option in option_set.options:
            self.assertIn(option.id, europe_ids)

    def test_order_is_shuffled(self):
        """Test that the correct answer does not always land in the same slot."""
        question = self.europe.questions[0]
        positions = set()
        for _ in range(40):
            ids = [o.id for o in self.selector.build_options(question, self.europe).options]
            positions.add(ids.index(question.correct_answer_id))

        self.assertGreater(len(positions), 1)

    def test_insufficient_distractors_reports_defect(self):
        """Test that a small category degrades to fewer options instead of failing."""
        rivers = self.content.question_sets["rivers"]
        question = rivers.questions[0]

        option_set = self.selector.build_options(question, rivers)

        self.assertEqual(len(option_set.options), 3)
        self.assertIn("seine", [o.id for o in option_set.options])
        self.assertIsNotNone(option_set.defect)
        self.assertEqual(option_set.defect.distractors_found, 2)
        self.assertEqual(option_set.defect.category, "river")
        self.assertFalse(option_set.complete)

    def test_unknown_correct_answer_reports_defect(self):
        """Test that an unresolvable answer id yields no options and a defect."""
        question = Question("ghost", "Atlantis", "atlantis_city")

        option_set = self.selector.build_options(question, self.europe)

        self.assertEqual(option_set.options, ())
        self.assertEqual(option_set.defect.question_id, "ghost")


if __name__ == '__main__':
    unittest.main()
