"""
Option building: the correct answer plus same-category distractors.
"""
import logging
import random
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ContentDefect
from .models import AnswerItem, ContentBundle, Question, QuestionSet

logger = logging.getLogger(__name__)

OPTION_COUNT = 4
DISTRACTOR_COUNT = OPTION_COUNT - 1


@dataclass(frozen=True)
class OptionSet:
    """Options for one question; ``defect`` is set when fewer than four could be built."""
    options: Tuple[AnswerItem, ...]
    defect: Optional[ContentDefect] = None

    @property
    def complete(self) -> bool:
        return self.defect is None


class DistractorSelector:
    """Picks plausible wrong options from the correct answer's category."""

    def __init__(self, content: ContentBundle, rng: Optional[random.Random] = None):
        self._content = content
        self._rng = rng or random.Random()

    def build_options(self, question: Question, question_set: QuestionSet) -> OptionSet:
        """
        Build the shuffled option list for a question.

        Args:
            question: Question being rendered
            question_set: Set the question belongs to, for its default pools

        Returns:
            OptionSet holding the correct answer exactly once. Authoring
            problems are reported on ``defect`` instead of raised.
        """
        correct = self._content.resolve_answer(question.correct_answer_id)
        if correct is None:
            defect = ContentDefect(
                question_id=question.id,
                reason=f"correct answer '{question.correct_answer_id}' not found in any pool",
            )
            logger.error(f"Content defect in question {question.id}: {defect.reason}")
            return OptionSet(options=(), defect=defect)

        pool_ids = question_set.pool_ids_for(question)
        if not pool_ids:
            logger.error(f"Question {question.id} has no answer pools")

        candidates = [
            item for item in self._content.items_in_category(correct.category, pool_ids)
            if item.id != correct.id
        ]
        # The same item can sit in two referenced pools
        unique = list({item.id: item for item in candidates}.values())
        self._rng.shuffle(unique)
        distractors = unique[:DISTRACTOR_COUNT]

        options = [correct] + distractors
        self._rng.shuffle(options)

        defect = None
        if len(distractors) < DISTRACTOR_COUNT:
            defect = ContentDefect(
                question_id=question.id,
                reason=f"only {len(distractors)} distractors in category '{correct.category}'",
                category=correct.category,
                distractors_found=len(distractors),
            )
            logger.error(f"Content defect in question {question.id}: {defect.reason}")

        return OptionSet(options=tuple(options), defect=defect)
