"""
Per-player question decks with no-repeat-until-exhausted cycling.
"""
import logging
import random
from typing import List, Optional

from .models import GameMode, Question, Session

logger = logging.getLogger(__name__)

# Chance that practice mode replays a previously missed question
MISSED_REPLAY_PROBABILITY = 0.5


class DeckManager:
    """Handles question selection and deck shuffling for a session."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the deck manager.

        Args:
            rng: Random source, injectable for reproducible sessions
        """
        self._rng = rng or random.Random()

    def shuffle_questions(self, questions) -> List[Question]:
        """
        Return a uniformly shuffled copy of the questions.

        Args:
            questions: Questions to shuffle

        Returns:
            New list with questions in random order
        """
        shuffled = list(questions)
        self._rng.shuffle(shuffled)
        return shuffled

    def build_decks(self, session: Session) -> None:
        """Fill every player's deck with a fresh shuffle of the session's question set."""
        for player in session.players.values():
            player.deck = self.shuffle_questions(session.question_set.questions)

    def deck_key(self, session: Session, player_id: str) -> str:
        """Versus mode plays one shared deck, kept on p1."""
        if session.mode is GameMode.VERSUS:
            return "p1"
        return player_id

    def next_question(self, session: Session, player_id: str) -> Question:
        """
        Draw the next question for a player.

        Practice mode samples with replacement and replays missed questions
        half of the time. The other modes pop from the player's deck and
        reshuffle the full set only once the deck is exhausted, so no question
        repeats within a cycle.

        Args:
            session: Active session
            player_id: "p1", "p2" or the solo slot

        Returns:
            The next Question

        Raises:
            ValueError: If the session's question set is empty
        """
        questions = session.question_set.questions
        if not questions:
            raise ValueError(f"Question set '{session.question_set.id}' is empty")

        player = session.player(player_id)

        if session.mode is GameMode.PRACTICE:
            if player.missed_history and self._rng.random() < MISSED_REPLAY_PROBABILITY:
                question = self._rng.choice(player.missed_history)
                logger.debug(f"Replaying missed question {question.id}")
                return question
            return self._rng.choice(questions)

        owner = session.player(self.deck_key(session, player.player_id))
        if not owner.deck:
            owner.deck = self.shuffle_questions(questions)
            logger.debug(
                f"Deck for {owner.player_id} refilled with {len(owner.deck)} questions"
            )
        return owner.deck.pop()
