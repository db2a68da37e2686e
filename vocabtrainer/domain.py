"""Session-scoped domain objects shared by question generation and sessions."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .models import QuestionView, ReviewItem, ReviewPairView, VocabularyItem


class Direction(str, Enum):
    WORD_TO_MEANING = "word-to-meaning"
    MEANING_TO_WORD = "meaning-to-word"


@dataclass(frozen=True)
class QuizQuestion:
    """One directional prompt for a vocabulary item."""

    item: VocabularyItem
    prompt: str
    correct_answer: str
    direction: Direction

    def to_view(self) -> QuestionView:
        return QuestionView(prompt=self.prompt, direction=self.direction.value, item_id=self.item.id)


@dataclass(frozen=True)
class ReviewQuestion(QuizQuestion):
    """Directional prompt that belongs to a both-directions review pair."""

    pair_id: str = ""

    def to_view(self) -> QuestionView:
        view = super().to_view()
        return view.model_copy(update={"pair_id": self.pair_id})


@dataclass(frozen=True)
class SrsProgression:
    from_stage: int
    to_stage: int


@dataclass(frozen=True)
class ReviewPair:
    """Verdicts for both directions of one review item.

    Each answer produces a new pair via :meth:`record`, so earlier snapshots
    stay valid for undo.
    """

    item: ReviewItem
    word_to_meaning: Optional[bool] = None
    meaning_to_word: Optional[bool] = None
    completed: bool = False
    srs_progression: Optional[SrsProgression] = None

    @property
    def pair_id(self) -> str:
        return pair_id_for(self.item.id)

    @property
    def both_answered(self) -> bool:
        return self.word_to_meaning is not None and self.meaning_to_word is not None

    @property
    def both_correct(self) -> bool:
        return self.word_to_meaning is True and self.meaning_to_word is True

    def record(self, direction: Direction, is_correct: bool) -> "ReviewPair":
        if direction is Direction.WORD_TO_MEANING:
            updated = replace(self, word_to_meaning=is_correct)
        else:
            updated = replace(self, meaning_to_word=is_correct)
        return replace(updated, completed=updated.both_answered)

    def to_view(self) -> ReviewPairView:
        progression = self.srs_progression
        return ReviewPairView(
            pair_id=self.pair_id,
            item_id=self.item.id,
            word_to_meaning=self.word_to_meaning,
            meaning_to_word=self.meaning_to_word,
            completed=self.completed,
            srs_from=progression.from_stage if progression else None,
            srs_to=progression.to_stage if progression else None,
        )


@dataclass(frozen=True)
class MasteryUpdate:
    """Deferred mastery write produced when a review pair completes."""

    user_id: str
    vocabulary_id: int
    pair_id: str
    from_stage: int
    both_correct: bool


def pair_id_for(vocabulary_id: int) -> str:
    return f"pair_{vocabulary_id}"


__all__ = [
    "Direction",
    "MasteryUpdate",
    "QuizQuestion",
    "ReviewPair",
    "ReviewQuestion",
    "SrsProgression",
    "pair_id_for",
]
