"""Bidirectional question generation with a seedable shuffle."""
from __future__ import annotations

import math
import random
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from .domain import Direction, QuizQuestion, ReviewPair, ReviewQuestion, pair_id_for
from .models import ReviewItem, VocabularyItem


T = TypeVar("T")


def fisher_yates_shuffle(values: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a uniformly shuffled copy of ``values``.

    Pass a seeded ``random.Random`` to make the order reproducible.
    """

    rng = rng or random.Random()
    shuffled = list(values)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def build_quiz_questions(
    items: Sequence[VocabularyItem], rng: Optional[random.Random] = None
) -> List[QuizQuestion]:
    questions: List[QuizQuestion] = []
    for item in items:
        questions.append(
            QuizQuestion(
                item=item,
                prompt=item.word,
                correct_answer=item.meaning,
                direction=Direction.WORD_TO_MEANING,
            )
        )
        questions.append(
            QuizQuestion(
                item=item,
                prompt=item.meaning,
                correct_answer=item.word,
                direction=Direction.MEANING_TO_WORD,
            )
        )
    return fisher_yates_shuffle(questions, rng)


def build_review_questions(
    items: Sequence[ReviewItem], rng: Optional[random.Random] = None
) -> Tuple[List[ReviewQuestion], Dict[str, ReviewPair]]:
    """Expand review items into shuffled question pairs and their pair index."""

    questions: List[ReviewQuestion] = []
    pairs: Dict[str, ReviewPair] = {}
    for item in items:
        pair_id = pair_id_for(item.id)
        pairs[pair_id] = ReviewPair(item=item)
        questions.append(
            ReviewQuestion(
                item=item,
                prompt=item.word,
                correct_answer=item.meaning,
                direction=Direction.WORD_TO_MEANING,
                pair_id=pair_id,
            )
        )
        questions.append(
            ReviewQuestion(
                item=item,
                prompt=item.meaning,
                correct_answer=item.word,
                direction=Direction.MEANING_TO_WORD,
                pair_id=pair_id,
            )
        )
    return fisher_yates_shuffle(questions, rng), pairs


def calculate_progress(current: int, total: int, round_result: bool = True) -> float:
    if total == 0:
        return 0
    progress = current / total * 100
    return math.floor(progress + 0.5) if round_result else progress


__all__ = [
    "build_quiz_questions",
    "build_review_questions",
    "calculate_progress",
    "fisher_yates_shuffle",
]
