# tests/test_questions.py
import random
from collections import Counter

from vocabtrainer.domain import Direction
from vocabtrainer.models import ReviewItem, VocabularyItem
from vocabtrainer.questions import (
    build_quiz_questions,
    build_review_questions,
    calculate_progress,
    fisher_yates_shuffle,
)

ITEMS = [
    VocabularyItem(id=1, word="hund", meaning="dog"),
    VocabularyItem(id=2, word="katt", meaning="cat"),
    VocabularyItem(id=3, word="bok", meaning="book"),
]


def test_shuffle_returns_permutation_without_mutating_input():
    values = [1, 2, 3, 4, 5]
    shuffled = fisher_yates_shuffle(values, random.Random(7))
    assert sorted(shuffled) == values
    assert values == [1, 2, 3, 4, 5]


def test_shuffle_is_reproducible_with_seed():
    first = fisher_yates_shuffle(list(range(20)), random.Random(99))
    second = fisher_yates_shuffle(list(range(20)), random.Random(99))
    assert first == second


def test_shuffle_is_uniform_over_permutations():
    rng = random.Random(2024)
    counts = Counter(tuple(fisher_yates_shuffle("abc", rng)) for _ in range(6000))
    assert len(counts) == 6
    for count in counts.values():
        assert 850 <= count <= 1150


def test_quiz_has_both_directions_per_item(rng):
    questions = build_quiz_questions(ITEMS, rng)
    assert len(questions) == 2 * len(ITEMS)
    for item in ITEMS:
        own = [q for q in questions if q.item.id == item.id]
        assert {q.direction for q in own} == {Direction.WORD_TO_MEANING, Direction.MEANING_TO_WORD}
        forward = next(q for q in own if q.direction is Direction.WORD_TO_MEANING)
        assert forward.prompt == item.word
        assert forward.correct_answer == item.meaning


def test_review_questions_share_pair_ids(rng):
    items = [ReviewItem(id=i.id, word=i.word, meaning=i.meaning, srs_stage=2) for i in ITEMS]
    questions, pairs = build_review_questions(items, rng)
    assert set(pairs) == {"pair_1", "pair_2", "pair_3"}
    assert Counter(q.pair_id for q in questions) == {"pair_1": 2, "pair_2": 2, "pair_3": 2}
    assert not any(pair.completed for pair in pairs.values())


def test_calculate_progress_rounds_half_up():
    assert calculate_progress(0, 0) == 0
    assert calculate_progress(1, 3) == 33
    assert calculate_progress(2, 3) == 67
    assert calculate_progress(1, 8) == 13
    assert calculate_progress(1, 4, round_result=False) == 25.0
