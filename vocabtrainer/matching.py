"""Typo tolerant answer matching for free-text quiz answers."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .answers import generate_acceptable_answers
from .domain import Direction, QuizQuestion


SPECIAL_LETTERS = (
    ("å", "a"),
    ("æ", "ae"),
    ("ø", "o"),
    ("Å", "a"),
    ("Æ", "ae"),
    ("Ø", "o"),
)
SPECIAL_LETTER_PATTERN = re.compile(r"[æøå]", re.IGNORECASE)
PLAIN_VOWEL_PATTERN = re.compile(r"[aeo]", re.IGNORECASE)
PUNCTUATION_PATTERN = re.compile(r"[^\w\s]")
WHITESPACE_PATTERN = re.compile(r"\s+")

SHORT_ANSWER_LENGTH = 5
SHORT_ANSWER_MAX_LENGTH_CHANGE = 0.20
SHORT_WORD_MAX_LENGTH_CHANGE = 0.15


@dataclass(frozen=True)
class AnswerFeedback:
    is_exact: bool
    is_fuzzy_match: bool
    suggestion: Optional[str] = None


def normalize_text(text: str) -> str:
    """Lowercase, trim and map the special letters to their typed equivalents."""

    normalized = text.lower().strip()
    for letter, replacement in SPECIAL_LETTERS:
        normalized = normalized.replace(letter, replacement)
    return normalized


def clean_text(text: str) -> str:
    stripped = PUNCTUATION_PATTERN.sub("", normalize_text(text))
    return WHITESPACE_PATTERN.sub(" ", stripped).strip()


def levenshtein_distance(first: str, second: str) -> int:
    if first == second:
        return 0
    if not first:
        return len(second)
    if not second:
        return len(first)
    previous = list(range(len(second) + 1))
    for i, left in enumerate(first, start=1):
        current = [i]
        for j, right in enumerate(second, start=1):
            cost = 0 if left == right else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def edit_threshold(max_length: int, length_change_ratio: float) -> int:
    """Number of edits tolerated for answers of ``max_length`` characters."""

    if max_length <= 3:
        return 0
    if max_length <= 6:
        return 1 if length_change_ratio <= SHORT_WORD_MAX_LENGTH_CHANGE else 0
    if max_length <= 10:
        return min(max(math.floor(max_length * 0.12), 1), 2)
    return min(max(math.floor(max_length * 0.10), 1), 3)


def _matches_answer(user_input: str, correct_answer: str) -> bool:
    if normalize_text(user_input) == normalize_text(correct_answer):
        return True

    clean_user = clean_text(user_input)
    clean_correct = clean_text(correct_answer)
    if clean_user == clean_correct:
        return True
    if not clean_correct:
        return False

    length_change_ratio = abs(len(clean_user) - len(clean_correct)) / len(clean_correct)
    if len(clean_correct) <= SHORT_ANSWER_LENGTH and length_change_ratio > SHORT_ANSWER_MAX_LENGTH_CHANGE:
        return False

    threshold = edit_threshold(max(len(clean_user), len(clean_correct)), length_change_ratio)
    return levenshtein_distance(clean_user, clean_correct) <= threshold


def is_match(
    user_input: str,
    correct_answer: str,
    acceptable_answers: Optional[Iterable[str]] = None,
) -> bool:
    """Return True when ``user_input`` is close enough to any accepted answer.

    The correct answer is tried first, then each alternative in order.
    """

    candidates: List[str] = [correct_answer]
    if acceptable_answers:
        candidates.extend(acceptable_answers)
    return any(_matches_answer(user_input, candidate) for candidate in candidates)


def acceptable_answers_for(question: QuizQuestion) -> Optional[Sequence[str]]:
    """Alternatives apply to word-to-meaning prompts only."""

    if question.direction is not Direction.WORD_TO_MEANING:
        return None
    if question.item.accepted_answers:
        return list(question.item.accepted_answers)
    return generate_acceptable_answers(question.correct_answer)


def check_answer(question: QuizQuestion, user_input: str) -> bool:
    return is_match(user_input, question.correct_answer, acceptable_answers_for(question))


def answer_feedback(user_input: str, correct_answer: str) -> AnswerFeedback:
    is_exact = normalize_text(user_input) == normalize_text(correct_answer)
    is_fuzzy = is_match(user_input, correct_answer)

    suggestion: Optional[str] = None
    if not is_exact and is_fuzzy:
        suggestion = "Close! Check your spelling."
    elif not is_fuzzy:
        needs_special = SPECIAL_LETTER_PATTERN.search(correct_answer) is not None
        typed_plain = (
            PLAIN_VOWEL_PATTERN.search(user_input) is not None
            and SPECIAL_LETTER_PATTERN.search(user_input) is None
        )
        if needs_special and typed_plain:
            suggestion = "Remember: you can type 'ae' for 'æ', 'o' for 'ø', 'a' for 'å'"

    return AnswerFeedback(is_exact=is_exact, is_fuzzy_match=is_fuzzy, suggestion=suggestion)


__all__ = [
    "AnswerFeedback",
    "acceptable_answers_for",
    "answer_feedback",
    "check_answer",
    "clean_text",
    "edit_threshold",
    "is_match",
    "levenshtein_distance",
    "normalize_text",
]
