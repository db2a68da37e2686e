"""Validation utilities applied before answers are matched or items are quizzed."""
from __future__ import annotations

from typing import Iterable, List, Sequence

from .models import VocabularyItem


class InputValidationError(ValueError):
    """Raised when a submitted answer cannot be judged."""


class CatalogValidationError(ValueError):
    """Raised when catalog items are unfit for a study session."""


def validate_answer_input(text: str) -> str:
    """Reject blank submissions; return the input unchanged otherwise."""

    if text is None or not text.strip():
        raise InputValidationError("Answer must not be empty")
    return text


def _assert_accepted_answers(item: VocabularyItem) -> None:
    if item.accepted_answers is None:
        return
    for answer in item.accepted_answers:
        if not answer.strip():
            raise CatalogValidationError(f"Item {item.id} has a blank accepted answer")


def validate_vocabulary_items(items: Iterable[VocabularyItem]) -> List[VocabularyItem]:
    """Validate items handed to a session for structural quality."""

    validated: List[VocabularyItem] = []
    seen_ids = set()
    for item in items:
        if item.id in seen_ids:
            raise CatalogValidationError(f"Duplicate vocabulary identifier detected: {item.id}")
        seen_ids.add(item.id)

        if not item.word.strip():
            raise CatalogValidationError(f"Item {item.id} has an empty word")
        if not item.meaning.strip():
            raise CatalogValidationError(f"Item {item.id} has an empty meaning")

        _assert_accepted_answers(item)
        validated.append(item)
    return validated


def clean_accepted_answers(answers: Sequence[str]) -> List[str]:
    cleaned: List[str] = []
    for answer in answers:
        stripped = answer.strip()
        if stripped and stripped not in cleaned:
            cleaned.append(stripped)
    return cleaned


__all__ = [
    "CatalogValidationError",
    "InputValidationError",
    "clean_accepted_answers",
    "validate_answer_input",
    "validate_vocabulary_items",
]
