# tests/test_validators.py
import pytest

from vocabtrainer.models import VocabularyItem
from vocabtrainer.validators import (
    CatalogValidationError,
    InputValidationError,
    clean_accepted_answers,
    validate_answer_input,
    validate_vocabulary_items,
)


@pytest.mark.parametrize("text", ["", "   ", "\t\n", None])
def test_blank_answers_are_rejected(text):
    with pytest.raises(InputValidationError):
        validate_answer_input(text)


def test_answer_is_returned_unchanged():
    assert validate_answer_input("  dog ") == "  dog "


def test_duplicate_ids_are_rejected():
    items = [VocabularyItem(id=1, word="hund", meaning="dog"), VocabularyItem(id=1, word="katt", meaning="cat")]
    with pytest.raises(CatalogValidationError, match="Duplicate"):
        validate_vocabulary_items(items)


def test_blank_word_or_meaning_is_rejected():
    with pytest.raises(CatalogValidationError):
        validate_vocabulary_items([VocabularyItem(id=1, word=" ", meaning="dog")])
    with pytest.raises(CatalogValidationError):
        validate_vocabulary_items([VocabularyItem(id=1, word="hund", meaning="")])



def test_blank_accepted_answer_is_rejected():
    item = VocabularyItem(id=1, word="hund", meaning="dog", accepted_answers=["dog", " "])
    with pytest.raises(CatalogValidationError):
        validate_vocabulary_items([item])


def test_valid_items_pass_through():
    items = [VocabularyItem(id=1, word="hund", meaning="dog"), VocabularyItem(id=2, word="katt", meaning="cat")]
    assert validate_vocabulary_items(items) == items


def test_clean_accepted_answers():
    assert clean_accepted_answers([" dog ", "dog", "", "hound"]) == ["dog", "hound"]


def test_unfinished_looking_glosses_pass_through():
    items = [VocabularyItem(id=1, word="hæ", meaning="huh???"), VocabularyItem(id=2, word="tbd", meaning="TODO")]
    assert validate_vocabulary_items(items) == items
