# tests/test_matching.py
from vocabtrainer.domain import Direction, QuizQuestion
from vocabtrainer.matching import (
    answer_feedback,
    acceptable_answers_for,
    check_answer,
    clean_text,
    edit_threshold,
    is_match,
    levenshtein_distance,
    normalize_text,
)
from vocabtrainer.models import VocabularyItem


def _question(item, direction):
    if direction is Direction.WORD_TO_MEANING:
        return QuizQuestion(item=item, prompt=item.word, correct_answer=item.meaning, direction=direction)
    return QuizQuestion(item=item, prompt=item.meaning, correct_answer=item.word, direction=direction)


def test_normalize_maps_special_letters():
    assert normalize_text("  Være ") == "vaere"
    assert normalize_text("BLÅ") == "bla"
    assert normalize_text("Øl") == "ol"


def test_clean_text_strips_punctuation_and_whitespace():
    assert clean_text("  to   be! ") == "to be"
    assert clean_text("(it's)") == "its"


def test_levenshtein_distance():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("same", "same") == 0


def test_edit_threshold_bands():
    assert edit_threshold(3, 0.0) == 0
    assert edit_threshold(5, 0.0) == 1
    assert edit_threshold(5, 0.2) == 0
    assert edit_threshold(9, 0.0) == 1
    assert edit_threshold(10, 0.0) == 1
    assert edit_threshold(20, 0.0) == 2
    assert edit_threshold(30, 0.0) == 3
    assert edit_threshold(60, 0.0) == 3


def test_exact_and_case_insensitive_match():
    assert is_match("Dog", "dog")
    assert is_match("  dog  ", "dog")


def test_special_letters_typed_plainly_match():
    assert is_match("vaere", "være")
    assert is_match("bla", "blå")


def test_punctuation_is_ignored():
    assert is_match("to be!", "to be")


def test_three_letter_words_need_exact_spelling():
    """cot is one edit from cat but short words tolerate no edits."""
    assert not is_match("cot", "cat")


def test_short_word_length_change_is_rejected():
    assert not is_match("hunde", "hund")
    assert not is_match("kat", "katt")


def test_short_word_single_substitution_is_accepted():
    assert is_match("kott", "katt")


def test_nine_letter_word_tolerates_one_substitution():
    assert is_match("apartnent", "apartment")
    assert not is_match("opartnent", "apartment")


def test_twenty_character_answer_tolerates_two_edits():
    correct = "international travel"
    assert len(correct) == 20
    assert is_match("intirnational trevel", correct)
    assert not is_match("intirnational trevol", correct)


def test_thirty_character_answer_tolerates_three_edits():
    correct = "the quick brown fox jumps over"
    assert len(correct) == 30
    assert is_match("thx quack brawn fox jumps over", correct)
    assert not is_match("thx quack brawn fix jumps over", correct)


def test_empty_correct_answer_after_cleaning_never_matches():
    assert not is_match("abc", "?!")


def test_alternatives_are_tried_after_correct_answer():
    assert is_match("you", "you (singular)", ["you (singular)", "you"])
    assert not is_match("they", "you (singular)", ["you (singular)", "you"])


def test_alternatives_only_apply_to_word_to_meaning():
    item = VocabularyItem(id=3, word="du", meaning="you (singular)")
    forward = _question(item, Direction.WORD_TO_MEANING)
    backward = _question(item, Direction.MEANING_TO_WORD)

    assert acceptable_answers_for(forward) == ["you (singular)", "you"]
    assert acceptable_answers_for(backward) is None
    assert check_answer(forward, "you")
    assert check_answer(backward, "du")
    assert not check_answer(backward, "you")


def test_stored_accepted_answers_take_precedence():
    item = VocabularyItem(id=8, word="glad", meaning="happy", accepted_answers=["happy", "glad", "cheerful"])
    question = _question(item, Direction.WORD_TO_MEANING)
    assert acceptable_answers_for(question) == ["happy", "glad", "cheerful"]
    assert check_answer(question, "cheerful")


def test_feedback_for_close_answer():
    feedback = answer_feedback("apartnent", "apartment")
    assert not feedback.is_exact
    assert feedback.is_fuzzy_match
    assert feedback.suggestion == "Close! Check your spelling."


def test_feedback_hints_special_letters():
    feedback = answer_feedback("bro", "brød")
    assert not feedback.is_fuzzy_match
    assert "æ" in feedback.suggestion


def test_feedback_for_exact_answer_has_no_suggestion():
    feedback = answer_feedback("dog", "dog")
    assert feedback.is_exact
    assert feedback.suggestion is None
