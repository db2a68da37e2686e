# tests/test_lesson_session.py
import pytest

from vocabtrainer.metrics import METRICS
from vocabtrainer.models import VocabularyItem
from vocabtrainer.sessions import (
    LessonPhase,
    LessonSession,
    LessonState,
    NextQuestion,
    SessionStateError,
    lesson_reducer,
)
from vocabtrainer.validators import InputValidationError

ITEMS = [
    VocabularyItem(id=1, word="hund", meaning="dog"),
    VocabularyItem(id=2, word="katt", meaning="cat"),
]

WRONG = "zzzzzz"


def _in_quiz(rng, on_complete=None):
    session = LessonSession(ITEMS, rng=rng, on_complete=on_complete)
    session.next_card()
    session.next_card()
    assert session.phase is LessonPhase.QUIZ
    return session


def _answer_correctly(session):
    session.submit_answer(session.state.current_question.correct_answer)
    session.next_question()


def test_learning_navigation(rng):
    session = LessonSession(ITEMS, rng=rng)
    assert session.state.current_card.id == 1
    session.previous_card()
    assert session.state.card_index == 0
    session.next_card()
    assert session.state.current_card.id == 2
    session.previous_card()
    assert session.state.card_index == 0


def test_next_on_last_card_starts_quiz(rng):
    session = _in_quiz(rng)
    assert session.state.total_questions == 4
    assert session.state.current_question is not None
    assert session.state.questions_answered == 1


def test_empty_lesson_is_rejected(rng):
    with pytest.raises(SessionStateError):
        LessonSession([], rng=rng)


def test_all_correct_completes_without_retest(rng):
    summaries = []
    session = _in_quiz(rng, on_complete=summaries.append)
    for _ in range(4):
        _answer_correctly(session)

    assert session.phase is LessonPhase.COMPLETE
    assert session.state.retest_rounds == 0
    assert session.summary.first_attempt_correct == 4
    assert session.summary.total_questions == 4
    assert summaries == [session.summary]


def test_wrong_answers_are_retested_until_correct(rng):
    session = _in_quiz(rng)
    missed = session.state.current_question
    assert session.submit_answer(WRONG) is False
    session.next_question()
    for _ in range(3):
        _answer_correctly(session)

    assert session.state.is_retest_phase
    assert session.state.retest_rounds == 1
    assert session.state.current_question == missed
    assert session.state.questions_answered == session.state.total_questions

    session.submit_answer(WRONG)
    session.next_question()
    assert session.state.retest_rounds == 2
    assert session.state.current_question == missed

    _answer_correctly(session)
    assert session.phase is LessonPhase.COMPLETE
    assert session.summary.first_attempt_correct == 3
    assert session.summary.total_questions == 4
    assert METRICS.retest_rounds == 2


def test_retest_answers_do_not_change_first_attempt_score(rng):
    session = _in_quiz(rng)
    session.submit_answer(WRONG)
    session.next_question()
    for _ in range(3):
        _answer_correctly(session)
    before = session.state.first_attempt_correct
    _answer_correctly(session)
    assert session.state.first_attempt_correct == before


def test_undo_restores_previous_answer_state(rng):
    session = _in_quiz(rng)
    question = session.state.current_question
    session.submit_answer(WRONG)
    assert session.state.wrong_answers == (question,)

    session.undo()
    state = session.state
    assert state.wrong_answers == ()
    assert not state.show_result
    assert state.user_input == WRONG
    assert not state.can_undo
    assert state.current_question == question

    with pytest.raises(SessionStateError):
        session.undo()

    session.submit_answer(question.correct_answer)
    assert session.state.first_attempt_correct == 1


def test_blank_answer_is_rejected_without_state_change(rng):
    session = _in_quiz(rng)
    before = session.state
    with pytest.raises(InputValidationError):
        session.submit_answer("   ")
    assert session.state is before


def test_answering_twice_requires_undo_or_next(rng):
    session = _in_quiz(rng)
    session.submit_answer(WRONG)
    with pytest.raises(SessionStateError):
        session.submit_answer(WRONG)


def test_cannot_answer_during_learning(rng):
    session = LessonSession(ITEMS, rng=rng)
    with pytest.raises(SessionStateError):
        session.submit_answer("dog")


def test_next_question_before_answer_is_rejected(rng):
    session = _in_quiz(rng)
    with pytest.raises(SessionStateError):
        session.next_question()


def test_submit_uses_typed_input_when_no_answer_given(rng):
    session = _in_quiz(rng)
    session.set_input(session.state.current_question.correct_answer)
    assert session.submit_answer() is True


def test_reducer_ignores_next_without_result():
    state = LessonState(items=tuple(ITEMS))
    assert lesson_reducer(state, NextQuestion()) is state


def test_view_reports_feedback_and_progress(rng):
    session = _in_quiz(rng)
    question = session.state.current_question
    session.submit_answer(question.correct_answer + "!")
    view = session.to_view(session_id="00000000-0000-0000-0000-000000000001")
    assert view.phase == "quiz"
    assert view.show_result
    assert view.last_answer_correct is True
    assert view.correct_answer == question.correct_answer
    assert view.progress == 25
    assert view.can_undo
