"""Lesson and review session state machines.

Both sessions are expressed as an immutable state value plus a pure reducer
``(state, event) -> state``. The ``LessonSession`` and ``ReviewSession``
wrappers add the impure edges: answer matching, question shuffling, metrics
and the hand-off of deferred mastery writes.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union
from uuid import UUID

from .domain import MasteryUpdate, QuizQuestion, ReviewPair, ReviewQuestion, SrsProgression
from .matching import AnswerFeedback, answer_feedback, check_answer
from .metrics import METRICS
from .models import (
    LessonSessionView,
    LessonSummary,
    ReviewItem,
    ReviewSessionView,
    ReviewSummary,
    VocabularyItem,
)
from .questions import build_quiz_questions, build_review_questions, calculate_progress
from .srs import MAX_STAGE_VIA_PAIR_COMMIT, next_stage
from .validators import validate_answer_input, validate_vocabulary_items


logger = logging.getLogger(__name__)


class SessionStateError(ValueError):
    """Raised when an operation is not legal in the session's current state."""


class LessonPhase(str, Enum):
    LEARNING = "learning"
    QUIZ = "quiz"
    COMPLETE = "complete"


# region Events
@dataclass(frozen=True)
class SetInput:
    text: str


@dataclass(frozen=True)
class NextCard:
    pass


@dataclass(frozen=True)
class PreviousCard:
    pass


@dataclass(frozen=True)
class StartQuiz:
    questions: Tuple[QuizQuestion, ...]


@dataclass(frozen=True)
class SubmitAnswer:
    is_correct: bool
    question: QuizQuestion


@dataclass(frozen=True)
class NextQuestion:
    pass


@dataclass(frozen=True)
class UndoAnswer:
    pass


LessonEvent = Union[SetInput, NextCard, PreviousCard, StartQuiz, SubmitAnswer, NextQuestion, UndoAnswer]
ReviewEvent = Union[SetInput, SubmitAnswer, NextQuestion, UndoAnswer]

# endregion


# region Lesson state machine
@dataclass(frozen=True)
class QuizSnapshot:
    """Values restored by a single undo step."""

    was_correct: bool
    user_input: str
    first_attempt_correct: int
    wrong_answers: Tuple[QuizQuestion, ...]
    retest_wrong_answers: Tuple[QuizQuestion, ...]


@dataclass(frozen=True)
class LessonState:
    items: Tuple[VocabularyItem, ...]
    phase: LessonPhase = LessonPhase.LEARNING
    card_index: int = 0
    questions: Tuple[QuizQuestion, ...] = ()
    current_index: int = 0
    user_input: str = ""
    show_result: bool = False
    last_was_correct: Optional[bool] = None
    wrong_answers: Tuple[QuizQuestion, ...] = ()
    retest_wrong_answers: Tuple[QuizQuestion, ...] = ()
    total_questions: int = 0
    first_attempt_correct: int = 0
    is_retest_phase: bool = False
    retest_rounds: int = 0
    can_undo: bool = False
    last_answer: Optional[QuizSnapshot] = None

    @property
    def current_card(self) -> Optional[VocabularyItem]:
        if self.phase is not LessonPhase.LEARNING or not self.items:
            return None
        return self.items[self.card_index]

    @property
    def on_last_card(self) -> bool:
        return self.card_index >= len(self.items) - 1

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if self.phase is not LessonPhase.QUIZ or self.current_index >= len(self.questions):
            return None
        return self.questions[self.current_index]

    @property
    def questions_answered(self) -> int:
        if self.phase is LessonPhase.COMPLETE or self.is_retest_phase:
            return self.total_questions
        if self.phase is LessonPhase.LEARNING:
            return 0
        return min(self.current_index + 1, self.total_questions)


_CLEARED_ANSWER = dict(
    user_input="",
    show_result=False,
    last_was_correct=None,
    can_undo=False,
    last_answer=None,
)


def lesson_reducer(state: LessonState, event: LessonEvent) -> LessonState:
    """Apply ``event`` to ``state``. Events that do not apply return ``state`` unchanged."""

    if isinstance(event, SetInput):
        if state.phase is not LessonPhase.QUIZ or state.show_result:
            return state
        return replace(state, user_input=event.text)

    if isinstance(event, NextCard):
        if state.phase is not LessonPhase.LEARNING or state.on_last_card:
            return state
        return replace(state, card_index=state.card_index + 1)

    if isinstance(event, PreviousCard):
        if state.phase is not LessonPhase.LEARNING or state.card_index == 0:
            return state
        return replace(state, card_index=state.card_index - 1)

    if isinstance(event, StartQuiz):
        if state.phase is not LessonPhase.LEARNING:
            return state
        return replace(
            state,
            phase=LessonPhase.QUIZ,
            questions=event.questions,
            total_questions=len(event.questions),
            current_index=0,
            wrong_answers=(),
            retest_wrong_answers=(),
            first_attempt_correct=0,
            is_retest_phase=False,
            retest_rounds=0,
            **_CLEARED_ANSWER,
        )

    if isinstance(event, SubmitAnswer):
        if state.phase is not LessonPhase.QUIZ or state.show_result:
            return state
        snapshot = QuizSnapshot(
            was_correct=event.is_correct,
            user_input=state.user_input,
            first_attempt_correct=state.first_attempt_correct,
            wrong_answers=state.wrong_answers,
            retest_wrong_answers=state.retest_wrong_answers,
        )
        first_attempt_correct = state.first_attempt_correct
        wrong_answers = state.wrong_answers
        retest_wrong_answers = state.retest_wrong_answers
        if event.is_correct and not state.is_retest_phase:
            first_attempt_correct += 1
        elif not event.is_correct and not state.is_retest_phase:
            wrong_answers = wrong_answers + (event.question,)
        elif not event.is_correct:
            retest_wrong_answers = retest_wrong_answers + (event.question,)
        return replace(
            state,
            show_result=True,
            last_was_correct=event.is_correct,
            can_undo=True,
            last_answer=snapshot,
            first_attempt_correct=first_attempt_correct,
            wrong_answers=wrong_answers,
            retest_wrong_answers=retest_wrong_answers,
        )

    if isinstance(event, NextQuestion):
        if state.phase is not LessonPhase.QUIZ or not state.show_result:
            return state
        if state.current_index < len(state.questions) - 1:
            return replace(state, current_index=state.current_index + 1, **_CLEARED_ANSWER)
        if state.wrong_answers and not state.is_retest_phase:
            return replace(
                state,
                questions=state.questions + state.wrong_answers,
                wrong_answers=(),
                is_retest_phase=True,
                retest_rounds=state.retest_rounds + 1,
                current_index=state.current_index + 1,
                **_CLEARED_ANSWER,
            )
        if state.retest_wrong_answers:
            return replace(
                state,
                questions=state.questions + state.retest_wrong_answers,
                retest_wrong_answers=(),
                is_retest_phase=True,
                retest_rounds=state.retest_rounds + 1,
                current_index=state.current_index + 1,
                **_CLEARED_ANSWER,
            )
        return replace(state, phase=LessonPhase.COMPLETE, **_CLEARED_ANSWER)

    if isinstance(event, UndoAnswer):
        if not state.can_undo or state.last_answer is None:
            return state
        previous = state.last_answer
        return replace(
            state,
            first_attempt_correct=previous.first_attempt_correct,
            wrong_answers=previous.wrong_answers,
            retest_wrong_answers=previous.retest_wrong_answers,
            user_input=previous.user_input,
            show_result=False,
            last_was_correct=None,
            can_undo=False,
            last_answer=None,
        )

    return state


# endregion


# region Review state machine
@dataclass(frozen=True)
class ReviewSnapshot:
    was_correct: bool
    user_input: str
    correct_answers: int
    pairs: Mapping[str, ReviewPair]


@dataclass(frozen=True)
class ReviewState:
    questions: Tuple[ReviewQuestion, ...]
    pairs: Mapping[str, ReviewPair] = field(default_factory=dict)
    words_reviewed: int = 0
    current_index: int = 0
    user_input: str = ""
    show_result: bool = False
    last_was_correct: Optional[bool] = None
    correct_answers: int = 0
    total_questions: int = 0
    complete: bool = False
    can_undo: bool = False
    last_answer: Optional[ReviewSnapshot] = None
    pending_update: Optional[str] = None

    @property
    def current_question(self) -> Optional[ReviewQuestion]:
        if self.complete or self.current_index >= len(self.questions):
            return None
        return self.questions[self.current_index]

    @property
    def current_pair(self) -> Optional[ReviewPair]:
        question = self.current_question
        if question is None:
            return None
        return self.pairs.get(question.pair_id)

    @property
    def show_pair_result(self) -> bool:
        pair = self.current_pair
        return bool(self.show_result and pair is not None and pair.both_answered)

    @property
    def completed_pairs(self) -> int:
        return sum(1 for pair in self.pairs.values() if pair.completed)

    @property
    def questions_answered(self) -> int:
        if self.complete:
            return self.total_questions
        return min(self.current_index + 1, self.total_questions)


def initial_review_state(questions: Sequence[ReviewQuestion], pairs: Mapping[str, ReviewPair]) -> ReviewState:
    return ReviewState(
        questions=tuple(questions),
        pairs=dict(pairs),
        words_reviewed=len(pairs),
        total_questions=len(questions),
        complete=not questions,
    )


def review_reducer(state: ReviewState, event: ReviewEvent) -> ReviewState:
    """Apply ``event`` to a review session state."""

    if isinstance(event, SetInput):
        if state.complete or state.show_result:
            return state
        return replace(state, user_input=event.text)

    if isinstance(event, SubmitAnswer):
        if state.complete or state.show_result:
            return state
        question = event.question
        pair_id = getattr(question, "pair_id", None)
        pair = state.pairs.get(pair_id) if pair_id else None
        if pair is None:
            return state

        updated = pair.record(question.direction, event.is_correct)
        pending_update = state.pending_update
        if updated.completed and not pair.completed:
            from_stage = pair.item.srs_stage
            to_stage = next_stage(from_stage, updated.both_correct, ceiling=MAX_STAGE_VIA_PAIR_COMMIT)
            updated = replace(updated, srs_progression=SrsProgression(from_stage, to_stage))
            pending_update = pair_id

        pairs: Dict[str, ReviewPair] = dict(state.pairs)
        pairs[pair_id] = updated
        return replace(
            state,
            show_result=True,
            last_was_correct=event.is_correct,
            can_undo=True,
            last_answer=ReviewSnapshot(
                was_correct=event.is_correct,
                user_input=state.user_input,
                correct_answers=state.correct_answers,
                pairs=state.pairs,
            ),
            correct_answers=state.correct_answers + (1 if event.is_correct else 0),
            pairs=pairs,
            pending_update=pending_update,
        )

    if isinstance(event, NextQuestion):
        if state.complete or not state.show_result:
            return state
        if state.current_index < len(state.questions) - 1:
            return replace(
                state,
                current_index=state.current_index + 1,
                pending_update=None,
                **_CLEARED_ANSWER,
            )
        return replace(state, complete=True, pending_update=None, **_CLEARED_ANSWER)

    if isinstance(event, UndoAnswer):
        if not state.can_undo or state.last_answer is None:
            return state
        previous = state.last_answer
        return replace(
            state,
            correct_answers=previous.correct_answers,
            pairs=previous.pairs,
            user_input=previous.user_input,
            show_result=False,
            last_was_correct=None,
            can_undo=False,
            last_answer=None,
            pending_update=None,
        )

    return state


# endregion


class PendingWrite:
    """Cancellation token for a mastery write that has not been dispatched yet.

    ``cancel`` and ``dispatch`` are each effective at most once, and neither
    has any effect after the other has run.
    """

    def __init__(self, update: MasteryUpdate, submit: Callable[[MasteryUpdate], Any]) -> None:
        self.update = update
        self._submit = submit
        self._cancelled = False
        self._dispatched = False
        self.result: Any = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def dispatched(self) -> bool:
        return self._dispatched

    def cancel(self) -> bool:
        if self._cancelled or self._dispatched:
            return False
        self._cancelled = True
        METRICS.record_write_cancelled()
        logger.debug("Cancelled pending mastery write for %s", self.update.pair_id)
        return True

    def dispatch(self) -> Any:
        if self._cancelled or self._dispatched:
            return None
        self._dispatched = True
        self.result = self._submit(self.update)
        return self.result


def _visible_feedback(feedback: Optional[AnswerFeedback], is_correct: Optional[bool]) -> Optional[str]:
    if feedback is None or is_correct is None:
        return None
    # Accepted through an alternative answer rather than the spelling of the main one.
    if is_correct and not feedback.is_fuzzy_match:
        return None
    return feedback.suggestion


def _is_fuzzy_accept(feedback: AnswerFeedback, is_correct: bool) -> bool:
    return is_correct and feedback.is_fuzzy_match and not feedback.is_exact


class LessonSession:
    """Learning pass over new items followed by a retest-until-correct quiz."""

    def __init__(
        self,
        items: Sequence[VocabularyItem],
        rng: Optional[random.Random] = None,
        on_complete: Optional[Callable[[LessonSummary], Any]] = None,
    ) -> None:
        validated = validate_vocabulary_items(items)
        if not validated:
            raise SessionStateError("A lesson needs at least one vocabulary item")
        self._rng = rng
        self._on_complete = on_complete
        self.state = LessonState(items=tuple(validated))
        self.summary: Optional[LessonSummary] = None
        self.last_feedback: Optional[AnswerFeedback] = None
        self.completion_result: Any = None

    def dispatch(self, event: LessonEvent) -> LessonState:
        self.state = lesson_reducer(self.state, event)
        return self.state

    @property
    def phase(self) -> LessonPhase:
        return self.state.phase

    @property
    def items(self) -> Tuple[VocabularyItem, ...]:
        return self.state.items

    def _require_phase(self, phase: LessonPhase) -> None:
        if self.state.phase is not phase:
            raise SessionStateError(
                f"Lesson is in the {self.state.phase.value} phase, expected {phase.value}"
            )

    def next_card(self) -> LessonState:
        self._require_phase(LessonPhase.LEARNING)
        if self.state.on_last_card:
            return self.start_quiz()
        return self.dispatch(NextCard())

    def previous_card(self) -> LessonState:
        self._require_phase(LessonPhase.LEARNING)
        return self.dispatch(PreviousCard())

    def start_quiz(self) -> LessonState:
        self._require_phase(LessonPhase.LEARNING)
        questions = build_quiz_questions(self.state.items, self._rng)
        return self.dispatch(StartQuiz(tuple(questions)))

    def set_input(self, text: str) -> LessonState:
        return self.dispatch(SetInput(text))

    def submit_answer(self, user_input: Optional[str] = None) -> bool:
        text = self.state.user_input if user_input is None else user_input
        validate_answer_input(text)
        self._require_phase(LessonPhase.QUIZ)
        if self.state.show_result:
            raise SessionStateError("Answer already submitted; undo or continue first")

        question = self.state.current_question
        is_correct = check_answer(question, text)
        self.last_feedback = answer_feedback(text, question.correct_answer)
        self.dispatch(SetInput(text))
        self.dispatch(SubmitAnswer(is_correct=is_correct, question=question))
        METRICS.record_answer(is_correct, fuzzy=_is_fuzzy_accept(self.last_feedback, is_correct))
        return is_correct

    def next_question(self) -> LessonState:
        self._require_phase(LessonPhase.QUIZ)
        if not self.state.show_result:
            raise SessionStateError("Answer the current question before continuing")
        rounds_before = self.state.retest_rounds
        self.dispatch(NextQuestion())
        self.last_feedback = None
        if self.state.retest_rounds > rounds_before:
            METRICS.record_retest_round()
            logger.debug("Lesson retest round %d started", self.state.retest_rounds)
        if self.state.phase is LessonPhase.COMPLETE:
            self._complete()
        return self.state

    def undo(self) -> LessonState:
        if not self.state.can_undo:
            raise SessionStateError("Nothing to undo")
        self.last_feedback = None
        return self.dispatch(UndoAnswer())

    def _complete(self) -> None:
        self.summary = LessonSummary(
            first_attempt_correct=self.state.first_attempt_correct,
            total_questions=self.state.total_questions,
            all_questions_completed=True,
        )
        logger.info(
            "Lesson complete: %d/%d correct on first attempt",
            self.summary.first_attempt_correct,
            self.summary.total_questions,
        )
        if self._on_complete is not None:
            self.completion_result = self._on_complete(self.summary)

    def to_view(self, session_id: UUID, words_unlocked: Optional[int] = None) -> LessonSessionView:
        state = self.state
        question = state.current_question
        if state.phase is LessonPhase.LEARNING:
            progress = calculate_progress(state.card_index + 1, len(state.items))
        else:
            progress = calculate_progress(state.questions_answered, state.total_questions)
        return LessonSessionView(
            session_id=session_id,
            phase=state.phase.value,
            card_index=state.card_index,
            card_count=len(state.items),
            current_card=state.current_card,
            current_question=question.to_view() if question else None,
            user_input=state.user_input,
            show_result=state.show_result,
            last_answer_correct=state.last_was_correct,
            correct_answer=question.correct_answer if question and state.show_result else None,
            feedback=_visible_feedback(self.last_feedback, state.last_was_correct),
            can_undo=state.can_undo,
            is_retest_phase=state.is_retest_phase,
            questions_answered=state.questions_answered,
            total_questions=state.total_questions,
            first_attempt_correct=state.first_attempt_correct,
            progress=progress,
            summary=self.summary,
            words_unlocked=words_unlocked,
        )


class ReviewSession:
    """Paired review of due items; each completed pair yields one mastery write."""

    def __init__(
        self,
        user_id: str,
        items: Sequence[ReviewItem],
        submit_write: Callable[[MasteryUpdate], Any],
        rng: Optional[random.Random] = None,
    ) -> None:
        validated = validate_vocabulary_items(items)
        questions, pairs = build_review_questions(validated, rng)
        self.user_id = user_id
        self._submit_write = submit_write
        self._pending: Optional[PendingWrite] = None
        self.last_dispatched: Optional[PendingWrite] = None
        self.last_feedback: Optional[AnswerFeedback] = None
        self.state = initial_review_state(questions, pairs)

    def dispatch(self, event: ReviewEvent) -> ReviewState:
        self.state = review_reducer(self.state, event)
        return self.state

    @property
    def complete(self) -> bool:
        return self.state.complete

    @property
    def pending_write(self) -> Optional[PendingWrite]:
        return self._pending

    @property
    def summary(self) -> Optional[ReviewSummary]:
        if not self.state.complete:
            return None
        return ReviewSummary(
            words_reviewed=self.state.words_reviewed,
            correct_answers=self.state.correct_answers,
            total_questions=self.state.total_questions,
        )

    def _require_active(self) -> None:
        if self.state.complete:
            raise SessionStateError("Review session is already complete")

    def set_input(self, text: str) -> ReviewState:
        return self.dispatch(SetInput(text))

    def submit_answer(self, user_input: Optional[str] = None) -> bool:
        text = self.state.user_input if user_input is None else user_input
        validate_answer_input(text)
        self._require_active()
        if self.state.show_result:
            raise SessionStateError("Answer already submitted; undo or continue first")

        question = self.state.current_question
        was_completed = self.state.pairs[question.pair_id].completed
        is_correct = check_answer(question, text)
        self.last_feedback = answer_feedback(text, question.correct_answer)
        self.dispatch(SetInput(text))
        self.dispatch(SubmitAnswer(is_correct=is_correct, question=question))
        METRICS.record_answer(is_correct, fuzzy=_is_fuzzy_accept(self.last_feedback, is_correct))

        pair = self.state.pairs[question.pair_id]
        if pair.completed and not was_completed:
            self._pending = PendingWrite(
                MasteryUpdate(
                    user_id=self.user_id,
                    vocabulary_id=pair.item.id,
                    pair_id=question.pair_id,
                    from_stage=pair.srs_progression.from_stage,
                    both_correct=pair.both_correct,
                ),
                self._submit_write,
            )
        return is_correct

    def next_question(self) -> ReviewState:
        self._require_active()
        if not self.state.show_result:
            raise SessionStateError("Answer the current question before continuing")
        # The slot is emptied before the write goes out so a later undo cannot reach it.
        pending, self._pending = self._pending, None
        self.dispatch(NextQuestion())
        self.last_feedback = None
        if pending is not None:
            pending.dispatch()
            self.last_dispatched = pending
        if self.state.complete:
            logger.info(
                "Review complete: %d words, %d/%d answers correct",
                self.state.words_reviewed,
                self.state.correct_answers,
                self.state.total_questions,
            )
        return self.state

    def undo(self) -> ReviewState:
        if not self.state.can_undo:
            raise SessionStateError("Nothing to undo")
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self.last_feedback = None
        return self.dispatch(UndoAnswer())

    def to_view(self, session_id: UUID) -> ReviewSessionView:
        state = self.state
        question = state.current_question
        pair = state.current_pair
        return ReviewSessionView(
            session_id=session_id,
            complete=state.complete,
            current_question=question.to_view() if question else None,
            current_pair=pair.to_view() if pair else None,
            user_input=state.user_input,
            show_result=state.show_result,
            show_pair_result=state.show_pair_result,
            last_answer_correct=state.last_was_correct,
            correct_answer=question.correct_answer if question and state.show_result else None,
            feedback=_visible_feedback(self.last_feedback, state.last_was_correct),
            can_undo=state.can_undo,
            completed_pairs=state.completed_pairs,
            questions_answered=state.questions_answered,
            total_questions=state.total_questions,
            correct_answers=state.correct_answers,
            progress=calculate_progress(state.questions_answered, state.total_questions),
            summary=self.summary,
        )


__all__ = [
    "LessonPhase",
    "LessonSession",
    "LessonState",
    "NextCard",
    "NextQuestion",
    "PendingWrite",
    "PreviousCard",
    "ReviewSession",
    "ReviewState",
    "SessionStateError",
    "SetInput",
    "StartQuiz",
    "SubmitAnswer",
    "UndoAnswer",
    "initial_review_state",
    "lesson_reducer",
    "review_reducer",
]
