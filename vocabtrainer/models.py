"""Pydantic models for the vocabulary trainer."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple, Type, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .srs import BURNED_STAGE, validate_stage


Gender = Literal["masculine", "feminine", "neuter"]
DirectionName = Literal["word-to-meaning", "meaning-to-word"]
LessonPhaseName = Literal["learning", "quiz", "complete"]


class _Attributes(BaseModel):
    """Grammatical details; unknown keys are kept so they round-trip untouched."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)


class NounAttributes(_Attributes):
    gender: Optional[Gender] = None
    plural: Optional[str] = None
    article: Optional[str] = None


class VerbAttributes(_Attributes):
    infinitive: Optional[str] = None
    present: Optional[str] = None
    past: Optional[str] = None
    perfect: Optional[str] = None
    tense: Optional[str] = None
    person: Optional[str] = None
    form: Optional[str] = None


class GenderedForms(_Attributes):
    masculine: str
    feminine: str
    neuter: Optional[str] = None


class AdjectiveAttributes(_Attributes):
    comparative: Optional[str] = None
    superlative: Optional[str] = None
    gendered_forms: Optional[GenderedForms] = Field(default=None, alias="genderedForms")


class AdverbAttributes(_Attributes):
    derived_from_adjective: Optional[str] = Field(default=None, alias="derivedFromAdjective")


class PhraseAttributes(_Attributes):
    base_word: Optional[str] = Field(default=None, alias="baseWord")
    form: Optional[str] = None
    pattern: Optional[str] = None
    gender: Optional[Gender] = None
    tense: Optional[str] = None
    grammar_point: Optional[str] = Field(default=None, alias="grammarPoint")


class NumberAttributes(_Attributes):
    value: Optional[float] = None
    note: Optional[str] = None


class OtherAttributes(_Attributes):
    """Fallback for word types without a dedicated attribute model."""


VocabularyAttributes = Union[
    NounAttributes,
    VerbAttributes,
    AdjectiveAttributes,
    AdverbAttributes,
    PhraseAttributes,
    NumberAttributes,
    OtherAttributes,
]

ATTRIBUTE_MODELS: Dict[str, Type[_Attributes]] = {
    "noun": NounAttributes,
    "verb": VerbAttributes,
    "adjective": AdjectiveAttributes,
    "adverb": AdverbAttributes,
    "phrase": PhraseAttributes,
    "number": NumberAttributes,
}


def attributes_for(word_type: str, payload: Optional[dict]) -> Optional[_Attributes]:
    if payload is None:
        return None
    model = ATTRIBUTE_MODELS.get((word_type or "").lower(), OtherAttributes)
    return model.model_validate(payload)


class VocabularyItem(BaseModel):
    """Catalog entry; treated as immutable by the learning core."""

    model_config = ConfigDict(frozen=True)

    id: int
    word: str
    meaning: str
    type: str = "other"
    level: int = Field(default=1, ge=1)
    attributes: Optional[VocabularyAttributes] = None
    accepted_answers: Optional[Tuple[str, ...]] = None

    @model_validator(mode="before")
    @classmethod
    def coerce_attributes(cls, values):
        if isinstance(values, dict) and isinstance(values.get("attributes"), dict):
            values = dict(values)
            values["attributes"] = attributes_for(values.get("type", "other"), values["attributes"])
        return values

    def attributes_payload(self) -> Optional[dict]:
        if self.attributes is None:
            return None
        return self.attributes.model_dump(by_alias=True, exclude_none=True)


class ReviewItem(VocabularyItem):
    """Vocabulary item joined with the learner's current mastery."""

    srs_stage: int
    next_review_at: Optional[datetime] = None

    @field_validator("srs_stage")
    @classmethod
    def check_stage(cls, value: int) -> int:
        return validate_stage(value)


class MasteryRecord(BaseModel):
    """Per user and vocabulary item progress persisted by the mastery store."""

    srs_stage: int = 0
    next_review_at: Optional[datetime] = None
    notes: Optional[str] = None
    unlocked_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("srs_stage")
    @classmethod
    def check_stage(cls, value: int) -> int:
        return validate_stage(value)

    @model_validator(mode="after")
    def check_burned_schedule(self) -> "MasteryRecord":
        if self.srs_stage == BURNED_STAGE and self.next_review_at is not None:
            raise ValueError("Burned items cannot have a next review scheduled")
        return self


class LevelStat(BaseModel):
    level: int
    total_words: int
    mastered_words: int


class LevelProgress(BaseModel):
    current_level: int
    total_words: int
    mastered_words: int
    progress_percentage: int


class ScheduleSlot(BaseModel):
    hour: datetime
    count: int


class StartLessonRequest(BaseModel):
    """Input body for /v1/lessons/sessions."""

    user_id: str
    language_id: int
    limit: Optional[int] = Field(default=None, ge=1)


class StartReviewRequest(BaseModel):
    """Input body for /v1/reviews/sessions."""

    user_id: str
    language_id: int


class AnswerRequest(BaseModel):
    answer: str


class InputRequest(BaseModel):
    text: str


class NoteRequest(BaseModel):
    user_id: str
    note: str


class QuestionView(BaseModel):
    prompt: str
    direction: DirectionName
    item_id: int
    pair_id: Optional[str] = None


class LessonSummary(BaseModel):
    first_attempt_correct: int
    total_questions: int
    all_questions_completed: bool = True


class LessonSessionView(BaseModel):
    session_id: UUID
    phase: LessonPhaseName
    card_index: int
    card_count: int
    current_card: Optional[VocabularyItem] = None
    current_question: Optional[QuestionView] = None
    user_input: str = ""
    show_result: bool = False
    last_answer_correct: Optional[bool] = None
    correct_answer: Optional[str] = None
    feedback: Optional[str] = None
    can_undo: bool = False
    is_retest_phase: bool = False
    questions_answered: int = 0
    total_questions: int = 0
    first_attempt_correct: int = 0
    progress: int = 0
    summary: Optional[LessonSummary] = None
    words_unlocked: Optional[int] = None


class ReviewPairView(BaseModel):
    pair_id: str
    item_id: int
    word_to_meaning: Optional[bool] = None
    meaning_to_word: Optional[bool] = None
    completed: bool = False
    srs_from: Optional[int] = None
    srs_to: Optional[int] = None


class ReviewSummary(BaseModel):
    words_reviewed: int
    correct_answers: int
    total_questions: int


class ReviewSessionView(BaseModel):
    session_id: UUID
    complete: bool
    current_question: Optional[QuestionView] = None
    current_pair: Optional[ReviewPairView] = None
    user_input: str = ""
    show_result: bool = False
    show_pair_result: bool = False
    last_answer_correct: Optional[bool] = None
    correct_answer: Optional[str] = None
    feedback: Optional[str] = None
    can_undo: bool = False
    completed_pairs: int = 0
    questions_answered: int = 0
    total_questions: int = 0
    correct_answers: int = 0
    progress: int = 0
    summary: Optional[ReviewSummary] = None


class AvailableLessonsResponse(BaseModel):
    level: int
    items: List[VocabularyItem]


class VocabularyProgress(BaseModel):
    """Catalog entry with the learner's progress, as listed by the vocabulary browser."""

    item: VocabularyItem
    srs_stage: Optional[int] = None
    next_review_at: Optional[datetime] = None
    unlocked_at: Optional[datetime] = None
    notes: Optional[str] = None
    stage_name: str
    stage_color: str
    category: str
    mastered: bool = False
    burned: bool = False
    next_review_label: str


__all__ = [
    "ATTRIBUTE_MODELS",
    "AdjectiveAttributes",
    "AdverbAttributes",
    "AnswerRequest",
    "AvailableLessonsResponse",
    "InputRequest",
    "LessonSessionView",
    "LessonSummary",
    "LevelProgress",
    "LevelStat",
    "MasteryRecord",
    "NoteRequest",
    "NounAttributes",
    "NumberAttributes",
    "OtherAttributes",
    "PhraseAttributes",
    "QuestionView",
    "ReviewItem",
    "ReviewPairView",
    "ReviewSessionView",
    "ReviewSummary",
    "ScheduleSlot",
    "StartLessonRequest",
    "StartReviewRequest",
    "VerbAttributes",
    "VocabularyItem",
    "VocabularyProgress",
    "attributes_for",
]
