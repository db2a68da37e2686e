"""FastAPI application wiring for the vocabulary trainer."""

from __future__ import annotations

import logging
import os
from typing import Awaitable, Callable, List, Optional, TypeVar
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException

from .models import (
    AnswerRequest,
    AvailableLessonsResponse,
    InputRequest,
    LessonSessionView,
    LevelProgress,
    MasteryRecord,
    NoteRequest,
    ReviewSessionView,
    ScheduleSlot,
    StartLessonRequest,
    StartReviewRequest,
    VocabularyProgress,
)
from .services import (
    LessonService,
    ReviewService,
    SessionNotFoundError,
    TrainerConfig,
    VocabularyService,
)
from .storage import InMemoryRepository, SqliteStudyRepository


logger = logging.getLogger(__name__)

app = FastAPI(title="Vocabulary Trainer", version="0.1.0")

T = TypeVar("T")


def get_lesson_service() -> LessonService:
    return app.state.lesson_service


def get_review_service() -> ReviewService:
    return app.state.review_service


def get_vocabulary_service() -> VocabularyService:
    return app.state.vocabulary_service


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value else None


@app.on_event("startup")
def startup() -> None:
    logging.basicConfig(
        level=os.getenv("VOCABTRAINER_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = TrainerConfig(
        lesson_batch_size=_optional_int("VOCABTRAINER_LESSON_BATCH_SIZE") or TrainerConfig.lesson_batch_size,
        shuffle_seed=_optional_int("VOCABTRAINER_SHUFFLE_SEED"),
    )

    db_path = os.getenv("VOCABTRAINER_DB_PATH")
    repository = SqliteStudyRepository(db_path) if db_path else InMemoryRepository()
    logger.info("Using %s storage", "SQLite" if db_path else "in-memory")

    vocabulary_service = VocabularyService(repository, config)
    app.state.repository = repository
    app.state.config = config
    app.state.vocabulary_service = vocabulary_service
    app.state.lesson_service = LessonService(repository, config, vocabulary=vocabulary_service)
    app.state.review_service = ReviewService(repository, config=config)


async def _call(action: Callable[[], Awaitable[T]]) -> T:
    try:
        return await action()
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# region Lessons
@app.get("/v1/lessons/available", response_model=AvailableLessonsResponse)
def lessons_available(
    user_id: str,
    language_id: int,
    limit: Optional[int] = None,
    service: LessonService = Depends(get_lesson_service),
) -> AvailableLessonsResponse:
    return service.available_lessons(user_id, language_id, limit)


@app.post("/v1/lessons/sessions", response_model=LessonSessionView)
async def lesson_start(
    request: StartLessonRequest, service: LessonService = Depends(get_lesson_service)
) -> LessonSessionView:
    return await _call(lambda: service.start(request))


@app.get("/v1/lessons/sessions/{session_id}", response_model=LessonSessionView)
async def lesson_get(
    session_id: UUID, service: LessonService = Depends(get_lesson_service)
) -> LessonSessionView:
    return await _call(lambda: service.get(session_id))


@app.post("/v1/lessons/sessions/{session_id}/cards/next", response_model=LessonSessionView)
async def lesson_next_card(
    session_id: UUID, service: LessonService = Depends(get_lesson_service)
) -> LessonSessionView:
    return await _call(lambda: service.next_card(session_id))


@app.post("/v1/lessons/sessions/{session_id}/cards/previous", response_model=LessonSessionView)
async def lesson_previous_card(
    session_id: UUID, service: LessonService = Depends(get_lesson_service)
) -> LessonSessionView:
    return await _call(lambda: service.previous_card(session_id))


@app.post("/v1/lessons/sessions/{session_id}/input", response_model=LessonSessionView)
async def lesson_input(
    session_id: UUID, request: InputRequest, service: LessonService = Depends(get_lesson_service)
) -> LessonSessionView:
    return await _call(lambda: service.set_input(session_id, request.text))


@app.post("/v1/lessons/sessions/{session_id}/answer", response_model=LessonSessionView)
async def lesson_answer(
    session_id: UUID, request: AnswerRequest, service: LessonService = Depends(get_lesson_service)
) -> LessonSessionView:
    return await _call(lambda: service.answer(session_id, request.answer))


@app.post("/v1/lessons/sessions/{session_id}/next", response_model=LessonSessionView)
async def lesson_next(
    session_id: UUID, service: LessonService = Depends(get_lesson_service)
) -> LessonSessionView:
    return await _call(lambda: service.next(session_id))


@app.post("/v1/lessons/sessions/{session_id}/undo", response_model=LessonSessionView)
async def lesson_undo(
    session_id: UUID, service: LessonService = Depends(get_lesson_service)
) -> LessonSessionView:
    return await _call(lambda: service.undo(session_id))


# endregion


# region Reviews
@app.post("/v1/reviews/sessions", response_model=ReviewSessionView)
async def review_start(
    request: StartReviewRequest, service: ReviewService = Depends(get_review_service)
) -> ReviewSessionView:
    return await _call(lambda: service.start(request))


@app.get("/v1/reviews/schedule", response_model=List[ScheduleSlot])
def review_schedule(
    user_id: str, language_id: int, service: VocabularyService = Depends(get_vocabulary_service)
) -> List[ScheduleSlot]:
    return service.get_review_schedule(user_id, language_id)


@app.get("/v1/reviews/sessions/{session_id}", response_model=ReviewSessionView)
async def review_get(
    session_id: UUID, service: ReviewService = Depends(get_review_service)
) -> ReviewSessionView:
    return await _call(lambda: service.get(session_id))


@app.post("/v1/reviews/sessions/{session_id}/input", response_model=ReviewSessionView)
async def review_input(
    session_id: UUID, request: InputRequest, service: ReviewService = Depends(get_review_service)
) -> ReviewSessionView:
    return await _call(lambda: service.set_input(session_id, request.text))


@app.post("/v1/reviews/sessions/{session_id}/answer", response_model=ReviewSessionView)
async def review_answer(
    session_id: UUID, request: AnswerRequest, service: ReviewService = Depends(get_review_service)
) -> ReviewSessionView:
    return await _call(lambda: service.answer(session_id, request.answer))


@app.post("/v1/reviews/sessions/{session_id}/next", response_model=ReviewSessionView)
async def review_next(
    session_id: UUID, service: ReviewService = Depends(get_review_service)
) -> ReviewSessionView:
    return await _call(lambda: service.next(session_id))


@app.post("/v1/reviews/sessions/{session_id}/undo", response_model=ReviewSessionView)
async def review_undo(
    session_id: UUID, service: ReviewService = Depends(get_review_service)
) -> ReviewSessionView:
    return await _call(lambda: service.undo(session_id))


# endregion


# region Progress and notes
@app.get("/v1/progress/level", response_model=LevelProgress)
def progress_level(
    user_id: str, language_id: int, service: VocabularyService = Depends(get_vocabulary_service)
) -> LevelProgress:
    return service.get_level_progress(user_id, language_id)


@app.get("/v1/vocabulary", response_model=List[VocabularyProgress])
def vocabulary_list(
    user_id: str,
    language_id: int,
    level: Optional[int] = None,
    search: Optional[str] = None,
    type: str = "all",
    srs: str = "all",
    sort: str = "level",
    service: VocabularyService = Depends(get_vocabulary_service),
) -> List[VocabularyProgress]:
    try:
        return service.list_vocabulary_with_progress(
            user_id, language_id, search=search, type_filter=type, srs_filter=srs, sort_by=sort, level=level
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.put("/v1/vocabulary/{vocabulary_id}/note", response_model=MasteryRecord)
def vocabulary_note(
    vocabulary_id: int, request: NoteRequest, service: VocabularyService = Depends(get_vocabulary_service)
) -> MasteryRecord:
    try:
        return service.save_note(request.user_id, vocabulary_id, request.note)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown vocabulary item: {vocabulary_id}") from exc


# endregion


__all__ = ["app"]
