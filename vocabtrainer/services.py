"""Core services implementing the lesson, review and progress workflows."""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Set
from uuid import UUID, uuid4

from . import srs
from .answers import generate_acceptable_answers
from .domain import MasteryUpdate
from .filtering import filter_vocabulary, sort_vocabulary, validate_browse_options
from .metrics import METRICS
from .models import (
    AvailableLessonsResponse,
    LessonSessionView,
    LessonSummary,
    LevelProgress,
    LevelStat,
    MasteryRecord,
    ReviewSessionView,
    ScheduleSlot,
    StartLessonRequest,
    StartReviewRequest,
    VocabularyItem,
    VocabularyProgress,
)
from .questions import calculate_progress
from .repositories import MasteryRepository, StudyRepository
from .sessions import LessonSession, ReviewSession
from .validators import clean_accepted_answers


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class SessionNotFoundError(LookupError):
    """Raised when a session id is unknown to the service."""


class MasteryNotFoundError(LookupError):
    """Raised when a review result targets an item the learner never unlocked."""


@dataclass
class TrainerConfig:
    """Tunable configuration for session sizes, shuffling and forecasts."""

    lesson_batch_size: int = 5
    review_batch_size: Optional[int] = None
    shuffle_seed: Optional[int] = None
    schedule_window_hours: int = 24


def unlocked_level_from_stats(stats: Sequence[LevelStat]) -> int:
    """Highest level reachable by fully mastering every level below it."""

    unlocked = 1
    for stat in sorted(stats, key=lambda stat: stat.level):
        if stat.level != unlocked:
            continue
        if stat.total_words > 0 and stat.mastered_words >= stat.total_words:
            unlocked += 1
        else:
            break
    return unlocked


def _progress_row(item: VocabularyItem, record: Optional[MasteryRecord], now: datetime) -> VocabularyProgress:
    stage = record.srs_stage if record else None
    info = srs.stage_info(stage)
    next_review_at = record.next_review_at if record else None
    return VocabularyProgress(
        item=item,
        srs_stage=stage,
        next_review_at=next_review_at,
        unlocked_at=record.unlocked_at if record else None,
        notes=record.notes if record else None,
        stage_name=info["name"],
        stage_color=info["color"],
        category=srs.stage_category(stage),
        mastered=srs.is_mastered_stage(stage),
        burned=srs.is_burned_stage(stage),
        next_review_label=srs.format_next_review(next_review_at, now),
    )


class MasteryWriter:
    """Commits completed review pairs to the mastery store in the background.

    ``schedule`` must be called from a running event loop. A failed commit is
    logged and counted but never surfaces to the session that produced it.
    """

    def __init__(self, repository: MasteryRepository, clock: Clock = srs.utcnow) -> None:
        self._repository = repository
        self._clock = clock
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, update: MasteryUpdate) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._run(update))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled commit to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _run(self, update: MasteryUpdate) -> Optional[MasteryRecord]:
        try:
            return self.commit(update)
        except Exception as exc:
            METRICS.record_write_failure(type(exc).__name__)
            logger.exception(
                "Failed to persist review result for item %s (%s)", update.vocabulary_id, update.pair_id
            )
            return None

    def commit(self, update: MasteryUpdate) -> MasteryRecord:
        record = self._repository.get_mastery(update.user_id, update.vocabulary_id)
        if record is None:
            raise MasteryNotFoundError(
                f"Item {update.vocabulary_id} has no mastery record for user {update.user_id}"
            )
        if record.srs_stage != update.from_stage:
            logger.debug(
                "Stored stage %d differs from session stage %d for item %s",
                record.srs_stage,
                update.from_stage,
                update.vocabulary_id,
            )

        now = self._clock()
        result = srs.advance_pair(record.srs_stage, update.both_correct, now)
        payload = record.model_dump()
        payload.update(srs_stage=result.new_stage, next_review_at=result.next_review_at, updated_at=now)
        updated = MasteryRecord.model_validate(payload)
        self._repository.set_mastery(update.user_id, update.vocabulary_id, updated)

        METRICS.record_write_success()
        METRICS.record_srs_transition(record.srs_stage, updated.srs_stage)
        logger.info(
            "Item %s moved from stage %d to %d, next review %s",
            update.vocabulary_id,
            record.srs_stage,
            updated.srs_stage,
            updated.next_review_at.isoformat() if updated.next_review_at else "never",
        )
        return updated


class VocabularyService:
    """Level progression, review forecasts, notes and catalog maintenance."""

    def __init__(
        self,
        repository: StudyRepository,
        config: Optional[TrainerConfig] = None,
        clock: Clock = srs.utcnow,
    ) -> None:
        self._repository = repository
        self._config = config or TrainerConfig()
        self._clock = clock

    def get_unlocked_level(self, user_id: str, language_id: int) -> int:
        stats = self._repository.get_level_stats(user_id, language_id, srs.MASTERED_STAGE)
        return unlocked_level_from_stats(stats)

    def get_level_progress(self, user_id: str, language_id: int) -> LevelProgress:
        stats = self._repository.get_level_stats(user_id, language_id, srs.MASTERED_STAGE)
        level = unlocked_level_from_stats(stats)
        current = next((stat for stat in stats if stat.level == level), None)
        total = current.total_words if current else 0
        mastered = current.mastered_words if current else 0
        return LevelProgress(
            current_level=level,
            total_words=total,
            mastered_words=mastered,
            progress_percentage=calculate_progress(mastered, total),
        )

    def get_review_schedule(self, user_id: str, language_id: int) -> List[ScheduleSlot]:
        """Upcoming reviews bucketed by hour; every hour of the window is present."""

        now = self._clock()
        window = self._config.schedule_window_hours
        counts: Dict[datetime, int] = {}
        for offset in range(window):
            hour = (now + timedelta(hours=offset)).replace(minute=0, second=0, microsecond=0)
            counts[hour] = 0

        upcoming = self._repository.list_upcoming_reviews(
            user_id, language_id, now, now + timedelta(hours=window)
        )
        for at in upcoming:
            hour = at.astimezone(now.tzinfo).replace(minute=0, second=0, microsecond=0)
            counts[hour] = counts.get(hour, 0) + 1

        return [ScheduleSlot(hour=hour, count=count) for hour, count in sorted(counts.items())]

    def list_vocabulary_with_progress(
        self,
        user_id: str,
        language_id: int,
        search: Optional[str] = None,
        type_filter: str = "all",
        srs_filter: str = "all",
        sort_by: str = "level",
        level: Optional[int] = None,
    ) -> List[VocabularyProgress]:
        """Every item of a language (or of one level) with the learner's stage and countdown."""

        validate_browse_options(srs_filter, sort_by)
        now = self._clock()
        rows = [
            _progress_row(item, record, now)
            for item, record in self._repository.list_items_with_progress(user_id, language_id, level)
        ]
        rows = filter_vocabulary(rows, search=search, type_filter=type_filter, srs_filter=srs_filter)
        return sort_vocabulary(rows, sort_by)

    def list_vocabulary_by_level(
        self, user_id: str, language_id: int, level: int, sort_by: str = "word"
    ) -> List[VocabularyProgress]:
        return self.list_vocabulary_with_progress(user_id, language_id, sort_by=sort_by, level=level)

    def save_note(self, user_id: str, vocabulary_id: int, note: str) -> MasteryRecord:
        text = note.strip() or None
        now = self._clock()
        record = self._repository.get_mastery(user_id, vocabulary_id)
        if record is None:
            record = MasteryRecord(srs_stage=srs.NOT_STARTED_STAGE, notes=text, unlocked_at=now)
        else:
            payload = record.model_dump()
            payload.update(notes=text, updated_at=now)
            record = MasteryRecord.model_validate(payload)
        self._repository.set_mastery(user_id, vocabulary_id, record)
        return record

    def get_note(self, user_id: str, vocabulary_id: int) -> Optional[str]:
        record = self._repository.get_mastery(user_id, vocabulary_id)
        return record.notes if record else None

    def backfill_accepted_answers(self, language_id: int, regenerate: bool = False) -> int:
        """Store generated alternatives for items that lack them.

        With ``regenerate`` every item is recomputed. Items whose meaning yields
        no alternative beyond itself are left untouched.
        """

        updated = 0
        for item in self._repository.list_items(language_id):
            if item.accepted_answers is not None and not regenerate:
                continue
            answers = clean_accepted_answers(generate_acceptable_answers(item.meaning))
            if len(answers) <= 1:
                continue
            self._repository.update_accepted_answers(item.id, answers)
            updated += 1
            logger.debug("Accepted answers for %r: %s", item.meaning, answers)
        logger.info("Backfilled accepted answers for %d items in language %s", updated, language_id)
        return updated


class LessonService:
    """Runs lesson sessions and unlocks their items once a lesson completes."""

    def __init__(
        self,
        repository: StudyRepository,
        config: Optional[TrainerConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Clock = srs.utcnow,
        vocabulary: Optional[VocabularyService] = None,
    ) -> None:
        self._repository = repository
        self._config = config or TrainerConfig()
        self._rng = rng or random.Random(self._config.shuffle_seed)
        self._clock = clock
        self._vocabulary = vocabulary or VocabularyService(repository, self._config, clock)
        self._sessions: Dict[UUID, LessonSession] = {}
        self._lock = asyncio.Lock()

    def available_lessons(
        self, user_id: str, language_id: int, limit: Optional[int] = None
    ) -> AvailableLessonsResponse:
        level = self._vocabulary.get_unlocked_level(user_id, language_id)
        items = self._repository.list_items_for_lesson(user_id, language_id, level)
        if limit:
            items = items[:limit]
        return AvailableLessonsResponse(level=level, items=items)

    async def start(self, request: StartLessonRequest) -> LessonSessionView:
        limit = request.limit or self._config.lesson_batch_size
        available = self.available_lessons(request.user_id, request.language_id, limit)
        if not available.items:
            raise ValueError("No lessons available")

        items = available.items
        session = LessonSession(
            items,
            rng=self._rng,
            on_complete=lambda summary: self._unlock_items(request.user_id, items, summary),
        )
        session_id = uuid4()
        async with self._lock:
            self._sessions[session_id] = session
        logger.info(
            "Started lesson %s for user %s with %d items from level %d",
            session_id,
            request.user_id,
            len(items),
            available.level,
        )
        return self._view(session_id, session)

    def _unlock_items(self, user_id: str, items: Sequence[VocabularyItem], summary: LessonSummary) -> int:
        now = self._clock()
        update = srs.unlock(now)
        unlocked = 0
        try:
            for item in items:
                record = MasteryRecord(
                    srs_stage=update.new_stage,
                    next_review_at=update.next_review_at,
                    unlocked_at=now,
                    updated_at=now,
                )
                if self._repository.create_mastery(user_id, item.id, record):
                    unlocked += 1
                    continue
                existing = self._repository.get_mastery(user_id, item.id)
                if existing is not None and existing.srs_stage == srs.NOT_STARTED_STAGE:
                    self._repository.set_mastery(
                        user_id, item.id, record.model_copy(update={"notes": existing.notes})
                    )
                    unlocked += 1
        except Exception:
            logger.exception("Failed to unlock lesson items for user %s", user_id)
        METRICS.record_lesson_completed(unlocked)
        logger.info(
            "Lesson finished for user %s: %d/%d first-attempt correct, %d words unlocked",
            user_id,
            summary.first_attempt_correct,
            summary.total_questions,
            unlocked,
        )
        return unlocked

    async def _get(self, session_id: UUID) -> LessonSession:
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Unknown lesson session: {session_id}")
        return session

    @staticmethod
    def _view(session_id: UUID, session: LessonSession) -> LessonSessionView:
        return session.to_view(session_id, words_unlocked=session.completion_result)

    async def get(self, session_id: UUID) -> LessonSessionView:
        return self._view(session_id, await self._get(session_id))

    async def next_card(self, session_id: UUID) -> LessonSessionView:
        session = await self._get(session_id)
        session.next_card()
        return self._view(session_id, session)

    async def previous_card(self, session_id: UUID) -> LessonSessionView:
        session = await self._get(session_id)
        session.previous_card()
        return self._view(session_id, session)

    async def set_input(self, session_id: UUID, text: str) -> LessonSessionView:
        session = await self._get(session_id)
        session.set_input(text)
        return self._view(session_id, session)

    async def answer(self, session_id: UUID, answer: str) -> LessonSessionView:
        session = await self._get(session_id)
        session.submit_answer(answer)
        return self._view(session_id, session)

    async def next(self, session_id: UUID) -> LessonSessionView:
        session = await self._get(session_id)
        session.next_question()
        return self._view(session_id, session)

    async def undo(self, session_id: UUID) -> LessonSessionView:
        session = await self._get(session_id)
        session.undo()
        return self._view(session_id, session)


class ReviewService:
    """Runs paired review sessions over items that are due."""

    def __init__(
        self,
        repository: StudyRepository,
        writer: Optional[MasteryWriter] = None,
        config: Optional[TrainerConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Clock = srs.utcnow,
    ) -> None:
        self._repository = repository
        self._config = config or TrainerConfig()
        self._rng = rng or random.Random(self._config.shuffle_seed)
        self._clock = clock
        self._writer = writer or MasteryWriter(repository, clock)
        self._sessions: Dict[UUID, ReviewSession] = {}
        self._lock = asyncio.Lock()

    @property
    def writer(self) -> MasteryWriter:
        return self._writer

    async def start(self, request: StartReviewRequest) -> ReviewSessionView:
        items = self._repository.list_items_ready_for_review(
            request.user_id, request.language_id, self._clock()
        )
        if self._config.review_batch_size:
            items = items[: self._config.review_batch_size]
        if not items:
            raise ValueError("No reviews available")

        session = ReviewSession(request.user_id, items, submit_write=self._writer.schedule, rng=self._rng)
        session_id = uuid4()
        async with self._lock:
            self._sessions[session_id] = session
        logger.info("Started review %s for user %s with %d items", session_id, request.user_id, len(items))
        return session.to_view(session_id)

    async def _get(self, session_id: UUID) -> ReviewSession:
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Unknown review session: {session_id}")
        return session

    async def get(self, session_id: UUID) -> ReviewSessionView:
        return (await self._get(session_id)).to_view(session_id)

    async def set_input(self, session_id: UUID, text: str) -> ReviewSessionView:
        session = await self._get(session_id)
        session.set_input(text)
        return session.to_view(session_id)

    async def answer(self, session_id: UUID, answer: str) -> ReviewSessionView:
        session = await self._get(session_id)
        session.submit_answer(answer)
        return session.to_view(session_id)

    async def next(self, session_id: UUID) -> ReviewSessionView:
        session = await self._get(session_id)
        session.next_question()
        return session.to_view(session_id)

    async def undo(self, session_id: UUID) -> ReviewSessionView:
        session = await self._get(session_id)
        session.undo()
        return session.to_view(session_id)


__all__ = [
    "LessonService",
    "MasteryNotFoundError",
    "MasteryWriter",
    "ReviewService",
    "SessionNotFoundError",
    "TrainerConfig",
    "VocabularyService",
    "unlocked_level_from_stats",
]
