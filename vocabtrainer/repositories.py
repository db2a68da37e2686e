"""Repository interfaces for vocabulary and per-user mastery state."""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .models import LevelStat, MasteryRecord, ReviewItem, VocabularyItem


class VocabularyCatalog(ABC):
    """Read access to a language's vocabulary joined with a learner's progress."""

    @abstractmethod
    def list_items(self, language_id: int) -> List[VocabularyItem]:
        """Return every vocabulary item of a language ordered by level and id."""

    @abstractmethod
    def list_items_with_progress(
        self, user_id: str, language_id: int, level: Optional[int] = None
    ) -> List[Tuple[VocabularyItem, Optional[MasteryRecord]]]:
        """Return items (optionally one level) paired with the learner's record, or None when unstarted."""

    @abstractmethod
    def list_items_for_lesson(self, user_id: str, language_id: int, level: int) -> List[VocabularyItem]:
        """Return items at ``level`` the learner has not started (no record, or a note-only stage 0 record)."""

    @abstractmethod
    def list_items_ready_for_review(
        self, user_id: str, language_id: int, now: datetime
    ) -> List[ReviewItem]:
        """Return unburned items whose next review is due at or before ``now``."""

    @abstractmethod
    def get_level_stats(self, user_id: str, language_id: int, mastered_stage: int) -> List[LevelStat]:
        """Return per-level word totals and how many are at ``mastered_stage`` or above."""

    @abstractmethod
    def list_upcoming_reviews(
        self, user_id: str, language_id: int, start: datetime, end: datetime
    ) -> List[datetime]:
        """Return next-review timestamps in ``[start, end]`` for unburned items."""

    @abstractmethod
    def update_accepted_answers(self, vocabulary_id: int, answers: Sequence[str]) -> None:
        """Replace the stored accepted answers of an item."""


class MasteryRepository(ABC):
    """Persist the SRS stage a learner has reached for each item."""

    @abstractmethod
    def get_mastery(self, user_id: str, vocabulary_id: int) -> Optional[MasteryRecord]:
        """Return the stored record, if present."""

    @abstractmethod
    def set_mastery(self, user_id: str, vocabulary_id: int, record: MasteryRecord) -> None:
        """Insert or replace the record."""

    @abstractmethod
    def create_mastery(self, user_id: str, vocabulary_id: int, record: MasteryRecord) -> bool:
        """Insert the record unless one exists. Return True when inserted."""


class StudyRepository(VocabularyCatalog, MasteryRepository):
    """A single store that serves both the catalog and mastery records."""


__all__ = ["MasteryRepository", "StudyRepository", "VocabularyCatalog"]
