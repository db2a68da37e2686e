"""Concrete repository implementations backed by memory and SQLite."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .models import LevelStat, MasteryRecord, ReviewItem, VocabularyItem
from .repositories import StudyRepository
from .srs import BURNED_STAGE


logger = logging.getLogger(__name__)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialise as UTC with a fixed width so stored values compare as text."""

    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _review_item(item: VocabularyItem, record: MasteryRecord) -> ReviewItem:
    payload = item.model_dump()
    payload["attributes"] = item.attributes_payload()
    payload.update(srs_stage=record.srs_stage, next_review_at=record.next_review_at)
    return ReviewItem.model_validate(payload)


class InMemoryRepository(StudyRepository):
    """Dictionary backed repository used by default and in tests."""

    def __init__(self) -> None:
        self._languages: Dict[int, Dict[str, str]] = {}
        self._vocabulary: Dict[int, VocabularyItem] = {}
        self._item_language: Dict[int, int] = {}
        self._mastery: Dict[Tuple[str, int], MasteryRecord] = {}

    # region Seeding
    def add_language(self, language_id: int, code: str, name: str) -> None:
        self._languages[language_id] = {"code": code, "name": name}

    def add_vocabulary(self, language_id: int, item: VocabularyItem) -> None:
        if language_id not in self._languages:
            raise KeyError(f"Language {language_id} does not exist")
        self._vocabulary[item.id] = item
        self._item_language[item.id] = language_id

    # endregion

    def _language_items(self, language_id: int) -> List[VocabularyItem]:
        items = [
            item
            for item_id, item in self._vocabulary.items()
            if self._item_language[item_id] == language_id
        ]
        return sorted(items, key=lambda item: (item.level, item.id))

    def _require_item(self, vocabulary_id: int) -> VocabularyItem:
        try:
            return self._vocabulary[vocabulary_id]
        except KeyError as exc:
            raise KeyError(f"Vocabulary item {vocabulary_id} does not exist") from exc

    # region VocabularyCatalog
    def list_items(self, language_id: int) -> List[VocabularyItem]:
        return self._language_items(language_id)

    def list_items_with_progress(
        self, user_id: str, language_id: int, level: Optional[int] = None
    ) -> List[Tuple[VocabularyItem, Optional[MasteryRecord]]]:
        return [
            (item, self._mastery.get((user_id, item.id)))
            for item in self._language_items(language_id)
            if level is None or item.level == level
        ]

    def list_items_for_lesson(self, user_id: str, language_id: int, level: int) -> List[VocabularyItem]:
        available: List[VocabularyItem] = []
        for item in self._language_items(language_id):
            if item.level != level:
                continue
            record = self._mastery.get((user_id, item.id))
            if record is None or record.srs_stage == 0:
                available.append(item)
        return available

    def list_items_ready_for_review(
        self, user_id: str, language_id: int, now: datetime
    ) -> List[ReviewItem]:
        now = _as_utc(now)
        ready: List[ReviewItem] = []
        for item in self._language_items(language_id):
            record = self._mastery.get((user_id, item.id))
            if record is None or record.next_review_at is None:
                continue
            if record.srs_stage == BURNED_STAGE:
                continue
            if _as_utc(record.next_review_at) <= now:
                ready.append(_review_item(item, record))
        return sorted(ready, key=lambda item: (_as_utc(item.next_review_at), item.id))

    def get_level_stats(self, user_id: str, language_id: int, mastered_stage: int) -> List[LevelStat]:
        totals: Dict[int, int] = defaultdict(int)
        mastered: Dict[int, int] = defaultdict(int)
        for item in self._language_items(language_id):
            totals[item.level] += 1
            record = self._mastery.get((user_id, item.id))
            if record is not None and record.srs_stage >= mastered_stage:
                mastered[item.level] += 1
        return [
            LevelStat(level=level, total_words=totals[level], mastered_words=mastered[level])
            for level in sorted(totals)
        ]

    def list_upcoming_reviews(
        self, user_id: str, language_id: int, start: datetime, end: datetime
    ) -> List[datetime]:
        start, end = _as_utc(start), _as_utc(end)
        upcoming: List[datetime] = []
        for item in self._language_items(language_id):
            record = self._mastery.get((user_id, item.id))
            if record is None or record.next_review_at is None or record.srs_stage == BURNED_STAGE:
                continue
            at = _as_utc(record.next_review_at)
            if start <= at <= end:
                upcoming.append(at)
        return sorted(upcoming)

    def update_accepted_answers(self, vocabulary_id: int, answers: Sequence[str]) -> None:
        item = self._require_item(vocabulary_id)
        self._vocabulary[vocabulary_id] = item.model_copy(update={"accepted_answers": tuple(answers)})

    # endregion

    # region MasteryRepository
    def get_mastery(self, user_id: str, vocabulary_id: int) -> Optional[MasteryRecord]:
        return self._mastery.get((user_id, vocabulary_id))

    def set_mastery(self, user_id: str, vocabulary_id: int, record: MasteryRecord) -> None:
        self._require_item(vocabulary_id)
        self._mastery[(user_id, vocabulary_id)] = record

    def create_mastery(self, user_id: str, vocabulary_id: int, record: MasteryRecord) -> bool:
        self._require_item(vocabulary_id)
        key = (user_id, vocabulary_id)
        if key in self._mastery:
            return False
        self._mastery[key] = record
        return True

    # endregion


class SqliteStudyRepository(StudyRepository):
    """Stores languages, vocabulary and per-user mastery in a SQLite database."""

    def __init__(self, db_path: Union[Path, str]) -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._initialise_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _initialise_schema(self) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.executescript(
                """
                CREATE TABLE IF NOT EXISTS language (
                    id INTEGER PRIMARY KEY,
                    code TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS vocabulary (
                    id INTEGER PRIMARY KEY,
                    language_id INTEGER NOT NULL REFERENCES language (id),
                    word TEXT NOT NULL,
                    meaning TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'other',
                    level INTEGER NOT NULL DEFAULT 1,
                    attributes_json TEXT,
                    accepted_answers_json TEXT
                );

                CREATE TABLE IF NOT EXISTS user_vocabulary (
                    user_id TEXT NOT NULL,
                    vocabulary_id INTEGER NOT NULL REFERENCES vocabulary (id),
                    srs_stage INTEGER NOT NULL DEFAULT 0,
                    next_review_at TEXT,
                    notes TEXT,
                    unlocked_at TEXT,
                    updated_at TEXT,
                    PRIMARY KEY (user_id, vocabulary_id)
                );

                CREATE INDEX IF NOT EXISTS idx_user_vocabulary_review
                    ON user_vocabulary (user_id, next_review_at);
                """
            )
            self._conn.commit()

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> VocabularyItem:
        attributes = json.loads(row["attributes_json"]) if row["attributes_json"] else None
        accepted = json.loads(row["accepted_answers_json"]) if row["accepted_answers_json"] else None
        return VocabularyItem(
            id=row["id"],
            word=row["word"],
            meaning=row["meaning"],
            type=row["type"],
            level=row["level"],
            attributes=attributes,
            accepted_answers=accepted,
        )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> MasteryRecord:
        return MasteryRecord(
            srs_stage=row["srs_stage"],
            next_review_at=_from_iso(row["next_review_at"]),
            notes=row["notes"],
            unlocked_at=_from_iso(row["unlocked_at"]),
            updated_at=_from_iso(row["updated_at"]),
        )

    def _assert_item_exists(self, cursor: sqlite3.Cursor, vocabulary_id: int) -> None:
        row = cursor.execute("SELECT 1 FROM vocabulary WHERE id = ?", (vocabulary_id,)).fetchone()
        if row is None:
            raise KeyError(f"Vocabulary item {vocabulary_id} does not exist")

    # Seeding ------------------------------------------------------------
    def add_language(self, language_id: int, code: str, name: str) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.execute(
                "INSERT OR REPLACE INTO language (id, code, name) VALUES (?, ?, ?)",
                (language_id, code, name),
            )
            self._conn.commit()

    def add_vocabulary(self, language_id: int, item: VocabularyItem) -> None:
        attributes = item.attributes_payload()
        with self._lock:
            cursor = self._conn.cursor()
            if cursor.execute("SELECT 1 FROM language WHERE id = ?", (language_id,)).fetchone() is None:
                raise KeyError(f"Language {language_id} does not exist")
            cursor.execute(
                """
                INSERT OR REPLACE INTO vocabulary
                    (id, language_id, word, meaning, type, level, attributes_json, accepted_answers_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item.id,
                    language_id,
                    item.word,
                    item.meaning,
                    item.type,
                    item.level,
                    json.dumps(attributes) if attributes is not None else None,
                    json.dumps(list(item.accepted_answers)) if item.accepted_answers is not None else None,
                ),
            )
            self._conn.commit()

    # VocabularyCatalog --------------------------------------------------
    def list_items(self, language_id: int) -> List[VocabularyItem]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM vocabulary WHERE language_id = ? ORDER BY level, id",
                (language_id,),
            ).fetchall()
        return [self._row_to_item(row) for row in rows]

    def list_items_with_progress(
        self, user_id: str, language_id: int, level: Optional[int] = None
    ) -> List[Tuple[VocabularyItem, Optional[MasteryRecord]]]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT v.*, uv.vocabulary_id AS progress_id,
                       uv.srs_stage, uv.next_review_at, uv.notes, uv.unlocked_at, uv.updated_at
                  FROM vocabulary v
                  LEFT JOIN user_vocabulary uv
                    ON uv.vocabulary_id = v.id AND uv.user_id = ?
                 WHERE v.language_id = ? AND (? IS NULL OR v.level = ?)
                 ORDER BY v.level, v.id
                """,
                (user_id, language_id, level, level),
            ).fetchall()
        return [
            (self._row_to_item(row), self._row_to_record(row) if row["progress_id"] is not None else None)
            for row in rows
        ]

    def list_items_for_lesson(self, user_id: str, language_id: int, level: int) -> List[VocabularyItem]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT v.*
                  FROM vocabulary v
                  LEFT JOIN user_vocabulary uv
                    ON uv.vocabulary_id = v.id AND uv.user_id = ?
                 WHERE v.language_id = ? AND v.level = ?
                   AND (uv.vocabulary_id IS NULL OR uv.srs_stage = 0)
                 ORDER BY v.level, v.id
                """,
                (user_id, language_id, level),
            ).fetchall()
        return [self._row_to_item(row) for row in rows]

    def list_items_ready_for_review(
        self, user_id: str, language_id: int, now: datetime
    ) -> List[ReviewItem]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT v.*, uv.srs_stage, uv.next_review_at, uv.notes, uv.unlocked_at, uv.updated_at
                  FROM user_vocabulary uv
                  JOIN vocabulary v ON v.id = uv.vocabulary_id
                 WHERE uv.user_id = ?
                   AND v.language_id = ?
                   AND uv.next_review_at IS NOT NULL
                   AND uv.next_review_at <= ?
                   AND uv.srs_stage != ?
                 ORDER BY uv.next_review_at, v.id
                """,
                (user_id, language_id, _to_iso(now), BURNED_STAGE),
            ).fetchall()
        return [_review_item(self._row_to_item(row), self._row_to_record(row)) for row in rows]

    def get_level_stats(self, user_id: str, language_id: int, mastered_stage: int) -> List[LevelStat]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT v.level AS level,
                       COUNT(v.id) AS total_words,
                       COUNT(uv.vocabulary_id) AS mastered_words
                  FROM vocabulary v
                  LEFT JOIN user_vocabulary uv
                    ON uv.vocabulary_id = v.id AND uv.user_id = ? AND uv.srs_stage >= ?
                 WHERE v.language_id = ?
                 GROUP BY v.level
                 ORDER BY v.level
                """,
                (user_id, mastered_stage, language_id),
            ).fetchall()
        return [
            LevelStat(level=row["level"], total_words=row["total_words"], mastered_words=row["mastered_words"])
            for row in rows
        ]

    def list_upcoming_reviews(
        self, user_id: str, language_id: int, start: datetime, end: datetime
    ) -> List[datetime]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT uv.next_review_at
                  FROM user_vocabulary uv
                  JOIN vocabulary v ON v.id = uv.vocabulary_id
                 WHERE uv.user_id = ?
                   AND v.language_id = ?
                   AND uv.next_review_at IS NOT NULL
                   AND uv.next_review_at >= ?
                   AND uv.next_review_at <= ?
                   AND uv.srs_stage != ?
                 ORDER BY uv.next_review_at
                """,
                (user_id, language_id, _to_iso(start), _to_iso(end), BURNED_STAGE),
            ).fetchall()
        return [_from_iso(row["next_review_at"]) for row in rows]

    def update_accepted_answers(self, vocabulary_id: int, answers: Sequence[str]) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.execute(
                "UPDATE vocabulary SET accepted_answers_json = ? WHERE id = ?",
                (json.dumps(list(answers)), vocabulary_id),
            )
            if cursor.rowcount == 0:
                raise KeyError(f"Vocabulary item {vocabulary_id} does not exist")
            self._conn.commit()

    # MasteryRepository --------------------------------------------------
    def get_mastery(self, user_id: str, vocabulary_id: int) -> Optional[MasteryRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM user_vocabulary WHERE user_id = ? AND vocabulary_id = ?",
                (user_id, vocabulary_id),
            ).fetchone()
        if not row:
            return None
        return self._row_to_record(row)

    def set_mastery(self, user_id: str, vocabulary_id: int, record: MasteryRecord) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            self._assert_item_exists(cursor, vocabulary_id)
            cursor.execute(
                """
                INSERT OR REPLACE INTO user_vocabulary
                    (user_id, vocabulary_id, srs_stage, next_review_at, notes, unlocked_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    vocabulary_id,
                    record.srs_stage,
                    _to_iso(record.next_review_at),
                    record.notes,
                    _to_iso(record.unlocked_at),
                    _to_iso(record.updated_at),
                ),
            )
            self._conn.commit()

    def create_mastery(self, user_id: str, vocabulary_id: int, record: MasteryRecord) -> bool:
        with self._lock:
            cursor = self._conn.cursor()
            self._assert_item_exists(cursor, vocabulary_id)
            cursor.execute(
                """
                INSERT OR IGNORE INTO user_vocabulary
                    (user_id, vocabulary_id, srs_stage, next_review_at, notes, unlocked_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    vocabulary_id,
                    record.srs_stage,
                    _to_iso(record.next_review_at),
                    record.notes,
                    _to_iso(record.unlocked_at),
                    _to_iso(record.updated_at),
                ),
            )
            inserted = cursor.rowcount == 1
            self._conn.commit()
        if not inserted:
            logger.debug("Mastery record for %s/%s already exists", user_id, vocabulary_id)
        return inserted


__all__ = ["InMemoryRepository", "SqliteStudyRepository"]
