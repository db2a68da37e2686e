"""Graduated-interval SRS stage engine."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional


NOT_STARTED_STAGE = 0
FIRST_STAGE = 1
MASTERED_STAGE = 5
BURNED_STAGE = 9
MAX_STAGE = BURNED_STAGE
# Ceiling used when a completed review pair is committed.
MAX_STAGE_VIA_PAIR_COMMIT = BURNED_STAGE

SRS_INTERVAL_HOURS: Dict[int, Optional[int]] = {
    1: 4,
    2: 8,
    3: 24,
    4: 72,
    5: 168,
    6: 336,
    7: 720,
    8: 2160,
    9: None,
}

STAGE_NAMES: Dict[int, str] = {
    0: "Not Learned",
    1: "Apprentice 1",
    2: "Apprentice 2",
    3: "Apprentice 3",
    4: "Apprentice 4",
    5: "Guru 1",
    6: "Guru 2",
    7: "Master",
    8: "Enlightened",
    9: "Burned",
}

STAGE_COLORS: Dict[int, str] = {
    0: "default",
    1: "danger",
    2: "danger",
    3: "danger",
    4: "danger",
    5: "warning",
    6: "warning",
    7: "primary",
    8: "secondary",
    9: "success",
}


class InvalidStageError(ValueError):
    """Raised when a stage value falls outside the supported range."""


@dataclass(frozen=True)
class SrsUpdate:
    """Result of advancing an item through the stage table."""

    new_stage: int
    next_review_at: Optional[datetime]

    @property
    def is_burned(self) -> bool:
        return self.new_stage == BURNED_STAGE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_stage(stage: int) -> int:
    if isinstance(stage, bool) or not isinstance(stage, int):
        raise InvalidStageError(f"SRS stage must be an integer, got {stage!r}")
    if stage < NOT_STARTED_STAGE or stage > MAX_STAGE:
        raise InvalidStageError(
            f"SRS stage {stage} is outside the range {NOT_STARTED_STAGE}-{MAX_STAGE}"
        )
    return stage


def interval_for(stage: int) -> Optional[timedelta]:
    """Return the wait before the next review at ``stage``; ``None`` once burned."""

    validate_stage(stage)
    if stage == NOT_STARTED_STAGE:
        raise InvalidStageError("Stage 0 has no review interval")
    hours = SRS_INTERVAL_HOURS[stage]
    if hours is None:
        return None
    return timedelta(hours=hours)


def next_stage(current_stage: int, correct: bool, ceiling: int = MAX_STAGE) -> int:
    """Pure stage transition without any scheduling."""

    validate_stage(current_stage)
    if current_stage == BURNED_STAGE:
        return BURNED_STAGE
    if correct:
        return min(current_stage + 1, ceiling)
    return FIRST_STAGE


def schedule(stage: int, now: Optional[datetime] = None) -> SrsUpdate:
    now = now or utcnow()
    interval = interval_for(stage)
    return SrsUpdate(
        new_stage=stage,
        next_review_at=now + interval if interval is not None else None,
    )


def advance(current_stage: int, correct: bool, now: Optional[datetime] = None) -> SrsUpdate:
    """Map ``(current_stage, correct)`` to the new stage and its next review time.

    Correct answers move one stage forward, capped at :data:`MAX_STAGE`.
    Incorrect answers reset to :data:`FIRST_STAGE`, including from stage 0.
    The burned stage is absorbing and never schedules another review.
    """

    return schedule(next_stage(current_stage, correct, ceiling=MAX_STAGE), now)


def advance_pair(current_stage: int, both_correct: bool, now: Optional[datetime] = None) -> SrsUpdate:
    """Stage transition applied when both directions of a review pair are known."""

    return schedule(
        next_stage(current_stage, both_correct, ceiling=MAX_STAGE_VIA_PAIR_COMMIT), now
    )


def unlock(now: Optional[datetime] = None) -> SrsUpdate:
    """Initial schedule for a word that has just been learned in a lesson."""

    return schedule(FIRST_STAGE, now)


def stage_info(stage: Optional[int]) -> Dict[str, str]:
    if stage is None:
        return {"name": STAGE_NAMES[NOT_STARTED_STAGE], "color": STAGE_COLORS[NOT_STARTED_STAGE]}
    if stage not in STAGE_NAMES:
        return {"name": "Unknown", "color": "default"}
    return {"name": STAGE_NAMES[stage], "color": STAGE_COLORS[stage]}


def is_mastered_stage(stage: Optional[int]) -> bool:
    return stage is not None and stage >= MASTERED_STAGE


def is_burned_stage(stage: Optional[int]) -> bool:
    return stage == BURNED_STAGE


def stage_category(stage: Optional[int]) -> str:
    if stage is None or stage == NOT_STARTED_STAGE:
        return "not-learned"
    if stage < MASTERED_STAGE:
        return "apprentice"
    if stage <= 6:
        return "guru"
    if stage < BURNED_STAGE:
        return "master-enlightened"
    return "burned"


def format_next_review(next_review_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human readable countdown such as ``"3d 5h"`` or ``"Available Now"``."""

    if next_review_at is None:
        return "Never"
    now = now or utcnow()
    remaining = int((next_review_at - now).total_seconds())
    if remaining <= 0:
        return "Available Now"
    days, remainder = divmod(remaining, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


__all__ = [
    "BURNED_STAGE",
    "FIRST_STAGE",
    "InvalidStageError",
    "MASTERED_STAGE",
    "MAX_STAGE",
    "MAX_STAGE_VIA_PAIR_COMMIT",
    "NOT_STARTED_STAGE",
    "SRS_INTERVAL_HOURS",
    "SrsUpdate",
    "advance",
    "advance_pair",
    "format_next_review",
    "interval_for",
    "is_burned_stage",
    "is_mastered_stage",
    "next_stage",
    "schedule",
    "stage_category",
    "stage_info",
    "unlock",
    "utcnow",
    "validate_stage",
]
