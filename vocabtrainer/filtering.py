"""Search, filter and sort helpers for the vocabulary browser."""
from __future__ import annotations

from typing import Iterable, List, Optional

from .models import VocabularyProgress
from .srs import stage_category


SRS_FILTERS = ("all", "learned", "not-learned", "apprentice", "guru", "master-enlightened", "burned")
SORT_KEYS = ("level", "word", "meaning", "type", "srs")


def validate_browse_options(srs_filter: str = "all", sort_by: str = "level") -> None:
    if srs_filter not in SRS_FILTERS:
        raise ValueError(f"Unknown SRS filter {srs_filter!r}; expected one of {', '.join(SRS_FILTERS)}")
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key {sort_by!r}; expected one of {', '.join(SORT_KEYS)}")


def matches_srs_filter(stage: Optional[int], srs_filter: str) -> bool:
    if srs_filter == "all":
        return True
    category = stage_category(stage)
    if srs_filter == "learned":
        return category != "not-learned"
    return category == srs_filter


def filter_vocabulary(
    rows: Iterable[VocabularyProgress],
    search: Optional[str] = None,
    type_filter: str = "all",
    srs_filter: str = "all",
) -> List[VocabularyProgress]:
    """Keep rows whose word or meaning contains ``search`` and that pass both filters."""

    validate_browse_options(srs_filter=srs_filter)
    term = (search or "").strip().lower()
    filtered: List[VocabularyProgress] = []
    for row in rows:
        if term and term not in row.item.word.lower() and term not in row.item.meaning.lower():
            continue
        if type_filter != "all" and row.item.type != type_filter:
            continue
        if not matches_srs_filter(row.srs_stage, srs_filter):
            continue
        filtered.append(row)
    return filtered


def _sort_key(sort_by: str):
    if sort_by == "word":
        return lambda row: row.item.word.casefold()
    if sort_by == "meaning":
        return lambda row: row.item.meaning.casefold()
    if sort_by == "type":
        return lambda row: row.item.type
    if sort_by == "srs":
        # Unstarted words go last.
        return lambda row: (row.srs_stage is None, row.srs_stage or 0)
    return lambda row: (row.item.level, row.item.id)


def sort_vocabulary(rows: Iterable[VocabularyProgress], sort_by: str = "level") -> List[VocabularyProgress]:
    validate_browse_options(sort_by=sort_by)
    return sorted(rows, key=_sort_key(sort_by))


__all__ = [
    "SORT_KEYS",
    "SRS_FILTERS",
    "filter_vocabulary",
    "matches_srs_filter",
    "sort_vocabulary",
    "validate_browse_options",
]
