# tests/test_srs.py
from datetime import timedelta

import pytest

from vocabtrainer import srs
from vocabtrainer.srs import InvalidStageError


def test_pair_commit_ceiling_matches_max_stage():
    """Both ceilings must stay aligned or burned items become unreachable."""
    assert srs.MAX_STAGE_VIA_PAIR_COMMIT == srs.MAX_STAGE


@pytest.mark.parametrize(
    "stage,hours",
    [(1, 4), (2, 8), (3, 24), (4, 72), (5, 168), (6, 336), (7, 720), (8, 2160)],
)
def test_correct_answer_advances_and_schedules(now, stage, hours):
    result = srs.advance(stage - 1 if stage > 1 else 0, True, now)
    assert result.new_stage == stage
    assert result.next_review_at == now + timedelta(hours=hours)


def test_reaching_burned_clears_schedule(now):
    result = srs.advance(8, True, now)
    assert result.new_stage == 9
    assert result.next_review_at is None
    assert result.is_burned


def test_burned_is_absorbing(now):
    assert srs.advance(9, True, now).new_stage == 9
    assert srs.advance(9, False, now).new_stage == 9
    assert srs.advance(9, False, now).next_review_at is None


def test_incorrect_resets_to_first_stage(now):
    for stage in (0, 1, 4, 8):
        result = srs.advance(stage, False, now)
        assert result.new_stage == 1
        assert result.next_review_at == now + timedelta(hours=4)


def test_not_started_correct_moves_to_first_stage(now):
    assert srs.advance(0, True, now).new_stage == 1


def test_pair_commit_uses_same_transitions(now):
    assert srs.advance_pair(3, True, now) == srs.advance(3, True, now)
    assert srs.advance_pair(6, False, now) == srs.advance(6, False, now)


def test_unlock_schedules_first_review(now):
    result = srs.unlock(now)
    assert result.new_stage == 1
    assert result.next_review_at == now + timedelta(hours=4)


@pytest.mark.parametrize("stage", [-1, 10, 2.0, "3", True])
def test_invalid_stage_is_rejected(stage):
    with pytest.raises(InvalidStageError):
        srs.validate_stage(stage)


def test_stage_zero_has_no_interval():
    with pytest.raises(InvalidStageError):
        srs.interval_for(0)


def test_stage_info_and_categories():
    assert srs.stage_info(None) == {"name": "Not Learned", "color": "default"}
    assert srs.stage_info(5)["name"] == "Guru 1"
    assert srs.stage_info(42)["name"] == "Unknown"
    assert srs.stage_category(0) == "not-learned"
    assert srs.stage_category(4) == "apprentice"
    assert srs.stage_category(6) == "guru"
    assert srs.stage_category(8) == "master-enlightened"
    assert srs.stage_category(9) == "burned"


def test_mastered_and_burned_helpers():
    assert not srs.is_mastered_stage(4)
    assert srs.is_mastered_stage(5)
    assert not srs.is_mastered_stage(None)
    assert srs.is_burned_stage(9)
    assert not srs.is_burned_stage(8)


def test_format_next_review(now):
    assert srs.format_next_review(None, now) == "Never"
    assert srs.format_next_review(now - timedelta(minutes=1), now) == "Available Now"
    assert srs.format_next_review(now + timedelta(days=3, hours=5), now) == "3d 5h"
    assert srs.format_next_review(now + timedelta(hours=2, minutes=30), now) == "2h 30m"
    assert srs.format_next_review(now + timedelta(minutes=15), now) == "15m"
