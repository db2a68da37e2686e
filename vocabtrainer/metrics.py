"""Simple in-process metrics registry for trainer instrumentation."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field


@dataclass
class MetricsRegistry:
    """Holds the counters exposed by the application."""

    answers_submitted: int = 0
    answers_correct: int = 0
    fuzzy_accepts: int = 0
    retest_rounds: int = 0
    lessons_completed: int = 0
    words_unlocked: int = 0
    srs_transitions: Counter = field(default_factory=Counter)
    write_successes: int = 0
    write_failures: int = 0
    write_failure_reasons: Counter = field(default_factory=Counter)
    write_cancellations: int = 0

    def record_answer(self, is_correct: bool, fuzzy: bool = False) -> None:
        self.answers_submitted += 1
        if is_correct:
            self.answers_correct += 1
            if fuzzy:
                self.fuzzy_accepts += 1

    def record_retest_round(self) -> None:
        self.retest_rounds += 1

    def record_lesson_completed(self, unlocked: int) -> None:
        self.lessons_completed += 1
        self.words_unlocked += unlocked

    def record_srs_transition(self, from_stage: int, to_stage: int) -> None:
        self.srs_transitions[(from_stage, to_stage)] += 1

    def record_write_success(self) -> None:
        self.write_successes += 1

    def record_write_failure(self, reason: str) -> None:
        self.write_failures += 1
        self.write_failure_reasons[reason] += 1

    def record_write_cancelled(self) -> None:
        self.write_cancellations += 1

    def reset(self) -> None:
        self.__init__()

    @property
    def accuracy(self) -> float:
        if self.answers_submitted == 0:
            return 0.0
        return self.answers_correct / self.answers_submitted


METRICS = MetricsRegistry()

__all__ = ["METRICS", "MetricsRegistry"]
