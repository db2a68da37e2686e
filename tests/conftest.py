import random
from datetime import datetime, timedelta, timezone

import pytest

from vocabtrainer.metrics import METRICS
from vocabtrainer.models import VocabularyItem
from vocabtrainer.storage import InMemoryRepository, SqliteStudyRepository

FIXED_NOW = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
USER_ID = "learner-1"
LANGUAGE_ID = 1

SEED_ITEMS = [
    VocabularyItem(id=1, word="hund", meaning="dog", type="noun", level=1,
                   attributes={"gender": "masculine", "plural": "hunder"}),
    VocabularyItem(id=2, word="katt", meaning="cat", type="noun", level=1),
    VocabularyItem(id=3, word="du", meaning="you (singular)", type="other", level=1),
    VocabularyItem(id=4, word="leilighet", meaning="apartment", type="noun", level=1),
    VocabularyItem(id=5, word="være", meaning="to be", type="verb", level=1),
    VocabularyItem(id=6, word="bok", meaning="book", type="noun", level=2),
    VocabularyItem(id=7, word="hus", meaning="house", type="noun", level=2),
]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def seed(repository):
    repository.add_language(LANGUAGE_ID, "nb", "Norwegian")
    for item in SEED_ITEMS:
        repository.add_vocabulary(LANGUAGE_ID, item)
    return repository


@pytest.fixture(autouse=True)
def reset_metrics():
    METRICS.reset()
    yield
    METRICS.reset()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return FakeClock(FIXED_NOW)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    return str(tmp_path / "test_trainer.db")


@pytest.fixture
def memory_repository():
    return seed(InMemoryRepository())


@pytest.fixture
def sqlite_repository(tmp_db):
    repository = seed(SqliteStudyRepository(tmp_db))
    yield repository
    repository.close()


@pytest.fixture(params=["memory_repository", "sqlite_repository"])
def repository(request):
    return request.getfixturevalue(request.param)
