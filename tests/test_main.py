# tests/test_main.py
from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from conftest import LANGUAGE_ID, SEED_ITEMS, USER_ID, seed
from vocabtrainer.main import app
from vocabtrainer.models import MasteryRecord
from vocabtrainer.srs import utcnow

ITEMS_BY_ID = {item.id: item for item in SEED_ITEMS}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("VOCABTRAINER_DB_PATH", raising=False)
    monkeypatch.setenv("VOCABTRAINER_SHUFFLE_SEED", "7")
    monkeypatch.setenv("VOCABTRAINER_LESSON_BATCH_SIZE", "2")
    with TestClient(app) as test_client:
        seed(app.state.repository)
        yield test_client


def _correct_answer(question):
    item = ITEMS_BY_ID[question["item_id"]]
    return item.meaning if question["direction"] == "word-to-meaning" else item.word


def test_startup_reads_environment(client):
    assert app.state.config.shuffle_seed == 7
    assert app.state.config.lesson_batch_size == 2


def test_available_lessons(client):
    response = client.get("/v1/lessons/available", params={"user_id": USER_ID, "language_id": LANGUAGE_ID})
    assert response.status_code == 200
    body = response.json()
    assert body["level"] == 1
    assert [item["id"] for item in body["items"]] == [1, 2, 3, 4, 5]


def test_lesson_flow_over_http(client):
    response = client.post("/v1/lessons/sessions", json={"user_id": USER_ID, "language_id": LANGUAGE_ID})
    assert response.status_code == 200
    view = response.json()
    session_id = view["session_id"]
    assert view["phase"] == "learning"
    assert view["card_count"] == 2

    view = client.post(f"/v1/lessons/sessions/{session_id}/cards/next").json()
    view = client.post(f"/v1/lessons/sessions/{session_id}/cards/previous").json()
    assert view["card_index"] == 0
    client.post(f"/v1/lessons/sessions/{session_id}/cards/next")
    view = client.post(f"/v1/lessons/sessions/{session_id}/cards/next").json()
    assert view["phase"] == "quiz"

    blank = client.post(f"/v1/lessons/sessions/{session_id}/answer", json={"answer": "  "})
    assert blank.status_code == 400

    early = client.post(f"/v1/lessons/sessions/{session_id}/next")
    assert early.status_code == 400

    client.post(f"/v1/lessons/sessions/{session_id}/input", json={"text": "zz"})
    view = client.post(f"/v1/lessons/sessions/{session_id}/answer", json={"answer": "zzzzzz"}).json()
    assert view["last_answer_correct"] is False
    view = client.post(f"/v1/lessons/sessions/{session_id}/undo").json()
    assert view["user_input"] == "zzzzzz"
    assert view["can_undo"] is False

    while view["phase"] == "quiz":
        answer = _correct_answer(view["current_question"])
        view = client.post(f"/v1/lessons/sessions/{session_id}/answer", json={"answer": answer}).json()
        view = client.post(f"/v1/lessons/sessions/{session_id}/next").json()

    assert view["phase"] == "complete"
    assert view["words_unlocked"] == 2
    assert view["summary"]["first_attempt_correct"] == 4
    assert client.get(f"/v1/lessons/sessions/{session_id}").json()["phase"] == "complete"


def test_unknown_session_is_404(client):
    assert client.get(f"/v1/lessons/sessions/{uuid4()}").status_code == 404
    assert client.post(f"/v1/reviews/sessions/{uuid4()}/next").status_code == 404


def test_no_reviews_is_400(client):
    response = client.post("/v1/reviews/sessions", json={"user_id": USER_ID, "language_id": LANGUAGE_ID})
    assert response.status_code == 400


def test_review_session_over_http(client):
    app.state.repository.set_mastery(
        USER_ID, 1, MasteryRecord(srs_stage=2, next_review_at=utcnow() - timedelta(minutes=1))
    )
    view = client.post("/v1/reviews/sessions", json={"user_id": USER_ID, "language_id": LANGUAGE_ID}).json()
    session_id = view["session_id"]
    assert view["total_questions"] == 2

    while not view["complete"]:
        answer = _correct_answer(view["current_question"])
        view = client.post(f"/v1/reviews/sessions/{session_id}/answer", json={"answer": answer}).json()
        view = client.post(f"/v1/reviews/sessions/{session_id}/next").json()

    assert view["summary"]["correct_answers"] == 2
    assert client.get(f"/v1/reviews/sessions/{session_id}").json()["complete"] is True


def test_progress_schedule_and_note(client):
    progress = client.get("/v1/progress/level", params={"user_id": USER_ID, "language_id": LANGUAGE_ID}).json()
    assert progress == {"current_level": 1, "total_words": 5, "mastered_words": 0, "progress_percentage": 0}

    schedule = client.get("/v1/reviews/schedule", params={"user_id": USER_ID, "language_id": LANGUAGE_ID}).json()
    assert len(schedule) == 24
    assert all(slot["count"] == 0 for slot in schedule)

    note = client.put("/v1/vocabulary/1/note", json={"user_id": USER_ID, "note": " good boy "})
    assert note.status_code == 200
    assert note.json()["notes"] == "good boy"
    assert note.json()["srs_stage"] == 0

    missing = client.put("/v1/vocabulary/404/note", json={"user_id": USER_ID, "note": "x"})
    assert missing.status_code == 404


def test_vocabulary_browser(client):
    client.put("/v1/vocabulary/3/note", json={"user_id": USER_ID, "note": "informal"})
    response = client.get(
        "/v1/vocabulary", params={"user_id": USER_ID, "language_id": LANGUAGE_ID, "sort": "word"}
    )
    assert response.status_code == 200
    rows = response.json()
    assert [row["item"]["id"] for row in rows] == [6, 3, 1, 7, 2, 4, 5]
    assert rows[1]["notes"] == "informal"
    assert rows[1]["category"] == "not-learned"

    level_two = client.get("/v1/vocabulary", params={"user_id": USER_ID, "language_id": LANGUAGE_ID, "level": 2})
    assert [row["item"]["id"] for row in level_two.json()] == [6, 7]

    bad = client.get("/v1/vocabulary", params={"user_id": USER_ID, "language_id": LANGUAGE_ID, "srs": "expert"})
    assert bad.status_code == 400
