import pytest
from fastapi.testclient import TestClient
from fastapi import HTTPException
from dailyquiz.core.auth import TokenData, create_token, require_roles
from dailyquiz.core.database import get_db
from dailyquiz.api.deps import get_clock
import dailyquiz.api.admin as admin_api
from dailyquiz.main import app
from dailyquiz.models.orm import Question
from conftest import TOMORROW

@pytest.fixture
def client(session_factory, clock):
    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()
    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()

def auth(user="sam", roles=("student",)):
    return {"Authorization": f"Bearer {create_token(user, list(roles))}"}

ADMIN = auth("ada", ("admin",))

def question_payload(**overrides):
    data = {"stem": "Which organelle makes ATP?", "options": ["Nucleus", "Mitochondrion", "Ribosome", "Golgi"],
            "correct_index": 1, "explanation": "Mitochondria run respiration", "topic": "cells",
            "subject": "biology", "difficulty": 1}
    data.update(overrides)
    return data

def test_health(client):
    r = client.get("/health"); assert r.status_code == 200 and r.json() == {"status": "ok"}

def test_mock_login_issues_token(client):
    r = client.post("/v1/auth/mock-login", json={"user_label": "tester", "roles": ["admin"]})
    assert r.status_code == 200 and r.json()["access_token"]

def test_today_quiz_hides_answers_and_flags_bonus(client, seed_set):
    seed_set("biology")
    r = client.get("/v1/quiz/today", params={"subject": "biology"})
    assert r.status_code == 200
    body = r.json()
    assert body["quiz_version"] == 1 and body["message"] is None
    assert len(body["questions"]) == 6
    assert all("correct_index" not in q and "explanation" not in q for q in body["questions"])
    assert [q["is_bonus"] for q in body["questions"]] == [False] * 5 + [True]

def test_bonus_flag_survives_deleted_question(client, db, seed_set):
    ids = seed_set("biology")
    client.get("/v1/quiz/today", params={"subject": "biology"})
    db.delete(db.get(Question, ids["easy"][0])); db.commit()
    body = client.get("/v1/quiz/today", params={"subject": "biology"}).json()
    assert len(body["questions"]) == 5
    assert [q["is_bonus"] for q in body["questions"]] == [False] * 4 + [True]
    assert body["questions"][-1]["id"] == ids["hard"][0]

def test_empty_subject_shows_revision_message(client):
    body = client.get("/v1/quiz/today", params={"subject": "chemistry"}).json()
    assert body["questions"] == []
    assert "being revised" in body["message"]

def test_unknown_subject_is_bad_request(client):
    r = client.get("/v1/quiz/today", params={"subject": "astrology"})
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "validation_error"

def test_submit_scores_and_returns_feedback(client, seed_set, db):
    seed_set("biology")
    questions = client.get("/v1/quiz/today", params={"subject": "biology"}).json()["questions"]
    from dailyquiz.services.questions import QuestionRepository
    keys = {q.id: q.correct_index for q in QuestionRepository(db).fetch_by_ids([q["id"] for q in questions])}
    answers = [{"question_id": q["id"], "selected_index": keys[q["id"]]} for q in questions]
    r = client.post("/v1/quiz/submit", headers=auth() | {"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
                    json={"subject": "biology", "answers": answers, "duration_seconds": 75})
    assert r.status_code == 200, r.text
    body = r.json()
    assert (body["score"], body["total"], body["attempt_number"], body["quiz_version"]) == (6, 6, 1, 1)
    assert all(f["is_correct"] for f in body["feedback"])
    assert sum(t["total"] for t in body["topic_breakdown"].values()) == 6

    short = client.post("/v1/quiz/submit", headers=auth(), json={"subject": "biology", "answers": answers[:2]})
    assert short.status_code == 400
    assert short.json()["error"]["message"] == "Must answer all 6 questions"

    progress = client.get("/v1/quiz/progress", params={"subject": "biology"}, headers=auth()).json()
    assert progress["attempted_today"] is True and progress["today_best_score"] == 6

def test_submit_requires_token(client):
    r = client.post("/v1/quiz/submit", json={"subject": "biology", "answers": []})
    assert r.status_code in (401, 403)

def test_submit_without_quiz_is_not_found(client):
    r = client.post("/v1/quiz/submit", headers=auth(), json={"subject": "chemistry", "answers": []})
    assert r.status_code == 404
    assert r.json()["error"]["type"] == "no_quiz_available"

def test_retry_creates_new_version(client, seed_set):
    seed_set("biology", "a"); seed_set("biology", "b")
    first = client.get("/v1/quiz/today", params={"subject": "biology"}).json()
    r = client.post("/v1/quiz/retry", headers=auth(), json={"subject": "biology"})
    assert r.status_code == 200
    assert r.json()["quiz_version"] == 2
    assert not {q["id"] for q in r.json()["questions"]} & {q["id"] for q in first["questions"]}

def test_admin_routes_require_admin(client):
    r = client.get("/v1/admin/preview", params={"subject": "biology"}, headers=auth())
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "Insufficient role"

def test_author_routes_accept_author_and_admin_only(client):
    assert client.get("/v1/author/questions", headers=auth("al", ("author",))).status_code == 200
    assert client.get("/v1/author/questions", headers=ADMIN).status_code == 200
    assert client.get("/v1/author/questions", headers=auth()).status_code == 403

def test_require_roles_lets_admin_through():
    check = require_roles("author")
    admin = TokenData(sub="ada", roles=["admin"])
    assert admin.is_admin and check(admin) is admin
    with pytest.raises(HTTPException) as exc:
        check(TokenData(sub="sam", roles=["student"]))
    assert exc.value.status_code == 403

def test_admin_preview_stats_and_results(client, seed_set):
    seed_set("biology")
    preview = client.get("/v1/admin/preview", params={"subject": "biology"}, headers=ADMIN)
    assert preview.status_code == 200
    assert preview.json()["date"] == TOMORROW
    assert all("correct_index" in q for q in preview.json()["questions"])
    assert client.get("/v1/admin/stats", headers=ADMIN).json() == {"questions": []}
    results = client.get("/v1/admin/results", params={"limit": 10}, headers=ADMIN).json()
    assert results["attempts"] == [] and results["summary"]["total_attempts"] == 0

def test_admin_reset_enqueues_job(client, monkeypatch):
    calls = []
    class FakeJob:
        def get_id(self): return "job-1"
    class FakeQueue:
        def enqueue(self, fn, *args, **kwargs):
            calls.append((fn.__name__, args)); return FakeJob()
    monkeypatch.setattr(admin_api, "queue", FakeQueue())
    r = client.post("/v1/admin/assignments/reset", headers=ADMIN, json={"subjects": ["biology"]})
    assert r.status_code == 200 and r.json() == {"job_id": "job-1"}
    assert calls == [("reset_assignments_job", (["biology"],))]

def test_author_question_lifecycle(client):
    created = client.post("/v1/author/questions", headers=ADMIN, json=question_payload())
    assert created.status_code == 201
    qid = created.json()["question_id"]
    bulk = client.post("/v1/author/questions", headers=ADMIN,
                       json={"questions": [question_payload(stem="one"), question_payload(stem="two", difficulty=2)]})
    assert bulk.json() == {"imported": 2}
    assert len(client.get("/v1/author/questions", headers=ADMIN).json()["questions"]) == 3

    patched = client.patch(f"/v1/author/questions/{qid}", headers=ADMIN, json={"difficulty": 3})
    assert patched.status_code == 200 and patched.json()["difficulty"] == 3
    assert client.delete(f"/v1/author/questions/{qid}", headers=ADMIN).json() == {"ok": True}
    listed = {q["id"]: q for q in client.get("/v1/author/questions", headers=ADMIN).json()["questions"]}
    assert listed[qid]["active"] is False

    missing = client.delete("/v1/author/questions/nope", headers=ADMIN)
    assert missing.status_code == 404 and missing.json()["error"]["type"] == "not_found"
    bad = client.post("/v1/author/questions", headers=ADMIN, json=question_payload(options=["a", "b"]))
    assert bad.status_code == 422
