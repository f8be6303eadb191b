import io
import json

import pytest

from tutor.config import get_settings
from tutor.deps import get_voice_agent
from tutor.voice_agent import VoiceAgentService

SID = "learner-42"


def _pdf_upload(name="algebra.pdf", payload=b"%PDF-1.4\n%EOF\n"):
    return {"file": (name, io.BytesIO(payload), "application/pdf")}


@pytest.fixture
def pdf_text(monkeypatch):
    monkeypatch.setattr("tutor.main.extract_pdf_text", lambda data: "Quadratic equations: ax^2 + bx + c = 0")


def _curriculum_ready(test_client):
    r = test_client.post(f"/sessions/{SID}/documents", files=_pdf_upload())
    assert r.status_code == 201, r.text
    doc_id = r.json()["id"]
    r = test_client.post(f"/sessions/{SID}/documents/{doc_id}/curriculum")
    assert r.status_code == 200, r.text
    return r.json()


def test_health_and_index(test_client):
    assert test_client.get("/health").json() == {"ok": True}
    assert "/curriculum-generation" in test_client.get("/").json()["endpoints"]


def test_curriculum_generation_proxy(test_client):
    body = {"pdfText": "Some algebra", "documentName": "algebra.pdf", "documentId": "doc-1"}
    r = test_client.post("/curriculum-generation", json=body)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["title"] == "Quadratic equations"
    assert data["documentId"] == "doc-1"
    assert data["documentName"] == "algebra.pdf"
    assert data["pdfContent"] == "Some algebra"
    assert len(data["levels"]) == 5
    assert set(data["levels"][0]) == {"id", "name", "description", "content", "concepts", "quiz"}


def test_curriculum_generation_requires_text(test_client):
    r = test_client.post("/curriculum-generation", json={"pdfText": "  ", "documentName": "x.pdf"})
    assert r.status_code == 400
    r = test_client.post("/curriculum-generation", json={})
    assert r.status_code == 400
    r = test_client.post("/curriculum-generation", json={"pdfText": None, "documentName": "x.pdf"})
    assert r.status_code == 400
    assert r.json()["detail"] == "No text content provided"


def test_curriculum_generation_upstream_failure(test_client, fake_model):
    fake_model.error = RuntimeError("upstream down")
    r = test_client.post("/curriculum-generation", json={"pdfText": "text"})
    assert r.status_code == 500
    assert "upstream down" in r.json()["detail"]


def test_voice_agent_session_lifecycle(test_client, elevenlabs_requests):
    r = test_client.get("/voice-agent-session")
    assert r.json() == {"configured": True, "agentId": None, "hasAgent": False}

    r = test_client.post("/voice-agent-session")
    assert r.status_code == 200, r.text
    assert r.json() == {"agentId": "agent-123", "conversationToken": "tok-abc"}

    r = test_client.get("/voice-agent-session")
    assert r.json() == {"configured": True, "agentId": "agent-123", "hasAgent": True}

    ctx = {"learningContext": {"documentName": "algebra.pdf", "curriculumTitle": "Algebra", "viewMode": "idle"}}
    r = test_client.post("/voice-agent-session", json=ctx)
    assert r.status_code == 200
    patch = [req for req in elevenlabs_requests if req.method == "PATCH"][0]
    prompt = json.loads(patch.content)["conversation_config"]["agent"]["prompt"]["prompt"]
    assert '"Algebra"' in prompt

    r = test_client.delete("/voice-agent-session")
    assert r.json() == {"message": "Agent cache cleared"}
    assert test_client.get("/voice-agent-session").json()["hasAgent"] is False


def test_voice_agent_session_unconfigured(test_client, settings):
    unconfigured = VoiceAgentService(settings.model_copy(update={"ELEVENLABS_API_KEY": ""}))
    test_client.app.dependency_overrides[get_voice_agent] = lambda: unconfigured
    r = test_client.post("/voice-agent-session")
    assert r.status_code == 500
    assert "ELEVENLABS_API_KEY" in r.json()["detail"]
    assert test_client.get("/voice-agent-session").json()["configured"] is False


def test_voice_agent_session_rejects_malformed_context(test_client):
    r = test_client.post("/voice-agent-session", json={"learningContext": {"viewMode": "sleeping"}})
    assert r.status_code == 422


def test_document_upload_select_remove(test_client):
    a = test_client.post(f"/sessions/{SID}/documents", files=_pdf_upload("a.pdf")).json()
    b = test_client.post(f"/sessions/{SID}/documents", files=_pdf_upload("b.pdf")).json()
    assert a["name"] == "a.pdf" and a["type"] == "application/pdf"

    docs = test_client.get(f"/sessions/{SID}/documents").json()
    assert [d["id"] for d in docs] == [a["id"], b["id"]]

    state = test_client.get(f"/sessions/{SID}").json()
    assert state["selectedDocumentId"] == b["id"]

    state = test_client.put(f"/sessions/{SID}/documents/selected", json={"documentId": a["id"]}).json()
    assert state["selectedDocumentId"] == a["id"]

    state = test_client.delete(f"/sessions/{SID}/documents/{b['id']}").json()
    assert state["selectedDocumentId"] == a["id"]
    state = test_client.delete(f"/sessions/{SID}/documents/{a['id']}").json()
    assert state["selectedDocumentId"] is None
    assert state["documents"] == []


def test_select_unknown_document(test_client):
    r = test_client.put(f"/sessions/{SID}/documents/selected", json={"documentId": "nope"})
    assert r.status_code == 404


def test_upload_rejects_non_pdf_and_oversize(test_client):
    r = test_client.post(f"/sessions/{SID}/documents", files={"file": ("notes.txt", io.BytesIO(b"hi"), "text/plain")})
    assert r.status_code == 415
    too_big = b"0" * (get_settings().MAX_UPLOAD_MB * 1024 * 1024 + 1)
    r = test_client.post(f"/sessions/{SID}/documents", files=_pdf_upload(payload=too_big))
    assert r.status_code == 413
    assert test_client.get(f"/sessions/{SID}/documents").json() == []


def test_upload_at_size_limit_is_accepted(test_client):
    limit = get_settings().MAX_UPLOAD_MB * 1024 * 1024
    payload = b"%PDF-1.4\n" + b"0" * (limit - 9)
    r = test_client.post(f"/sessions/{SID}/documents", files=_pdf_upload(payload=payload))
    assert r.status_code == 201, r.text
    assert r.json()["size"] == limit


def test_generate_from_document_then_learn(test_client, pdf_text):
    state = _curriculum_ready(test_client)
    assert state["isGenerating"] is False
    assert state["curriculum"]["documentName"] == "algebra.pdf"
    assert [lvl["status"] for lvl in state["curriculum"]["levels"]] == ["active"] + ["locked"] * 4
    assert state["curriculum"]["totalXp"] == 0
    assert state["currentLevelId"] == 1

    state = test_client.post(f"/sessions/{SID}/lessons/1").json()
    assert state["viewMode"] == "lesson"
    assert state["activeLessonId"] == 1

    state = test_client.post(f"/sessions/{SID}/quiz").json()
    assert state["viewMode"] == "quiz"
    assert state["activeQuiz"]["attempts"] == 0
    correct = state["activeQuiz"]["quiz"]["correctAnswer"]

    r = test_client.post(f"/sessions/{SID}/quiz/answer", json={"answerIndex": correct}).json()
    assert r["isCorrect"] is True
    assert r["state"]["activeQuiz"]["showExplanation"] is True

    state = test_client.post(f"/sessions/{SID}/levels/1/complete").json()
    assert state["viewMode"] == "idle"
    assert state["activeQuiz"] is None
    assert [lvl["status"] for lvl in state["curriculum"]["levels"][:2]] == ["completed", "active"]
    assert state["totalXp"] == 100
    assert state["currentLevelId"] == 2


def test_wrong_answer_retry_and_review(test_client, pdf_text):
    _curriculum_ready(test_client)
    test_client.post(f"/sessions/{SID}/lessons/1")
    state = test_client.post(f"/sessions/{SID}/quiz").json()
    wrong = (state["activeQuiz"]["quiz"]["correctAnswer"] + 1) % 4

    r = test_client.post(f"/sessions/{SID}/quiz/answer", json={"answerIndex": wrong}).json()
    assert r["isCorrect"] is False
    assert r["state"]["canRetry"] is True

    state = test_client.post(f"/sessions/{SID}/quiz/retry").json()
    assert state["viewMode"] == "lesson"
    assert state["curriculum"]["levels"][0]["quizAttempts"] == 1

    state = test_client.post(f"/sessions/{SID}/quiz").json()
    assert state["activeQuiz"]["attempts"] == 1

    state = test_client.post(f"/sessions/{SID}/quiz/review").json()
    assert state["viewMode"] == "lesson"
    assert state["curriculum"]["levels"][0]["status"] == "active"


def test_guarded_transitions_are_silent(test_client, pdf_text):
    state = test_client.post(f"/sessions/{SID}/quiz").json()
    assert state["viewMode"] == "idle" and state["activeQuiz"] is None

    _curriculum_ready(test_client)
    state = test_client.post(f"/sessions/{SID}/lessons/3").json()
    assert state["viewMode"] == "idle"

    r = test_client.post(f"/sessions/{SID}/quiz/answer", json={"answerIndex": 0}).json()
    assert r["isCorrect"] is False

    state = test_client.post(f"/sessions/{SID}/levels/4/complete").json()
    assert state["curriculum"]["levels"][3]["status"] == "locked"


def test_generation_failure_rolls_back(test_client, fake_model, pdf_text):
    _curriculum_ready(test_client)
    doc_id = test_client.get(f"/sessions/{SID}").json()["documents"][0]["id"]

    fake_model.error = RuntimeError("quota exceeded")
    r = test_client.post(f"/sessions/{SID}/documents/{doc_id}/curriculum")
    assert r.status_code == 500
    assert "quota exceeded" in r.json()["detail"]

    state = test_client.get(f"/sessions/{SID}").json()
    assert state["isGenerating"] is False
    assert state["curriculum"]["title"] == "Quadratic equations"


def test_generation_with_empty_pdf_text(test_client, monkeypatch):
    monkeypatch.setattr("tutor.main.extract_pdf_text", lambda data: "  ")
    doc_id = test_client.post(f"/sessions/{SID}/documents", files=_pdf_upload()).json()["id"]
    r = test_client.post(f"/sessions/{SID}/documents/{doc_id}/curriculum")
    assert r.status_code == 400
    state = test_client.get(f"/sessions/{SID}").json()
    assert state["curriculum"] is None
    assert state["isGenerating"] is False


def test_generation_for_unknown_document(test_client):
    assert test_client.post(f"/sessions/{SID}/documents/nope/curriculum").status_code == 404


def test_reset_curriculum_and_drop_session(test_client, pdf_text):
    _curriculum_ready(test_client)
    state = test_client.delete(f"/sessions/{SID}/curriculum").json()
    assert state["curriculum"] is None
    assert state["documents"] != []

    assert test_client.delete(f"/sessions/{SID}").json() == {"message": "Session cleared"}
    assert test_client.get(f"/sessions/{SID}").json()["documents"] == []


def test_context_and_voice_updates(test_client, pdf_text):
    assert test_client.get(f"/sessions/{SID}/context").json() == {"learningContext": None, "briefing": None}

    _curriculum_ready(test_client)
    ctx = test_client.get(f"/sessions/{SID}/context").json()
    assert ctx["learningContext"]["maxTotalXp"] == 500
    assert "LEARNING CURVE" in ctx["briefing"]

    assert test_client.get(f"/sessions/{SID}/context-update").json()["changed"] is False

    r = test_client.post(f"/sessions/{SID}/voice-session")
    assert r.status_code == 200, r.text
    assert r.json()["conversationToken"] == "tok-abc"
    assert test_client.get(f"/sessions/{SID}").json()["voiceConnected"] is True
    assert test_client.get(f"/sessions/{SID}/context-update").json()["changed"] is False

    test_client.post(f"/sessions/{SID}/lessons/1")
    update = test_client.get(f"/sessions/{SID}/context-update").json()
    assert update["changed"] is True
    assert update["learningContext"]["currentLesson"]["id"] == 1
    assert "Level 1" in update["contextualUpdate"]
    assert test_client.get(f"/sessions/{SID}/context-update").json()["changed"] is False

    state = test_client.delete(f"/sessions/{SID}/voice-session").json()
    assert state["voiceConnected"] is False
    test_client.post(f"/sessions/{SID}/quiz")
    assert test_client.get(f"/sessions/{SID}/context-update").json()["changed"] is False
