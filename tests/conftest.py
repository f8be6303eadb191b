import httpx
import pytest
from fastapi.testclient import TestClient

from tutor.config import get_settings
from tutor.curriculum_generator import CurriculumGenerator
from tutor.deps import get_curriculum_generator, get_voice_agent
from tutor.main import create_app
from tutor.schemas import GeneratedCurriculum
from tutor.session import TutorSession
from tutor.voice_agent import VoiceAgentService

AGENT_ID = "agent-123"
CONVERSATION_TOKEN = "tok-abc"


def _level(i: int) -> dict:
    return {
        "id": i,
        "name": f"Level {i}",
        "description": f"Goal of level {i}",
        "content": f"Lesson text for level {i}. " * 5,
        "concepts": [f"concept {i}a", f"concept {i}b"],
        "quiz": {
            "question": f"Question for level {i}?",
            "options": ["A", "B", "C", "D"],
            "correctAnswer": i % 4,
            "explanation": f"Because of level {i}.",
        },
    }


@pytest.fixture
def curriculum_payload():
    return {"title": "Quadratic equations", "levels": [_level(i) for i in range(1, 6)]}


@pytest.fixture
def generated_curriculum(curriculum_payload):
    data = dict(curriculum_payload, documentId="doc-1", documentName="algebra.pdf", pdfContent="x^2 + 1 = 0")
    return GeneratedCurriculum.model_validate(data)


@pytest.fixture
def session(generated_curriculum):
    s = TutorSession("learner-1")
    s.set_curriculum(generated_curriculum)
    return s


class FakeModel:
    """Stands in for GeminiClient.generate_json."""

    def __init__(self, payload, error=None):
        self.payload = payload
        self.error = error
        self.prompts = []

    def generate_json(self, *, system, user, schema):
        self.prompts.append(user)
        if self.error:
            raise self.error
        return self.payload


@pytest.fixture
def fake_model(curriculum_payload):
    return FakeModel(curriculum_payload)


@pytest.fixture
def elevenlabs_requests():
    return []


@pytest.fixture
def elevenlabs_transport(elevenlabs_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        elevenlabs_requests.append(request)
        if request.url.path == "/v1/convai/agents/create":
            return httpx.Response(200, json={"agent_id": AGENT_ID})
        if request.url.path == f"/v1/convai/agents/{AGENT_ID}":
            return httpx.Response(200, json={})
        if request.url.path == "/v1/convai/conversation/token":
            return httpx.Response(200, json={"token": CONVERSATION_TOKEN})
        return httpx.Response(404, json={"detail": "unknown"})

    return httpx.MockTransport(handler)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("ELEVENLABS_API_KEY", "test-key")
    monkeypatch.setenv("AGENT_CACHE_PATH", str(tmp_path / "agent.json"))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("MAX_UPLOAD_MB", "1")

    # Settings are cached; clear so the env above is picked up.
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def voice_agent(settings, elevenlabs_transport):
    return VoiceAgentService(settings, transport=elevenlabs_transport)


@pytest.fixture
def test_client(settings, fake_model, voice_agent):
    app = create_app()
    app.dependency_overrides[get_curriculum_generator] = lambda: CurriculumGenerator(settings, client=fake_model)
    app.dependency_overrides[get_voice_agent] = lambda: voice_agent
    with TestClient(app) as client:
        yield client
