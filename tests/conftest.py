import os
import tempfile

# settings are read on import, so the environment has to be in place first
_tmp = tempfile.mkdtemp(prefix="mockinterview-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp, 'test.db')}"
os.environ["CONFIG_DIR"] = os.path.join(_tmp, "secure")
os.environ["SETTLE_DELAY_SECONDS"] = "0"
os.environ["QUESTION_QUOTA"] = "3"
for name in ("GEMINI_API_KEY", "ELEVENLABS_API_KEY"):
    os.environ.pop(name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from mockinterview.db.database import Base, SessionLocal, engine  # noqa: E402
from mockinterview.main import app  # noqa: E402
from mockinterview.schemas.interview import GenerationResult, ScoreResult  # noqa: E402
from mockinterview.services.interview_flow import FlowRegistry  # noqa: E402
from mockinterview.services.sessions import SessionService  # noqa: E402

USER_ID = "user-1"

CONFIG = {
    "geminiApiKey": "gemini-key",
    "mongodbUri": os.environ["DATABASE_URL"],
    "elevenLabsApiKey": "eleven-key",
}


class FakeGemini:
    """Stands in for GeminiService; queue results (or exceptions) in ``results``."""

    def __init__(self):
        self.results = []
        self.score = ScoreResult(score=85, feedback="Solid answers")
        self.calls = []
        self.scored = []
        self.on_generate = None

    async def generate_next_question(
        self, audio, job_description, previous_questions=None, user_profile=None, mime_type="audio/webm"
    ):
        self.calls.append({
            "audio": audio,
            "job_description": job_description,
            "previous_questions": previous_questions,
            "user_profile": user_profile,
            "mime_type": mime_type,
        })
        if self.on_generate:
            self.on_generate()
        result = self.results.pop(0) if self.results else GenerationResult(
            response="Thanks!", next_question="Tell me about X", transcript="My answer"
        )
        if isinstance(result, BaseException):
            raise result
        return result

    async def score_interview(self, job_description, questions, user_profile=None):
        self.scored.append(questions)
        if isinstance(self.score, Exception):
            raise self.score
        return self.score


class FakeSpeech:
    def __init__(self):
        self.texts = []
        self.error = None

    async def synthesize(self, text):
        self.texts.append(text)
        if self.error:
            raise self.error
        return b"mp3:" + text.encode()


@pytest.fixture
def gemini():
    return FakeGemini()


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture(autouse=True)
def context(gemini, speech):
    ctx = app.state.context
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    ctx.config_store.path.unlink(missing_ok=True)
    ctx.flows = FlowRegistry()
    ctx._session_factories.clear()
    ctx.gemini_factory = lambda api_key, model: gemini
    ctx.speech_factory = lambda api_key, **kwargs: speech
    yield ctx


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def configured(client):
    resp = client.post("/api/config", json=CONFIG)
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture
def session_id(client, configured):
    resp = client.post("/api/sessions", json={
        "userId": USER_ID,
        "jobTitle": "Backend Engineer",
        "jobDescription": "Build Python services",
        "companyName": "Acme",
    })
    assert resp.status_code == 200
    return resp.json()["id"]


def stored_questions(session_id):
    db = SessionLocal()
    try:
        return list(SessionService.get_session(db, session_id).questions)
    finally:
        db.close()


@pytest.fixture
def questions_of():
    return stored_questions


@pytest.fixture
def config_payload():
    return dict(CONFIG)
