from typing import Any

from pydantic import field_validator

from mockinterview.schemas.base import CamelModel
from mockinterview.schemas.session import QuestionAnswer


class GenerationResult(CamelModel):
    response: str
    next_question: str
    transcript: str | None = None


class ScoreRequest(CamelModel):
    job_description: str
    questions: list[QuestionAnswer] = []
    user_profile: dict[str, Any] | None = None


class ScoreResult(CamelModel):
    score: float
    feedback: str
    question_feedback: list[Any] = []

    @field_validator("score")
    @classmethod
    def clamp(cls, v: float) -> float:
        return max(0.0, min(100.0, v))


class SpeechRequest(CamelModel):
    text: str | None = None


class Utterance(CamelModel):
    text: str
    audio: str | None = None  # base64 audio/mpeg, None when synthesis failed


class FlowState(CamelModel):
    session_id: str
    stage: str
    question_index: int
    utterances: list[Utterance] = []
    notifications: list[str] = []
    redirect: str | None = None
