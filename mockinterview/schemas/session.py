from datetime import datetime

from pydantic import Field

from mockinterview.models.models import SessionStatus
from mockinterview.schemas.base import CamelModel


class Question(CamelModel):
    id: str
    question: str
    answer: str | None = None


class QuestionAnswer(CamelModel):
    question: str
    answer: str | None = ""


class SessionCreate(CamelModel):
    id: str | None = None  # generated when the caller does not pick one
    user_id: str
    job_title: str
    job_description: str
    company_name: str = ""
    status: SessionStatus = SessionStatus.NOT_STARTED
    questions: list[Question] = []
    created_at: datetime | None = None


class SessionUpdate(CamelModel):
    job_title: str | None = None
    job_description: str | None = None
    company_name: str | None = None
    status: SessionStatus | None = None
    questions: list[Question] | None = None
    score: float | None = Field(default=None, ge=0, le=100)
    feedback: str | None = None
    completed_at: datetime | None = None


class SessionUpdateRequest(SessionUpdate):
    id: str


class SessionOut(CamelModel):
    id: str
    user_id: str
    job_title: str
    job_description: str
    company_name: str
    status: SessionStatus
    questions: list[Question]
    score: float | None = None
    feedback: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class SuccessResponse(CamelModel):
    success: bool = True
