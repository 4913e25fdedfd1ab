import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Enum, Float, String, Text

from mockinterview.db.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, enum.Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class InterviewSession(Base):
    __tablename__ = "sessions"

    # application generated id, the only identity a session document has
    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    job_title = Column(String, nullable=False, default="")
    job_description = Column(Text, nullable=False, default="")
    company_name = Column(String, nullable=False, default="")
    status = Column(
        Enum(SessionStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SessionStatus.NOT_STARTED,
    )
    questions = Column(JSON, nullable=False, default=list)  # [{id, question, answer}]
    score = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class UserProfile(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    location = Column(String, nullable=True)
    summary = Column(Text, nullable=True)
    skills = Column(JSON, nullable=False, default=list)
    experience = Column(JSON, nullable=False, default=list)
    education = Column(JSON, nullable=False, default=list)
    projects = Column(JSON, nullable=False, default=list)
    certifications = Column(JSON, nullable=False, default=list)
    resume_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
