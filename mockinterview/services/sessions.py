import logging
import uuid

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from mockinterview.core.exceptions import ConflictError, NotFoundError
from mockinterview.models.models import InterviewSession, SessionStatus, utc_now
from mockinterview.schemas.session import SessionCreate, SessionUpdate

logger = logging.getLogger(__name__)

FROZEN_WHEN_COMPLETED = ("status", "questions", "job_title", "job_description", "company_name")


def new_id() -> str:
    return str(uuid.uuid4())


class SessionService:
    @staticmethod
    def get_all_sessions(db: Session, user_id: str) -> list[InterviewSession]:
        return (
            db.query(InterviewSession)
            .filter(InterviewSession.user_id == user_id)
            .order_by(InterviewSession.created_at)
            .all()
        )

    @staticmethod
    def get_session(db: Session, session_id: str) -> InterviewSession:
        session = db.query(InterviewSession).filter(InterviewSession.id == session_id).first()
        if not session:
            raise NotFoundError("Session not found")
        return session

    @staticmethod
    def create_session(db: Session, data: SessionCreate) -> InterviewSession:
        new_session = InterviewSession(
            id=data.id or new_id(),
            user_id=data.user_id,
            job_title=data.job_title,
            job_description=data.job_description,
            company_name=data.company_name,
            status=data.status,
            questions=[q.model_dump() for q in data.questions],
        )
        if data.created_at:
            new_session.created_at = data.created_at
        db.add(new_session)
        db.commit()
        db.refresh(new_session)
        logger.info(f"Session {new_session.id} created for user {new_session.user_id}")
        return new_session

    @staticmethod
    def update_session(db: Session, session_id: str, update: SessionUpdate) -> InterviewSession:
        """Apply the fields present in ``update``; last writer wins."""
        session = SessionService.get_session(db, session_id)
        fields = update.model_dump(exclude_unset=True)

        if session.status == SessionStatus.COMPLETED:
            SessionService._check_frozen(session, fields)

        for name in ("score", "feedback"):
            if fields.get(name) is not None:
                SessionService._check_assigned_once(session, name, fields[name])

        if "questions" in fields:
            session.questions = fields.pop("questions") or []
            flag_modified(session, "questions")

        for name, value in fields.items():
            setattr(session, name, value)

        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def delete_session(db: Session, session_id: str) -> None:
        session = SessionService.get_session(db, session_id)
        db.delete(session)
        db.commit()
        logger.info(f"Session {session_id} deleted")

    @staticmethod
    def append_question(db: Session, session_id: str, question_id: str, question: str) -> InterviewSession:
        session = SessionService.get_session(db, session_id)
        if session.status == SessionStatus.COMPLETED:
            raise ConflictError("Cannot add questions to a completed session")

        # copy so SQLAlchemy sees a new list
        questions = list(session.questions or [])
        questions.append({"id": question_id, "question": question, "answer": None})
        session.questions = questions
        flag_modified(session, "questions")
        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def set_answer(db: Session, session_id: str, question_id: str, answer: str | None) -> InterviewSession:
        session = SessionService.get_session(db, session_id)
        if session.status == SessionStatus.COMPLETED:
            raise ConflictError("Cannot answer questions of a completed session")

        questions = [dict(q) for q in session.questions or []]
        for q in questions:
            if q.get("id") == question_id:
                q["answer"] = answer
                break
        else:
            raise NotFoundError(f"Question {question_id} not found")

        session.questions = questions
        flag_modified(session, "questions")
        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def set_score(db: Session, session_id: str, score: float, feedback: str) -> InterviewSession:
        session = SessionService.get_session(db, session_id)
        SessionService._check_assigned_once(session, "score", score)
        SessionService._check_assigned_once(session, "feedback", feedback)
        session.score = score
        session.feedback = feedback
        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def complete_session(db: Session, session_id: str) -> InterviewSession:
        session = SessionService.get_session(db, session_id)
        session.status = SessionStatus.COMPLETED
        session.completed_at = utc_now()
        db.commit()
        db.refresh(session)
        logger.info(f"Session {session_id} completed with score {session.score}")
        return session

    @staticmethod
    def _check_assigned_once(session: InterviewSession, name: str, value) -> None:
        current = getattr(session, name)
        if current is not None and current != value:
            raise ConflictError(f"Session {name} has already been assigned")

    @staticmethod
    def _check_frozen(session: InterviewSession, fields: dict) -> None:
        """A completed session keeps its status, job details and questions."""
        for name in FROZEN_WHEN_COMPLETED:
            if name in fields and fields[name] != getattr(session, name):
                raise ConflictError(f"Cannot change {name} of a completed session")
