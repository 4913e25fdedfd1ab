import logging
import uuid
from contextlib import contextmanager

from mockinterview.models.models import SessionStatus
from mockinterview.schemas.session import SessionCreate, SessionOut, SessionUpdate
from mockinterview.schemas.user import UserProfileOut
from mockinterview.services.sessions import SessionService
from mockinterview.services.users import UserService

logger = logging.getLogger(__name__)


class InterviewStore:
    """Sessions and profile of one user, backed by the document store.

    Every operation opens its own short-lived DB session so a store can outlive
    the request that created it (the interview flow keeps one between requests).
    """

    def __init__(self, context, user_id: str):
        self.context = context
        self.user_id = user_id
        self.sessions: list[SessionOut] = []
        self.current_session: SessionOut | None = None
        self.user_profile: UserProfileOut | None = None

    @contextmanager
    def _db(self):
        db = self.context.session_factory()
        try:
            yield db
        finally:
            db.close()

    def is_ready(self) -> bool:
        return self.context.is_ready(self.user_id)

    # ============================================
    # Sessions
    # ============================================

    def fetch_sessions(self) -> list[SessionOut]:
        with self._db() as db:
            rows = SessionService.get_all_sessions(db, self.user_id)
            self.sessions = [SessionOut.model_validate(s) for s in rows]
        return self.sessions

    def create_session(self, data: SessionCreate) -> SessionOut:
        # nothing is written unless the credentials and user id are in place
        self.context.require_ready(self.user_id)
        data = data.model_copy(update={"user_id": self.user_id, "questions": [], "status": SessionStatus.NOT_STARTED})
        with self._db() as db:
            session = SessionOut.model_validate(SessionService.create_session(db, data))
        self.fetch_sessions()
        self.current_session = session
        return session

    def get_session(self, session_id: str) -> SessionOut:
        with self._db() as db:
            return SessionOut.model_validate(SessionService.get_session(db, session_id))

    def set_current_session(self, session_id: str) -> SessionOut:
        self.current_session = self.get_session(session_id)
        return self.current_session

    def update_session(self, session_id: str, update: SessionUpdate) -> SessionOut:
        with self._db() as db:
            session = SessionOut.model_validate(SessionService.update_session(db, session_id, update))
        return self._remember(session)

    def add_question(self, session_id: str, question: str) -> str:
        question_id = str(uuid.uuid4())
        with self._db() as db:
            session = SessionOut.model_validate(
                SessionService.append_question(db, session_id, question_id, question)
            )
        self._remember(session)
        return question_id

    def add_answer(self, session_id: str, question_id: str, answer: str | None) -> SessionOut:
        with self._db() as db:
            session = SessionOut.model_validate(SessionService.set_answer(db, session_id, question_id, answer))
        return self._remember(session)

    def set_score(self, session_id: str, score: float, feedback: str) -> SessionOut:
        with self._db() as db:
            session = SessionOut.model_validate(SessionService.set_score(db, session_id, score, feedback))
        return self._remember(session)

    def complete_session(self, session_id: str) -> SessionOut:
        with self._db() as db:
            session = SessionOut.model_validate(SessionService.complete_session(db, session_id))
        return self._remember(session)

    def delete_session(self, session_id: str) -> None:
        with self._db() as db:
            SessionService.delete_session(db, session_id)
        self.context.flows.discard(session_id)
        self.sessions = [s for s in self.sessions if s.id != session_id]
        if self.current_session and self.current_session.id == session_id:
            self.current_session = None

    def _remember(self, session: SessionOut) -> SessionOut:
        self.sessions = [session if s.id == session.id else s for s in self.sessions]
        if self.current_session is None or self.current_session.id == session.id:
            self.current_session = session
        return session

    # ============================================
    # Profile
    # ============================================

    def fetch_user_profile(self) -> UserProfileOut | None:
        with self._db() as db:
            user = UserService.find_user(db, self.user_id)
            self.user_profile = UserProfileOut.model_validate(user) if user else None
        return self.user_profile
