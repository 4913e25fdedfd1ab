import logging

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from mockinterview.core.config import Settings
from mockinterview.core.exceptions import ConfigurationError, UpstreamServiceError
from mockinterview.db.database import check_database_connection, create_session_factory, validate_database_url
from mockinterview.schemas.config import AppConfig
from mockinterview.services.config_store import ConfigStore
from mockinterview.services.gemini import GeminiService
from mockinterview.services.interview_flow import FlowRegistry, InterviewFlow
from mockinterview.services.speech import SpeechService
from mockinterview.services.store import InterviewStore

logger = logging.getLogger(__name__)


class AppContext:
    """Process-wide state the routers share: credentials, DB sessions and live interview flows.

    Readiness is checked explicitly through ``is_ready``/``require_ready`` instead
    of by each operation on its own.
    """

    def __init__(self, settings: Settings, session_factory, config_store: ConfigStore | None = None):
        self.settings = settings
        self.default_session_factory = session_factory
        self._session_factories: dict[str, sessionmaker] = {}
        self.config_store = config_store or ConfigStore(settings.config_dir)
        self.flows = FlowRegistry()

        # swapped for fakes in tests
        self.gemini_factory = GeminiService
        self.speech_factory = SpeechService

    # ============================================
    # Configuration
    # ============================================

    def saved_config(self) -> AppConfig | None:
        return self.config_store.load()

    def save_config(self, config: AppConfig) -> AppConfig:
        missing = config.missing_fields()
        if missing:
            raise ConfigurationError("Missing required configuration fields", detail=missing)
        try:
            validate_database_url(config.database_uri)
        except SQLAlchemyError as e:
            raise ConfigurationError("Invalid database URI", detail=str(e)) from e
        self.config_store.save(config)
        logger.info("Configuration saved")
        return config

    def current_config(self) -> AppConfig:
        """Saved credentials, with environment settings filling the gaps."""
        saved = self.saved_config() or AppConfig()
        return AppConfig(
            gemini_api_key=saved.gemini_api_key or self.settings.gemini_api_key,
            database_uri=saved.database_uri or self.settings.database_url,
            eleven_labs_api_key=saved.eleven_labs_api_key or self.settings.elevenlabs_api_key,
        )

    def is_config_ready(self) -> bool:
        return self.current_config().is_complete()

    def is_ready(self, user_id: str | None) -> bool:
        return bool(user_id) and self.is_config_ready()

    def require_ready(self, user_id: str | None) -> None:
        if not user_id:
            raise ConfigurationError("User ID is required")
        missing = self.current_config().missing_fields()
        if missing:
            raise ConfigurationError("Please configure your API settings first", detail=missing)

    # ============================================
    # Database
    # ============================================

    def session_factory(self) -> Session:
        """Open a DB session on the configured database.

        A saved database URI wins over ``Settings.database_url``; an engine is
        built once per URI and reused.
        """
        uri = self.current_config().database_uri
        if uri == self.settings.database_url:
            return self.default_session_factory()

        factory = self._session_factories.get(uri)
        if factory is None:
            try:
                factory = create_session_factory(uri)
            except (SQLAlchemyError, ImportError) as e:
                logger.error(f"Could not open the configured database: {e}")
                raise UpstreamServiceError("Failed to connect to the database") from e
            self._session_factories[uri] = factory
            logger.info("Connected to the configured database")
        return factory()

    def check_database(self) -> tuple[bool, str]:
        db = self.session_factory()
        try:
            return check_database_connection(db.get_bind())
        finally:
            db.close()

    # ============================================
    # Collaborators
    # ============================================

    def question_service(self) -> GeminiService:
        return self.gemini_factory(self.current_config().gemini_api_key, self.settings.gemini_model)

    def speech_service(self) -> SpeechService:
        return self.speech_factory(
            self.current_config().eleven_labs_api_key,
            voice_id=self.settings.elevenlabs_voice_id,
            model_id=self.settings.elevenlabs_model_id,
            base_url=self.settings.elevenlabs_base_url,
            timeout=self.settings.http_timeout_seconds,
        )

    def store(self, user_id: str) -> InterviewStore:
        return InterviewStore(self, user_id)

    def new_flow(self, session_id: str, user_id: str) -> InterviewFlow:
        flow = InterviewFlow(
            session_id,
            self.store(user_id),
            question_service=self.question_service,
            speech_service=self.speech_service,
            quota=self.settings.question_quota,
            settle_delay=self.settings.settle_delay_seconds,
        )
        return self.flows.replace(flow)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_db(request: Request):
    db = get_context(request).session_factory()
    try:
        yield db
    finally:
        db.close()
