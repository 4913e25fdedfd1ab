from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from mockinterview.core.config import settings

DATABASE_URL = settings.database_url


def build_engine(database_url: str) -> Engine:
    # sqlite connections are shared between the request threads of the server
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def create_session_factory(database_url: str) -> sessionmaker:
    """Session factory for a database picked at runtime, with its tables in place."""
    bind = build_engine(database_url)
    Base.metadata.create_all(bind=bind)
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


def validate_database_url(database_url: str) -> None:
    """Raise if SQLAlchemy has no dialect for ``database_url``."""
    make_url(database_url).get_dialect()


def check_database_connection(bind: Engine = engine):
    """Test if database connection is working"""
    try:
        with bind.connect() as connection:
            connection.execute(text("SELECT 1"))
            return True, "Database connection successful"
    except SQLAlchemyError as e:
        return False, f"Database connection failed: {str(e)}"
