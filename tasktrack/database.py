# tasktrack/database.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from tasktrack.config import settings


def build_engine(database_url: str) -> Engine:
    """Create an engine with the connect args each backend needs"""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # In-memory databases must share a single connection
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    # If you're using PostgreSQL on Render or similar, keep sslmode=require
    return create_engine(
        database_url,
        pool_pre_ping=True,
        connect_args={"sslmode": settings.DB_SSLMODE},
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """Session factory for work that must not share the request session"""
    return SessionLocal


def init_db(bind: Engine = None) -> None:
    # Import models so they register with Base.metadata
    from tasktrack import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
