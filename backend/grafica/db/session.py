from sqlmodel import SQLModel, create_engine, Session
import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./grafica.db")
SQL_ECHO = os.getenv("SQL_ECHO", "0").lower() in ("1", "true", "yes")

_engine = None


def get_engine():
    global _engine
    if _engine is None:
        connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
        _engine = create_engine(DATABASE_URL, echo=SQL_ECHO, connect_args=connect_args)
    return _engine


def set_engine(engine) -> None:
    """Swap the process engine (tests point this at an in-memory database)."""
    global _engine
    _engine = engine


def create_db_and_tables(engine=None) -> None:
    # importing the models registers their tables on SQLModel.metadata
    from grafica.models import catalog, service  # noqa: F401

    SQLModel.metadata.create_all(engine or get_engine())


def get_session() -> Session:
    engine = get_engine()
    return Session(engine, expire_on_commit=False)
