"""Database configuration and utilities."""
from contextlib import contextmanager

from sqlmodel import Session, SQLModel, create_engine

import config

config.DB_PATH.parent.mkdir(parents=True, exist_ok=True)

# Database engine
engine = create_engine(
    f"sqlite:///{config.DB_PATH}", connect_args={"check_same_thread": False}
)


@contextmanager
def get_session():
    """Get a database session context manager."""
    with Session(engine, expire_on_commit=False) as session:
        yield session


def init_db() -> None:
    """Initialize database tables and storage folders."""
    import models  # noqa: F401  registers the tables on SQLModel.metadata

    config.ensure_folders()
    SQLModel.metadata.create_all(engine)


def reset_db() -> None:
    """Drop and recreate all tables."""
    import models  # noqa: F401

    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
