"""Database session management."""

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from franchisehub.core.config import Settings, settings


def engine_options(config: Settings) -> dict:
    """Keyword arguments for ``create_engine`` built from the settings."""
    options = {
        "echo": config.database_echo,
        "pool_pre_ping": config.db_pool_pre_ping,
        "pool_recycle": config.db_pool_recycle,
    }
    if config.database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = config.db_pool_size
        options["max_overflow"] = config.db_max_overflow
    return options


engine = create_engine(settings.database_url, **engine_options(settings))

# Enable foreign key enforcement for SQLite
if settings.database_url.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


DbSession = Annotated[Session, Depends(get_db)]
