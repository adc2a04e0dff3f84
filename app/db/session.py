# session.py
# Configures the database connection and session management using SQLAlchemy.

import json

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.core.config import settings


def _json_serializer(value):
    # Store non-ASCII text as-is rather than as \u escapes
    return json.dumps(value, ensure_ascii=False)


def make_engine(url: str, **kwargs) -> Engine:
    """
    Build an engine for the given URL.
    SQLite needs check_same_thread disabled and foreign keys switched on per connection.
    """
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    new_engine = create_engine(
        url,
        connect_args=connect_args,
        json_serializer=_json_serializer,
        **kwargs,
    )

    if new_engine.dialect.name == "sqlite":
        @event.listens_for(new_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Dependency to get a database session.
# This will be used in our API endpoints to get a session for database operations.
def get_db():
    """
    SQLAlchemy session generator.
    Yields a session and ensures it's closed afterward.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
