# Explicit, idempotent schema setup. Runs from the application lifespan before the
# server accepts traffic, or by hand: ``python -m app.db.init_db``.

import logging
from pathlib import Path

from sqlalchemy.engine import Engine

from app.db.session import Base, engine as default_engine

logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(db_engine: Engine) -> None:
    database = db_engine.url.database
    if db_engine.dialect.name == "sqlite" and database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


def init_db(db_engine: Engine = default_engine) -> None:
    """
    Create any missing tables and indexes. Existing tables are left untouched,
    so running this repeatedly is safe.
    """
    # Register the models on Base.metadata
    from app import models  # noqa: F401

    _ensure_sqlite_directory(db_engine)
    Base.metadata.create_all(bind=db_engine)
    logger.info(f"Database schema ready ({db_engine.url.render_as_string(hide_password=True)})")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    init_db()


if __name__ == "__main__":
    main()
