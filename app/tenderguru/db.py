from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker


def _build_engine(db_url: str) -> Engine:
    kwargs: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        kwargs.update({"pool_recycle": 1800, "pool_size": 5, "max_overflow": 10, "pool_timeout": 30})
    engine = create_engine(db_url, **kwargs)

    if db_url.startswith("sqlite"):
        # sqlite ignores ON DELETE SET NULL unless foreign keys are switched on per connection.
        @event.listens_for(engine, "connect")
        def _sqlite_fk_pragma(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cur = dbapi_connection.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return engine


def init_db(app: Flask) -> None:
    engine = _build_engine(app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )
    app.logger.debug("Database engine ready (%s)", engine.url.render_as_string(hide_password=True))


def create_schema(app: Flask) -> None:
    """Create all tables directly. Tests and first-run scripts; deployments use alembic."""
    from app.tenderguru.models import Base

    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])


def db_session() -> Session:
    """
    Request-scoped session, closed by `teardown_db_session`.
    """
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        s = current_app.extensions["sqlalchemy_sessionmaker"]()
        g.db_session = s
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is not None:
        s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Non-request helper (scripts, tests, background tasks): commits on success, rolls back on error.
    """
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
