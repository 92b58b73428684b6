from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event, inspect as sa_inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

# Tables every request path touches; missing ones mean migrations were not run.
EXPECTED_TABLES = ("projects", "documents", "versions", "audit_events")


def engine_options(db_url: str) -> dict[str, object]:
    opts: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        opts.update(pool_recycle=1800, pool_size=5, max_overflow=10, pool_timeout=30)
    return opts


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite leaves FK enforcement off per connection; document/version cascades rely on it."""

    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_connection, connection_record):  # type: ignore[no-redef]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_sessionmaker(engine: Engine) -> sessionmaker:
    # Services return ORM rows to handlers after commit.
    return sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False, future=True)


def init_db(app: Flask) -> None:
    db_url = app.config["DATABASE_URL"]
    engine = create_engine(db_url, **engine_options(db_url))
    if engine.dialect.name == "sqlite":
        enable_sqlite_foreign_keys(engine)

    if app.config.get("ENV") != "production":
        @event.listens_for(engine, "checkout")
        def _log_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            app.logger.debug("DB connection checkout (%s)", engine.url.render_as_string(hide_password=True))

    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)


def db_session(app: Flask | None = None) -> Session:
    """Session bound to the current request; created on first use."""
    s = g.get("db_session")
    if s is None:
        sm = (app or current_app).extensions["sqlalchemy_sessionmaker"]
        s = g.db_session = sm()
    return s


def teardown_db_session(exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is None:
        return
    try:
        if exc is not None:
            s.rollback()
        s.close()
    except Exception:
        current_app.logger.exception("Failed to release request DB session")


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """Session outside a request (CLI, tests). Commits on success."""
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def check_schema_health(app: Flask) -> bool:
    """
    Compare EXPECTED_TABLES with what the database actually has.

    The outcome is kept in app.config (`_schema_health_ok`, `_schema_health_missing`)
    and the first failure is logged once per process.
    """
    try:
        insp = sa_inspect(app.extensions["sqlalchemy_engine"])
        missing = [f"{t} (table)" for t in EXPECTED_TABLES if not insp.has_table(t)]
    except Exception:
        app.logger.exception("Schema health check failed")
        missing = ["(schema inspection failed)"]

    app.config["_schema_health_ok"] = not missing
    app.config["_schema_health_missing"] = missing
    if missing and not app.config.get("_schema_health_logged"):
        app.config["_schema_health_logged"] = True
        app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))
    return not missing
