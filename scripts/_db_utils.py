from __future__ import annotations

import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.docvault.db import enable_sqlite_foreign_keys, engine_options, make_sessionmaker
from app.docvault.store import EntityStore

DEFAULT_DATABASE_URL = "sqlite:///docvault.db"


def script_database_url() -> str:
    return (os.environ.get("DATABASE_URL") or "").strip() or DEFAULT_DATABASE_URL


def create_script_engine(db_url: str) -> Engine:
    engine = create_engine(db_url, **engine_options(db_url))
    if engine.dialect.name == "sqlite":
        enable_sqlite_foreign_keys(engine)
    return engine


@contextmanager
def script_store(db_url: str):
    """EntityStore on a throwaway engine; services commit their own transactions."""
    engine = create_script_engine(db_url)
    s: Session = make_sessionmaker(engine)()
    try:
        yield EntityStore(s)
    finally:
        s.close()
        engine.dispose()
