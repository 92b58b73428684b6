"""
Release phase: bring the database schema to head before the web process starts.

Refuses to run without DATABASE_URL, or against SQLite when ENV is production.
After upgrading, verifies that every table DocVault needs is present.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to migrate a sqlite DATABASE_URL in production; point it at Postgres.")
    return db_url


def _alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def _verify_schema(db_url: str) -> None:
    from sqlalchemy import inspect as sa_inspect

    from app.docvault.db import EXPECTED_TABLES
    from scripts._db_utils import create_script_engine

    engine = create_script_engine(db_url)
    try:
        insp = sa_inspect(engine)
        missing = [t for t in EXPECTED_TABLES if not insp.has_table(t)]
    finally:
        engine.dispose()
    if missing:
        raise RuntimeError(f"Schema still missing tables after upgrade: {', '.join(missing)}")


def run_release() -> None:
    from alembic import command

    db_url = _database_url()
    print("=== DocVault release ===", flush=True)
    command.upgrade(_alembic_config(db_url), "head")
    _verify_schema(db_url)
    print("Schema at head.", flush=True)


if __name__ == "__main__":
    run_release()
