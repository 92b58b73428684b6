"""
Local/dev database bootstrap.

Creates any missing tables directly from the models (no Alembic) and, when
SEED_DEMO=1, adds a demo project with one versioned document. Idempotent: the
demo project is only created if no project of that name exists.

Usage:
  python scripts/init_db.py
"""

import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.docvault.models import Base
from app.docvault.modules.documents.service import DocumentPatch, create_document, update_document
from app.docvault.modules.projects.models import Project
from app.docvault.modules.projects.service import create_project
from scripts._db_utils import create_script_engine, script_database_url, script_store

DEMO_PROJECT_NAME = "Getting started"

DEMO_CONTENT_V1 = """# Welcome

DocVault keeps every edit of a document as a restorable version.
"""

DEMO_CONTENT_V2 = DEMO_CONTENT_V1 + """
## Diagrams

```mermaid
flowchart LR
    A[Edit] --> B[Version captured]
    B --> C[Restore any time]
```
"""


def create_tables(database_url: str) -> None:
    engine = create_script_engine(database_url)
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def seed_demo(*, database_url: str) -> None:
    with script_store(database_url) as store:
        existing = store.list(Project, name=DEMO_PROJECT_NAME)
        if existing:
            print(f"Demo project already present (id={existing[0].id}).")
            return
        project = create_project(store, name=DEMO_PROJECT_NAME)
        doc = create_document(store, project_id=project.id, title="Welcome", content=DEMO_CONTENT_V1)
        # Second edit so the demo document opens with a history to browse.
        update_document(store, doc.id, DocumentPatch(content=DEMO_CONTENT_V2))
        print(f"Seeded demo project id={project.id} document id={doc.id}.")


def main() -> None:
    db_url = script_database_url()
    create_tables(db_url)
    print("Initialized database (create_all).")
    if (os.environ.get("SEED_DEMO") or "").strip() == "1":
        seed_demo(database_url=db_url)


if __name__ == "__main__":
    main()
