"""
Document lifecycle service.

Sequences create/update/delete so that version capture and the document write
never diverge: capture (if any) is inserted first, then the document row is
updated, and both commit together.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.docvault.audit import record_event
from app.docvault.store import EntityStore, NotFound
from app.docvault.utils import UNSET, Unset, is_int_id, utcnow

from app.docvault.modules.documents.models import Document
from app.docvault.modules.projects.models import Project
from app.docvault.modules.versions.models import Version
from app.docvault.modules.versions.policy import decide_capture

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255


@dataclass(frozen=True)
class DocumentPatch:
    """Partial document update. Fields left as UNSET are not touched."""

    title: str | Unset = UNSET
    content: str | None | Unset = UNSET

    @classmethod
    def from_payload(cls, payload: dict) -> "DocumentPatch":
        return cls(**{k: payload[k] for k in ("title", "content") if k in payload})

    def fields(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.title is not UNSET:
            out["title"] = self.title
        if self.content is not UNSET:
            out["content"] = self.content
        return out


def validate_document_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate document creation/update payload. Returns list of errors."""
    errors = []
    if not partial or "project_id" in payload:
        if not is_int_id(payload.get("project_id")):
            errors.append("project_id must be a positive integer id.")
    if not partial or "title" in payload:
        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append("Title is required.")
        elif len(title.strip()) > TITLE_MAX_LENGTH:
            errors.append(f"Title must be at most {TITLE_MAX_LENGTH} characters.")
    if "content" in payload and payload["content"] is not None and not isinstance(payload["content"], str):
        errors.append("Content must be a string or null.")
    return errors


def _capture(store: EntityStore, document_id: int, content: str, now: datetime) -> Version:
    version = store.insert(Version(document_id=document_id, content=content), now=now)
    record_event(
        store.session,
        action="version.capture",
        entity_type="Version",
        entity_id=str(version.id),
        metadata={"document_id": document_id, "length": len(content)},
    )
    return version


def get_document(store: EntityStore, document_id: int) -> Document:
    doc = store.get(Document, document_id)
    if doc is None:
        raise NotFound("Document", document_id)
    return doc


def list_documents(store: EntityStore, project_id: int) -> list[Document]:
    if store.get(Project, project_id) is None:
        raise NotFound("Project", project_id)
    return store.list(Document, project_id=project_id, order_by=(Document.id.asc(),))


def create_document(
    store: EntityStore,
    *,
    project_id: int,
    title: str,
    content: str | None = None,
) -> Document:
    """Create a document; non-empty initial content becomes its first version."""
    with store.transaction():
        if store.get(Project, project_id) is None:
            raise NotFound("Project", project_id)

        now = utcnow()
        doc = store.insert(
            Document(project_id=project_id, title=title.strip(), content=content if content is not None else ""),
            now=now,
        )
        anchor = decide_capture(None, content if content is not None else UNSET)
        if anchor is not None:
            _capture(store, doc.id, anchor, now)

        record_event(
            store.session,
            action="document.create",
            entity_type="Document",
            entity_id=str(doc.id),
            metadata={"project_id": project_id, "title": doc.title, "captured": anchor is not None},
        )
    logger.info("Created document id=%s project_id=%s", doc.id, project_id)
    return doc


def update_document(
    store: EntityStore,
    document_id: int,
    patch: DocumentPatch,
    *,
    action: str = "document.update",
    metadata: dict[str, Any] | None = None,
) -> Document:
    """
    Apply `patch` to a document.

    When the patch carries `content`, the capture policy runs against the stored
    content (row locked where the backend supports it) and the resulting
    version is written before the document row.
    """
    fields = patch.fields()
    if "title" in fields:
        fields["title"] = fields["title"].strip()

    with store.transaction():
        doc = store.get(Document, document_id, for_update="content" in fields)
        if doc is None:
            raise NotFound("Document", document_id)
        if not fields:
            # Nothing to apply: no updated_at refresh, no audit event.
            return doc

        now = utcnow()
        captured: Version | None = None
        if "content" in fields:
            snapshot = decide_capture(doc.content, fields["content"])
            if snapshot is not None:
                captured = _capture(store, doc.id, snapshot, now)

        store.update(Document, doc.id, fields, now=now)

        record_event(
            store.session,
            action=action,
            entity_type="Document",
            entity_id=str(doc.id),
            metadata={
                "fields": sorted(fields),
                "captured_version_id": captured.id if captured else None,
                **(metadata or {}),
            },
        )
    logger.info(
        "%s document id=%s fields=%s captured_version_id=%s",
        action,
        doc.id,
        ",".join(sorted(fields)) or "-",
        captured.id if captured else None,
    )
    return doc


def purge_document(store: EntityStore, document_id: int) -> bool:
    """
    Delete a document's versions, then the document. Caller owns the transaction.
    """
    removed_versions = store.delete_where(Version, document_id=document_id)
    deleted = store.delete(Document, document_id)
    if deleted:
        record_event(
            store.session,
            action="document.delete",
            entity_type="Document",
            entity_id=str(document_id),
            metadata={"versions_deleted": removed_versions},
        )
    return deleted


def delete_document(store: EntityStore, document_id: int) -> bool:
    """Returns False (never raises) when the document does not exist."""
    with store.transaction():
        deleted = purge_document(store, document_id)
    if deleted:
        logger.info("Deleted document id=%s", document_id)
    return deleted
