from __future__ import annotations

import difflib
import logging
import re
from dataclasses import dataclass, field

from app.docvault.audit import record_event
from app.docvault.store import EntityStore, NotFound
from app.docvault.utils import is_int_id, utcnow

from app.docvault.modules.documents.models import Document
from app.docvault.modules.documents.service import DocumentPatch, update_document
from app.docvault.modules.versions.models import Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffPart:
    value: str
    added: bool = False
    removed: bool = False


@dataclass(frozen=True)
class VersionDiff:
    version_id: int
    document_id: int
    against_version_id: int | None  # None: compared with the live document content
    parts: list[DiffPart] = field(default_factory=list)
    additions: int = 0
    deletions: int = 0


def validate_version_payload(payload: dict) -> list[str]:
    """Validate manual snapshot payload. Returns list of errors."""
    errors = []
    if not is_int_id(payload.get("document_id")):
        errors.append("document_id must be a positive integer id.")
    if not isinstance(payload.get("content"), str):
        errors.append("Content must be a string.")
    return errors


def list_versions(store: EntityStore, document_id: int) -> list[Version]:
    """Newest first; versions written by the same mutation share a timestamp, so id breaks ties."""
    return store.list(
        Version,
        document_id=document_id,
        order_by=(Version.created_at.desc(), Version.id.desc()),
    )


def number_versions(versions: list[Version]) -> list[tuple[int, Version]]:
    """Pair newest-first versions with 1-based ordinals where the oldest is 1."""
    total = len(versions)
    return [(total - idx, v) for idx, v in enumerate(versions)]


def get_version(store: EntityStore, version_id: int) -> Version:
    version = store.get(Version, version_id)
    if version is None:
        raise NotFound("Version", version_id)
    return version


def _owned_version(store: EntityStore, document_id: int, version_id: int) -> Version:
    version = store.get(Version, version_id)
    if version is None or version.document_id != document_id:
        raise NotFound("Version", version_id)
    return version


def restore_version(store: EntityStore, document_id: int, version_id: int) -> Document:
    """
    Overwrite the document's content with a past version's content.

    This is an ordinary content update, so current non-empty content is captured
    as a new version before being replaced.
    """
    version = _owned_version(store, document_id, version_id)
    doc = update_document(
        store,
        document_id,
        DocumentPatch(content=version.content),
        action="version.restore",
        metadata={"restored_version_id": version.id},
    )
    logger.info("Restored document id=%s to version id=%s", document_id, version_id)
    return doc


def create_snapshot(store: EntityStore, *, document_id: int, content: str) -> Version:
    """Manually record a version. Does not touch the document row."""
    with store.transaction():
        if store.get(Document, document_id) is None:
            raise NotFound("Document", document_id)
        version = store.insert(Version(document_id=document_id, content=content), now=utcnow())
        record_event(
            store.session,
            action="version.create",
            entity_type="Version",
            entity_id=str(version.id),
            metadata={"document_id": document_id, "length": len(content)},
        )
    return version


def delete_version(store: EntityStore, version_id: int) -> bool:
    """Direct removal; a version owns nothing. Deleting the last one is allowed."""
    with store.transaction():
        deleted = store.delete(Version, version_id)
        if deleted:
            record_event(store.session, action="version.delete", entity_type="Version", entity_id=str(version_id))
    return deleted


# Lines end at "\n" only; \r and other Unicode separators stay inside a line.
_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")


def diff_lines(old: str, new: str) -> tuple[list[DiffPart], int, int]:
    """Line diff as ordered parts; each part is unchanged, added or removed."""
    old_lines = _LINE_RE.findall(old)
    new_lines = _LINE_RE.findall(new)
    parts: list[DiffPart] = []
    additions = deletions = 0
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            parts.append(DiffPart("".join(old_lines[i1:i2])))
            continue
        if tag in ("replace", "delete"):
            parts.append(DiffPart("".join(old_lines[i1:i2]), removed=True))
            deletions += i2 - i1
        if tag in ("replace", "insert"):
            parts.append(DiffPart("".join(new_lines[j1:j2]), added=True))
            additions += j2 - j1
    return parts, additions, deletions


def diff_version(store: EntityStore, version_id: int, *, against_version_id: int | None = None) -> VersionDiff:
    """
    Compare a version with the document's live content, or with another
    version of the same document when `against_version_id` is given.
    """
    version = get_version(store, version_id)
    if against_version_id is None:
        doc = store.get(Document, version.document_id)
        if doc is None:
            raise NotFound("Document", version.document_id)
        target = doc.content or ""
    else:
        target = _owned_version(store, version.document_id, against_version_id).content

    parts, additions, deletions = diff_lines(version.content, target)
    return VersionDiff(
        version_id=version.id,
        document_id=version.document_id,
        against_version_id=against_version_id,
        parts=parts,
        additions=additions,
        deletions=deletions,
    )
