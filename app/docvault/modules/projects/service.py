from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from app.docvault.audit import record_event
from app.docvault.store import EntityStore, NotFound
from app.docvault.utils import UNSET, Unset, utcnow

from app.docvault.modules.documents.models import Document
from app.docvault.modules.documents.service import purge_document
from app.docvault.modules.projects.models import Project

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255


@dataclass(frozen=True)
class ProjectPatch:
    name: str | Unset = UNSET

    @classmethod
    def from_payload(cls, payload: dict) -> "ProjectPatch":
        return cls(**{k: payload[k] for k in ("name",) if k in payload})

    def fields(self) -> dict[str, Any]:
        return {} if self.name is UNSET else {"name": self.name.strip()}


def validate_project_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate project creation/update payload. Returns list of errors."""
    errors = []
    if not partial or "name" in payload:
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append("Name is required.")
        elif len(name.strip()) > NAME_MAX_LENGTH:
            errors.append(f"Name must be at most {NAME_MAX_LENGTH} characters.")
    return errors


def list_projects(store: EntityStore) -> list[Project]:
    return store.list(Project, order_by=(Project.created_at.desc(), Project.id.desc()))


def get_project(store: EntityStore, project_id: int) -> Project:
    project = store.get(Project, project_id)
    if project is None:
        raise NotFound("Project", project_id)
    return project


def create_project(store: EntityStore, *, name: str) -> Project:
    with store.transaction():
        project = store.insert(Project(name=name.strip()))
        record_event(
            store.session,
            action="project.create",
            entity_type="Project",
            entity_id=str(project.id),
            metadata={"name": project.name},
        )
    logger.info("Created project id=%s", project.id)
    return project


def update_project(store: EntityStore, project_id: int, patch: ProjectPatch) -> Project:
    fields = patch.fields()
    if not fields:
        return get_project(store, project_id)
    with store.transaction():
        project = store.update(Project, project_id, fields, now=utcnow())
        if project is None:
            raise NotFound("Project", project_id)
        record_event(
            store.session,
            action="project.update",
            entity_type="Project",
            entity_id=str(project.id),
            metadata={"fields": sorted(fields)},
        )
    return project


def delete_project(store: EntityStore, project_id: int) -> bool:
    """
    Delete every document of the project (each taking its versions with it),
    then the project itself. Returns False when the project does not exist.
    """
    with store.transaction():
        documents = store.list(Document, project_id=project_id)
        for doc in documents:
            purge_document(store, doc.id)
        deleted = store.delete(Project, project_id)
        if deleted:
            record_event(
                store.session,
                action="project.delete",
                entity_type="Project",
                entity_id=str(project_id),
                metadata={"documents_deleted": len(documents)},
            )
    if deleted:
        logger.info("Deleted project id=%s documents=%s", project_id, len(documents))
    return deleted
