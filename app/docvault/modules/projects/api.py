from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.docvault.modules.projects.models import Project
from app.docvault.modules.projects.service import (
    ProjectPatch,
    create_project,
    delete_project,
    get_project,
    list_projects,
    update_project,
    validate_project_payload,
)
from app.docvault.store import request_store
from app.docvault.utils import isoformat

bp = Blueprint("projects_api", __name__)


def project_json(p: Project) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "created_at": isoformat(p.created_at),
        "updated_at": isoformat(p.updated_at),
    }


def _json_body() -> dict | None:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


@bp.get("/projects")
def projects_index():
    projects = list_projects(request_store())
    return jsonify({"projects": [project_json(p) for p in projects]})


@bp.post("/projects")
def projects_create():
    payload = _json_body()
    errors = ["Request body must be a JSON object."] if payload is None else validate_project_payload(payload)
    if errors:
        return jsonify({"message": "Invalid project data", "errors": errors}), 400

    project = create_project(request_store(), name=payload["name"])
    return jsonify({"project": project_json(project)}), 201


@bp.get("/projects/<int:project_id>")
def projects_detail(project_id: int):
    project = get_project(request_store(), project_id)
    return jsonify({"project": project_json(project)})


@bp.patch("/projects/<int:project_id>")
def projects_update(project_id: int):
    payload = _json_body()
    errors = (
        ["Request body must be a JSON object."]
        if payload is None
        else validate_project_payload(payload, partial=True)
    )
    if errors:
        return jsonify({"message": "Invalid project data", "errors": errors}), 400

    project = update_project(request_store(), project_id, ProjectPatch.from_payload(payload))
    return jsonify({"project": project_json(project)})


@bp.delete("/projects/<int:project_id>")
def projects_delete(project_id: int):
    if not delete_project(request_store(), project_id):
        return jsonify({"message": "Project not found"}), 404
    return "", 204
