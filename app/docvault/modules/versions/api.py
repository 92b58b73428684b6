from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, jsonify, request

from app.docvault.modules.documents.api import document_json
from app.docvault.modules.documents.service import get_document
from app.docvault.modules.versions.models import Version
from app.docvault.modules.versions.service import (
    create_snapshot,
    delete_version,
    diff_version,
    get_version,
    list_versions,
    number_versions,
    restore_version,
    validate_version_payload,
)
from app.docvault.store import request_store
from app.docvault.utils import isoformat

bp = Blueprint("versions_api", __name__)


def version_json(v: Version, *, number: int | None = None) -> dict:
    out = {
        "id": v.id,
        "document_id": v.document_id,
        "content": v.content,
        "created_at": isoformat(v.created_at),
    }
    if number is not None:
        out["number"] = number
    return out


@bp.get("/documents/<int:document_id>/versions")
def document_versions(document_id: int):
    store = request_store()
    get_document(store, document_id)
    versions = list_versions(store, document_id)
    return jsonify({"versions": [version_json(v, number=n) for n, v in number_versions(versions)]})


@bp.post("/documents/<int:document_id>/versions/<int:version_id>/restore")
def document_restore(document_id: int, version_id: int):
    doc = restore_version(request_store(), document_id, version_id)
    return jsonify({"document": document_json(doc)})


@bp.get("/versions/<int:version_id>")
def versions_detail(version_id: int):
    version = get_version(request_store(), version_id)
    return jsonify({"version": version_json(version)})


@bp.get("/versions/<int:version_id>/diff")
def versions_diff(version_id: int):
    against = request.args.get("against", type=int)
    if "against" in request.args and against is None:
        return jsonify({"message": "Invalid diff request", "errors": ["against must be an integer."]}), 400
    diff = diff_version(request_store(), version_id, against_version_id=against)
    return jsonify({"diff": asdict(diff)})


@bp.post("/versions")
def versions_create():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        errors = ["Request body must be a JSON object."]
    else:
        errors = validate_version_payload(payload)
    if errors:
        return jsonify({"message": "Invalid version data", "errors": errors}), 400

    version = create_snapshot(request_store(), document_id=payload["document_id"], content=payload["content"])
    return jsonify({"version": version_json(version)}), 201


@bp.delete("/versions/<int:version_id>")
def versions_delete(version_id: int):
    if not delete_version(request_store(), version_id):
        return jsonify({"message": "Version not found"}), 404
    return "", 204
