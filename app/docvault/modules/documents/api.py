from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.docvault.modules.documents.models import Document
from app.docvault.modules.documents.service import (
    DocumentPatch,
    create_document,
    delete_document,
    get_document,
    list_documents,
    update_document,
    validate_document_payload,
)
from app.docvault.store import request_store
from app.docvault.utils import isoformat

bp = Blueprint("documents_api", __name__)


def document_json(d: Document) -> dict:
    return {
        "id": d.id,
        "project_id": d.project_id,
        "title": d.title,
        "content": d.content,
        "created_at": isoformat(d.created_at),
        "updated_at": isoformat(d.updated_at),
    }


def _json_body() -> dict | None:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


@bp.get("/projects/<int:project_id>/documents")
def project_documents(project_id: int):
    documents = list_documents(request_store(), project_id)
    return jsonify({"documents": [document_json(d) for d in documents]})


@bp.post("/documents")
def documents_create():
    payload = _json_body()
    errors = ["Request body must be a JSON object."] if payload is None else validate_document_payload(payload)
    if errors:
        return jsonify({"message": "Invalid document data", "errors": errors}), 400

    doc = create_document(
        request_store(),
        project_id=payload["project_id"],
        title=payload["title"],
        content=payload.get("content"),
    )
    return jsonify({"document": document_json(doc)}), 201


@bp.get("/documents/<int:document_id>")
def documents_detail(document_id: int):
    doc = get_document(request_store(), document_id)
    return jsonify({"document": document_json(doc)})


@bp.patch("/documents/<int:document_id>")
def documents_update(document_id: int):
    payload = _json_body()
    errors = (
        ["Request body must be a JSON object."]
        if payload is None
        else validate_document_payload(payload, partial=True)
    )
    if errors:
        return jsonify({"message": "Invalid document data", "errors": errors}), 400
    if "project_id" in payload:
        # Moving documents between projects is not supported.
        return jsonify({"message": "Invalid document data", "errors": ["project_id cannot be changed."]}), 400

    doc = update_document(request_store(), document_id, DocumentPatch.from_payload(payload))
    return jsonify({"document": document_json(doc)})


@bp.delete("/documents/<int:document_id>")
def documents_delete(document_id: int):
    if not delete_document(request_store(), document_id):
        return jsonify({"message": "Document not found"}), 404
    return "", 204
