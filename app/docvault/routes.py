from flask import Blueprint, current_app

from app.docvault.db import check_schema_health

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return {"name": "DocVault", "api": "/api"}


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON, including schema status."""
    schema_ok = check_schema_health(current_app)
    return {"ok": True, "schema_ok": schema_ok}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200
