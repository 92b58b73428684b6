import json
from typing import Any

from flask import g, has_app_context
from sqlalchemy.orm import Session

from app.docvault.models import AuditEvent


def _current_request_id() -> str | None:
    # Service calls from scripts and tests run without an app context.
    return g.get("request_id") if has_app_context() else None


def record_event(
    s: Session,
    *,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Stage an audit row for `action` (e.g. "document.update", "version.restore").

    The row is only added to the session: it commits or rolls back with the
    caller's transaction, never on its own.
    """
    ev = AuditEvent(
        request_id=request_id or _current_request_id(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    s.add(ev)
    return ev
