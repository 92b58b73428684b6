from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from app.docvault.models import Base
from app.docvault.utils import is_int_id, utcnow

ModelT = TypeVar("ModelT", bound=Base)


class NotFound(LookupError):
    """A referenced Project/Document/Version does not exist (or is not owned by its parent)."""

    def __init__(self, kind: str, ident: object) -> None:
        super().__init__(f"{kind} {ident!r} not found")
        self.kind = kind
        self.ident = ident


def _ids_in_range(filters: Mapping[str, Any]) -> bool:
    # An id no row can have matches nothing; the driver would reject it outright.
    return all(is_int_id(v) for v in filters.values() if isinstance(v, int) and not isinstance(v, bool))


class EntityStore:
    """
    Record storage over one SQLAlchemy session.

    Writes are flushed immediately so ids and timestamps are assigned, but
    nothing is committed until the surrounding `transaction()` exits cleanly.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        try:
            yield self.session
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def get(self, model: type[ModelT], ident: int, *, for_update: bool = False) -> ModelT | None:
        if not is_int_id(ident):
            return None
        if not for_update:
            return self.session.get(model, ident)
        # Locked reads must see the committed row, not the identity map copy.
        # FOR UPDATE is a no-op on SQLite and a row lock on Postgres.
        return self.session.get(model, ident, with_for_update=True, populate_existing=True)

    def list(
        self,
        model: type[ModelT],
        *,
        order_by: Sequence[ColumnElement[Any]] = (),
        **filters: Any,
    ) -> list[ModelT]:
        if not _ids_in_range(filters):
            return []
        stmt = select(model).filter_by(**filters)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return list(self.session.scalars(stmt).all())

    def insert(self, record: ModelT, *, now: datetime | None = None) -> ModelT:
        ts = now or utcnow()
        if hasattr(record, "created_at"):
            record.created_at = ts
        if hasattr(record, "updated_at"):
            record.updated_at = ts
        self.session.add(record)
        self.session.flush()
        return record

    def update(
        self,
        model: type[ModelT],
        ident: int,
        fields: Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> ModelT | None:
        """Apply all `fields` in one UPDATE, or none of them."""
        unknown = [k for k in fields if k in ("id", "created_at") or not hasattr(model, k)]
        if unknown:
            raise ValueError(f"Cannot update {model.__name__} fields: {', '.join(sorted(unknown))}")

        record = self.get(model, ident)
        if record is None:
            return None
        for key, value in fields.items():
            setattr(record, key, value)
        if hasattr(record, "updated_at"):
            record.updated_at = now or utcnow()
        self.session.flush()
        return record

    def delete(self, model: type[ModelT], ident: int) -> bool:
        if not is_int_id(ident):
            return False
        result = self.session.execute(delete(model).where(model.id == ident))  # type: ignore[attr-defined]
        return result.rowcount > 0

    def delete_where(self, model: type[ModelT], **filters: Any) -> int:
        if not _ids_in_range(filters):
            return 0
        result = self.session.execute(delete(model).filter_by(**filters))
        return result.rowcount


def request_store() -> EntityStore:
    """Store bound to the current request's session."""
    from app.docvault.db import db_session

    return EntityStore(db_session())
