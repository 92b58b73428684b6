from __future__ import annotations

import enum
from datetime import datetime, timezone


class Unset(enum.Enum):
    """Marker for a patch field the caller did not send (distinct from None/"")."""

    token = 0

    def __repr__(self) -> str:
        return "UNSET"


UNSET = Unset.token


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


# Integer primary keys are 32-bit on Postgres.
MAX_ID = 2**31 - 1


def is_int_id(value: object) -> bool:
    """A positive integer that fits the id columns. bool is never an id."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_ID
