"""
Version capture policy.

Pure decision: given the content a document holds right now and the content
field of an incoming mutation, which content (if any) must be snapshotted
before the mutation is applied.
"""

from __future__ import annotations

from app.docvault.utils import UNSET, Unset


def has_content(value: str | None | Unset) -> bool:
    return isinstance(value, str) and value != ""


def decide_capture(existing: str | None, incoming: str | None | Unset) -> str | None:
    """
    Return the content to store as a new Version, or None for no capture.

    - field omitted: never capture
    - existing content present: capture it (the pre-mutation value), even when
      the incoming value is empty or identical
    - existing empty, incoming present: capture the incoming value (first
      content becomes the restorable anchor)
    - both empty: nothing worth keeping
    """
    if incoming is UNSET:
        return None
    if has_content(existing):
        return existing
    if has_content(incoming):
        return incoming  # type: ignore[return-value]
    return None


def should_capture(existing: str | None, incoming: str | None | Unset) -> bool:
    return decide_capture(existing, incoming) is not None
