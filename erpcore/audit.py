from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from erpcore.context import get_correlation_id

audit_entries: list[dict[str, Any]] = []
_pending: ContextVar[list[dict[str, Any]] | None] = ContextVar("audit_pending", default=None)


def _changed_fields(before: dict[str, Any] | None, after: dict[str, Any] | None) -> list[str]:
    before = before or {}
    after = after or {}
    return sorted(key for key in before.keys() | after.keys() if before.get(key) != after.get(key))


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Append one audit entry for a ledger, sequence or account change and return it."""
    entry = {
        "id": str(uuid.uuid4()),
        "actor_user_id": actor_user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": before,
        "after": after,
        "changed_fields": _changed_fields(before, after),
        "correlation_id": correlation_id or get_correlation_id(),
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    _store(entry)
    return entry


def _store(entry: dict[str, Any]) -> None:
    pending = _pending.get()
    if pending is None:
        audit_entries.append(entry)
    else:
        pending.append(entry)


@contextmanager
def deferred() -> Iterator[list[dict[str, Any]]]:
    """Hold entries recorded inside the block until ``keep`` is called with them.

    Entries from an attempt that ends in a rollback are simply never kept.
    """
    buffer: list[dict[str, Any]] = []
    token = _pending.set(buffer)
    try:
        yield buffer
    finally:
        _pending.reset(token)


def keep(entries: list[dict[str, Any]]) -> None:
    for entry in entries:
        _store(entry)


def entries_for(entity_type: str, entity_id: str | None = None, *, action: str | None = None) -> list[dict[str, Any]]:
    return [
        entry
        for entry in audit_entries
        if entry["entity_type"] == entity_type
        and (entity_id is None or entry["entity_id"] == entity_id)
        and (action is None or entry["action"] == action)
    ]


def reset() -> None:
    audit_entries.clear()
