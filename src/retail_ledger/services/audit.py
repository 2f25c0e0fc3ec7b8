"""Audit trail written alongside ledger changes."""

from __future__ import annotations

import json
from typing import Any

from sqlmodel import Session

from retail_ledger.context import RequestContext
from retail_ledger.models import AuditEvent


def record_event(
    db: Session,
    ctx: RequestContext,
    action: str,
    entity_type: str,
    entity_id: Any,
    **metadata: Any,
) -> AuditEvent:
    """Stage an audit event in the caller's transaction.

    The event is only persisted when the surrounding unit of work commits, so a
    rolled back change never leaves an audit row behind.
    """

    event = AuditEvent(
        store_id=ctx.store_id,
        actor_user_id=ctx.user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        payload=json.dumps(metadata, default=str, sort_keys=True),
    )
    db.add(event)
    return event
