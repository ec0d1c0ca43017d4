from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.agora.models import AuditEvent

if TYPE_CHECKING:
    from app.agora.identity import SessionIdentity
    from app.agora.models import User

audit_logger = logging.getLogger("agora.audit")


def record_event(
    s: Session,
    *,
    actor: "User | SessionIdentity | None",
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper. The row is committed with the caller's transaction.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        request_id=rid,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    audit_logger.info(
        "%s actor=%s entity=%s:%s request_id=%s",
        action,
        actor.email if actor else "-",
        entity_type or "-",
        entity_id or "-",
        rid or "-",
    )
    return ev
