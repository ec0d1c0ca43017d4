from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select

from app.agora.audit import record_event
from app.agora.errors import Unauthenticated, ValidationError
from app.agora.models import User
from app.agora.modules.groups.models import Group, GroupMember

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.agora.identity import SessionIdentity


def validate_group_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("name") or "").strip():
        errors.append("Group name is required.")
    return errors


def list_groups(s: "Session") -> list[Group]:
    return list(s.scalars(select(Group).order_by(Group.name.asc(), Group.id.asc())))


def create_group(s: "Session", payload: dict, identity: "SessionIdentity") -> Group:
    errors = validate_group_payload(payload)
    if errors:
        raise ValidationError(errors)

    now = datetime.utcnow()
    group = Group(
        name=(payload.get("name") or "").strip(),
        description=(payload.get("description") or "").strip() or None,
        created_at=now,
        updated_at=now,
    )
    s.add(group)
    s.flush()

    record_event(
        s,
        actor=identity,
        action="group.create",
        entity_type="Group",
        entity_id=str(group.id),
        metadata={"name": group.name},
    )
    return group


def join_group(s: "Session", group: Group, identity: "SessionIdentity") -> bool:
    """Add the caller to the group. Returns False if they were already a member."""
    if s.get(User, identity.id) is None:
        raise Unauthenticated("Your account no longer exists. Please register again.")
    if s.get(GroupMember, (group.id, identity.id)) is not None:
        return False

    s.add(GroupMember(group_id=group.id, user_id=identity.id, joined_at=datetime.utcnow()))
    group.updated_at = datetime.utcnow()
    s.flush()

    record_event(
        s,
        actor=identity,
        action="group.join",
        entity_type="Group",
        entity_id=str(group.id),
        metadata={"name": group.name},
    )
    return True
