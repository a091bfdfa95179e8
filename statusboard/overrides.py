"""User overrides of a status board item, with audit events."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .database import atomic
from .errors import NotFoundError
from .models import HomeItem, HomeItemStatus, HomeItemStatusEvent
from .schemas import HomeItemEventType, StatusPatch

logger = logging.getLogger(__name__)

# Patch field → audit payload field name for USER_OVERRIDE events
_OVERRIDE_EVENT_FIELDS = {
    "override_condition": "condition",
    "override_recommendation": "recommendation",
}

_FLAG_EVENTS = {
    "is_pinned": (HomeItemEventType.PIN, HomeItemEventType.UNPIN),
    "is_hidden": (HomeItemEventType.HIDE, HomeItemEventType.UNHIDE),
}


def get_home_item(db: Session, home_item_id: uuid.UUID, property_id: uuid.UUID) -> HomeItem:
    """Load a registry entry scoped to its property, or raise NotFoundError."""
    item = db.execute(
        select(HomeItem)
        .where(HomeItem.id == home_item_id, HomeItem.property_id == property_id)
        .options(selectinload(HomeItem.status))
    ).scalar_one_or_none()
    if item is None:
        raise NotFoundError("Home item not found")
    return item


def plan_events(home_item_id: uuid.UUID, actor_user_id: str | None, changes: dict) -> list[dict]:
    """Audit events for the semantically significant fields of a patch."""
    events = []
    for name, value in changes.items():
        if name in _OVERRIDE_EVENT_FIELDS:
            events.append({
                "home_item_id": home_item_id,
                "actor_user_id": actor_user_id,
                "event_type": HomeItemEventType.USER_OVERRIDE,
                "payload": {
                    "field": _OVERRIDE_EVENT_FIELDS[name],
                    "value": value.value if value is not None else None,
                },
            })
        elif name in _FLAG_EVENTS:
            on, off = _FLAG_EVENTS[name]
            events.append({
                "home_item_id": home_item_id,
                "actor_user_id": actor_user_id,
                "event_type": on if value else off,
                "payload": {},
            })
    return events


def patch_item_status(
    db: Session,
    home_item_id: uuid.UUID,
    property_id: uuid.UUID,
    actor_user_id: str | None,
    patch: StatusPatch,
) -> HomeItemStatus:
    """Apply the fields present in ``patch`` and record audit events, atomically.

    Absent fields are untouched; an explicit null clears the override so the
    computed value shows again. Returns the refreshed status row.
    """
    item = get_home_item(db, home_item_id, property_id)
    status = item.status
    if status is None:
        raise NotFoundError("Home item status not found")

    changes = patch.present_fields()
    events = plan_events(item.id, actor_user_id, changes)

    with atomic(db):
        for name, value in changes.items():
            setattr(status, name, value)
        for event in events:
            db.add(HomeItemStatusEvent(**event))

    db.refresh(status)
    logger.info(
        f"Patched status of home item {home_item_id}: fields={sorted(changes)} "
        f"events={[e['event_type'].value for e in events]}"
    )
    return status


def list_item_events(
    db: Session, home_item_id: uuid.UUID, property_id: uuid.UUID
) -> list[HomeItemStatusEvent]:
    """Audit trail of one item, newest first."""
    get_home_item(db, home_item_id, property_id)
    return list(
        db.execute(
            select(HomeItemStatusEvent)
            .where(HomeItemStatusEvent.home_item_id == home_item_id)
            .order_by(HomeItemStatusEvent.created_at.desc())
        ).scalars().all()
    )
