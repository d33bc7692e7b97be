from __future__ import annotations

from typing import Iterable

from sqlalchemy.orm import Session

from zonemgr.models.publish_state import PendingZone, PublishState
from zonemgr.models.zone import Zone


def get_publish_state(db: Session) -> PublishState:
    state = db.query(PublishState).order_by(PublishState.id).first()
    if state is None:
        state = PublishState(full_rebuild=False)
        db.add(state)
        db.flush()
    return state


def mark_zone_changed(db: Session, zone: Zone) -> None:
    if zone.pending is None:
        zone.pending = PendingZone(zone_id=zone.id)
    db.flush()


def request_full_rebuild(db: Session) -> None:
    get_publish_state(db).full_rebuild = True
    db.flush()


def full_rebuild_requested(db: Session) -> bool:
    return get_publish_state(db).full_rebuild


def pending_zone_ids(db: Session) -> set[int]:
    return {row.zone_id for row in db.query(PendingZone).all()}


def clear_pending(db: Session, zone_ids: Iterable[int], *, full_rebuild: bool = False) -> None:
    """Drop the given zones from the pending set (and the rebuild request)."""
    ids = list(zone_ids)
    if ids:
        for zone in db.query(Zone).filter(Zone.id.in_(ids)).all():
            zone.pending = None
    if full_rebuild:
        get_publish_state(db).full_rebuild = False
    db.flush()
