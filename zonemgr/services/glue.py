from __future__ import annotations

from sqlalchemy.orm import Session

from zonemgr.models.record import Record
from zonemgr.models.server import Server
from zonemgr.models.zone import Zone
from zonemgr.models.zone_server import ZoneServer

GLUE_TYPES = ("A", "AAAA")


def record_fqdn(name: str, zone_name: str) -> str:
    zone_name = zone_name.rstrip(".")
    name = name.strip().rstrip(".")
    if name in ("", "@"):
        return zone_name
    return f"{name}.{zone_name}"


def _zone_name(db: Session, zone_id: int) -> str:
    zone = db.get(Zone, zone_id)
    return zone.name if zone else ""


def _ns_targets(db: Session, zone_id: int) -> set[str]:
    rows = db.query(Record).filter(Record.zone_id == zone_id, Record.type == "NS").all()
    return {r.content.rstrip(".").lower() for r in rows}


def _glue_names(db: Session, zone_id: int, zone_name: str) -> set[str]:
    rows = db.query(Record).filter(Record.zone_id == zone_id, Record.type.in_(GLUE_TYPES)).all()
    return {record_fqdn(r.name, zone_name).lower() for r in rows}


def assigned_server_names(db: Session, zone_id: int) -> set[str]:
    rows = (
        db.query(Server.name)
        .join(ZoneServer, ZoneServer.server_id == Server.id)
        .filter(ZoneServer.zone_id == zone_id)
        .all()
    )
    return {name.rstrip(".").lower() for (name,) in rows}


def is_glue_record(db: Session, record: Record) -> bool:
    """A/AAAA whose FQDN is the target of an NS record in the same zone."""
    if record.type.upper() not in GLUE_TYPES:
        return False
    fqdn = record_fqdn(record.name, _zone_name(db, record.zone_id)).lower()
    return fqdn in _ns_targets(db, record.zone_id)


def is_protected_ns(db: Session, record: Record) -> bool:
    """NS pointing at a host with glue, or at one of the zone's assigned servers."""
    if record.type.upper() != "NS":
        return False
    target = record.content.rstrip(".").lower()
    zone_name = _zone_name(db, record.zone_id)
    if target in _glue_names(db, record.zone_id, zone_name):
        return True
    return target in assigned_server_names(db, record.zone_id)
