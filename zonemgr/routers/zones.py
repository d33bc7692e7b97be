from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from zonemgr.admin_auth import require_admin_key
from zonemgr.db.session import get_db
from zonemgr.models.zone import Zone
from zonemgr.routers.common import action_response
from zonemgr.services.bind_tools import BindTools, get_bind_tools
from zonemgr.services.config_audit import get_entity_history
from zonemgr.services.zone_actions import create_zone, delete_zone, rebuild_zone, update_zone

router = APIRouter(prefix="/api/zones", tags=["zones"])


class ZoneCreateRequest(BaseModel):
    name: str
    type: Literal["forward", "reverse", "reverse_ipv4", "reverse_ipv6"] = "forward"
    ttl: int | None = None
    prefix_length: int | None = None
    description: str | None = None
    soa_mail: str
    soa_domain: str | None = None
    soa_refresh: int = 3600
    soa_retry: int = 900
    soa_expire: int = 1209600
    soa_minimum: int = 86400
    allow_dyndns: bool = False
    server_ids: list[int]
    master_server_id: int


class ZoneUpdateRequest(BaseModel):
    ttl: int | None = None
    prefix_length: int | None = None
    description: str | None = None
    soa_ns: str | None = None
    soa_mail: str | None = None
    soa_refresh: int | None = None
    soa_retry: int | None = None
    soa_expire: int | None = None
    soa_minimum: int | None = None
    allow_dyndns: bool | None = None
    server_ids: list[int] | None = None
    master_server_id: int | None = None


def zone_to_dict(zone: Zone) -> dict:
    return {
        "id": zone.id,
        "name": zone.name,
        "type": zone.type,
        "ttl": zone.ttl,
        "prefix_length": zone.prefix_length,
        "description": zone.description,
        "soa_ns": zone.soa_ns,
        "soa_mail": zone.soa_mail,
        "soa_serial": zone.soa_serial,
        "soa_refresh": zone.soa_refresh,
        "soa_retry": zone.soa_retry,
        "soa_expire": zone.soa_expire,
        "soa_minimum": zone.soa_minimum,
        "allow_dyndns": zone.allow_dyndns,
        "changed": zone.changed,
        "servers": [
            {"id": a.server_id, "name": a.server.name, "is_master": a.is_master}
            for a in zone.assignments
        ],
    }


@router.get("")
def list_zones(db: Session = Depends(get_db), _: str = Depends(require_admin_key)):
    zones = db.query(Zone).order_by(Zone.name).all()
    return {"zones": [zone_to_dict(z) for z in zones]}


@router.post("")
def zone_create(
    payload: ZoneCreateRequest,
    db: Session = Depends(get_db),
    tools: BindTools = Depends(get_bind_tools),
    actor: str = Depends(require_admin_key),
):
    return action_response(create_zone(db, payload.model_dump(), tools, actor=actor))


@router.put("/{zone_id}")
def zone_update(
    zone_id: int,
    payload: ZoneUpdateRequest,
    db: Session = Depends(get_db),
    tools: BindTools = Depends(get_bind_tools),
    actor: str = Depends(require_admin_key),
):
    data = payload.model_dump(exclude_unset=True)
    return action_response(update_zone(db, zone_id, data, tools, actor=actor))


@router.delete("/{zone_id}")
def zone_delete(
    zone_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin_key),
):
    return action_response(delete_zone(db, zone_id, actor=actor))


@router.post("/{zone_id}/rebuild")
def zone_rebuild(
    zone_id: int,
    db: Session = Depends(get_db),
    tools: BindTools = Depends(get_bind_tools),
    _: str = Depends(require_admin_key),
):
    return action_response(rebuild_zone(db, zone_id, tools))


@router.get("/{zone_id}/history")
def zone_history(zone_id: int, db: Session = Depends(get_db), _: str = Depends(require_admin_key)):
    changes = get_entity_history(db, "zone", zone_id)
    return {
        "changes": [
            {
                "id": c.id,
                "action": c.action,
                "actor": c.actor,
                "before": c.before_data,
                "after": c.after_data,
                "fields": c.changed_fields(),
                "created_at": c.created_at.isoformat() if c.created_at else None,
            }
            for c in changes
        ]
    }
