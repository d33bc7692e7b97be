from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from zonemgr.admin_auth import require_admin_key
from zonemgr.db.session import get_db
from zonemgr.models.record import Record
from zonemgr.models.zone import Zone
from zonemgr.routers.common import action_response
from zonemgr.services.bind_tools import BindTools, get_bind_tools
from zonemgr.services.glue import is_glue_record, is_protected_ns
from zonemgr.services.record_actions import add_record, delete_records, update_record

router = APIRouter(prefix="/api", tags=["records"])


class RecordRequest(BaseModel):
    # Type-specific builder fields (mx_priority, srv_*, dkim_*, naptr_*, ...)
    # are passed through to the record type.
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    type: str | None = None
    content: str | None = None
    ttl: int | str | None = None
    auto_ptr: bool = False
    is_dkim: bool = False


class DeleteRequest(BaseModel):
    ids: list[int]


def record_to_dict(db: Session, record: Record) -> dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "type": record.type,
        "content": record.content,
        "ttl": record.ttl,
        "managed": record.server_id is not None,
        "protected": is_glue_record(db, record) or is_protected_ns(db, record),
    }


@router.get("/zones/{zone_id}/records")
def list_records(zone_id: int, db: Session = Depends(get_db), _: str = Depends(require_admin_key)):
    zone = db.get(Zone, zone_id)
    if zone is None:
        raise HTTPException(status_code=404, detail="Zone not found")
    records = (
        db.query(Record)
        .filter(Record.zone_id == zone.id)
        .order_by(Record.type, Record.name, Record.content)
        .all()
    )
    return {"zone": zone.name, "records": [record_to_dict(db, r) for r in records]}


@router.post("/zones/{zone_id}/records")
def record_create(
    zone_id: int,
    payload: RecordRequest,
    db: Session = Depends(get_db),
    tools: BindTools = Depends(get_bind_tools),
    actor: str = Depends(require_admin_key),
):
    return action_response(add_record(db, zone_id, payload.model_dump(), tools, actor=actor))


@router.put("/records/{record_id}")
def record_update(
    record_id: int,
    payload: RecordRequest,
    db: Session = Depends(get_db),
    tools: BindTools = Depends(get_bind_tools),
    actor: str = Depends(require_admin_key),
):
    data = payload.model_dump(exclude_unset=True)
    return action_response(update_record(db, record_id, data, tools, actor=actor))


@router.post("/records/delete")
def record_delete(
    payload: DeleteRequest,
    db: Session = Depends(get_db),
    tools: BindTools = Depends(get_bind_tools),
    actor: str = Depends(require_admin_key),
):
    return action_response(delete_records(db, payload.ids, tools, actor=actor))
