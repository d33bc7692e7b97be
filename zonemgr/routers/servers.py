from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from zonemgr.admin_auth import require_admin_key
from zonemgr.db.session import get_db
from zonemgr.models.server import Server
from zonemgr.routers.common import action_response
from zonemgr.services.bind_tools import BindTools, get_bind_tools
from zonemgr.services.publish import reload_server
from zonemgr.services.server_actions import create_server, delete_server, update_server
from zonemgr.services.targets import TargetFactory, get_target_factory

router = APIRouter(prefix="/api/servers", tags=["servers"])


class ServerRequest(BaseModel):
    name: str
    dns_ip4: str | None = None
    dns_ip6: str | None = None
    api_ip: str | None = None
    api_token: str | None = None
    is_local: bool = False
    active: bool = True


@router.get("")
def list_servers(db: Session = Depends(get_db), _: str = Depends(require_admin_key)):
    servers = db.query(Server).order_by(Server.name).all()
    return {
        "servers": [
            {
                "id": s.id,
                "name": s.name,
                "dns_ip4": s.dns_ip4,
                "dns_ip6": s.dns_ip6,
                "api_ip": s.api_ip,
                "is_local": s.is_local,
                "active": s.active,
                "zones": len(s.assignments),
            }
            for s in servers
        ]
    }


@router.post("")
def server_create(
    payload: ServerRequest,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin_key),
):
    return action_response(create_server(db, payload.model_dump(), actor=actor))


@router.put("/{server_id}")
def server_update(
    server_id: int,
    payload: ServerRequest,
    db: Session = Depends(get_db),
    tools: BindTools = Depends(get_bind_tools),
    actor: str = Depends(require_admin_key),
):
    return action_response(update_server(db, server_id, payload.model_dump(), tools, actor=actor))


@router.delete("/{server_id}")
def server_delete(
    server_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin_key),
):
    return action_response(delete_server(db, server_id, actor=actor))


@router.post("/{server_id}/reload")
def server_reload(
    server_id: int,
    db: Session = Depends(get_db),
    target_factory: TargetFactory = Depends(get_target_factory),
    _: str = Depends(require_admin_key),
):
    if db.get(Server, server_id) is None:
        raise HTTPException(status_code=404, detail="Server not found")
    result = reload_server(db, server_id, target_factory)
    return JSONResponse(
        status_code=200 if result.ok else 502,
        content={"status": result.status, "message": result.message, "output": result.output},
    )
