from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from zonemgr.admin_auth import require_admin_key
from zonemgr.db.session import get_db
from zonemgr.models.zone import Zone
from zonemgr.services.bind_tools import BindTools, get_bind_tools
from zonemgr.services.pending import get_publish_state, pending_zone_ids
from zonemgr.services.publish import publish_all
from zonemgr.services.targets import TargetFactory, get_target_factory

router = APIRouter(prefix="/api/publish", tags=["publish"])


@router.post("")
def publish(
    db: Session = Depends(get_db),
    tools: BindTools = Depends(get_bind_tools),
    target_factory: TargetFactory = Depends(get_target_factory),
    _: str = Depends(require_admin_key),
):
    result = publish_all(db, tools, target_factory)
    return JSONResponse(
        status_code=200 if result.status != "error" else 502,
        content={
            "status": result.status,
            "published": result.published,
            "errors": result.errors,
            "warnings": result.warnings,
        },
    )


@router.get("/status")
def publish_status(db: Session = Depends(get_db), _: str = Depends(require_admin_key)):
    state = get_publish_state(db)
    ids = pending_zone_ids(db)
    names = [name for (name,) in db.query(Zone.name).filter(Zone.id.in_(ids)).order_by(Zone.name)]
    db.commit()
    return {
        "full_rebuild": state.full_rebuild,
        "pending_zones": names,
        "last_publish_at": state.last_publish_at.isoformat() if state.last_publish_at else None,
        "last_publish_status": state.last_publish_status,
    }
