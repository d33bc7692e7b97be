from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from zonemgr.admin_auth import require_admin_key
from zonemgr.db.session import get_db
from zonemgr.models.diagnostic import DiagnosticLog
from zonemgr.services.diagnostics import diagnostics_overview, run_monitoring
from zonemgr.services.targets import TargetFactory, get_target_factory

router = APIRouter(prefix="/api/diagnostics", tags=["diagnostics"])


@router.get("")
def diagnostics(db: Session = Depends(get_db), _: str = Depends(require_admin_key)):
    return diagnostics_overview(db)


@router.get("/log")
def diagnostics_log(
    limit: int = 100, db: Session = Depends(get_db), _: str = Depends(require_admin_key)
):
    rows = db.query(DiagnosticLog).order_by(DiagnosticLog.id.desc()).limit(min(limit, 1000)).all()
    return {
        "entries": [
            {
                "target_type": r.target_type,
                "target_id": r.target_id,
                "server_id": r.server_id,
                "check_type": r.check_type,
                "old_status": r.old_status,
                "new_status": r.new_status,
                "message": r.message,
                "changed_at": r.changed_at.isoformat() if r.changed_at else None,
            }
            for r in rows
        ]
    }


@router.post("/run")
def diagnostics_run(
    db: Session = Depends(get_db),
    target_factory: TargetFactory = Depends(get_target_factory),
    _: str = Depends(require_admin_key),
):
    result = run_monitoring(db, target_factory)
    return {
        "ok": result.ok,
        "servers_checked": result.servers_checked,
        "zones_checked": result.zones_checked,
        "errors": result.errors,
    }
