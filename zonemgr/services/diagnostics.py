from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, cast

from sqlalchemy import delete
from sqlalchemy.engine import CursorResult
from sqlalchemy.orm import Session

from zonemgr.models.diagnostic import Diagnostic, DiagnosticLog
from zonemgr.models.server import Server
from zonemgr.models.settings import get_diagnostic_log_retention, monitoring_checks_zones
from zonemgr.models.zone import Zone
from zonemgr.models.zone_server import ZoneServer
from zonemgr.services.targets import TargetFactory, target_for

log = logging.getLogger(__name__)

_RETENTION_RE = re.compile(r"^(\d+)([HDWMY])$", re.IGNORECASE)

# Months and years are approximated; retention does not need calendar precision.
_RETENTION_UNITS = {
    "H": timedelta(hours=1),
    "D": timedelta(days=1),
    "W": timedelta(weeks=1),
    "M": timedelta(days=30),
    "Y": timedelta(days=365),
}


@dataclass
class MonitoringResult:
    servers_checked: int = 0
    zones_checked: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_retention(value: str) -> timedelta | None:
    """``"30D"`` -> 30 days. Units: H, D, W, M (30 days), Y (365 days)."""
    match = _RETENTION_RE.match((value or "").strip())
    if not match:
        return None
    amount, unit = match.groups()
    return int(amount) * _RETENTION_UNITS[unit.upper()]


def save_diagnostic(
    db: Session,
    target_type: str,
    target_id: int,
    check_type: str,
    status: str,
    message: str,
    server_id: int | None = None,
) -> Diagnostic:
    """Upsert the current result and log the transition if the status moved.

    A first result is logged as a change from ``ok`` unless it is ``ok`` itself.
    """
    query = db.query(Diagnostic).filter(
        Diagnostic.target_type == target_type,
        Diagnostic.target_id == target_id,
        Diagnostic.check_type == check_type,
    )
    if server_id is None:
        query = query.filter(Diagnostic.server_id.is_(None))
    else:
        query = query.filter(Diagnostic.server_id == server_id)
    diag = query.one_or_none()

    now = datetime.now(timezone.utc)
    if diag is None:
        old_status = "ok"
        diag = Diagnostic(
            target_type=target_type,
            target_id=target_id,
            check_type=check_type,
            server_id=server_id,
            status=status,
            message=message,
            last_check=now,
        )
        db.add(diag)
        changed = status != "ok"
    else:
        old_status = diag.status
        changed = old_status != status
        diag.status = status
        diag.message = message
        diag.last_check = now
        if changed:
            diag.notified = False

    if changed:
        db.add(
            DiagnosticLog(
                target_type=target_type,
                target_id=target_id,
                server_id=server_id,
                check_type=check_type,
                old_status=old_status,
                new_status=status,
                message=message,
                changed_at=now,
            )
        )
        log.info(f"{check_type} of {target_type} {target_id}: {old_status} -> {status}")

    db.flush()
    return diag


def _server_status(status: dict[str, Any]) -> tuple[str, str]:
    return str(status.get("status") or "error"), str(status.get("message") or "")


def check_server(db: Session, server: Server, factory: TargetFactory) -> None:
    target = factory(server)
    status, message = _server_status(target.status())
    save_diagnostic(db, "server", server.id, "server_status", status, message, server.id)

    conf = target.check_conf()
    save_diagnostic(
        db, "server", server.id, "zone_conf_status", conf.status, conf.output or conf.message, server.id
    )


def run_monitoring(
    db: Session, target_factory: TargetFactory | None = None, *, check_zones: bool | None = None
) -> MonitoringResult:
    """One monitoring sweep over every active server and its zones.

    Each server and each zone/server pair is committed on its own; a failure
    is logged and the sweep continues.
    """
    factory = target_factory or target_for
    if check_zones is None:
        check_zones = monitoring_checks_zones(db)
    result = MonitoringResult()

    servers = db.query(Server).filter(Server.active.is_(True)).order_by(Server.name).all()
    for server in servers:
        try:
            check_server(db, server, factory)
            db.commit()
            result.servers_checked += 1
        except Exception as e:
            db.rollback()
            log.error(f"Diagnostics for server {server.name} failed: {e}")
            result.errors.append(f"{server.name}: {e}")

    if check_zones:
        pairs = (
            db.query(Zone, Server)
            .join(ZoneServer, ZoneServer.zone_id == Zone.id)
            .join(Server, Server.id == ZoneServer.server_id)
            .filter(Server.active.is_(True))
            .order_by(Zone.name, Server.name)
            .all()
        )
        for zone, server in pairs:
            try:
                check = factory(server).check_zone(zone.name)
                save_diagnostic(
                    db,
                    "zone",
                    zone.id,
                    "zone_status",
                    check.status,
                    check.output or check.message,
                    server.id,
                )
                db.commit()
                result.zones_checked += 1
            except Exception as e:
                db.rollback()
                log.error(f"Diagnostics for zone {zone.name} on {server.name} failed: {e}")
                result.errors.append(f"{zone.name}@{server.name}: {e}")

    cleanup_orphaned_zone_diagnostics(db)
    log.info(
        f"Monitoring run: {result.servers_checked} server(s), "
        f"{result.zones_checked} zone check(s), {len(result.errors)} failure(s)"
    )
    return result


def cleanup_orphaned_zone_diagnostics(db: Session) -> int:
    """Drop zone diagnostics whose zone is no longer assigned to that server."""
    rows = (
        db.query(Diagnostic)
        .filter(Diagnostic.target_type == "zone", Diagnostic.server_id.isnot(None))
        .all()
    )
    removed = 0
    for diag in rows:
        assigned = (
            db.query(ZoneServer)
            .filter(ZoneServer.zone_id == diag.target_id, ZoneServer.server_id == diag.server_id)
            .first()
        )
        if assigned is None:
            db.delete(diag)
            removed += 1
    db.commit()
    if removed:
        log.info(f"Removed {removed} orphaned zone diagnostic(s)")
    return removed


def cleanup_diagnostic_log(db: Session, retention: str | None = None) -> int:
    if retention is None:
        retention = get_diagnostic_log_retention(db)

    window = parse_retention(retention)
    if window is None:
        raise ValueError(f"Invalid retention interval: {retention!r}")

    cutoff = datetime.now(timezone.utc) - window
    result = cast(
        CursorResult, db.execute(delete(DiagnosticLog).where(DiagnosticLog.changed_at < cutoff))
    )
    db.commit()

    deleted = result.rowcount or 0
    log.info(f"Retention: deleted {deleted} diagnostic log entries older than {retention}")
    return deleted


def diagnostics_overview(db: Session) -> dict[str, list[dict[str, Any]]]:
    """Current diagnostics grouped by target type, with zone and server names."""
    zones = {z.id: z.name for z in db.query(Zone).all()}
    servers = {s.id: s.name for s in db.query(Server).all()}
    grouped: dict[str, list[dict[str, Any]]] = {"server": [], "zone": []}
    rows = db.query(Diagnostic).order_by(Diagnostic.target_type, Diagnostic.target_id).all()
    for d in rows:
        entry = {
            "target_id": d.target_id,
            "check_type": d.check_type,
            "status": d.status,
            "message": d.message,
            "server": servers.get(d.server_id) if d.server_id else None,
            "last_check": d.last_check.isoformat() if d.last_check else None,
        }
        if d.target_type == "zone":
            entry["zone"] = zones.get(d.target_id, "(unknown)")
        grouped.setdefault(d.target_type, []).append(entry)
    return grouped
