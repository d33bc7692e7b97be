from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete
from sqlalchemy.orm import Session

from zonemgr.models.diagnostic import Diagnostic, DiagnosticLog
from zonemgr.models.server import Server
from zonemgr.models.zone_server import ZoneServer
from zonemgr.services.action_result import ActionResult, failed, not_found, rejected
from zonemgr.services.bind_tools import BindTools
from zonemgr.services.config_audit import model_to_dict, record_change
from zonemgr.services.validators import validate_server_input
from zonemgr.services.zone_rebuild import rebuild_ns_and_glue

log = logging.getLogger(__name__)

LOCAL_API_IP = "127.0.0.1"
SECRET_FIELDS = {"api_token"}


def _clean(payload: dict[str, Any]) -> dict[str, Any]:
    is_local = bool(payload.get("is_local"))
    dns_ip4 = (payload.get("dns_ip4") or "").strip() or None
    dns_ip6 = (payload.get("dns_ip6") or "").strip() or None
    return {
        "name": str(payload.get("name") or "").strip().rstrip("."),
        "dns_ip4": dns_ip4,
        "dns_ip6": dns_ip6,
        "api_ip": LOCAL_API_IP if is_local else (payload.get("api_ip") or "").strip(),
        "api_token": (payload.get("api_token") or "").strip() or None,
        "is_local": is_local,
        "active": bool(payload.get("active", True)),
    }


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    query = db.query(Server).filter(Server.name == name)
    if exclude_id is not None:
        query = query.filter(Server.id != exclude_id)
    return query.first() is not None


def is_master_anywhere(db: Session, server_id: int) -> bool:
    return (
        db.query(ZoneServer)
        .filter(ZoneServer.server_id == server_id, ZoneServer.is_master.is_(True))
        .first()
        is not None
    )


def create_server(db: Session, payload: dict[str, Any], actor: str | None = None) -> ActionResult:
    errors = validate_server_input(payload)
    data = _clean(payload)
    if data["is_local"] and db.query(Server).filter(Server.is_local.is_(True)).first():
        errors.append("A local server already exists.")
    if data["name"] and _name_taken(db, data["name"]):
        errors.append(f"Server {data['name']} already exists.")
    if errors:
        log.info(f"Rejected server {data['name']!r}: {'; '.join(errors)}")
        return rejected(errors[0], "ERR_SERVER_INPUT", errors=errors)

    try:
        server = Server(**data)
        db.add(server)
        db.flush()
        record_change(
            db,
            entity_type="server",
            entity_id=server.id,
            action="create",
            actor=actor,
            after_data=model_to_dict(server, exclude=SECRET_FIELDS),
        )
        db.commit()
    except Exception as e:
        db.rollback()
        log.exception(f"Creating server {data['name']} failed")
        return failed(f"Creating server {data['name']} failed: {e}")

    log.info(f"Created server {server.name} (local: {server.is_local})")
    return ActionResult("success", f"Server {server.name} created.", data={"id": server.id})


def update_server(
    db: Session,
    server_id: int,
    payload: dict[str, Any],
    tools: BindTools | None = None,
    actor: str | None = None,
) -> ActionResult:
    server = db.get(Server, server_id)
    if server is None:
        return not_found(f"Server {server_id} not found.")

    errors = validate_server_input(payload)
    data = _clean(payload)
    if data["name"] and _name_taken(db, data["name"], exclude_id=server.id):
        errors.append(f"Server {data['name']} already exists.")
    if errors:
        return rejected(errors[0], "ERR_SERVER_INPUT", errors=errors)

    if not data["active"] and is_master_anywhere(db, server.id):
        log.warning(f"Refused to deactivate {server.name}: master of at least one zone")
        return rejected(
            "The server is the master of at least one zone and cannot be deactivated.",
            "ERR_SERVER_IS_MASTER",
        )

    identity_changed = (server.name, server.dns_ip4, server.dns_ip6) != (
        data["name"],
        data["dns_ip4"],
        data["dns_ip6"],
    )
    before = model_to_dict(server, exclude=SECRET_FIELDS)
    try:
        if data["is_local"]:
            for other in db.query(Server).filter(Server.is_local.is_(True), Server.id != server.id):
                other.is_local = False
        for key, value in data.items():
            setattr(server, key, value)
        record_change(
            db,
            entity_type="server",
            entity_id=server.id,
            action="update",
            actor=actor,
            before_data=before,
            after_data=model_to_dict(server, exclude=SECRET_FIELDS),
        )
        db.commit()
    except Exception as e:
        db.rollback()
        log.exception(f"Updating server {server_id} failed")
        return failed(f"Updating server {server_id} failed: {e}")

    if not identity_changed:
        return ActionResult("success", f"Server {server.name} updated.")

    # Each zone gets its own transaction; one broken zone does not block the rest.
    zone_ids = [
        zid for (zid,) in db.query(ZoneServer.zone_id).filter(ZoneServer.server_id == server.id)
    ]
    problems: list[str] = []
    warnings: list[str] = []
    for zone_id in zone_ids:
        try:
            check = rebuild_ns_and_glue(db, zone_id, tools)
            if check.status == "error":
                db.rollback()
                problems.append(f"Zone {zone_id}: {check.output}")
                continue
            if check.status == "warning":
                warnings.append(f"Zone {zone_id}: {check.output}")
            db.commit()
        except Exception as e:
            db.rollback()
            log.exception(f"NS/glue rebuild of zone {zone_id} failed")
            problems.append(f"Zone {zone_id}: {e}")

    log.info(f"Updated server {server.name}; rebuilt NS/glue in {len(zone_ids)} zone(s)")
    if problems:
        return ActionResult(
            "warning",
            f"Server {server.name} updated, but some zones could not be rebuilt.",
            output="\n".join(problems + warnings),
            data={"zones": zone_ids},
        )
    return ActionResult(
        "warning" if warnings else "success",
        f"Server {server.name} updated.",
        output="\n".join(warnings),
        data={"zones": zone_ids},
    )


def delete_server(db: Session, server_id: int, actor: str | None = None) -> ActionResult:
    server = db.get(Server, server_id)
    if server is None:
        return not_found(f"Server {server_id} not found.")

    assigned = db.query(ZoneServer).filter(ZoneServer.server_id == server.id).count()
    if assigned:
        return rejected(
            f"Server {server.name} is still assigned to {assigned} zone(s).", "ERR_SERVER_IN_USE"
        )

    name = server.name
    try:
        db.execute(delete(Diagnostic).where(Diagnostic.server_id == server.id))
        db.execute(delete(DiagnosticLog).where(DiagnosticLog.server_id == server.id))
        record_change(
            db,
            entity_type="server",
            entity_id=server.id,
            action="delete",
            actor=actor,
            before_data=model_to_dict(server, exclude=SECRET_FIELDS),
        )
        db.delete(server)
        db.commit()
    except Exception as e:
        db.rollback()
        log.exception(f"Deleting server {name} failed")
        return failed(f"Deleting server {name} failed: {e}")

    log.info(f"Deleted server {name}")
    return ActionResult("success", f"Server {name} deleted.")
