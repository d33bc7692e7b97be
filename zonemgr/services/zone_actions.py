from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete
from sqlalchemy.orm import Session

from zonemgr.models.diagnostic import Diagnostic
from zonemgr.models.dyndns_account import DynDnsAccount
from zonemgr.models.server import Server
from zonemgr.models.zone import Zone
from zonemgr.models.zone_server import ZoneServer
from zonemgr.services.action_result import ActionResult, failed, invalid_zone, not_found, rejected
from zonemgr.services.bind_tools import BindTools
from zonemgr.services.config_audit import model_to_dict, record_change
from zonemgr.services.pending import request_full_rebuild
from zonemgr.services.publish import forget_zone_lock
from zonemgr.services.soa_serial import initial_serial
from zonemgr.services.validators import validate_zone_input, zone_name_from_input
from zonemgr.services.zone_rebuild import rebuild_and_flag_if_valid, rebuild_ns_and_glue
from zonemgr.settings import get_settings

log = logging.getLogger(__name__)

SOA_FIELDS = ("soa_refresh", "soa_retry", "soa_expire", "soa_minimum")


def soa_ns_for(zone_name: str, zone_type: str, master_name: str, soa_domain: str = "") -> str:
    """SOA primary name server derived from the master server.

    A dotted master name is already fully qualified and is used as is. A bare
    host label gets ``soa_domain`` appended for reverse zones and the zone
    name for forward zones.
    """
    master = master_name.rstrip(".")
    base = soa_domain if zone_type == "reverse" else zone_name
    base = base.rstrip(".")
    if not base or "." in master:
        return f"{master}."
    return f"{master}.{base}."


def _server_selection(
    db: Session, payload: dict[str, Any]
) -> tuple[list[Server], Server | None, str | None]:
    raw_ids = payload.get("server_ids") or []
    try:
        server_ids = sorted({int(sid) for sid in raw_ids})
        master_id = int(payload.get("master_server_id") or 0)
    except (TypeError, ValueError):
        return [], None, "Invalid server selection."

    if not server_ids:
        return [], None, "At least one server must be selected."
    if master_id not in server_ids:
        return [], None, "The master server must be one of the selected servers."

    servers = db.query(Server).filter(Server.id.in_(server_ids)).all()
    if len(servers) != len(server_ids):
        return [], None, "One of the selected servers does not exist."

    master = next(s for s in servers if s.id == master_id)
    return servers, master, None


def _assign_servers(db: Session, zone: Zone, servers: list[Server], master: Server) -> None:
    zone.assignments.clear()
    db.flush()
    for server in servers:
        zone.assignments.append(
            ZoneServer(zone_id=zone.id, server_id=server.id, is_master=server.id == master.id)
        )
    db.flush()


def _soa_mail(value: Any) -> str:
    return str(value or "").strip().rstrip(".") + "."


def create_zone(
    db: Session,
    payload: dict[str, Any],
    tools: BindTools | None = None,
    actor: str | None = None,
) -> ActionResult:
    try:
        errors = validate_zone_input(payload)
    except (TypeError, ValueError):
        errors = ["Numeric fields must be whole numbers."]
    if errors:
        log.info(f"Rejected zone: {'; '.join(errors)}")
        return rejected(errors[0], "ERR_ZONE_INPUT", errors=errors)

    name, zone_type = zone_name_from_input(payload)
    if db.query(Zone).filter(Zone.name == name).first() is not None:
        return rejected(f"Zone {name} already exists.", "ERR_ZONE_EXISTS")

    servers, master, problem = _server_selection(db, payload)
    if problem:
        return rejected(problem, "ERR_ZONE_SERVERS")

    ttl = payload.get("ttl")
    try:
        zone = Zone(
            name=name,
            type=zone_type,
            ttl=int(ttl) if ttl not in (None, "") else get_settings().default_zone_ttl,
            prefix_length=int(payload["prefix_length"]) if zone_type == "reverse" else None,
            description=(payload.get("description") or "").strip() or None,
            soa_ns=soa_ns_for(name, zone_type, master.name, payload.get("soa_domain") or ""),
            soa_mail=_soa_mail(payload.get("soa_mail")),
            soa_serial=initial_serial(),
            allow_dyndns=bool(payload.get("allow_dyndns")),
            **{f: int(payload[f]) for f in SOA_FIELDS},
        )
        db.add(zone)
        db.flush()

        _assign_servers(db, zone, servers, master)

        check = rebuild_ns_and_glue(db, zone.id, tools)
        if check.status == "error":
            db.rollback()
            return invalid_zone(f"Zone {name} was not created: the zone file is invalid.", check.output)

        record_change(
            db,
            entity_type="zone",
            entity_id=zone.id,
            action="create",
            actor=actor,
            after_data=model_to_dict(zone),
        )
        db.commit()
    except Exception as e:
        db.rollback()
        log.exception(f"Creating zone {name} failed")
        return failed(f"Creating zone {name} failed: {e}")

    log.info(f"Created zone {name} ({zone_type}) on {len(servers)} server(s)")
    return ActionResult(
        "warning" if check.status == "warning" else "success",
        f"Zone {name} created.",
        output=check.output,
        data={"id": zone.id},
    )


def update_zone(
    db: Session,
    zone_id: int,
    payload: dict[str, Any],
    tools: BindTools | None = None,
    actor: str | None = None,
) -> ActionResult:
    zone = db.get(Zone, zone_id)
    if zone is None:
        return not_found(f"Zone {zone_id} not found.")

    merged = {
        "ttl": zone.ttl,
        "soa_mail": zone.soa_mail,
        **{f: getattr(zone, f) for f in SOA_FIELDS},
        **{k: v for k, v in payload.items() if v is not None},
    }
    try:
        errors = validate_zone_input(merged, require_name=False)
        if zone.is_reverse and "prefix_length" in payload:
            prefix_length = int(payload["prefix_length"])
            if prefix_length < 8 or prefix_length > 128:
                errors.append("Prefix length of reverse zones must be between 8 and 128.")
    except (TypeError, ValueError):
        errors = ["Numeric fields must be whole numbers."]
    if errors:
        return rejected(errors[0], "ERR_ZONE_INPUT", errors=errors)

    assignment_changed = False
    servers: list[Server] = []
    master: Server | None = None
    if "server_ids" in payload:
        servers, master, problem = _server_selection(db, payload)
        if problem:
            return rejected(problem, "ERR_ZONE_SERVERS")
        old = sorted((a.server_id, a.is_master) for a in zone.assignments)
        new = sorted((s.id, s.id == master.id) for s in servers)
        assignment_changed = old != new

    before = model_to_dict(zone)
    try:
        zone.ttl = int(merged["ttl"])
        zone.soa_mail = _soa_mail(merged["soa_mail"])
        for f in SOA_FIELDS:
            setattr(zone, f, int(merged[f]))
        if zone.is_reverse and "prefix_length" in payload:
            zone.prefix_length = int(payload["prefix_length"])
        if "description" in payload:
            zone.description = (payload.get("description") or "").strip() or None
        if "allow_dyndns" in payload:
            zone.allow_dyndns = bool(payload["allow_dyndns"])
        if zone.is_reverse and payload.get("soa_ns"):
            zone.soa_ns = str(payload["soa_ns"]).strip().rstrip(".") + "."

        if assignment_changed:
            _assign_servers(db, zone, servers, master)
            if not zone.is_reverse:
                zone.soa_ns = soa_ns_for(zone.name, zone.type, master.name)
            check = rebuild_ns_and_glue(db, zone.id, tools)
        else:
            check = rebuild_and_flag_if_valid(db, zone.id, tools)

        if check.status == "error":
            db.rollback()
            return invalid_zone(
                f"Zone {zone_id} was not changed: the zone file would be invalid.", check.output
            )

        record_change(
            db,
            entity_type="zone",
            entity_id=zone.id,
            action="update",
            actor=actor,
            before_data=before,
            after_data=model_to_dict(zone),
        )
        db.commit()
    except Exception as e:
        db.rollback()
        log.exception(f"Updating zone {zone_id} failed")
        return failed(f"Updating zone {zone_id} failed: {e}")

    log.info(f"Updated zone {zone.name} (servers changed: {assignment_changed})")
    return ActionResult(
        "warning" if check.status == "warning" else "success",
        f"Zone {zone.name} updated.",
        output=check.output,
        data={"id": zone.id},
    )


def rebuild_zone(db: Session, zone_id: int, tools: BindTools | None = None) -> ActionResult:
    """Regenerate NS/glue and re-check the zone without other changes."""
    zone = db.get(Zone, zone_id)
    if zone is None:
        return not_found(f"Zone {zone_id} not found.")
    try:
        check = rebuild_ns_and_glue(db, zone.id, tools)
        if check.status == "error":
            db.rollback()
            return invalid_zone(f"Zone {zone.name} is invalid.", check.output)
        db.commit()
    except Exception as e:
        db.rollback()
        log.exception(f"Rebuilding zone {zone_id} failed")
        return failed(f"Rebuilding zone {zone_id} failed: {e}")
    return ActionResult(
        "warning" if check.status == "warning" else "success",
        f"Zone {zone.name} rebuilt.",
        output=check.output,
    )


def delete_zone(db: Session, zone_id: int, actor: str | None = None) -> ActionResult:
    zone = db.get(Zone, zone_id)
    if zone is None:
        return not_found(f"Zone {zone_id} not found.")

    name = zone.name
    try:
        record_change(
            db,
            entity_type="zone",
            entity_id=zone.id,
            action="delete",
            actor=actor,
            before_data=model_to_dict(zone),
        )
        db.execute(delete(DynDnsAccount).where(DynDnsAccount.zone_id == zone.id))
        db.execute(
            delete(Diagnostic).where(
                Diagnostic.target_type == "zone", Diagnostic.target_id == zone.id
            )
        )
        db.delete(zone)
        db.flush()
        request_full_rebuild(db)
        db.commit()
    except Exception as e:
        db.rollback()
        log.exception(f"Deleting zone {name} failed")
        return failed(f"Deleting zone {name} failed: {e}")

    forget_zone_lock(zone_id)
    log.info(f"Deleted zone {name}; full rebuild requested")
    return ActionResult("success", f"Zone {name} deleted.")
