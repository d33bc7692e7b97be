from __future__ import annotations

import ipaddress
import logging
from typing import Any

from sqlalchemy.orm import Session

from zonemgr.models.record import Record
from zonemgr.models.zone import Zone
from zonemgr.services.action_result import ActionResult, failed, invalid_zone, not_found, rejected
from zonemgr.services.bind_tools import BindTools
from zonemgr.services.config_audit import model_to_dict, record_change
from zonemgr.services.glue import is_glue_record, is_protected_ns, record_fqdn
from zonemgr.services.pending import request_full_rebuild
from zonemgr.services.record_types import (
    RecordInputError,
    auto_ttl,
    error_message,
    get_record_type,
    variant_for,
)
from zonemgr.services.zone_rebuild import rebuild_and_flag_if_valid

log = logging.getLogger(__name__)

DEFAULT_RECORD_TTL = 3600

# Form fields that mean "build the content from parts" instead of raw content
BUILDER_FIELDS = (
    "mx_priority",
    "srv_priority",
    "srv_target",
    "dkim_selector",
    "dkim_key",
    "dkim_file",
    "naptr_order",
)

extra_messages = {
    "ERR_INVALID_TTL": "TTL must be a number or 'auto'.",
    "ERR_DUPLICATE_RECORD": "An identical record already exists.",
    "ERR_GLUE_PROTECTED": "Glue records are managed by the zone's server assignment.",
    "ERR_NS_PROTECTED": "This NS record is managed by the zone's server assignment.",
}


def _message(code: str) -> str:
    return extra_messages.get(code) or error_message(code)


def resolve_ttl(value: Any, record_type: str) -> int:
    if value is None or value == "":
        return DEFAULT_RECORD_TTL
    if str(value).strip().lower() == "auto":
        return auto_ttl(record_type)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RecordInputError("ERR_INVALID_TTL", _message("ERR_INVALID_TTL"))


def is_duplicate_record(
    db: Session,
    zone_id: int,
    name: str,
    record_type: str,
    content: str,
    exclude_id: int | None = None,
) -> bool:
    query = db.query(Record).filter(
        Record.zone_id == zone_id,
        Record.name == name,
        Record.type == record_type.upper(),
        Record.content == content,
    )
    if exclude_id is not None:
        query = query.filter(Record.id != exclude_id)
    return query.first() is not None


def ptr_location(record_type: str, ip: str) -> tuple[str, str] | None:
    """Reverse zone name and PTR label for an address, e.g. ``("2.0.192.in-addr.arpa", "10")``."""
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return None

    if record_type == "A" and addr.version == 4:
        parts = ip.split(".")
        return f"{parts[2]}.{parts[1]}.{parts[0]}.in-addr.arpa", parts[3]
    if record_type == "AAAA" and addr.version == 6:
        nibbles = addr.exploded.replace(":", "")[::-1]
        return ".".join(nibbles[1:]) + ".ip6.arpa", nibbles[0]
    return None


def create_auto_ptr(
    db: Session,
    zone: Zone,
    record_type: str,
    ip: str,
    name: str,
    ttl: int,
    tools: BindTools | None = None,
) -> ActionResult:
    location = ptr_location(record_type, ip)
    if location is None:
        return rejected(f"No PTR record possible for {record_type} {ip}.", "ERR_PTR_ADDRESS")

    ptr_zone_name, ptr_name = location
    ptr_zone = (
        db.query(Zone).filter(Zone.name == ptr_zone_name, Zone.type == "reverse").one_or_none()
    )
    if ptr_zone is None:
        log.info(f"Auto-PTR skipped: no reverse zone {ptr_zone_name} for {ip}")
        return rejected(f"Reverse zone {ptr_zone_name} does not exist.", "ERR_PTR_NO_ZONE")

    exists = (
        db.query(Record)
        .filter(Record.zone_id == ptr_zone.id, Record.name == ptr_name, Record.type == "PTR")
        .first()
    )
    if exists is not None:
        return rejected(
            f"A PTR record for {ptr_name} already exists in {ptr_zone_name}.", "ERR_PTR_DUPLICATE"
        )

    hostname = record_fqdn(name, zone.name) + "."
    try:
        db.add(Record(zone_id=ptr_zone.id, name=ptr_name, type="PTR", content=hostname, ttl=ttl))
        db.flush()
        check = rebuild_and_flag_if_valid(db, ptr_zone.id, tools)
        if check.status == "error":
            db.rollback()
            return invalid_zone(f"PTR record in {ptr_zone_name} would make the zone invalid.", check.output)
        request_full_rebuild(db)
        db.commit()
    except Exception as e:
        db.rollback()
        log.error(f"Auto-PTR {ptr_name}.{ptr_zone_name} failed: {e}")
        return failed("Creating the PTR record failed.")

    log.info(f"Auto-PTR {ptr_name}.{ptr_zone_name} -> {hostname}")
    return ActionResult("success", f"PTR {ptr_name}.{ptr_zone_name} created.", output=check.output)


def add_record(
    db: Session,
    zone_id: int,
    payload: dict[str, Any],
    tools: BindTools | None = None,
    actor: str | None = None,
) -> ActionResult:
    zone = db.get(Zone, zone_id)
    if zone is None:
        return not_found(f"Zone {zone_id} not found.")

    raw_type = str(payload.get("type") or "").upper()
    if raw_type == "TXT" and payload.get("is_dkim"):
        raw_type = "DKIM"

    try:
        variant = get_record_type(raw_type)
        built = variant.build(payload)
        ttl = resolve_ttl(payload.get("ttl"), variant.code)
    except RecordInputError as e:
        return rejected(str(e), e.code)

    codes = variant.validate(built.name, built.content, ttl)
    if codes:
        log.info(f"Rejected {raw_type} {built.name} in {zone.name}: {', '.join(codes)}")
        return rejected(_message(codes[0]), codes[0], errors=codes)

    if is_duplicate_record(db, zone.id, built.name, built.type, built.content):
        return rejected(_message("ERR_DUPLICATE_RECORD"), "ERR_DUPLICATE_RECORD")

    try:
        record = Record(
            zone_id=zone.id, name=built.name, type=built.type, content=built.content, ttl=ttl
        )
        db.add(record)
        db.flush()

        check = rebuild_and_flag_if_valid(db, zone.id, tools)
        if check.status == "error":
            db.rollback()
            return invalid_zone(
                "The record was not saved because the zone file would be invalid.", check.output
            )

        record_change(
            db,
            entity_type="record",
            entity_id=record.id,
            action="create",
            actor=actor,
            after_data=model_to_dict(record),
        )
        db.commit()
    except Exception as e:
        db.rollback()
        log.error(f"Saving {built.type} {built.name} in zone {zone_id} failed: {e}")
        return failed("Saving the record failed.")

    log.info(f"Added {built.type} {built.name} to zone {zone.name}")
    result = ActionResult(
        "warning" if check.status == "warning" else "success",
        f"Record {built.type} {built.name} added to {zone.name}.",
        output=check.output,
        data={"id": record.id},
    )

    if built.type in ("A", "AAAA") and payload.get("auto_ptr"):
        ptr = create_auto_ptr(db, zone, built.type, built.content, built.name, ttl, tools)
        result.data["ptr"] = ptr.to_dict()
        if not ptr.ok:
            result.status = "warning"
    return result


def _build_update(record: Record, payload: dict[str, Any]) -> tuple[str, str, str]:
    new_type = str(payload.get("type") or record.type).upper()
    if any(payload.get(f) not in (None, "") for f in BUILDER_FIELDS):
        fields = {"name": record.name, **payload}
        variant = get_record_type("DKIM" if payload.get("dkim_selector") or payload.get("dkim_file") else new_type)
        built = variant.build(fields)
        return built.name, built.type, built.content

    name = payload.get("name")
    name = record.name if name is None else (str(name).strip() or "@")
    content = payload.get("content")
    content = record.content if content is None else str(content).strip()
    if new_type == "SPF":
        new_type = "TXT"
    return name, new_type, content


def update_record(
    db: Session,
    record_id: int,
    payload: dict[str, Any],
    tools: BindTools | None = None,
    actor: str | None = None,
) -> ActionResult:
    record = db.get(Record, record_id)
    if record is None:
        return not_found(f"Record {record_id} not found.")

    try:
        name, new_type, content = _build_update(record, payload)
        ttl = record.ttl
        if "ttl" in payload and payload["ttl"] is not None:
            ttl = resolve_ttl(payload["ttl"], new_type)
        variant = variant_for(new_type, content)
    except RecordInputError as e:
        return rejected(str(e), e.code)

    identity_changed = (name, new_type, content) != (record.name, record.type, record.content)
    if identity_changed and is_glue_record(db, record):
        log.warning(f"Refused edit of glue record {record.name} ({record.id})")
        return rejected(_message("ERR_GLUE_PROTECTED"), "ERR_GLUE_PROTECTED")
    if identity_changed and is_protected_ns(db, record):
        log.warning(f"Refused edit of protected NS {record.content} ({record.id})")
        return rejected(_message("ERR_NS_PROTECTED"), "ERR_NS_PROTECTED")

    codes = variant.validate(name, content, ttl)
    if codes:
        return rejected(_message(codes[0]), codes[0], errors=codes)

    if identity_changed and is_duplicate_record(db, record.zone_id, name, new_type, content, record.id):
        return rejected(_message("ERR_DUPLICATE_RECORD"), "ERR_DUPLICATE_RECORD")

    before = model_to_dict(record)
    try:
        record.name = name
        record.type = new_type
        record.content = content
        record.ttl = ttl
        db.flush()

        check = rebuild_and_flag_if_valid(db, record.zone_id, tools)
        if check.status == "error":
            db.rollback()
            return invalid_zone(
                "The change was not saved because the zone file would be invalid.", check.output
            )

        record_change(
            db,
            entity_type="record",
            entity_id=record.id,
            action="update",
            actor=actor,
            before_data=before,
            after_data=model_to_dict(record),
        )
        db.commit()
    except Exception as e:
        db.rollback()
        log.error(f"Updating record {record_id} failed: {e}")
        return failed("Updating the record failed.")

    return ActionResult(
        "warning" if check.status == "warning" else "success",
        f"Record {new_type} {name} updated.",
        output=check.output,
        data={"id": record.id},
    )


def delete_records(
    db: Session,
    record_ids: list[int],
    tools: BindTools | None = None,
    actor: str | None = None,
) -> ActionResult:
    records = db.query(Record).filter(Record.id.in_(record_ids)).all() if record_ids else []
    if not records:
        return not_found("No matching records found.")

    for r in records:
        if is_glue_record(db, r):
            return rejected(
                f"{_message('ERR_GLUE_PROTECTED')} ({r.type} {r.name})", "ERR_GLUE_PROTECTED"
            )
        if is_protected_ns(db, r):
            return rejected(
                f"{_message('ERR_NS_PROTECTED')} ({r.content})", "ERR_NS_PROTECTED"
            )

    zone_ids = sorted({r.zone_id for r in records})
    outputs = []
    warning = False
    try:
        for r in records:
            record_change(
                db,
                entity_type="record",
                entity_id=r.id,
                action="delete",
                actor=actor,
                before_data=model_to_dict(r),
            )
            db.delete(r)
        db.flush()

        for zone_id in zone_ids:
            check = rebuild_and_flag_if_valid(db, zone_id, tools)
            if check.status == "error":
                db.rollback()
                return invalid_zone(
                    "The records were not deleted because the zone file would be invalid.",
                    check.output,
                )
            warning = warning or check.status == "warning"
            outputs.append(check.output)
        db.commit()
    except Exception as e:
        db.rollback()
        log.error(f"Deleting records {record_ids} failed: {e}")
        return failed("Deleting the records failed.")

    log.info(f"Deleted {len(records)} record(s) from {len(zone_ids)} zone(s)")
    return ActionResult(
        "warning" if warning else "success",
        f"{len(records)} record(s) deleted.",
        output="\n".join(o for o in outputs if o),
        data={"deleted": len(records)},
    )
