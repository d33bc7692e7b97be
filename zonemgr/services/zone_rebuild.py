from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass

from sqlalchemy.orm import Session

from zonemgr.models.record import Record
from zonemgr.models.server import Server
from zonemgr.models.zone import Zone
from zonemgr.models.zone_server import ZoneServer
from zonemgr.services.bind_tools import BindTools, classify_zone_output, get_bind_tools
from zonemgr.services.pending import mark_zone_changed
from zonemgr.services.zonefile import ZoneFile, synthesize, zone_file_name
from zonemgr.settings import get_settings

log = logging.getLogger(__name__)

OWNED_TYPES = ("NS", "A", "AAAA")


@dataclass
class CheckResult:
    status: str
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "error"


def write_scratch(zone_name: str, text: str) -> str:
    scratch_dir = get_settings().scratch_dir
    os.makedirs(scratch_dir, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix=f"{zone_file_name(zone_name)}.", dir=scratch_dir)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(text)
    return path


def remove_scratch(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def zone_records(db: Session, zone_id: int) -> list[Record]:
    return db.query(Record).filter(Record.zone_id == zone_id).all()


def check_zone_text(zone: Zone, zone_file: ZoneFile, tools: BindTools) -> CheckResult:
    path = write_scratch(zone.name, zone_file.text)
    try:
        result = tools.check_zone(zone.name, path)
    finally:
        remove_scratch(path)
    output = result.output.strip()
    return CheckResult(status=classify_zone_output(output), output=output)


def rebuild_and_flag_if_valid(
    db: Session, zone_id: int, tools: BindTools | None = None
) -> CheckResult:
    """Render and check the zone; mark it pending only if the file is valid.

    Runs inside the caller's transaction and never commits. On error the
    session is left untouched so the caller can roll back its own write.
    """
    tools = tools or get_bind_tools()
    db.flush()

    zone = db.get(Zone, zone_id)
    if zone is None:
        return CheckResult(status="error", output=f"Zone {zone_id} not found.")

    zone_file = synthesize(zone, zone_records(db, zone.id), purpose="validate")
    result = check_zone_text(zone, zone_file, tools)

    if result.status == "error":
        log.warning(f"Zone {zone.name} failed validation: {result.output}")
        return result

    mark_zone_changed(db, zone)
    if result.status == "warning":
        log.info(f"Zone {zone.name} validated with warnings")
    return result


def assigned_servers(db: Session, zone_id: int) -> list[Server]:
    return (
        db.query(Server)
        .join(ZoneServer, ZoneServer.server_id == Server.id)
        .filter(ZoneServer.zone_id == zone_id)
        .order_by(Server.name)
        .all()
    )


def rebuild_ns_and_glue(db: Session, zone_id: int, tools: BindTools | None = None) -> CheckResult:
    """Regenerate the NS and glue records owned by the zone's server assignment.

    TTLs of the previous generated rows are kept, so re-running with the
    same servers produces the same records.
    """
    settings = get_settings()
    db.flush()

    zone = db.get(Zone, zone_id)
    if zone is None:
        return CheckResult(status="error", output=f"Zone {zone_id} not found.")

    servers = assigned_servers(db, zone.id)
    if not servers:
        return CheckResult(status="error", output=f"No servers assigned to zone {zone.name}.")

    owned = (
        db.query(Record)
        .filter(
            Record.zone_id == zone.id,
            Record.server_id.isnot(None),
            Record.type.in_(OWNED_TYPES),
        )
        .all()
    )
    ttls: dict[tuple[str, str], int | None] = {}
    for r in owned:
        key = (r.type, "@" if r.type == "NS" else r.name.lower())
        ttls.setdefault(key, r.ttl)
        db.delete(r)
    db.flush()

    ns_ttl = ttls.get(("NS", "@"))
    zone_suffix = f".{zone.name.rstrip('.').lower()}."
    for server in servers:
        fqdn = server.name.rstrip(".") + "."
        db.add(
            Record(
                zone_id=zone.id,
                name="@",
                type="NS",
                content=fqdn,
                ttl=ns_ttl if ns_ttl is not None else settings.default_ns_ttl,
                server_id=server.id,
            )
        )

        if zone.is_reverse or not fqdn.lower().endswith(zone_suffix):
            continue

        host = fqdn[: -len(zone_suffix)]
        for rtype, ip in (("A", server.dns_ip4), ("AAAA", server.dns_ip6)):
            if not ip:
                continue
            ttl = ttls.get((rtype, host.lower()))
            db.add(
                Record(
                    zone_id=zone.id,
                    name=host,
                    type=rtype,
                    content=ip,
                    ttl=ttl if ttl is not None else settings.default_glue_ttl,
                    server_id=server.id,
                )
            )

    db.flush()
    log.info(f"Rebuilt NS/glue for zone {zone.name} from {len(servers)} server(s)")
    return rebuild_and_flag_if_valid(db, zone.id, tools)
