from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from zonemgr.models.server import Server
from zonemgr.models.zone import Zone
from zonemgr.models.zone_server import ZoneServer
from zonemgr.services.targets import TargetFactory, TargetResult, target_for
from zonemgr.services.zonefile import render_zone_conf, zone_file_path
from zonemgr.settings import get_settings

log = logging.getLogger(__name__)


@dataclass
class DistributionResult:
    status: str = "ok"
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    output: str = ""


def _finish(errors: list[str], warnings: list[str], outputs: list[str]) -> DistributionResult:
    status = "error" if errors else ("warning" if warnings else "ok")
    return DistributionResult(status, errors, warnings, "\n".join(o for o in outputs if o))


def active_servers_for_zone(db: Session, zone_id: int) -> list[Server]:
    return (
        db.query(Server)
        .join(ZoneServer, ZoneServer.server_id == Server.id)
        .filter(ZoneServer.zone_id == zone_id, Server.active.is_(True))
        .order_by(Server.name)
        .all()
    )


def valid_zones_for(db: Session, server: Server) -> list[str]:
    """Every zone the server should keep; anything else is pruned on it."""
    rows = (
        db.query(Zone.name)
        .join(ZoneServer, ZoneServer.zone_id == Zone.id)
        .filter(ZoneServer.server_id == server.id)
        .order_by(Zone.name)
        .all()
    )
    return [name for (name,) in rows]


def _attempt(server: Server, method, *args) -> TargetResult:
    try:
        return method(*args)
    except Exception as e:
        log.exception(f"Delivery to {server.name} failed unexpectedly")
        return TargetResult("error", str(e))


def _collect(server: Server, result: TargetResult, errors, warnings, outputs) -> None:
    if result.status == "error":
        errors.append(f"{server.name}: {result.message}")
    elif result.status == "warning":
        warnings.append(f"{server.name}: {result.output or result.message}")
    outputs.append(f"[{server.name}] {result.output or result.message}".rstrip())


def distribute_zone_file(
    db: Session,
    zone_id: int,
    source_path: str,
    target_factory: TargetFactory | None = None,
) -> DistributionResult:
    """Push a validated zone file to every active server of the zone.

    A failing server never stops delivery to the others; all failures are
    reported, prefixed with the server name.
    """
    factory = target_factory or target_for

    zone = db.get(Zone, zone_id)
    if zone is None:
        msg = f"Zone {zone_id} not found."
        return DistributionResult("error", [msg], [], msg)

    servers = active_servers_for_zone(db, zone.id)
    if not servers:
        msg = f"No active servers for zone {zone.name}."
        log.warning(msg)
        return DistributionResult("error", [msg], [], msg)

    try:
        with open(source_path, encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        msg = f"Zone file {source_path} could not be read: {e}"
        log.error(msg)
        return DistributionResult("error", [msg], [], msg)

    errors: list[str] = []
    warnings: list[str] = []
    outputs: list[str] = []
    for server in servers:
        target = factory(server)
        result = _attempt(
            server,
            target.write_zone_file,
            zone.id,
            zone.name,
            content,
            valid_zones_for(db, server),
        )
        _collect(server, result, errors, warnings, outputs)

    summary = _finish(errors, warnings, outputs)
    log.info(f"Distributed zone {zone.name} to {len(servers)} server(s): {summary.status}")
    return summary


def distribute_zone_conf_file(
    db: Session,
    zone_name: str,
    target_factory: TargetFactory | None = None,
) -> DistributionResult:
    factory = target_factory or target_for

    zone = db.query(Zone).filter(Zone.name == zone_name).one_or_none()
    if zone is None:
        msg = f"Zone {zone_name} not found."
        return DistributionResult("error", [msg], [], msg)

    servers = active_servers_for_zone(db, zone.id)
    if not servers:
        msg = f"No active servers for zone {zone.name}."
        return DistributionResult("error", [msg], [], msg)

    conf = render_zone_conf(zone.name, zone_file_path(get_settings().zone_data_dir, zone.name))

    errors: list[str] = []
    warnings: list[str] = []
    outputs: list[str] = []
    for server in servers:
        target = factory(server)
        result = _attempt(
            server, target.write_conf_file, zone.name, conf, valid_zones_for(db, server)
        )
        _collect(server, result, errors, warnings, outputs)

    return _finish(errors, warnings, outputs)
