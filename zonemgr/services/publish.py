from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from zonemgr.models.publish_state import PendingZone
from zonemgr.models.server import Server
from zonemgr.models.zone import Zone
from zonemgr.services.bind_tools import BindTools, classify_zone_output, get_bind_tools
from zonemgr.services.distribution import distribute_zone_conf_file, distribute_zone_file
from zonemgr.services.pending import clear_pending, get_publish_state
from zonemgr.services.targets import TargetFactory, TargetResult, target_for
from zonemgr.services.zone_rebuild import CheckResult, remove_scratch, write_scratch, zone_records
from zonemgr.services.zonefile import synthesize

log = logging.getLogger(__name__)

_zone_locks: dict[int, threading.Lock] = {}
_zone_locks_guard = threading.Lock()


def _zone_lock(zone_id: int) -> threading.Lock:
    with _zone_locks_guard:
        lock = _zone_locks.get(zone_id)
        if lock is None:
            lock = _zone_locks[zone_id] = threading.Lock()
        return lock


def forget_zone_lock(zone_id: int) -> None:
    """Drop the publish lock of a deleted zone."""
    with _zone_locks_guard:
        _zone_locks.pop(zone_id, None)


@dataclass
class PublishResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    published: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.errors:
            return "error"
        return "warning" if self.warnings else "ok"


def _publish_zone(
    db: Session,
    zone: Zone,
    tools: BindTools,
    target_factory: TargetFactory | None,
    result: PublishResult,
    *,
    commit: bool = True,
) -> bool:
    name = zone.name
    zone_file = synthesize(zone, zone_records(db, zone.id), purpose="publish")
    path = write_scratch(name, zone_file.text)
    try:
        check = tools.check_zone(name, path)
        output = check.output.strip()
        status = classify_zone_output(output)
        if status == "error":
            log.warning(f"Publish: zone {name} failed validation, skipping")
            result.errors.append(f"Zone {name}: {output or 'named-checkzone produced no output'}")
            return False
        if status == "warning":
            result.warnings.append(f"Zone {name}: {output}")

        # The serial is kept even if a server rejects the file, so the next
        # attempt still moves forward.
        zone.soa_serial = zone_file.serial
        if commit:
            db.commit()
        else:
            db.flush()

        dist = distribute_zone_file(db, zone.id, path, target_factory)
        conf = distribute_zone_conf_file(db, name, target_factory)
    finally:
        remove_scratch(path)

    for summary in (dist, conf):
        result.errors.extend(f"Zone {name}: {e}" for e in summary.errors)
        result.warnings.extend(f"Zone {name}: {w}" for w in summary.warnings)

    if dist.errors or conf.errors:
        return False
    result.published.append(name)
    return True


def publish_all(
    db: Session,
    tools: BindTools | None = None,
    target_factory: TargetFactory | None = None,
) -> PublishResult:
    """Publish every pending zone (or every zone after a full rebuild request).

    Zones are handled one at a time in name order; a failing zone is skipped
    and the rest still go out. The pending set and the rebuild flag are only
    cleared when the whole run finished without a single error.
    """
    tools = tools or get_bind_tools()
    state = get_publish_state(db)
    full_rebuild = state.full_rebuild

    query = db.query(Zone)
    if not full_rebuild:
        query = query.join(PendingZone, PendingZone.zone_id == Zone.id)
    zones = query.order_by(Zone.name).all()
    candidate_ids = [z.id for z in zones]
    log.info(f"Publishing {len(zones)} zone(s) (full rebuild: {full_rebuild})")

    result = PublishResult()
    for zone in zones:
        lock = _zone_lock(zone.id)
        if not lock.acquire(blocking=False):
            result.errors.append(f"Zone {zone.name}: publish already in progress")
            continue
        try:
            _publish_zone(db, zone, tools, target_factory, result)
        except Exception as e:
            db.rollback()
            log.exception(f"Publish of zone {zone.name} failed")
            result.errors.append(f"Zone {zone.name}: {e}")
        finally:
            lock.release()

    state = get_publish_state(db)
    if not result.errors:
        clear_pending(db, candidate_ids, full_rebuild=full_rebuild)
    state.last_publish_at = datetime.now(timezone.utc)
    state.last_publish_status = result.status
    db.commit()

    for err in result.errors:
        log.error(f"Publish error: {err}")
    log.info(
        f"Publish finished: {len(result.published)} published, "
        f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)"
    )
    return result


def publish_single_zone(
    db: Session,
    zone_id: int,
    tools: BindTools | None = None,
    target_factory: TargetFactory | None = None,
) -> CheckResult:
    """Publish one zone right away without committing (the caller owns the transaction)."""
    tools = tools or get_bind_tools()
    zone = db.get(Zone, zone_id)
    if zone is None:
        return CheckResult(status="error", output=f"Zone {zone_id} not found.")

    lock = _zone_lock(zone.id)
    if not lock.acquire(blocking=False):
        return CheckResult(status="error", output=f"Zone {zone.name}: publish already in progress")

    result = PublishResult()
    try:
        ok = _publish_zone(db, zone, tools, target_factory, result, commit=False)
    finally:
        lock.release()

    if ok:
        clear_pending(db, [zone.id])
    return CheckResult(status=result.status, output="\n".join(result.errors + result.warnings))


def reload_server(
    db: Session, server_id: int, target_factory: TargetFactory | None = None
) -> TargetResult:
    server = db.get(Server, server_id)
    if server is None:
        return TargetResult("error", f"Server {server_id} not found.")
    target = (target_factory or target_for)(server)
    result = target.reload()
    if result.ok:
        log.info(f"Reloaded BIND on {server.name}")
    else:
        log.warning(f"BIND reload on {server.name} failed: {result.message}")
    return result
