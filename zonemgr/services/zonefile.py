from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Iterable

from zonemgr.services.record_types import render_line
from zonemgr.services.soa_serial import next_serial

if TYPE_CHECKING:
    from zonemgr.models.record import Record
    from zonemgr.models.zone import Zone

# NS first, then everything else in a fixed order; unknown types sort last.
TYPE_ORDER = ["NS", "A", "AAAA", "CNAME", "MX", "TXT", "SRV", "NAPTR", "CAA", "LOC", "URI", "PTR"]

PURPOSES = ("validate", "publish")

_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9._\-]")


@dataclass(frozen=True)
class ZoneFile:
    text: str
    serial: int


def safe_zone_name(name: str) -> str:
    return _UNSAFE_RE.sub("_", name)


def zone_file_name(zone_name: str) -> str:
    return f"db.{safe_zone_name(zone_name)}"


def conf_file_name(zone_name: str) -> str:
    return f"{safe_zone_name(zone_name)}.conf"


def zone_file_path(zone_data_dir: str, zone_name: str) -> str:
    return os.path.join(zone_data_dir, zone_file_name(zone_name))


def _sort_key(record: Record) -> tuple:
    rtype = record.type.upper()
    rank = TYPE_ORDER.index(rtype) if rtype in TYPE_ORDER else len(TYPE_ORDER)
    return (rank, rtype, record.name.lower(), record.content)


def sorted_records(records: Iterable[Record]) -> list[Record]:
    return sorted(records, key=_sort_key)


def render_zone_file(zone: Zone, records: Iterable[Record], serial: int) -> str:
    origin = zone.name.rstrip(".")
    lines = [
        f"$ORIGIN {origin}.",
        f"$TTL {zone.ttl}",
        f"@   IN  SOA {zone.soa_ns} {zone.soa_mail} (",
        f"            {serial}   ; Serial",
        f"            {zone.soa_refresh}      ; Refresh",
        f"            {zone.soa_retry}        ; Retry",
        f"            {zone.soa_expire}       ; Expire",
        f"            {zone.soa_minimum} )    ; Minimum",
        "",
    ]
    for r in sorted_records(records):
        ttl = r.ttl if r.ttl is not None else zone.ttl
        lines.append(render_line(r.type, r.name, ttl, r.content))
    return "\n".join(lines) + "\n"


def synthesize(
    zone: Zone,
    records: Iterable[Record],
    purpose: str = "validate",
    today: date | None = None,
) -> ZoneFile:
    """Render the zone with the serial it would get if published now.

    ``purpose`` only tells the caller whether to persist the serial; the
    text is identical for both purposes.
    """
    if purpose not in PURPOSES:
        raise ValueError(f"Unknown purpose: {purpose}")
    serial = next_serial(zone.soa_serial, today)
    return ZoneFile(text=render_zone_file(zone, records, serial), serial=serial)


def render_zone_conf(zone_name: str, zone_path: str) -> str:
    return f'zone "{zone_name}" {{\n    type master;\n    file "{zone_path}";\n}};\n'


def render_zones_include(conf_paths: Iterable[str]) -> str:
    lines = [f'include "{p}";' for p in conf_paths]
    return "\n".join(lines) + "\n" if lines else ""
