from __future__ import annotations

import ipaddress
import re
from typing import Any

_LABEL_RE = re.compile(r"^[A-Za-z0-9-]{1,63}$")
_ZONE_NAME_RE = re.compile(r"^[A-Za-z0-9._\-]+$")

REVERSE_SUFFIXES = {
    "reverse_ipv4": ".in-addr.arpa",
    "reverse_ipv6": ".ip6.arpa",
}

SOA_LIMITS = {
    "soa_refresh": (1200, 86400),
    "soa_retry": (180, 7200),
    "soa_expire": (1209600, 2419200),
    "soa_minimum": (300, 86400),
}


def is_ipv4(value: str | None) -> bool:
    if not value:
        return False
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def is_ipv6(value: str | None) -> bool:
    if not value:
        return False
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def is_ip(value: str | None) -> bool:
    return is_ipv4(value) or is_ipv6(value)


def is_valid_fqdn(fqdn: str) -> bool:
    """Hostname check; the trailing dot is optional and IP literals are rejected."""
    if is_ip(fqdn.rstrip(".")):
        return False

    fqdn = fqdn.rstrip(".")
    if not fqdn or len(fqdn) > 253:
        return False

    for label in fqdn.split("."):
        if not _LABEL_RE.match(label):
            return False
        if label.startswith("-") or label.endswith("-"):
            return False
    return True


def zone_name_from_input(payload: dict[str, Any]) -> tuple[str, str]:
    """Return ``(name, type)`` for a zone form, appending the reverse suffix."""
    prefix = str(payload.get("zone_prefix") or payload.get("name") or "").strip().rstrip(".")
    raw_type = payload.get("type") or "forward"
    if raw_type in REVERSE_SUFFIXES:
        suffix = REVERSE_SUFFIXES[raw_type]
        if prefix.endswith(suffix):
            return prefix, "reverse"
        return prefix + suffix, "reverse"
    if raw_type == "reverse":
        return prefix, "reverse"
    return prefix, "forward"


def validate_zone_input(payload: dict[str, Any], *, require_name: bool = True) -> list[str]:
    errors: list[str] = []

    if require_name:
        name, zone_type = zone_name_from_input(payload)
        bare = name.replace(".in-addr.arpa", "").replace(".ip6.arpa", "")
        if not name:
            errors.append("Zone name must not be empty.")
        elif not _ZONE_NAME_RE.match(bare):
            errors.append("Invalid zone name.")

        if zone_type == "reverse":
            prefix_length = int(payload.get("prefix_length") or 0)
            if prefix_length < 8 or prefix_length > 128:
                errors.append("Prefix length of reverse zones must be between 8 and 128.")

    soa_mail = str(payload.get("soa_mail") or "").strip()
    if not soa_mail or not is_valid_fqdn(soa_mail):
        errors.append("Invalid administrator address (SOA mail).")

    for field, (low, high) in SOA_LIMITS.items():
        value = int(payload.get(field) or 0)
        if value < low or value > high:
            label = field.replace("soa_", "SOA ").replace("_", " ")
            errors.append(f"{label} must be between {low} and {high} seconds.")

    ttl = payload.get("ttl")
    if ttl not in (None, "") and int(ttl) < 0:
        errors.append("TTL must not be negative.")

    return errors


def validate_server_input(payload: dict[str, Any]) -> list[str]:
    errors: list[str] = []

    name = str(payload.get("name") or "").strip()
    if not name or len(name) > 100:
        errors.append("Server name is required (max. 100 characters).")
    elif not is_valid_fqdn(name) or name.rstrip(".").count(".") < 1:
        errors.append("Server name must be a fully qualified domain name.")

    dns_ip4 = (payload.get("dns_ip4") or "").strip()
    dns_ip6 = (payload.get("dns_ip6") or "").strip()
    if dns_ip4 and not is_ipv4(dns_ip4):
        errors.append("Invalid DNS IPv4 address.")
    if dns_ip6 and not is_ipv6(dns_ip6):
        errors.append("Invalid DNS IPv6 address.")
    if not is_ipv4(dns_ip4) and not is_ipv6(dns_ip6):
        errors.append("At least one valid DNS IP address is required.")

    is_local = bool(payload.get("is_local"))
    api_ip = (payload.get("api_ip") or "").strip()
    if api_ip and not is_ip(api_ip):
        errors.append("Invalid API IP address.")
    if not is_local and not api_ip:
        errors.append("Remote servers need an API IP address.")

    api_token = (payload.get("api_token") or "").strip()
    if not is_local and len(api_token) < 32:
        errors.append("Remote servers need an API token of at least 32 characters.")

    return errors
