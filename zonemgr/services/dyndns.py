from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from zonemgr.models.dyndns_account import DynDnsAccount
from zonemgr.models.record import Record
from zonemgr.models.zone import Zone
from zonemgr.security import hash_password, verify_password
from zonemgr.services.action_result import ActionResult, failed, not_found, rejected
from zonemgr.services.bind_tools import BindTools
from zonemgr.services.publish import publish_single_zone
from zonemgr.services.targets import TargetFactory
from zonemgr.services.validators import is_ip, is_ipv4, is_ipv6
from zonemgr.services.zone_rebuild import rebuild_and_flag_if_valid

log = logging.getLogger(__name__)

DYNDNS_TTL = 300


def authenticate(db: Session, username: str, password: str) -> DynDnsAccount | None:
    if not username or not password:
        return None
    account = db.query(DynDnsAccount).filter(DynDnsAccount.username == username).one_or_none()
    if account is None or not verify_password(password, account.password_hash):
        log.warning(f"DynDNS: failed login for {username!r}")
        return None
    return account


def _apply_address(
    db: Session, account: DynDnsAccount, record_type: str, ip: str, now: datetime
) -> str:
    existing = (
        db.query(Record)
        .filter(
            Record.zone_id == account.zone_id,
            Record.name == account.hostname,
            Record.type == record_type,
        )
        .first()
    )
    if existing is not None and existing.content == ip:
        return f"nochg {ip}"

    if existing is not None:
        existing.content = ip
    else:
        db.add(
            Record(
                zone_id=account.zone_id,
                name=account.hostname,
                type=record_type,
                content=ip,
                ttl=DYNDNS_TTL,
            )
        )

    if record_type == "A":
        account.current_ipv4 = ip
    else:
        account.current_ipv6 = ip
    account.last_update = now
    return f"good {ip}"


def update_addresses(
    db: Session,
    account: DynDnsAccount,
    myip: str | None,
    myip6: str | None,
    tools: BindTools | None = None,
    target_factory: TargetFactory | None = None,
) -> str:
    """Apply a DynDNS update and return the plain-text protocol answer."""
    zone_name = account.zone.name
    now = datetime.now(timezone.utc)
    results: list[str] = []
    try:
        for record_type, ip, check in (("A", myip, is_ipv4), ("AAAA", myip6, is_ipv6)):
            ip = (ip or "").strip()
            if not ip or not check(ip):
                continue
            results.append(_apply_address(db, account, record_type, ip, now))

        if any(r.startswith("good") for r in results):
            db.flush()
            rebuild = rebuild_and_flag_if_valid(db, account.zone_id, tools)
            if rebuild.status == "error":
                db.rollback()
                log.error(f"DynDNS: zone {zone_name} invalid after update: {rebuild.output}")
                return "dnserr"

            publish = publish_single_zone(db, account.zone_id, tools, target_factory)
            if publish.status == "error":
                db.rollback()
                log.error(f"DynDNS: publishing {zone_name} failed: {publish.output}")
                return "dnserr"
            if publish.status == "warning":
                log.warning(f"DynDNS: published {zone_name} with warnings: {publish.output}")
            else:
                log.info(f"DynDNS: {account.username} updated {account.hostname}.{zone_name}")

        db.commit()
    except Exception as e:
        db.rollback()
        log.error(f"DynDNS update for {account.username} failed: {e}")
        return "dnserr"

    return "\n".join(results) if results else "nochg"


def create_account(
    db: Session, username: str, password: str, zone_id: int, hostname: str
) -> ActionResult:
    username = (username or "").strip()
    hostname = (hostname or "").strip().rstrip(".")
    if not username or not password or not hostname:
        return rejected("Username, password and hostname are required.", "ERR_DYNDNS_INPUT")
    if is_ip(hostname) or " " in hostname:
        return rejected("Invalid hostname.", "ERR_DYNDNS_INPUT")

    zone = db.get(Zone, zone_id)
    if zone is None or not zone.allow_dyndns:
        return rejected("The zone does not allow DynDNS.", "ERR_DYNDNS_ZONE")
    if db.query(DynDnsAccount).filter(DynDnsAccount.username == username).first():
        return rejected(f"Account {username} already exists.", "ERR_DYNDNS_EXISTS")

    try:
        account = DynDnsAccount(
            username=username,
            password_hash=hash_password(password),
            zone_id=zone.id,
            hostname=hostname,
        )
        db.add(account)
        db.commit()
    except Exception as e:
        db.rollback()
        log.exception(f"Creating DynDNS account {username} failed")
        return failed(f"Creating DynDNS account {username} failed: {e}")

    log.info(f"Created DynDNS account {username} for {hostname}.{zone.name}")
    return ActionResult("success", f"Account {username} created.", data={"id": account.id})


def set_password(db: Session, account_id: int, password: str) -> ActionResult:
    account = db.get(DynDnsAccount, account_id)
    if account is None:
        return not_found(f"DynDNS account {account_id} not found.")
    if not password:
        return rejected("Password must not be empty.", "ERR_DYNDNS_INPUT")
    account.password_hash = hash_password(password)
    db.commit()
    return ActionResult("success", f"Password of {account.username} changed.")


def delete_account(db: Session, account_id: int) -> ActionResult:
    account = db.get(DynDnsAccount, account_id)
    if account is None:
        return not_found(f"DynDNS account {account_id} not found.")
    username = account.username
    db.delete(account)
    db.commit()
    log.info(f"Deleted DynDNS account {username}")
    return ActionResult("success", f"Account {username} deleted.")
