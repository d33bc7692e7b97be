from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel
from sqlalchemy.orm import Session

from zonemgr.admin_auth import require_admin_key
from zonemgr.db.session import get_db
from zonemgr.models.dyndns_account import DynDnsAccount
from zonemgr.routers.common import action_response
from zonemgr.services.bind_tools import BindTools, get_bind_tools
from zonemgr.services.dyndns import (
    authenticate,
    create_account,
    delete_account,
    set_password,
    update_addresses,
)
from zonemgr.services.targets import TargetFactory, get_target_factory

router = APIRouter(tags=["dyndns"])
basic_auth = HTTPBasic(auto_error=False)


class AccountCreateRequest(BaseModel):
    username: str
    password: str
    zone_id: int
    hostname: str


class PasswordRequest(BaseModel):
    password: str


@router.get("/api/v1/dyndns/update", response_class=PlainTextResponse)
def dyndns_update(
    myip: str | None = None,
    myip6: str | None = None,
    credentials: HTTPBasicCredentials | None = Depends(basic_auth),
    db: Session = Depends(get_db),
    tools: BindTools = Depends(get_bind_tools),
    target_factory: TargetFactory = Depends(get_target_factory),
):
    if credentials is None or not credentials.username or not credentials.password:
        return PlainTextResponse(
            "badauth\n", status_code=401, headers={"WWW-Authenticate": 'Basic realm="DynDNS"'}
        )

    account = authenticate(db, credentials.username, credentials.password)
    if account is None:
        return PlainTextResponse("badauth\n")

    answer = update_addresses(db, account, myip, myip6, tools, target_factory)
    return PlainTextResponse(answer + "\n")


@router.get("/api/dyndns/accounts")
def list_accounts(db: Session = Depends(get_db), _: str = Depends(require_admin_key)):
    accounts = db.query(DynDnsAccount).order_by(DynDnsAccount.username).all()
    return {
        "accounts": [
            {
                "id": a.id,
                "username": a.username,
                "zone": a.zone.name,
                "hostname": a.hostname,
                "current_ipv4": a.current_ipv4,
                "current_ipv6": a.current_ipv6,
                "last_update": a.last_update.isoformat() if a.last_update else None,
            }
            for a in accounts
        ]
    }


@router.post("/api/dyndns/accounts")
def account_create(
    payload: AccountCreateRequest,
    db: Session = Depends(get_db),
    _: str = Depends(require_admin_key),
):
    return action_response(
        create_account(db, payload.username, payload.password, payload.zone_id, payload.hostname)
    )


@router.put("/api/dyndns/accounts/{account_id}/password")
def account_password(
    account_id: int,
    payload: PasswordRequest,
    db: Session = Depends(get_db),
    _: str = Depends(require_admin_key),
):
    return action_response(set_password(db, account_id, payload.password))


@router.delete("/api/dyndns/accounts/{account_id}")
def account_delete(account_id: int, db: Session = Depends(get_db), _: str = Depends(require_admin_key)):
    return action_response(delete_account(db, account_id))
