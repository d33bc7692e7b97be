from __future__ import annotations

import hmac
import logging

from fastapi import Depends, Header, HTTPException, Request

from zoneagent.settings import AgentSettings, get_settings

log = logging.getLogger(__name__)


def load_tokens(settings: AgentSettings) -> list[str]:
    """Configured tokens plus those in the token file (one per line, ``#`` comments)."""
    tokens = [t.strip() for t in settings.api_tokens if t.strip()]
    if settings.token_file:
        try:
            with open(settings.token_file, encoding="utf-8") as f:
                for line in f:
                    line = line.split("#", 1)[0].strip()
                    if line:
                        tokens.append(line)
        except OSError as e:
            log.error(f"Could not read token file {settings.token_file}: {e}")
    return tokens


def is_token_valid(token: str, tokens: list[str]) -> bool:
    valid = False
    for candidate in tokens:
        # Compare against every token so timing does not reveal the position.
        if hmac.compare_digest(candidate.encode("utf-8"), token.encode("utf-8")):
            valid = True
    return valid


def require_allowed_ip(request: Request, settings: AgentSettings = Depends(get_settings)) -> None:
    if not settings.allowed_ips:
        return
    client_ip = request.client.host if request.client else ""
    if client_ip not in settings.allowed_ips:
        log.warning(f"Rejected request from {client_ip}: address not allowed")
        raise HTTPException(status_code=403, detail="Access denied: address not allowed")


def require_token(
    authorization: str | None = Header(default=None),
    settings: AgentSettings = Depends(get_settings),
    _: None = Depends(require_allowed_ip),
) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    token = authorization[len("Bearer ") :].strip()
    if not is_token_valid(token, load_tokens(settings)):
        log.warning("Rejected request with invalid API token")
        raise HTTPException(status_code=403, detail="Invalid API token")
    return token
