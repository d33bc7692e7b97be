from __future__ import annotations

import hmac
import logging

from fastapi import Header, HTTPException

from zonemgr.settings import get_settings

log = logging.getLogger(__name__)


def require_admin_key(
    x_zonemgr_key: str | None = Header(default=None, alias="X-Zonemgr-Key"),
) -> str:
    if not x_zonemgr_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    expected = get_settings().admin_api_key
    if not hmac.compare_digest(x_zonemgr_key.encode("utf-8"), expected.encode("utf-8")):
        log.warning("Rejected request with invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")
    return "api"
