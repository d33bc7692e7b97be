from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager

from zonemgr.settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(levelname)s [%(name)s] %(message)s",
    stream=sys.stdout,
)

from fastapi import FastAPI

from zonemgr.routers.diagnostics import router as diagnostics_router
from zonemgr.routers.dyndns import router as dyndns_router
from zonemgr.routers.publish import router as publish_router
from zonemgr.routers.records import router as records_router
from zonemgr.routers.servers import router as servers_router
from zonemgr.routers.zones import router as zones_router

log = logging.getLogger(__name__)

INSECURE_DEFAULTS = {"change-me", "password", "admin", "secret", ""}


def validate_security_settings() -> None:
    """Refuse to start with a default admin API key."""
    allow_insecure = os.environ.get("ZONEMGR_ALLOW_INSECURE", "").lower() == "true"

    if settings.admin_api_key not in INSECURE_DEFAULTS:
        return

    if allow_insecure:
        log.warning(
            "SECURITY WARNING (bypassed via ZONEMGR_ALLOW_INSECURE): "
            "ADMIN_API_KEY is set to a default/weak value. This is UNSAFE for production use!"
        )
    else:
        log.error(
            "SECURITY ERROR - Cannot start with insecure configuration: "
            "ADMIN_API_KEY is set to a default/weak value.\n"
            "To bypass (DEVELOPMENT ONLY): Set ZONEMGR_ALLOW_INSECURE=true"
        )
        sys.exit(1)


@asynccontextmanager
async def lifespan(_: FastAPI):
    from zonemgr.services.scheduler import start_scheduler, stop_scheduler

    validate_security_settings()
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(title="zonemgr", lifespan=lifespan)

app.include_router(zones_router)
app.include_router(records_router)
app.include_router(servers_router)
app.include_router(publish_router)
app.include_router(diagnostics_router)
app.include_router(dyndns_router)


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/api/version")
def version():
    return {"version": settings.zonemgr_version}
