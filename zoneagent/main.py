from __future__ import annotations

import base64
import binascii
import logging
import os
import platform
import sys

from zoneagent.settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(levelname)s [%(name)s] %(message)s",
    stream=sys.stdout,
)

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from zoneagent.auth import require_token
from zoneagent.bind import Bind, classify_conf_output, get_bind, hostname, load_average, uptime_seconds

log = logging.getLogger(__name__)


def error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"status": "error", "message": message, **extra}
    )


class ControlRequest(BaseModel):
    action: str | None = None


class ZoneSyncRequest(BaseModel):
    zone_id: int | str | None = None
    zone_name: str | None = None
    zone_data: str | None = None
    valid_zones: list[str] | None = None


class ConfSyncRequest(BaseModel):
    zone_name: str | None = None
    conf_data: str | None = None
    valid_zones: list[str] | None = None


class ZoneCheckRequest(BaseModel):
    zone_name: str | None = None


def decode_b64(data: str) -> str:
    return base64.b64decode(data, validate=True).decode("utf-8")


router = APIRouter(prefix=settings.api_base.rstrip("/"), dependencies=[Depends(require_token)])


@router.post("/system/control.php")
def control(payload: ControlRequest, bind: Bind = Depends(get_bind)):
    if payload.action != "reload-bind":
        return error(400, "Unknown action")

    output = bind.reload()
    if "reload successful" in output.lower():
        log.info("BIND reloaded")
        return {"status": "ok", "message": output}
    log.error(f"rndc reload failed: {output}")
    return error(500, output or "rndc reload failed")


@router.get("/system/status.php")
def status(bind: Bind = Depends(get_bind)):
    rndc_status = bind.rndc_status()
    named_running = bind.named_running()
    rndc_ok = bool(rndc_status) and "not running" not in rndc_status
    dns_ok = bind.localhost_query_ok()

    body = {
        "status": "ok",
        "hostname": hostname(),
        "uptime_seconds": uptime_seconds(),
        "load_average": load_average(),
        # Runtime version; the key name is what the manager reads.
        "php_version": platform.python_version(),
        "bind": {
            "named_running": named_running,
            "rndc_status": rndc_status,
            "dns_query_localhost_ok": dns_ok,
        },
    }
    if not (named_running and rndc_ok and dns_ok):
        body["status"] = "error"
        body["message"] = "BIND is not fully operational"
        return JSONResponse(status_code=503, content=body)
    return body


@router.post("/zones/zone_sync.php")
def zone_sync(payload: ZoneSyncRequest, bind: Bind = Depends(get_bind)):
    if payload.zone_id in (None, "") or not payload.zone_name or payload.zone_data is None:
        return error(400, "Invalid input parameters")

    zone_name = payload.zone_name.strip()
    try:
        zone_data = decode_b64(payload.zone_data)
    except (binascii.Error, ValueError):
        return error(400, "Could not decode zone data")

    try:
        tmp_path = bind.stage_zone_file(zone_name, zone_data)
    except OSError as e:
        log.error(f"Writing temporary zone file for {zone_name} failed: {e}")
        return error(500, "Could not write temporary zone file")

    check_output = bind.check_zone(zone_name, tmp_path)
    if "loaded serial" not in check_output:
        os.unlink(tmp_path)
        log.warning(f"Zone {zone_name} rejected by named-checkzone")
        return error(422, "Zone check failed", check_output=check_output)

    try:
        final_path = bind.install_zone_file(tmp_path, zone_name)
        if payload.valid_zones is not None:
            bind.prune_zone_files(payload.valid_zones)
    except OSError as e:
        log.error(f"Installing zone file for {zone_name} failed: {e}")
        return error(500, f"Could not install zone file: {e}")

    rndc = bind.reload()
    log.info(f"Zone {zone_name} installed at {final_path}")
    return {
        "status": "success",
        "message": f"Zone file for {zone_name} installed.",
        "check_output": check_output,
        "rndc": rndc,
    }


@router.post("/zones/conf_sync.php")
def conf_sync(payload: ConfSyncRequest, bind: Bind = Depends(get_bind)):
    if not payload.zone_name or payload.conf_data is None:
        return error(400, "Invalid input parameters")

    try:
        conf_data = decode_b64(payload.conf_data)
    except (binascii.Error, ValueError):
        return error(400, "Could not decode zone configuration")

    try:
        os.makedirs(bind.settings.zone_conf_dir, exist_ok=True)
        if payload.valid_zones is not None:
            bind.prune_conf_files(payload.valid_zones)
        bind.write_conf_file(payload.zone_name, conf_data)
        bind.regenerate_zones_conf()
    except OSError as e:
        log.error(f"Writing zone configuration for {payload.zone_name} failed: {e}")
        return error(500, f"Could not write zone configuration: {e}")

    rndc = bind.reload()
    return {
        "status": "success",
        "message": "Zone configuration installed, zones.conf rewritten.",
        "rndc": rndc,
    }


@router.post("/zones/zone_check.php")
def zone_check(payload: ZoneCheckRequest, bind: Bind = Depends(get_bind)):
    if not payload.zone_name or not payload.zone_name.strip():
        return error(400, "Missing or invalid parameter: zone_name")

    zone_name = payload.zone_name.strip()
    path = bind.zone_path(zone_name)
    if not os.path.exists(path):
        return error(404, f"Zone file for {zone_name} not found.")

    return {
        "status": "success",
        "zone_name": zone_name,
        "check_output": bind.check_zone(zone_name, path),
    }


@router.get("/zones/conf_check.php")
def conf_check(bind: Bind = Depends(get_bind)):
    output, code = bind.check_conf()
    return {"status": classify_conf_output(output, code), "check_output": output}


app = FastAPI(title="zoneagent")
app.include_router(router)


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(_: Request, exc: StarletteHTTPException):
    return error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
def validation_exception_handler(_: Request, exc: RequestValidationError):
    return error(400, "Invalid input parameters")


@app.get("/health")
def health():
    return {"ok": True}
