"""Delivery targets for zone files and config fragments.

``LocalTarget`` writes straight into the BIND directories of the machine the
manager runs on; ``RemoteTarget`` talks to the agent on another name server.
Both report a ``TargetResult`` and never raise for delivery failures.
"""

from __future__ import annotations

import base64
import glob
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

import httpx

from zonemgr.models.server import Server
from zonemgr.services.bind_tools import (
    BindTools,
    classify_conf_output,
    classify_zone_output,
    get_bind_tools,
    reload_succeeded,
)
from zonemgr.services.zonefile import (
    conf_file_name,
    render_zones_include,
    safe_zone_name,
    zone_file_name,
)
from zonemgr.settings import get_settings

log = logging.getLogger(__name__)


@dataclass
class TargetResult:
    status: str
    message: str = ""
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "error"


class Target(Protocol):
    server: Server

    def write_zone_file(
        self, zone_id: int, zone_name: str, content: str, valid_zones: list[str]
    ) -> TargetResult: ...

    def write_conf_file(
        self, zone_name: str, content: str, valid_zones: list[str]
    ) -> TargetResult: ...

    def reload(self) -> TargetResult: ...

    def status(self) -> dict[str, Any]: ...

    def check_zone(self, zone_name: str) -> TargetResult: ...

    def check_conf(self) -> TargetResult: ...


TargetFactory = Callable[[Server], Target]


def write_atomic(path: str, content: str) -> None:
    """Write via a temp file in the same directory and rename into place."""
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def prune_files(directory: str, keep: Iterable[str], *, prefix: str = "", suffix: str = "") -> list[str]:
    """Remove ``prefix<safe>suffix`` files whose zone is not in ``keep``."""
    keep_safe = {safe_zone_name(z) for z in keep}
    removed = []
    for path in glob.glob(os.path.join(directory, f"{prefix}*{suffix}")):
        base = os.path.basename(path)
        safe = base[len(prefix) : len(base) - len(suffix)] if suffix else base[len(prefix) :]
        if safe not in keep_safe:
            os.unlink(path)
            removed.append(path)
    return removed


def regenerate_zones_conf(conf_dir: str, zones_conf_file: str) -> str:
    paths = sorted(os.path.realpath(p) for p in glob.glob(os.path.join(conf_dir, "*.conf")))
    content = render_zones_include(paths)
    write_atomic(zones_conf_file, content)
    return content


class LocalTarget:
    def __init__(
        self,
        server: Server,
        tools: BindTools | None = None,
        *,
        zone_data_dir: str | None = None,
        zone_conf_dir: str | None = None,
        zones_conf_file: str | None = None,
    ):
        settings = get_settings()
        self.server = server
        self.tools = tools or get_bind_tools()
        self.zone_data_dir = zone_data_dir or settings.zone_data_dir
        self.zone_conf_dir = zone_conf_dir or settings.zone_conf_dir
        self.zones_conf_file = zones_conf_file or settings.zones_conf_file

    def write_zone_file(self, zone_id, zone_name, content, valid_zones):
        path = os.path.join(self.zone_data_dir, zone_file_name(zone_name))
        try:
            write_atomic(path, content)
            if valid_zones:
                prune_files(self.zone_data_dir, valid_zones, prefix="db.")
        except OSError as e:
            log.error(f"Local write of {path} failed: {e}")
            return TargetResult("error", f"write failed: {e}")

        check = self.tools.check_zone(zone_name, path)
        status = classify_zone_output(check.output)
        if status == "error":
            return TargetResult("error", "named-checkzone failed", check.output.strip())

        reload = self.tools.reload()
        return TargetResult(status, reload.output.strip(), check.output.strip())

    def write_conf_file(self, zone_name, content, valid_zones):
        path = os.path.join(self.zone_conf_dir, conf_file_name(zone_name))
        try:
            os.makedirs(self.zone_conf_dir, exist_ok=True)
            if valid_zones:
                prune_files(self.zone_conf_dir, valid_zones, suffix=".conf")
            write_atomic(path, content)
            regenerate_zones_conf(self.zone_conf_dir, self.zones_conf_file)
        except OSError as e:
            log.error(f"Local write of {path} failed: {e}")
            return TargetResult("error", f"write failed: {e}")

        check = self.tools.check_conf()
        status = classify_conf_output(check.output, check.returncode)
        if status == "error":
            return TargetResult("error", "named-checkconf failed", check.output.strip())

        reload = self.tools.reload()
        return TargetResult(status, reload.output.strip(), check.output.strip())

    def reload(self):
        result = self.tools.reload()
        output = result.output.strip()
        if reload_succeeded(output):
            return TargetResult("ok", output, output)
        return TargetResult("error", output or "rndc reload failed", output)

    def status(self):
        result = self.tools.status()
        running = result.returncode == 0 and "not running" not in result.output.lower()
        return {
            "status": "ok" if running else "error",
            "message": "" if running else "BIND is not running",
            "bind": {"named_running": running, "rndc_status": result.output.strip()},
        }

    def check_zone(self, zone_name):
        path = os.path.join(self.zone_data_dir, zone_file_name(zone_name))
        if not os.path.exists(path):
            return TargetResult("error", f"zone file {path} not found")
        check = self.tools.check_zone(zone_name, path)
        output = check.output.strip()
        return TargetResult(classify_zone_output(output), output, output)

    def check_conf(self):
        check = self.tools.check_conf()
        output = check.output.strip()
        return TargetResult(classify_conf_output(output, check.returncode), output, output)


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class RemoteTarget:
    def __init__(
        self,
        server: Server,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        verify: bool | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        settings = get_settings()
        self.server = server
        self.base_url = base_url or (
            f"https://{server.api_ip}{settings.remote_api_base.rstrip('/')}"
        )
        self.timeout = timeout if timeout is not None else settings.agent_timeout_seconds
        self.verify = settings.agent_verify_tls if verify is None else verify
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.server.api_token or ''}"},
            timeout=self.timeout,
            verify=self.verify,
            transport=self.transport,
        )

    def _request(self, method: str, path: str, payload: dict | None = None) -> tuple[int, dict]:
        with self._client() as client:
            resp = client.request(method, path, json=payload)
        try:
            data = resp.json()
        except ValueError:
            data = {"message": resp.text.strip()}
        if not isinstance(data, dict):
            data = {"message": str(data)}
        return resp.status_code, data

    def _call(self, method: str, path: str, payload: dict | None = None) -> TargetResult:
        try:
            code, data = self._request(method, path, payload)
        except httpx.HTTPError as e:
            log.warning(f"Agent call {path} on {self.server.name} failed: {e}")
            return TargetResult("error", f"Verbindungsfehler: {e}")

        check_output = str(data.get("check_output") or "").strip()
        if code != 200:
            message = data.get("message") or f"unexpected response ({code})"
            text = f"HTTP-{code} {message}"
            if check_output:
                text += f" – {check_output}"
            return TargetResult("error", text, check_output)

        return TargetResult("ok", str(data.get("message") or ""), check_output)

    def write_zone_file(self, zone_id, zone_name, content, valid_zones):
        result = self._call(
            "POST",
            "/zones/zone_sync.php",
            {
                "zone_id": zone_id,
                "zone_name": zone_name,
                "zone_data": _b64(content),
                "valid_zones": list(valid_zones),
            },
        )
        if result.ok and result.output:
            result.status = classify_zone_output(result.output)
            if result.status == "error":
                result.message = f"named-checkzone reported errors – {result.output}"
        return result

    def write_conf_file(self, zone_name, content, valid_zones):
        return self._call(
            "POST",
            "/zones/conf_sync.php",
            {"zone_name": zone_name, "conf_data": _b64(content), "valid_zones": list(valid_zones)},
        )

    def reload(self):
        return self._call("POST", "/system/control.php", {"action": "reload-bind"})

    def status(self):
        try:
            code, data = self._request("GET", "/system/status.php")
        except httpx.HTTPError as e:
            return {"status": "error", "message": f"Verbindungsfehler: {e}"}
        if code != 200:
            data.setdefault("message", f"unexpected response ({code})")
            data["status"] = "error"
        return data

    def check_zone(self, zone_name):
        result = self._call("POST", "/zones/zone_check.php", {"zone_name": zone_name})
        if result.ok:
            result.status = classify_zone_output(result.output)
            result.message = result.output
        return result

    def check_conf(self):
        try:
            code, data = self._request("GET", "/zones/conf_check.php")
        except httpx.HTTPError as e:
            return TargetResult("error", f"Verbindungsfehler: {e}")
        output = str(data.get("check_output") or "").strip()
        if code != 200:
            return TargetResult("error", f"HTTP-{code} {data.get('message', '')}".strip(), output)
        return TargetResult(str(data.get("status") or "error"), output, output)


def target_for(server: Server, tools: BindTools | None = None) -> Target:
    if server.is_local:
        return LocalTarget(server, tools)
    return RemoteTarget(server)


def get_target_factory() -> TargetFactory:
    return target_for
