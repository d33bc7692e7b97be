"""BIND operations on the name server the agent runs on."""

from __future__ import annotations

import glob
import logging
import os
import re
import socket
import subprocess
import tempfile
from typing import Iterable

from zoneagent.settings import AgentSettings, get_settings

log = logging.getLogger(__name__)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._\-]")
_LINE_LOCATOR_RE = re.compile(r":\d+:")
_ERROR_WORDS = ("unknown", "unexpected", "permission", "failed")


def safe_zone_name(name: str) -> str:
    return _UNSAFE_RE.sub("_", name)


def classify_conf_output(output: str, returncode: int = 0) -> str:
    text = (output or "").strip()
    if not text:
        return "ok" if returncode == 0 else "error"
    lowered = text.lower()
    if any(word in lowered for word in _ERROR_WORDS) or _LINE_LOCATOR_RE.search(text):
        return "error"
    if "warning:" in lowered:
        return "warning"
    return "ok"


def write_atomic(path: str, content: str) -> None:
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


class Bind:
    def __init__(self, settings: AgentSettings | None = None):
        self.settings = settings or get_settings()

    def run(self, args: list[str]) -> tuple[str, int]:
        try:
            proc = subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as e:
            log.error(f"Could not run {args[0]}: {e}")
            return "", 127
        return proc.stdout or "", proc.returncode

    def _rndc(self, *args: str) -> list[str]:
        cmd = [self.settings.rndc_path, *args]
        return ["sudo", *cmd] if self.settings.rndc_use_sudo else cmd

    # paths

    def zone_path(self, zone_name: str) -> str:
        return os.path.join(self.settings.zone_data_dir, f"db.{safe_zone_name(zone_name)}")

    def conf_path(self, zone_name: str) -> str:
        return os.path.join(self.settings.zone_conf_dir, f"{safe_zone_name(zone_name)}.conf")

    # checks

    def check_zone(self, zone_name: str, path: str) -> str:
        output, _ = self.run([self.settings.named_checkzone_path, zone_name, path])
        return output.strip()

    def check_conf(self) -> tuple[str, int]:
        output, code = self.run([self.settings.named_checkconf_path, self.settings.named_conf_path])
        return output.strip(), code

    def reload(self) -> str:
        output, _ = self.run(self._rndc("reload"))
        return output.strip()

    # files

    def stage_zone_file(self, zone_name: str, content: str) -> str:
        """Write the zone next to its final location; the caller checks and installs it."""
        os.makedirs(self.settings.zone_data_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".db.{safe_zone_name(zone_name)}.", dir=self.settings.zone_data_dir
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_path, 0o644)
        return tmp_path

    def install_zone_file(self, tmp_path: str, zone_name: str) -> str:
        final_path = self.zone_path(zone_name)
        os.replace(tmp_path, final_path)
        return final_path

    def prune_zone_files(self, valid_zones: Iterable[str]) -> list[str]:
        keep = {safe_zone_name(z) for z in valid_zones}
        removed = []
        for path in glob.glob(os.path.join(self.settings.zone_data_dir, "db.*")):
            if safe_zone_name(os.path.basename(path)[3:]) not in keep:
                os.unlink(path)
                removed.append(path)
        if removed:
            log.info(f"Pruned {len(removed)} stale zone file(s)")
        return removed

    def prune_conf_files(self, valid_zones: Iterable[str]) -> list[str]:
        keep = {safe_zone_name(z) for z in valid_zones}
        removed = []
        for path in glob.glob(os.path.join(self.settings.zone_conf_dir, "*.conf")):
            if os.path.basename(path)[: -len(".conf")] not in keep:
                os.unlink(path)
                removed.append(path)
        if removed:
            log.info(f"Pruned {len(removed)} stale zone config file(s)")
        return removed

    def write_conf_file(self, zone_name: str, content: str) -> str:
        path = self.conf_path(zone_name)
        write_atomic(path, content)
        return path

    def regenerate_zones_conf(self) -> str:
        conf_dir = self.settings.zone_conf_dir
        paths = sorted(
            os.path.realpath(p)
            for p in glob.glob(os.path.join(conf_dir, "*.conf"))
            if os.path.isfile(p)
        )
        content = "".join(f'include "{p}";\n' for p in paths)
        write_atomic(self.settings.zones_conf_file, content)
        return content

    # status

    def named_running(self) -> bool:
        output, code = self.run([self.settings.pgrep_path, "named"])
        return code == 0 and bool(output.strip())

    def rndc_status(self) -> str:
        output, _ = self.run(self._rndc("status"))
        return output.strip()

    def localhost_query_ok(self) -> bool:
        output, _ = self.run([self.settings.dig_path, "+short", "@127.0.0.1", "localhost", "A"])
        return bool(output.strip())


def uptime_seconds() -> int | None:
    try:
        with open("/proc/uptime", encoding="ascii") as f:
            return int(float(f.read().split()[0]))
    except (OSError, ValueError, IndexError):
        return None


def load_average() -> dict[str, float | None]:
    try:
        one, five, fifteen = os.getloadavg()
    except OSError:
        return {"1min": None, "5min": None, "15min": None}
    return {"1min": one, "5min": five, "15min": fifteen}


def hostname() -> str:
    return socket.gethostname()


def get_bind() -> Bind:
    return Bind()
