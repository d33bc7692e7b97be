from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from typing import Protocol

from zonemgr.settings import get_settings

log = logging.getLogger(__name__)

_ERROR_WORDS = ("unknown", "unexpected", "permission", "failed")
_LINE_LOCATOR_RE = re.compile(r":\d+:")


@dataclass(frozen=True)
class ToolResult:
    output: str
    returncode: int


class BindTools(Protocol):
    def check_zone(self, zone_name: str, path: str) -> ToolResult: ...

    def check_conf(self) -> ToolResult: ...

    def reload(self) -> ToolResult: ...

    def status(self) -> ToolResult: ...


class SubprocessBindTools:
    """Runs named-checkzone, named-checkconf and rndc as child processes.

    Output is stdout and stderr combined. A binary that cannot be started
    yields empty output, which the classifiers treat as an error.
    """

    def __init__(
        self,
        checkzone: str | None = None,
        checkconf: str | None = None,
        rndc: str | None = None,
        named_conf: str | None = None,
    ):
        settings = get_settings()
        self.checkzone = checkzone or settings.named_checkzone_path
        self.checkconf = checkconf or settings.named_checkconf_path
        self.rndc = rndc or settings.rndc_path
        self.named_conf = named_conf or settings.named_conf_path

    def _run(self, args: list[str]) -> ToolResult:
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
            return ToolResult(output="", returncode=127)
        return ToolResult(output=proc.stdout or "", returncode=proc.returncode)

    def check_zone(self, zone_name: str, path: str) -> ToolResult:
        return self._run([self.checkzone, zone_name, path])

    def check_conf(self) -> ToolResult:
        return self._run([self.checkconf, self.named_conf])

    def reload(self) -> ToolResult:
        return self._run([self.rndc, "reload"])

    def status(self) -> ToolResult:
        return self._run([self.rndc, "status"])


def get_bind_tools() -> BindTools:
    return SubprocessBindTools()


def _classify(output: str, *, require_loaded_serial: bool) -> str:
    text = (output or "").strip()
    if not text:
        return "error"

    lowered = text.lower()
    if any(word in lowered for word in _ERROR_WORDS):
        return "error"
    if _LINE_LOCATOR_RE.search(text):
        return "error"
    if require_loaded_serial and "loaded serial" not in text:
        return "error"
    if "warning:" in lowered:
        return "warning"
    return "ok"


def classify_zone_output(output: str) -> str:
    return _classify(output, require_loaded_serial=True)


def classify_conf_output(output: str, returncode: int = 0) -> str:
    # named-checkconf is silent on success; silence together with a failing
    # exit status means the checker itself did not run.
    if not (output or "").strip():
        return "ok" if returncode == 0 else "error"
    return _classify(output, require_loaded_serial=False)


def reload_succeeded(output: str) -> bool:
    return "reload successful" in (output or "").lower()
