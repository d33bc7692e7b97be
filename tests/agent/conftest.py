"""Fixtures for the name server agent API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from zoneagent.bind import Bind, get_bind
from zoneagent.main import app
from zoneagent.settings import AgentSettings, get_settings

TOKEN = "agent-token-0123456789abcdef0123456789"


class ScriptedBind(Bind):
    """Real file handling; BIND binaries are answered from ``responses``."""

    def __init__(self, settings: AgentSettings):
        super().__init__(settings)
        self.responses: dict[str, tuple[str, int]] = {
            "named-checkzone": ("zone example.com/IN: loaded serial 2024010101\nOK", 0),
            "named-checkconf": ("", 0),
            "rndc reload": ("server reload successful", 0),
            "rndc status": ("version: BIND 9.18\nserver is up and running", 0),
            "pgrep": ("1234", 0),
            "dig": ("127.0.0.1", 0),
        }
        self.commands: list[list[str]] = []

    def run(self, args):
        self.commands.append(args)
        key = args[0]
        if key == "rndc":
            key = f"rndc {args[1]}"
        return self.responses.get(key, ("", 127))


@pytest.fixture
def agent_settings(tmp_path) -> AgentSettings:
    return AgentSettings(
        api_tokens=[TOKEN],
        zone_data_dir=str(tmp_path / "zones"),
        zone_conf_dir=str(tmp_path / "zones" / "conf"),
        zones_conf_file=str(tmp_path / "zones" / "zones.conf"),
        named_checkzone_path="named-checkzone",
        named_checkconf_path="named-checkconf",
        rndc_path="rndc",
        pgrep_path="pgrep",
        dig_path="dig",
    )


@pytest.fixture
def bind(agent_settings) -> ScriptedBind:
    return ScriptedBind(agent_settings)


@pytest.fixture
def agent_client(agent_settings, bind):
    app.dependency_overrides[get_settings] = lambda: agent_settings
    app.dependency_overrides[get_bind] = lambda: bind
    with TestClient(app) as client:
        client.headers.update({"Authorization": f"Bearer {TOKEN}"})
        yield client
    app.dependency_overrides.clear()
