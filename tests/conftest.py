"""
Pytest fixtures for zonemgr tests.

Unit and route tests run against an in-memory SQLite database. BIND is never
invoked: ``FakeBindTools`` stands in for named-checkzone/named-checkconf/rndc
and ``FakeTargets`` records what would have been delivered to each server.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Generator

# Settings are read when zonemgr.main is imported.
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key-0123456789")
os.environ.setdefault("MONITORING_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from zonemgr.db.base import Base
from zonemgr.db.session import get_db
from zonemgr.main import app
from zonemgr.models import config_change as _config_change  # noqa: F401
from zonemgr.models import diagnostic as _diagnostic  # noqa: F401
from zonemgr.models import dyndns_account as _dyndns_account  # noqa: F401
from zonemgr.models import settings as _settings  # noqa: F401
from zonemgr.models.server import Server
from zonemgr.models.zone import Zone
from zonemgr.models.zone_server import ZoneServer
from zonemgr.services.bind_tools import ToolResult, get_bind_tools
from zonemgr.services.soa_serial import initial_serial
from zonemgr.services.targets import TargetResult, get_target_factory

ADMIN_KEY = os.environ["ADMIN_API_KEY"]


def _sqlite_now():
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")


def _setup_sqlite_now(dbapi_conn, connection_record):
    dbapi_conn.create_function("NOW", 0, _sqlite_now)


class FakeBindTools:
    """Records every call; zone checks succeed unless ``zone_output`` says otherwise."""

    def __init__(
        self,
        zone_output: str | None = None,
        conf_output: str = "",
        conf_returncode: int = 0,
        reload_output: str = "server reload successful",
        status_output: str = "version: BIND 9.18\nserver is up and running",
        status_returncode: int = 0,
    ):
        self.zone_output = zone_output
        self.conf_output = conf_output
        self.conf_returncode = conf_returncode
        self.reload_output = reload_output
        self.status_output = status_output
        self.status_returncode = status_returncode
        self.zone_outputs: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.checked_zones: dict[str, str] = {}

    def check_zone(self, zone_name: str, path: str) -> ToolResult:
        with open(path, encoding="utf-8") as f:
            self.checked_zones[zone_name] = f.read()
        self.calls.append(("check_zone", zone_name))
        output = self.zone_outputs.get(zone_name, self.zone_output)
        if output is not None:
            return ToolResult(output, 0 if "loaded serial" in output else 1)
        return ToolResult(f"zone {zone_name}/IN: loaded serial 1\nOK\n", 0)

    def check_conf(self) -> ToolResult:
        self.calls.append(("check_conf",))
        return ToolResult(self.conf_output, self.conf_returncode)

    def reload(self) -> ToolResult:
        self.calls.append(("reload",))
        return ToolResult(self.reload_output, 0)

    def status(self) -> ToolResult:
        self.calls.append(("status",))
        return ToolResult(self.status_output, self.status_returncode)

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)


class FakeTarget:
    def __init__(self, registry: FakeTargets, server: Server):
        self.registry = registry
        self.server = server

    def _result(self, kind: str) -> TargetResult:
        return self.registry.results.get((self.server.name, kind)) or TargetResult("ok", "done")

    def write_zone_file(self, zone_id, zone_name, content, valid_zones):
        self.registry.zone_writes.append((self.server.name, zone_name, content, list(valid_zones)))
        return self._result("zone")

    def write_conf_file(self, zone_name, content, valid_zones):
        self.registry.conf_writes.append((self.server.name, zone_name, content, list(valid_zones)))
        return self._result("conf")

    def reload(self):
        self.registry.reloads.append(self.server.name)
        return self._result("reload")

    def status(self):
        return self.registry.statuses.get(self.server.name) or {"status": "ok", "message": ""}

    def check_zone(self, zone_name):
        self.registry.zone_checks.append((self.server.name, zone_name))
        return self._result("check_zone")

    def check_conf(self):
        return self._result("check_conf")


class FakeTargets:
    """Target factory handing out ``FakeTarget`` objects that share this registry."""

    def __init__(self):
        self.results: dict[tuple[str, str], TargetResult] = {}
        self.statuses: dict[str, dict] = {}
        self.zone_writes: list[tuple] = []
        self.conf_writes: list[tuple] = []
        self.reloads: list[str] = []
        self.zone_checks: list[tuple] = []

    def __call__(self, server: Server) -> FakeTarget:
        return FakeTarget(self, server)

    def fail(self, server_name: str, kind: str, message: str, output: str = "") -> None:
        self.results[(server_name, kind)] = TargetResult("error", message, output)


@pytest.fixture(autouse=True)
def scratch_dir(tmp_path, monkeypatch):
    """Keep synthesized zone files inside the test's temp directory."""
    path = tmp_path / "scratch"
    monkeypatch.setenv("SCRATCH_DIR", str(path))
    return path


@pytest.fixture
def bind_tools() -> FakeBindTools:
    return FakeBindTools()


@pytest.fixture
def fake_targets() -> FakeTargets:
    return FakeTargets()


@pytest.fixture
def sync_db_session() -> Generator[Session, None, None]:
    # One shared connection: TestClient runs sync routes in worker threads.
    engine = create_engine(
        "sqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    event.listen(engine, "connect", _setup_sqlite_now)
    Base.metadata.create_all(engine)

    TestSession = sessionmaker(bind=engine, autoflush=False)
    session = TestSession()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def sync_client(sync_db_session, bind_tools, fake_targets):
    """Create test client with sync DB, fake BIND tools and fake targets."""

    def override_get_db():
        yield sync_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_bind_tools] = lambda: bind_tools
    app.dependency_overrides[get_target_factory] = lambda: fake_targets
    with TestClient(app) as test_client:
        test_client.headers.update({"X-Zonemgr-Key": ADMIN_KEY})
        yield test_client
    app.dependency_overrides.clear()


def make_server(db: Session, name: str = "ns1.example.com", **kwargs) -> Server:
    values = {
        "dns_ip4": "192.0.2.53",
        "dns_ip6": None,
        "api_ip": "198.51.100.10",
        "api_token": "t" * 40,
        "is_local": False,
        "active": True,
    }
    values.update(kwargs)
    server = Server(name=name, **values)
    db.add(server)
    db.flush()
    return server


def make_zone(
    db: Session,
    name: str = "example.com",
    servers: list[Server] | None = None,
    zone_type: str = "forward",
    **kwargs,
) -> Zone:
    values = {
        "ttl": 86400,
        "soa_ns": "ns1.example.com.",
        "soa_mail": "hostmaster.example.com.",
        "soa_serial": initial_serial(),
        "soa_refresh": 3600,
        "soa_retry": 900,
        "soa_expire": 1209600,
        "soa_minimum": 86400,
    }
    if zone_type == "reverse":
        values["prefix_length"] = 24
    values.update(kwargs)
    zone = Zone(name=name, type=zone_type, **values)
    db.add(zone)
    db.flush()
    for i, server in enumerate(servers or []):
        db.add(ZoneServer(zone_id=zone.id, server_id=server.id, is_master=i == 0))
    db.flush()
    return zone


@pytest.fixture
def server(sync_db_session) -> Server:
    server = make_server(sync_db_session)
    sync_db_session.commit()
    return server


@pytest.fixture
def zone(sync_db_session, server) -> Zone:
    zone = make_zone(sync_db_session, servers=[server])
    sync_db_session.commit()
    return zone


@pytest.fixture
def server_factory(sync_db_session):
    def factory(name: str = "ns1.example.com", **kwargs) -> Server:
        return make_server(sync_db_session, name, **kwargs)

    return factory


@pytest.fixture
def zone_factory(sync_db_session):
    def factory(name: str = "example.com", servers: list[Server] | None = None, **kwargs) -> Zone:
        return make_zone(sync_db_session, name, servers, **kwargs)

    return factory
