"""Unit tests for zone mutations."""

from zonemgr.models.diagnostic import Diagnostic
from zonemgr.models.dyndns_account import DynDnsAccount
from zonemgr.models.record import Record
from zonemgr.models.zone import Zone
from zonemgr.services import publish
from zonemgr.services.pending import full_rebuild_requested, pending_zone_ids
from zonemgr.services.zone_actions import create_zone, delete_zone, rebuild_zone, soa_ns_for, update_zone


def _payload(server_ids, master_id, **kwargs):
    payload = {
        "name": "example.com",
        "type": "forward",
        "soa_mail": "hostmaster.example.com",
        "soa_refresh": 3600,
        "soa_retry": 900,
        "soa_expire": 1209600,
        "soa_minimum": 86400,
        "server_ids": server_ids,
        "master_server_id": master_id,
    }
    payload.update(kwargs)
    return payload


class TestSoaNs:
    def test_forward_zone_appends_zone_name(self):
        assert soa_ns_for("example.com", "forward", "ns1") == "ns1.example.com."

    def test_master_inside_zone(self):
        assert soa_ns_for("example.com", "forward", "ns1.example.com") == "ns1.example.com."

    def test_master_outside_forward_zone(self):
        assert soa_ns_for("example.org", "forward", "ns1.example.com") == "ns1.example.com."
        assert soa_ns_for("example.org", "forward", "ns1.example.com.") == "ns1.example.com."

    def test_reverse_zone_uses_soa_domain(self):
        assert soa_ns_for("2.0.192.in-addr.arpa", "reverse", "ns1", "example.com.") == "ns1.example.com."

    def test_reverse_zone_with_qualified_master(self):
        assert soa_ns_for("2.0.192.in-addr.arpa", "reverse", "ns1.example.com", "example.com") == "ns1.example.com."


class TestCreateZone:
    def test_create_forward_zone(self, sync_db_session, server_factory, bind_tools):
        ns1 = server_factory("ns1.example.com")
        ns2 = server_factory("ns2.example.net", dns_ip4="198.51.100.53")
        sync_db_session.commit()

        result = create_zone(sync_db_session, _payload([ns1.id, ns2.id], ns1.id), bind_tools, actor="api")

        assert result.status == "success"
        zone = sync_db_session.get(Zone, result.data["id"])
        assert zone.soa_ns == "ns1.example.com."
        assert zone.soa_mail == "hostmaster.example.com."
        assert zone.ttl == 86400
        assert zone.master.id == ns1.id
        assert sorted(s.name for s in zone.servers) == ["ns1.example.com", "ns2.example.net"]
        ns = sync_db_session.query(Record).filter(Record.zone_id == zone.id, Record.type == "NS").count()
        assert ns == 2
        assert zone.id in pending_zone_ids(sync_db_session)

    def test_create_reverse_zone(self, sync_db_session, server, bind_tools):
        result = create_zone(
            sync_db_session,
            _payload(
                [server.id],
                server.id,
                name="2.0.192",
                type="reverse_ipv4",
                prefix_length=24,
                soa_domain="example.com",
            ),
            bind_tools,
        )

        assert result.ok
        zone = sync_db_session.get(Zone, result.data["id"])
        assert zone.name == "2.0.192.in-addr.arpa"
        assert zone.is_reverse
        assert zone.prefix_length == 24
        assert zone.soa_ns == "ns1.example.com."

    def test_invalid_input(self, sync_db_session, server, bind_tools):
        result = create_zone(sync_db_session, _payload([server.id], server.id, soa_refresh=5), bind_tools)
        assert result.code == "ERR_ZONE_INPUT"
        assert bind_tools.calls == []

    def test_master_must_be_selected(self, sync_db_session, server_factory, bind_tools):
        ns1 = server_factory("ns1.example.com")
        ns2 = server_factory("ns2.example.com")
        result = create_zone(sync_db_session, _payload([ns1.id], ns2.id), bind_tools)
        assert result.code == "ERR_ZONE_SERVERS"

    def test_duplicate_zone(self, sync_db_session, server, zone, bind_tools):
        result = create_zone(sync_db_session, _payload([server.id], server.id), bind_tools)
        assert result.code == "ERR_ZONE_EXISTS"

    def test_invalid_zone_file_creates_nothing(self, sync_db_session, server, bind_tools):
        bind_tools.zone_output = "example.com:1: bad"
        result = create_zone(sync_db_session, _payload([server.id], server.id), bind_tools)

        assert result.http_status == 422
        assert sync_db_session.query(Zone).count() == 0


class TestUpdateZone:
    def test_soa_change_revalidates(self, sync_db_session, zone, bind_tools):
        result = update_zone(sync_db_session, zone.id, {"soa_refresh": 7200}, bind_tools, actor="api")

        assert result.ok
        assert zone.soa_refresh == 7200
        assert zone.changed
        assert bind_tools.count("check_zone") == 1

    def test_server_change_rebuilds_ns(self, sync_db_session, server, zone, server_factory, bind_tools):
        ns2 = server_factory("ns2.example.com", dns_ip4="192.0.2.54")
        sync_db_session.commit()

        result = update_zone(
            sync_db_session,
            zone.id,
            {"server_ids": [server.id, ns2.id], "master_server_id": ns2.id},
            bind_tools,
        )

        assert result.ok
        ns = sync_db_session.query(Record).filter(Record.zone_id == zone.id, Record.type == "NS").all()
        assert sorted(r.content for r in ns) == ["ns1.example.com.", "ns2.example.com."]
        assert zone.soa_ns == "ns2.example.com."
        assert zone.master.id == ns2.id

    def test_invalid_update_rolls_back(self, sync_db_session, zone, bind_tools):
        bind_tools.zone_output = "example.com:2: bad"
        result = update_zone(sync_db_session, zone.id, {"ttl": 600}, bind_tools)

        assert result.http_status == 422
        sync_db_session.refresh(zone)
        assert zone.ttl == 86400

    def test_rejects_bad_values(self, sync_db_session, zone, bind_tools):
        assert update_zone(sync_db_session, zone.id, {"soa_retry": 1}, bind_tools).code == "ERR_ZONE_INPUT"


class TestRebuildZone:
    def test_rebuild(self, sync_db_session, zone, bind_tools):
        result = rebuild_zone(sync_db_session, zone.id, bind_tools)
        assert result.ok
        assert sync_db_session.query(Record).filter(Record.zone_id == zone.id).count() == 2


class TestDeleteZone:
    def test_delete_removes_dependents(self, sync_db_session, server, zone, bind_tools):
        rebuild_zone(sync_db_session, zone.id, bind_tools)
        sync_db_session.add(
            DynDnsAccount(username="home", password_hash="x", zone_id=zone.id, hostname="home")
        )
        sync_db_session.add(
            Diagnostic(
                target_type="zone",
                target_id=zone.id,
                server_id=server.id,
                check_type="zone_status",
                status="ok",
            )
        )
        sync_db_session.commit()
        zone_id = zone.id

        result = delete_zone(sync_db_session, zone_id, actor="api")

        assert result.status == "success"
        assert sync_db_session.get(Zone, zone_id) is None
        assert sync_db_session.query(Record).filter(Record.zone_id == zone_id).count() == 0
        assert sync_db_session.query(DynDnsAccount).count() == 0
        assert sync_db_session.query(Diagnostic).count() == 0
        assert full_rebuild_requested(sync_db_session)

    def test_delete_drops_publish_lock(self, sync_db_session, zone):
        zone_id = zone.id
        publish._zone_lock(zone_id)

        assert delete_zone(sync_db_session, zone_id).ok
        assert zone_id not in publish._zone_locks

    def test_delete_unknown(self, sync_db_session):
        assert delete_zone(sync_db_session, 5).http_status == 404
