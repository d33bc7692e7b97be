"""Unit tests for record mutations."""

import pytest

from zonemgr.models.config_change import ConfigChange
from zonemgr.models.record import Record
from zonemgr.services.pending import full_rebuild_requested, pending_zone_ids
from zonemgr.services.record_actions import (
    add_record,
    delete_records,
    ptr_location,
    resolve_ttl,
    update_record,
)
from zonemgr.services.record_types import RecordInputError
from zonemgr.services.zone_rebuild import rebuild_ns_and_glue


def _find(db, zone_id, name, rtype):
    return db.query(Record).filter(Record.zone_id == zone_id, Record.name == name, Record.type == rtype).all()


class TestAddRecord:
    def test_add_a_record(self, sync_db_session, zone, bind_tools):
        result = add_record(
            sync_db_session,
            zone.id,
            {"name": "www", "type": "A", "content": "192.0.2.10", "ttl": 300},
            bind_tools,
            actor="api",
        )

        assert result.status == "success"
        assert result.http_status == 200
        rows = _find(sync_db_session, zone.id, "www", "A")
        assert [(r.content, r.ttl) for r in rows] == [("192.0.2.10", 300)]
        assert pending_zone_ids(sync_db_session) == {zone.id}
        assert "www\t300\tIN\tA\t192.0.2.10" in bind_tools.checked_zones["example.com"]

        change = sync_db_session.query(ConfigChange).one()
        assert (change.entity_type, change.action, change.actor) == ("record", "create", "api")
        assert change.after_data["content"] == "192.0.2.10"

    def test_invalid_ipv4_never_runs_checker(self, sync_db_session, zone, bind_tools):
        result = add_record(
            sync_db_session, zone.id, {"name": "www", "type": "A", "content": "192.0.2.300"}, bind_tools
        )

        assert result.http_status == 400
        assert result.code == "ERR_INVALID_IPV4"
        assert result.to_dict()["errors"] == ["ERR_INVALID_IPV4"]
        assert bind_tools.calls == []
        assert _find(sync_db_session, zone.id, "www", "A") == []

    def test_txt_with_newline_cannot_add_lines(self, sync_db_session, zone, bind_tools):
        result = add_record(
            sync_db_session,
            zone.id,
            {"name": "note", "type": "TXT", "content": '"hi"\nns1\t60\tIN\tA\t203.0.113.66'},
            bind_tools,
        )

        assert result.http_status == 400
        assert result.code == "ERR_INVALID_CONTENT"
        assert bind_tools.calls == []
        assert _find(sync_db_session, zone.id, "note", "TXT") == []

    def test_zone_check_failure_rolls_back(self, sync_db_session, zone, bind_tools):
        bind_tools.zone_output = "example.com:12: CNAME and other data"
        result = add_record(
            sync_db_session,
            zone.id,
            {"name": "www", "type": "CNAME", "content": "web.example.com."},
            bind_tools,
        )

        assert result.http_status == 422
        assert result.output == "example.com:12: CNAME and other data"
        assert _find(sync_db_session, zone.id, "www", "CNAME") == []
        assert pending_zone_ids(sync_db_session) == set()
        assert sync_db_session.query(ConfigChange).count() == 0

    def test_duplicate_rejected(self, sync_db_session, zone, bind_tools):
        payload = {"name": "www", "type": "A", "content": "192.0.2.10"}
        add_record(sync_db_session, zone.id, payload, bind_tools)
        result = add_record(sync_db_session, zone.id, payload, bind_tools)

        assert result.code == "ERR_DUPLICATE_RECORD"
        assert len(_find(sync_db_session, zone.id, "www", "A")) == 1

    def test_unknown_zone(self, sync_db_session, bind_tools):
        result = add_record(sync_db_session, 99, {"name": "x", "type": "A", "content": "192.0.2.1"}, bind_tools)
        assert result.http_status == 404

    def test_auto_ttl_and_default_ttl(self, sync_db_session, zone, bind_tools):
        add_record(sync_db_session, zone.id, {"name": "a", "type": "CAA", "content": '0 issue "ca.example"', "ttl": "auto"}, bind_tools)
        add_record(sync_db_session, zone.id, {"name": "b", "type": "A", "content": "192.0.2.2"}, bind_tools)

        assert _find(sync_db_session, zone.id, "a", "CAA")[0].ttl == 3600
        assert _find(sync_db_session, zone.id, "b", "A")[0].ttl == 3600

    def test_builder_fields(self, sync_db_session, zone, bind_tools):
        result = add_record(
            sync_db_session,
            zone.id,
            {"name": "@", "type": "MX", "mx_priority": "10", "content": "mail.example.com"},
            bind_tools,
        )
        assert result.ok
        assert _find(sync_db_session, zone.id, "@", "MX")[0].content == "10 mail.example.com."

    def test_dkim_flag_on_txt(self, sync_db_session, zone, bind_tools):
        key = "MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEAu1SU1LfVLPHCozMxH2Mo"
        result = add_record(
            sync_db_session,
            zone.id,
            {"type": "TXT", "is_dkim": True, "dkim_selector": "mail", "dkim_key": key},
            bind_tools,
        )
        assert result.ok
        assert len(_find(sync_db_session, zone.id, "mail._domainkey", "TXT")) == 1


class TestAutoPtr:
    def test_ptr_location(self):
        assert ptr_location("A", "192.0.2.10") == ("2.0.192.in-addr.arpa", "10")
        zone, label = ptr_location("AAAA", "2001:db8::1")
        assert label == "1"
        assert zone.endswith(".8.b.d.0.1.0.0.2.ip6.arpa")
        assert ptr_location("A", "2001:db8::1") is None

    def test_creates_ptr_in_existing_reverse_zone(self, sync_db_session, server, zone, zone_factory, bind_tools):
        reverse = zone_factory("2.0.192.in-addr.arpa", [server], zone_type="reverse")
        sync_db_session.commit()

        result = add_record(
            sync_db_session,
            zone.id,
            {"name": "www", "type": "A", "content": "192.0.2.10", "ttl": 300, "auto_ptr": True},
            bind_tools,
        )

        assert result.status == "success"
        assert result.data["ptr"]["status"] == "success"
        ptr = _find(sync_db_session, reverse.id, "10", "PTR")
        assert [p.content for p in ptr] == ["www.example.com."]
        assert full_rebuild_requested(sync_db_session)

    def test_missing_reverse_zone_is_a_warning(self, sync_db_session, zone, bind_tools):
        result = add_record(
            sync_db_session,
            zone.id,
            {"name": "www", "type": "A", "content": "192.0.2.10", "auto_ptr": True},
            bind_tools,
        )

        assert result.status == "warning"
        assert result.data["ptr"]["code"] == "ERR_PTR_NO_ZONE"
        assert len(_find(sync_db_session, zone.id, "www", "A")) == 1


class TestUpdateRecord:
    def _add(self, db, zone, tools, **payload):
        result = add_record(db, zone.id, payload, tools)
        return db.get(Record, result.data["id"])

    def test_update_content(self, sync_db_session, zone, bind_tools):
        record = self._add(sync_db_session, zone, bind_tools, name="www", type="A", content="192.0.2.10")
        result = update_record(sync_db_session, record.id, {"content": "192.0.2.20"}, bind_tools, actor="api")

        assert result.status == "success"
        sync_db_session.refresh(record)
        assert record.content == "192.0.2.20"
        change = sync_db_session.query(ConfigChange).filter(ConfigChange.action == "update").one()
        assert change.before_data["content"] == "192.0.2.10"

    def test_invalid_update_rejected(self, sync_db_session, zone, bind_tools):
        record = self._add(sync_db_session, zone, bind_tools, name="www", type="A", content="192.0.2.10")
        result = update_record(sync_db_session, record.id, {"content": "not-an-ip"}, bind_tools)

        assert result.code == "ERR_INVALID_IPV4"
        sync_db_session.refresh(record)
        assert record.content == "192.0.2.10"

    def test_glue_identity_is_protected(self, sync_db_session, zone, bind_tools):
        rebuild_ns_and_glue(sync_db_session, zone.id, bind_tools)
        sync_db_session.commit()
        glue = _find(sync_db_session, zone.id, "ns1", "A")[0]

        result = update_record(sync_db_session, glue.id, {"content": "192.0.2.99"}, bind_tools)
        assert result.code == "ERR_GLUE_PROTECTED"

    def test_glue_ttl_may_change(self, sync_db_session, zone, bind_tools):
        rebuild_ns_and_glue(sync_db_session, zone.id, bind_tools)
        sync_db_session.commit()
        glue = _find(sync_db_session, zone.id, "ns1", "A")[0]

        result = update_record(sync_db_session, glue.id, {"ttl": 900}, bind_tools)

        assert result.ok
        sync_db_session.refresh(glue)
        assert glue.ttl == 900

    def test_zero_ttl_survives_rebuild(self, sync_db_session, zone, bind_tools):
        rebuild_ns_and_glue(sync_db_session, zone.id, bind_tools)
        sync_db_session.commit()
        ns = _find(sync_db_session, zone.id, "@", "NS")[0]

        assert update_record(sync_db_session, ns.id, {"ttl": 0}, bind_tools).ok

        rebuild_ns_and_glue(sync_db_session, zone.id, bind_tools)
        sync_db_session.commit()
        assert [r.ttl for r in _find(sync_db_session, zone.id, "@", "NS")] == [0]

    def test_line_break_in_content_rejected(self, sync_db_session, zone, bind_tools):
        record = self._add(sync_db_session, zone, bind_tools, name="note", type="TXT", content="hello")
        bind_tools.calls.clear()

        result = update_record(
            sync_db_session, record.id, {"content": "hello\r\nnote\t60\tIN\tA\t203.0.113.66"}, bind_tools
        )

        assert result.code == "ERR_INVALID_CONTENT"
        assert bind_tools.calls == []
        sync_db_session.refresh(record)
        assert "\n" not in record.content

    def test_protected_ns(self, sync_db_session, zone, bind_tools):
        rebuild_ns_and_glue(sync_db_session, zone.id, bind_tools)
        sync_db_session.commit()
        ns = _find(sync_db_session, zone.id, "@", "NS")[0]

        result = update_record(sync_db_session, ns.id, {"content": "ns9.example.net."}, bind_tools)
        assert result.code == "ERR_NS_PROTECTED"

    def test_unknown_record(self, sync_db_session, bind_tools):
        assert update_record(sync_db_session, 123, {"content": "x"}, bind_tools).http_status == 404


class TestDeleteRecords:
    def test_delete(self, sync_db_session, zone, bind_tools):
        result = add_record(sync_db_session, zone.id, {"name": "www", "type": "A", "content": "192.0.2.10"}, bind_tools)
        deleted = delete_records(sync_db_session, [result.data["id"]], bind_tools, actor="api")

        assert deleted.status == "success"
        assert deleted.data["deleted"] == 1
        assert _find(sync_db_session, zone.id, "www", "A") == []

    def test_protected_records_cannot_be_deleted(self, sync_db_session, zone, bind_tools):
        rebuild_ns_and_glue(sync_db_session, zone.id, bind_tools)
        sync_db_session.commit()
        ids = [r.id for r in sync_db_session.query(Record).filter(Record.zone_id == zone.id)]

        result = delete_records(sync_db_session, ids, bind_tools)

        assert result.http_status == 400
        assert sync_db_session.query(Record).filter(Record.zone_id == zone.id).count() == 2

    def test_nothing_found(self, sync_db_session, bind_tools):
        assert delete_records(sync_db_session, [1, 2], bind_tools).http_status == 404


class TestResolveTTL:
    def test_values(self):
        assert resolve_ttl(None, "A") == 3600
        assert resolve_ttl("", "A") == 3600
        assert resolve_ttl("auto", "PTR") == 86400
        assert resolve_ttl("600", "A") == 600

    def test_invalid(self):
        with pytest.raises(RecordInputError) as exc:
            resolve_ttl("soon", "A")
        assert exc.value.code == "ERR_INVALID_TTL"
