"""Unit tests for DynDNS accounts and address updates."""

from zonemgr.models.dyndns_account import DynDnsAccount
from zonemgr.models.record import Record
from zonemgr.services.dyndns import (
    authenticate,
    create_account,
    delete_account,
    set_password,
    update_addresses,
)


def _account(db, zone, username="home", password="s3cret", hostname="home"):
    zone.allow_dyndns = True
    db.commit()
    result = create_account(db, username, password, zone.id, hostname)
    assert result.ok, result.message
    return db.get(DynDnsAccount, result.data["id"])


def _host_records(db, zone, record_type):
    return (
        db.query(Record)
        .filter(Record.zone_id == zone.id, Record.name == "home", Record.type == record_type)
        .all()
    )


class TestAuthenticate:
    def test_valid_credentials(self, sync_db_session, zone):
        account = _account(sync_db_session, zone)
        assert authenticate(sync_db_session, "home", "s3cret").id == account.id

    def test_wrong_password_and_unknown_user(self, sync_db_session, zone):
        _account(sync_db_session, zone)
        assert authenticate(sync_db_session, "home", "nope") is None
        assert authenticate(sync_db_session, "other", "s3cret") is None
        assert authenticate(sync_db_session, "", "") is None


class TestUpdateAddresses:
    def test_new_address_is_published(self, sync_db_session, zone, bind_tools, fake_targets):
        account = _account(sync_db_session, zone)

        answer = update_addresses(sync_db_session, account, "203.0.113.7", None, bind_tools, fake_targets)

        assert answer == "good 203.0.113.7"
        (record,) = _host_records(sync_db_session, zone, "A")
        assert record.content == "203.0.113.7"
        assert record.ttl == 300
        assert account.current_ipv4 == "203.0.113.7"
        assert account.last_update is not None
        assert [w[1] for w in fake_targets.zone_writes] == ["example.com"]

    def test_same_address_is_nochg(self, sync_db_session, zone, bind_tools, fake_targets):
        account = _account(sync_db_session, zone)
        update_addresses(sync_db_session, account, "203.0.113.7", None, bind_tools, fake_targets)
        writes = len(fake_targets.zone_writes)

        answer = update_addresses(sync_db_session, account, "203.0.113.7", None, bind_tools, fake_targets)

        assert answer == "nochg 203.0.113.7"
        assert len(fake_targets.zone_writes) == writes

    def test_ipv4_and_ipv6(self, sync_db_session, zone, bind_tools, fake_targets):
        account = _account(sync_db_session, zone)

        answer = update_addresses(
            sync_db_session, account, "203.0.113.7", "2001:db8::7", bind_tools, fake_targets
        )

        assert answer == "good 203.0.113.7\ngood 2001:db8::7"
        assert _host_records(sync_db_session, zone, "AAAA")[0].content == "2001:db8::7"

    def test_invalid_address_is_ignored(self, sync_db_session, zone, bind_tools, fake_targets):
        account = _account(sync_db_session, zone)

        assert update_addresses(sync_db_session, account, "not-an-ip", None, bind_tools, fake_targets) == "nochg"
        assert _host_records(sync_db_session, zone, "A") == []
        assert bind_tools.calls == []

    def test_invalid_zone_returns_dnserr(self, sync_db_session, zone, bind_tools, fake_targets):
        account = _account(sync_db_session, zone)
        bind_tools.zone_output = "example.com:9: bad"

        answer = update_addresses(sync_db_session, account, "203.0.113.7", None, bind_tools, fake_targets)

        assert answer == "dnserr"
        assert _host_records(sync_db_session, zone, "A") == []
        assert fake_targets.zone_writes == []

    def test_distribution_failure_returns_dnserr(self, sync_db_session, zone, bind_tools, fake_targets):
        account = _account(sync_db_session, zone)
        fake_targets.fail("ns1.example.com", "zone", "refused")

        answer = update_addresses(sync_db_session, account, "203.0.113.7", None, bind_tools, fake_targets)

        assert answer == "dnserr"
        assert _host_records(sync_db_session, zone, "A") == []


class TestAccounts:
    def test_zone_must_allow_dyndns(self, sync_db_session, zone):
        result = create_account(sync_db_session, "home", "pw", zone.id, "home")
        assert result.code == "ERR_DYNDNS_ZONE"

    def test_duplicate_username(self, sync_db_session, zone):
        _account(sync_db_session, zone)
        result = create_account(sync_db_session, "home", "pw", zone.id, "other")
        assert result.code == "ERR_DYNDNS_EXISTS"

    def test_hostname_must_not_be_an_address(self, sync_db_session, zone):
        zone.allow_dyndns = True
        sync_db_session.commit()
        result = create_account(sync_db_session, "home", "pw", zone.id, "192.0.2.1")
        assert result.code == "ERR_DYNDNS_INPUT"

    def test_set_password(self, sync_db_session, zone):
        account = _account(sync_db_session, zone)

        assert set_password(sync_db_session, account.id, "n3w").ok
        assert authenticate(sync_db_session, "home", "n3w") is not None
        assert authenticate(sync_db_session, "home", "s3cret") is None
        assert set_password(sync_db_session, account.id, "").code == "ERR_DYNDNS_INPUT"

    def test_delete(self, sync_db_session, zone):
        account = _account(sync_db_session, zone)

        assert delete_account(sync_db_session, account.id).ok
        assert sync_db_session.query(DynDnsAccount).count() == 0
        assert delete_account(sync_db_session, account.id).http_status == 404
