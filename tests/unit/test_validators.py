"""Unit tests for input validators."""

from zonemgr.services.validators import (
    is_valid_fqdn,
    validate_server_input,
    validate_zone_input,
    zone_name_from_input,
)


def _zone_payload(**kwargs):
    payload = {
        "name": "example.com",
        "type": "forward",
        "soa_mail": "hostmaster.example.com",
        "soa_refresh": 3600,
        "soa_retry": 900,
        "soa_expire": 1209600,
        "soa_minimum": 86400,
    }
    payload.update(kwargs)
    return payload


class TestFqdn:
    def test_valid_names(self):
        assert is_valid_fqdn("ns1.example.com")
        assert is_valid_fqdn("ns1.example.com.")
        assert is_valid_fqdn("localhost")

    def test_rejects_ip_literals(self):
        assert not is_valid_fqdn("192.0.2.1")
        assert not is_valid_fqdn("2001:db8::1")

    def test_rejects_bad_labels(self):
        assert not is_valid_fqdn("-bad.example.com")
        assert not is_valid_fqdn("bad-.example.com")
        assert not is_valid_fqdn("a..example.com")
        assert not is_valid_fqdn("x" * 64 + ".com")
        assert not is_valid_fqdn("")


class TestZoneInput:
    def test_valid_forward_zone(self):
        assert validate_zone_input(_zone_payload()) == []

    def test_reverse_suffix_appended(self):
        assert zone_name_from_input({"name": "2.0.192", "type": "reverse_ipv4"}) == (
            "2.0.192.in-addr.arpa",
            "reverse",
        )
        assert zone_name_from_input({"name": "8.b.d.0.1.0.0.2.ip6.arpa", "type": "reverse_ipv6"}) == (
            "8.b.d.0.1.0.0.2.ip6.arpa",
            "reverse",
        )

    def test_reverse_zone_needs_prefix_length(self):
        errors = validate_zone_input(_zone_payload(name="2.0.192", type="reverse_ipv4"))
        assert "Prefix length of reverse zones must be between 8 and 128." in errors
        assert validate_zone_input(
            _zone_payload(name="2.0.192", type="reverse_ipv4", prefix_length=24)
        ) == []

    def test_soa_limits(self):
        errors = validate_zone_input(_zone_payload(soa_refresh=60, soa_expire=10))
        assert len(errors) == 2
        assert errors[0].startswith("SOA refresh must be between 1200 and 86400")

    def test_invalid_name_and_mail(self):
        errors = validate_zone_input(_zone_payload(name="exa mple.com", soa_mail="not an address"))
        assert "Invalid zone name." in errors
        assert "Invalid administrator address (SOA mail)." in errors

    def test_empty_name(self):
        assert "Zone name must not be empty." in validate_zone_input(_zone_payload(name=""))


class TestServerInput:
    def test_valid_remote_server(self):
        payload = {
            "name": "ns2.example.com",
            "dns_ip4": "192.0.2.54",
            "api_ip": "198.51.100.11",
            "api_token": "x" * 32,
        }
        assert validate_server_input(payload) == []

    def test_local_server_needs_no_api_settings(self):
        assert validate_server_input({"name": "ns1.example.com", "dns_ip6": "2001:db8::53", "is_local": True}) == []

    def test_remote_server_requirements(self):
        errors = validate_server_input({"name": "ns2.example.com", "dns_ip4": "192.0.2.54"})
        assert "Remote servers need an API IP address." in errors
        assert "Remote servers need an API token of at least 32 characters." in errors

    def test_needs_a_dns_address(self):
        errors = validate_server_input({"name": "ns1.example.com", "is_local": True, "dns_ip4": "999.1.1.1"})
        assert "Invalid DNS IPv4 address." in errors
        assert "At least one valid DNS IP address is required." in errors

    def test_name_must_be_fqdn(self):
        errors = validate_server_input({"name": "ns1", "is_local": True, "dns_ip4": "192.0.2.53"})
        assert errors == ["Server name must be a fully qualified domain name."]
