"""Unit tests for BIND checker output classification."""

from zonemgr.services.bind_tools import (
    SubprocessBindTools,
    classify_conf_output,
    classify_zone_output,
    reload_succeeded,
)


class TestClassifyZoneOutput:
    def test_loaded_serial_is_ok(self):
        assert classify_zone_output("zone example.com/IN: loaded serial 2026101901\nOK") == "ok"

    def test_warning(self):
        output = (
            "zone example.com/IN: warning: www.example.com: bad name (check-names)\n"
            "zone example.com/IN: loaded serial 2026101901\nOK"
        )
        assert classify_zone_output(output) == "warning"

    def test_line_locator_is_error(self):
        output = "/tmp/db.example.com:12: unknown RR type 'XX'\nzone example.com/IN: loading from master file failed"
        assert classify_zone_output(output) == "error"

    def test_error_words(self):
        assert classify_zone_output("zone example.com/IN: loaded serial 1\nload failed") == "error"
        assert classify_zone_output("permission denied") == "error"

    def test_empty_output_is_error(self):
        assert classify_zone_output("") == "error"
        assert classify_zone_output("   \n") == "error"

    def test_missing_loaded_serial_is_error(self):
        assert classify_zone_output("OK") == "error"


class TestClassifyConfOutput:
    def test_silence_is_ok(self):
        assert classify_conf_output("", 0) == "ok"

    def test_silence_with_failing_exit_is_error(self):
        assert classify_conf_output("", 127) == "error"

    def test_error_line(self):
        assert classify_conf_output("/etc/bind/named.conf:3: unknown option 'foo'", 1) == "error"

    def test_warning(self):
        assert classify_conf_output("warning: 'dnssec-enable' is obsolete") == "warning"


class TestReload:
    def test_reload_succeeded(self):
        assert reload_succeeded("server reload successful")
        assert reload_succeeded("Server Reload Successful\n")
        assert not reload_succeeded("rndc: connect failed: 127.0.0.1#953: connection refused")
        assert not reload_succeeded("")


class TestSubprocessBindTools:
    def test_missing_binary_yields_empty_output(self, tmp_path):
        tools = SubprocessBindTools(checkzone=str(tmp_path / "no-such-checkzone"))
        result = tools.check_zone("example.com", str(tmp_path / "db.example.com"))

        assert result.output == ""
        assert result.returncode == 127
        assert classify_zone_output(result.output) == "error"
