"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- Streamed chunk output
- Response, settings, and status-line rendering
- Global instance management
"""

from __future__ import annotations

import json

import pytest

from pollcurl import output as output_module
from pollcurl.models import Response
from pollcurl.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture(autouse=True)
def _reset_global_output():
    """Ensure the global output instance is reset between tests."""
    reset_output()
    yield
    reset_output()


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("pollcurl.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("pollcurl.output._is_tty", lambda: True)


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb_disables_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout / stderr discipline
# ------------------------------------------------------------------ #


class TestStdoutStderrDiscipline:
    def test_print_data_goes_to_stdout(self, capfd, non_tty):
        OutputManager(no_color=True).print_data("payload")
        out, err = capfd.readouterr()
        assert out == "payload\n"
        assert err == ""

    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        getattr(OutputManager(no_color=True), method)("note")
        out, err = capfd.readouterr()
        assert out == ""
        assert "note" in err

    def test_write_chunk_is_verbatim(self, capfd, non_tty):
        mgr = OutputManager(no_color=True)
        mgr.write_chunk("par")
        mgr.write_chunk("tial")
        out, _ = capfd.readouterr()
        assert out == "partial"


class TestQuietAndVerbose:
    def test_quiet_suppresses_info(self, capfd, non_tty):
        OutputManager(no_color=True, quiet=True).info("status line")
        assert capfd.readouterr().err == ""

    def test_quiet_keeps_warnings_and_errors(self, capfd, non_tty):
        mgr = OutputManager(no_color=True, quiet=True)
        mgr.warning("careful")
        mgr.error("broken")
        err = capfd.readouterr().err
        assert "Warning: careful" in err
        assert "Error: broken" in err

    def test_debug_only_when_verbose(self, capfd, non_tty):
        OutputManager(no_color=True).debug("hidden")
        assert capfd.readouterr().err == ""
        OutputManager(no_color=True, verbose=True).debug("shown")
        assert "[debug] shown" in capfd.readouterr().err


# ------------------------------------------------------------------ #
# Payload rendering
# ------------------------------------------------------------------ #


def _response(body: str = "", status: int = 200, content_type: str = "application/json") -> Response:
    return Response(request_id="r", status=status, headers={"content-type": content_type}, body=body)


class TestJsonFormat:
    def test_json_body_is_reindented(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).render_response(_response('{"status":200}'))
        out = capfd.readouterr().out
        assert json.loads(out) == {"status": 200}
        assert "\n  " in out

    def test_text_body_passes_through(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).render_response(_response("hello", content_type="text/plain"))
        assert capfd.readouterr().out == "hello\n"

    def test_settings_as_json_object(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).render_settings({"poll_interval_ms": 100})
        assert json.loads(capfd.readouterr().out) == {"poll_interval_ms": 100}


class TestPlainFormat:
    def test_body_is_verbatim(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).render_response(_response('{"a":1}\n'))
        assert capfd.readouterr().out == '{"a":1}\n'

    def test_empty_body_prints_nothing(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).render_response(_response("", status=204))
        assert capfd.readouterr().out == ""

    def test_settings_as_key_value(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN).render_settings({"a": 1, "timeout": None})
        assert capfd.readouterr().out == "a\t1\ntimeout\t\n"


class TestRichFormat:
    def test_json_body_highlighted(self, capfd, non_tty):
        OutputManager(format=OutputFormat.RICH).render_response(_response('{"name": "widget"}'))
        out = capfd.readouterr().out
        assert "name" in out and "widget" in out

    def test_settings_table(self, capfd, non_tty):
        OutputManager(format=OutputFormat.RICH, no_color=True).render_settings({"max_workers": 4})
        out = capfd.readouterr().out
        assert "max_workers" in out
        assert "4" in out


class TestStatusLine:
    def test_includes_reason_phrase(self, capfd, non_tty):
        OutputManager(no_color=True).status_line(_response(status=404))
        out, err = capfd.readouterr()
        assert out == ""
        assert err == "HTTP 404 Not Found\n"

    def test_missing_status(self, capfd, non_tty):
        OutputManager(no_color=True).status_line(Response(request_id="r"))
        assert "no status" in capfd.readouterr().err

    def test_suppressed_by_quiet(self, capfd, non_tty):
        OutputManager(no_color=True, quiet=True).status_line(_response(status=200))
        assert capfd.readouterr().err == ""


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_is_lazy_singleton(self, non_tty):
        assert get_output() is get_output()

    def test_set_output_installs(self, non_tty):
        mgr = OutputManager(no_color=True)
        set_output(mgr)
        assert get_output() is mgr

    def test_module_helpers_delegate(self, capfd, non_tty):
        set_output(OutputManager(no_color=True))
        output_module.info("via module")
        output_module.write_chunk("chunk")
        out, err = capfd.readouterr()
        assert out == "chunk"
        assert "via module" in err
