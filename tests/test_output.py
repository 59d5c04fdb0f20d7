"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- JSON and plain rendering of query results
- Global instance management
"""

from __future__ import annotations

import json

import pytest

from presscache.models import ClassMapping
from presscache.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)
from presscache import output as output_module


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
    monkeypatch.setattr("presscache.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("presscache.output._is_tty", lambda: True)


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager().format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout vs stderr discipline
# ------------------------------------------------------------------ #


class TestStdoutStderrDiscipline:
    @pytest.mark.parametrize("method", ["info", "success", "warning", "error"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("Retrying the last batch")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "Retrying the last batch" in captured.err

    def test_data_goes_to_stdout(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_data("python")
        captured = capfd.readouterr()
        assert captured.out == "python\n"
        assert captured.err == ""


class TestQuietVerbose:
    def test_quiet_suppresses_info_not_warnings(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("probing")
        mgr.success("built")
        mgr.warning("Retries exceeded")
        err = capfd.readouterr().err
        assert "probing" not in err
        assert "built" not in err
        assert "Retries exceeded" in err

    def test_debug_needs_verbose(self, capfd, non_tty):
        OutputManager(no_color=True).debug("hidden")
        OutputManager(no_color=True, verbose=True).debug("Record delta: 20")
        err = capfd.readouterr().err
        assert "hidden" not in err
        assert "[debug] Record delta: 20" in err


# ------------------------------------------------------------------ #
# Rendering
# ------------------------------------------------------------------ #


class TestRendering:
    def test_json_handles_sets_and_models(self, capfd):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.format_response(
            {"tags": {"rust", "python"}, "mapping": ClassMapping(label="python", term_id=3)}
        )
        data = json.loads(capfd.readouterr().out)
        assert data == {"tags": ["python", "rust"], "mapping": {"label": "python", "term_id": 3}}

    def test_plain_list_one_per_line(self, capfd):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.format_response(["news", "web dev"])
        assert capfd.readouterr().out == "news\nweb dev\n"

    def test_plain_dict_tab_separated(self, capfd):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.format_response({"posts": 100, "tags": 24})
        assert capfd.readouterr().out == "posts\t100\ntags\t24\n"

    def test_table_as_json(self, capfd):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_table(["Label", "Term ID"], [["python", "3"]])
        assert json.loads(capfd.readouterr().out) == [{"Label": "python", "Term ID": "3"}]

    def test_table_as_tsv(self, capfd):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_table(["Label", "Term ID"], [["python", "3"]])
        assert capfd.readouterr().out == "Label\tTerm ID\npython\t3\n"


# ------------------------------------------------------------------ #
# Global instance management
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_lazy_default_is_quiet(self):
        assert get_output().is_quiet is True

    def test_set_and_reset(self):
        mgr = OutputManager(format=OutputFormat.JSON)
        set_output(mgr)
        assert get_output() is mgr
        reset_output()
        assert get_output() is not mgr

    def test_convenience_functions_use_global(self, capfd):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.info("hello")
        output_module.format_response("world")
        captured = capfd.readouterr()
        assert "hello" in captured.err
        assert captured.out == "world\n"
