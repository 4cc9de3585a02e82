"""Tests for the fleet summary table."""

from __future__ import annotations

from datetime import datetime, timezone

from netbatch.models.device import DeviceState
from netbatch.services.summary import render_summary, write_summary

NOW = datetime(2026, 10, 19, 13, 5, tzinfo=timezone.utc)


def test_summary_lists_every_device(make_device):
    ok = make_device("core-sw1")
    ok.state = DeviceState.success
    bad = make_device("edge-rtr1", configure=False, platform="nxos")
    bad.state = DeviceState.auth_failure

    text = render_summary([ok, bad], now=NOW)

    for header in ("Device", "OS type", "configure", "Command Run Status"):
        assert header in text
    assert "core-sw1" in text
    assert "edge-rtr1" in text
    assert "nxos" in text
    assert "Success" in text
    assert "SSH authentication failure" in text
    assert "19 Oct 26 13:05 UTC" in text
    assert "\x1b[" not in text


def test_summary_rows_follow_roster_order(make_device):
    devices = [make_device(h) for h in ("zeta", "alpha", "mid")]
    text = render_summary(devices, now=NOW)
    assert text.index("zeta") < text.index("alpha") < text.index("mid")


def test_write_summary_appends(tmp_path):
    path = tmp_path / "results.txt"
    write_summary("first\n", path)
    write_summary("second\n", path)
    assert path.read_text(encoding="utf-8") == "first\nsecond\n"


def test_write_summary_failure_is_logged(tmp_path):
    # Directory does not exist: logged, not raised
    write_summary("x", tmp_path / "missing" / "results.txt")
