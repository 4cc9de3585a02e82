"""Fleet-wide summary table, rendered once every worker has finished."""

from __future__ import annotations

import io
from datetime import datetime
from pathlib import Path
from typing import Iterable

from rich.console import Console
from rich.table import Table

from netbatch.models.device import Device
from netbatch.utils.logging import get_logger

log = get_logger(__name__)

SUMMARY_WIDTH = 120


def build_table(devices: Iterable[Device], now: datetime | None = None) -> Table:
    stamp = (now or datetime.now().astimezone()).strftime("%d %b %y %H:%M %Z").strip()
    table = Table(show_header=True, show_footer=True)
    table.add_column("Device")
    table.add_column("OS type")
    table.add_column("configure")
    table.add_column("Command Run Status", footer=stamp)
    for d in devices:
        table.add_row(d.hostname, d.platform, str(d.configure).lower(), d.state.value)
    return table


def render_summary(devices: Iterable[Device], now: datetime | None = None) -> str:
    """Render the summary as plain text (no colour codes)."""
    buf = io.StringIO()
    console = Console(file=buf, width=SUMMARY_WIDTH, color_system=None, force_terminal=False)
    console.print(build_table(devices, now))
    return buf.getvalue()


def write_summary(text: str, path: Path) -> None:
    """Append *text* to the results file; failures are logged, not raised."""
    log.info("summary.writing", path=str(path))
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(text)
    except OSError as exc:
        log.error("summary.write_failed", path=str(path), error=str(exc))
        return
    log.info("summary.written")
