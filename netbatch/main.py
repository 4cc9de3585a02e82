"""Run orchestration: roster -> command cache -> workers -> summary."""

from __future__ import annotations

import asyncio
import signal
import time
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from netbatch.config import Settings
from netbatch.models.device import Device
from netbatch.services import command_cache
from netbatch.services.gateway import ScrapliGateway
from netbatch.services.roster import load_roster
from netbatch.services.summary import render_summary, write_summary
from netbatch.services.worker import WorkerContext, run_fleet
from netbatch.utils.logging import get_logger

log = get_logger(__name__)


class RunOutcome(BaseModel):
    devices: list[Device]
    summary: str
    cancelled: bool = False
    elapsed: float = 0.0


def prepare_output_dir(path: Path) -> None:
    """Create the output directory if needed (errors are startup-fatal)."""
    if path.is_dir():
        log.debug("output_dir.exists", path=str(path))
        return
    path.mkdir(parents=True, exist_ok=True)
    log.info("output_dir.created", path=str(path))


def _install_signal_handlers(cancel: asyncio.Event) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    def _on_signal(sig: signal.Signals) -> None:
        log.error("run.signal_caught", signal=sig.name)
        cancel.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform / not the main thread
            continue
        installed.append(sig)
    return installed


def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)


async def run_app(
    cfg: Settings,
    *,
    gateway: Optional[Any] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> RunOutcome:
    """Execute one full run.

    *gateway* replaces the scrapli gateway (tests); startup-fatal errors
    (roster, command files, output directory) propagate to the caller.
    """
    start = time.monotonic()

    devices: list[Device] = load_roster(cfg.roster_path)
    commands = command_cache.build(devices, cfg.data.input_folder)
    prepare_output_dir(cfg.data.output_folder)

    cancel = cancel_event or asyncio.Event()
    installed = _install_signal_handlers(cancel)
    gw = gateway or ScrapliGateway(cfg, cancel, max_workers=len(devices))
    try:
        ctx = WorkerContext(settings=cfg, gateway=gw, commands=commands)
        await run_fleet(ctx, devices)
    finally:
        _remove_signal_handlers(installed)
        if gateway is None:
            gw.shutdown()

    summary = render_summary(devices)
    write_summary(summary, cfg.results_path)

    elapsed = time.monotonic() - start
    log.info("run.finished", devices=len(devices), elapsed=round(elapsed, 2))
    return RunOutcome(
        devices=devices,
        summary=summary,
        cancelled=cancel.is_set(),
        elapsed=elapsed,
    )
