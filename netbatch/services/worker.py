"""Per-device worker: connect -> execute -> classify + persist.

One :class:`Worker` runs per device and all of them run concurrently. A
worker never raises: every device-scoped failure ends in a
:class:`DeviceState` and a log line.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from netbatch.config import Settings
from netbatch.models.commands import CommandError, CommandResult
from netbatch.models.device import Device, DeviceState
from netbatch.services.command_cache import CommandSet
from netbatch.services.gateway import (
    BatchError,
    CommandRunError,
    ConnectAttempt,
    ConnectError,
    ConnectErrorKind,
    GatewayInitError,
)
from netbatch.utils.audit import format_row, session_marker
from netbatch.utils.logging import get_logger
from netbatch.utils.output_classifier import classify, fold_state

log = get_logger(__name__)

# Closes the row and error queues.
_END = None


@dataclass(frozen=True)
class WorkerContext:
    """Run-wide dependencies handed to every worker."""

    settings: Settings
    gateway: Any
    commands: Mapping[str, CommandSet]

    @property
    def output_dir(self) -> Path:
        return self.settings.data.output_folder

    @property
    def error_markers(self) -> tuple[str, ...]:
        return tuple(self.settings.classifier.error_markers)


class Worker:
    """Owns the whole lifecycle of one device for one run."""

    def __init__(self, ctx: WorkerContext, device: Device) -> None:
        self._ctx = ctx
        self.device = device
        self._log = log.bind(device=device.hostname)

    async def run(self) -> Device:
        try:
            results = await self._collect()
            if results is not None:
                await self._process(results)
        except Exception:
            self._log.exception("worker.failed", state=self.device.state.value)
        self._log.info("worker.done", state=self.device.state.value)
        return self.device

    # ── connecting ────────────────────────────────────────────────────

    async def _connect(self, attempt: ConnectAttempt = ConnectAttempt.first):
        """Open a session, retrying once with legacy algorithms if needed.

        Returns None (with the device state set) when no session could be
        opened.
        """
        try:
            return await self._ctx.gateway.connect(self.device, attempt)
        except GatewayInitError as exc:
            self._log.error("worker.init_failed", error=str(exc))
            self.device.state = DeviceState.unknown
            return None
        except ConnectError as exc:
            if exc.kind is ConnectErrorKind.negotiation:
                if attempt is ConnectAttempt.first:
                    self._log.warning("worker.retry_legacy_ciphers", error=str(exc))
                    return await self._connect(ConnectAttempt.legacy)
                self._log.warning(
                    "worker.legacy_ciphers_rejected",
                    error=str(exc),
                    hint="adjust client.legacy_key_exchange / client.legacy_cipher",
                )
                self.device.state = DeviceState.unreachable
            elif exc.kind is ConnectErrorKind.auth:
                self._log.warning("worker.auth_failed", error=str(exc))
                self.device.state = DeviceState.auth_failure
            else:
                self._log.warning("worker.unreachable", error=str(exc))
                self.device.state = DeviceState.unreachable
            return None

    # ── executing ─────────────────────────────────────────────────────

    async def _collect(self) -> Optional[list[CommandResult]]:
        self._log.info("worker.connecting")
        session = await self._connect()
        if session is None:
            return None
        self._log.info("worker.connected")

        commands = self._ctx.commands[self.device.cmd_file]
        try:
            if self.device.configure:
                return await self._run_batch(session, commands)
            return await self._run_each(session, commands)
        finally:
            await session.close()

    async def _run_batch(self, session, commands: CommandSet) -> Optional[list[CommandResult]]:
        try:
            results = await session.run_batch(commands)
        except BatchError as exc:
            self._log.error("worker.configure_failed", error=str(exc))
            self.device.state = DeviceState.permission_problem
            return None
        self._log.info("worker.commands_sent", count=len(results))
        return results

    async def _run_each(self, session, commands: CommandSet) -> list[CommandResult]:
        results: list[CommandResult] = []
        for cmd in commands:
            try:
                output = await session.run(cmd)
            except CommandRunError as exc:
                self._log.error("worker.command_failed", cmd=cmd, error=str(exc))
                self.device.state = DeviceState.unknown
                continue
            results.append(CommandResult(command=cmd, output=output))
        self._log.info("worker.commands_sent", count=len(results))
        return results

    # ── classifying + persisting ──────────────────────────────────────

    async def _process(self, results: list[CommandResult]) -> None:
        rows: asyncio.Queue[Optional[str]] = asyncio.Queue()
        errors: asyncio.Queue[Optional[CommandError]] = asyncio.Queue()
        async with asyncio.TaskGroup() as tg:
            tg.create_task(self._classify(results, rows, errors))
            tg.create_task(self._drain_errors(errors))
            tg.create_task(self._persist(rows))

    async def _classify(
        self,
        results: Iterable[CommandResult],
        rows: asyncio.Queue,
        errors: asyncio.Queue,
    ) -> None:
        configure = self.device.configure
        try:
            for r in results:
                verdict = classify(r.output, configure, self._ctx.error_markers)
                self.device.state = fold_state(self.device.state, verdict)
                if not verdict.accepted:
                    await errors.put(
                        CommandError(
                            device=self.device.hostname,
                            command=r.command,
                            message=verdict.error or "",
                        ),
                    )
                await rows.put(format_row(self.device.hostname, r, verdict, configure))
        finally:
            await errors.put(_END)
            await rows.put(_END)

    async def _drain_errors(self, errors: asyncio.Queue) -> None:
        while (e := await errors.get()) is not _END:
            self._log.warning("worker.command_rejected", cmd=e.command, error=e.message)

    async def _persist(self, rows: asyncio.Queue) -> None:
        path = self._ctx.output_dir / self.device.audit_filename
        buffer = [session_marker()]
        while (row := await rows.get()) is not _END:
            buffer.append(row)

        self._log.info("worker.storing", path=str(path))
        try:
            await asyncio.to_thread(append_text, path, "".join(buffer))
        except OSError as exc:
            self._log.error("worker.store_failed", path=str(path), error=str(exc))
            return
        self._log.info("worker.stored", rows=len(buffer) - 1)


def append_text(path: Path, text: str) -> None:
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)


async def run_fleet(ctx: WorkerContext, devices: Iterable[Device]) -> list[Device]:
    """Start one worker per device, then wait for all of them."""
    tasks = [
        asyncio.create_task(Worker(ctx, d).run(), name=f"worker-{d.hostname}")
        for d in devices
    ]
    return list(await asyncio.gather(*tasks))
