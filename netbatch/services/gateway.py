"""SSH session gateway built on scrapli core drivers.

scrapli's synchronous drivers (paramiko transport by default) run inside a
thread pool so the asyncio event loop driving the per-device workers is
never blocked. Every blocking call is raced against the run's cancellation
event.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Sequence

from scrapli.driver import NetworkDriver
from scrapli.driver.core import (
    EOSDriver,
    IOSXEDriver,
    IOSXRDriver,
    JunosDriver,
    NXOSDriver,
)
from scrapli.exceptions import ScrapliAuthenticationFailed

from netbatch.config import Settings
from netbatch.models.commands import CommandResult
from netbatch.models.device import Device
from netbatch.utils.logging import get_logger

log = get_logger(__name__)

PLATFORM_DRIVERS: dict[str, type[NetworkDriver]] = {
    "ios": IOSXEDriver,
    "iosxe": IOSXEDriver,
    "nxos": NXOSDriver,
    "iosxr": IOSXRDriver,
    "eos": EOSDriver,
    "junos": JunosDriver,
}

# Lower-cased fragments of paramiko / OpenSSH / scrapli error messages.
NEGOTIATION_MARKERS: tuple[str, ...] = (
    "no common algorithm",
    "no matching key exchange",
    "no matching cipher",
    "unable to negotiate",
    "incompatible ssh peer",
    "no acceptable",
)
AUTH_MARKERS: tuple[str, ...] = (
    "unable to authenticate",
    "authentication failed",
    "permission denied",
)


# ── errors ────────────────────────────────────────────────────────────────


class ConnectAttempt(str, Enum):
    first = "first"
    legacy = "legacy"


class ConnectErrorKind(str, Enum):
    unreachable = "unreachable"
    auth = "auth"
    negotiation = "negotiation"


class GatewayError(Exception):
    """Base class for session gateway failures."""


class GatewayInitError(GatewayError):
    """The driver for a device could not be built (e.g. unknown platform)."""


class ConnectError(GatewayError):
    def __init__(self, kind: ConnectErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class BatchError(GatewayError):
    """A configuration batch was rejected as a whole."""


class CommandRunError(GatewayError):
    """A single read-only command failed."""


class RunCancelled(GatewayError):
    """The run was cancelled while a gateway call was pending."""


def _error_chain_text(exc: BaseException) -> str:
    parts: list[str] = []
    seen: set[int] = set()
    cur: BaseException | None = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        parts.append(f"{type(cur).__name__}: {cur}")
        cur = cur.__cause__ or cur.__context__
    return " | ".join(parts).lower()


def classify_connect_error(exc: BaseException) -> ConnectErrorKind:
    """Map a dial failure onto the connection error classes.

    Negotiation problems are checked first: OpenSSH reports them through the
    same exception type scrapli uses for authentication failures.
    """
    text = _error_chain_text(exc)
    if any(m in text for m in NEGOTIATION_MARKERS):
        return ConnectErrorKind.negotiation
    if isinstance(exc, ScrapliAuthenticationFailed) or any(
        m in text for m in AUTH_MARKERS
    ):
        return ConnectErrorKind.auth
    return ConnectErrorKind.unreachable


# ── session ───────────────────────────────────────────────────────────────


class ScrapliSession:
    """An open session to one device."""

    def __init__(self, gateway: ScrapliGateway, driver: NetworkDriver, hostname: str) -> None:
        self._gateway = gateway
        self._driver = driver
        self.hostname = hostname

    async def run_batch(self, commands: Sequence[str]) -> list[CommandResult]:
        """Send config commands (scrapli handles entering/leaving config mode)."""
        try:
            return await self._gateway._call(
                _send_configs_wrapper, self._driver, list(commands),
            )
        except Exception as exc:
            raise BatchError(str(exc) or type(exc).__name__) from exc

    async def run(self, command: str) -> str:
        try:
            return await self._gateway._call(
                _send_command_wrapper, self._driver, command,
            )
        except Exception as exc:
            raise CommandRunError(str(exc) or type(exc).__name__) from exc

    async def close(self) -> None:
        # Not raced against cancellation: the transport must be released.
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._gateway._executor, _close_wrapper, self._driver)
        log.debug("ssh.closed", device=self.hostname)


# ── gateway ───────────────────────────────────────────────────────────────


class ScrapliGateway:
    """Opens scrapli sessions for devices of one run."""

    def __init__(
        self,
        cfg: Settings,
        cancel_event: asyncio.Event | None = None,
        max_workers: int | None = None,
    ) -> None:
        self._cfg = cfg
        self._cancel = cancel_event or asyncio.Event()
        # One thread per device unless capped
        workers = max(1, max_workers or 1)
        if cfg.client.max_ssh_threads:
            workers = min(workers, cfg.client.max_ssh_threads)
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ssh")

    def build_driver(self, device: Device, attempt: ConnectAttempt) -> NetworkDriver:
        driver_cls = PLATFORM_DRIVERS.get(device.platform)
        if driver_cls is None:
            raise GatewayInitError(f"unsupported platform {device.platform!r}")

        client = self._cfg.client
        kwargs: dict[str, Any] = dict(
            host=device.hostname,
            auth_username=device.login,
            auth_password=device.password,
            auth_strict_key=False,
            transport=client.ssh_transport,
            timeout_socket=client.ssh_timeout,
            timeout_transport=client.ssh_timeout,
            timeout_ops=client.command_timeout,
        )
        if attempt is ConnectAttempt.legacy:
            # Legacy algorithms are appended to OpenSSH's defaults
            kwargs["transport"] = "system"
            kwargs["transport_options"] = {
                "open_cmd": [
                    "-o", f"KexAlgorithms=+{client.legacy_key_exchange}",
                    "-o", f"Ciphers=+{client.legacy_cipher}",
                ],
            }
        try:
            return driver_cls(**kwargs)
        except Exception as exc:
            raise GatewayInitError(f"unable to initialize device: {exc}") from exc

    async def connect(
        self,
        device: Device,
        attempt: ConnectAttempt = ConnectAttempt.first,
    ) -> ScrapliSession:
        driver = self.build_driver(device, attempt)
        log.info("ssh.connecting", device=device.hostname, attempt=attempt.value)
        try:
            await self._call(_open_wrapper, driver)
        except RunCancelled as exc:
            raise ConnectError(ConnectErrorKind.unreachable, "run cancelled") from exc
        except Exception as exc:
            raise ConnectError(classify_connect_error(exc), str(exc)) from exc
        return ScrapliSession(self, driver, device.hostname)

    async def _call(self, fn, *args):
        """Run *fn* in the executor unless or until the run is cancelled."""
        if self._cancel.is_set():
            raise RunCancelled()
        loop = asyncio.get_running_loop()
        fut = loop.run_in_executor(self._executor, fn, *args)
        stopper = asyncio.ensure_future(self._cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {fut, stopper}, return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            stopper.cancel()
        if fut in done:
            return fut.result()
        fut.cancel()
        raise RunCancelled()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


# ── module-level sync wrappers (executor-friendly) ────────────────────────


def _open_wrapper(driver: NetworkDriver) -> None:
    driver.open()


def _close_wrapper(driver: NetworkDriver) -> None:
    try:
        driver.close()
    except Exception as exc:
        log.debug("ssh.close_failed", error=str(exc))


def _send_command_wrapper(driver: NetworkDriver, command: str) -> str:
    return driver.send_command(command).result


def _send_configs_wrapper(driver: NetworkDriver, configs: list[str]) -> list[CommandResult]:
    multi = driver.send_configs(configs, stop_on_failed=False)
    return [
        CommandResult(command=resp.channel_input, output=resp.result)
        for resp in multi
    ]
