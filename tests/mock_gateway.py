"""Mock session gateway for testing workers without real devices.

Provides canned IOS outputs and lets tests script connect/batch/command
failures per device.
"""

from __future__ import annotations

from typing import Sequence

from netbatch.models.commands import CommandResult
from netbatch.models.device import Device
from netbatch.services.gateway import (
    BatchError,
    CommandRunError,
    ConnectAttempt,
    ConnectError,
    ConnectErrorKind,
    GatewayError,
)

# ── Canned IOS outputs ────────────────────────────────────────────────────

SHOW_VERSION = """\
Cisco IOS Software, C2900 Software (C2900-UNIVERSALK9-M), Version 15.7(3)M8, RELEASE SOFTWARE (fc1)
Technical Support: http://www.cisco.com/techsupport
Copyright (c) 1986-2021 by Cisco Systems, Inc.

ROM: System Bootstrap, Version 15.0(1r)M16, RELEASE SOFTWARE (fc1)

Router uptime is 14 days, 3 hours, 22 minutes
"""

SHOW_IP_INT_BRIEF = """\
Interface              IP-Address      OK? Method Status                Protocol
GigabitEthernet0/0     10.20.102.11    YES NVRAM  up                    up
GigabitEthernet0/1     unassigned      YES NVRAM  administratively down down
"""

INVALID_INPUT = "% Invalid input"

INCOMPLETE_COMMAND = """\
% Incomplete command.
Interface              IP-Address      OK? Method Status                Protocol
GigabitEthernet0/0     10.20.102.11    YES NVRAM  up                    up
GigabitEthernet0/1     unassigned      YES NVRAM  administratively down down
% Unrelated trailing banner
"""

_CANNED: dict[str, str] = {
    "show version": SHOW_VERSION,
    "show ip interface brief": SHOW_IP_INT_BRIEF,
}


def negotiation_error() -> ConnectError:
    return ConnectError(
        ConnectErrorKind.negotiation,
        "ssh: handshake failed: no common algorithm for key exchange",
    )


def auth_error() -> ConnectError:
    return ConnectError(ConnectErrorKind.auth, "unable to authenticate")


def unreachable_error() -> ConnectError:
    return ConnectError(ConnectErrorKind.unreachable, "dial tcp: i/o timeout")


# ── Mock gateway ─────────────────────────────────────────────────────────


class MockSession:
    def __init__(self, gateway: MockGateway, hostname: str) -> None:
        self._gw = gateway
        self.hostname = hostname

    async def run_batch(self, commands: Sequence[str]) -> list[CommandResult]:
        self._gw.batches.append((self.hostname, list(commands)))
        if self.hostname in self._gw.batch_failures:
            raise BatchError(self._gw.batch_failures[self.hostname])
        return [
            CommandResult(command=cmd, output=self._gw.lookup(self.hostname, cmd))
            for cmd in commands
        ]

    async def run(self, command: str) -> str:
        self._gw.sent_commands.append((self.hostname, command))
        if (self.hostname, command) in self._gw.command_failures:
            raise CommandRunError(f"unable to run command {command}")
        return self._gw.lookup(self.hostname, command)

    async def close(self) -> None:
        self._gw.closed.append(self.hostname)


class MockGateway:
    """Drop-in replacement for ScrapliGateway using canned outputs."""

    def __init__(self) -> None:
        self.connect_attempts: list[tuple[str, ConnectAttempt]] = []
        self.batches: list[tuple[str, list[str]]] = []
        self.sent_commands: list[tuple[str, str]] = []
        self.closed: list[str] = []
        self.batch_failures: dict[str, str] = {}
        self.command_failures: set[tuple[str, str]] = set()
        self._connect_errors: dict[str, list[GatewayError]] = {}
        self._extra: dict[tuple[str | None, str], str] = {}

    def add_response(self, command: str, output: str, device: str | None = None) -> None:
        """Add or override a canned response, optionally for one device."""
        self._extra[(device, command)] = output

    def fail_connect(self, hostname: str, *errors: GatewayError) -> None:
        """Queue errors raised by successive connect attempts."""
        self._connect_errors.setdefault(hostname, []).extend(errors)

    def fail_batch(self, hostname: str, message: str = "privilege escalation failed") -> None:
        self.batch_failures[hostname] = message

    def fail_command(self, hostname: str, command: str) -> None:
        self.command_failures.add((hostname, command))

    def lookup(self, hostname: str, command: str) -> str:
        if (hostname, command) in self._extra:
            return self._extra[(hostname, command)]
        if (None, command) in self._extra:
            return self._extra[(None, command)]
        return _CANNED.get(command, "")

    async def connect(
        self,
        device: Device,
        attempt: ConnectAttempt = ConnectAttempt.first,
    ) -> MockSession:
        self.connect_attempts.append((device.hostname, attempt))
        pending = self._connect_errors.get(device.hostname)
        if pending:
            raise pending.pop(0)
        return MockSession(self, device.hostname)
