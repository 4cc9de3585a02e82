"""Command-file loading shared by all devices of a run."""

from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

from netbatch.models.device import Device
from netbatch.utils.logging import get_logger

log = get_logger(__name__)

CommandSet = tuple[str, ...]


class CommandFileError(RuntimeError):
    """A command file referenced by the roster could not be read."""


def read_command_file(path: Path) -> CommandSet:
    """Read *path* line by line; blank lines are kept as commands."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return tuple(line.rstrip("\r\n") for line in f)
    except OSError as exc:
        raise CommandFileError(f"unable to open commands file {path}: {exc}") from exc


def build(roster: Iterable[Device], input_dir: Path) -> Mapping[str, CommandSet]:
    """Load every distinct command file referenced by *roster* once.

    Devices sharing a ``cmd_file`` share the same tuple. The returned
    mapping is read-only.
    """
    log.info("cmd_cache.building")
    cache: dict[str, CommandSet] = {}
    for device in roster:
        if device.cmd_file in cache:
            continue
        cache[device.cmd_file] = read_command_file(input_dir / device.cmd_file)
        log.debug(
            "cmd_cache.loaded",
            file=device.cmd_file,
            commands=len(cache[device.cmd_file]),
        )
    log.info("cmd_cache.built", files=len(cache))
    return MappingProxyType(cache)
