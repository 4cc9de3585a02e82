"""Device roster (CSV) ingestion."""

from __future__ import annotations

import csv
from pathlib import Path

from pydantic import ValidationError

from netbatch.models.device import Device
from netbatch.utils.logging import get_logger

log = get_logger(__name__)

REQUIRED_COLUMNS = ("hostname", "login", "password", "platform", "configure", "cmdFile")

# Older rosters name the platform column after the OS.
_COLUMN_ALIASES = {"osType": "platform", "CmdFile": "cmdFile"}

_TRUE = {"true", "yes", "y", "1"}
_FALSE = {"false", "no", "n", "0", ""}


class RosterError(ValueError):
    """The roster file is missing or malformed."""


def _parse_bool(value: str, line: int) -> bool:
    v = value.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise RosterError(f"line {line}: invalid configure value {value!r}")


def parse_roster(lines) -> list[Device]:
    """Parse CSV rows (any iterable of text lines) into devices."""
    reader = csv.DictReader(lines)
    if reader.fieldnames is None:
        raise RosterError("roster is empty")
    reader.fieldnames = [
        _COLUMN_ALIASES.get(name.strip(), name.strip()) for name in reader.fieldnames
    ]
    missing = [c for c in REQUIRED_COLUMNS if c not in reader.fieldnames]
    if missing:
        raise RosterError(f"roster is missing columns: {', '.join(missing)}")

    devices: list[Device] = []
    seen: set[str] = set()
    for row in reader:
        line = reader.line_num
        if any(row.get(c) is None for c in REQUIRED_COLUMNS):
            raise RosterError(f"line {line}: row has too few fields")
        hostname = row["hostname"].strip()
        if not hostname:
            raise RosterError(f"line {line}: empty hostname")
        if hostname in seen:
            raise RosterError(f"line {line}: duplicate hostname {hostname!r}")
        seen.add(hostname)
        try:
            devices.append(
                Device(
                    hostname=hostname,
                    login=row["login"].strip(),
                    password=row["password"],
                    platform=row["platform"].strip().lower(),
                    configure=_parse_bool(row["configure"], line),
                    cmd_file=row["cmdFile"].strip(),
                ),
            )
        except ValidationError as exc:
            raise RosterError(f"line {line}: {exc}") from exc
    return devices


def load_roster(path: Path) -> list[Device]:
    """Read the roster file at *path*."""
    log.info("roster.decoding", path=str(path))
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            devices = parse_roster(f)
    except OSError as exc:
        raise RosterError(f"unable to read roster {path}: {exc}") from exc
    log.info("roster.decoded", devices=len(devices))
    return devices
