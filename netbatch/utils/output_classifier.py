"""Accept/reject classification of raw CLI output."""

from __future__ import annotations

from typing import Sequence

from netbatch.models.commands import Classification
from netbatch.models.device import DeviceState

# ---------------------------------------------------------------------------
# Error detection
# ---------------------------------------------------------------------------

# Checked in order; a line starting with any of them is an error banner.
DEFAULT_ERROR_MARKERS: tuple[str, ...] = ("%", "Command rejected:")

# Query commands print their error banner at the head of the output.
READ_ONLY_SCAN_LINES = 3


def detect_cli_error(
    output: str,
    markers: Sequence[str] = DEFAULT_ERROR_MARKERS,
) -> str | None:
    """Return the first line starting with an error marker, or None."""
    for line in output.split("\n"):
        if line.startswith(tuple(markers)):
            return line
    return None


def scan_window(output: str, configure: bool) -> str:
    """Part of *output* that is inspected for error banners.

    Configuration commands are scanned in full; read-only commands only up
    to the first ``READ_ONLY_SCAN_LINES`` lines.
    """
    if configure:
        return output
    return "\n".join(output.split("\n")[:READ_ONLY_SCAN_LINES])


def classify(
    output: str,
    configure: bool,
    markers: Sequence[str] = DEFAULT_ERROR_MARKERS,
) -> Classification:
    error = detect_cli_error(scan_window(output, configure), markers)
    return Classification(accepted=error is None, error=error)


# ---------------------------------------------------------------------------
# State aggregation
# ---------------------------------------------------------------------------


def fold_state(current: DeviceState, result: Classification) -> DeviceState:
    """Next device state after one classified command.

    A rejection always yields ``partially_accepted``; an accepted command
    yields ``success`` unless an earlier rejection already stuck.
    """
    if not result.accepted:
        return DeviceState.partially_accepted
    if current is DeviceState.partially_accepted:
        return current
    return DeviceState.success
