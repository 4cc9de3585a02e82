"""Formatting of per-device audit file rows."""

from __future__ import annotations

import json
from datetime import datetime

from netbatch.models.commands import Classification, CommandResult

ROW_SEPARATOR = "=" * 42


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def session_marker(now: datetime | None = None) -> str:
    """Header line written before the rows of each run."""
    stamp = (now or datetime.now().astimezone()).strftime("%d %b %y %H:%M %Z")
    return f"{'=' * 24} {_quote(stamp.strip())} {'=' * 23}\n"


def format_row(
    hostname: str,
    result: CommandResult,
    classification: Classification,
    configure: bool,
) -> str:
    """Render one command result as audit text.

    Config-mode rows are a single line. Read-only rows carry the raw output
    when accepted and only the error line when rejected.
    """
    head = (
        f"device: {_quote(hostname)}, command: {_quote(result.command)}, "
        f"accepted: {str(classification.accepted).lower()}, "
        f"error: {_quote(classification.error or '')}"
    )
    if configure:
        return head + "\n"
    if classification.accepted:
        return f"{head} output:\n{result.output}\n{ROW_SEPARATOR}\n"
    return f"{head}\n{ROW_SEPARATOR}\n"
