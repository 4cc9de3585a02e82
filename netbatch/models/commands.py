"""Command-related data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class CommandResult(BaseModel):
    """A command paired with the raw text the device returned for it."""

    command: str
    output: str


class Classification(BaseModel):
    """Accept/reject judgment for one command result."""

    accepted: bool
    error: Optional[str] = None


class CommandError(BaseModel):
    """A rejected command, as reported to the log sink."""

    device: str
    command: str
    message: str
