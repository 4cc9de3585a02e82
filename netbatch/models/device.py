"""Device records and their run status."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class DeviceState(str, Enum):
    """Terminal status of one device for one run.

    Values are the strings shown in the summary table.
    """

    unknown = "Unknown"
    unreachable = "Unreachable"
    auth_failure = "SSH authentication failure"
    permission_problem = "Permission problem/Canceled"
    partially_accepted = "Commands accepted with errors"
    success = "Success"


class Device(BaseModel):
    """One roster entry.

    ``state`` is the only mutable field; it is written by the device's own
    worker and read by the summary once every worker has finished.
    """

    hostname: str
    login: str
    password: str = Field(repr=False)
    platform: str
    configure: bool = False
    cmd_file: str
    state: DeviceState = DeviceState.unknown

    model_config = {"validate_assignment": True}

    @property
    def audit_filename(self) -> str:
        return f"{self.hostname}_commandStatus.txt"
