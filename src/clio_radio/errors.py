"""Exceptions raised by clio-radio components."""

from __future__ import annotations

from typing import Optional


class ClioError(Exception):
    """Base exception for all application-specific errors."""


class PlayerError(ClioError):
    """Raised for failures talking to or running the mpv decoder."""


class EndpointConnectError(PlayerError):
    """Raised when the mpv IPC socket cannot be connected to."""


class EndpointTimeout(PlayerError):
    """Raised when mpv does not answer an IPC request in time."""


class MalformedResponse(PlayerError):
    """Raised when an IPC response line is not a JSON object."""


class LaunchError(PlayerError):
    """Raised when the mpv process cannot be started."""


class AbnormalExit(PlayerError):
    """Raised for an mpv process that exited with a failure status."""

    def __init__(self, returncode: Optional[int]) -> None:
        super().__init__(f"mpv exited with status {returncode}")
        self.returncode = returncode


class InvalidInput(PlayerError):
    """Raised when a station has no usable stream url."""


class DirectoryError(ClioError):
    """Raised when the station directory cannot be searched."""
