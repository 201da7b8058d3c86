"""Error types raised by the gsftp components."""

from __future__ import annotations


class GsftpError(Exception):
    """Base class for every failure the entrypoint reports."""

    exit_code = 1


class UsageError(GsftpError):
    exit_code = 2


class ConnectError(GsftpError):
    pass


class AuthenticationError(GsftpError):
    pass


class SubsystemStartError(GsftpError):
    pass


class FileOperationError(GsftpError):
    pass


class IOStreamError(GsftpError):
    pass


class WalkEntryError(GsftpError):
    """Per-entry walk failure. Carried by walk results, never raised past the walker."""

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause


__all__ = [
    "GsftpError",
    "UsageError",
    "ConnectError",
    "AuthenticationError",
    "SubsystemStartError",
    "FileOperationError",
    "IOStreamError",
    "WalkEntryError",
]
