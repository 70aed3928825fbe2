from __future__ import annotations

from typing import Optional


class InstallerError(Exception):
    """Base class for every failure the installer knows how to report.

    ``soft`` errors are logged and let the transaction continue; everything
    else forces a rollback. ``exit_code`` is what the CLI returns when this
    error ends the run.
    """

    exit_code = 1
    soft = False


class SourceMissing(InstallerError):
    exit_code = 2

    def __init__(self, source: str) -> None:
        super().__init__(f"Source file does not exist: {source}")
        self.source = source


class CopyError(InstallerError):
    exit_code = 3

    def __init__(self, source: str, destination: str, reason: str) -> None:
        super().__init__(f"Failed to copy {source} -> {destination}: {reason}")
        self.source = source
        self.destination = destination


class PermissionDenied(InstallerError):
    exit_code = 4

    def __init__(self, path: str, action: str = "write") -> None:
        super().__init__(f"Permission denied ({action}): {path}")
        self.path = path


class DisplayManagerConfigError(InstallerError):
    exit_code = 5


class AccountError(InstallerError):
    exit_code = 6


class PrerequisiteError(InstallerError):
    exit_code = 7


class NotRootError(InstallerError):
    pass


class UserAborted(InstallerError):
    pass


class CommandError(InstallerError):
    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class TransactionInterrupted(InstallerError):
    exit_code = 130


class SoftError(InstallerError):
    soft = True


class DirectoryNotEmpty(SoftError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Directory not empty, left in place: {path}")
        self.path = path


class NoSupportedDisplayManager(SoftError):
    def __init__(self, message: str = "No supported display manager (lightdm, sddm, gdm) detected") -> None:
        super().__init__(message)


class UnsafeStateError(InstallerError):
    """A run record that another user could have written, or that points outside what we install."""

    exit_code = 8
