from __future__ import annotations

import logging
import os
import pwd
import re
from typing import Callable, Mapping, Optional

from ..errors import AccountError, NotRootError
from .command import run_cmd
from .prompt import ask

logger = logging.getLogger(__name__)

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_USERNAME_LENGTH = 32


def is_root() -> bool:
    return os.geteuid() == 0


def require_root(command: str) -> None:
    if not is_root():
        raise NotRootError(f"This command must be run as root. Use 'sudo steam-gamescope-installer {command}'")


def user_exists(name: str) -> bool:
    try:
        pwd.getpwnam(name)
    except KeyError:
        return False
    return True


def _login_name() -> str:
    # logname reports the user owning the controlling terminal, even under sudo.
    r = run_cmd(["logname"], check=False)
    return r.stdout.strip() if r.returncode == 0 else ""


def detect_invoking_user(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    return _login_name() or env.get("SUDO_USER", "") or env.get("USER", "")


def resolve_account(
    explicit: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    reader: Optional[Callable[[str], str]] = None,
) -> str:
    """Pick the account autologin and the session are installed for.

    Order: ``explicit``, then the invoking user; root or nothing means we
    have to ask.
    """

    name = (explicit or "").strip() or detect_invoking_user(environ)
    if not name or name == "root":
        name = ask("Please enter the username of the primary user: ", reader=reader)
    if not name:
        raise AccountError("Username cannot be empty")
    return name


def validate_username(
    name: str,
    *,
    must_exist: bool = True,
    exists: Optional[Callable[[str], bool]] = None,
) -> str:
    exists = exists or user_exists
    if not name:
        raise AccountError("Username cannot be empty")
    if not _USERNAME_RE.match(name):
        raise AccountError(
            "Username contains invalid characters. Only alphanumeric, underscore, and hyphen are allowed."
        )
    if len(name) > MAX_USERNAME_LENGTH:
        raise AccountError(f"Username is too long (maximum {MAX_USERNAME_LENGTH} characters)")
    if not exists(name):
        if must_exist:
            raise AccountError(f"User '{name}' does not exist")
        logger.warning("User '%s' does not exist", name)
    else:
        logger.debug("Username '%s' validated successfully", name)
    return name
