from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict

import yaml

from .errors import UnsafeStateError

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str) -> Dict[str, Any]:
    """Load a persisted run record (tracker log, autologin snapshot).

    A missing file is an empty record.
    """

    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    if _detect_format(p) in {"yaml", "yml"}:
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text) if text.strip() else {}

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    """Write ``state`` and fsync it so a crash right after still leaves it on disk."""

    p = Path(path)
    if not p.parent.exists():
        p.parent.mkdir(mode=0o700, parents=True)
        os.chmod(p.parent, 0o700)

    if _detect_format(p) in {"yaml", "yml"}:
        payload = yaml.safe_dump(state, sort_keys=False)
    else:
        payload = json.dumps(state, indent=2, sort_keys=True) + "\n"

    fd, tmp = tempfile.mkstemp(prefix=f".{p.name}.", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, p)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def remove_state(path: str) -> bool:
    """Delete a persisted record. Returns True if a file was removed."""

    p = Path(path)
    try:
        p.unlink()
    except FileNotFoundError:
        return False
    logger.debug("Removed state file %s", p)
    return True


def check_private(path: str) -> None:
    """Refuse a record (or its directory) that another user could have written.

    Both must be owned by the effective uid, not be symlinks and not be
    group/world-writable. Raises UnsafeStateError.
    """

    p = Path(path)
    uid = os.geteuid()
    for target in (p.parent, p):
        st = os.lstat(target)
        if stat.S_ISLNK(st.st_mode):
            raise UnsafeStateError(f"Refusing run record {p}: {target} is a symlink")
        if st.st_uid != uid:
            raise UnsafeStateError(f"Refusing run record {p}: {target} is owned by uid {st.st_uid}")
        if st.st_mode & (stat.S_IWGRP | stat.S_IWOTH):
            raise UnsafeStateError(f"Refusing run record {p}: {target} is writable by other users")
