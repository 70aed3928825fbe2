from __future__ import annotations

import errno
import logging
import os
import shutil
import tempfile
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .errors import CopyError, PermissionDenied, SourceMissing
from .tracker import MutationTracker, PathKind

logger = logging.getLogger(__name__)


class RemoveOutcome(str, Enum):
    REMOVED = "removed"
    ABSENT = "absent"
    NOT_EMPTY = "not_empty"


def _is_permission_error(e: OSError) -> bool:
    return isinstance(e, PermissionError) or e.errno in (errno.EACCES, errno.EPERM, errno.EROFS)


def ensure_directory(path: str | os.PathLike, tracker: MutationTracker) -> List[Path]:
    """Create ``path`` and any missing ancestors, recording each one created.

    Ancestors are created (and recorded) top-down so a reverse replay removes
    the deepest directory first.
    """

    target = Path(path)
    missing: List[Path] = []
    cur = target
    while not cur.exists():
        missing.append(cur)
        if cur.parent == cur:
            break
        cur = cur.parent

    created: List[Path] = []
    for d in reversed(missing):
        try:
            d.mkdir()
        except FileExistsError:
            continue
        except OSError as e:
            if _is_permission_error(e):
                raise PermissionDenied(str(d), "mkdir") from e
            raise CopyError("-", str(d), f"mkdir failed: {e}") from e
        tracker.record(d, PathKind.DIRECTORY)
        created.append(d)
        logger.debug("Created directory %s", d)
    return created


BACKUP_SUFFIX = ".gamescope-backup"


def backup_path_for(path: str | os.PathLike) -> Path:
    """Free sibling name ``.<name>.gamescope-backup[.N]`` to park an existing file under."""
    p = Path(path)
    candidate = p.with_name(f".{p.name}{BACKUP_SUFFIX}")
    n = 1
    while os.path.lexists(candidate):
        candidate = p.with_name(f".{p.name}{BACKUP_SUFFIX}.{n}")
        n += 1
    return candidate


def is_backup_of(backup: str | os.PathLike, path: str | os.PathLike) -> bool:
    b, p = Path(backup), Path(path)
    return b.parent == p.parent and b.name.startswith(f".{p.name}{BACKUP_SUFFIX}")


def _move_aside(dst: Path, mode: int, tracker: MutationTracker) -> Path:
    """Park an existing ``dst`` next to itself; replay moves it back."""
    if dst.is_dir() and not dst.is_symlink():
        raise CopyError("-", str(dst), "destination is a directory")
    backup = backup_path_for(dst)
    # Recorded first: a crash before the move leaves an entry replay skips.
    tracker.record(dst, PathKind.REPLACED, mode, backup=backup)
    try:
        os.replace(dst, backup)
    except OSError as e:
        if _is_permission_error(e):
            raise PermissionDenied(str(dst), "move aside") from e
        raise CopyError(str(dst), str(backup), str(e)) from e
    logger.info("Existing %s moved aside to %s", dst, backup)
    return backup


def install_file(
    source: str | os.PathLike,
    destination: str | os.PathLike,
    mode: int,
    tracker: MutationTracker,
) -> Path:
    """Copy ``source`` to ``destination`` byte-for-byte and chmod it to ``mode``.

    A destination that already exists is moved aside first, so rollback puts
    the original back instead of deleting it.
    """

    src = Path(source)
    dst = Path(destination)
    if not src.is_file():
        raise SourceMissing(str(src))

    ensure_directory(dst.parent, tracker)

    fresh = False
    if dst not in tracker:
        if os.path.lexists(dst):
            _move_aside(dst, mode, tracker)
        else:
            fresh = True

    try:
        shutil.copyfile(src, dst)
        os.chmod(dst, mode)
    except OSError as e:
        # A half-written new file still belongs to this run.
        if fresh and os.path.lexists(dst):
            tracker.record(dst, PathKind.FILE, mode)
        if _is_permission_error(e):
            raise PermissionDenied(str(dst)) from e
        raise CopyError(str(src), str(dst), str(e)) from e

    tracker.record(dst, PathKind.FILE, mode)
    logger.debug("Installed: %s (permissions: %o)", dst, mode)
    return dst


def remove_path(path: str | os.PathLike) -> RemoveOutcome:
    """Remove a file or an empty directory; safe to call on anything.

    A non-empty directory is left in place and reported as ``NOT_EMPTY``.
    """

    p = Path(path)
    try:
        if p.is_symlink() or p.is_file():
            p.unlink()
            logger.info("Removed: %s", p)
            return RemoveOutcome.REMOVED
        if p.is_dir():
            if any(p.iterdir()):
                return RemoveOutcome.NOT_EMPTY
            p.rmdir()
            logger.info("Removed empty directory: %s", p)
            return RemoveOutcome.REMOVED
    except FileNotFoundError:
        pass
    except OSError as e:
        if _is_permission_error(e):
            raise PermissionDenied(str(p), "remove") from e
        raise

    logger.debug("File/directory not found, skipping: %s", p)
    return RemoveOutcome.ABSENT


def write_text_atomic(path: str | os.PathLike, text: str, mode: Optional[int] = 0o644) -> None:
    """Replace ``path`` with ``text`` via a temp file in the same directory.

    ``mode=None`` keeps the permission bits of the file being replaced.
    """

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{p.name}.", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape") as fh:
            fh.write(text)
        if mode is None and p.exists():
            shutil.copymode(p, tmp)
        else:
            os.chmod(tmp, 0o644 if mode is None else mode)
        os.replace(tmp, p)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
