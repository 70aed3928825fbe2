from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .state_store import load_state, remove_state, save_state

logger = logging.getLogger(__name__)


class PathKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    # An existing file moved aside to `backup`; replay moves it back.
    REPLACED = "replaced"


@dataclass(frozen=True)
class InstalledPath:
    path: str
    kind: PathKind
    mode: Optional[int] = None
    backup: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"path": self.path, "kind": self.kind.value}
        if self.mode is not None:
            d["mode"] = oct(self.mode)
        if self.backup is not None:
            d["backup"] = self.backup
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InstalledPath":
        mode = d.get("mode")
        return cls(
            path=str(d["path"]),
            kind=PathKind(d.get("kind", PathKind.FILE.value)),
            mode=int(mode, 8) if isinstance(mode, str) else mode,
            backup=str(d["backup"]) if d.get("backup") is not None else None,
        )


@dataclass
class ReplaySummary:
    removed: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    restored: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    def describe(self) -> str:
        return (
            f"removed={len(self.removed)} restored={len(self.restored)} kept(non-empty)={len(self.kept)} "
            f"missing={len(self.missing)} failed={len(self.failed)}"
        )


class MutationTracker:
    """Ordered log of every path this run created or replaced.

    The log is rewritten to ``log_path`` after each record so a crashed run
    can still be rolled back offline; in-process rollback uses the in-memory
    copy. ``log_path=None`` keeps the log in memory only.
    """

    def __init__(self, log_path: Optional[str] = None) -> None:
        self.log_path = log_path
        self._entries: List[InstalledPath] = []
        self._seen: set[str] = set()

    @property
    def entries(self) -> Tuple[InstalledPath, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return str(path) in self._seen

    @classmethod
    def load(cls, log_path: str) -> "MutationTracker":
        tracker = cls(log_path)
        for raw in load_state(log_path).get("entries") or []:
            entry = InstalledPath.from_dict(raw)
            if entry.path not in tracker._seen:
                tracker._seen.add(entry.path)
                tracker._entries.append(entry)
        return tracker

    def record(
        self,
        path: str | os.PathLike,
        kind: PathKind,
        mode: Optional[int] = None,
        backup: Optional[str | os.PathLike] = None,
    ) -> bool:
        """Append ``path``. Returns False if it was already recorded."""
        p = str(path)
        if p in self._seen:
            return False
        self._seen.add(p)
        self._entries.append(
            InstalledPath(path=p, kind=kind, mode=mode, backup=str(backup) if backup is not None else None)
        )
        self._flush()
        logger.debug("Tracked %s %s", kind.value, p)
        return True

    def _flush(self) -> None:
        if self.log_path:
            save_state(self.log_path, {"entries": [e.to_dict() for e in self._entries]})

    def replay(self) -> ReplaySummary:
        """Undo every recorded path, newest first. Never raises for a single entry."""

        summary = ReplaySummary()
        for entry in reversed(self._entries):
            try:
                if entry.kind is PathKind.DIRECTORY:
                    self._undo_directory(entry.path, summary)
                elif entry.kind is PathKind.REPLACED:
                    self._undo_replace(entry, summary)
                else:
                    self._undo_file(entry.path, summary)
            except OSError as e:
                logger.warning("Rollback could not undo %s: %s", entry.path, e)
                summary.failed.append((entry.path, str(e)))

        # A backup that could not be moved back is the only copy left.
        self.clear(discard_backups=False)
        logger.info("Rollback of tracked paths finished (%s)", summary.describe())
        return summary

    @staticmethod
    def _undo_file(path: str, summary: ReplaySummary) -> None:
        p = Path(path)
        if not (p.exists() or p.is_symlink()):
            logger.info("Already gone: %s", path)
            summary.missing.append(path)
            return
        p.unlink()
        logger.info("Removed: %s", path)
        summary.removed.append(path)

    @staticmethod
    def _undo_replace(entry: InstalledPath, summary: ReplaySummary) -> None:
        if not (entry.backup and os.path.lexists(entry.backup)):
            # Never moved aside, so `path` is still the original.
            logger.info("No backup for %s; leaving it in place", entry.path)
            summary.missing.append(entry.path)
            return
        os.replace(entry.backup, entry.path)
        logger.info("Restored: %s", entry.path)
        summary.restored.append(entry.path)

    @staticmethod
    def _undo_directory(path: str, summary: ReplaySummary) -> None:
        p = Path(path)
        if not p.is_dir():
            logger.info("Already gone: %s", path)
            summary.missing.append(path)
            return
        if any(p.iterdir()):
            logger.warning("Directory not empty, leaving it in place: %s", path)
            summary.kept.append(path)
            return
        p.rmdir()
        logger.info("Removed empty directory: %s", path)
        summary.removed.append(path)

    def clear(self, discard_backups: bool = True) -> None:
        """Forget every entry; on commit the moved-aside originals are deleted too."""
        if discard_backups:
            for entry in self._entries:
                if entry.backup and os.path.lexists(entry.backup):
                    os.unlink(entry.backup)
                    logger.debug("Discarded backup %s", entry.backup)
        self._entries = []
        self._seen = set()
        if self.log_path:
            remove_state(self.log_path)
