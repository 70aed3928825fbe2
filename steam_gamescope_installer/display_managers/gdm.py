from __future__ import annotations

import hashlib
import logging
import shutil
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..errors import DisplayManagerConfigError
from ..fileops import RemoveOutcome, remove_path, write_text_atomic
from ..lib.inifile import read_section, update_section
from .base import AdapterChange, DisplayManagerAdapter, DisplayManagerKind

logger = logging.getLogger(__name__)

DAEMON_SECTION = "daemon"
ENABLE_KEY = "AutomaticLoginEnable"
USER_KEY = "AutomaticLogin"


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class GdmAdapter(DisplayManagerAdapter):
    """GDM keeps autologin in a ``custom.conf`` shared with other settings.

    There is no drop-in directory, so every edit is preceded by a timestamped
    full-file backup and rollback copies that backup back.
    """

    kind = DisplayManagerKind.GDM
    binaries = ("gdm", "gdm3")
    config_candidates = ("/etc/gdm3/custom.conf", "/etc/gdm/custom.conf")
    backup_globs = ("/etc/gdm*/custom.conf.backup.*",)

    def __init__(self, *, clock: Callable[[], time.struct_time] = time.localtime, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._clock = clock
        self._pending_backup: Optional[Path] = None

    def locate_config(self) -> Optional[Path]:
        for candidate in self.config_candidates:
            p = self.path(candidate)
            if p.is_file():
                return p
        return None

    def _config_for_create(self) -> Path:
        for candidate in self.config_candidates:
            p = self.path(candidate)
            if p.parent.is_dir():
                return p
        return self.path(self.config_candidates[0])

    def _read(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise DisplayManagerConfigError(f"Cannot read {path}: {e}") from e

    def backup(self, path: Path) -> Path:
        """Copy ``path`` to ``<path>.backup.YYYYmmdd_HHMMSS``; never overwrites."""
        stamp = time.strftime("%Y%m%d_%H%M%S", self._clock())
        target = path.with_name(f"{path.name}.backup.{stamp}")
        n = 1
        while target.exists():
            target = path.with_name(f"{path.name}.backup.{stamp}_{n}")
            n += 1
        try:
            shutil.copy2(path, target)
        except OSError as e:
            raise DisplayManagerConfigError(f"Cannot back up {path}: {e}") from e
        logger.info("Backed up %s to %s", path, target)
        return target

    def _write(self, path: Path, text: str) -> None:
        try:
            write_text_atomic(path, text, mode=None)
        except OSError as e:
            raise DisplayManagerConfigError(f"Cannot write {path}: {e}") from e

    def _edit(self, path: Path, values: Dict[str, Optional[str]], backup: Optional[Path] = None) -> Path:
        backup = backup or self.backup(path)
        text = self._read(path).decode("utf-8", errors="surrogateescape")
        self._write(path, update_section(text, DAEMON_SECTION, values))
        return backup

    def current_autologin_state(self, account: str) -> Dict[str, Any]:
        path = self.locate_config()
        if path is None:
            return {
                "config_path": None,
                "existed": False,
                "config_dir_existed": self._config_for_create().parent.is_dir(),
            }
        data = self._read(path)
        values = read_section(data.decode("utf-8", errors="surrogateescape"), DAEMON_SECTION)
        return {
            "config_path": str(path),
            "existed": True,
            "sha256": _digest(data),
            ENABLE_KEY: values.get(ENABLE_KEY),
            USER_KEY: values.get(USER_KEY),
        }

    def _autologin_set(self, path: Path, account: str) -> bool:
        values = read_section(self._read(path).decode("utf-8", errors="surrogateescape"), DAEMON_SECTION)
        return (values.get(ENABLE_KEY) or "").lower() == "true" and values.get(USER_KEY) == account

    def prepare_enable(self, account: str) -> Dict[str, Any]:
        """Take the backup up front so the snapshot names it before the edit."""
        path = self.locate_config()
        if path is None or self._autologin_set(path, account):
            return {}
        self._pending_backup = self.backup(path)
        return {"backup_path": str(self._pending_backup)}

    def enable_autologin(self, account: str) -> AdapterChange:
        path = self.locate_config()
        if path is None:
            path = self._config_for_create()
            self._write(path, update_section("", DAEMON_SECTION, {ENABLE_KEY: "true", USER_KEY: account}))
            logger.info("Created GDM configuration %s with autologin for %s", path, account)
            return AdapterChange(changed=True)

        if self._autologin_set(path, account):
            logger.info("GDM autologin already enabled for %s", account)
            return AdapterChange(changed=False)

        pending, self._pending_backup = self._pending_backup, None
        backup = self._edit(path, {ENABLE_KEY: "true", USER_KEY: account}, pending)
        logger.info("Enabled GDM autologin for %s", account)
        return AdapterChange(changed=True, backup_path=str(backup))

    def disable_autologin(self, account: str) -> AdapterChange:
        path = self.locate_config()
        if path is None:
            logger.info("No GDM custom.conf found; nothing to disable")
            return AdapterChange(changed=False)

        values = read_section(self._read(path).decode("utf-8", errors="surrogateescape"), DAEMON_SECTION)
        if (values.get(ENABLE_KEY) or "").lower() != "true":
            logger.info("GDM autologin is not enabled")
            return AdapterChange(changed=False)

        backup = self._edit(path, {ENABLE_KEY: "false", USER_KEY: ""})
        logger.info("Disabled GDM autologin")
        return AdapterChange(changed=True, backup_path=str(backup))

    def validate_state(self, state: Dict[str, Any]) -> None:
        config_path = state.get("config_path")
        candidates = {str(self.path(c)) for c in self.config_candidates}
        if config_path is not None and config_path not in candidates:
            raise DisplayManagerConfigError(f"Snapshot names an unexpected GDM config: {config_path}")
        if state.get("existed") and config_path is None:
            raise DisplayManagerConfigError("Snapshot of an existing GDM config has no config_path")
        backup = state.get("backup_path")
        if backup is None:
            return
        if config_path is None or Path(backup).parent != Path(config_path).parent:
            raise DisplayManagerConfigError(f"Snapshot names an unexpected GDM backup: {backup}")
        if not Path(backup).name.startswith(Path(config_path).name + ".backup."):
            raise DisplayManagerConfigError(f"Snapshot names an unexpected GDM backup: {backup}")

    def restore_state(self, account: str, state: Dict[str, Any]) -> None:
        self.validate_state(state)
        if not state.get("existed"):
            path = self.locate_config()
            if path is not None:
                path.unlink()
                logger.info("Removed GDM configuration created by this run: %s", path)
                if state.get("config_dir_existed") is False and remove_path(path.parent) is RemoveOutcome.REMOVED:
                    logger.info("Removed %s created by this run", path.parent)
            return

        path = Path(state["config_path"])
        backup = state.get("backup_path")
        if backup and Path(backup).is_file():
            try:
                shutil.copyfile(backup, path)
            except OSError as e:
                raise DisplayManagerConfigError(f"Cannot restore {path} from {backup}: {e}") from e
            logger.info("Restored %s from %s", path, backup)
            return

        if path.is_file() and _digest(self._read(path)) == state.get("sha256"):
            logger.info("%s unchanged; nothing to restore", path)
            return

        # No backup to copy back: put the two autologin keys back as they were.
        logger.warning("No GDM backup available; resetting autologin keys in %s", path)
        text = self._read(path).decode("utf-8", errors="surrogateescape")
        self._write(
            path,
            update_section(text, DAEMON_SECTION, {ENABLE_KEY: state.get(ENABLE_KEY), USER_KEY: state.get(USER_KEY)}),
        )
