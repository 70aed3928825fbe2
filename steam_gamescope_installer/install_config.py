from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .logging_utils import DEFAULT_LOG_PATH, DEFAULT_UNINSTALL_LOG_PATH

# Root-owned and 0700; recovery refuses records anyone else could have written.
DEFAULT_STATE_DIR = "/var/lib/steam-gamescope-installer"
DEFAULT_TRACKER_PATH = f"{DEFAULT_STATE_DIR}/install_tracker.json"
DEFAULT_SNAPSHOT_PATH = f"{DEFAULT_STATE_DIR}/autologin_snapshot.json"


@dataclass(frozen=True)
class InstallerConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _paths(self) -> Dict[str, Any]:
        return self.raw.get("paths") or {}

    @property
    def root(self) -> str:
        """Filesystem prefix every absolute destination is resolved under."""
        return str(self._paths().get("root") or "/")

    @property
    def source_dir(self) -> str:
        return str(self._paths().get("source_dir") or ".")

    @property
    def install_log(self) -> str:
        return str(self._paths().get("install_log") or DEFAULT_LOG_PATH)

    @property
    def uninstall_log(self) -> str:
        return str(self._paths().get("uninstall_log") or DEFAULT_UNINSTALL_LOG_PATH)

    @property
    def tracker_path(self) -> str:
        return str(self._paths().get("tracker") or DEFAULT_TRACKER_PATH)

    @property
    def snapshot_path(self) -> str:
        return str(self._paths().get("autologin_snapshot") or DEFAULT_SNAPSHOT_PATH)

    @property
    def autologin_session(self) -> str:
        return str(((self.raw.get("autologin") or {}).get("session")) or "steam")

    @property
    def minimum_gamescope_version(self) -> str:
        return str(((self.raw.get("prerequisites") or {}).get("gamescope")) or "3.11.0")

    def target(self, absolute_path: str) -> Path:
        """Map an absolute host path (``/usr/bin/x``) under :attr:`root`."""
        return Path(self.root) / absolute_path.lstrip("/")

    def source(self, rel_path: str) -> Path:
        return Path(self.source_dir) / rel_path.lstrip("/")

    def with_overrides(self, **paths: Optional[str]) -> "InstallerConfig":
        """Return a copy with non-None ``paths`` entries replaced (CLI flags win)."""
        raw = dict(self.raw)
        merged = dict(raw.get("paths") or {})
        merged.update({k: v for k, v in paths.items() if v is not None})
        raw["paths"] = merged
        return InstallerConfig(raw=raw)


def load_installer_config(path: Optional[str]) -> InstallerConfig:
    if not path:
        return InstallerConfig()

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("installer config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{p} must contain a mapping/object")

    return InstallerConfig(raw=raw)
