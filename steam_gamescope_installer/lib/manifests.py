from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

DEFAULT_MANIFEST = "session_files.yaml"


@dataclass(frozen=True)
class SessionFile:
    source: str
    destination: str
    mode: int
    optional: bool = False


@dataclass(frozen=True)
class SessionDirectory:
    path: str
    removable: bool = True


@dataclass(frozen=True)
class SessionManifest:
    directories: Tuple[SessionDirectory, ...]
    files: Tuple[SessionFile, ...]

    @property
    def removable_directories(self) -> Tuple[SessionDirectory, ...]:
        return tuple(d for d in self.directories if d.removable)


def _manifests_dir() -> Path:
    # steam_gamescope_installer/lib/manifests.py -> steam_gamescope_installer/manifests
    return Path(__file__).resolve().parents[1] / "manifests"


def _parse_mode(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(str(value), 8)


def load_yaml(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Manifest must be a mapping/dict: {path}")
    return data


def load_manifest(path: Optional[str] = None) -> SessionManifest:
    """Load the session file plan (package manifest unless ``path`` is given)."""

    p = Path(path) if path else _manifests_dir() / DEFAULT_MANIFEST
    data = load_yaml(p)

    directories = tuple(
        SessionDirectory(path=str(d["path"]), removable=bool(d.get("removable", True)))
        for d in data.get("directories") or []
    )
    files = tuple(
        SessionFile(
            source=str(f["source"]),
            destination=str(f["destination"]),
            mode=_parse_mode(f.get("mode", "0644")),
            optional=bool(f.get("optional", False)),
        )
        for f in data.get("files") or []
    )
    return SessionManifest(directories=directories, files=files)
