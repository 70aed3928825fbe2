from __future__ import annotations

import glob
import logging
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from ..errors import DisplayManagerConfigError, PermissionDenied
from ..fileops import RemoveOutcome, remove_path, write_text_atomic
from ..lib.command import Runner, run_cmd

logger = logging.getLogger(__name__)


class DisplayManagerKind(str, Enum):
    LIGHTDM = "lightdm"
    SDDM = "sddm"
    GDM = "gdm"
    NONE = "none"


@dataclass(frozen=True)
class AdapterChange:
    changed: bool
    backup_path: Optional[str] = None


class DisplayManagerAdapter(ABC):
    """Autologin for one display manager.

    State returned by :meth:`current_autologin_state` is an opaque,
    JSON-serialisable mapping; only the same adapter interprets it again in
    :meth:`restore_state`.
    """

    kind: ClassVar[DisplayManagerKind]
    binaries: ClassVar[Tuple[str, ...]] = ()
    backup_globs: ClassVar[Tuple[str, ...]] = ()

    def __init__(
        self,
        *,
        root: str = "/",
        session: str = "steam",
        runner: Runner = run_cmd,
        which: Callable[[str], Optional[str]] = shutil.which,
    ) -> None:
        self.root = root
        self.session = session
        self._runner = runner
        self._which = which

    def __repr__(self) -> str:
        return f"{type(self).__name__}(root={self.root!r})"

    def path(self, absolute_path: str) -> Path:
        return Path(self.root) / absolute_path.lstrip("/")

    def is_active(self) -> bool:
        return any(self._which(b) for b in self.binaries)

    @abstractmethod
    def current_autologin_state(self, account: str) -> Dict[str, Any]:
        ...

    def prepare_enable(self, account: str) -> Dict[str, Any]:
        """Extra state to persist before :meth:`enable_autologin` mutates anything."""
        return {}

    @abstractmethod
    def enable_autologin(self, account: str) -> AdapterChange:
        ...

    @abstractmethod
    def disable_autologin(self, account: str) -> AdapterChange:
        ...

    @abstractmethod
    def restore_state(self, account: str, state: Dict[str, Any]) -> None:
        ...

    def validate_state(self, state: Dict[str, Any]) -> None:
        """Raise if a snapshot loaded from disk names anything this adapter would not touch."""

    def backup_files(self) -> List[str]:
        found: List[str] = []
        for pattern in self.backup_globs:
            found.extend(sorted(glob.glob(str(self.path(pattern)))))
        return found


class DropInAdapter(DisplayManagerAdapter):
    """Adapters whose whole autologin setup is one dedicated drop-in file."""

    fragment_path: ClassVar[str]

    @property
    def fragment(self) -> Path:
        return self.path(self.fragment_path)

    @abstractmethod
    def render_fragment(self, account: str) -> str:
        ...

    def read_fragment(self) -> Optional[str]:
        try:
            with self.fragment.open(encoding="utf-8", newline="") as fh:
                return fh.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise DisplayManagerConfigError(f"Cannot read {self.fragment}: {e}") from e

    def write_fragment(self, text: str) -> bool:
        """Write the fragment unless it already has exactly this content."""
        if self.read_fragment() == text:
            logger.info("%s autologin fragment already up to date: %s", self.kind.value, self.fragment)
            return False
        try:
            write_text_atomic(self.fragment, text, 0o644)
        except OSError as e:
            raise DisplayManagerConfigError(f"Cannot write {self.fragment}: {e}") from e
        logger.info("Wrote %s autologin configuration: %s", self.kind.value, self.fragment)
        return True

    def delete_fragment(self) -> bool:
        try:
            removed = remove_path(self.fragment)
        except (OSError, PermissionDenied) as e:
            raise DisplayManagerConfigError(f"Cannot remove {self.fragment}: {e}") from e
        if removed is RemoveOutcome.REMOVED:
            logger.info("Removed %s autologin configuration", self.kind.value)
            return True
        return False

    def current_autologin_state(self, account: str) -> Dict[str, Any]:
        return {"fragment": self.read_fragment(), "fragment_dir_existed": self.fragment.parent.is_dir()}

    def enable_autologin(self, account: str) -> AdapterChange:
        return AdapterChange(changed=self.write_fragment(self.render_fragment(account)))

    def disable_autologin(self, account: str) -> AdapterChange:
        return AdapterChange(changed=self.delete_fragment())

    def validate_state(self, state: Dict[str, Any]) -> None:
        if not isinstance(state.get("fragment"), (str, type(None))):
            raise DisplayManagerConfigError(f"Snapshot fragment for {self.kind.value} is not text")

    def restore_state(self, account: str, state: Dict[str, Any]) -> None:
        previous = state.get("fragment")
        if previous is None:
            self.delete_fragment()
        else:
            self.write_fragment(previous)
        if state.get("fragment_dir_existed") is False and remove_path(self.fragment.parent) is RemoveOutcome.REMOVED:
            logger.info("Removed %s created by this run", self.fragment.parent)
