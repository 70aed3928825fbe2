from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .display_managers import DisplayManagerAdapter, DisplayManagerKind, detect_display_manager
from .errors import NoSupportedDisplayManager
from .state_store import load_state, remove_state, save_state

logger = logging.getLogger(__name__)


@dataclass
class AutologinSnapshot:
    kind: DisplayManagerKind
    account: str
    state: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "account": self.account, "state": self.state}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AutologinSnapshot":
        return cls(
            kind=DisplayManagerKind(d["kind"]),
            account=str(d["account"]),
            state=dict(d.get("state") or {}),
        )


class AutologinCoordinator:
    """Picks the active display manager and keeps the pre-change snapshot.

    At most one snapshot exists; it is persisted to ``snapshot_path`` (when
    set) before the adapter touches anything.
    """

    def __init__(
        self,
        adapters: Sequence[DisplayManagerAdapter],
        snapshot_path: Optional[str] = None,
    ) -> None:
        self.adapters = list(adapters)
        self.snapshot_path = snapshot_path
        self.snapshot: Optional[AutologinSnapshot] = None
        self._detected: Optional[DisplayManagerAdapter] = None
        self._detection_done = False

    def adapter_for(self, kind: DisplayManagerKind) -> DisplayManagerAdapter:
        for adapter in self.adapters:
            if adapter.kind is kind:
                return adapter
        raise NoSupportedDisplayManager(f"No adapter registered for {kind.value}")

    def detect(self) -> DisplayManagerAdapter:
        if not self._detection_done:
            self._detected = detect_display_manager(self.adapters)
            self._detection_done = True
            if self._detected is not None:
                logger.info("Detected display manager: %s", self._detected.kind.value)
        if self._detected is None:
            raise NoSupportedDisplayManager()
        return self._detected

    @property
    def detected_kind(self) -> DisplayManagerKind:
        try:
            return self.detect().kind
        except NoSupportedDisplayManager:
            return DisplayManagerKind.NONE

    def _persist(self) -> None:
        if self.snapshot_path and self.snapshot is not None:
            save_state(self.snapshot_path, self.snapshot.to_dict())

    def apply_autologin(self, account: str) -> AutologinSnapshot:
        if self.snapshot is not None:
            raise RuntimeError("Autologin already applied in this transaction")

        adapter = self.detect()
        self.snapshot = AutologinSnapshot(
            kind=adapter.kind,
            account=account,
            state=adapter.current_autologin_state(account),
        )
        self._persist()

        prepared = adapter.prepare_enable(account)
        if prepared:
            self.snapshot.state.update(prepared)
            self._persist()

        logger.info("Enabling autologin for user: %s (%s)", account, adapter.kind.value)
        change = adapter.enable_autologin(account)
        if change.backup_path and self.snapshot.state.get("backup_path") != change.backup_path:
            self.snapshot.state["backup_path"] = change.backup_path
            self._persist()
        logger.info("Autologin configured successfully")
        return self.snapshot

    def restore(self) -> bool:
        """Put autologin back as the snapshot found it. False if there was nothing to do."""
        snap = self.snapshot
        if snap is None:
            return False
        adapter = self.adapter_for(snap.kind)
        logger.info("Restoring %s autologin configuration for %s", snap.kind.value, snap.account)
        adapter.restore_state(snap.account, snap.state)
        self.discard()
        return True

    def revert_autologin(
        self,
        account: str,
        kinds: Optional[Sequence[DisplayManagerKind]] = None,
    ) -> List[DisplayManagerKind]:
        """Disable autologin for ``account``; returns the managers that changed.

        Without ``kinds`` only the detected display manager is touched.
        """

        targets = [self.adapter_for(k) for k in kinds] if kinds else [self.detect()]
        changed: List[DisplayManagerKind] = []
        for adapter in targets:
            logger.info("Disabling %s autologin for user: %s", adapter.kind.value, account)
            if adapter.disable_autologin(account).changed:
                changed.append(adapter.kind)
        return changed

    def discard(self) -> None:
        self.snapshot = None
        if self.snapshot_path:
            remove_state(self.snapshot_path)

    def backup_files(self) -> List[str]:
        found: List[str] = []
        for adapter in self.adapters:
            found.extend(adapter.backup_files())
        return found

    @classmethod
    def load_snapshot(
        cls,
        adapters: Sequence[DisplayManagerAdapter],
        snapshot_path: str,
    ) -> "AutologinCoordinator":
        coordinator = cls(adapters, snapshot_path)
        data = load_state(snapshot_path)
        if data:
            coordinator.snapshot = AutologinSnapshot.from_dict(data)
        return coordinator
