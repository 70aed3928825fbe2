from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Set

from .autologin import AutologinCoordinator
from .display_managers import DisplayManagerKind
from .errors import InstallerError, SoftError, UnsafeStateError
from .fileops import is_backup_of
from .install_config import InstallerConfig
from .lib.account import validate_username
from .lib.manifests import SessionManifest, load_manifest
from .state_store import check_private
from .tracker import MutationTracker, PathKind, ReplaySummary

logger = logging.getLogger(__name__)


class TransactionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class TransactionContext:
    """Everything a step may touch; there is no module-level state."""

    config: InstallerConfig
    account: str
    manifest: SessionManifest
    tracker: MutationTracker
    autologin: AutologinCoordinator
    enable_autologin: bool = False
    disable_autologin: bool = False
    autologin_kinds: Optional[Sequence[DisplayManagerKind]] = None
    warnings: List[SoftError] = field(default_factory=list)

    def warn(self, err: SoftError) -> None:
        logger.warning("%s", err)
        self.warnings.append(err)


class Step(Protocol):
    """One entry of the transaction plan."""

    step_id: str

    def run(self, ctx: TransactionContext) -> None:
        ...


@dataclass
class RollbackReport:
    paths: Optional[ReplaySummary] = None
    autologin_restored: bool = False
    errors: List[str] = field(default_factory=list)

    def describe(self) -> str:
        parts = []
        if self.paths is not None:
            parts.append(f"files: {self.paths.describe()}")
        parts.append(f"autologin restored: {'yes' if self.autologin_restored else 'no'}")
        if self.errors:
            parts.append(f"rollback problems: {len(self.errors)}")
        return "; ".join(parts)


@dataclass(frozen=True)
class TransactionResult:
    state: TransactionState
    ran_steps: List[str]
    warnings: List[SoftError]
    error: Optional[BaseException] = None
    rollback: Optional[RollbackReport] = None

    @property
    def committed(self) -> bool:
        return self.state is TransactionState.COMMITTED


class TransactionController:
    """Runs the steps of one install/uninstall as a single transaction.

    Idle -> Running -> Committed | RolledBack. The first hard failure (or an
    interrupt) rolls back every tracked path and any autologin change, then
    the original exception is re-raised; ``result`` keeps the report.
    """

    def __init__(self, ctx: TransactionContext, steps: Sequence[Step]) -> None:
        self.ctx = ctx
        self.steps = list(steps)
        self.state = TransactionState.IDLE
        self.result: Optional[TransactionResult] = None

    def run(self) -> TransactionResult:
        if self.state is not TransactionState.IDLE:
            raise RuntimeError(f"Transaction already {self.state.value}")
        self.state = TransactionState.RUNNING

        ran: List[str] = []
        current: Optional[str] = None
        try:
            for step in self.steps:
                current = step.step_id
                logger.debug("Running step %s", current)
                try:
                    step.run(self.ctx)
                except SoftError as e:
                    self.ctx.warn(e)
                ran.append(current)
        except (Exception, KeyboardInterrupt) as e:
            logger.error("Step %s failed: %s", current, str(e) or type(e).__name__)
            report = self.rollback()
            self.state = TransactionState.ROLLED_BACK
            self.result = TransactionResult(
                state=self.state,
                ran_steps=ran,
                warnings=list(self.ctx.warnings),
                error=e,
                rollback=report,
            )
            raise

        self.commit()
        self.result = TransactionResult(state=self.state, ran_steps=ran, warnings=list(self.ctx.warnings))
        return self.result

    def commit(self) -> None:
        self.ctx.tracker.clear()
        self.ctx.autologin.discard()
        self.state = TransactionState.COMMITTED
        logger.debug("Transaction committed")

    def rollback(self) -> RollbackReport:
        """Best-effort undo; never raises."""

        logger.info("Starting rollback...")
        report = RollbackReport()
        try:
            report.paths = self.ctx.tracker.replay()
        except Exception as e:
            logger.exception("Rollback of tracked paths failed")
            report.errors.append(f"paths: {e}")

        try:
            report.autologin_restored = self.ctx.autologin.restore()
        except Exception as e:
            logger.exception("Restoring autologin configuration failed")
            report.errors.append(f"autologin: {e}")

        logger.info("Rollback completed (%s)", report.describe())
        return report


def allowed_paths(config: InstallerConfig, manifest: SessionManifest) -> Set[str]:
    """Every path an install may create or replace: manifest targets and their parents below the root."""

    root = Path(config.root)
    allowed: Set[str] = set()
    targets = [config.target(f.destination) for f in manifest.files]
    targets += [config.target(d.path) for d in manifest.directories]
    for target in targets:
        p = target
        while p != root and p != p.parent:
            allowed.add(str(p))
            p = p.parent
    return allowed


def check_tracker_entries(tracker: MutationTracker, config: InstallerConfig, manifest: SessionManifest) -> None:
    allowed = allowed_paths(config, manifest)
    for entry in tracker.entries:
        if entry.path not in allowed:
            raise UnsafeStateError(f"Tracker log names a path this installer never creates: {entry.path}")
        if entry.kind is PathKind.REPLACED and not (entry.backup and is_backup_of(entry.backup, entry.path)):
            raise UnsafeStateError(f"Tracker log has an unexpected backup for {entry.path}: {entry.backup}")


def recover_interrupted_run(
    config: InstallerConfig,
    autologin: AutologinCoordinator,
    manifest: Optional[SessionManifest] = None,
) -> Optional[RollbackReport]:
    """Roll back whatever a crashed run left in the on-disk tracker log and snapshot.

    Both records are checked before anything is touched: they must be private
    to this user and only name paths an install could have produced. Returns
    None if there was nothing left behind.
    """

    has_log = Path(config.tracker_path).exists()
    has_snapshot = Path(config.snapshot_path).exists()
    if not (has_log or has_snapshot):
        return None

    logger.warning("Found state from an interrupted run; rolling it back")
    manifest = manifest or load_manifest()
    try:
        tracker = MutationTracker(config.tracker_path)
        if has_log:
            check_private(config.tracker_path)
            tracker = MutationTracker.load(config.tracker_path)
            check_tracker_entries(tracker, config, manifest)

        recovered = AutologinCoordinator(autologin.adapters, config.snapshot_path)
        if has_snapshot:
            check_private(config.snapshot_path)
            recovered = AutologinCoordinator.load_snapshot(autologin.adapters, config.snapshot_path)
            snap = recovered.snapshot
            if snap is not None:
                validate_username(snap.account, must_exist=False)
                recovered.adapter_for(snap.kind).validate_state(snap.state)
    except UnsafeStateError:
        raise
    except (InstallerError, OSError, ValueError, KeyError, TypeError) as e:
        raise UnsafeStateError(f"Refusing state left by an interrupted run: {e}") from e

    ctx = TransactionContext(
        config=config,
        account=recovered.snapshot.account if recovered.snapshot else "",
        manifest=manifest,
        tracker=tracker,
        autologin=recovered,
    )
    return TransactionController(ctx, []).rollback()
