from __future__ import annotations

import argparse
import logging
import signal
from typing import Any, List, Optional, Sequence

from .autologin import AutologinCoordinator
from .display_managers import DisplayManagerAdapter, DisplayManagerKind, build_adapters
from .errors import InstallerError, PrerequisiteError, TransactionInterrupted, UserAborted
from .install_config import InstallerConfig, load_installer_config
from .lib.account import require_root, resolve_account, validate_username
from .lib.command import run_cmd
from .lib.manifests import load_manifest
from .lib.prompt import confirm, is_interactive
from .lib.versions import check_prerequisites
from .logging_utils import configure_logging
from .steps import (
    CreateDirectoriesStep,
    DisableAutologinStep,
    EnableAutologinStep,
    InstallSessionFilesStep,
    RemoveSessionFilesStep,
)
from .tracker import MutationTracker
from .transaction import (
    TransactionContext,
    TransactionController,
    TransactionResult,
    recover_interrupted_run,
)

logger = logging.getLogger(__name__)


def build_install_steps():
    return [
        CreateDirectoriesStep(),
        InstallSessionFilesStep(),
        EnableAutologinStep(),
    ]


def build_uninstall_steps():
    return [
        RemoveSessionFilesStep(),
        DisableAutologinStep(),
    ]


def _adapters_for(config: InstallerConfig) -> List[DisplayManagerAdapter]:
    return build_adapters(root=config.root, session=config.autologin_session)


def _run_transaction(ctx: TransactionContext, steps: Sequence[Any]) -> TransactionResult:
    """Run the controller; a rolled-back run comes back as a result, not an exception."""
    controller = TransactionController(ctx, steps)
    try:
        return controller.run()
    except (Exception, KeyboardInterrupt):
        if controller.result is None:
            raise
        return controller.result


def prerequisite_gate(config: InstallerConfig, *, assume_yes: bool = False) -> None:
    logger.info("Checking required software versions...")
    failed = [c for c in check_prerequisites(config.minimum_gamescope_version) if not c.acceptable]
    if not failed or assume_yes:
        return
    if not is_interactive():
        raise PrerequisiteError("; ".join(c.message for c in failed))
    if not confirm("Continue anyway?"):
        raise UserAborted("Installation cancelled by user")


def run_install(
    *,
    config: InstallerConfig,
    account: str,
    enable_autologin: bool,
    adapters: Optional[Sequence[DisplayManagerAdapter]] = None,
) -> TransactionResult:
    """Install the session files (and optionally autologin) as one transaction."""

    adapters = list(adapters) if adapters is not None else _adapters_for(config)

    recovered = recover_interrupted_run(config, AutologinCoordinator(adapters))
    if recovered is not None:
        logger.info("Previous interrupted run rolled back (%s)", recovered.describe())

    ctx = TransactionContext(
        config=config,
        account=account,
        manifest=load_manifest(),
        tracker=MutationTracker(config.tracker_path),
        autologin=AutologinCoordinator(adapters, config.snapshot_path),
        enable_autologin=enable_autologin,
    )
    logger.info("Installing for user: %s", account)
    return _run_transaction(ctx, build_install_steps())


def run_uninstall(
    *,
    config: InstallerConfig,
    account: str,
    disable_autologin: bool,
    kinds: Optional[Sequence[DisplayManagerKind]] = None,
    adapters: Optional[Sequence[DisplayManagerAdapter]] = None,
) -> TransactionResult:
    """Remove the session files (and optionally autologin); safe to repeat."""

    adapters = list(adapters) if adapters is not None else _adapters_for(config)
    ctx = TransactionContext(
        config=config,
        account=account,
        manifest=load_manifest(),
        # Uninstall creates nothing, so there is nothing to persist for rollback.
        tracker=MutationTracker(None),
        autologin=AutologinCoordinator(adapters),
        disable_autologin=disable_autologin,
        autologin_kinds=kinds,
    )
    logger.info("Uninstalling for user: %s", account)
    result = _run_transaction(ctx, build_uninstall_steps())

    backups = ctx.autologin.backup_files()
    if backups:
        logger.info("Backup configuration files were found (you can restore these manually if needed):")
        for path in backups:
            logger.info("  %s", path)
    return result


def _report(result: TransactionResult, what: str) -> int:
    if result.committed:
        for w in result.warnings:
            logger.debug("Warning during %s: %s", what, w)
        return 0

    err = result.error
    logger.error("%s failed: %s", what.capitalize(), str(err) or type(err).__name__)
    if result.rollback is not None:
        logger.error("Rollback summary: %s", result.rollback.describe())
    if isinstance(err, InstallerError):
        return err.exit_code
    if isinstance(err, KeyboardInterrupt):
        return TransactionInterrupted.exit_code
    return 1


def _on_sigterm(signum: int, frame: Any) -> None:
    raise TransactionInterrupted(f"Terminated by signal {signum}")


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="steam-gamescope-installer")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="Installer config (yaml)")
    common.add_argument("--log", default=None, help="Path to the log file")
    common.add_argument("--root", default=None, help="Install under this root instead of /")
    common.add_argument("--source-dir", default=None, help="Directory holding usr/ and steam.desktop sources")

    sub = p.add_subparsers(dest="command", required=True)

    install = sub.add_parser("install", parents=[common], help="Install the Steam gamescope session")
    install.add_argument("--account", default=None, help="Primary user (default: the invoking user)")
    install.add_argument("--autologin", action=argparse.BooleanOptionalAction, default=None)
    install.add_argument("--yes", action="store_true", help="Answer yes to confirmation prompts")
    install.add_argument("--skip-checks", action="store_true", help="Skip the gamescope/steam version checks")

    uninstall = sub.add_parser("uninstall", parents=[common], help="Remove the Steam gamescope session")
    uninstall.add_argument("--account", default=None, help="Primary user (default: the invoking user)")
    uninstall.add_argument("--autologin", action=argparse.BooleanOptionalAction, default=None)
    uninstall.add_argument(
        "--display-manager",
        choices=[k.value for k in DisplayManagerKind if k is not DisplayManagerKind.NONE] + ["all"],
        default=None,
        help="Remove autologin for this display manager instead of the detected one",
    )
    uninstall.add_argument("--yes", action="store_true", help="Answer yes to confirmation prompts")

    sub.add_parser("recover", parents=[common], help="Roll back a run that was interrupted")
    return p


def _config_from_args(args: argparse.Namespace) -> InstallerConfig:
    log_key = "uninstall_log" if args.command == "uninstall" else "install_log"
    return load_installer_config(args.config).with_overrides(
        root=args.root,
        source_dir=args.source_dir,
        **{log_key: args.log},
    )


def _kinds_from_arg(value: Optional[str]) -> Optional[List[DisplayManagerKind]]:
    if value is None:
        return None
    if value == "all":
        return [DisplayManagerKind.LIGHTDM, DisplayManagerKind.SDDM, DisplayManagerKind.GDM]
    return [DisplayManagerKind(value)]


def _install(args: argparse.Namespace, config: InstallerConfig) -> int:
    logger.info("Starting Steam Gamescope installation")
    account = validate_username(resolve_account(args.account))
    if not args.skip_checks:
        prerequisite_gate(config, assume_yes=args.yes)

    enable = args.autologin
    if enable is None:
        enable = confirm("Do you want to enable autologin to the Steam gamescope session?", assume_yes=args.yes)

    result = run_install(config=config, account=account, enable_autologin=enable)
    code = _report(result, "installation")
    if code != 0:
        return code

    logger.info("Installation complete!")
    logger.info("To use Steam with Gamescope: log out, pick 'Steam' as the session at the login screen, log in.")
    logger.info("You can switch back to your regular desktop session from the same session menu.")

    if enable and not result.warnings and is_interactive() and confirm("Would you like to reboot now?"):
        logger.info("Rebooting system...")
        run_cmd(["reboot"])
    return 0


def _uninstall(args: argparse.Namespace, config: InstallerConfig) -> int:
    logger.info("Starting Steam Gamescope uninstallation")
    account = validate_username(resolve_account(args.account), must_exist=False)

    disable = args.autologin
    if disable is None:
        disable = args.display_manager is not None or confirm(
            "Do you want to remove Steam gamescope autologin configuration?", assume_yes=args.yes
        )

    result = run_uninstall(
        config=config,
        account=account,
        disable_autologin=disable,
        kinds=_kinds_from_arg(args.display_manager),
    )
    code = _report(result, "uninstallation")
    if code == 0:
        logger.info("Uninstallation complete! The Steam gamescope session has been removed from your system.")
    return code


def _recover(args: argparse.Namespace, config: InstallerConfig) -> int:
    report = recover_interrupted_run(config, AutologinCoordinator(_adapters_for(config)))
    if report is None:
        logger.info("Nothing to recover")
        return 0
    logger.info("Recovery finished (%s)", report.describe())
    return 1 if report.errors else 0


def main(argv: Optional[list[str]] = None) -> int:
    args = _parser().parse_args(argv)

    try:
        config = _config_from_args(args)
    except (OSError, ValueError) as e:
        logger.error("Cannot load config: %s", e)
        return 2

    log_path = config.uninstall_log if args.command == "uninstall" else config.install_log
    actual_log = configure_logging(log_path=log_path)

    previous = signal.signal(signal.SIGTERM, _on_sigterm)
    try:
        require_root(args.command)
        if args.command == "install":
            return _install(args, config)
        if args.command == "uninstall":
            return _uninstall(args, config)
        return _recover(args, config)
    except InstallerError as e:
        logger.error("%s", e)
        return e.exit_code
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return TransactionInterrupted.exit_code
    finally:
        signal.signal(signal.SIGTERM, previous)
        logger.info("Log saved to: %s", actual_log)


if __name__ == "__main__":
    raise SystemExit(main())
