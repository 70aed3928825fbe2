from __future__ import annotations

import os
from pathlib import Path
from typing import List

import pytest
import yaml

from conftest import FakeRunner, which_for

import steam_gamescope_installer.main as cli
from steam_gamescope_installer.display_managers import build_adapters
from steam_gamescope_installer.errors import PrerequisiteError, UserAborted
from steam_gamescope_installer.install_config import InstallerConfig
from steam_gamescope_installer.lib import account
from steam_gamescope_installer.lib.versions import PrerequisiteCheck
from steam_gamescope_installer.state_store import save_state
from steam_gamescope_installer.tracker import MutationTracker, PathKind

SDDM_FRAGMENT = "etc/sddm.conf.d/autologin.conf"


def _tree(root: Path) -> List[str]:
    return sorted(str(p.relative_to(root)) for p in root.rglob("*"))


def _mode(p: Path) -> int:
    return p.stat().st_mode & 0o777


@pytest.fixture
def sddm_adapters(root: Path, runner: FakeRunner):
    return build_adapters(root=str(root), runner=runner, which=which_for("sddm"))


def test_install_then_uninstall(config: InstallerConfig, root: Path, sddm_adapters) -> None:
    result = cli.run_install(config=config, account="deck", enable_autologin=True, adapters=sddm_adapters)

    assert result.committed
    assert _mode(root / "usr/bin/gamescope-session") == 0o755
    assert _mode(root / "usr/bin/steamos-polkit-helpers/steamos-set-timezone") == 0o755
    assert _mode(root / "usr/share/wayland-sessions/steam.desktop") == 0o644
    assert not (root / "usr/bin/steamos-autologin").exists()
    assert "User=deck" in (root / SDDM_FRAGMENT).read_text()
    assert not Path(config.tracker_path).exists()
    assert not Path(config.snapshot_path).exists()

    result = cli.run_uninstall(config=config, account="deck", disable_autologin=True, adapters=sddm_adapters)

    assert result.committed
    assert result.warnings == []
    assert not (root / "usr/bin/gamescope-session").exists()
    assert not (root / "usr/bin/steamos-polkit-helpers").exists()
    assert not (root / "usr/share/wayland-sessions/steam.desktop").exists()
    assert (root / "usr/share/wayland-sessions").is_dir()
    assert not (root / SDDM_FRAGMENT).exists()


def test_uninstall_is_idempotent(config: InstallerConfig, sddm_adapters) -> None:
    cli.run_install(config=config, account="deck", enable_autologin=True, adapters=sddm_adapters)
    cli.run_uninstall(config=config, account="deck", disable_autologin=True, adapters=sddm_adapters)

    again = cli.run_uninstall(config=config, account="deck", disable_autologin=True, adapters=sddm_adapters)

    assert again.committed
    assert again.warnings == []


def test_uninstall_keeps_foreign_files(config: InstallerConfig, root: Path, sddm_adapters) -> None:
    cli.run_install(config=config, account="deck", enable_autologin=False, adapters=sddm_adapters)
    (root / "usr/bin/steamos-polkit-helpers/local-helper").write_text("mine\n")

    result = cli.run_uninstall(config=config, account="deck", disable_autologin=False, adapters=sddm_adapters)

    assert result.committed
    assert [type(w).__name__ for w in result.warnings] == ["DirectoryNotEmpty"]
    assert (root / "usr/bin/steamos-polkit-helpers/local-helper").is_file()


def test_install_optional_file_when_shipped(config: InstallerConfig, root: Path, source_dir: Path) -> None:
    (source_dir / "steamos-autologin").write_text("#!/bin/sh\n")

    result = cli.run_install(config=config, account="deck", enable_autologin=False, adapters=[])

    assert result.committed
    assert _mode(root / "usr/bin/steamos-autologin") == 0o755


def test_failed_install_restores_tree(config: InstallerConfig, root: Path, source_dir: Path, sddm_adapters) -> None:
    (source_dir / "usr/share/wayland-sessions/steam.desktop").unlink()
    (root / "usr/bin").mkdir(parents=True)
    (root / "usr/bin/existing-tool").write_text("keep\n")
    before = _tree(root)

    result = cli.run_install(config=config, account="deck", enable_autologin=True, adapters=sddm_adapters)

    assert not result.committed
    assert type(result.error).__name__ == "SourceMissing"
    assert _tree(root) == before
    assert not Path(config.tracker_path).exists()


def test_install_recovers_stale_run_first(
    config: InstallerConfig, root: Path, source_dir: Path, sddm_adapters
) -> None:
    # A killed run left a half-copied file behind.
    partial = root / "usr/bin/gamescope-session"
    partial.parent.mkdir(parents=True)
    partial.write_text("#!/bin/sh\nexec gam")
    MutationTracker(config.tracker_path).record(partial, PathKind.FILE, 0o755)

    result = cli.run_install(config=config, account="deck", enable_autologin=False, adapters=sddm_adapters)

    assert result.committed
    assert partial.read_bytes() == (source_dir / "usr/bin/gamescope-session").read_bytes()
    assert not [p for p in partial.parent.iterdir() if p.name.startswith(".")]


def test_failed_reinstall_keeps_previous_files(
    config: InstallerConfig, root: Path, source_dir: Path, sddm_adapters
) -> None:
    session = root / "usr/bin/gamescope-session"
    session.parent.mkdir(parents=True)
    session.write_text("ORIGINAL\n")
    session.chmod(0o700)
    (source_dir / "usr/bin/steamos-update").unlink()
    before = _tree(root)

    result = cli.run_install(config=config, account="deck", enable_autologin=True, adapters=sddm_adapters)

    assert not result.committed
    assert result.rollback.paths.restored == [str(session)]
    assert session.read_text() == "ORIGINAL\n"
    assert _mode(session) == 0o700
    assert _tree(root) == before


def test_reinstall_over_existing_files_commits_without_backups(
    config: InstallerConfig, root: Path, source_dir: Path, sddm_adapters
) -> None:
    cli.run_install(config=config, account="deck", enable_autologin=False, adapters=sddm_adapters)
    first = _tree(root)

    result = cli.run_install(config=config, account="deck", enable_autologin=False, adapters=sddm_adapters)

    assert result.committed
    assert _tree(root) == first


# command line


@pytest.fixture
def as_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "require_root", lambda command: None)
    monkeypatch.setattr(account, "user_exists", lambda name: True)
    monkeypatch.setattr(cli, "configure_logging", lambda log_path, **kwargs: log_path)


@pytest.fixture
def config_file(tmp_path: Path) -> str:
    p = tmp_path / "installer.yaml"
    p.write_text(
        yaml.safe_dump(
            {
                "paths": {
                    "tracker": str(tmp_path / "state/tracker.json"),
                    "autologin_snapshot": str(tmp_path / "state/snapshot.json"),
                }
            }
        ),
        encoding="utf-8",
    )
    return str(p)


def _argv(command: str, config_file: str, root: Path, source_dir: Path, *extra: str) -> List[str]:
    return [command, "--config", config_file, "--root", str(root), "--source-dir", str(source_dir), *extra]


def test_main_install_and_uninstall(as_root, config_file: str, root: Path, source_dir: Path) -> None:
    rc = cli.main(_argv("install", config_file, root, source_dir, "--account", "deck", "--no-autologin", "--skip-checks"))

    assert rc == 0
    assert (root / "usr/bin/steamos-session-select").is_file()

    rc = cli.main(_argv("uninstall", config_file, root, source_dir, "--account", "deck", "--no-autologin"))

    assert rc == 0
    assert not (root / "usr/bin/steamos-session-select").exists()


def test_main_missing_source_exit_code(as_root, config_file: str, root: Path, source_dir: Path) -> None:
    (source_dir / "usr/bin/steamos-update").unlink()

    rc = cli.main(_argv("install", config_file, root, source_dir, "--account", "deck", "--no-autologin", "--skip-checks"))

    assert rc == 2
    assert _tree(root) == []


def test_main_rejects_bad_username(as_root, config_file: str, root: Path, source_dir: Path) -> None:
    rc = cli.main(_argv("install", config_file, root, source_dir, "--account", "bad name", "--skip-checks"))

    assert rc == 6
    assert _tree(root) == []


def test_main_requires_root(monkeypatch: pytest.MonkeyPatch, config_file: str, root: Path, source_dir: Path) -> None:
    monkeypatch.setattr(os, "geteuid", lambda: 1000)
    monkeypatch.setattr(cli, "configure_logging", lambda log_path, **kwargs: log_path)

    rc = cli.main(_argv("install", config_file, root, source_dir, "--account", "deck", "--skip-checks"))

    assert rc == 1
    assert _tree(root) == []


def test_main_recover(as_root, config_file: str, tmp_path: Path, root: Path, source_dir: Path) -> None:
    stale = MutationTracker(str(tmp_path / "state/tracker.json"))
    leftover = root / "usr"
    leftover.mkdir()
    stale.record(leftover, PathKind.DIRECTORY)

    assert cli.main(["recover", "--config", config_file, "--root", str(root)]) == 0
    assert not leftover.exists()
    assert cli.main(["recover", "--config", config_file, "--root", str(root)]) == 0


def _failing_checks(minimum: str):
    return [PrerequisiteCheck("steam", False, None, None, False, "steam is not installed")]


def test_prerequisite_gate_non_interactive_aborts(monkeypatch: pytest.MonkeyPatch, config: InstallerConfig) -> None:
    monkeypatch.setattr(cli, "check_prerequisites", _failing_checks)
    monkeypatch.setattr(cli, "is_interactive", lambda: False)

    with pytest.raises(PrerequisiteError):
        cli.prerequisite_gate(config)

    cli.prerequisite_gate(config, assume_yes=True)


def test_prerequisite_gate_declined(monkeypatch: pytest.MonkeyPatch, config: InstallerConfig) -> None:
    monkeypatch.setattr(cli, "check_prerequisites", _failing_checks)
    monkeypatch.setattr(cli, "is_interactive", lambda: True)
    monkeypatch.setattr(cli, "confirm", lambda question, **kwargs: False)

    with pytest.raises(UserAborted):
        cli.prerequisite_gate(config)


def test_main_recover_refuses_foreign_record(as_root, config_file: str, tmp_path: Path, root: Path) -> None:
    victim = tmp_path / "victim"
    victim.write_text("precious\n")
    save_state(str(tmp_path / "state/tracker.json"), {"entries": [{"path": str(victim), "kind": "file"}]})

    assert cli.main(["recover", "--config", config_file, "--root", str(root)]) == 8
    assert victim.exists()
