from __future__ import annotations

from pathlib import Path

from conftest import FakeRunner, which_for

from steam_gamescope_installer.display_managers import SddmAdapter

FRAGMENT = "etc/sddm.conf.d/autologin.conf"


def _adapter(root: Path, runner: FakeRunner) -> SddmAdapter:
    return SddmAdapter(root=str(root), runner=runner, which=which_for("sddm"))


def test_enable_then_restore_leaves_no_fragment(root: Path, runner: FakeRunner) -> None:
    adapter = _adapter(root, runner)
    snapshot = adapter.current_autologin_state("deck")

    adapter.enable_autologin("deck")
    assert (root / FRAGMENT).read_text() == (
        "[Autologin]\nUser=deck\nSession=steam.desktop\nRelogin=false\n"
    )
    adapter.restore_state("deck", snapshot)

    assert not (root / FRAGMENT).exists()
    assert runner.calls == []


def test_restore_puts_back_previous_fragment_exactly(root: Path, runner: FakeRunner) -> None:
    previous = "[Autologin]\r\nUser=alice\r\nSession=plasma.desktop\r\n"
    (root / "etc/sddm.conf.d").mkdir(parents=True)
    (root / FRAGMENT).write_bytes(previous.encode())
    adapter = _adapter(root, runner)
    snapshot = adapter.current_autologin_state("deck")

    adapter.enable_autologin("deck")
    adapter.restore_state("deck", snapshot)

    assert (root / FRAGMENT).read_bytes() == previous.encode()


def test_disable_is_idempotent(root: Path, runner: FakeRunner) -> None:
    adapter = _adapter(root, runner)
    adapter.enable_autologin("deck")

    assert adapter.disable_autologin("deck").changed
    assert not adapter.disable_autologin("deck").changed
