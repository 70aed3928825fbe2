from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from steam_gamescope_installer.errors import CommandError
from steam_gamescope_installer.install_config import InstallerConfig
from steam_gamescope_installer.lib.command import CmdResult
from steam_gamescope_installer.lib.manifests import load_manifest


class FakeRunner:
    """Stands in for run_cmd: records argv and emulates group management."""

    def __init__(self, groups: Optional[Dict[str, List[str]]] = None) -> None:
        self.groups: Dict[str, List[str]] = {k: list(v) for k, v in (groups or {}).items()}
        self.calls: List[List[str]] = []
        self.fail: set = set()

    def _result(self, argv: List[str], rc: int = 0, stdout: str = "", stderr: str = "") -> CmdResult:
        return CmdResult(argv=argv, returncode=rc, stdout=stdout, stderr=stderr)

    def __call__(self, argv, *, check: bool = True, **kwargs) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        result = self._dispatch(argv)
        if check and result.returncode != 0:
            raise CommandError(f"Command failed ({result.returncode}): {' '.join(argv)}", result.returncode)
        return result

    def _dispatch(self, argv: List[str]) -> CmdResult:
        if argv[0] in self.fail:
            return self._result(argv, 1, stderr=f"{argv[0]} failed")
        if argv[:2] == ["getent", "group"]:
            name = argv[2]
            if name not in self.groups:
                return self._result(argv, 2)
            return self._result(argv, stdout=f"{name}:x:975:{','.join(self.groups[name])}\n")
        if argv[0] == "groupadd":
            self.groups.setdefault(argv[-1], [])
            return self._result(argv)
        if argv[0] == "groupdel":
            self.groups.pop(argv[-1], None)
            return self._result(argv)
        if argv[0] == "gpasswd":
            flag, user, group = argv[1], argv[2], argv[3]
            members = self.groups.setdefault(group, [])
            if flag == "-a" and user not in members:
                members.append(user)
            elif flag == "-d":
                if user not in members:
                    return self._result(argv, 3, stderr="not a member")
                members.remove(user)
            return self._result(argv)
        return self._result(argv)


def which_for(*present: str) -> Callable[[str], Optional[str]]:
    def which(name: str) -> Optional[str]:
        return f"/usr/bin/{name}" if name in present else None

    return which


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    r = tmp_path / "root"
    r.mkdir()
    return r


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    for f in load_manifest().files:
        if f.optional:
            continue
        p = src / f.source
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(f"# {f.source}\n", encoding="utf-8")
    return src


@pytest.fixture
def config(tmp_path: Path, root: Path, source_dir: Path) -> InstallerConfig:
    state = tmp_path / "state"
    return InstallerConfig(
        raw={
            "paths": {
                "root": str(root),
                "source_dir": str(source_dir),
                "tracker": str(state / "tracker.json"),
                "autologin_snapshot": str(state / "snapshot.json"),
                "install_log": str(tmp_path / "install.log"),
                "uninstall_log": str(tmp_path / "uninstall.log"),
            }
        }
    )
