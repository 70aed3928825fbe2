from __future__ import annotations

import pytest

from conftest import which_for

from steam_gamescope_installer.lib.command import CmdResult
from steam_gamescope_installer.lib.versions import (
    check_prerequisites,
    check_program,
    compare_versions,
    parse_version,
    version_at_least,
)


def _runner(stdout: str = "", stderr: str = ""):
    def run(argv, **kwargs) -> CmdResult:
        return CmdResult(argv=list(argv), returncode=0, stdout=stdout, stderr=stderr)

    return run


@pytest.mark.parametrize(
    "current, minimum, expected",
    [
        ("3.11.0", "3.11.0", True),
        ("3.11", "3.11.0", True),
        ("3.10.9", "3.11.0", False),
        ("3.14.2", "3.11.0", True),
        ("3.11.0.1", "3.11.0", True),
        ("3.9.20", "3.11.0", False),
    ],
)
def test_version_at_least(current: str, minimum: str, expected: bool) -> None:
    assert version_at_least(current, minimum) is expected


def test_parse_version_finds_first_dotted_number() -> None:
    assert parse_version("gamescope version 3.14.2 (gcc 13)") == (3, 14, 2)
    assert parse_version("no version here") is None
    assert compare_versions((3, 11), (3, 11, 0, 0)) == 0


def test_unparseable_versions_raise() -> None:
    with pytest.raises(ValueError):
        version_at_least("unknown", "3.11.0")


def test_check_program_missing() -> None:
    check = check_program("gamescope", "3.11.0", which=which_for(), runner=_runner())

    assert not check.found
    assert not check.acceptable


def test_check_program_too_old_reads_stderr() -> None:
    check = check_program("gamescope", "3.11.0", which=which_for("gamescope"), runner=_runner(stderr="gamescope version 3.10.2"))

    assert check.found
    assert check.version == "3.10.2"
    assert not check.acceptable


def test_check_program_unknown_version_is_accepted() -> None:
    check = check_program("gamescope", "3.11.0", which=which_for("gamescope"), runner=_runner(stdout="gamescope"))

    assert check.acceptable
    assert check.version is None


def test_check_prerequisites_steam_presence_only() -> None:
    checks = check_prerequisites("3.11.0", which=which_for("gamescope", "steam"), runner=_runner("3.12.0"))

    assert [c.name for c in checks] == ["gamescope", "steam"]
    assert all(c.acceptable for c in checks)
    assert checks[1].version is None
