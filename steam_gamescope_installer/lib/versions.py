from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"\d+(?:\.\d+)+")


def parse_version(text: str) -> Optional[Tuple[int, ...]]:
    """First dotted numeric version in ``text`` (``"gamescope version 3.14.2"`` -> (3, 14, 2))."""
    m = _VERSION_RE.search(text or "")
    if not m:
        return None
    return tuple(int(part) for part in m.group(0).split("."))


def compare_versions(a: Sequence[int], b: Sequence[int]) -> int:
    """-1/0/1. Shorter versions are zero-padded, so 3.11 == 3.11.0."""
    width = max(len(a), len(b))
    pa = tuple(a) + (0,) * (width - len(a))
    pb = tuple(b) + (0,) * (width - len(b))
    return (pa > pb) - (pa < pb)


def version_at_least(current: str, minimum: str) -> bool:
    cur = parse_version(current)
    low = parse_version(minimum)
    if cur is None or low is None:
        raise ValueError(f"Cannot compare versions {current!r} and {minimum!r}")
    return compare_versions(cur, low) >= 0


@dataclass(frozen=True)
class PrerequisiteCheck:
    name: str
    found: bool
    version: Optional[str]
    minimum: Optional[str]
    acceptable: bool
    message: str


def check_program(
    name: str,
    minimum: Optional[str] = None,
    *,
    which: Callable[[str], Optional[str]] = shutil.which,
    runner: Callable[..., CmdResult] = run_cmd,
) -> PrerequisiteCheck:
    if which(name) is None:
        return PrerequisiteCheck(name, False, None, minimum, False, f"{name} is not installed")

    if minimum is None:
        return PrerequisiteCheck(name, True, None, None, True, f"{name} found")

    r = runner([name, "--version"], check=False, timeout=15)
    parsed = parse_version(f"{r.stdout}\n{r.stderr}")
    if parsed is None:
        # Unknown version: do not block on a tool that does not report one.
        return PrerequisiteCheck(
            name, True, None, minimum, True, f"Could not determine {name} version, assuming it is compatible"
        )

    version = ".".join(str(p) for p in parsed)
    if not version_at_least(version, minimum):
        return PrerequisiteCheck(
            name, True, version, minimum, False,
            f"{name} version {version} is below minimum required version {minimum}",
        )
    return PrerequisiteCheck(
        name, True, version, minimum, True, f"{name} version: {version} (minimum required: {minimum})"
    )


def check_prerequisites(
    gamescope_minimum: str,
    *,
    which: Callable[[str], Optional[str]] = shutil.which,
    runner: Callable[..., CmdResult] = run_cmd,
) -> List[PrerequisiteCheck]:
    """Advisory gate run before an install; logs each result."""

    checks = [
        check_program("gamescope", gamescope_minimum, which=which, runner=runner),
        check_program("steam", which=which, runner=runner),
    ]
    for c in checks:
        if c.acceptable:
            logger.info("%s", c.message)
        else:
            logger.warning("%s", c.message)
    return checks
