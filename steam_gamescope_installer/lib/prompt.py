from __future__ import annotations

import logging
import sys
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def is_interactive() -> bool:
    return bool(sys.stdin and sys.stdin.isatty())


def confirm(
    question: str,
    *,
    default: bool = False,
    assume_yes: bool = False,
    reader: Optional[Callable[[str], str]] = None,
) -> bool:
    """Ask a y/n question.

    ``assume_yes`` answers yes without asking. Without a terminal (and no
    explicit ``reader``) the default is returned.
    """

    if assume_yes:
        logger.debug("%s -> yes (assumed)", question)
        return True
    if reader is None:
        if not is_interactive():
            logger.debug("%s -> %s (non-interactive default)", question, "yes" if default else "no")
            return default
        reader = input

    suffix = " (Y/n) " if default else " (y/N) "
    answer = reader(question + suffix).strip().lower()
    if not answer:
        return default
    return answer in {"y", "yes"}


def ask(question: str, *, reader: Optional[Callable[[str], str]] = None) -> str:
    """Free-form answer; empty string when nobody can answer."""
    if reader is None:
        if not is_interactive():
            return ""
        reader = input
    return reader(question).strip()
