from __future__ import annotations

import shutil
from typing import Callable, List, Optional, Sequence

from ..lib.command import Runner, run_cmd
from .base import AdapterChange, DisplayManagerAdapter, DisplayManagerKind
from .gdm import GdmAdapter
from .lightdm import LightDmAdapter
from .sddm import SddmAdapter

# Detection priority: first active adapter wins.
ADAPTER_CLASSES = (LightDmAdapter, SddmAdapter, GdmAdapter)


def build_adapters(
    *,
    root: str = "/",
    session: str = "steam",
    runner: Runner = run_cmd,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> List[DisplayManagerAdapter]:
    return [cls(root=root, session=session, runner=runner, which=which) for cls in ADAPTER_CLASSES]


def detect_display_manager(adapters: Sequence[DisplayManagerAdapter]) -> Optional[DisplayManagerAdapter]:
    for adapter in adapters:
        if adapter.is_active():
            return adapter
    return None


__all__ = [
    "ADAPTER_CLASSES",
    "AdapterChange",
    "DisplayManagerAdapter",
    "DisplayManagerKind",
    "GdmAdapter",
    "LightDmAdapter",
    "SddmAdapter",
    "build_adapters",
    "detect_display_manager",
]
