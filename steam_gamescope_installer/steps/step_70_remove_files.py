from __future__ import annotations

import logging

from ..errors import DirectoryNotEmpty
from ..fileops import RemoveOutcome, remove_path
from ..transaction import TransactionContext

logger = logging.getLogger(__name__)


class RemoveSessionFilesStep:
    step_id = "70_remove_session_files"

    def run(self, ctx: TransactionContext) -> None:
        logger.info("Removing Steam Gamescope session files...")
        removed = 0
        targets = [ctx.config.target(f.destination) for f in ctx.manifest.files]
        # Directories go last so their files are already gone.
        targets += [ctx.config.target(d.path) for d in ctx.manifest.removable_directories]

        for path in targets:
            outcome = remove_path(path)
            if outcome is RemoveOutcome.REMOVED:
                removed += 1
            elif outcome is RemoveOutcome.NOT_EMPTY:
                ctx.warn(DirectoryNotEmpty(str(path)))
        logger.info("Removed %d paths", removed)
