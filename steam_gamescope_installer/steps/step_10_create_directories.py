from __future__ import annotations

import logging

from ..fileops import ensure_directory
from ..transaction import TransactionContext

logger = logging.getLogger(__name__)


class CreateDirectoriesStep:
    step_id = "10_create_directories"

    def run(self, ctx: TransactionContext) -> None:
        logger.info("Creating directories...")
        for d in ctx.manifest.directories:
            created = ensure_directory(ctx.config.target(d.path), ctx.tracker)
            if created:
                logger.debug("Created %s", ", ".join(str(p) for p in created))
