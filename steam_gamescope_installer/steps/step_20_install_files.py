from __future__ import annotations

import logging

from ..fileops import install_file
from ..transaction import TransactionContext

logger = logging.getLogger(__name__)


class InstallSessionFilesStep:
    step_id = "20_install_session_files"

    def run(self, ctx: TransactionContext) -> None:
        logger.info("Installing scripts...")
        installed = 0
        for f in ctx.manifest.files:
            source = ctx.config.source(f.source)
            if f.optional and not source.is_file():
                logger.debug("Optional file %s not shipped; skipping", source)
                continue
            install_file(source, ctx.config.target(f.destination), f.mode, ctx.tracker)
            installed += 1
        logger.info("Installed %d files", installed)
