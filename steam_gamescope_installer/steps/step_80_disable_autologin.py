from __future__ import annotations

import logging

from ..transaction import TransactionContext

logger = logging.getLogger(__name__)


class DisableAutologinStep:
    step_id = "80_disable_autologin"

    def run(self, ctx: TransactionContext) -> None:
        if not ctx.disable_autologin:
            logger.info("Skipping autologin removal")
            return
        changed = ctx.autologin.revert_autologin(ctx.account, ctx.autologin_kinds)
        if not changed:
            logger.info("No autologin configuration to remove")
