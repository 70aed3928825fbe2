from __future__ import annotations

import logging

from ..transaction import TransactionContext

logger = logging.getLogger(__name__)


class EnableAutologinStep:
    step_id = "30_enable_autologin"

    def run(self, ctx: TransactionContext) -> None:
        if not ctx.enable_autologin:
            logger.debug("Autologin not requested")
            return
        # NoSupportedDisplayManager is soft: the controller warns and carries on.
        ctx.autologin.apply_autologin(ctx.account)
