from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import CommandError, DisplayManagerConfigError
from ..lib.inifile import references_value
from .base import AdapterChange, DisplayManagerKind, DropInAdapter

logger = logging.getLogger(__name__)

AUTOLOGIN_GROUP = "autologin"


class LightDmAdapter(DropInAdapter):
    """LightDM drop-in plus membership of the ``autologin`` group.

    LightDM's PAM stack only skips the password for members of that group,
    so enable/disable also manage membership. Removal is skipped while any
    other LightDM config still autologins the same account.
    """

    kind = DisplayManagerKind.LIGHTDM
    binaries = ("lightdm",)
    fragment_path = "/etc/lightdm/lightdm.conf.d/50-gamescope-autologin.conf"
    main_config_path = "/etc/lightdm/lightdm.conf"
    backup_globs = (
        "/etc/lightdm/lightdm.conf.backup.*",
        "/etc/lightdm/lightdm.conf.d/*.backup.*",
    )

    def render_fragment(self, account: str) -> str:
        return "\n".join(
            [
                "[Seat:*]",
                f"autologin-user={account}",
                "autologin-user-timeout=0",
                f"autologin-session={self.session}",
                "",
            ]
        )

    # group membership

    def group_members(self) -> Optional[List[str]]:
        """Members of the autologin group, or None if the group does not exist."""
        r = self._runner(["getent", "group", AUTOLOGIN_GROUP], check=False)
        if r.returncode != 0 or not r.stdout.strip():
            return None
        fields = r.stdout.strip().splitlines()[0].split(":")
        members = fields[3] if len(fields) > 3 else ""
        return [m for m in members.split(",") if m]

    def _add_to_group(self, account: str) -> None:
        members = self.group_members()
        try:
            if members is None:
                self._runner(["groupadd", "-r", AUTOLOGIN_GROUP])
                logger.info("Created system group %s", AUTOLOGIN_GROUP)
                members = []
            if account not in members:
                self._runner(["gpasswd", "-a", account, AUTOLOGIN_GROUP])
                logger.info("Added %s to %s group", account, AUTOLOGIN_GROUP)
        except CommandError as e:
            raise DisplayManagerConfigError(f"Cannot add {account} to group {AUTOLOGIN_GROUP}: {e}") from e

    def _remove_from_group(self, account: str) -> bool:
        members = self.group_members()
        if not members or account not in members:
            return False
        if self.referenced_elsewhere(account):
            logger.info(
                "Keeping %s in %s group: another LightDM config still autologins it", account, AUTOLOGIN_GROUP
            )
            return False
        r = self._runner(["gpasswd", "-d", account, AUTOLOGIN_GROUP], check=False)
        if r.returncode != 0:
            logger.warning("Could not remove %s from %s group: %s", account, AUTOLOGIN_GROUP, r.stderr.strip())
            return False
        logger.info("Removed %s from %s group", account, AUTOLOGIN_GROUP)
        return True

    def referenced_elsewhere(self, account: str) -> bool:
        """True if a config other than our fragment sets ``autologin-user=account``."""
        candidates: List[Path] = [self.path(self.main_config_path)]
        conf_d = self.fragment.parent
        if conf_d.is_dir():
            candidates += sorted(p for p in conf_d.glob("*.conf") if p != self.fragment)
        for p in candidates:
            try:
                text = p.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            if references_value(text, "autologin-user", account):
                logger.debug("%s references autologin-user=%s", p, account)
                return True
        return False

    # adapter capability set

    def current_autologin_state(self, account: str) -> Dict[str, Any]:
        members = self.group_members()
        state = super().current_autologin_state(account)
        state["group_existed"] = members is not None
        state["in_group"] = account in (members or [])
        return state

    def enable_autologin(self, account: str) -> AdapterChange:
        changed = self.write_fragment(self.render_fragment(account))
        self._add_to_group(account)
        return AdapterChange(changed=changed)

    def disable_autologin(self, account: str) -> AdapterChange:
        changed = self.delete_fragment()
        if self.group_members() is not None:
            changed = self._remove_from_group(account) or changed
        return AdapterChange(changed=changed)

    def restore_state(self, account: str, state: Dict[str, Any]) -> None:
        super().restore_state(account, state)

        if not state.get("in_group"):
            self._remove_from_group(account)

        if not state.get("group_existed"):
            members = self.group_members()
            if members is not None and not members:
                r = self._runner(["groupdel", AUTOLOGIN_GROUP], check=False)
                if r.returncode == 0:
                    logger.info("Removed %s group created by this run", AUTOLOGIN_GROUP)
                else:
                    logger.warning("Could not remove %s group: %s", AUTOLOGIN_GROUP, r.stderr.strip())
