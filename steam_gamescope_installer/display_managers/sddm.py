from __future__ import annotations

from .base import DisplayManagerKind, DropInAdapter


class SddmAdapter(DropInAdapter):
    kind = DisplayManagerKind.SDDM
    binaries = ("sddm",)
    fragment_path = "/etc/sddm.conf.d/autologin.conf"
    backup_globs = ("/etc/sddm.conf.d/*.backup.*",)

    def render_fragment(self, account: str) -> str:
        return "\n".join(
            [
                "[Autologin]",
                f"User={account}",
                f"Session={self.session}.desktop",
                "Relogin=false",
                "",
            ]
        )
