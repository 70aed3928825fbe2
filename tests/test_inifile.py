from __future__ import annotations

from steam_gamescope_installer.lib.inifile import read_section, references_value, update_section


def test_update_rewrites_existing_keys_in_place() -> None:
    text = "[daemon]\nAutomaticLoginEnable=false\nAutomaticLogin=\nTimedLogin=bob\n"

    out = update_section(text, "daemon", {"AutomaticLoginEnable": "true", "AutomaticLogin": "deck"})

    assert out == "[daemon]\nAutomaticLoginEnable=true\nAutomaticLogin=deck\nTimedLogin=bob\n"


def test_update_only_touches_target_section() -> None:
    text = "[security]\nAutomaticLogin=keep\n[daemon]\n"

    out = update_section(text, "daemon", {"AutomaticLogin": "deck"})

    assert out == "[security]\nAutomaticLogin=keep\n[daemon]\nAutomaticLogin=deck\n"


def test_update_appends_missing_section() -> None:
    out = update_section("# header\n[xdmcp]\n", "daemon", {"AutomaticLogin": "deck"})

    assert out == "# header\n[xdmcp]\n\n[daemon]\nAutomaticLogin=deck\n"


def test_update_with_none_deletes_key() -> None:
    out = update_section("[daemon]\nAutomaticLogin=deck\nX=1", "daemon", {"AutomaticLogin": None})

    assert out == "[daemon]\nX=1"


def test_header_without_trailing_newline() -> None:
    assert update_section("[daemon]", "daemon", {"A": "1"}) == "[daemon]\nA=1\n"


def test_read_section_and_references() -> None:
    text = "[Seat:*]\nautologin-user = deck\n#autologin-user=bob\n"

    assert read_section(text, "Seat:*") == {"autologin-user": "deck"}
    assert references_value(text, "autologin-user", "deck")
    assert not references_value(text, "autologin-user", "bob")
