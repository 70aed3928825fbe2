"""Line-preserving edits of INI-style display-manager config files.

``configparser`` would normalise whitespace and drop comments, which is not
acceptable for shared files such as GDM's ``custom.conf``.
"""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Optional

_SECTION_RE = re.compile(r"^\s*\[(?P<name>[^\]]+)\]\s*$")
_KEY_RE = re.compile(r"^\s*(?P<key>[A-Za-z0-9_.-]+)\s*=\s*(?P<value>.*?)\s*$")


def read_section(text: str, section: str) -> Dict[str, str]:
    values: Dict[str, str] = {}
    current: Optional[str] = None
    for line in text.splitlines():
        m = _SECTION_RE.match(line)
        if m:
            current = m.group("name").strip()
            continue
        if current != section:
            continue
        km = _KEY_RE.match(line)
        if km:
            values[km.group("key")] = km.group("value")
    return values


def update_section(text: str, section: str, values: Mapping[str, Optional[str]]) -> str:
    """Set (or, for ``None``, delete) keys inside ``[section]``.

    Existing key lines are rewritten in place; keys not present yet are
    inserted right after the section header. A missing section is appended.
    Every other line is kept byte-for-byte.
    """

    lines = text.splitlines(keepends=True)
    out: List[str] = []
    pending = dict(values)
    current: Optional[str] = None
    header_index: Optional[int] = None

    for line in lines:
        m = _SECTION_RE.match(line)
        if m:
            current = m.group("name").strip()
            out.append(line)
            if current == section and header_index is None:
                header_index = len(out)
            continue

        km = _KEY_RE.match(line) if current == section else None
        if km and km.group("key") in values:
            key = km.group("key")
            if key not in pending:
                # Duplicate key line; the first one already carries the value.
                continue
            new_value = pending.pop(key)
            if new_value is not None:
                ending = "\n" if line.endswith("\n") else ""
                out.append(f"{key}={new_value}{ending}")
            continue
        out.append(line)

    additions = [f"{k}={v}\n" for k, v in pending.items() if v is not None]
    if not additions:
        return "".join(out)

    if header_index is not None:
        if header_index > 0 and not out[header_index - 1].endswith("\n"):
            out[header_index - 1] += "\n"
        out[header_index:header_index] = additions
        return "".join(out)

    body = "".join(out)
    if body and not body.endswith("\n"):
        body += "\n"
    if body.strip():
        body += "\n"
    return body + f"[{section}]\n" + "".join(additions)


def references_value(text: str, key: str, value: str) -> bool:
    """True if any uncommented ``key=value`` line exists, in any section."""
    for line in text.splitlines():
        km = _KEY_RE.match(line)
        if km and km.group("key") == key and km.group("value") == value:
            return True
    return False
