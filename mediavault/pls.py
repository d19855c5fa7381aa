# mediavault/pls.py
"""PLS playlist parsing (https://en.wikipedia.org/wiki/PLS_(file_format))."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .client import Getter

MAX_ENTRIES = 100
DEFAULT_VERSION = 2

_ENTRY_RE = re.compile(r"(?i)(File|Title|Length)(\d+)=(.+)")
_VERSION_RE = re.compile(r"(?i)Version=(\d+)")
_NUMBER_RE = re.compile(r"(?i)NumberOfEntries=(\d+)")


class PLSError(ValueError):
    pass


@dataclass
class PLSEntry:
    index: int
    file: str = ""
    title: str = ""
    length: int = 0


@dataclass
class PLSPlaylist:
    version: int = DEFAULT_VERSION
    number_of_entries: int = 0
    entries: List[PLSEntry] = field(default_factory=list)


def _atoi(s: str) -> int:
    try:
        return int(s.strip())
    except ValueError:
        return 0


def parse_pls(text: str) -> PLSPlaylist:
    entries: Dict[int, PLSEntry] = {}
    number = 0
    version = DEFAULT_VERSION
    for line in (text or "").splitlines():
        m = _ENTRY_RE.search(line)
        if m:
            idx = _atoi(m.group(2))
            e = entries.setdefault(idx, PLSEntry(index=idx))
            name, value = m.group(1).lower(), m.group(3).strip()
            if name == "file":
                e.file = value
            elif name == "title":
                e.title = value
            else:
                e.length = _atoi(value)
        m = _VERSION_RE.search(line)
        if m:
            version = _atoi(m.group(1))
        m = _NUMBER_RE.search(line)
        if m:
            number = _atoi(m.group(1))

    if version != DEFAULT_VERSION or number != len(entries):
        raise PLSError("invalid format")
    if number > MAX_ENTRIES:
        raise PLSError("max entries exceeded")

    result = []
    for i in range(1, number + 1):
        e = entries.get(i)
        if e is None:
            break
        result.append(e)
    return PLSPlaylist(version=version, number_of_entries=number, entries=result)


def fetch_pls(getter: Getter, url: str) -> Optional[PLSPlaylist]:
    text = getter.get_text(url)
    if text is None:
        return None
    return parse_pls(text)
