"""
Literal quoting and path conversion for each shell family.

Every function here returns text that the target shell reads back as the
exact input string. Getting this wrong silently breaks the user's shell, so
each rule is kept as small as the shell allows.
"""

from __future__ import annotations

import re
from typing import Iterable


def quote_posix(s: str) -> str:
    # Single quotes keep everything literal; a quote is closed, emitted in
    # double quotes, and reopened.
    return "'" + s.replace("'", "'\"'\"'") + "'"


def escape_posix(s: str) -> str:
    return s.replace("'", "'\"'\"'")


def quote_fish(s: str) -> str:
    # Inside fish single quotes only \\ and \' are escapes.
    return "'" + escape_fish(s) + "'"


def escape_fish(s: str) -> str:
    return s.replace("\\", "\\\\").replace("'", "\\'")


def quote_csh(s: str) -> str:
    return "'" + escape_csh(s) + "'"


def escape_csh(s: str) -> str:
    # History substitution still applies inside csh single quotes.
    return s.replace("'", "'\\''").replace("!", "\\!")


def quote_xonsh(s: str) -> str:
    return repr(s)


def escape_xonsh(s: str) -> str:
    return repr(s)[1:-1]


def quote_powershell(s: str) -> str:
    return "'" + escape_powershell(s) + "'"


def escape_powershell(s: str) -> str:
    return s.replace("'", "''")


def quote_cmd(s: str) -> str:
    return '"' + escape_cmd(s) + '"'


def escape_cmd(s: str) -> str:
    # Double quotes cannot occur in Windows paths; % expands even in quotes.
    return s.replace("%", "%%")


_WIN_DRIVE_RE = re.compile(r"^([A-Za-z]):[\\/]?(.*)$")


def win_path_to_unix(path: str) -> str:
    """C:\\Users\\me -> /c/Users/me (msys / git-bash layout)."""
    m = _WIN_DRIVE_RE.match(path)
    if m is None:
        return path.replace("\\", "/")
    drive, rest = m.group(1).lower(), m.group(2).replace("\\", "/")
    return f"/{drive}/{rest}" if rest else f"/{drive}"


def convert_paths(paths: Iterable[str], *, to_unix: bool) -> list[str]:
    if not to_unix:
        return list(paths)
    return [win_path_to_unix(p) for p in paths]
