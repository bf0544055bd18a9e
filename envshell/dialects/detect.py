from __future__ import annotations

import logging
import os
from pathlib import Path, PureWindowsPath

from envshell.dialects.registry import DialectRegistry
from envshell.host import Host
from envshell.util import CommandRunner


def normalize_process_name(raw: str) -> str:
    """'-bash' / '/usr/bin/zsh' / 'C:\\...\\pwsh.exe' -> 'bash' / 'zsh' / 'pwsh'."""
    name = raw.strip()
    if not name:
        return ""
    name = PureWindowsPath(name).name if "\\" in name else Path(name).name
    name = name.lstrip("-").lower()
    if name.endswith(".exe"):
        name = name[: -len(".exe")]
    if name == "cmd":
        return "cmd.exe"
    return name


def parent_process_name(host: Host, runner: CommandRunner | None, ppid: int | None = None) -> str | None:
    ppid = os.getppid() if ppid is None else ppid
    if host.platform.startswith("linux"):
        comm = Path(f"/proc/{ppid}/comm")
        try:
            return comm.read_text(encoding="utf-8").strip() or None
        except OSError:
            return None
    if host.is_macos and runner is not None:
        res = runner.run(["ps", "-o", "comm=", "-p", str(ppid)], check=False)
        if res.returncode == 0 and res.stdout.strip():
            return res.stdout.strip()
    return None


def guess_shell(
    host: Host,
    registry: DialectRegistry,
    *,
    logger: logging.Logger,
    runner: CommandRunner | None = None,
    ppid: int | None = None,
) -> str | None:
    """
    Best-effort guess of the calling shell's dialect name, or None.

    Order: xonsh marker, parent process, $SHELL, Windows ComSpec.
    """
    if host.environ.get("XONSH_VERSION"):
        return "xonsh"

    candidates: list[str] = []
    parent = parent_process_name(host, runner, ppid)
    if parent:
        candidates.append(parent)
    shell_env = host.environ.get("SHELL")
    if shell_env:
        candidates.append(shell_env)
    if host.is_windows and host.environ.get("ComSpec"):
        candidates.append(host.environ["ComSpec"])

    for raw in candidates:
        name = normalize_process_name(raw)
        dialect = registry.find(name)
        logger.debug("Shell candidate %r -> %s", raw, dialect.name if dialect else "unknown")
        if dialect is not None:
            return dialect.name
    return None
