from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from envshell.host import Host
from envshell.util import CommandRunner


def default_shell(host: Host) -> str:
    shell = host.environ.get("SHELL")
    if shell:
        return shell
    if host.is_windows:
        return "cmd.exe"
    if host.is_macos:
        return "zsh"
    return "bash"


@dataclass(frozen=True)
class SubshellBackend:
    runner: CommandRunner
    logger: logging.Logger

    def launch(self, shell: str, *, env: Mapping[str, str], unset: Sequence[str] = ()) -> int:
        """Run `shell` interactively in `env` and wait for it. Returns its exit code."""
        self.logger.debug("Launching %s", shell)
        try:
            res = self.runner.run([shell], capture=False, env=env, unset=unset)
        except FileNotFoundError:
            self.logger.error("Shell executable not found: %s", shell)
            return 127
        return res.returncode
