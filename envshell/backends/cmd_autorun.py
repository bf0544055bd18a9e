"""
cmd.exe has no startup file; it runs the `AutoRun` registry value of every
new interactive session instead. envshell owns one `@IF EXIST ... @CALL ...`
entry in that value and leaves anything else the user put there alone.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from envshell.backends.registry import HKEY_CURRENT_USER, REG_SZ, Registry, display_name
from envshell.errors import RcFileWriteError
from envshell.rcfile import RcAction, RcResult

AUTORUN_KEY = "Software\\Microsoft\\Command Processor"
AUTORUN_NAME = "AutoRun"
HOOK_NAME = "envshell_hook.bat"

_ENTRY = r'@IF EXIST "[^"]*' + re.escape(HOOK_NAME) + r'" @CALL "[^"]*' + re.escape(HOOK_NAME) + r'"'
_ENTRY_RE = re.compile(_ENTRY, re.IGNORECASE)


def autorun_command(hook_path: str) -> str:
    # Not run through the batch escaper: AutoRun is a command line, where %% stays literal.
    return f'@IF EXIST "{hook_path}" @CALL "{hook_path}"'


def remove_entries(value: str) -> str:
    value = re.sub(r"\s*&\s*" + _ENTRY, "", value, flags=re.IGNORECASE)
    value = re.sub(_ENTRY + r"\s*&\s*", "", value, flags=re.IGNORECASE)
    value = _ENTRY_RE.sub("", value)
    return value.strip()


def add_entry(value: str, command: str) -> str:
    rest = remove_entries(value)
    return f"{rest} & {command}" if rest else command


@dataclass(frozen=True)
class CmdAutorunBackend:
    registry: Registry
    logger: logging.Logger
    dry_run: bool = False

    @property
    def location(self) -> str:
        return display_name(HKEY_CURRENT_USER, AUTORUN_KEY, AUTORUN_NAME)

    def _read(self) -> tuple[str, str]:
        try:
            found = self.registry.get_value(HKEY_CURRENT_USER, AUTORUN_KEY, AUTORUN_NAME)
        except OSError as e:
            raise RcFileWriteError(self.location, str(e)) from e
        if found is None:
            return "", REG_SZ
        data, kind = found
        return str(data), kind

    def _write(self, value: str, kind: str) -> None:
        if self.dry_run:
            self.logger.info("[dry-run] would set %s to %r", self.location, value)
            return
        try:
            if value:
                self.registry.set_value(HKEY_CURRENT_USER, AUTORUN_KEY, AUTORUN_NAME, value, kind)
            else:
                self.registry.delete_value(HKEY_CURRENT_USER, AUTORUN_KEY, AUTORUN_NAME)
        except PermissionError as e:
            raise RcFileWriteError(self.location, "permission denied") from e
        except OSError as e:
            raise RcFileWriteError(self.location, str(e)) from e

    def installed(self) -> bool:
        value, _kind = self._read()
        return _ENTRY_RE.search(value) is not None

    def install(self, command: str) -> RcResult:
        value, kind = self._read()
        updated = add_entry(value, command)
        if updated == value:
            return RcResult(self.location, RcAction.UNCHANGED, "cmd.exe")
        action = RcAction.UPDATED if _ENTRY_RE.search(value) else RcAction.ADDED
        self._write(updated, kind)
        self.logger.info("%s envshell entry in %s", action.value.capitalize(), self.location)
        return RcResult(self.location, action, "cmd.exe")

    def uninstall(self) -> RcResult:
        value, kind = self._read()
        if _ENTRY_RE.search(value) is None:
            return RcResult(self.location, RcAction.ABSENT)
        self._write(remove_entries(value), kind)
        self.logger.info("Removed envshell entry from %s", self.location)
        return RcResult(self.location, RcAction.REMOVED, "cmd.exe")
