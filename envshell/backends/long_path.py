from __future__ import annotations

import logging
from dataclasses import dataclass

from envshell.backends.registry import HKEY_LOCAL_MACHINE, REG_DWORD, Registry, display_name
from envshell.errors import PrivilegeError

LONG_PATH_KEY = "SYSTEM\\CurrentControlSet\\Control\\FileSystem"
LONG_PATH_NAME = "LongPathsEnabled"


@dataclass(frozen=True)
class LongPathBackend:
    registry: Registry
    logger: logging.Logger
    dry_run: bool = False

    def enabled(self) -> bool:
        found = self.registry.get_value(HKEY_LOCAL_MACHINE, LONG_PATH_KEY, LONG_PATH_NAME)
        return found is not None and found[0] == 1

    def enable(self) -> bool:
        """Set LongPathsEnabled=1. Returns False when it already was."""
        where = display_name(HKEY_LOCAL_MACHINE, LONG_PATH_KEY, LONG_PATH_NAME)
        if self.enabled():
            self.logger.info("Windows long path support is already enabled")
            return False
        if self.dry_run:
            self.logger.info("[dry-run] would set %s to 1", where)
            return True
        try:
            self.registry.set_value(HKEY_LOCAL_MACHINE, LONG_PATH_KEY, LONG_PATH_NAME, 1, REG_DWORD)
        except PermissionError as e:
            raise PrivilegeError(
                f"Could not set {where}: administrator privileges are required. "
                "Run 'envshell enable_long_path_support' from an elevated prompt."
            ) from e
        self.logger.info("Windows long path support enabled")
        return True
