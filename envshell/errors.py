from __future__ import annotations

from pathlib import Path
from typing import Sequence


class EnvShellError(RuntimeError):
    """Base class for errors reported to the user by the CLI."""


class UnsupportedShellError(EnvShellError, ValueError):
    pass


class PrefixResolutionError(EnvShellError):
    pass


class PrivilegeError(EnvShellError):
    pass


class ConfigError(EnvShellError, ValueError):
    pass


class RcFileWriteError(EnvShellError):
    """A single startup file (or registry entry) could not be read or written."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Could not update {path}: {reason}")
        self.path = path
        self.reason = reason


class RcFileUpdateError(EnvShellError):
    """Raised once a mutation pass is over, listing every file that failed."""

    def __init__(self, errors: Sequence[RcFileWriteError]) -> None:
        self.errors = list(errors)
        lines = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"{len(self.errors)} startup file(s) could not be updated:\n{lines}")
