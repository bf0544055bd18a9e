from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping


@dataclass(frozen=True)
class Host:
    """
    The machine and user the shell integration is computed for.

    Every path and PATH decision goes through a Host instead of reading
    sys.platform / os.environ directly, so tests can pin all three.
    """

    platform: str
    home: Path
    environ: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def current(cls) -> "Host":
        return cls(platform=sys.platform, home=Path.home(), environ=dict(os.environ))

    @property
    def is_windows(self) -> bool:
        return self.platform.startswith("win")

    @property
    def is_macos(self) -> bool:
        return self.platform == "darwin"

    @property
    def pathsep(self) -> str:
        return ";" if self.is_windows else ":"

    def xdg_config_home(self) -> Path:
        value = self.environ.get("XDG_CONFIG_HOME")
        if value:
            return Path(value)
        return self.home / ".config"

    def zdotdir(self) -> Path:
        value = self.environ.get("ZDOTDIR")
        if value:
            return Path(value)
        return self.home
