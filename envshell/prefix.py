"""
Environment prefix resolution.

`resolve_prefix` never checks that the result exists: `init` and `hook` only
need to know where an environment would live.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from envshell.errors import PrefixResolutionError

if TYPE_CHECKING:
    from envshell.core import Context

ROOT_ENV_NAMES = ("", "base")
ENVS_DIRNAME = "envs"


def _looks_like_path(value: str) -> bool:
    return "/" in value or "\\" in value or value.startswith("~") or value in (".", "..")


def resolve_prefix(root_prefix: Path, value: str | None) -> Path:
    value = (value or "").strip()
    if value in ROOT_ENV_NAMES:
        return root_prefix
    if _looks_like_path(value) or os.path.exists(value):
        return Path(os.path.abspath(os.path.expanduser(value)))
    return root_prefix / ENVS_DIRNAME / value


def validate_root_prefix(value: str) -> Path:
    if not value or not value.strip():
        raise PrefixResolutionError("The root prefix is empty; set --root-prefix or ENVSHELL_ROOT_PREFIX.")
    if "\0" in value:
        raise PrefixResolutionError(f"The root prefix contains a NUL byte: {value!r}")
    path = Path(os.path.abspath(os.path.expandvars(os.path.expanduser(value.strip()))))
    if path.exists() and not path.is_dir():
        raise PrefixResolutionError(f"The root prefix {path} exists and is not a directory.")
    return path


def _comparable(path: str) -> str:
    return path.replace("\\", "/").rstrip("/")


def env_name(prefix: Path | str, root_prefix: Path | str) -> str:
    """Display name of an environment: 'base', its name under envs/, or its path."""
    prefix, root_prefix = str(prefix), str(root_prefix)
    if _comparable(prefix) == _comparable(root_prefix):
        return "base"
    parts = _comparable(prefix).split("/")
    if len(parts) >= 2 and parts[-2] == ENVS_DIRNAME:
        return parts[-1]
    return prefix


def resolve_target_prefix(ctx: "Context", value: str | None) -> Path:
    """
    resolve_prefix plus the two safety switches of the options.

    Shell commands run with both switches off, so for them this is exactly
    resolve_prefix.
    """
    active = ctx.host.environ.get("ENVSHELL_PREFIX")
    if not (value or "").strip() and ctx.options.use_target_prefix_fallback and active:
        prefix = Path(active)
    else:
        prefix = resolve_prefix(ctx.root_prefix, value)

    if ctx.options.target_prefix_checks and not prefix.is_dir():
        raise PrefixResolutionError(f"No environment found at {prefix}")
    return prefix
