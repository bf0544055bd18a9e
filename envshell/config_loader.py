from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, fields
from json import JSONDecodeError
from pathlib import Path
from typing import Any

from envshell.errors import ConfigError
from envshell.util import xdg_config_home

CONFIG_NAMES = ("config.toml", "config.yaml", "config.yml", "config.json")


@dataclass(frozen=True)
class Settings:
    root_prefix: str | None = None
    auto_stack: int = 0
    auto_activate: bool = False
    changeps1: bool = True
    env_prompt: str = "({default_env}) "
    show_banner: bool = True
    use_target_prefix_fallback: bool = True
    target_prefix_checks: bool = True


@dataclass(frozen=True)
class LoadedSettings:
    path: Path | None
    settings: Settings


def _require_int(value: Any, *, what: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ConfigError(f"'{what}' must be a non-negative integer")
    return value


def _require_str(value: Any, *, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{what}' must be a non-empty string")
    return value


def _require_bool(value: Any, *, what: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{what}' must be a boolean")
    return value


_VALIDATORS = {
    "root_prefix": _require_str,
    "auto_stack": _require_int,
    "auto_activate": _require_bool,
    "changeps1": _require_bool,
    "env_prompt": _require_str,
    "show_banner": _require_bool,
    "use_target_prefix_fallback": _require_bool,
    "target_prefix_checks": _require_bool,
}


def _normalize_top_level(obj: Any, path: Path) -> Settings:
    if obj is None:
        return Settings()
    if not isinstance(obj, dict):
        raise ConfigError(f"{path}: settings must be a table/mapping of keys")

    known = {f.name for f in fields(Settings)}
    extra_keys = set(obj.keys()) - known
    if extra_keys:
        extra = ", ".join(sorted(str(k) for k in extra_keys))
        raise ConfigError(f"{path}: unknown settings (found: {extra}; known: {', '.join(sorted(known))})")

    values: dict[str, Any] = {}
    for key, value in obj.items():
        values[key] = _VALIDATORS[key](value, what=key)
    if "env_prompt" in values:
        _check_env_prompt(values["env_prompt"], path)
    return Settings(**values)


def _check_env_prompt(template: str, path: Path) -> None:
    try:
        template.format(default_env="x", stacked_env="x", prefix="x", name="x")
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigError(f"{path}: invalid 'env_prompt' template {template!r}: {e}") from e


def _load_json(text: str, path: Path) -> Any:
    try:
        return json.loads(text)
    except JSONDecodeError as e:
        raise ConfigError(
            f"Invalid JSON in {path} at line {e.lineno}, column {e.colno}: {e.msg}"
        ) from e


def _load_toml(text: str, path: Path) -> Any:
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def _load_yaml(text: str, path: Path) -> Any:
    import yaml

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        if mark is not None and hasattr(mark, "line") and hasattr(mark, "column"):
            line = int(mark.line) + 1
            col = int(mark.column) + 1
            raise ConfigError(f"Invalid YAML in {path} at line {line}, column {col}: {e}") from e
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def load_settings_file(path: Path) -> LoadedSettings:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Could not read settings file {path}: {e}") from e
    suffix = path.suffix.lower()

    if suffix == ".json":
        raw = _load_json(text, path)
    elif suffix == ".toml":
        raw = _load_toml(text, path)
    elif suffix in (".yaml", ".yml"):
        raw = _load_yaml(text, path)
    else:
        raise ConfigError(
            f"Unsupported settings format for {path} (expected .json, .toml, .yaml, .yml)."
        )
    return LoadedSettings(path=path, settings=_normalize_top_level(raw, path))


def discover_settings_file(explicit: Path | None = None) -> Path | None:
    if explicit is not None:
        return explicit
    env = os.environ.get("ENVSHELL_CONFIG")
    if env:
        return Path(env)
    config_dir = xdg_config_home() / "envshell"
    for name in CONFIG_NAMES:
        candidate = config_dir / name
        if candidate.is_file():
            return candidate
    return None


def load_settings(explicit: Path | None = None) -> LoadedSettings:
    path = discover_settings_file(explicit)
    if path is None:
        return LoadedSettings(path=None, settings=Settings())
    return load_settings_file(path)
