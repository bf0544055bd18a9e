from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from envshell.backends.registry import Registry, WinRegistry
from envshell.config_loader import Settings
from envshell.dialects.registry import DialectRegistry, default_registry
from envshell.host import Host
from envshell.prefix import validate_root_prefix
from envshell.util import CommandRunner, self_exe_path

DEFAULT_ROOT_PREFIX = "~/envshell"


@dataclass(frozen=True)
class Options:
    dry_run: bool
    show_banner: bool
    use_target_prefix_fallback: bool
    target_prefix_checks: bool
    changeps1: bool
    env_prompt: str
    auto_stack: int
    auto_activate: bool


def shell_options(settings: Settings, *, dry_run: bool = False) -> Options:
    """
    Options for every shell command.

    The banner, the "is this the target environment" fallback and the target
    prefix checks are always off, whatever the settings file says.
    """
    return Options(
        dry_run=dry_run,
        show_banner=False,
        use_target_prefix_fallback=False,
        target_prefix_checks=False,
        changeps1=settings.changeps1,
        env_prompt=settings.env_prompt,
        auto_stack=settings.auto_stack,
        auto_activate=settings.auto_activate,
    )


@dataclass(frozen=True)
class Context:
    root_prefix: Path
    exe: str
    host: Host
    logger: logging.Logger
    runner: CommandRunner
    registry: DialectRegistry
    options: Options
    win_registry: Registry = field(default_factory=WinRegistry)


def choose_root_prefix(settings: Settings, *, override: str | None, host: Host) -> Path:
    # --root-prefix, then $ENVSHELL_ROOT_PREFIX, then settings, then the default.
    raw = override or host.environ.get("ENVSHELL_ROOT_PREFIX") or settings.root_prefix or DEFAULT_ROOT_PREFIX
    if raw.startswith("~"):
        raw = str(host.home) + raw[1:]
    return validate_root_prefix(raw)


def build_context(
    *,
    settings: Settings,
    options: Options,
    logger: logging.Logger,
    root_prefix: str | None = None,
    host: Host | None = None,
    exe: str | None = None,
    registry: DialectRegistry | None = None,
    win_registry: Registry | None = None,
) -> Context:
    host = host or Host.current()
    runner = CommandRunner(dry_run=options.dry_run, logger=logger)
    root = choose_root_prefix(settings, override=root_prefix, host=host)
    if exe is None:
        exe = self_exe_path()

    return Context(
        root_prefix=root,
        exe=exe,
        host=host,
        logger=logger,
        runner=runner,
        registry=registry or default_registry(),
        options=options,
        win_registry=win_registry or WinRegistry(),
    )
