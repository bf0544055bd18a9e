"""
Activation code generation.

The live shell owns the activation state. Each `envshell activate` runs in a
fresh process that reads the frame stack from the environment it inherited
(ENVSHELL_SHLVL, ENVSHELL_PREFIX, ENVSHELL_PREFIX_<n>, ENVSHELL_STACKED_<n>),
computes an ActivationPlan and prints it in the caller's dialect. The shell
evaluates the output, which updates those same variables for the next call.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping

from envshell.core import Context, Options
from envshell.dialects.api import Dialect, HookParams
from envshell.dialects.quoting import convert_paths
from envshell.host import Host
from envshell.prefix import env_name
from envshell.rcfile import render_block

SHLVL = "ENVSHELL_SHLVL"
PREFIX = "ENVSHELL_PREFIX"
DEFAULT_ENV = "ENVSHELL_DEFAULT_ENV"
PROMPT_MODIFIER = "ENVSHELL_PROMPT_MODIFIER"

_CLEAN_PATHS = {
    "darwin": "/usr/bin:/bin:/usr/sbin:/sbin",
    "win32": "C:\\Windows\\system32;C:\\Windows;C:\\Windows\\System32\\Wbem",
}

_WINDOWS_PATH_DIRS = (
    ("Library", "mingw-w64", "bin"),
    ("Library", "usr", "bin"),
    ("Library", "bin"),
    ("Scripts",),
    ("bin",),
)


def _prefix_var(level: int) -> str:
    return f"ENVSHELL_PREFIX_{level}"


def _stacked_var(level: int) -> str:
    return f"ENVSHELL_STACKED_{level}"


@dataclass(frozen=True)
class ActivationFrame:
    level: int
    prefix: str
    stacked: bool


@dataclass(frozen=True)
class FrameStack:
    frames: tuple[ActivationFrame, ...] = ()

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "FrameStack":
        try:
            depth = int(environ.get(SHLVL, "").strip() or 0)
        except ValueError:
            depth = 0
        top = environ.get(PREFIX, "")
        if depth < 1 or not top:
            return cls()

        frames = []
        for level in range(1, depth + 1):
            prefix = top if level == depth else environ.get(_prefix_var(level), "").rstrip()
            stacked = bool(environ.get(_stacked_var(level), "").strip())
            frames.append(ActivationFrame(level=level, prefix=prefix, stacked=stacked))
        return cls(tuple(frames))

    @property
    def depth(self) -> int:
        return len(self.frames)

    @property
    def top(self) -> ActivationFrame | None:
        return self.frames[-1] if self.frames else None


@dataclass
class ActivationPlan:
    unset_vars: list[str] = field(default_factory=list)
    set_vars: dict[str, str] = field(default_factory=dict)
    export_vars: dict[str, str] = field(default_factory=dict)
    export_path: dict[str, list[str]] = field(default_factory=dict)
    deactivate_scripts: list[str] = field(default_factory=list)
    activate_scripts: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (
            self.unset_vars
            or self.set_vars
            or self.export_vars
            or self.export_path
            or self.deactivate_scripts
            or self.activate_scripts
        )


class _Operation(Enum):
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    REACTIVATE = "reactivate"


class Activator:
    """Builds ActivationPlans for one dialect on one host."""

    def __init__(
        self,
        dialect: Dialect,
        *,
        host: Host,
        root_prefix: str,
        exe: str,
        options: Options,
        logger: logging.Logger | None = None,
    ) -> None:
        self.dialect = dialect
        self.host = host
        self.root_prefix = root_prefix
        self.exe = exe
        self.options = options
        self._logger = logger or logging.getLogger("envshell")
        self._sep = "\\" if host.is_windows else "/"
        self._to_unix = host.is_windows and dialect.syntax.unix_paths_on_windows

    # -- paths ---------------------------------------------------------------

    def _join(self, *parts: str) -> str:
        return self._sep.join(parts)

    def _convert(self, paths: Iterable[str]) -> list[str]:
        return convert_paths(paths, to_unix=self._to_unix)

    def _path_key(self, path: str) -> str:
        key = path.replace("\\", "/").rstrip("/")
        return key.lower() if self.host.is_windows else key

    def path_dirs(self, prefix: str) -> list[str]:
        if not self.host.is_windows:
            return self._convert([self._join(prefix.rstrip("/"), "bin")])
        prefix = prefix.rstrip("\\/")
        dirs = [prefix, *(self._join(prefix, *parts) for parts in _WINDOWS_PATH_DIRS)]
        return self._convert(dirs)

    def starting_path(self) -> list[str]:
        env_path = self.host.environ.get("PATH")
        if env_path is None:
            env_path = _CLEAN_PATHS.get(self.host.platform, "/usr/bin")
        return self._convert(p for p in env_path.split(self.host.pathsep) if p)

    def _index_of(self, paths: list[str], wanted: str) -> int | None:
        key = self._path_key(wanted)
        for i, path in enumerate(paths):
            if self._path_key(path) == key:
                return i
        return None

    def add_prefix_to_path(self, prefix: str) -> list[str]:
        return [*self.path_dirs(prefix), *self.starting_path()]

    def replace_prefix_in_path(self, old_prefix: str | None, new_prefix: str | None) -> list[str]:
        """
        Swap the PATH entries of `old_prefix` for those of `new_prefix`.

        The new entries go where the old ones were; when the old prefix is not
        on PATH they go to the front.
        """
        path_list = self.starting_path()
        first_idx = 0
        if old_prefix:
            old_dirs = self.path_dirs(old_prefix)
            found = self._index_of(path_list, old_dirs[0])
            if found is not None:
                first_idx = found
                last_idx = None
                for candidate in reversed(old_dirs):
                    last_idx = self._index_of(path_list, candidate)
                    if last_idx is not None:
                        break
                    self._logger.debug("Did not find PATH entry %s", candidate)
                if last_idx is None or last_idx < first_idx:
                    last_idx = first_idx
                del path_list[first_idx : last_idx + 1]
        if new_prefix:
            path_list[first_idx:first_idx] = self.path_dirs(new_prefix)
        return path_list

    def remove_prefix_from_path(self, prefix: str) -> list[str]:
        return self.replace_prefix_in_path(prefix, None)

    # -- scripts -------------------------------------------------------------

    def _scripts(self, prefix: str, kind: str, *, reverse: bool) -> list[str]:
        ext = self.dialect.syntax.script_extension
        directory = self._join(prefix.rstrip("\\/"), "etc", "conda", kind)
        try:
            with os.scandir(directory) as it:
                found = sorted((e.name for e in it if e.name.endswith(ext)), reverse=reverse)
        except OSError:
            return []
        return self._convert(self._join(directory, name) for name in found)

    def activate_scripts(self, prefix: str) -> list[str]:
        return self._scripts(prefix, "activate.d", reverse=False)

    def deactivate_scripts(self, prefix: str) -> list[str]:
        return self._scripts(prefix, "deactivate.d", reverse=True)

    # -- prompt --------------------------------------------------------------

    def default_env(self, prefix: str) -> str:
        return env_name(prefix, self.root_prefix)

    def prompt_modifier(
        self,
        stack: FrameStack,
        op: _Operation,
        prefix: str,
        default_env: str,
        *,
        stacking: bool = False,
    ) -> str:
        if not self.options.changeps1:
            return ""

        env_stack: list[str] = []
        prompt_stack: list[str] = []
        for frame in stack.frames:
            name = self.default_env(frame.prefix)
            env_stack.append(name)
            if not frame.stacked:
                prompt_stack = prompt_stack[:-1]
            prompt_stack.append(name)

        if op is _Operation.DEACTIVATE:
            prompt_stack = prompt_stack[:-1]
            env_stack = env_stack[:-1]
            top = stack.top
            if not (top and top.stacked) and env_stack:
                prompt_stack.append(env_stack[-1])
        elif op is _Operation.ACTIVATE:
            if not stacking:
                prompt_stack = prompt_stack[:-1]
            prompt_stack.append(default_env)

        return self.options.env_prompt.format(
            default_env=default_env,
            stacked_env=",".join(reversed(prompt_stack)),
            prefix=prefix,
            name=re.split(r"[\\/]", prefix.rstrip("\\/"))[-1],
        )

    def _update_prompt(self, plan: ActivationPlan, modifier: str) -> None:
        var = self.dialect.prompt_var
        if not self.options.changeps1 or var is None or var not in self.host.environ:
            return
        current = self.host.environ[var]
        if "POWERLINE_COMMAND" in current:
            return
        old = self.host.environ.get(PROMPT_MODIFIER)
        if old:
            current = current.replace(old, "", 1)
        plan.set_vars[var] = modifier + current

    # -- plans ---------------------------------------------------------------

    def _meta_vars(self) -> dict[str, str]:
        return {"ENVSHELL_EXE": self.exe, "ENVSHELL_ROOT_PREFIX": self.root_prefix}

    def _split(self, values: Mapping[str, str | None]) -> tuple[dict[str, str], list[str]]:
        export_vars: dict[str, str] = {}
        unset_vars: list[str] = []
        for name, value in values.items():
            if value is None:
                unset_vars.append(name)
            else:
                export_vars[name] = value
        return export_vars, unset_vars

    def build_activate(self, prefix: str, stack: bool = False) -> ActivationPlan:
        frames = FrameStack.from_environ(self.host.environ)
        top = frames.top
        if top is not None and self._path_key(top.prefix) == self._path_key(prefix):
            return self.build_reactivate()

        auto = self.options.auto_stack
        stacking = stack or (auto > 0 and frames.depth <= auto)
        new_level = frames.depth + 1
        default_env = self.default_env(prefix)
        modifier = self.prompt_modifier(frames, _Operation.ACTIVATE, prefix, default_env, stacking=stacking)

        values: dict[str, str | None] = {
            PREFIX: prefix,
            SHLVL: str(new_level),
            DEFAULT_ENV: default_env,
            PROMPT_MODIFIER: modifier,
            **self._meta_vars(),
        }
        deactivate_scripts: list[str] = []
        if top is None:
            path = self.add_prefix_to_path(prefix)
        elif stacking:
            path = self.add_prefix_to_path(prefix)
            values[_prefix_var(top.level)] = top.prefix
            values[_stacked_var(new_level)] = "true"
        else:
            path = self.replace_prefix_in_path(top.prefix, prefix)
            values[_prefix_var(top.level)] = top.prefix
            deactivate_scripts = self.deactivate_scripts(top.prefix)

        export_vars, unset_vars = self._split(values)
        plan = ActivationPlan(
            unset_vars=unset_vars,
            export_vars=export_vars,
            export_path={"PATH": path},
            deactivate_scripts=deactivate_scripts,
            activate_scripts=self.activate_scripts(prefix),
        )
        self._update_prompt(plan, modifier)
        return plan

    def build_deactivate(self) -> ActivationPlan:
        frames = FrameStack.from_environ(self.host.environ)
        top = frames.top
        if top is None:
            self._logger.debug("No active environment to deactivate")
            return ActivationPlan()

        new_level = top.level - 1
        deactivate_scripts = self.deactivate_scripts(top.prefix)
        if new_level == 0:
            path = self.remove_prefix_from_path(top.prefix)
            values: dict[str, str | None] = {
                PREFIX: None,
                SHLVL: "0",
                DEFAULT_ENV: None,
                PROMPT_MODIFIER: None,
            }
            modifier = ""
            activate_scripts: list[str] = []
        else:
            below = frames.frames[-2]
            default_env = self.default_env(below.prefix)
            modifier = self.prompt_modifier(frames, _Operation.DEACTIVATE, below.prefix, default_env)
            values = {
                PREFIX: below.prefix,
                SHLVL: str(new_level),
                DEFAULT_ENV: default_env,
                PROMPT_MODIFIER: modifier,
                _prefix_var(below.level): None,
            }
            if top.stacked:
                path = self.remove_prefix_from_path(top.prefix)
                values[_stacked_var(top.level)] = None
            else:
                path = self.replace_prefix_in_path(top.prefix, below.prefix)
            activate_scripts = self.activate_scripts(below.prefix)

        export_vars, unset_vars = self._split(values)
        plan = ActivationPlan(
            unset_vars=unset_vars,
            export_vars=export_vars,
            export_path={"PATH": path},
            deactivate_scripts=deactivate_scripts,
            activate_scripts=activate_scripts,
        )
        self._update_prompt(plan, modifier)
        return plan

    def build_reactivate(self) -> ActivationPlan:
        frames = FrameStack.from_environ(self.host.environ)
        top = frames.top
        if top is None:
            self._logger.debug("No active environment to reactivate")
            return ActivationPlan()

        default_env = self.host.environ.get(DEFAULT_ENV) or self.default_env(top.prefix)
        modifier = self.prompt_modifier(frames, _Operation.REACTIVATE, top.prefix, default_env)
        plan = ActivationPlan(
            export_vars={SHLVL: str(top.level), PROMPT_MODIFIER: modifier},
            export_path={"PATH": self.replace_prefix_in_path(top.prefix, top.prefix)},
            deactivate_scripts=self.deactivate_scripts(top.prefix),
            activate_scripts=self.activate_scripts(top.prefix),
        )
        self._update_prompt(plan, modifier)
        return plan

    # -- output --------------------------------------------------------------

    def render(self, plan: ActivationPlan) -> str:
        syntax = self.dialect.syntax
        commands: list[str] = []
        for name, dirs in sorted(plan.export_path.items()):
            commands.append(syntax.render_export_path(name, dirs, windows=self.host.is_windows))
        commands.extend(syntax.render_run_script(s) for s in plan.deactivate_scripts)
        commands.extend(syntax.render_unset(name) for name in plan.unset_vars)
        commands.extend(syntax.render_set(name, value) for name, value in plan.set_vars.items())
        commands.extend(syntax.render_export(name, value) for name, value in plan.export_vars.items())
        commands.extend(syntax.render_run_script(s) for s in plan.activate_scripts)
        if not commands:
            return ""
        return syntax.command_join.join([*commands, ""])


def activator_for(ctx: Context, dialect: Dialect) -> Activator:
    return Activator(
        dialect,
        host=ctx.host,
        root_prefix=str(ctx.root_prefix),
        exe=ctx.exe,
        options=ctx.options,
        logger=ctx.logger,
    )


def hook_params(exe: str, root_prefix: str, options: Options) -> HookParams:
    return HookParams(
        exe=exe,
        root_prefix=root_prefix,
        changeps1=options.changeps1,
        auto_activate=options.auto_activate,
    )


def emit_hook(dialect: Dialect, exe: str, root_prefix: str, options: Options) -> str:
    """Hook source for `dialect`. Depends only on its arguments."""
    return dialect.hook(dialect, hook_params(exe, root_prefix, options))


def emit_rc_block(dialect: Dialect, exe: str, root_prefix: str, options: Options) -> str:
    body = emit_hook(dialect, exe, root_prefix, options)
    return render_block(dialect.name, dialect.syntax.comment, body)


def emit_activate(ctx: Context, dialect: Dialect, prefix: str, stack: bool = False) -> str:
    activator = activator_for(ctx, dialect)
    return activator.render(activator.build_activate(prefix, stack))


def emit_deactivate(ctx: Context, dialect: Dialect) -> str:
    activator = activator_for(ctx, dialect)
    return activator.render(activator.build_deactivate())


def emit_reactivate(ctx: Context, dialect: Dialect) -> str:
    activator = activator_for(ctx, dialect)
    return activator.render(activator.build_reactivate())


def apply_plan_to_environ(
    plan: ActivationPlan,
    environ: Mapping[str, str],
    *,
    pathsep: str,
    include_set_vars: bool = False,
) -> dict[str, str]:
    """
    The environment a child process gets when `plan` is applied to `environ`.

    Shell-local variables (`set_vars`) are only carried when the dialect
    exports its prompt variable. Activation scripts cannot run here.
    """
    env = dict(environ)
    for name, dirs in plan.export_path.items():
        env[name] = pathsep.join(dirs)
    for name in plan.unset_vars:
        env.pop(name, None)
    if include_set_vars:
        env.update(plan.set_vars)
    env.update(plan.export_vars)
    return env
