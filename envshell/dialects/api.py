from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Callable, Mapping, Sequence

from envshell.host import Host


class ShellType(str, Enum):
    BASH = "bash"
    ZSH = "zsh"
    DASH = "dash"
    POSIX = "posix"
    FISH = "fish"
    TCSH = "tcsh"
    XONSH = "xonsh"
    CMD_EXE = "cmd.exe"
    POWERSHELL = "powershell"


class Family(str, Enum):
    POSIX = "posix"
    FISH = "fish"
    CSH = "csh"
    XONSH = "xonsh"
    CMD_EXE = "cmd.exe"
    POWERSHELL = "powershell"


@dataclass(frozen=True)
class Syntax:
    """
    Rule table for one shell family.

    Templates are str.format strings. `{name}` is a variable name, `{value}`
    the quoted literal produced by `quote`, `{escaped}` the escaped but
    unquoted text (for templates that carry their own quotes), and
    `{path}` a quoted path.
    """

    comment: str
    command_join: str
    quote: Callable[[str], str]
    escape: Callable[[str], str]
    get_var: str
    export_var: str
    unset_var: str
    set_var: str
    run_script: str
    source_if_exists: str
    script_extension: str
    # Joins a PATH list into the exported value; None means "list-valued" (fish).
    path_list_sep: str | None = ":"
    # Windows hosts use a different separator for some families.
    path_list_sep_windows: str | None = ";"
    # POSIX-like shells on Windows (msys, cygwin) want /c/... paths.
    unix_paths_on_windows: bool = False

    def render_export(self, name: str, value: str) -> str:
        return self.export_var.format(name=name, value=self.quote(value), escaped=self.escape(value))

    def render_unset(self, name: str) -> str:
        return self.unset_var.format(name=name)

    def render_set(self, name: str, value: str) -> str:
        return self.set_var.format(name=name, value=self.quote(value), escaped=self.escape(value))

    def render_run_script(self, path: str) -> str:
        return self.run_script.format(path=self.quote(path), escaped=self.escape(path))

    def render_source_if_exists(self, path: str) -> str:
        return self.source_if_exists.format(path=self.quote(path), escaped=self.escape(path))

    def render_get(self, name: str) -> str:
        return self.get_var.format(name=name)

    def render_export_path(self, name: str, dirs: Sequence[str], *, windows: bool) -> str:
        sep = self.path_list_sep_windows if windows else self.path_list_sep
        if sep is None:
            # List-valued PATH: each entry quoted on its own.
            return self.export_var.format(
                name=name,
                value=" ".join(self.quote(d) for d in dirs),
                escaped=" ".join(self.escape(d) for d in dirs),
            )
        return self.render_export(name, sep.join(dirs))


@dataclass(frozen=True)
class HookParams:
    """Everything a hook template depends on besides the dialect itself."""

    exe: str
    root_prefix: str
    changeps1: bool = True
    auto_activate: bool = False


@dataclass(frozen=True)
class Dialect:
    type: ShellType
    family: Family
    syntax: Syntax
    aliases: tuple[str, ...]
    # Ordered startup files written by `init` on this host.
    candidates: Callable[[Host], list[Path]]
    # Every location a block may have been written to on any platform.
    known_locations: Callable[[Host], list[Path]]
    hook: Callable[["Dialect", HookParams], str]
    # Files owned by envshell under the root prefix, keyed by relative path.
    aux_files: Callable[["Dialect", HookParams], Mapping[PurePosixPath, str]] = field(
        default=lambda _dialect, _params: {}
    )
    # Ordinary shell variable holding the prompt, if any.
    prompt_var: str | None = None
    prompt_var_exported: bool = False
    # Activation output is written to a temp script whose path is printed.
    script_via_tempfile: bool = False
    # cmd.exe is wired through the registry instead of a text startup file.
    uses_autorun: bool = False

    @property
    def name(self) -> str:
        return self.type.value

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)
