from __future__ import annotations

from pathlib import Path
from typing import Iterable

from envshell.dialects import hooks
from envshell.dialects.api import Dialect, Family, ShellType, Syntax
from envshell.dialects.quoting import (
    escape_cmd,
    escape_csh,
    escape_fish,
    escape_posix,
    escape_powershell,
    escape_xonsh,
    quote_cmd,
    quote_csh,
    quote_fish,
    quote_posix,
    quote_powershell,
    quote_xonsh,
)
from envshell.host import Host

POSIX_SYNTAX = Syntax(
    comment="#",
    command_join="\n",
    quote=quote_posix,
    escape=escape_posix,
    get_var="${{{name}}}",
    export_var="export {name}={value}",
    unset_var="unset {name}",
    set_var="{name}={value}",
    run_script=". {path}",
    source_if_exists="if [ -f {path} ]; then . {path}; fi",
    script_extension=".sh",
    path_list_sep=":",
    path_list_sep_windows=":",
    unix_paths_on_windows=True,
)

FISH_SYNTAX = Syntax(
    comment="#",
    command_join=";\n",
    quote=quote_fish,
    escape=escape_fish,
    get_var="${name}",
    export_var="set -gx {name} {value}",
    unset_var="set -e {name} || true",
    set_var="set -g {name} {value}",
    run_script="source {path}",
    source_if_exists="test -f {path}; and source {path}",
    script_extension=".fish",
    path_list_sep=None,
    path_list_sep_windows=None,
    unix_paths_on_windows=True,
)

CSH_SYNTAX = Syntax(
    comment="#",
    command_join=";\n",
    quote=quote_csh,
    escape=escape_csh,
    get_var="${{{name}}}",
    export_var="setenv {name} {value}",
    unset_var="unsetenv {name}",
    set_var="set {name}={value}",
    run_script="source {path}",
    source_if_exists="if ( -f {path} ) source {path}",
    script_extension=".csh",
    path_list_sep=":",
    path_list_sep_windows=":",
    unix_paths_on_windows=True,
)

XONSH_SYNTAX = Syntax(
    comment="#",
    command_join="\n",
    quote=quote_xonsh,
    escape=escape_xonsh,
    get_var="${name}",
    export_var="${name} = {value}",
    unset_var="try:\n    del ${name}\nexcept KeyError:\n    pass",
    set_var="${name} = {value}",
    run_script="source {path}",
    source_if_exists="if __import__('os').path.isfile({path}):\n    source {path}",
    script_extension=".xsh",
)

POWERSHELL_SYNTAX = Syntax(
    comment="#",
    command_join="\n",
    quote=quote_powershell,
    escape=escape_powershell,
    get_var="$Env:{name}",
    export_var="$Env:{name} = {value}",
    unset_var="Remove-Item -Path Env:{name} -ErrorAction SilentlyContinue",
    set_var="$Env:{name} = {value}",
    run_script=". {path}",
    source_if_exists="if (Test-Path -LiteralPath {path}) {{ . {path} }}",
    script_extension=".ps1",
)

CMD_SYNTAX = Syntax(
    comment="@REM",
    command_join="\r\n",
    quote=quote_cmd,
    escape=escape_cmd,
    get_var="%{name}%",
    export_var='@SET "{name}={escaped}"',
    unset_var='@SET "{name}="',
    set_var='@SET "{name}={escaped}"',
    run_script="@CALL {path}",
    source_if_exists="@IF EXIST {path} @CALL {path}",
    script_extension=".bat",
    path_list_sep=";",
    path_list_sep_windows=";",
)


def _unique(paths: Iterable[Path]) -> list[Path]:
    out: list[Path] = []
    for p in paths:
        if p not in out:
            out.append(p)
    return out


def _bash_candidates(host: Host) -> list[Path]:
    # Login shells on macOS and git-bash only read the profile.
    if host.is_macos or host.is_windows:
        return [host.home / ".bash_profile"]
    return [host.home / ".bashrc"]


def _bash_known(host: Host) -> list[Path]:
    return [host.home / ".bashrc", host.home / ".bash_profile"]


def _zsh_candidates(host: Host) -> list[Path]:
    return [host.zdotdir() / ".zshrc"]


def _zsh_known(host: Host) -> list[Path]:
    return _unique([host.zdotdir() / ".zshrc", host.home / ".zshrc"])


def _profile_candidates(host: Host) -> list[Path]:
    return [host.home / ".profile"]


def _fish_candidates(host: Host) -> list[Path]:
    return [host.xdg_config_home() / "fish" / "config.fish"]


def _fish_known(host: Host) -> list[Path]:
    return _unique([host.xdg_config_home() / "fish" / "config.fish", host.home / ".config" / "fish" / "config.fish"])


def _tcsh_candidates(host: Host) -> list[Path]:
    return [host.home / ".tcshrc"]


def _xonsh_candidates(host: Host) -> list[Path]:
    return [host.home / ".xonshrc"]


def _powershell_windows(host: Host) -> list[Path]:
    docs = host.home / "Documents"
    return [docs / "PowerShell" / "profile.ps1", docs / "WindowsPowerShell" / "profile.ps1"]


def _powershell_unix(host: Host) -> list[Path]:
    return [host.xdg_config_home() / "powershell" / "profile.ps1"]


def _powershell_candidates(host: Host) -> list[Path]:
    if host.is_windows:
        return _powershell_windows(host)
    return _powershell_unix(host)


def _powershell_known(host: Host) -> list[Path]:
    return _unique([*_powershell_windows(host), *_powershell_unix(host)])


def _no_files(host: Host) -> list[Path]:
    return []


def _posix(shell_type: ShellType, aliases: tuple[str, ...], candidates, known) -> Dialect:
    return Dialect(
        type=shell_type,
        family=Family.POSIX,
        syntax=POSIX_SYNTAX,
        aliases=aliases,
        candidates=candidates,
        known_locations=known,
        hook=hooks.posix_hook,
        prompt_var="PS1",
    )


def builtin_dialects() -> list[Dialect]:
    # Keep ordering stable for predictable behavior and logging.
    return [
        _posix(ShellType.BASH, (), _bash_candidates, _bash_known),
        _posix(ShellType.ZSH, (), _zsh_candidates, _zsh_known),
        _posix(ShellType.DASH, (), _profile_candidates, _profile_candidates),
        _posix(ShellType.POSIX, ("sh", "ash"), _profile_candidates, _profile_candidates),
        Dialect(
            type=ShellType.FISH,
            family=Family.FISH,
            syntax=FISH_SYNTAX,
            aliases=(),
            candidates=_fish_candidates,
            known_locations=_fish_known,
            hook=hooks.fish_hook,
        ),
        Dialect(
            type=ShellType.TCSH,
            family=Family.CSH,
            syntax=CSH_SYNTAX,
            aliases=("csh",),
            candidates=_tcsh_candidates,
            known_locations=_tcsh_candidates,
            hook=hooks.tcsh_hook,
            aux_files=hooks.tcsh_aux_files,
            prompt_var="prompt",
        ),
        Dialect(
            type=ShellType.XONSH,
            family=Family.XONSH,
            syntax=XONSH_SYNTAX,
            aliases=(),
            candidates=_xonsh_candidates,
            known_locations=_xonsh_candidates,
            hook=hooks.xonsh_hook,
        ),
        Dialect(
            type=ShellType.CMD_EXE,
            family=Family.CMD_EXE,
            syntax=CMD_SYNTAX,
            aliases=("cmd",),
            candidates=_no_files,
            known_locations=_no_files,
            hook=hooks.cmd_hook,
            aux_files=hooks.cmd_aux_files,
            prompt_var="PROMPT",
            prompt_var_exported=True,
            script_via_tempfile=True,
            uses_autorun=True,
        ),
        Dialect(
            type=ShellType.POWERSHELL,
            family=Family.POWERSHELL,
            syntax=POWERSHELL_SYNTAX,
            aliases=("pwsh",),
            candidates=_powershell_candidates,
            known_locations=_powershell_known,
            hook=hooks.powershell_hook,
        ),
    ]
