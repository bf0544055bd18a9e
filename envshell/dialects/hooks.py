"""
Hook templates.

A hook defines the `envshell` shell function (or alias) that forwards
activate/deactivate/reactivate to the executable and evaluates what it prints.
Templates use @NAME@ placeholders so shell braces and dollars stay readable.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Mapping

from envshell.dialects.api import Dialect, HookParams

TCSH_DISPATCHER = PurePosixPath("etc/profile.d/envshell.csh")
CMD_HOOK = PurePosixPath("condabin/envshell_hook.bat")
CMD_DISPATCHER = PurePosixPath("condabin/envshell.bat")

_POSIX_HOOK = """\
export ENVSHELL_EXE=@EXE@
export ENVSHELL_ROOT_PREFIX=@ROOT_PREFIX@

__envshell_exe() (
    "$ENVSHELL_EXE" "$@"
)

__envshell_hashr() {
    if [ -n "${ZSH_VERSION:+x}" ]; then
        \\rehash
    elif [ -n "${POSH_VERSION:+x}" ]; then
        :  # pass
    else
        \\hash -r
    fi
}

__envshell_eval() {
    \\local ask_envshell
    ask_envshell="$(PS1="${PS1:-}" __envshell_exe "$@" --shell @SHELL@)" || \\return
    \\eval "$ask_envshell"
    __envshell_hashr
}

envshell() {
    case "${1:-}" in
        activate|deactivate|reactivate)
            __envshell_eval "$@"
            ;;
        *)
            __envshell_exe "$@"
            ;;
    esac
}

if [ -z "${ENVSHELL_SHLVL+x}" ]; then
    \\export ENVSHELL_SHLVL=0
fi
"""

_FISH_HOOK = """\
set -gx ENVSHELL_EXE @EXE@
set -gx ENVSHELL_ROOT_PREFIX @ROOT_PREFIX@
if not set -q ENVSHELL_SHLVL
    set -gx ENVSHELL_SHLVL 0
end

function envshell --description 'Activate and deactivate envshell environments'
    switch "$argv[1]"
        case activate deactivate reactivate
            $ENVSHELL_EXE $argv --shell fish | source
        case '*'
            $ENVSHELL_EXE $argv
    end
end
"""

_FISH_PROMPT = """
function __envshell_add_prompt
    if set -q ENVSHELL_PROMPT_MODIFIER
        set_color -o green
        echo -n $ENVSHELL_PROMPT_MODIFIER
        set_color normal
    end
end

function __envshell_return_status
    return $argv
end

if functions -q fish_prompt
    if not functions -q __envshell_fish_prompt_orig
        functions -c fish_prompt __envshell_fish_prompt_orig
        functions -e fish_prompt
    end
else
    function __envshell_fish_prompt_orig
    end
end

function fish_prompt
    set -l last_status $status
    __envshell_add_prompt
    __envshell_return_status $last_status
    __envshell_fish_prompt_orig
end
"""

_TCSH_HOOK = """\
setenv ENVSHELL_EXE @EXE@;
setenv ENVSHELL_ROOT_PREFIX @ROOT_PREFIX@;
if ( ! $?ENVSHELL_SHLVL ) setenv ENVSHELL_SHLVL 0;
alias envshell 'source "$ENVSHELL_ROOT_PREFIX/@DISPATCHER@" \\!*';
"""

_TCSH_DISPATCHER = """\
# Managed by envshell; regenerated by 'envshell init --shell tcsh'.
if ( $#argv < 1 ) then
    "$ENVSHELL_EXE"
else
    switch ( "$argv[1]" )
        case activate:
        case deactivate:
        case reactivate:
            set __envshell_ask = "`(setenv prompt '${prompt}'; '${ENVSHELL_EXE}' ${argv} --shell tcsh)`"
            if ( $status == 0 ) then
                eval "${__envshell_ask}"
                rehash
            endif
            unset __envshell_ask
            breaksw
        default:
            "$ENVSHELL_EXE" $argv:q
            breaksw
    endsw
endif
"""

_XONSH_HOOK = """\
$ENVSHELL_EXE = @EXE@
$ENVSHELL_ROOT_PREFIX = @ROOT_PREFIX@
if 'ENVSHELL_SHLVL' not in ${...}:
    $ENVSHELL_SHLVL = '0'


def _envshell_main(args):
    if args and args[0] in ('activate', 'deactivate', 'reactivate'):
        script = $(@($ENVSHELL_EXE) @(args) --shell xonsh)
        execx(script, 'exec', __xonsh__.ctx, filename='envshell')
    else:
        @($ENVSHELL_EXE) @(args)


aliases['envshell'] = _envshell_main
"""

_XONSH_PROMPT = """
$PROMPT_FIELDS['env_name'] = lambda: ${...}.get('ENVSHELL_PROMPT_MODIFIER', '')
"""

_POWERSHELL_HOOK = """\
$Env:ENVSHELL_EXE = @EXE@
$Env:ENVSHELL_ROOT_PREFIX = @ROOT_PREFIX@
if ($null -eq $Env:ENVSHELL_SHLVL) {
    $Env:ENVSHELL_SHLVL = '0'
}

function global:Invoke-EnvShell {
    $command = if ($args.Count -gt 0) { $args[0] } else { '' }
    if (@('activate', 'deactivate', 'reactivate') -contains $command) {
        $script = & $Env:ENVSHELL_EXE @args --shell powershell | Out-String
        if ($LASTEXITCODE -eq 0) {
            Invoke-Expression -Command $script
        }
    } else {
        & $Env:ENVSHELL_EXE @args
    }
}

Set-Alias -Name envshell -Value Invoke-EnvShell -Scope Global
"""

_POWERSHELL_PROMPT = """
if (-not (Test-Path Function:\\EnvShellPromptBackup)) {
    if (Test-Path Function:\\prompt) {
        Copy-Item -Path Function:\\prompt -Destination Function:\\EnvShellPromptBackup
    } else {
        function global:EnvShellPromptBackup { "PS $($executionContext.SessionState.Path.CurrentLocation)> " }
    }
}

function global:prompt {
    if ($Env:ENVSHELL_PROMPT_MODIFIER) {
        Write-Host -NoNewline $Env:ENVSHELL_PROMPT_MODIFIER
    }
    EnvShellPromptBackup
}
"""

_CMD_HOOK = """\
@REM Managed by envshell; regenerated by 'envshell init --shell cmd.exe'.
@SET "ENVSHELL_EXE=@EXE@"
@SET "ENVSHELL_ROOT_PREFIX=@ROOT_PREFIX@"
@IF NOT DEFINED ENVSHELL_SHLVL @SET "ENVSHELL_SHLVL=0"
@IF NOT DEFINED _ENVSHELL_HOOKED (
    @SET "PATH=%ENVSHELL_ROOT_PREFIX%\\condabin;%PATH%"
    @SET "_ENVSHELL_HOOKED=1"
)
"""

_CMD_DISPATCHER = """\
@REM Managed by envshell; regenerated by 'envshell init --shell cmd.exe'.
@IF "%~1"=="activate" GOTO :EVAL
@IF "%~1"=="deactivate" GOTO :EVAL
@IF "%~1"=="reactivate" GOTO :EVAL
@"%ENVSHELL_EXE%" %*
@EXIT /B %ERRORLEVEL%

:EVAL
@SET "_ENVSHELL_SCRIPT="
@FOR /F "delims=" %%i IN ('@CALL "%ENVSHELL_EXE%" %* --shell cmd.exe') DO @SET "_ENVSHELL_SCRIPT=%%i"
@IF NOT DEFINED _ENVSHELL_SCRIPT @EXIT /B 1
@CALL "%_ENVSHELL_SCRIPT%"
@DEL /F /Q "%_ENVSHELL_SCRIPT%"
@SET "_ENVSHELL_SCRIPT="
@EXIT /B 0
"""


def _fill(template: str, **values: str) -> str:
    out = template
    for key, value in values.items():
        out = out.replace(f"@{key}@", value)
    return out


def _auto_activate(line: str, params: HookParams) -> str:
    return f"\n{line}\n" if params.auto_activate else ""


def posix_hook(dialect: Dialect, params: HookParams) -> str:
    q = dialect.syntax.quote
    text = _fill(_POSIX_HOOK, EXE=q(params.exe), ROOT_PREFIX=q(params.root_prefix), SHELL=dialect.name)
    return text + _auto_activate("envshell activate base", params)


def fish_hook(dialect: Dialect, params: HookParams) -> str:
    q = dialect.syntax.quote
    text = _fill(_FISH_HOOK, EXE=q(params.exe), ROOT_PREFIX=q(params.root_prefix))
    if params.changeps1:
        text += _FISH_PROMPT
    return text + _auto_activate("envshell activate base", params)


def tcsh_hook(dialect: Dialect, params: HookParams) -> str:
    q = dialect.syntax.quote
    text = _fill(
        _TCSH_HOOK,
        EXE=q(params.exe),
        ROOT_PREFIX=q(params.root_prefix),
        DISPATCHER=str(TCSH_DISPATCHER),
    )
    return text + _auto_activate("envshell activate base;", params)


def tcsh_aux_files(dialect: Dialect, params: HookParams) -> Mapping[PurePosixPath, str]:
    return {TCSH_DISPATCHER: _TCSH_DISPATCHER}


def xonsh_hook(dialect: Dialect, params: HookParams) -> str:
    q = dialect.syntax.quote
    text = _fill(_XONSH_HOOK, EXE=q(params.exe), ROOT_PREFIX=q(params.root_prefix))
    if params.changeps1:
        text += _XONSH_PROMPT
    return text + _auto_activate("envshell activate base", params)


def powershell_hook(dialect: Dialect, params: HookParams) -> str:
    q = dialect.syntax.quote
    text = _fill(_POWERSHELL_HOOK, EXE=q(params.exe), ROOT_PREFIX=q(params.root_prefix))
    if params.changeps1:
        text += _POWERSHELL_PROMPT
    return text + _auto_activate("Invoke-EnvShell activate base", params)


def _crlf(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\n", "\r\n")


def cmd_hook(dialect: Dialect, params: HookParams) -> str:
    e = dialect.syntax.escape
    text = _fill(_CMD_HOOK, EXE=e(params.exe), ROOT_PREFIX=e(params.root_prefix))
    text += _auto_activate('@CALL "%ENVSHELL_ROOT_PREFIX%\\condabin\\envshell.bat" activate base', params)
    return _crlf(text)


def cmd_aux_files(dialect: Dialect, params: HookParams) -> Mapping[PurePosixPath, str]:
    return {
        CMD_HOOK: cmd_hook(dialect, params),
        CMD_DISPATCHER: _crlf(_CMD_DISPATCHER),
    }
