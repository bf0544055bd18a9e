"""tests for the dialect registry, startup file tables, hooks and shell detection."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path, PurePosixPath

import pytest

from envshell.dialects.api import HookParams, ShellType
from envshell.dialects.builtin import builtin_dialects
from envshell.dialects.detect import guess_shell, normalize_process_name
from envshell.dialects.hooks import CMD_DISPATCHER, CMD_HOOK, TCSH_DISPATCHER
from envshell.dialects.registry import DialectRegistry, default_registry
from envshell.errors import UnsupportedShellError
from envshell.host import Host

REGISTRY = default_registry()


class TestRegistry:
    """tests for DialectRegistry."""

    def test_canonical_names(self) -> None:
        """Test that every shell type resolves to its own table."""
        for shell_type in ShellType:
            assert REGISTRY.get(shell_type.value).type is shell_type
            assert REGISTRY.get(shell_type).type is shell_type

    @pytest.mark.parametrize(
        ("alias", "expected"),
        [("sh", ShellType.POSIX), ("pwsh", ShellType.POWERSHELL), ("csh", ShellType.TCSH), ("cmd", ShellType.CMD_EXE),
         ("BASH", ShellType.BASH)],
    )
    def test_aliases(self, alias: str, expected: ShellType) -> None:
        """Test alias lookup."""
        assert REGISTRY.get(alias).type is expected

    def test_unknown(self) -> None:
        """Test that unknown shells raise UnsupportedShellError (a ValueError)."""
        with pytest.raises(UnsupportedShellError, match="--shell"):
            REGISTRY.get("nushell")
        with pytest.raises(ValueError):
            REGISTRY.get("nushell")
        assert REGISTRY.find("nushell") is None

    def test_missing_table_refused(self) -> None:
        """Test that a registry without a table for every ShellType cannot be built."""
        dialects = [d for d in builtin_dialects() if d.type is not ShellType.FISH]
        with pytest.raises(ValueError, match="fish"):
            DialectRegistry(dialects)

    def test_duplicate_names_refused(self) -> None:
        """Test duplicate alias detection."""
        dialects = builtin_dialects()
        dialects[0] = replace(dialects[0], aliases=("sh",))
        with pytest.raises(ValueError, match="Duplicate"):
            DialectRegistry(dialects)

    def test_iteration_order(self) -> None:
        """Test that iteration follows ShellType order."""
        assert [d.type for d in REGISTRY] == list(ShellType)


class TestCandidates:
    """tests for the startup file table."""

    def _host(self, platform: str, home: Path, **environ: str) -> Host:
        return Host(platform=platform, home=home, environ=environ)

    def test_bash(self) -> None:
        """Test bash startup files per platform."""
        home = Path("/home/me")
        bash = REGISTRY.get("bash")
        assert bash.candidates(self._host("linux", home)) == [home / ".bashrc"]
        assert bash.candidates(self._host("darwin", home)) == [home / ".bash_profile"]
        assert bash.candidates(self._host("win32", home)) == [home / ".bash_profile"]
        assert bash.known_locations(self._host("linux", home)) == [home / ".bashrc", home / ".bash_profile"]

    def test_zsh_zdotdir(self) -> None:
        """Test that ZDOTDIR moves .zshrc."""
        home = Path("/home/me")
        zsh = REGISTRY.get("zsh")
        assert zsh.candidates(self._host("linux", home)) == [home / ".zshrc"]
        host = self._host("linux", home, ZDOTDIR="/cfg/zsh")
        assert zsh.candidates(host) == [Path("/cfg/zsh/.zshrc")]
        assert home / ".zshrc" in zsh.known_locations(host)

    def test_fish_xdg(self) -> None:
        """Test fish config under XDG_CONFIG_HOME."""
        home = Path("/home/me")
        fish = REGISTRY.get("fish")
        assert fish.candidates(self._host("linux", home)) == [home / ".config" / "fish" / "config.fish"]
        assert fish.candidates(self._host("linux", home, XDG_CONFIG_HOME="/x")) == [Path("/x/fish/config.fish")]

    def test_powershell(self) -> None:
        """Test PowerShell profiles on Windows and elsewhere."""
        home = Path("/home/me")
        pwsh = REGISTRY.get("powershell")
        assert pwsh.candidates(self._host("win32", home)) == [
            home / "Documents" / "PowerShell" / "profile.ps1",
            home / "Documents" / "WindowsPowerShell" / "profile.ps1",
        ]
        assert pwsh.candidates(self._host("linux", home)) == [home / ".config" / "powershell" / "profile.ps1"]
        assert len(pwsh.known_locations(self._host("linux", home))) == 3

    def test_simple_tables(self) -> None:
        """Test the single-file dialects and cmd.exe."""
        home = Path("/home/me")
        host = self._host("linux", home)
        assert REGISTRY.get("dash").candidates(host) == [home / ".profile"]
        assert REGISTRY.get("posix").candidates(host) == [home / ".profile"]
        assert REGISTRY.get("tcsh").candidates(host) == [home / ".tcshrc"]
        assert REGISTRY.get("xonsh").candidates(host) == [home / ".xonshrc"]
        assert REGISTRY.get("cmd.exe").candidates(host) == []
        assert REGISTRY.get("cmd.exe").uses_autorun


class TestHooks:
    """tests for hook templates."""

    PARAMS = HookParams(exe="/opt/my tools/envshell", root_prefix="/home/me/env shell")

    def test_posix_forwards_shell_name(self) -> None:
        """Test that each POSIX dialect forwards its own name."""
        for name in ("bash", "zsh", "dash", "posix"):
            dialect = REGISTRY.get(name)
            hook = dialect.hook(dialect, self.PARAMS)
            assert f'"$@" --shell {name})' in hook
            assert "export ENVSHELL_EXE='/opt/my tools/envshell'" in hook
            assert "@" + "EXE@" not in hook

    def test_no_placeholders_left(self) -> None:
        """Test that all templates are filled."""
        for dialect in REGISTRY:
            hook = dialect.hook(dialect, self.PARAMS)
            for placeholder in ("@EXE@", "@ROOT_PREFIX@", "@SHELL@", "@DISPATCHER@"):
                assert placeholder not in hook

    def test_prompt_integration(self) -> None:
        """Test that fish/xonsh/powershell prompt code follows changeps1."""
        for name, marker in (("fish", "fish_prompt"), ("xonsh", "PROMPT_FIELDS"), ("powershell", "EnvShellPromptBackup")):
            dialect = REGISTRY.get(name)
            assert marker in dialect.hook(dialect, self.PARAMS)
            assert marker not in dialect.hook(dialect, replace(self.PARAMS, changeps1=False))

    def test_auto_activate(self) -> None:
        """Test the optional base activation line."""
        bash = REGISTRY.get("bash")
        assert "envshell activate base" not in bash.hook(bash, self.PARAMS)
        assert bash.hook(bash, replace(self.PARAMS, auto_activate=True)).rstrip().endswith("envshell activate base")

    def test_tcsh_aux_file(self) -> None:
        """Test that the tcsh alias sources the dispatcher under the root prefix."""
        tcsh = REGISTRY.get("tcsh")
        assert str(TCSH_DISPATCHER) in tcsh.hook(tcsh, self.PARAMS)
        files = tcsh.aux_files(tcsh, self.PARAMS)
        assert list(files) == [TCSH_DISPATCHER]
        assert "--shell tcsh" in files[TCSH_DISPATCHER]

    def test_cmd_files_use_crlf(self) -> None:
        """Test that batch files have CRLF line endings only."""
        cmd = REGISTRY.get("cmd.exe")
        files = cmd.aux_files(cmd, HookParams(exe="C:\\bin\\envshell.exe", root_prefix="C:\\Users\\me\\envshell"))
        assert set(files) == {CMD_HOOK, CMD_DISPATCHER}
        for text in files.values():
            assert "\r\n" in text
            assert "\n" not in text.replace("\r\n", "")
        assert '@SET "ENVSHELL_EXE=C:\\bin\\envshell.exe"' in files[CMD_HOOK]

    def test_aux_files_default_empty(self) -> None:
        """Test that dialects without helper files report none."""
        bash = REGISTRY.get("bash")
        assert bash.aux_files(bash, self.PARAMS) == {}
        assert isinstance(CMD_HOOK, PurePosixPath)


class TestDetect:
    """tests for shell detection."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("-bash", "bash"), ("/usr/bin/zsh", "zsh"), ("C:\\Program Files\\PowerShell\\7\\pwsh.exe", "pwsh"),
         ("CMD.EXE", "cmd.exe"), ("  ", "")],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        """Test process name normalization."""
        assert normalize_process_name(raw) == expected

    def test_xonsh_marker(self) -> None:
        """Test that XONSH_VERSION wins."""
        host = Host(platform="linux", home=Path("/h"), environ={"XONSH_VERSION": "0.14", "SHELL": "/bin/bash"})
        assert guess_shell(host, REGISTRY, logger=logging.getLogger("t"), ppid=999_999_999) == "xonsh"

    def test_shell_env(self) -> None:
        """Test the $SHELL fallback when the parent process is unknown."""
        host = Host(platform="linux", home=Path("/h"), environ={"SHELL": "/usr/bin/fish"})
        assert guess_shell(host, REGISTRY, logger=logging.getLogger("t"), ppid=999_999_999) == "fish"

    def test_comspec(self) -> None:
        """Test the Windows ComSpec fallback."""
        host = Host(platform="win32", home=Path("/h"), environ={"ComSpec": "C:\\Windows\\system32\\cmd.exe"})
        assert guess_shell(host, REGISTRY, logger=logging.getLogger("t"), ppid=999_999_999) == "cmd.exe"

    def test_nothing_found(self) -> None:
        """Test that an unknown environment gives None."""
        host = Host(platform="linux", home=Path("/h"), environ={"SHELL": "/usr/bin/nu"})
        assert guess_shell(host, REGISTRY, logger=logging.getLogger("t"), ppid=999_999_999) is None
