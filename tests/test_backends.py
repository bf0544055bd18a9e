"""tests for the cmd.exe AutoRun helpers and the long path backend."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from envshell.backends.cmd_autorun import CmdAutorunBackend, add_entry, autorun_command, remove_entries
from envshell.backends.long_path import LongPathBackend
from envshell.backends.registry import HKEY_CURRENT_USER, REG_EXPAND_SZ, display_name
from envshell.backends.subshell import default_shell
from envshell.errors import RcFileWriteError
from envshell.host import Host
from envshell.rcfile import RcAction

from conftest import FakeRegistry

CMD = autorun_command("C:\\Users\\me\\envshell\\condabin\\envshell_hook.bat")
OLD = autorun_command("D:\\old root\\condabin\\envshell_hook.bat")


class TestAutorunEntries:
    """tests for AutoRun value editing."""

    def test_command(self) -> None:
        """Test the entry layout."""
        assert CMD == (
            '@IF EXIST "C:\\Users\\me\\envshell\\condabin\\envshell_hook.bat" '
            '@CALL "C:\\Users\\me\\envshell\\condabin\\envshell_hook.bat"'
        )

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("", CMD),
            ("doskey x", f"doskey x & {CMD}"),
            (OLD, CMD),
            (f"a & {OLD} & b", f"a & b & {CMD}"),
            (CMD, CMD),
        ],
    )
    def test_add(self, value: str, expected: str) -> None:
        """Test that adding replaces older entries and keeps the rest."""
        assert add_entry(value, CMD) == expected

    def test_remove(self) -> None:
        """Test removal in any position."""
        assert remove_entries(f"{CMD} & b") == "b"
        assert remove_entries(f"a & {CMD}") == "a"
        assert remove_entries(CMD) == ""
        assert remove_entries("a & b") == "a & b"


class TestAutorunBackend:
    """tests for CmdAutorunBackend."""

    def test_keeps_value_kind(self) -> None:
        """Test that REG_EXPAND_SZ values stay REG_EXPAND_SZ."""
        key = (HKEY_CURRENT_USER, "Software\\Microsoft\\Command Processor", "AutoRun")
        registry = FakeRegistry({key: ("%USERPROFILE%\\init.cmd", REG_EXPAND_SZ)})
        backend = CmdAutorunBackend(registry=registry, logger=logging.getLogger("t"))
        assert backend.install(CMD).action is RcAction.ADDED
        assert registry.values[key][1] == REG_EXPAND_SZ
        assert backend.installed()
        assert backend.uninstall().action is RcAction.REMOVED
        assert registry.values[key] == ("%USERPROFILE%\\init.cmd", REG_EXPAND_SZ)
        assert backend.uninstall().action is RcAction.ABSENT

    def test_empty_value_deleted(self) -> None:
        """Test that removing the only entry deletes the value."""
        registry = FakeRegistry()
        backend = CmdAutorunBackend(registry=registry, logger=logging.getLogger("t"))
        backend.install(CMD)
        backend.uninstall()
        assert registry.values == {}

    def test_dry_run(self) -> None:
        """Test that dry-run never writes."""
        registry = FakeRegistry()
        backend = CmdAutorunBackend(registry=registry, logger=logging.getLogger("t"), dry_run=True)
        assert backend.install(CMD).action is RcAction.ADDED
        assert registry.values == {}

    def test_denied(self) -> None:
        """Test that permission errors become RcFileWriteError."""
        backend = CmdAutorunBackend(registry=FakeRegistry(read_only=True), logger=logging.getLogger("t"))
        with pytest.raises(RcFileWriteError, match="permission denied"):
            backend.install(CMD)


class TestLongPathBackend:
    """tests for LongPathBackend."""

    def test_dry_run(self) -> None:
        """Test that dry-run reports a change without writing."""
        registry = FakeRegistry()
        backend = LongPathBackend(registry=registry, logger=logging.getLogger("t"), dry_run=True)
        assert backend.enable() is True
        assert registry.values == {}


class TestHelpers:
    """tests for small backend helpers."""

    def test_display_name(self) -> None:
        """Test registry location formatting."""
        assert display_name(HKEY_CURRENT_USER, "A\\B", "C") == "HKCU\\A\\B\\C"

    def test_default_shell(self) -> None:
        """Test the $SHELL and per-OS defaults."""
        assert default_shell(Host(platform="linux", home=Path("/h"), environ={"SHELL": "/bin/fish"})) == "/bin/fish"
        assert default_shell(Host(platform="win32", home=Path("/h"))) == "cmd.exe"
        assert default_shell(Host(platform="darwin", home=Path("/h"))) == "zsh"
        assert default_shell(Host(platform="linux", home=Path("/h"))) == "bash"
