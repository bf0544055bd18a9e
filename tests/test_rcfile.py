"""tests for managed block editing of startup files."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

import pytest

from envshell.errors import RcFileUpdateError
from envshell.rcfile import (
    RcAction,
    RcFileMutator,
    find_blocks,
    insert_block,
    remove_block,
    render_block,
)

BLOCK = render_block("bash", "#", "export A=1\nenvshell() { :; }\n")
NEW_BLOCK = render_block("bash", "#", "export A=2\n")
UNRELATED = "# my settings\nalias ll='ls -l'\n\nexport EDITOR=vim\n"


@pytest.fixture
def mutator() -> RcFileMutator:
    return RcFileMutator(logger=logging.getLogger("envshell.tests"))


class TestBlockText:
    """tests for the pure text operations."""

    def test_render(self) -> None:
        """Test block layout."""
        assert BLOCK.splitlines() == [
            "# >>> envshell initialize >>>",
            "# !! Contents within this block are managed by 'envshell init --shell bash' !!",
            "export A=1",
            "envshell() { :; }",
            "# <<< envshell initialize <<<",
        ]

    def test_find(self) -> None:
        """Test that the recorded shell is read from the header."""
        (block,) = find_blocks(UNRELATED + "\n" + BLOCK)
        assert block.shell == "bash"
        assert block.text == BLOCK

    @pytest.mark.parametrize("original", ["", "x", "x\n", UNRELATED, "no newline at end"])
    def test_round_trip(self, original: str) -> None:
        """Test that insert then remove gives back the original text."""
        assert remove_block(insert_block(original, BLOCK)) == original

    def test_idempotent(self) -> None:
        """Test that inserting twice changes nothing."""
        once = insert_block(UNRELATED, BLOCK)
        assert insert_block(once, BLOCK) == once

    def test_replace_in_place(self) -> None:
        """Test that a stale block is replaced where it stands."""
        before = "top\n"
        after = "\nbottom\n"
        text = before + BLOCK + after
        assert insert_block(text, NEW_BLOCK) == before + NEW_BLOCK + after

    def test_crlf_file(self) -> None:
        """Test that CRLF files get a CRLF block and round trip."""
        original = "set x\r\nset y\r\n"
        updated = insert_block(original, BLOCK)
        assert "\n" not in updated.replace("\r\n", "")
        assert find_blocks(updated)[0].shell == "bash"
        assert remove_block(updated) == original

    def test_duplicate_blocks_collapsed(self) -> None:
        """Test that at most one block remains."""
        text = BLOCK + "middle\n" + "\n" + BLOCK
        assert len(find_blocks(insert_block(text, NEW_BLOCK))) == 1

    def test_other_tools_untouched(self) -> None:
        """Test that blocks of other tools are not matched."""
        other = "# >>> conda initialize >>>\nstuff\n# <<< conda initialize <<<\n"
        assert find_blocks(other) == []
        assert remove_block(insert_block(other, BLOCK)) == other


class TestMutator:
    """tests for RcFileMutator on real files."""

    def test_fresh_bashrc_scenario(self, tmp_path: Path, mutator: RcFileMutator) -> None:
        """Test init/init/deinit on an empty file."""
        rc = tmp_path / ".bashrc"
        rc.write_bytes(b"")

        report = mutator.init([rc], BLOCK, shell="bash")
        assert [r.action for r in report.results] == [RcAction.ADDED]
        assert rc.read_text() == BLOCK
        size = rc.stat().st_size

        report = mutator.init([rc], BLOCK, shell="bash")
        assert [r.action for r in report.results] == [RcAction.UNCHANGED]
        assert rc.stat().st_size == size

        mutator.deinit([rc])
        assert rc.read_bytes() == b""

    def test_creates_missing_file_and_parents(self, tmp_path: Path, mutator: RcFileMutator) -> None:
        """Test that init creates the file and its directories."""
        rc = tmp_path / "a" / "b" / "config.fish"
        mutator.init([rc], BLOCK)
        assert rc.read_text() == BLOCK

    def test_round_trip_bytes(self, tmp_path: Path, mutator: RcFileMutator) -> None:
        """Test byte-exact restore of unrelated content."""
        rc = tmp_path / ".zshrc"
        original = "# café\r\nexport X=1\n".encode()
        rc.write_bytes(original)
        mutator.init([rc], BLOCK)
        mutator.deinit([rc])
        assert rc.read_bytes() == original

    def test_deinit_absent(self, tmp_path: Path, mutator: RcFileMutator) -> None:
        """Test that files without a block are untouched and never deleted."""
        rc = tmp_path / ".profile"
        rc.write_text(UNRELATED)
        mtime = rc.stat().st_mtime_ns
        report = mutator.deinit([rc, tmp_path / "missing"])
        assert [r.action for r in report.results] == [RcAction.ABSENT, RcAction.ABSENT]
        assert rc.read_text() == UNRELATED
        assert rc.stat().st_mtime_ns == mtime
        assert not (tmp_path / "missing").exists()

    def test_mode_preserved(self, tmp_path: Path, mutator: RcFileMutator) -> None:
        """Test that permissions survive the atomic replace."""
        rc = tmp_path / ".bashrc"
        rc.write_text(UNRELATED)
        rc.chmod(0o600)
        mutator.init([rc], BLOCK)
        assert stat.S_IMODE(rc.stat().st_mode) == 0o600

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
    def test_symlink_written_through(self, tmp_path: Path, mutator: RcFileMutator) -> None:
        """Test that a symlinked rc file keeps its link."""
        target = tmp_path / "dotfiles" / "bashrc"
        target.parent.mkdir()
        target.write_text(UNRELATED)
        link = tmp_path / ".bashrc"
        link.symlink_to(target)

        mutator.init([link], BLOCK)
        assert link.is_symlink()
        assert find_blocks(target.read_text())

    def test_failures_collected(self, tmp_path: Path, mutator: RcFileMutator) -> None:
        """Test that one bad file does not stop the others."""
        bad_dir = tmp_path / "is_a_dir"
        bad_dir.mkdir()
        bad_utf8 = tmp_path / "latin1"
        bad_utf8.write_bytes(b"caf\xe9\n")
        good = tmp_path / "good"

        report = mutator.init([bad_dir, bad_utf8, good], BLOCK)
        assert good.read_text() == BLOCK
        assert [e.path for e in report.errors] == [bad_dir, bad_utf8]
        assert bad_utf8.read_bytes() == b"caf\xe9\n"
        with pytest.raises(RcFileUpdateError, match="2 startup file"):
            report.raise_for_errors()

    def test_dry_run(self, tmp_path: Path) -> None:
        """Test that dry-run reports without writing."""
        rc = tmp_path / ".bashrc"
        rc.write_text(UNRELATED)
        report = RcFileMutator(logger=logging.getLogger("t"), dry_run=True).init([rc], BLOCK)
        assert report.results[0].action is RcAction.ADDED
        assert rc.read_text() == UNRELATED

    def test_duplicate_paths_once(self, tmp_path: Path, mutator: RcFileMutator) -> None:
        """Test that the same file listed twice is edited once."""
        rc = tmp_path / ".profile"
        report = mutator.init([rc, rc], BLOCK)
        assert len(report.results) == 1

    def test_scan_and_reinit(self, tmp_path: Path, mutator: RcFileMutator) -> None:
        """Test that reinit only rewrites files with a block, using their own shell."""
        bashrc = tmp_path / ".bashrc"
        fish = tmp_path / "config.fish"
        zshrc = tmp_path / ".zshrc"
        bashrc.write_text(UNRELATED + "\n" + BLOCK)
        fish.write_text(render_block("fish", "#", "old fish"))
        zshrc.write_text(UNRELATED)

        found = mutator.scan([bashrc, fish, zshrc])
        assert [(p, b.shell) for p, b in found] == [(bashrc, "bash"), (fish, "fish")]

        report = mutator.reinit([bashrc, fish, zshrc], lambda shell: render_block(shell, "#", f"new {shell}"))
        assert {(r.path, r.shell) for r in report.results} == {(bashrc, "bash"), (fish, "fish")}
        assert bashrc.read_text() == UNRELATED + "\n" + render_block("bash", "#", "new bash")
        assert fish.read_text() == render_block("fish", "#", "new fish")
        assert zshrc.read_text() == UNRELATED
