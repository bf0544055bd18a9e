"""
Managed blocks inside shell startup files.

A block looks like this (the comment token depends on the dialect):

    # >>> envshell initialize >>>
    # !! Contents within this block are managed by 'envshell init --shell bash' !!
    ...hook...
    # <<< envshell initialize <<<

Everything outside the markers is never touched. Files are handled as exact
UTF-8 text, so CRLF files stay CRLF and `init` followed by `deinit` gives back
the original bytes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

from envshell.errors import RcFileUpdateError, RcFileWriteError, UnsupportedShellError
from envshell.util import atomic_write_text, read_text_exact

BEGIN_MARKER = ">>> envshell initialize >>>"
END_MARKER = "<<< envshell initialize <<<"

_BLOCK_RE = re.compile(
    r"^(?P<comment>[^\r\n]*?) " + re.escape(BEGIN_MARKER) + r"[ \t]*\r?\n"
    r"(?P<body>.*?)"
    r"^(?P=comment) " + re.escape(END_MARKER) + r"[ \t]*(?:\r?\n|\Z)",
    re.MULTILINE | re.DOTALL,
)
_HEADER_RE = re.compile(r"managed by 'envshell init --shell (?P<shell>[^'\s]+)'")


@dataclass(frozen=True)
class ManagedBlock:
    start: int
    end: int
    text: str
    shell: str | None


def render_block(shell: str, comment: str, body: str, newline: str = "\n") -> str:
    lines = [
        f"{comment} {BEGIN_MARKER}",
        f"{comment} !! Contents within this block are managed by 'envshell init --shell {shell}' !!",
        *body.replace("\r\n", "\n").rstrip("\n").split("\n"),
        f"{comment} {END_MARKER}",
    ]
    return newline.join(lines) + newline


def find_blocks(content: str) -> list[ManagedBlock]:
    blocks = []
    for m in _BLOCK_RE.finditer(content):
        header = _HEADER_RE.search(m.group("body").split("\n", 1)[0])
        blocks.append(
            ManagedBlock(
                start=m.start(),
                end=m.end(),
                text=m.group(0),
                shell=header.group("shell") if header else None,
            )
        )
    return blocks


def _newline_of(content: str) -> str:
    return "\r\n" if "\r\n" in content else "\n"


def _as_newline(text: str, newline: str) -> str:
    text = text.replace("\r\n", "\n")
    return text if newline == "\n" else text.replace("\n", newline)


def _cut(content: str, block: ManagedBlock) -> str:
    # Drop the separator line break `insert_block` put in front of the block.
    start = block.start
    if content[:start].endswith("\r\n"):
        start -= 2
    elif content[:start].endswith("\n"):
        start -= 1
    return content[:start] + content[block.end :]


def insert_block(content: str, block_text: str) -> str:
    """Append the block, or replace an existing one in place."""
    block_text = _as_newline(block_text, _newline_of(content))
    blocks = find_blocks(content)
    if not blocks:
        return content + (_newline_of(content) if content else "") + block_text

    # At most one block per file; extra copies (hand edits) go away.
    for extra in reversed(blocks[1:]):
        content = _cut(content, extra)
    first = blocks[0]
    return content[: first.start] + block_text + content[first.end :]


def remove_block(content: str) -> str:
    for block in reversed(find_blocks(content)):
        content = _cut(content, block)
    return content


class RcAction(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    ABSENT = "absent"


@dataclass(frozen=True)
class RcResult:
    path: Path | str
    action: RcAction
    shell: str | None = None

    @property
    def changed(self) -> bool:
        return self.action in (RcAction.ADDED, RcAction.UPDATED, RcAction.REMOVED)


@dataclass
class MutationReport:
    results: list[RcResult] = field(default_factory=list)
    errors: list[RcFileWriteError] = field(default_factory=list)

    @property
    def changed(self) -> list[RcResult]:
        return [r for r in self.results if r.changed]

    def extend(self, other: "MutationReport") -> None:
        self.results.extend(other.results)
        self.errors.extend(other.errors)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise RcFileUpdateError(self.errors)


def _unique_paths(paths: Iterable[Path]) -> list[Path]:
    seen: set[Path] = set()
    out: list[Path] = []
    for p in paths:
        key = p.expanduser().absolute()
        if key not in seen:
            seen.add(key)
            out.append(p)
    return out


class RcFileMutator:
    """
    Applies block edits to a list of startup files.

    A failing file never stops the pass: its error is collected in the
    returned MutationReport and the remaining files are still processed.
    """

    def __init__(self, *, logger: logging.Logger, dry_run: bool = False) -> None:
        self._logger = logger
        self._dry_run = dry_run

    def _read(self, path: Path) -> str | None:
        try:
            return read_text_exact(path)
        except UnicodeDecodeError as e:
            raise RcFileWriteError(path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e
        except OSError as e:
            raise RcFileWriteError(path, e.strerror or str(e)) from e

    def _write(self, path: Path, content: str) -> None:
        if self._dry_run:
            self._logger.info("[dry-run] would write %s", path)
            return
        try:
            atomic_write_text(path, content, logger=self._logger)
        except PermissionError as e:
            raise RcFileWriteError(path, "permission denied") from e
        except OSError as e:
            raise RcFileWriteError(path, e.strerror or str(e)) from e

    def _apply(
        self,
        paths: Iterable[Path],
        edit: Callable[[Path, str | None], RcResult | tuple[RcResult, str]],
    ) -> MutationReport:
        report = MutationReport()
        for path in _unique_paths(paths):
            try:
                outcome = edit(path, self._read(path))
                if isinstance(outcome, tuple):
                    result, new_content = outcome
                    self._write(path, new_content)
                else:
                    result = outcome
            except RcFileWriteError as e:
                self._logger.debug("Failed on %s: %s", path, e.reason)
                report.errors.append(e)
                continue
            if result.changed:
                self._logger.info("%s envshell block in %s", result.action.value.capitalize(), path)
            else:
                self._logger.debug("%s: %s", path, result.action.value)
            report.results.append(result)
        return report

    def init(self, paths: Iterable[Path], block: str, *, shell: str | None = None) -> MutationReport:
        def edit(path: Path, content: str | None):
            current = content or ""
            updated = insert_block(current, block)
            if updated == current and content is not None:
                return RcResult(path, RcAction.UNCHANGED, shell)
            action = RcAction.UPDATED if find_blocks(current) else RcAction.ADDED
            return RcResult(path, action, shell), updated

        return self._apply(paths, edit)

    def deinit(self, paths: Iterable[Path]) -> MutationReport:
        def edit(path: Path, content: str | None):
            if content is None:
                return RcResult(path, RcAction.ABSENT)
            blocks = find_blocks(content)
            if not blocks:
                return RcResult(path, RcAction.ABSENT)
            return RcResult(path, RcAction.REMOVED, blocks[0].shell), remove_block(content)

        return self._apply(paths, edit)

    def scan(self, paths: Iterable[Path]) -> list[tuple[Path, ManagedBlock]]:
        """Files among `paths` that currently hold a block. Unreadable files are skipped."""
        found = []
        for path in _unique_paths(paths):
            try:
                content = self._read(path)
            except RcFileWriteError as e:
                self._logger.warning("Skipping %s: %s", path, e.reason)
                continue
            blocks = find_blocks(content or "")
            if blocks:
                found.append((path, blocks[0]))
        return found

    def reinit(self, paths: Iterable[Path], build_block: Callable[[str], str]) -> MutationReport:
        """
        Rewrite every block found among `paths`.

        `build_block` gets the shell name recorded in the block header and
        returns fresh block text. Files without a block are left alone.
        """

        def edit(path: Path, content: str | None):
            blocks = find_blocks(content or "")
            if not blocks:
                return RcResult(path, RcAction.ABSENT)
            shell = blocks[0].shell
            if shell is None:
                raise RcFileWriteError(path, "the envshell block has no shell header; run 'envshell init' again")
            try:
                fresh = build_block(shell)
            except UnsupportedShellError as e:
                raise RcFileWriteError(path, str(e)) from e
            updated = insert_block(content, fresh)
            if updated == content:
                return RcResult(path, RcAction.UNCHANGED, shell)
            return RcResult(path, RcAction.UPDATED, shell), updated

        report = self._apply(paths, edit)
        report.results = [r for r in report.results if r.action is not RcAction.ABSENT]
        return report
