from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Sequence


def xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def sh_join(args: Sequence[str]) -> str:
    return shlex.join(list(args))


def self_exe_path() -> str:
    """
    Path of the running envshell executable, as embedded in hooks.

    Falls back to whatever `envshell` resolves to on PATH when running from an
    interpreter (python -m, tests).
    """
    argv0 = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if argv0 is not None and argv0.suffix != ".py" and argv0.name.startswith("envshell"):
        candidate = argv0 if argv0.is_absolute() else Path(shutil.which(str(argv0)) or argv0)
        if candidate.exists():
            return str(candidate.resolve())
    found = shutil.which("envshell")
    if found:
        return str(Path(found).resolve())
    return "envshell"


def read_text_exact(path: Path) -> str | None:
    """Read a text file without newline translation. Returns None if it does not exist."""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None
    return data.decode("utf-8")


def atomic_write_text(path: Path, content: str, *, logger: logging.Logger | None = None) -> None:
    """
    Replace `path` with `content` via a temporary file in the same directory.

    Mode and (where permitted) ownership of an existing file are carried over.
    Symlinks are written through so dotfile-manager links stay intact.
    """
    if path.is_symlink():
        path = path.resolve()
    path.parent.mkdir(parents=True, exist_ok=True)

    existing = None
    try:
        existing = path.stat()
    except FileNotFoundError:
        pass

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(content.encode("utf-8"))
            fh.flush()
            os.fsync(fh.fileno())
        if existing is not None:
            shutil.copymode(path, tmp)
            if hasattr(os, "chown"):
                try:
                    os.chown(tmp, existing.st_uid, existing.st_gid)
                except PermissionError:
                    if logger is not None:
                        logger.debug("Could not preserve ownership of %s", path)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


@dataclass(frozen=True)
class RunResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str


class CommandRunner:
    def __init__(self, *, dry_run: bool, logger) -> None:
        self._dry_run = dry_run
        self._logger = logger

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def run(
        self,
        args: Iterable[str],
        *,
        check: bool = False,
        capture: bool = True,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        unset: Sequence[str] = (),
    ) -> RunResult:
        argv = list(args)

        # Keep low-level process logs at DEBUG so stdout stays reserved for shell code.
        self._logger.debug("RUN %s", sh_join(argv))
        if self._dry_run:
            return RunResult(args=argv, returncode=0, stdout="", stderr="")

        merged_env = None
        if env is not None or unset:
            merged_env = dict(os.environ)
            merged_env.update(dict(env or {}))
            for name in unset:
                merged_env.pop(name, None)

        cp = subprocess.run(
            argv,
            text=True,
            capture_output=capture,
            check=False,  # we handle below to include logs
            cwd=str(cwd) if cwd is not None else None,
            env=merged_env,
        )
        if check and cp.returncode != 0:
            raise RuntimeError(
                f"Command failed ({cp.returncode}): {sh_join(argv)}\n{cp.stderr}"
            )
        return RunResult(
            args=argv,
            returncode=cp.returncode,
            stdout=cp.stdout or "",
            stderr=cp.stderr or "",
        )
