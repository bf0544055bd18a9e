"""shared fixtures: pinned hosts, contexts and an in-memory windows registry."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pytest

from envshell.config_loader import Settings
from envshell.core import Context, shell_options
from envshell.dialects.registry import default_registry
from envshell.host import Host
from envshell.util import CommandRunner

TEST_EXE = "/opt/envshell/bin/envshell"


class FakeRegistry:
    """dict-backed stand-in for the windows registry."""

    def __init__(self, values: dict | None = None, *, read_only: bool = False) -> None:
        self.values: dict[tuple[str, str, str], tuple[str | int, str]] = dict(values or {})
        self.read_only = read_only

    def get_value(self, hive: str, key: str, name: str):
        return self.values.get((hive, key, name))

    def set_value(self, hive: str, key: str, name: str, data, kind: str) -> None:
        if self.read_only:
            raise PermissionError("Access is denied")
        self.values[(hive, key, name)] = (data, kind)

    def delete_value(self, hive: str, key: str, name: str) -> None:
        if self.read_only:
            raise PermissionError("Access is denied")
        self.values.pop((hive, key, name), None)


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("envshell.tests")


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path / "root"


@pytest.fixture
def linux_host(home: Path) -> Host:
    return Host(platform="linux", home=home, environ={"PATH": "/usr/bin:/bin", "HOME": str(home)})


@pytest.fixture
def make_ctx(logger: logging.Logger, root: Path) -> Callable[..., Context]:
    def factory(
        host: Host,
        *,
        settings: Settings | None = None,
        dry_run: bool = False,
        exe: str = TEST_EXE,
        win_registry: FakeRegistry | None = None,
        root_prefix: Path | None = None,
    ) -> Context:
        options = shell_options(settings or Settings(), dry_run=dry_run)
        return Context(
            root_prefix=root_prefix or root,
            exe=exe,
            host=host,
            logger=logger,
            runner=CommandRunner(dry_run=dry_run, logger=logger),
            registry=default_registry(),
            options=options,
            win_registry=win_registry if win_registry is not None else FakeRegistry(),
        )

    return factory


@pytest.fixture
def ctx(make_ctx, linux_host: Host) -> Context:
    return make_ctx(linux_host)
