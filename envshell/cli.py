from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from envshell.config_loader import load_settings
from envshell.core import Context, build_context, shell_options
from envshell.errors import EnvShellError
from envshell.shell import (
    shell_activate,
    shell_deactivate,
    shell_deinit,
    shell_enable_long_path_support,
    shell_hook,
    shell_init,
    shell_launch,
    shell_reactivate,
    shell_reinit,
)

__version__ = "0.1.0"

SHELL_CHOICES = ("bash", "posix", "powershell", "cmd.exe", "xonsh", "zsh", "fish", "tcsh", "dash")
SUBCOMMANDS = (
    "init",
    "deinit",
    "reinit",
    "hook",
    "activate",
    "reactivate",
    "deactivate",
    "enable_long_path_support",
)
# Options whose value is a separate token; used to find the subcommand before parsing.
_VALUE_OPTIONS = {"-s", "--shell", "-p", "--prefix", "-n", "--name", "-r", "--root-prefix", "--config"}


def _setup_logger(verbose: bool) -> logging.Logger:
    logger = logging.getLogger("envshell")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    # stderr: stdout is evaluated by the calling shell.
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.handlers[:] = [handler]
    logger.propagate = False
    return logger


def _find_subcommand(argv: list[str]) -> str | None:
    skip = False
    for token in argv:
        if skip:
            skip = False
            continue
        if token == "--":
            return None
        if token.startswith("-"):
            skip = token in _VALUE_OPTIONS
            continue
        return token if token in SUBCOMMANDS else None
    return None


def _common_parser(*, top_level: bool) -> argparse.ArgumentParser:
    # Subcommands accept the global options too; SUPPRESS keeps their defaults
    # from overwriting values given before the subcommand.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-r",
        "--root-prefix",
        default=None if top_level else argparse.SUPPRESS,
        help="Root prefix holding the base environment and envs/ (default: $ENVSHELL_ROOT_PREFIX or ~/envshell).",
    )
    common.add_argument(
        "--config",
        type=Path,
        default=None if top_level else argparse.SUPPRESS,
        help="Settings file (*.toml, *.yaml, *.yml, *.json). Default: $ENVSHELL_CONFIG or ~/.config/envshell/config.*",
    )
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False if top_level else argparse.SUPPRESS,
        help="Verbose logs.",
    )
    common.add_argument("--version", action="version", version=f"envshell {__version__}")
    return common


def _add_shell(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-s",
        "--shell",
        help=f"Shell type ({', '.join(SHELL_CHOICES)}). Guessed when omitted.",
    )


def _add_prefix(parser: argparse.ArgumentParser, what: str) -> None:
    parser.add_argument("prefix_arg", nargs="?", metavar="prefix", help=what)
    parser.add_argument("-p", "--prefix", "-n", "--name", dest="prefix", help=what)


def _add_dry_run(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--dry-run", action="store_true", help="Log actions but do not change the system.")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envshell",
        description="Wire your shell to envshell environments.",
        parents=[_common_parser(top_level=True)],
    )
    common = _common_parser(top_level=False)
    sub = parser.add_subparsers(dest="command", metavar="command")

    p = sub.add_parser("init", parents=[common], help="Add the envshell block to your shell's startup file")
    _add_shell(p)
    _add_prefix(p, "Root prefix written into the hook (default: the root prefix).")
    _add_dry_run(p)

    p = sub.add_parser("deinit", parents=[common], help="Remove the envshell block from your shell's startup file")
    _add_shell(p)
    _add_prefix(p, "Root prefix the hook was written for (default: the root prefix).")
    _add_dry_run(p)

    p = sub.add_parser("reinit", parents=[common], help="Refresh every envshell block found on this machine")
    _add_prefix(p, "Root prefix written into the hooks (default: the root prefix).")
    _add_dry_run(p)

    p = sub.add_parser("hook", parents=[common], help="Print the shell hook")
    _add_shell(p)

    p = sub.add_parser("activate", parents=[common], help="Print activation code for the given shell")
    _add_shell(p)
    _add_prefix(p, "Environment name or path (default: base).")
    p.add_argument("--stack", action="store_true", help="Keep the current environment active underneath.")

    p = sub.add_parser("reactivate", parents=[common], help="Print reactivation code for the given shell")
    _add_shell(p)

    p = sub.add_parser("deactivate", parents=[common], help="Print deactivation code for the given shell")
    _add_shell(p)

    p = sub.add_parser(
        "enable_long_path_support", parents=[common], help="Enable long paths on Windows (needs admin rights)"
    )
    _add_dry_run(p)
    return parser


def create_launch_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envshell",
        description="Launch a shell with an environment activated. "
        f"Other commands: {', '.join(SUBCOMMANDS)} (see 'envshell <command> --help').",
        parents=[_common_parser(top_level=True)],
    )
    parser.add_argument("-s", "--shell", help="Shell executable to launch (default: $SHELL).")
    _add_prefix(parser, "Environment name or path (default: base).")
    return parser


def _dispatch(ctx: Context, args: argparse.Namespace) -> int:
    prefix = getattr(args, "prefix", None) or getattr(args, "prefix_arg", None) or ""
    command = getattr(args, "command", None)

    if command is None:
        return shell_launch(ctx, args.shell, prefix)
    if command == "init":
        shell_init(ctx, args.shell, prefix)
    elif command == "deinit":
        shell_deinit(ctx, args.shell, prefix)
    elif command == "reinit":
        shell_reinit(ctx, prefix)
    elif command == "hook":
        shell_hook(ctx, args.shell)
    elif command == "activate":
        shell_activate(ctx, prefix, args.shell, args.stack)
    elif command == "reactivate":
        shell_reactivate(ctx, args.shell)
    elif command == "deactivate":
        shell_deactivate(ctx, args.shell)
    elif command == "enable_long_path_support":
        shell_enable_long_path_support(ctx)
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    # Pick the parser before anything touches settings or files.
    parser = create_parser() if _find_subcommand(argv) else create_launch_parser()
    args = parser.parse_args(argv)

    logger = _setup_logger(args.verbose)
    try:
        loaded = load_settings(args.config)
        if loaded.path is not None:
            logger.debug("Settings loaded from %s", loaded.path)
        options = shell_options(loaded.settings, dry_run=bool(getattr(args, "dry_run", False)))
        ctx = build_context(
            settings=loaded.settings,
            options=options,
            logger=logger,
            root_prefix=args.root_prefix,
        )
        return _dispatch(ctx, args)
    except EnvShellError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
