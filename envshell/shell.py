"""
The `envshell` shell commands.

Every function here takes an explicit Context. Nothing is remembered between
invocations: activation state lives in the calling shell and only reaches
this process through the environment it inherited.
"""

from __future__ import annotations

import sys
import tempfile
from pathlib import Path
from typing import Iterable

from envshell.activation import (
    activator_for,
    apply_plan_to_environ,
    emit_activate,
    emit_deactivate,
    emit_hook,
    emit_reactivate,
    emit_rc_block,
    hook_params,
)
from envshell.backends.cmd_autorun import CmdAutorunBackend, autorun_command
from envshell.backends.long_path import LongPathBackend
from envshell.backends.subshell import SubshellBackend, default_shell
from envshell.core import Context
from envshell.dialects.api import Dialect, HookParams, ShellType
from envshell.dialects.detect import guess_shell
from envshell.dialects.hooks import CMD_HOOK
from envshell.errors import RcFileWriteError, UnsupportedShellError
from envshell.prefix import resolve_prefix, resolve_target_prefix
from envshell.rcfile import MutationReport, RcAction, RcFileMutator, RcResult
from envshell.util import CommandRunner, atomic_write_text, read_text_exact


def consolidate_shell(ctx: Context, shell: str | None) -> Dialect:
    """The dialect named by --shell, or the guessed one."""
    if shell:
        return ctx.registry.get(shell)

    ctx.logger.debug("No shell type provided")
    # Detection only reads process information, so it runs even under --dry-run.
    runner = CommandRunner(dry_run=False, logger=ctx.logger)
    guessed = guess_shell(ctx.host, ctx.registry, logger=ctx.logger, runner=runner)
    if guessed:
        ctx.logger.debug("Guessed shell: %r", guessed)
        return ctx.registry.get(guessed)

    known = ", ".join(ctx.registry.registered_names)
    raise UnsupportedShellError(
        f"Please provide a shell type. Run with --shell followed by one of: {known}"
    )


def _mutator(ctx: Context) -> RcFileMutator:
    return RcFileMutator(logger=ctx.logger, dry_run=ctx.options.dry_run)


def _autorun(ctx: Context) -> CmdAutorunBackend:
    return CmdAutorunBackend(registry=ctx.win_registry, logger=ctx.logger, dry_run=ctx.options.dry_run)


def _cmd_hook_path(root: Path) -> str:
    return str(root).rstrip("\\/") + "\\" + str(CMD_HOOK).replace("/", "\\")


def _write_aux_files(ctx: Context, dialect: Dialect, root: Path, params: HookParams, report: MutationReport) -> None:
    for rel, content in dialect.aux_files(dialect, params).items():
        path = root / rel
        try:
            current = read_text_exact(path)
            if current == content:
                report.results.append(RcResult(path, RcAction.UNCHANGED, dialect.name))
                continue
            if ctx.options.dry_run:
                ctx.logger.info("[dry-run] would write %s", path)
            else:
                atomic_write_text(path, content, logger=ctx.logger)
                ctx.logger.info("Wrote %s", path)
        except (OSError, UnicodeDecodeError) as e:
            report.errors.append(RcFileWriteError(path, str(e)))
            continue
        action = RcAction.ADDED if current is None else RcAction.UPDATED
        report.results.append(RcResult(path, action, dialect.name))


def _remove_aux_files(ctx: Context, dialect: Dialect, root: Path, params: HookParams, report: MutationReport) -> None:
    for rel in dialect.aux_files(dialect, params):
        path = root / rel
        if not path.exists():
            continue
        if ctx.options.dry_run:
            ctx.logger.info("[dry-run] would remove %s", path)
        else:
            try:
                path.unlink()
            except OSError as e:
                report.errors.append(RcFileWriteError(path, str(e)))
                continue
            ctx.logger.info("Removed %s", path)
        report.results.append(RcResult(path, RcAction.REMOVED, dialect.name))


def _finish(ctx: Context, report: MutationReport, what: str) -> MutationReport:
    changed = report.changed
    if changed:
        ctx.logger.debug("%s: %d change(s)", what, len(changed))
    elif not report.errors:
        ctx.logger.info("%s: nothing to do", what)
    report.raise_for_errors()
    return report


def shell_init(ctx: Context, shell: str | None, prefix: str | None) -> MutationReport:
    dialect = consolidate_shell(ctx, shell)
    root = resolve_prefix(ctx.root_prefix, prefix)
    params = hook_params(ctx.exe, str(root), ctx.options)
    report = MutationReport()

    _write_aux_files(ctx, dialect, root, params, report)
    if dialect.uses_autorun:
        if ctx.host.is_windows:
            try:
                report.results.append(_autorun(ctx).install(autorun_command(_cmd_hook_path(root))))
            except RcFileWriteError as e:
                report.errors.append(e)
        else:
            ctx.logger.warning("%s is only wired up automatically on Windows", dialect.name)
    else:
        block = emit_rc_block(dialect, ctx.exe, str(root), ctx.options)
        report.extend(_mutator(ctx).init(dialect.candidates(ctx.host), block, shell=dialect.name))
    return _finish(ctx, report, f"init {dialect.name}")


def shell_deinit(ctx: Context, shell: str | None, prefix: str | None) -> MutationReport:
    dialect = consolidate_shell(ctx, shell)
    root = resolve_prefix(ctx.root_prefix, prefix)
    params = hook_params(ctx.exe, str(root), ctx.options)
    report = MutationReport()

    if dialect.uses_autorun:
        if ctx.host.is_windows:
            try:
                report.results.append(_autorun(ctx).uninstall())
            except RcFileWriteError as e:
                report.errors.append(e)
    else:
        report.extend(_mutator(ctx).deinit(dialect.known_locations(ctx.host)))
    _remove_aux_files(ctx, dialect, root, params, report)
    return _finish(ctx, report, f"deinit {dialect.name}")


def _all_known_locations(ctx: Context) -> Iterable[Path]:
    for dialect in ctx.registry:
        yield from dialect.known_locations(ctx.host)


def shell_reinit(ctx: Context, prefix: str | None) -> MutationReport:
    """Refresh every block found in any known startup file, whatever its dialect."""
    root = resolve_prefix(ctx.root_prefix, prefix)
    params = hook_params(ctx.exe, str(root), ctx.options)

    def build_block(shell: str) -> str:
        return emit_rc_block(ctx.registry.get(shell), ctx.exe, str(root), ctx.options)

    report = _mutator(ctx).reinit(_all_known_locations(ctx), build_block)
    affected = {r.shell for r in report.results}

    if ctx.host.is_windows:
        cmd = ctx.registry.get(ShellType.CMD_EXE)
        backend = _autorun(ctx)
        try:
            if backend.installed():
                report.results.append(backend.install(autorun_command(_cmd_hook_path(root))))
                affected.add(cmd.name)
        except RcFileWriteError as e:
            report.errors.append(e)

    for dialect in ctx.registry:
        if dialect.name in affected:
            _write_aux_files(ctx, dialect, root, params, report)
    if not affected:
        ctx.logger.info("No envshell blocks found; run 'envshell init' first")
    return _finish(ctx, report, "reinit")


def _print(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def _emit(ctx: Context, dialect: Dialect, text: str) -> None:
    if not dialect.script_via_tempfile:
        _print(text)
        return
    # cmd.exe cannot eval a string; the dispatcher CALLs the file and deletes it.
    with tempfile.NamedTemporaryFile(
        "w", suffix=dialect.syntax.script_extension, prefix="envshell_", delete=False, encoding="utf-8", newline=""
    ) as fh:
        fh.write(text)
    ctx.logger.debug("Activation script written to %s", fh.name)
    _print(fh.name + "\n")


def shell_hook(ctx: Context, shell: str | None) -> None:
    dialect = consolidate_shell(ctx, shell)
    _print(emit_hook(dialect, ctx.exe, str(ctx.root_prefix), ctx.options))


def shell_activate(ctx: Context, prefix: str | None, shell: str | None, stack: bool = False) -> None:
    dialect = consolidate_shell(ctx, shell)
    target = resolve_target_prefix(ctx, prefix)
    _emit(ctx, dialect, emit_activate(ctx, dialect, str(target), stack))


def shell_reactivate(ctx: Context, shell: str | None) -> None:
    dialect = consolidate_shell(ctx, shell)
    _emit(ctx, dialect, emit_reactivate(ctx, dialect))


def shell_deactivate(ctx: Context, shell: str | None) -> None:
    dialect = consolidate_shell(ctx, shell)
    _emit(ctx, dialect, emit_deactivate(ctx, dialect))


def shell_enable_long_path_support(ctx: Context) -> bool:
    if not ctx.host.is_windows:
        ctx.logger.info("Long path support is a Windows setting; nothing to do on %s", ctx.host.platform)
        return False
    return LongPathBackend(registry=ctx.win_registry, logger=ctx.logger, dry_run=ctx.options.dry_run).enable()


def shell_launch(ctx: Context, shell: str | None, prefix: str | None) -> int:
    """Start an interactive shell with `prefix` activated; returns its exit code."""
    target = resolve_target_prefix(ctx, prefix)
    executable = shell or default_shell(ctx.host)

    # The child's environment is native: Windows paths and separators on Windows.
    native = ctx.registry.get(ShellType.CMD_EXE if ctx.host.is_windows else ShellType.POSIX)
    plan = activator_for(ctx, native).build_activate(str(target))
    if plan.activate_scripts:
        ctx.logger.debug("Activation scripts are not run for a launched shell: %s", plan.activate_scripts)
    env = apply_plan_to_environ(
        plan,
        ctx.host.environ,
        pathsep=ctx.host.pathsep,
        include_set_vars=native.prompt_var_exported,
    )
    ctx.logger.info("Launching %s in %s", executable, target)
    return SubshellBackend(runner=ctx.runner, logger=ctx.logger).launch(executable, env=env, unset=plan.unset_vars)
