from __future__ import annotations

from typing import NoReturn

import typer

from arc.cli.context import CLIContext
from arc.core.errors import ErrorCode
from arc.core.result import Err
from arc.git.repository import ProgressCallback
from arc.output.console import ConsoleProtocol, Style
from arc.release.errors import ReleaseError
from arc.release.version import Version, parse_version
from arc.services.release.ci import GhCiStatusProvider
from arc.services.release.gh import GhPullRequestProvider
from arc.services.release.orchestrator import ReleaseOrchestrator
from arc.services.release.state import load_release_state
from arc.services.repos import open_repositories


def exit_release(err: str, *, code: ErrorCode) -> NoReturn:
    typer.echo(f"error: {err}", err=True)
    raise typer.Exit(code=int(code))


def release_error_code(kind: str) -> ErrorCode:
    if kind in {"gh_missing", "gh_auth_required"}:
        return ErrorCode.ENV_ERROR
    if kind in {"corrupted", "tag_conflict", "build_not_found", "build_ongoing", "build_failed"}:
        return ErrorCode.RELEASE_ERROR
    if kind in {"git_failed", "sync_failed", "ci_unavailable", "pr_failed", "registry_failed"}:
        return ErrorCode.NETWORK_ERROR
    if kind in {"charts_failed", "notes_failed", "state_failed"}:
        return ErrorCode.IO_ERROR
    return ErrorCode.USER_ERROR


def exit_release_error(error: ReleaseError) -> NoReturn:
    exit_release(error.pretty(), code=release_error_code(error.kind))


def confirm(question: str) -> bool:
    return typer.confirm(question, default=False)


def progress_printer(console: ConsoleProtocol) -> ProgressCallback:
    def _on_progress(phase: str, done: int, total: int) -> None:
        if done < total:
            console.print(f"... {phase}", Style.DIM)

    return _on_progress


def parse_version_arg(value: str) -> Version:
    parsed = parse_version(value)
    if isinstance(parsed, Err):
        exit_release(parsed.error.message, code=ErrorCode.USER_ERROR)
    return parsed.value


def resolve_version(ctx: CLIContext, value: str | None, *, prompt: bool = False) -> Version:
    """Version from the argument, else the workspace's release, else a prompt."""
    if value is not None:
        return parse_version_arg(value)

    state = load_release_state(ctx.workspace.release_state_path)
    if isinstance(state, Err):
        exit_release_error(state.error)
    if state.value is not None:
        ctx.console.print(f"release: {state.value.release_version}", Style.DIM)
        return state.value.release_version

    if not prompt:
        exit_release(
            "no release version given and none bound to this workspace",
            code=ErrorCode.USER_ERROR,
        )
    return parse_version_arg(typer.prompt("Release version (M.m.p)"))


def build_orchestrator(ctx: CLIContext) -> ReleaseOrchestrator:
    on_progress = progress_printer(ctx.console)
    repos = open_repositories(
        workspace=ctx.workspace, config=ctx.config, on_progress=on_progress
    )
    root = ctx.workspace.root
    return ReleaseOrchestrator(
        workspace=ctx.workspace,
        repos=repos,
        console=ctx.console,
        ci=GhCiStatusProvider(workspace_root=root),
        pr=GhPullRequestProvider(workspace_root=root),
        confirm=confirm,
        on_progress=on_progress,
    )
