from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer

from arc.cli.commands.release_common import exit_release, progress_printer
from arc.cli.context import build_context
from arc.core.config import UserConfig, default_config
from arc.core.errors import ErrorCode
from arc.core.result import Err
from arc.core.workspace import Workspace
from arc.output.console import RichConsole, Style
from arc.services.workspace import WorkspaceService, WorkspaceSetupError


ws_app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Create and maintain a release workspace.",
)


def _setup_error_code(error: WorkspaceSetupError) -> ErrorCode:
    match error.kind:
        case "exists":
            return ErrorCode.USER_ERROR
        case "config_failed":
            return ErrorCode.IO_ERROR
        case "sync_failed":
            return ErrorCode.NETWORK_ERROR


def _exit_setup(error: WorkspaceSetupError) -> NoReturn:
    msg = error.message if error.hint is None else f"{error.message} (hint: {error.hint})"
    exit_release(msg, code=_setup_error_code(error))


@ws_app.command("init")
def init(
    path: Path = typer.Argument(..., help="Directory to create the workspace in"),
    name: str | None = typer.Option(None, "--name", help="Committer name"),
    email: str | None = typer.Option(None, "--email", help="Committer email"),
    signing_key: str | None = typer.Option(None, "--signing-key", help="GPG key id for signing"),
) -> None:
    """Write the workspace config and clone every repository."""
    console = RichConsole()
    try:
        root = path.expanduser().resolve()
    except OSError as e:
        exit_release(f"invalid path: {e}", code=ErrorCode.USER_ERROR)

    if root.exists() and not root.is_dir():
        exit_release(f"not a directory: {root}", code=ErrorCode.USER_ERROR)

    user = UserConfig(
        name=name if name is not None else typer.prompt("Name"),
        email=email if email is not None else typer.prompt("Email"),
        signing_key=(
            signing_key
            if signing_key is not None
            else typer.prompt("Signing key", default="", show_default=False)
        ),
    )

    workspace = Workspace(root=root)
    service = WorkspaceService(
        workspace=workspace,
        config=default_config(user),
        console=console,
        on_progress=progress_printer(console),
    )
    console.header(f"Workspace {root}")
    result = service.init()
    if isinstance(result, Err):
        _exit_setup(result.error)
    console.success(f"workspace ready: {root}")


@ws_app.command("info")
def info() -> None:
    """Show the workspace, its user and its checkouts."""
    ctx = build_context()
    console = ctx.console
    user = ctx.config.user

    console.print(f"workspace: {ctx.workspace.root}")
    console.print(f"user: {user.name} <{user.email}>")
    console.print(f"signing key: {user.signing_key or '-'}", Style.DIM)

    service = WorkspaceService(workspace=ctx.workspace, config=ctx.config, console=console)
    rows = [
        [
            entry.name,
            (entry.branch or "-") if entry.present else "missing",
            entry.readonly or "-",
            entry.readwrite or "-",
        ]
        for entry in service.info()
    ]
    console.table(["repository", "branch", "ro", "rw"], rows)


@ws_app.command("sync")
def sync() -> None:
    """Clone missing repositories and fetch the others."""
    ctx = build_context()
    service = WorkspaceService(
        workspace=ctx.workspace,
        config=ctx.config,
        console=ctx.console,
        on_progress=progress_printer(ctx.console),
    )
    result = service.sync()
    if isinstance(result, Err):
        _exit_setup(result.error)
    ctx.console.success("workspace synced")
