from __future__ import annotations

from dataclasses import dataclass

import typer

from arc.core.config import WorkspaceConfig, load_config
from arc.core.errors import ErrorCode
from arc.core.result import Err
from arc.core.workspace import Workspace, detect_workspace
from arc.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    workspace: Workspace
    config: WorkspaceConfig
    console: ConsoleProtocol


def build_context() -> CLIContext:
    workspace_result = detect_workspace()
    if isinstance(workspace_result, Err):
        typer.echo(f"error: {workspace_result.error.message}", err=True)
        typer.echo("hint: run `arc ws init <path>` or pass --workspace", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    workspace = workspace_result.value
    config_result = load_config(workspace.config_path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(
        workspace=workspace,
        config=config_result.value,
        console=RichConsole(),
    )
