from __future__ import annotations

import os
from pathlib import Path

import typer

from arc import __version__
from arc.cli.commands.release_cmd import release_app
from arc.cli.commands.ws_cmd import ws_app
from arc.core.errors import ErrorCode
from arc.core.log import setup_logging
from arc.core.workspace import ENV_VAR, is_workspace_root


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Release orchestration for s3gw and its submodules.",
)

# Sub-apps
app.add_typer(ws_app, name="ws")
app.add_typer(release_app, name="rel")


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Workspace root (overrides auto detection)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    setup_logging()

    if workspace is not None:
        try:
            root = workspace.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --workspace: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not root.is_dir() or not is_workspace_root(root):
            typer.echo(
                f"error: --workspace '{root}' is not a valid workspace (missing .arc/config.toml)",
                err=True,
            )
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

        os.environ[ENV_VAR] = str(root)


def main() -> None:
    app()
