from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import typer

from arc.cli.commands.release_common import (
    build_orchestrator,
    exit_release,
    exit_release_error,
    parse_version_arg,
    resolve_version,
)
from arc.cli.context import build_context
from arc.core.errors import ErrorCode
from arc.core.result import Err
from arc.output.console import Style
from arc.platform.files import atomic_write_text
from arc.platform.http import RealHttpClient
from arc.services.release.ci import CiStatusProvider, GhCiStatusProvider
from arc.services.release.gh import ensure_gh_auth, ensure_gh_available
from arc.services.release.notes import read_latest_notes
from arc.services.release.registry import QuayRegistry
from arc.services.release.reports import (
    STATUS_COLUMNS,
    collect_status,
    render_announcement,
    status_rows,
    version_table,
)
from arc.services.release.state import load_release_state
from arc.services.release.timeouts import REGISTRY_TIMEOUT_SECONDS
from arc.services.repos import REPOSITORIES


release_app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Start, continue and finish s3gw releases.",
)


@release_app.command("init")
def init_cmd(
    version: str | None = typer.Argument(None, help="Release version (M.m.p)"),
) -> None:
    """Bind this workspace to a release version."""
    ctx = build_context()
    raw = version if version is not None else typer.prompt("Release version (M.m.p)")
    relver = parse_version_arg(raw)

    orch = build_orchestrator(ctx)
    result = orch.init(relver)
    if isinstance(result, Err):
        exit_release_error(result.error)
    ctx.console.success(f"workspace bound to release {result.value.release_version}")


@release_app.command("start")
def start_cmd(
    version: str = typer.Argument(..., help="Release version (M.m.p)"),
    notes: Path = typer.Option(..., "--notes", "-n", help="Release notes file"),
) -> None:
    """Cut release branches and produce the first release candidate."""
    ctx = build_context()
    relver = parse_version_arg(version)

    orch = build_orchestrator(ctx)
    ctx.console.header(f"Start release {relver}")
    result = orch.start(relver, notes=notes)
    if isinstance(result, Err):
        exit_release_error(result.error)
    ctx.console.newline()
    ctx.console.print(f"next: arc rel status {relver}", Style.DIM)


@release_app.command("continue")
def continue_cmd(
    version: str | None = typer.Argument(None, help="Release version (default: workspace release)"),
    notes: Path | None = typer.Option(None, "--notes", "-n", help="Release notes file"),
    force: bool = typer.Option(False, "--force", help="Ignore a missing, running or failed build"),
) -> None:
    """Produce the next release candidate."""
    ctx = build_context()
    relver = resolve_version(ctx, version)

    orch = build_orchestrator(ctx)
    ctx.console.header(f"Continue release {relver}")
    result = orch.continue_release(relver, notes=notes, force=force)
    if isinstance(result, Err):
        exit_release_error(result.error)


@release_app.command("finish")
def finish_cmd(
    version: str | None = typer.Argument(None, help="Release version (default: workspace release)"),
    force: bool = typer.Option(False, "--force", help="Ignore a missing, running or failed build"),
) -> None:
    """Tag the final release, publish charts and open the release PR."""
    ctx = build_context()
    relver = resolve_version(ctx, version)

    orch = build_orchestrator(ctx)
    ctx.console.header(f"Finish release {relver}")
    result = orch.finish(relver, force=force)
    if isinstance(result, Err):
        exit_release_error(result.error)

    outcome = result.value
    ctx.console.newline()
    ctx.console.print(f"charts published to: {outcome.final_branch}")
    ctx.console.print(f"pull request: {outcome.pull_request.url}")
    ctx.console.print(f"next: arc rel announce {relver}", Style.DIM)


@release_app.command("status")
def status_cmd(
    version: str | None = typer.Argument(None, help="Release version (default: workspace release)"),
) -> None:
    """Show a release's versions, build status and published images."""
    ctx = build_context()
    relver = resolve_version(ctx, version)
    orch = build_orchestrator(ctx)

    ci: CiStatusProvider | None = None
    if orch.repos.s3gw.config.github is not None:
        gh = ensure_gh_available()
        if isinstance(gh, Err):
            ctx.console.warning(f"{gh.error.message}: build status unavailable")
        else:
            auth = ensure_gh_auth(workspace_root=ctx.workspace.root)
            if isinstance(auth, Err):
                ctx.console.warning(f"{auth.error.message}: build status unavailable")
            else:
                ci = GhCiStatusProvider(workspace_root=ctx.workspace.root)

    registry = QuayRegistry(RealHttpClient(timeout=REGISTRY_TIMEOUT_SECONDS))
    statuses = collect_status(
        orch.repos, relver, ci=ci, registry=registry, images=ctx.config.registry
    )
    if isinstance(statuses, Err):
        exit_release_error(statuses.error)

    if not statuses.value:
        ctx.console.info(f"release {relver} has not been started")
        return
    rows = status_rows(statuses.value, now=datetime.now(UTC))
    ctx.console.table(STATUS_COLUMNS, rows, title=f"Release {relver}")


@release_app.command("list")
def list_cmd() -> None:
    """List every released version across the repositories."""
    ctx = build_context()
    orch = build_orchestrator(ctx)

    synced = orch.sync()
    if isinstance(synced, Err):
        exit_release_error(synced.error)

    table = version_table(orch.repos)
    if isinstance(table, Err):
        exit_release_error(table.error)
    columns, rows = table.value
    if not rows:
        ctx.console.info("no releases found")
        return
    ctx.console.table(columns, rows, title="Releases")


@release_app.command("info")
def info_cmd() -> None:
    """Show the release bound to this workspace."""
    ctx = build_context()
    state = load_release_state(ctx.workspace.release_state_path)
    if isinstance(state, Err):
        exit_release_error(state.error)
    if state.value is None:
        exit_release(
            "no release bound to this workspace (run: arc rel init <version>)",
            code=ErrorCode.USER_ERROR,
        )
    ctx.console.print(f"release: {state.value.release_version}")


@release_app.command("sync")
def sync_cmd(
    version: str | None = typer.Argument(None, help="Release version (default: workspace release)"),
) -> None:
    """Update every repository and check out the release branch."""
    ctx = build_context()
    relver = resolve_version(ctx, version)

    orch = build_orchestrator(ctx)
    result = orch.sync_release(relver)
    if isinstance(result, Err):
        exit_release_error(result.error)
    ctx.console.success(f"synced release {relver.base_version()}")


@release_app.command("announce")
def announce_cmd(
    version: str | None = typer.Argument(None, help="Release version (default: workspace release)"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
) -> None:
    """Render the release announcement."""
    ctx = build_context()
    relver = resolve_version(ctx, version)

    s3gw_root = ctx.workspace.repo_dir(REPOSITORIES[0].checkout)
    notes = read_latest_notes(s3gw_root)
    if isinstance(notes, Err):
        ctx.console.warning(f"{notes.error.message}: using a placeholder changelog")
        text = render_announcement(relver, images=ctx.config.registry)
    else:
        text = render_announcement(relver, changelog=notes.value[1], images=ctx.config.registry)

    if output is None:
        typer.echo(text)
        return
    try:
        atomic_write_text(output, text)
    except OSError as e:
        exit_release(f"failed to write {output}: {e}", code=ErrorCode.IO_ERROR)
    ctx.console.success(f"announcement written to {output}")
