from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from arc.core.config import WorkspaceConfig, render_config
from arc.core.result import Err, Ok, Result
from arc.core.workspace import Workspace
from arc.git.repository import (
    READONLY_REMOTE,
    READWRITE_REMOTE,
    GitRepo,
    ProgressCallback,
    clone_repository,
)
from arc.output.console import ConsoleProtocol, Style
from arc.platform.files import atomic_write_text
from arc.services.repos import REPOSITORIES, RepoSpec

# -----------------------------------------------------------------------------
# Error Types
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WorkspaceSetupError:
    """Error from workspace init/sync operations."""

    kind: Literal["exists", "config_failed", "sync_failed"]
    message: str
    hint: str | None = None


# -----------------------------------------------------------------------------
# Data Types
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CheckoutInfo:
    name: str
    path: str
    present: bool
    branch: str | None
    readonly: str | None
    readwrite: str | None


class WorkspaceService:
    """Create and refresh the checkouts of a workspace.

    Policy:
    - Clones come from the readonly URL; the readwrite URL is added as ``rw``.
    - Existing checkouts are only fetched, never reset.
    - One failing repository does not stop the others.
    """

    def __init__(
        self,
        *,
        workspace: Workspace,
        config: WorkspaceConfig,
        console: ConsoleProtocol,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._workspace = workspace
        self._config = config
        self._console = console
        self._on_progress = on_progress

    def init(self) -> Result[None, WorkspaceSetupError]:
        """Write ``.arc/config.toml`` and clone every repository."""
        if self._workspace.config_path.exists():
            return Err(
                WorkspaceSetupError(
                    kind="exists",
                    message=f"workspace already initialized at {self._workspace.root}",
                    hint="run: arc ws sync",
                )
            )

        try:
            atomic_write_text(self._workspace.config_path, render_config(self._config))
        except OSError as e:
            return Err(
                WorkspaceSetupError(
                    kind="config_failed",
                    message=f"failed to write {self._workspace.config_path}: {e}",
                )
            )
        self._console.success(f"wrote {self._workspace.config_path}")

        return self.sync()

    def sync(self) -> Result[None, WorkspaceSetupError]:
        """Clone missing checkouts and fetch the existing ones."""
        failed: list[str] = []
        for spec in REPOSITORIES:
            if not self._sync_repo(spec):
                failed.append(spec.name)

        if failed:
            return Err(
                WorkspaceSetupError(
                    kind="sync_failed",
                    message=f"failed to sync: {', '.join(failed)}",
                )
            )
        return Ok(None)

    def info(self) -> list[CheckoutInfo]:
        out: list[CheckoutInfo] = []
        for spec in REPOSITORIES:
            path = self._workspace.repo_dir(spec.checkout)
            repo = GitRepo(path)
            present = repo.exists()
            out.append(
                CheckoutInfo(
                    name=spec.name,
                    path=str(path),
                    present=present,
                    branch=repo.current_branch() if present else None,
                    readonly=repo.remote_url(READONLY_REMOTE) if present else None,
                    readwrite=repo.remote_url(READWRITE_REMOTE) if present else None,
                )
            )
        return out

    def _sync_repo(self, spec: RepoSpec) -> bool:
        cfg = self._config.repo(spec.id)
        path = self._workspace.repo_dir(spec.checkout)
        repo = GitRepo(path, on_progress=self._on_progress)

        if not repo.exists():
            self._console.print(f"{spec.name}: cloning {cfg.readonly}", Style.DIM)
            cloned = clone_repository(
                readonly=cfg.readonly,
                readwrite=cfg.readwrite,
                dest=path,
                on_progress=self._on_progress,
            )
            if isinstance(cloned, Err):
                self._console.error(f"{spec.name}: {cloned.error.message}")
                return False
            repo = cloned.value

            user = self._config.user
            if user.name and user.email:
                configured = repo.configure(
                    name=user.name, email=user.email, signing_key=user.signing_key
                )
                if isinstance(configured, Err):
                    self._console.error(f"{spec.name}: {configured.error.message}")
                    return False
        else:
            self._console.print(f"{spec.name}: fetching", Style.DIM)
            fetched = repo.remote_update()
            if isinstance(fetched, Err):
                self._console.error(f"{spec.name}: {fetched.error.message}")
                return False

        if spec.role == "superproject":
            updated = repo.submodule_update()
            if isinstance(updated, Err):
                self._console.error(f"{spec.name}: {updated.error.message}")
                return False

        self._console.success(f"{spec.name}: ok")
        return True
