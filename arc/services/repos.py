"""Tracked repositories.

The repository set is static data: ``REPOSITORIES`` lists the superproject
and its submodules in the order releases process them. ``Repository``
binds one entry to its config and its git checkout, and exposes the
version-aware operations the release flow needs (naming, ref indexing,
idempotent tagging).
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from arc.core.config import RepoConfig, WorkspaceConfig
from arc.core.log import get_logger
from arc.core.result import Err, Ok, Result
from arc.core.workspace import Workspace
from arc.git.repository import (
    READONLY_REMOTE,
    READWRITE_REMOTE,
    GitBackend,
    GitError,
    GitRepo,
    ProgressCallback,
)
from arc.release.errors import ReleaseError, ReleaseErrorKind
from arc.release.refs import RepositoryRefIndex, VersionTree, dedupe_refs
from arc.release.version import Version, VersionFormat

__all__ = [
    "RepoSpec",
    "REPOSITORIES",
    "Repository",
    "ReposTable",
    "TagOutcome",
    "BackendFactory",
    "git_failure",
    "open_repositories",
]

log = get_logger("repos")


@dataclass(frozen=True, slots=True)
class RepoSpec:
    """Static description of a tracked repository.

    Attributes:
        id: Config key (``[git.<id>]``)
        name: Display name
        role: ``superproject`` or ``submodule``
        checkout: Directory under the workspace root
        submodule: Path of the submodule inside the superproject
        push_rc_tags: Whether release-candidate tags are pushed
    """

    id: str
    name: str
    role: Literal["superproject", "submodule"]
    checkout: str
    submodule: str | None = None
    push_rc_tags: bool = True


REPOSITORIES: tuple[RepoSpec, ...] = (
    RepoSpec(id="s3gw", name="s3gw", role="superproject", checkout="s3gw.git"),
    RepoSpec(id="ui", name="s3gw-ui", role="submodule", checkout="s3gw-ui.git", submodule="ui"),
    RepoSpec(
        id="charts", name="s3gw-charts", role="submodule", checkout="charts.git", submodule="charts"
    ),
    RepoSpec(id="ceph", name="s3gw-ceph", role="submodule", checkout="ceph.git", submodule="ceph"),
)


def git_failure(
    repo: str, operation: str, error: GitError, *, kind: ReleaseErrorKind = "git_failed"
) -> ReleaseError:
    return ReleaseError(
        kind=kind,
        message=f"{operation} failed ({error.command})",
        hint=error.message,
        repo=repo,
    )


@dataclass(frozen=True, slots=True)
class TagOutcome:
    name: str
    created: bool


class Repository:
    """A tracked repository: static spec, naming rules and git checkout."""

    def __init__(self, spec: RepoSpec, config: RepoConfig, git: GitBackend) -> None:
        self.spec = spec
        self.config = config
        self.git = git

    @property
    def id(self) -> str:
        return self.spec.id

    @property
    def name(self) -> str:
        return self.spec.name

    def __repr__(self) -> str:
        return f"Repository({self.spec.name!r}, {self.git.path})"

    # Naming

    def _render(self, fmt: VersionFormat, version: Version, *, rc: bool) -> Result[str, ReleaseError]:
        rendered = fmt.render_rc(version) if rc else fmt.render(version)
        if isinstance(rendered, Err):
            return Err(
                ReleaseError(kind="invalid_input", message=rendered.error.message, repo=self.name)
            )
        return rendered

    def branch_name(self, version: Version) -> Result[str, ReleaseError]:
        """Release branch holding ``version``, e.g. ``s3gw-v0.21``."""
        return self._render(self.config.branch_format, version.base_version(), rc=False)

    def tag_name(self, version: Version) -> Result[str, ReleaseError]:
        """Tag for ``version``, with ``-rcN`` for candidates, e.g. ``v0.21.0-rc2``."""
        return self._render(self.config.tag_format, version, rc=True)

    def final_branch_name(self, version: Version) -> Result[str, ReleaseError]:
        if self.config.final_branch_format is None:
            return Err(
                ReleaseError(
                    kind="charts_failed",
                    message="final branch format not defined",
                    hint=f"set final_branch_format in [git.{self.id}]",
                    repo=self.name,
                )
            )
        return self._render(self.config.final_branch_format, version, rc=False)

    # Refs

    def ref_index(self) -> Result[RepositoryRefIndex, ReleaseError]:
        refs = self.git.list_refs(remote=READONLY_REMOTE)
        if isinstance(refs, Err):
            return Err(git_failure(self.name, "listing refs", refs.error))
        return Ok(
            RepositoryRefIndex(
                dedupe_refs(refs.value),
                branch_pattern=self.config.branch_pattern,
                tag_pattern=self.config.tag_pattern,
                name=self.name,
            )
        )

    def versions(self) -> Result[dict[int, Version], ReleaseError]:
        """Release tags present on the remote, keyed by version id."""
        index = self.ref_index()
        if isinstance(index, Err):
            return index
        return Ok(index.value.tag_versions(remote_only=True))

    def release_branches(self) -> Result[dict[int, Version], ReleaseError]:
        index = self.ref_index()
        if isinstance(index, Err):
            return index
        return Ok(index.value.release_branches())

    def version_tree(self) -> Result[VersionTree, ReleaseError]:
        index = self.ref_index()
        if isinstance(index, Err):
            return index
        return Ok(index.value.tree())

    # Operations

    def update(self) -> Result[None, ReleaseError]:
        """Fetch every remote; refresh submodules of the superproject."""
        fetched = self.git.remote_update()
        if isinstance(fetched, Err):
            return Err(git_failure(self.name, "update", fetched.error, kind="sync_failed"))
        if self.spec.role == "superproject":
            updated = self.git.submodule_update()
            if isinstance(updated, Err):
                return Err(git_failure(self.name, "submodule update", updated.error, kind="sync_failed"))
        return Ok(None)

    def checkout_release_branch(self, version: Version) -> Result[str, ReleaseError]:
        branch = self.branch_name(version)
        if isinstance(branch, Err):
            return branch
        checked = self.git.checkout(branch.value, remote=READONLY_REMOTE)
        if isinstance(checked, Err):
            return Err(git_failure(self.name, f"checkout {branch.value}", checked.error, kind="sync_failed"))
        return branch

    def branch_from_default(self, version: Version) -> Result[str, ReleaseError]:
        """Cut ``version``'s release branch from the default branch and push it."""
        branch = self.branch_name(version)
        if isinstance(branch, Err):
            return branch

        default = self.git.default_branch(remote=READONLY_REMOTE)
        if isinstance(default, Err):
            return Err(git_failure(self.name, "finding default branch", default.error))

        if not self.git.branch_exists(branch.value):
            created = self.git.create_branch(branch.value, f"{READONLY_REMOTE}/{default.value}")
            if isinstance(created, Err):
                return Err(git_failure(self.name, f"creating branch {branch.value}", created.error))

        pushed = self.push_branch(branch.value)
        if isinstance(pushed, Err):
            return pushed
        return branch

    def tag_release(self, relver: Version, version: Version) -> Result[TagOutcome, ReleaseError]:
        """Tag the tip of ``relver``'s release branch as ``version``.

        An existing tag on the same commit is reused; one on a different
        commit is a ``tag_conflict``.
        """
        branch = self.branch_name(relver)
        if isinstance(branch, Err):
            return branch
        tag = self.tag_name(version)
        if isinstance(tag, Err):
            return tag

        head = self.git.resolve(f"refs/heads/{branch.value}")
        if head is None:
            return Err(
                ReleaseError(
                    kind="git_failed",
                    message=f"release branch {branch.value} not found",
                    hint="run: arc rel sync",
                    repo=self.name,
                )
            )

        existing = self.git.resolve(f"refs/tags/{tag.value}")
        if existing is not None:
            if existing == head:
                log.debug("%s: tag %s already at %s", self.name, tag.value, head)
                return Ok(TagOutcome(name=tag.value, created=False))
            return Err(
                ReleaseError(
                    kind="tag_conflict",
                    message=f"tag {tag.value} exists on {existing[:12]}, branch is at {head[:12]}",
                    hint="inspect the repository before retrying",
                    repo=self.name,
                )
            )

        created = self.git.tag_signed(tag.value, f"refs/heads/{branch.value}", f"Release {version}")
        if isinstance(created, Err):
            return Err(git_failure(self.name, f"tagging {tag.value}", created.error))
        return Ok(TagOutcome(name=tag.value, created=True))

    def push_branch(self, branch: str) -> Result[None, ReleaseError]:
        pushed = self.git.push(READWRITE_REMOTE, f"refs/heads/{branch}:refs/heads/{branch}")
        if isinstance(pushed, Err):
            return Err(git_failure(self.name, f"pushing branch {branch}", pushed.error))
        return Ok(None)

    def push_tag(self, tag: str) -> Result[None, ReleaseError]:
        pushed = self.git.push(READWRITE_REMOTE, f"refs/tags/{tag}")
        if isinstance(pushed, Err):
            return Err(git_failure(self.name, f"pushing tag {tag}", pushed.error))
        return Ok(None)


@dataclass(frozen=True, slots=True)
class ReposTable:
    """The superproject and its submodules, in release order."""

    s3gw: Repository
    submodules: tuple[Repository, ...]

    def __iter__(self) -> Iterator[Repository]:
        yield self.s3gw
        yield from self.submodules

    def get(self, repo_id: str) -> Repository:
        for repo in self:
            if repo.id == repo_id:
                return repo
        raise KeyError(repo_id)


BackendFactory = Callable[[Path], GitBackend]


def open_repositories(
    *,
    workspace: Workspace,
    config: WorkspaceConfig,
    backend: BackendFactory | None = None,
    on_progress: ProgressCallback | None = None,
) -> ReposTable:
    """Bind every entry of ``REPOSITORIES`` to its checkout in ``workspace``."""

    def _default_backend(path: Path) -> GitBackend:
        return GitRepo(path, on_progress=on_progress)

    make = backend or _default_backend
    repos = [
        Repository(spec, config.repo(spec.id), make(workspace.repo_dir(spec.checkout)))
        for spec in REPOSITORIES
    ]
    return ReposTable(s3gw=repos[0], submodules=tuple(repos[1:]))
