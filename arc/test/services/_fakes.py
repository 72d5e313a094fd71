"""In-memory stand-ins for git, CI and pull requests.

``FakeGit`` keeps local branches/tags and a single shared remote (pushes to
``rw`` show up when listing ``ro``), which is all the release flow needs.
The fakes of one harness append ``(checkout, op, ref)`` to a shared
``events`` list, so tests can check ordering across repositories.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from arc.core.config import WorkspaceConfig, default_config
from arc.core.result import Err, Ok, Result
from arc.core.workspace import Workspace
from arc.git.repository import GitError
from arc.output.console import MockConsole
from arc.release.errors import ReleaseError
from arc.release.refs import GitRef
from arc.services.release.ci import WorkflowStatus
from arc.services.release.gh import PullRequest
from arc.services.release.orchestrator import ReleaseOrchestrator
from arc.services.repos import ReposTable, open_repositories


@dataclass
class FakeGit:
    path: Path
    remote_heads: dict[str, str] = field(default_factory=lambda: {"main": "c0"})
    remote_tags: dict[str, str] = field(default_factory=dict)
    heads: dict[str, str] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    current: str | None = None
    submodule_heads: dict[str, str] = field(default_factory=dict)
    staged: list[str] = field(default_factory=list)
    commits: list[str] = field(default_factory=list)
    pushes: list[str] = field(default_factory=list)
    tag_calls: list[str] = field(default_factory=list)
    failing: set[str] = field(default_factory=set)
    failing_refspecs: set[str] = field(default_factory=set)
    events: list[tuple[str, str, str]] = field(default_factory=list)
    _counter: int = 0

    def _fail(self, op: str) -> Err[GitError] | None:
        if op in self.failing:
            return Err(GitError(command=op, message=f"{op}: simulated failure"))
        return None

    def exists(self) -> bool:
        return True

    def list_refs(self, *, remote: str) -> Result[list[GitRef], GitError]:
        if (e := self._fail("list_refs")) is not None:
            return e
        refs = [GitRef(name=n, kind="branch", oid=o, remote=True) for n, o in self.remote_heads.items()]
        refs += [GitRef(name=n, kind="tag", oid=o, remote=True) for n, o in self.remote_tags.items()]
        refs += [GitRef(name=n, kind="branch", oid=o, remote=False) for n, o in self.heads.items()]
        refs += [GitRef(name=n, kind="tag", oid=o, remote=False) for n, o in self.tags.items()]
        return Ok(refs)

    def remote_update(self) -> Result[None, GitError]:
        if (e := self._fail("remote_update")) is not None:
            return e
        return Ok(None)

    def default_branch(self, *, remote: str) -> Result[str, GitError]:
        return Ok("main")

    def branch_exists(self, name: str) -> bool:
        return name in self.heads

    def create_branch(self, name: str, start_point: str) -> Result[None, GitError]:
        _, _, branch = start_point.partition("/")
        self.heads[name] = self.remote_heads[branch]
        return Ok(None)

    def checkout(self, branch: str, *, remote: str) -> Result[None, GitError]:
        if branch not in self.heads:
            if branch not in self.remote_heads:
                return Err(GitError(command=f"checkout {branch}", message="no such branch"))
            self.heads[branch] = self.remote_heads[branch]
        self.current = branch
        return Ok(None)

    def resolve(self, ref: str) -> str | None:
        if ref.startswith("refs/heads/"):
            return self.heads.get(ref.removeprefix("refs/heads/"))
        if ref.startswith("refs/tags/"):
            return self.tags.get(ref.removeprefix("refs/tags/"))
        return None

    def tag_signed(self, name: str, target: str, message: str) -> Result[None, GitError]:
        if (e := self._fail("tag")) is not None:
            return e
        self.tag_calls.append(name)
        self.events.append((self.path.name, "tag", name))
        self.tags[name] = self.heads[target.removeprefix("refs/heads/")]
        return Ok(None)

    def push(self, remote: str, refspec: str) -> Result[None, GitError]:
        if (e := self._fail("push")) is not None:
            return e
        if refspec in self.failing_refspecs:
            return Err(GitError(command=f"push {remote}", message="connection reset"))
        self.pushes.append(refspec)
        self.events.append((self.path.name, "push", refspec))
        src, _, dst = refspec.partition(":")
        if src.startswith("refs/tags/"):
            name = src.removeprefix("refs/tags/")
            self.remote_tags[name] = self.tags[name]
        else:
            self.remote_heads[dst.removeprefix("refs/heads/")] = self.heads[
                src.removeprefix("refs/heads/")
            ]
        return Ok(None)

    def set_submodule_head(self, submodule: str, ref: str) -> Result[None, GitError]:
        self.submodule_heads[submodule] = ref
        self.events.append((self.path.name, "pin", submodule))
        return Ok(None)

    def submodule_update(self) -> Result[None, GitError]:
        return Ok(None)

    def stage(self, paths: Sequence[str]) -> Result[None, GitError]:
        self.staged.extend(paths)
        return Ok(None)

    def commit(self, message: str, *, allow_empty: bool = False) -> Result[None, GitError]:
        if (e := self._fail("commit")) is not None:
            return e
        assert self.current is not None
        self._counter += 1
        self.heads[self.current] = f"{self.path.name}-c{self._counter}"
        self.commits.append(message)
        self.events.append((self.path.name, "commit", message))
        return Ok(None)

    # Test helpers

    def seed_branch(self, name: str, oid: str = "c1") -> None:
        self.remote_heads[name] = oid
        self.heads[name] = oid

    def seed_tag(self, name: str, oid: str = "c1") -> None:
        self.remote_tags[name] = oid
        self.tags[name] = oid


def workflow(
    status: str = "completed", conclusion: str | None = "success", *, name: str = "Release S3GW"
) -> WorkflowStatus:
    t0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)
    return WorkflowStatus(
        name=name,
        status=status,
        conclusion=conclusion,
        created_at=t0,
        started_at=t0,
        updated_at=datetime(2024, 3, 1, 12, 42, 5, tzinfo=UTC),
        url="https://github.com/aquarist-labs/s3gw/actions/runs/1",
    )


@dataclass
class FakeCi:
    status: WorkflowStatus | None = field(default_factory=workflow)
    error: ReleaseError | None = None
    calls: list[str] = field(default_factory=list)

    def latest_release_workflow(
        self, *, org: str, repo: str, tag: str
    ) -> Result[WorkflowStatus | None, ReleaseError]:
        self.calls.append(f"{org}/{repo}@{tag}")
        if self.error is not None:
            return Err(self.error)
        return Ok(self.status)


@dataclass
class FakePr:
    calls: list[dict[str, str]] = field(default_factory=list)
    failures: int = 0

    def create_pull_request(
        self, *, repo_slug: str, head: str, base: str, title: str, body: str
    ) -> Result[PullRequest, ReleaseError]:
        self.calls.append(
            {"repo": repo_slug, "head": head, "base": base, "title": title, "body": body}
        )
        if self.failures > 0:
            self.failures -= 1
            return Err(ReleaseError(kind="pr_failed", message="gh pr create failed"))
        return Ok(PullRequest(url=f"https://github.com/{repo_slug}/pull/7", number=7))


@dataclass
class Harness:
    orch: ReleaseOrchestrator
    repos: ReposTable
    git: dict[str, FakeGit]
    console: MockConsole
    ci: FakeCi
    pr: FakePr
    questions: list[str]
    events: list[tuple[str, str, str]]


def make_harness(
    tmp_path: Path,
    *,
    confirm: bool = True,
    config: WorkspaceConfig | None = None,
) -> Harness:
    created: dict[str, FakeGit] = {}
    events: list[tuple[str, str, str]] = []

    def backend(path: Path) -> FakeGit:
        path.mkdir(parents=True, exist_ok=True)
        fake = FakeGit(path=path, events=events)
        created[path.name] = fake
        return fake

    workspace = Workspace(root=tmp_path)
    repos = open_repositories(
        workspace=workspace, config=config or default_config(), backend=backend
    )
    git = {repo.id: created[repo.spec.checkout] for repo in repos}

    console = MockConsole()
    ci = FakeCi()
    pr = FakePr()
    questions: list[str] = []

    def _confirm(question: str) -> bool:
        questions.append(question)
        return confirm

    orch = ReleaseOrchestrator(
        workspace=workspace,
        repos=repos,
        console=console,
        ci=ci,
        pr=pr,
        confirm=_confirm,
    )
    return Harness(
        orch=orch,
        repos=repos,
        git=git,
        console=console,
        ci=ci,
        pr=pr,
        questions=questions,
        events=events,
    )


def seed_candidate(h: Harness, version: str, rcs: Sequence[int]) -> None:
    """Create release branches and ``-rcN`` tags in every repository."""
    major, minor, patch = version.split(".")
    branches = {"s3gw": f"s3gw-v{major}.{minor}", "charts": f"v{major}.{minor}"}
    for repo_id, fake in h.git.items():
        fake.seed_branch(branches.get(repo_id, f"s3gw-v{major}.{minor}"))
        prefix = "v" if repo_id == "s3gw" else "s3gw-v"
        for rc in rcs:
            fake.seed_tag(f"{prefix}{major}.{minor}.{patch}-rc{rc}")
