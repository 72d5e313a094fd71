"""Git access layer.

``GitRepo`` drives the ``git`` binary for one checkout. Every method that
can fail returns a Result; nothing raises. Services depend on the
``GitBackend`` protocol instead of ``GitRepo`` so tests can substitute an
in-memory repository.

Checkouts use two remotes: ``ro`` (fetch URL, usually https) and ``rw``
(push URL, usually ssh).

Usage:
    repo = GitRepo(Path("/ws/s3gw.git"))
    match repo.list_refs(remote="ro"):
        case Ok(refs):
            print(len(refs))
        case Err(e):
            print(f"{e.command} failed: {e.message}")
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from arc.core.log import get_logger
from arc.core.result import Err, Ok, Result
from arc.platform.process import ProcessError
from arc.platform.process import run as run_process
from arc.release.refs import GitRef

__all__ = [
    "GitError",
    "GitBackend",
    "GitRepo",
    "ProgressCallback",
    "READONLY_REMOTE",
    "READWRITE_REMOTE",
    "clone_repository",
    "parse_ls_remote",
    "parse_for_each_ref",
]

log = get_logger("git")

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 10 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "clone", "ls-remote", "remote", "submodule"})

READONLY_REMOTE = "ro"
READWRITE_REMOTE = "rw"

ProgressCallback = Callable[[str, int, int], None]
"""``on_progress(phase, done, total)``; called before and after network steps."""


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message (git's stderr when available)
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


def _git_error(command: str, e: ProcessError) -> GitError:
    message = e.stderr.strip() or e.stdout.strip() or f"git {command} failed"
    return GitError(command=command, message=message, returncode=e.returncode)


class GitBackend(Protocol):
    """The git operations the release services rely on."""

    @property
    def path(self) -> Path: ...

    def exists(self) -> bool: ...

    def list_refs(self, *, remote: str) -> Result[list[GitRef], GitError]: ...

    def remote_update(self) -> Result[None, GitError]: ...

    def default_branch(self, *, remote: str) -> Result[str, GitError]: ...

    def branch_exists(self, name: str) -> bool: ...

    def create_branch(self, name: str, start_point: str) -> Result[None, GitError]: ...

    def checkout(self, branch: str, *, remote: str) -> Result[None, GitError]: ...

    def resolve(self, ref: str) -> str | None:
        """Commit id ``ref`` points at (tags peeled), or None if it does not exist."""
        ...

    def tag_signed(self, name: str, target: str, message: str) -> Result[None, GitError]: ...

    def push(self, remote: str, refspec: str) -> Result[None, GitError]: ...

    def set_submodule_head(self, submodule: str, ref: str) -> Result[None, GitError]: ...

    def submodule_update(self) -> Result[None, GitError]: ...

    def stage(self, paths: Sequence[str]) -> Result[None, GitError]: ...

    def commit(self, message: str, *, allow_empty: bool = False) -> Result[None, GitError]: ...


def parse_ls_remote(output: str) -> list[GitRef]:
    """Parse ``git ls-remote --heads --tags`` output.

    Annotated tags appear twice; the peeled ``^{}`` line carries the commit
    the tag points at and wins.
    """
    refs: dict[str, GitRef] = {}
    for line in output.splitlines():
        parts = line.strip().split("\t")
        if len(parts) != 2:
            continue
        oid, name = parts
        peeled = name.endswith("^{}")
        if peeled:
            name = name[: -len("^{}")]

        if name.startswith("refs/heads/"):
            ref = GitRef(name=name[len("refs/heads/") :], kind="branch", oid=oid, remote=True)
        elif name.startswith("refs/tags/"):
            ref = GitRef(name=name[len("refs/tags/") :], kind="tag", oid=oid, remote=True)
        else:
            continue

        if peeled or name not in refs:
            refs[name] = ref
    return list(refs.values())


def parse_for_each_ref(output: str) -> list[GitRef]:
    """Parse ``git for-each-ref --format='%(refname) %(objectname) %(*objectname)'``."""
    refs: list[GitRef] = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        name, oid = parts[0], parts[1]
        if len(parts) > 2 and parts[2]:
            oid = parts[2]
        if name.startswith("refs/heads/"):
            refs.append(
                GitRef(name=name[len("refs/heads/") :], kind="branch", oid=oid, remote=False)
            )
        elif name.startswith("refs/tags/"):
            refs.append(GitRef(name=name[len("refs/tags/") :], kind="tag", oid=oid, remote=False))
    return refs


class GitRepo:
    """A git checkout driven through the ``git`` binary.

    Attributes:
        path: Path to the repository root
        on_progress: Optional progress callback for network operations
    """

    def __init__(self, path: Path, *, on_progress: ProgressCallback | None = None) -> None:
        self._path = path
        self.on_progress = on_progress

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return (self._path / ".git").exists()

    def list_refs(self, *, remote: str) -> Result[list[GitRef], GitError]:
        """Local branches and tags, plus the branches and tags on ``remote``."""
        local = self._run(
            [
                "for-each-ref",
                "--format=%(refname) %(objectname) %(*objectname)",
                "refs/heads",
                "refs/tags",
            ]
        )
        if isinstance(local, Err):
            return Err(_git_error("for-each-ref", local.error))

        self._progress(f"listing {remote}", 0, 1)
        listed = self._run(["ls-remote", "--heads", "--tags", remote])
        if isinstance(listed, Err):
            return Err(_git_error(f"ls-remote {remote}", listed.error))
        self._progress(f"listing {remote}", 1, 1)

        return Ok(parse_for_each_ref(local.value) + parse_ls_remote(listed.value))

    def remote_update(self) -> Result[None, GitError]:
        self._progress("fetching", 0, 1)
        result = self._run(["fetch", "--all", "--tags"])
        if isinstance(result, Err):
            return Err(_git_error("fetch --all", result.error))
        self._progress("fetching", 1, 1)
        return Ok(None)

    def default_branch(self, *, remote: str) -> Result[str, GitError]:
        """Name of ``remote``'s default branch, e.g. ``main``."""
        head = self._run(["symbolic-ref", "--short", f"refs/remotes/{remote}/HEAD"])
        if isinstance(head, Err):
            set_head = self._run(["remote", "set-head", remote, "--auto"])
            if isinstance(set_head, Err):
                return Err(_git_error(f"remote set-head {remote}", set_head.error))
            head = self._run(["symbolic-ref", "--short", f"refs/remotes/{remote}/HEAD"])
            if isinstance(head, Err):
                return Err(_git_error("symbolic-ref", head.error))

        name = head.value.strip()
        prefix = f"{remote}/"
        return Ok(name[len(prefix) :] if name.startswith(prefix) else name)

    def branch_exists(self, name: str) -> bool:
        result = self._run(["show-ref", "--verify", "--quiet", f"refs/heads/{name}"])
        return isinstance(result, Ok)

    def create_branch(self, name: str, start_point: str) -> Result[None, GitError]:
        result = self._run(["branch", name, start_point])
        if isinstance(result, Err):
            return Err(_git_error(f"branch {name}", result.error))
        return Ok(None)

    def checkout(self, branch: str, *, remote: str) -> Result[None, GitError]:
        """Check out ``branch``, creating it from ``remote`` or fast-forwarding it."""
        if not self.branch_exists(branch):
            result = self._run(["checkout", "-b", branch, "--track", f"{remote}/{branch}"])
            if isinstance(result, Err):
                return Err(_git_error(f"checkout {branch}", result.error))
            return Ok(None)

        result = self._run(["checkout", branch])
        if isinstance(result, Err):
            return Err(_git_error(f"checkout {branch}", result.error))

        if self.resolve(f"refs/remotes/{remote}/{branch}") is None:
            return Ok(None)
        merged = self._run(["merge", "--ff-only", f"{remote}/{branch}"])
        if isinstance(merged, Err):
            return Err(_git_error(f"merge --ff-only {remote}/{branch}", merged.error))
        return Ok(None)

    def resolve(self, ref: str) -> str | None:
        result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def current_branch(self) -> str | None:
        """Current branch name, or None on a detached HEAD."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def remote_url(self, remote: str) -> str | None:
        result = self._run(["remote", "get-url", remote])
        if isinstance(result, Err):
            return None
        return result.value.strip() or None

    def tag_signed(self, name: str, target: str, message: str) -> Result[None, GitError]:
        result = self._run(["tag", "--annotate", "--sign", "-m", message, name, target])
        if isinstance(result, Err):
            return Err(_git_error(f"tag {name}", result.error))
        return Ok(None)

    def push(self, remote: str, refspec: str) -> Result[None, GitError]:
        self._progress(f"pushing {refspec}", 0, 1)
        result = self._run(["push", remote, refspec])
        if isinstance(result, Err):
            return Err(_git_error(f"push {remote} {refspec}", result.error))
        self._progress(f"pushing {refspec}", 1, 1)
        return Ok(None)

    def set_submodule_head(self, submodule: str, ref: str) -> Result[None, GitError]:
        """Point submodule ``submodule`` at ``ref`` (fetched from its origin)."""
        sub = GitRepo(self._path / submodule, on_progress=self.on_progress)
        fetched = sub._run(["fetch", "--tags", "origin"])
        if isinstance(fetched, Err):
            return Err(_git_error(f"fetch {submodule}", fetched.error))
        checked = sub._run(["checkout", "--detach", ref])
        if isinstance(checked, Err):
            return Err(_git_error(f"checkout {submodule} {ref}", checked.error))
        return Ok(None)

    def submodule_update(self) -> Result[None, GitError]:
        self._progress("updating submodules", 0, 1)
        result = self._run(["submodule", "update", "--init"])
        if isinstance(result, Err):
            return Err(_git_error("submodule update", result.error))
        self._progress("updating submodules", 1, 1)
        return Ok(None)

    def stage(self, paths: Sequence[str]) -> Result[None, GitError]:
        if not paths:
            return Ok(None)
        result = self._run(["add", "--", *paths])
        if isinstance(result, Err):
            return Err(_git_error("add", result.error))
        return Ok(None)

    def commit(self, message: str, *, allow_empty: bool = False) -> Result[None, GitError]:
        args = ["commit", "--gpg-sign", "--signoff", "-m", message]
        if allow_empty:
            args.insert(1, "--allow-empty")
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error("commit", result.error))
        return Ok(None)

    def configure(self, *, name: str, email: str, signing_key: str) -> Result[None, GitError]:
        """Set the committer identity and enable signed commits."""
        settings = [("user.name", name), ("user.email", email)]
        if signing_key:
            settings += [("user.signingKey", signing_key), ("commit.gpgSign", "true")]
        for key, value in settings:
            result = self._run(["config", key, value])
            if isinstance(result, Err):
                return Err(_git_error(f"config {key}", result.error))
        return Ok(None)

    def _progress(self, phase: str, done: int, total: int) -> None:
        if self.on_progress is not None:
            self.on_progress(f"{self._path.name}: {phase}", done, total)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self._path), *args], cwd=self._path, timeout=timeout)


def clone_repository(
    *,
    readonly: str,
    readwrite: str,
    dest: Path,
    on_progress: ProgressCallback | None = None,
) -> Result[GitRepo, GitError]:
    """Clone ``readonly`` into ``dest`` with remotes ``ro`` and ``rw``."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    if on_progress is not None:
        on_progress(f"{dest.name}: cloning", 0, 1)

    cloned = run_process(
        ["git", "clone", "--origin", READONLY_REMOTE, readonly, str(dest)],
        cwd=dest.parent,
        timeout=_GIT_NETWORK_TIMEOUT_SECONDS,
    )
    if isinstance(cloned, Err):
        return Err(_git_error(f"clone {readonly}", cloned.error))

    repo = GitRepo(dest, on_progress=on_progress)
    added = repo._run(["remote", "add", READWRITE_REMOTE, readwrite])
    if isinstance(added, Err):
        return Err(_git_error(f"remote add {READWRITE_REMOTE}", added.error))

    if on_progress is not None:
        on_progress(f"{dest.name}: cloning", 1, 1)
    log.debug("cloned %s into %s", readonly, dest)
    return Ok(repo)
