"""Finishing pull request for a released version.

After the final tag is pushed, the release notes still have to reach the
superproject's default branch. This opens a pull request that adds them,
repoints ``latest`` and lists the release in the documentation index.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from arc.core.result import Err, Result
from arc.git.repository import READONLY_REMOTE
from arc.output.console import ConsoleProtocol, Style
from arc.platform.files import atomic_symlink, atomic_write_text
from arc.release.errors import ReleaseError
from arc.release.version import Version
from arc.services.release.gh import PullRequest
from arc.services.release.notes import (
    LATEST_LINK,
    MKDOCS_PATH,
    notes_path,
    read_latest_notes,
    update_doc_index,
)
from arc.services.repos import Repository, git_failure

__all__ = ["PullRequestProvider", "finishing_branch", "open_finishing_pr"]


class PullRequestProvider(Protocol):
    def create_pull_request(
        self, *, repo_slug: str, head: str, base: str, title: str, body: str
    ) -> Result[PullRequest, ReleaseError]: ...


def finishing_branch(version: Version) -> str:
    return f"s3gw-v{version}-release"


def open_finishing_pr(
    s3gw: Repository,
    version: Version,
    *,
    provider: PullRequestProvider,
    console: ConsoleProtocol,
) -> Result[PullRequest, ReleaseError]:
    """Branch from the default branch, add the notes, push and open the PR.

    Expects the release branch to be checked out; it is checked out again
    before returning, also when the pull request could not be opened.
    Every step is safe to repeat, so a failed run can simply be re-run.
    """
    github = s3gw.config.github
    if github is None:
        return Err(
            ReleaseError(
                kind="pr_failed",
                message="no GitHub coordinates configured",
                hint="set github_org and github_repo in [git.s3gw]",
                repo=s3gw.name,
            )
        )

    release_branch = s3gw.branch_name(version)
    if isinstance(release_branch, Err):
        return release_branch

    notes = read_latest_notes(s3gw.git.path)
    if isinstance(notes, Err):
        return notes
    _, notes_text = notes.value

    default = s3gw.git.default_branch(remote=READONLY_REMOTE)
    if isinstance(default, Err):
        return Err(git_failure(s3gw.name, "finding default branch", default.error))

    branch = finishing_branch(version)
    if not s3gw.git.branch_exists(branch):
        created = s3gw.git.create_branch(branch, f"{READONLY_REMOTE}/{default.value}")
        if isinstance(created, Err):
            return Err(git_failure(s3gw.name, f"creating branch {branch}", created.error))
    checked = s3gw.git.checkout(branch, remote=READONLY_REMOTE)
    if isinstance(checked, Err):
        return Err(git_failure(s3gw.name, f"checkout {branch}", checked.error))

    pr = _commit_and_open(
        s3gw,
        version,
        branch=branch,
        base=default.value,
        slug=github.slug,
        notes_text=notes_text,
        provider=provider,
        console=console,
    )

    restored = s3gw.git.checkout(release_branch.value, remote=READONLY_REMOTE)
    if isinstance(restored, Err):
        failure = git_failure(s3gw.name, f"checkout {release_branch.value}", restored.error)
        if isinstance(pr, Err):
            console.warning(failure.message)
            return pr
        return Err(failure)
    return pr


def _commit_and_open(
    s3gw: Repository,
    version: Version,
    *,
    branch: str,
    base: str,
    slug: str,
    notes_text: str,
    provider: PullRequestProvider,
    console: ConsoleProtocol,
) -> Result[PullRequest, ReleaseError]:
    root = s3gw.git.path
    rel = notes_path(version)
    dest = root / rel
    link = root / LATEST_LINK
    try:
        changed = not dest.exists() or dest.read_text(encoding="utf-8") != notes_text
        if changed:
            atomic_write_text(dest, notes_text)
        previous = os.readlink(link) if link.is_symlink() else None
        atomic_symlink(link, dest.name)
    except OSError as e:
        return Err(
            ReleaseError(kind="notes_failed", message=f"failed to write {rel}: {e}", repo=s3gw.name)
        )
    if previous is None or Path(previous).name != dest.name:
        changed = True

    indexed = update_doc_index(root, version)
    if isinstance(indexed, Err):
        return indexed
    changed = changed or indexed.value

    if changed:
        staged = s3gw.git.stage([rel, LATEST_LINK, MKDOCS_PATH])
        if isinstance(staged, Err):
            return Err(git_failure(s3gw.name, "staging release notes", staged.error))
        committed = s3gw.git.commit(f"docs: add release notes for v{version}")
        if isinstance(committed, Err):
            return Err(git_failure(s3gw.name, "committing release notes", committed.error))

    pushed = s3gw.push_branch(branch)
    if isinstance(pushed, Err):
        return pushed

    console.print(f"gh pr create --repo {slug} --base {base} --head {branch}", Style.DIM)
    return provider.create_pull_request(
        repo_slug=slug,
        head=branch,
        base=base,
        title=f"Release v{version}",
        body=notes_text,
    )
