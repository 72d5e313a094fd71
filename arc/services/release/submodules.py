from __future__ import annotations

from dataclasses import dataclass

from arc.core.result import Err, Ok, Result
from arc.release.errors import ReleaseError
from arc.services.repos import Repository, ReposTable, git_failure

__all__ = ["SubmoduleInfo", "submodule_set", "pin_submodules"]


@dataclass(frozen=True, slots=True)
class SubmoduleInfo:
    """A dependent repository pinned inside the superproject.

    Attributes:
        name: Submodule path inside the superproject (``ui``, ``charts``, ``ceph``)
        repo: The dependent repository's own checkout
        push_rc_tags: Whether candidate tags are pushed for this repository
    """

    name: str
    repo: Repository
    push_rc_tags: bool = True


def submodule_set(repos: ReposTable) -> tuple[SubmoduleInfo, ...]:
    """Dependents in release order: ui, charts, ceph."""
    out: list[SubmoduleInfo] = []
    for repo in repos.submodules:
        if repo.spec.submodule is None:
            continue
        out.append(
            SubmoduleInfo(name=repo.spec.submodule, repo=repo, push_rc_tags=repo.spec.push_rc_tags)
        )
    return tuple(out)


def pin_submodules(
    s3gw: Repository, pins: list[tuple[SubmoduleInfo, str]]
) -> Result[list[str], ReleaseError]:
    """Move each submodule to its tag; returns the submodule paths to stage."""
    paths: list[str] = []
    for entry, tag in pins:
        moved = s3gw.git.set_submodule_head(entry.name, tag)
        if isinstance(moved, Err):
            return Err(git_failure(s3gw.name, f"pinning submodule {entry.name} to {tag}", moved.error))
        paths.append(entry.name)
    return Ok(paths)
