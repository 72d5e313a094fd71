"""Rebuild a repository's release tree from its branch and tag names.

Release branches (``s3gw-v0.21``) create base-version nodes. Release tags
(``v0.21.0-rc1``, ``v0.21.0``) attach to the node of their base version,
grouped by release. A tag whose release branch does not exist is dropped.

Nothing here talks to git: callers pass the raw ref listing and the
repository's compiled patterns, and get a fresh tree every time.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Literal

from arc.core.log import get_logger
from arc.core.result import Err
from arc.release.version import Version, parse_version

__all__ = [
    "GitRef",
    "RefEntry",
    "ReleaseEntry",
    "BaseVersion",
    "VersionTree",
    "RepositoryRefIndex",
    "dedupe_refs",
    "last_version",
]

log = get_logger("refs")

RefKind = Literal["branch", "tag"]


@dataclass(frozen=True, slots=True)
class GitRef:
    """One raw ref as reported by the git layer.

    ``name`` is the short name (``s3gw-v0.21``, not ``refs/remotes/ro/...``).
    """

    name: str
    kind: RefKind
    oid: str
    remote: bool


@dataclass(frozen=True, slots=True)
class RefEntry:
    name: str
    kind: RefKind
    oid: str
    has_local: bool
    has_remote: bool


def dedupe_refs(refs: Iterable[GitRef]) -> list[RefEntry]:
    """Merge local and remote copies of the same ref name.

    The local oid wins when both exist. Order follows first appearance.
    """
    merged: dict[tuple[RefKind, str], RefEntry] = {}
    for ref in refs:
        key = (ref.kind, ref.name)
        prev = merged.get(key)
        if prev is None:
            merged[key] = RefEntry(
                name=ref.name,
                kind=ref.kind,
                oid=ref.oid,
                has_local=not ref.remote,
                has_remote=ref.remote,
            )
            continue
        merged[key] = RefEntry(
            name=ref.name,
            kind=ref.kind,
            oid=prev.oid if prev.has_local else ref.oid,
            has_local=prev.has_local or not ref.remote,
            has_remote=prev.has_remote or ref.remote,
        )
    return list(merged.values())


def _empty_versions() -> dict[int, Version]:
    return {}


def _empty_releases() -> dict[int, ReleaseEntry]:
    return {}


@dataclass(slots=True)
class ReleaseEntry:
    """All tags of one ``major.minor.patch`` release, keyed by version id."""

    release: Version
    versions: dict[int, Version] = field(default_factory=_empty_versions)
    is_complete: bool = False

    def add(self, version: Version) -> None:
        self.versions[version.version_id] = version
        self.versions = dict(sorted(self.versions.items()))
        if version.rc is None:
            self.is_complete = True

    def candidates(self) -> list[Version]:
        return [v for v in self.versions.values() if v.rc is not None]


@dataclass(slots=True)
class BaseVersion:
    """A ``major.minor`` release branch and the releases tagged on it."""

    version: Version
    releases: dict[int, ReleaseEntry] = field(default_factory=_empty_releases)

    def entry_for(self, release: Version) -> ReleaseEntry:
        rid = release.version_id
        entry = self.releases.get(rid)
        if entry is None:
            entry = ReleaseEntry(release=release)
            self.releases[rid] = entry
            self.releases = dict(sorted(self.releases.items()))
        return entry


type VersionTree = dict[int, BaseVersion]


def last_version(versions: Mapping[int, Version]) -> Version | None:
    """Return the version with the highest id, if any."""
    if not versions:
        return None
    return versions[max(versions)]


def _capture(pattern: re.Pattern[str], name: str) -> str | None:
    m = pattern.match(name)
    if m is None:
        return None
    return m.group(1) if m.groups() else m.group(0)


class RepositoryRefIndex:
    """Version views over one repository's refs.

    Attributes:
        refs: Deduplicated ref entries
        branch_pattern: Regex whose first group captures ``major.minor``
        tag_pattern: Regex whose first group captures ``major.minor.patch[-rcN]``
    """

    def __init__(
        self,
        refs: Iterable[RefEntry],
        *,
        branch_pattern: re.Pattern[str],
        tag_pattern: re.Pattern[str],
        name: str = "",
    ) -> None:
        self.refs = list(refs)
        self.branch_pattern = branch_pattern
        self.tag_pattern = tag_pattern
        self.name = name

    def _parse(self, ref: RefEntry, pattern: re.Pattern[str]) -> Version | None:
        captured = _capture(pattern, ref.name)
        if captured is None:
            return None
        parsed = parse_version(captured)
        if isinstance(parsed, Err):
            log.debug("%s: skipping ref '%s': %s", self.name, ref.name, parsed.error.message)
            return None
        return parsed.value

    def release_branches(self) -> dict[int, Version]:
        """Base versions of every branch matching the branch pattern."""
        out: dict[int, Version] = {}
        for ref in self.refs:
            if ref.kind != "branch":
                continue
            version = self._parse(ref, self.branch_pattern)
            if version is None:
                continue
            base = version.base_version()
            out[base.version_id] = base
        return dict(sorted(out.items()))

    def tag_versions(self, *, remote_only: bool = False) -> dict[int, Version]:
        """Flat index of every tag matching the tag pattern."""
        out: dict[int, Version] = {}
        for ref in self.refs:
            if ref.kind != "tag":
                continue
            if remote_only and not ref.has_remote:
                continue
            version = self._parse(ref, self.tag_pattern)
            if version is None:
                continue
            if version.patch is None:
                log.debug("%s: skipping tag '%s': no patch component", self.name, ref.name)
                continue
            out[version.version_id] = version
        return dict(sorted(out.items()))

    def tree(self) -> VersionTree:
        tree: VersionTree = {
            vid: BaseVersion(version=v) for vid, v in self.release_branches().items()
        }

        for version in self.tag_versions().values():
            node = tree.get(version.base_version().version_id)
            if node is None:
                log.debug(
                    "%s: dropping tag %s: no release branch for %s",
                    self.name,
                    version,
                    version.base_version(),
                )
                continue
            node.entry_for(version.release_version()).add(version)

        return tree
