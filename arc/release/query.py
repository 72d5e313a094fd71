"""Range queries over a repository's versions.

A release ``M.m.p`` owns every version in ``[M.m.p-rc0, M.m.p-rc999]``,
which includes the final ``M.m.p`` (its rc counts as 999).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from arc.release.refs import last_version
from arc.release.version import Version

__all__ = ["ReleaseProgress", "versions_in_range", "classify_release"]


def versions_in_range(versions: Mapping[int, Version], relver: Version) -> dict[int, Version]:
    """Return the versions belonging to ``relver``, ascending by id."""
    lo = relver.min().version_id
    hi = relver.max().version_id
    return {vid: v for vid, v in sorted(versions.items()) if lo <= vid <= hi}


@dataclass(frozen=True, slots=True)
class ReleaseProgress:
    state: Literal["not_started", "in_progress", "finished"]
    latest: Version | None = None

    @property
    def next_rc(self) -> int:
        if self.latest is None or self.latest.rc is None:
            return 1
        return self.latest.rc + 1


def classify_release(versions: Mapping[int, Version], relver: Version) -> ReleaseProgress:
    """Classify ``relver`` from the versions found in its range."""
    in_range = versions_in_range(versions, relver)
    if not in_range:
        return ReleaseProgress(state="not_started")
    if relver.release_version().version_id in in_range:
        return ReleaseProgress(state="finished", latest=relver.release_version())
    return ReleaseProgress(state="in_progress", latest=last_version(in_range))
