"""Read-only release views: status, version table and announcement."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from arc.core.config import RegistryConfig
from arc.core.result import Err, Ok, Result
from arc.release.errors import ReleaseError
from arc.release.query import versions_in_range
from arc.release.refs import VersionTree
from arc.release.version import Version
from arc.services.release.ci import CiStatusProvider, WorkflowStatus, format_duration
from arc.services.release.registry import RegistryProvider, image_tag
from arc.services.repos import ReposTable

__all__ = [
    "STATUS_COLUMNS",
    "VersionStatus",
    "collect_status",
    "status_rows",
    "version_table",
    "render_announcement",
]

STATUS_COLUMNS = ["tag", "status", "conclusion", "duration", "images"]


@dataclass(frozen=True, slots=True)
class VersionStatus:
    version: Version
    tag: str
    workflow: WorkflowStatus | None = None
    images: dict[str, bool] | None = None


def collect_status(
    repos: ReposTable,
    relver: Version,
    *,
    ci: CiStatusProvider | None = None,
    registry: RegistryProvider | None = None,
    images: RegistryConfig | None = None,
) -> Result[list[VersionStatus], ReleaseError]:
    """Versions of ``relver`` in the superproject, with CI and image details.

    Without a CI provider (or without GitHub coordinates) only the versions
    are listed; without a registry provider images are not checked.
    """
    s3gw = repos.s3gw
    versions = s3gw.versions()
    if isinstance(versions, Err):
        return versions

    github = s3gw.config.github
    out: list[VersionStatus] = []
    for version in versions_in_range(versions.value, relver).values():
        tag = s3gw.tag_name(version)
        if isinstance(tag, Err):
            return tag

        workflow: WorkflowStatus | None = None
        if ci is not None and github is not None:
            run = ci.latest_release_workflow(org=github.org, repo=github.repo, tag=tag.value)
            if isinstance(run, Err):
                return run
            workflow = run.value

        found: dict[str, bool] | None = None
        if registry is not None and images is not None:
            found = {}
            for image in (images.s3gw, images.ui):
                exists = registry.tag_exists(image, image_tag(version))
                if isinstance(exists, Err):
                    return exists
                found[image] = exists.value

        out.append(VersionStatus(version=version, tag=tag.value, workflow=workflow, images=found))
    return Ok(out)


def status_rows(statuses: list[VersionStatus], *, now: datetime) -> list[list[str]]:
    """Table rows matching ``STATUS_COLUMNS``."""
    rows: list[list[str]] = []
    for st in statuses:
        run = st.workflow
        if run is None:
            status, conclusion, duration = "-", "-", "-"
        else:
            status = run.status
            conclusion = run.conclusion or "-"
            duration = format_duration(run.duration(now))

        if st.images is None:
            images = "-"
        elif all(st.images.values()):
            images = "published"
        else:
            missing = [name.rsplit("/", 1)[-1] for name, ok in st.images.items() if not ok]
            images = f"missing: {', '.join(missing)}"

        rows.append([st.tag, status, conclusion, duration, images])
    return rows


def version_table(repos: ReposTable) -> Result[tuple[list[str], list[list[str]]], ReleaseError]:
    """Every tagged version across all repositories, one row per version.

    The first column is the base version; each repository column holds the
    version if that repository carries the tag and ``-`` otherwise.
    """
    names = [repo.name for repo in repos]
    trees: list[VersionTree] = []
    for repo in repos:
        tree = repo.version_tree()
        if isinstance(tree, Err):
            return tree
        trees.append(tree.value)

    # base id -> version id -> (version, repo columns carrying it)
    merged: dict[int, tuple[Version, dict[int, tuple[Version, set[int]]]]] = {}
    for col, tree in enumerate(trees):
        for base_id, base in tree.items():
            _, by_tag = merged.setdefault(base_id, (base.version, {}))
            for entry in base.releases.values():
                for vid, version in entry.versions.items():
                    _, cols = by_tag.setdefault(vid, (version, set()))
                    cols.add(col)

    rows: list[list[str]] = []
    for base_id in sorted(merged):
        base, by_tag = merged[base_id]
        for vid in sorted(by_tag):
            version, cols = by_tag[vid]
            rows.append([str(base)] + [str(version) if i in cols else "-" for i in range(len(names))])
    return Ok((["release", *names], rows))


_ANNOUNCEMENT = """\
The s3gw team is {mood} to announce the release of S3 Gateway v{version}!
This release includes a few exciting changes, most notably:

{changelog}

Get the container images from:

    {s3gw_image}:v{version}
    {ui_image}:v{version}

or through our Helm Chart at https://artifacthub.io/packages/helm/s3gw/s3gw/{version}

For more information, check our changelog at

    https://s3gw-docs.readthedocs.io/en/main/release-notes/s3gw-v{version}/
"""


def render_announcement(
    version: Version,
    *,
    changelog: str = "things that changed",
    images: RegistryConfig | None = None,
    mood: str = "excited",
) -> str:
    registry = images or RegistryConfig()
    return _ANNOUNCEMENT.format(
        mood=mood,
        version=version,
        changelog=changelog.strip(),
        s3gw_image=registry.s3gw,
        ui_image=registry.ui,
    )
