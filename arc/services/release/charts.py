"""Helm chart version bump and publishing.

The chart's ``version:`` line is the only thing rewritten; every other
byte of ``Chart.yaml`` (comments, ordering, line endings) is kept.
Publishing is a push of the release branch to the chart repository's
final branch, which triggers its publishing workflow.
"""

from __future__ import annotations

import re
from pathlib import Path

from arc.core.result import Err, Ok, Result
from arc.git.repository import READWRITE_REMOTE
from arc.output.console import ConsoleProtocol, Style
from arc.platform.files import atomic_write_text
from arc.release.errors import ReleaseError
from arc.release.version import Version, parse_version
from arc.services.repos import Repository, git_failure

__all__ = ["CHART_PATH", "rewrite_chart_version", "update_chart_version", "publish_chart"]

CHART_PATH = "charts/s3gw/Chart.yaml"

_VERSION_LINE_RE = re.compile(r"^version:[ ]+(.*)$")


def rewrite_chart_version(text: str, version: Version) -> Result[str, ReleaseError]:
    """Replace the value of the top-level ``version:`` key with ``version``."""
    lines = text.splitlines(keepends=True)
    for i, line in enumerate(lines):
        body = line.rstrip("\r\n")
        m = _VERSION_LINE_RE.match(body)
        if m is None:
            continue

        current = m.group(1).strip().strip("\"'")
        parsed = parse_version(current)
        if isinstance(parsed, Err):
            return Err(
                ReleaseError(
                    kind="charts_failed",
                    message=f"chart version {current!r} is not a version",
                    hint=CHART_PATH,
                )
            )
        lines[i] = f"version: {version}" + line[len(body) :]
        return Ok("".join(lines))

    return Err(
        ReleaseError(kind="charts_failed", message="no 'version:' line in chart", hint=CHART_PATH)
    )


def update_chart_version(
    repo: Repository, version: Version, *, console: ConsoleProtocol
) -> Result[bool, ReleaseError]:
    """Bump the chart to ``version`` and commit. Ok(False) if already there."""
    path: Path = repo.git.path / CHART_PATH
    try:
        original = path.read_bytes().decode("utf-8")
    except FileNotFoundError:
        return Err(
            ReleaseError(
                kind="charts_failed", message=f"{CHART_PATH} does not exist", repo=repo.name
            )
        )
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            ReleaseError(kind="charts_failed", message=f"failed to read {CHART_PATH}: {e}", repo=repo.name)
        )

    updated = rewrite_chart_version(original, version)
    if isinstance(updated, Err):
        return Err(
            ReleaseError(
                kind=updated.error.kind,
                message=updated.error.message,
                hint=updated.error.hint,
                repo=repo.name,
            )
        )
    if updated.value == original:
        console.print(f"{repo.name}: chart already at {version}", Style.DIM)
        return Ok(False)

    try:
        atomic_write_text(path, updated.value)
    except OSError as e:
        return Err(
            ReleaseError(kind="charts_failed", message=f"failed to write {CHART_PATH}: {e}", repo=repo.name)
        )

    staged = repo.git.stage([CHART_PATH])
    if isinstance(staged, Err):
        return Err(git_failure(repo.name, "staging chart", staged.error, kind="charts_failed"))

    committed = repo.git.commit(f"Update charts to version {version}")
    if isinstance(committed, Err):
        return Err(git_failure(repo.name, "committing chart", committed.error, kind="charts_failed"))

    console.print(f"{repo.name}: chart version set to {version}", Style.DIM)
    return Ok(True)


def publish_chart(
    repo: Repository, version: Version, *, console: ConsoleProtocol
) -> Result[str, ReleaseError]:
    """Push the release branch to the final branch; returns the final branch name."""
    dst = repo.final_branch_name(version)
    if isinstance(dst, Err):
        return dst
    src = repo.branch_name(version)
    if isinstance(src, Err):
        return src

    refspec = f"refs/heads/{src.value}:refs/heads/{dst.value}"
    console.print(f"git push {READWRITE_REMOTE} {refspec}", Style.DIM)
    pushed = repo.git.push(READWRITE_REMOTE, refspec)
    if isinstance(pushed, Err):
        return Err(git_failure(repo.name, f"publishing {src.value} to {dst.value}", pushed.error))

    console.info("To finish the Helm chart release:")
    console.print("  1. cherry-pick the topmost commit to a new branch", Style.DIM)
    console.print(f"  2. open a pull request against {repo.name}'s main branch", Style.DIM)
    console.print("  3. ask for a review and merge it", Style.DIM)
    return Ok(dst.value)
