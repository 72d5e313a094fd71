from __future__ import annotations

import json
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from time import sleep

from arc.core.log import get_logger
from arc.core.result import Err, Ok, Result
from arc.platform.process import ProcessError
from arc.platform.process import run as run_process
from arc.release.errors import ReleaseError, ReleaseErrorKind
from arc.services.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

log = get_logger("gh")

_PR_URL_RE = re.compile(r"/pull/(\d+)\s*$")


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    return any(marker in text for marker in markers)


def run_gh_read(
    *,
    workspace_root: Path,
    cmd: list[str],
    kind: ReleaseErrorKind,
    message: str,
    hint: str | None = None,
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ReleaseError]:
    """Run a read-only ``gh`` command, retrying transient network failures."""
    attempts = max(1, retry_attempts)
    for attempt in range(attempts):
        result = run_process(cmd, cwd=workspace_root, timeout=timeout)
        if isinstance(result, Ok):
            return result

        error = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(error):
            log.debug("gh: transient failure (attempt %d): %s", attempt + 1, error.stderr.strip())
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue

        return Err(ReleaseError(kind=kind, message=message, hint=error.stderr.strip() or hint))

    return Err(ReleaseError(kind=kind, message=message, hint=hint))


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def ensure_gh_auth(*, workspace_root: Path) -> Result[None, ReleaseError]:
    result = run_process(["gh", "auth", "status"], cwd=workspace_root, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="gh_auth_required",
                message="gh auth required",
                hint="Run: gh auth login",
            )
        )
    return Ok(None)


def gh_api_json(*, workspace_root: Path, endpoint: str) -> Result[object, ReleaseError]:
    result = run_gh_read(
        workspace_root=workspace_root,
        cmd=["gh", "api", endpoint],
        kind="ci_unavailable",
        message=f"gh api failed: {endpoint}",
        hint=endpoint,
    )
    if isinstance(result, Err):
        return result

    try:
        obj: object = json.loads(result.value)
    except json.JSONDecodeError as e:
        return Err(
            ReleaseError(
                kind="ci_unavailable",
                message=f"gh api returned invalid JSON: {e}",
                hint=endpoint,
            )
        )
    return Ok(obj)


@dataclass(frozen=True, slots=True)
class PullRequest:
    url: str
    number: int


def create_pull_request(
    *,
    workspace_root: Path,
    repo_slug: str,
    base_branch: str,
    branch: str,
    title: str,
    body: str,
) -> Result[PullRequest, ReleaseError]:
    cmd = [
        "gh",
        "pr",
        "create",
        "--repo",
        repo_slug,
        "--base",
        base_branch,
        "--head",
        branch,
        "--title",
        title,
        "--body",
        body,
    ]
    result = run_process(cmd, cwd=workspace_root, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="pr_failed",
                message=f"failed to create PR in {repo_slug}",
                hint=result.error.stderr.strip() or None,
            )
        )

    url = result.value.strip().splitlines()[-1] if result.value.strip() else ""
    m = _PR_URL_RE.search(url)
    if not url.startswith("https://") or m is None:
        return Err(
            ReleaseError(kind="pr_failed", message="unexpected gh pr create output", hint=url)
        )
    return Ok(PullRequest(url=url, number=int(m.group(1))))


class GhPullRequestProvider:
    """Pull-request provider backed by the ``gh`` CLI."""

    def __init__(self, *, workspace_root: Path) -> None:
        self.workspace_root = workspace_root

    def create_pull_request(
        self, *, repo_slug: str, head: str, base: str, title: str, body: str
    ) -> Result[PullRequest, ReleaseError]:
        available = ensure_gh_available()
        if isinstance(available, Err):
            return available
        return create_pull_request(
            workspace_root=self.workspace_root,
            repo_slug=repo_slug,
            base_branch=base,
            branch=head,
            title=title,
            body=body,
        )
