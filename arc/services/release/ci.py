"""Release workflow status on GitHub Actions.

Every pushed superproject tag triggers the ``Release S3GW`` workflow,
which builds and publishes the container images. A candidate is only
followed by the next one once that workflow succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from arc.core.result import Err, Ok, Result
from arc.core.structured import as_obj_list, as_str_dict, get_int, get_list, get_str
from arc.release.errors import ReleaseError
from arc.services.release.gh import gh_api_json

__all__ = [
    "RELEASE_WORKFLOW_NAME",
    "WorkflowStatus",
    "CiStatusProvider",
    "GhCiStatusProvider",
    "parse_workflow_runs",
    "latest_release_run",
    "format_duration",
]

RELEASE_WORKFLOW_NAME = "release s3gw"


@dataclass(frozen=True, slots=True)
class WorkflowStatus:
    name: str
    status: str
    conclusion: str | None
    created_at: datetime
    started_at: datetime
    updated_at: datetime
    attempt: int = 1
    url: str = ""

    @property
    def is_waiting(self) -> bool:
        return self.status in {"queued", "in_progress", "waiting", "pending", "requested"}

    @property
    def is_failed(self) -> bool:
        return self.status == "completed" and self.conclusion != "success"

    @property
    def is_success(self) -> bool:
        return self.status == "completed" and self.conclusion == "success"

    def duration(self, now: datetime) -> timedelta:
        if self.status == "in_progress":
            return now - self.started_at
        if self.status == "queued":
            return now - self.created_at
        return self.updated_at - self.started_at


class CiStatusProvider(Protocol):
    def latest_release_workflow(
        self, *, org: str, repo: str, tag: str
    ) -> Result[WorkflowStatus | None, ReleaseError]: ...


def _parse_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_workflow_runs(obj: object) -> Result[list[WorkflowStatus], ReleaseError]:
    """Parse a ``GET /repos/{o}/{r}/actions/runs`` payload."""
    data = as_str_dict(obj)
    runs = as_obj_list(get_list(data, "workflow_runs")) if data is not None else None
    if runs is None:
        return Err(ReleaseError(kind="ci_unavailable", message="unexpected workflow runs payload"))

    out: list[WorkflowStatus] = []
    for run_obj in runs:
        run = as_str_dict(run_obj)
        if run is None:
            continue
        name = get_str(run, "name")
        status = get_str(run, "status")
        created = _parse_time(get_str(run, "created_at"))
        started = _parse_time(get_str(run, "run_started_at")) or created
        updated = _parse_time(get_str(run, "updated_at")) or started
        if name is None or status is None or created is None or started is None or updated is None:
            continue
        out.append(
            WorkflowStatus(
                name=name,
                status=status,
                conclusion=get_str(run, "conclusion"),
                created_at=created,
                started_at=started,
                updated_at=updated,
                attempt=get_int(run, "run_attempt") or 1,
                url=get_str(run, "html_url") or "",
            )
        )
    return Ok(out)


def latest_release_run(runs: list[WorkflowStatus]) -> WorkflowStatus | None:
    """The most recently started run of the release workflow."""
    matching = [r for r in runs if r.name.lower() == RELEASE_WORKFLOW_NAME]
    if not matching:
        return None
    return max(matching, key=lambda r: r.started_at)


class GhCiStatusProvider:
    """CI status provider backed by ``gh api``."""

    def __init__(self, *, workspace_root: Path) -> None:
        self.workspace_root = workspace_root

    def latest_release_workflow(
        self, *, org: str, repo: str, tag: str
    ) -> Result[WorkflowStatus | None, ReleaseError]:
        endpoint = f"repos/{org}/{repo}/actions/runs?branch={quote(tag, safe='')}&per_page=50"
        obj = gh_api_json(workspace_root=self.workspace_root, endpoint=endpoint)
        if isinstance(obj, Err):
            return obj
        runs = parse_workflow_runs(obj.value)
        if isinstance(runs, Err):
            return runs
        return Ok(latest_release_run(runs.value))


def format_duration(delta: timedelta) -> str:
    """Render ``1d 2h 3m 4s``, leaving out zero parts."""
    total = max(0, int(delta.total_seconds()))
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, seconds = divmod(rem, 60)
    parts = [
        f"{value}{unit}"
        for value, unit in ((days, "d"), (hours, "h"), (minutes, "m"), (seconds, "s"))
        if value > 0
    ]
    return " ".join(parts) or "0s"
