"""Workspace detection and paths.

A workspace is a directory holding checkouts of the tracked repositories
next to an ``.arc/`` directory::

    <root>/
        .arc/config.toml     workspace configuration
        .arc/release.json    release bound to this workspace, if any
        s3gw.git/
        s3gw-ui.git/
        charts.git/
        ceph.git/
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .result import Err, Ok, Result

__all__ = [
    "Workspace",
    "WorkspaceError",
    "ENV_VAR",
    "detect_workspace",
    "find_workspace_upward",
    "is_workspace_root",
]

ENV_VAR = "ARC_WORKSPACE"


@dataclass(frozen=True, slots=True)
class WorkspaceError:
    """Error when workspace cannot be detected."""

    message: str
    searched_from: Path | None = None


@dataclass(frozen=True, slots=True)
class Workspace:
    root: Path

    @property
    def config_dir(self) -> Path:
        return self.root / ".arc"

    @property
    def config_path(self) -> Path:
        return self.config_dir / "config.toml"

    @property
    def release_state_path(self) -> Path:
        return self.config_dir / "release.json"

    def repo_dir(self, checkout: str) -> Path:
        return self.root / checkout

    def exists(self) -> bool:
        return self.root.is_dir() and self.config_path.is_file()

    def __str__(self) -> str:
        return str(self.root)


def is_workspace_root(path: Path) -> bool:
    return (path / ".arc" / "config.toml").is_file()


def find_workspace_upward(start: Path) -> Path | None:
    """Search upward from start directory for a workspace root."""
    for parent in (start, *start.parents):
        if is_workspace_root(parent):
            return parent
    return None


def detect_workspace(
    *,
    start_dir: Path | None = None,
    env_var: str = ENV_VAR,
) -> Result[Workspace, WorkspaceError]:
    """Detect the workspace root directory.

    Detection order:
    1. ``ARC_WORKSPACE`` environment variable (if set, it must be valid)
    2. Search upward from start_dir (or cwd) for ``.arc/config.toml``
    """
    env_value = os.environ.get(env_var)
    if env_value:
        env_path = Path(env_value).expanduser().resolve()
        if env_path.is_dir() and is_workspace_root(env_path):
            return Ok(Workspace(root=env_path))
        return Err(
            WorkspaceError(
                message=f"${env_var} is set to '{env_value}' but it is not a valid workspace",
                searched_from=env_path if env_path.is_dir() else None,
            )
        )

    search_start = (start_dir or Path.cwd()).resolve()
    found = find_workspace_upward(search_start)
    if found is None:
        return Err(
            WorkspaceError(
                message="Could not find workspace (.arc/config.toml not found)",
                searched_from=search_start,
            )
        )
    return Ok(Workspace(root=found))
