"""Persisted release binding.

The workspace remembers which release it is working on in
``.arc/release.json``::

    {"release_version": "0.21.0"}

Everything else (which candidates exist, whether the release finished) is
rebuilt from git on every command.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from arc.core.result import Err, Ok, Result
from arc.core.structured import as_str_dict, get_str
from arc.platform.files import atomic_write_text
from arc.release.errors import ReleaseError
from arc.release.version import Version, parse_version

__all__ = ["ReleaseState", "load_release_state", "save_release_state"]


@dataclass(frozen=True, slots=True)
class ReleaseState:
    release_version: Version

    def to_json(self) -> str:
        return json.dumps({"release_version": str(self.release_version)}, indent=2) + "\n"


def load_release_state(path: Path) -> Result[ReleaseState | None, ReleaseError]:
    """Read the release state; Ok(None) when the workspace has no release."""
    if not path.exists():
        return Ok(None)

    try:
        obj: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        return Err(ReleaseError(kind="state_failed", message=f"failed to read {path}: {e}"))
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind="state_failed", message=f"invalid JSON in {path}: {e}"))

    data = as_str_dict(obj)
    raw = get_str(data, "release_version") if data is not None else None
    if raw is None:
        return Err(
            ReleaseError(kind="state_failed", message=f"{path}: missing 'release_version'")
        )

    parsed = parse_version(raw)
    if isinstance(parsed, Err):
        return Err(ReleaseError(kind="state_failed", message=f"{path}: {parsed.error.message}"))
    version = parsed.value
    if not version.is_final:
        return Err(
            ReleaseError(
                kind="state_failed",
                message=f"{path}: release version must be M.m.p, got {version}",
            )
        )
    return Ok(ReleaseState(release_version=version))


def save_release_state(path: Path, state: ReleaseState) -> Result[None, ReleaseError]:
    try:
        atomic_write_text(path, state.to_json())
    except OSError as e:
        return Err(ReleaseError(kind="state_failed", message=f"failed to write {path}: {e}"))
    return Ok(None)
