"""Error payload shared by every release operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

__all__ = ["ReleaseError", "ReleaseErrorKind", "GATE_KINDS"]

ReleaseErrorKind = Literal[
    # preconditions
    "invalid_input",
    "already_init",
    "release_exists",
    "release_started",
    "not_started",
    "already_final",
    "aborted",
    # consistency
    "corrupted",
    "tag_conflict",
    # CI gate (overridable with --force)
    "build_not_found",
    "build_ongoing",
    "build_failed",
    # external systems
    "git_failed",
    "sync_failed",
    "ci_unavailable",
    "pr_failed",
    "registry_failed",
    "gh_missing",
    "gh_auth_required",
    # local files
    "charts_failed",
    "notes_failed",
    "state_failed",
]

GATE_KINDS: frozenset[str] = frozenset({"build_not_found", "build_ongoing", "build_failed"})


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """A failed release step.

    Attributes:
        kind: Stable error category, mapped to an exit code by the CLI
        message: What failed, naming the operation
        hint: Remote stderr or a suggested next command
        repo: Repository the failure happened in, if any
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
    repo: str | None = None

    def pretty(self) -> str:
        text = f"{self.repo}: {self.message}" if self.repo else self.message
        if self.hint:
            return f"{text} (hint: {self.hint})"
        return text
