"""Release state machine.

A release ``M.m.p`` moves through::

    not started --start--> rc1 --continue--> rc2 ... --finish--> M.m.p

The current state is never stored: it is rebuilt from the superproject's
published tags on every command. Dependents (ui, charts, ceph) are always
tagged and pushed before the superproject is touched, and tagging skips
tags that already point at the branch head, so re-running a command after
a partial failure picks up where it stopped.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from arc.core.log import get_logger
from arc.core.result import Err, Ok, Result
from arc.core.workspace import Workspace
from arc.git.repository import ProgressCallback
from arc.output.console import ConsoleProtocol, Style
from arc.release.errors import GATE_KINDS, ReleaseError
from arc.release.query import classify_release, versions_in_range
from arc.release.refs import last_version
from arc.release.version import Version
from arc.services.release.charts import publish_chart, update_chart_version
from arc.services.release.ci import CiStatusProvider
from arc.services.release.gh import PullRequest
from arc.services.release.notes import install_release_notes
from arc.services.release.pr import PullRequestProvider, open_finishing_pr
from arc.services.release.state import (
    ReleaseState,
    load_release_state,
    save_release_state,
)
from arc.services.release.submodules import SubmoduleInfo, pin_submodules, submodule_set
from arc.services.repos import Repository, ReposTable, git_failure

__all__ = ["ReleaseOrchestrator", "FinishOutcome", "require_release_version"]

log = get_logger("release")

Confirm = Callable[[str], bool]


@dataclass(frozen=True, slots=True)
class FinishOutcome:
    version: Version
    final_branch: str
    pull_request: PullRequest


def require_release_version(version: Version) -> Result[Version, ReleaseError]:
    """Releases are named ``M.m.p``: no base versions, no candidates."""
    if version.patch is None or version.rc is not None:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"expected a release version (M.m.p), got {version}",
            )
        )
    return Ok(version)


class ReleaseOrchestrator:
    """Drives start / continue / finish across the tracked repositories."""

    def __init__(
        self,
        *,
        workspace: Workspace,
        repos: ReposTable,
        console: ConsoleProtocol,
        ci: CiStatusProvider,
        pr: PullRequestProvider,
        confirm: Confirm,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.workspace = workspace
        self.repos = repos
        self.console = console
        self.ci = ci
        self.pr = pr
        self.confirm = confirm
        self.on_progress = on_progress

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def release_versions(self, relver: Version) -> Result[dict[int, Version], ReleaseError]:
        """Published superproject versions belonging to ``relver``."""
        return self.repo_release_versions(self.repos.s3gw, relver)

    def repo_release_versions(
        self, repo: Repository, relver: Version
    ) -> Result[dict[int, Version], ReleaseError]:
        versions = repo.versions()
        if isinstance(versions, Err):
            return versions
        return Ok(versions_in_range(versions.value, relver))

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    def _progress(self, phase: str, done: int, total: int) -> None:
        if self.on_progress is not None:
            self.on_progress(phase, done, total)

    def sync(self) -> Result[None, ReleaseError]:
        """Fetch every repository."""
        repos = list(self.repos)
        for i, repo in enumerate(repos):
            self._progress("sync", i, len(repos))
            if not repo.git.exists():
                return Err(
                    ReleaseError(
                        kind="sync_failed",
                        message=f"checkout missing at {repo.git.path}",
                        hint="run: arc ws sync",
                        repo=repo.name,
                    )
                )
            updated = repo.update()
            if isinstance(updated, Err):
                return updated
        self._progress("sync", len(repos), len(repos))
        return Ok(None)

    def sync_release(self, relver: Version) -> Result[None, ReleaseError]:
        """Fetch every repository and check out ``relver``'s release branch."""
        synced = self.sync()
        if isinstance(synced, Err):
            return synced
        for repo in self.repos:
            checked = repo.checkout_release_branch(relver)
            if isinstance(checked, Err):
                return checked
            self.console.print(f"{repo.name}: on {checked.value}", Style.DIM)
        return Ok(None)

    # -------------------------------------------------------------------------
    # Init
    # -------------------------------------------------------------------------

    def init(self, version: Version) -> Result[ReleaseState, ReleaseError]:
        """Bind the workspace to ``version`` without starting anything."""
        valid = require_release_version(version)
        if isinstance(valid, Err):
            return valid

        existing = load_release_state(self.workspace.release_state_path)
        if isinstance(existing, Err):
            return existing
        if existing.value is not None:
            return Err(
                ReleaseError(
                    kind="already_init",
                    message=f"workspace already bound to release {existing.value.release_version}",
                    hint=f"remove {self.workspace.release_state_path} to start over",
                )
            )

        versions = self.release_versions(version)
        if isinstance(versions, Err):
            return versions
        if version.version_id in versions.value:
            if not self.confirm(f"Release {version} already exists. Continue anyway?"):
                return Err(ReleaseError(kind="aborted", message="aborted by user"))

        state = ReleaseState(release_version=version)
        saved = save_release_state(self.workspace.release_state_path, state)
        if isinstance(saved, Err):
            return saved
        return Ok(state)

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    def start(self, version: Version, *, notes: Path) -> Result[Version, ReleaseError]:
        """Cut release branches and produce ``version-rc1``."""
        valid = require_release_version(version)
        if isinstance(valid, Err):
            return valid
        if not notes.is_file():
            return Err(ReleaseError(kind="invalid_input", message=f"release notes not found: {notes}"))

        synced = self.sync()
        if isinstance(synced, Err):
            return synced

        versions = self.repos.s3gw.versions()
        if isinstance(versions, Err):
            return versions
        progress = classify_release(versions.value, version)
        if progress.state == "finished":
            return Err(
                ReleaseError(kind="release_exists", message=f"release {version} already exists")
            )
        if progress.state == "in_progress":
            return Err(
                ReleaseError(
                    kind="release_started",
                    message=f"release {version} already started (at {progress.latest})",
                    hint=f"run: arc rel continue {version}",
                )
            )

        for repo in self.repos.submodules:
            dep = self.repo_release_versions(repo, version)
            if isinstance(dep, Err):
                return dep
            if dep.value:
                return Err(
                    ReleaseError(
                        kind="corrupted",
                        message=(
                            f"has versions of {version} "
                            f"({', '.join(str(v) for v in dep.value.values())}) "
                            "but s3gw has none"
                        ),
                        repo=repo.name,
                    )
                )

        cut = self.cut_branches(version)
        if isinstance(cut, Err):
            return cut

        saved = save_release_state(
            self.workspace.release_state_path, ReleaseState(release_version=version)
        )
        if isinstance(saved, Err):
            return saved

        synced = self.sync_release(version)
        if isinstance(synced, Err):
            return synced

        produced = self.start_release_candidate(version, notes)
        if isinstance(produced, Err):
            return produced
        if produced.value.rc != 1:
            return Err(
                ReleaseError(
                    kind="corrupted",
                    message=f"expected {version}-rc1, produced {produced.value}",
                )
            )
        return produced

    def cut_branches(self, version: Version) -> Result[None, ReleaseError]:
        """Create ``version``'s release branch wherever it is missing.

        Either every repository has the branch or none does; anything in
        between means someone cut branches by hand.
        """
        base = version.base_version()
        missing: list[Repository] = []
        for repo in self.repos:
            branches = repo.release_branches()
            if isinstance(branches, Err):
                return branches
            if base.version_id not in branches.value:
                missing.append(repo)

        if not missing:
            self.console.info("Release branches already exist.")
            return Ok(None)

        total = len(list(self.repos))
        if len(missing) != total:
            return Err(
                ReleaseError(
                    kind="corrupted",
                    message=(
                        f"release branch for {base} missing in "
                        f"{', '.join(r.name for r in missing)} only"
                    ),
                )
            )

        if not self.confirm(f"Create release branches for {base}?"):
            return Err(ReleaseError(kind="aborted", message="branch creation aborted by user"))

        for repo in missing:
            branch = repo.branch_from_default(version)
            if isinstance(branch, Err):
                return branch
            self.console.success(f"{repo.name}: created {branch.value}")
        return Ok(None)

    # -------------------------------------------------------------------------
    # Continue
    # -------------------------------------------------------------------------

    def continue_release(
        self, version: Version, *, notes: Path | None = None, force: bool = False
    ) -> Result[Version, ReleaseError]:
        """Produce the next release candidate of a started release."""
        valid = require_release_version(version)
        if isinstance(valid, Err):
            return valid
        if notes is not None and not notes.is_file():
            return Err(ReleaseError(kind="invalid_input", message=f"release notes not found: {notes}"))

        synced = self.sync()
        if isinstance(synced, Err):
            return synced

        gate = self.check_can_release(version, force=force)
        if isinstance(gate, Err):
            return gate

        synced = self.sync_release(version)
        if isinstance(synced, Err):
            return synced

        return self.start_release_candidate(version, notes)

    def check_can_release(self, version: Version, *, force: bool) -> Result[Version, ReleaseError]:
        """Validation gate before producing anything on top of a candidate.

        Returns the highest existing candidate. The CI outcomes (no build,
        build running, build failed) block unless ``force`` is set.
        """
        versions = self.release_versions(version)
        if isinstance(versions, Err):
            return versions
        if not versions.value:
            return Err(
                ReleaseError(
                    kind="not_started",
                    message=f"release {version} has not been started",
                    hint=f"run: arc rel start {version} --notes <file>",
                )
            )
        if version.version_id in versions.value:
            return Err(
                ReleaseError(kind="release_exists", message=f"release {version} already exists")
            )

        latest = last_version(versions.value)
        if latest is None:
            return Err(
                ReleaseError(kind="not_started", message=f"release {version} has not been started")
            )
        gate = self._ci_gate(latest)
        if isinstance(gate, Err):
            if not force or gate.error.kind not in GATE_KINDS:
                return gate
            self.console.warning(f"{gate.error.message} (forced)")
            log.warning("CI gate overridden for %s: %s", latest, gate.error.kind)
        return Ok(latest)

    def _ci_gate(self, latest: Version) -> Result[None, ReleaseError]:
        s3gw = self.repos.s3gw
        tag = s3gw.tag_name(latest)
        if isinstance(tag, Err):
            return tag

        github = s3gw.config.github
        if github is None:
            return Err(
                ReleaseError(
                    kind="build_not_found",
                    message=f"cannot check release build for {tag.value}: no GitHub coordinates",
                    hint="set github_org and github_repo in [git.s3gw]",
                    repo=s3gw.name,
                )
            )

        run = self.ci.latest_release_workflow(org=github.org, repo=github.repo, tag=tag.value)
        if isinstance(run, Err):
            return run

        status = run.value
        if status is None:
            return Err(
                ReleaseError(
                    kind="build_not_found",
                    message=f"no release build found for {tag.value}",
                    repo=s3gw.name,
                )
            )
        if status.is_waiting:
            return Err(
                ReleaseError(
                    kind="build_ongoing",
                    message=f"release build for {tag.value} is {status.status}",
                    hint=status.url or None,
                    repo=s3gw.name,
                )
            )
        if status.is_failed:
            return Err(
                ReleaseError(
                    kind="build_failed",
                    message=f"release build for {tag.value} {status.conclusion or 'failed'}",
                    hint=status.url or None,
                    repo=s3gw.name,
                )
            )
        return Ok(None)

    def start_release_candidate(
        self, version: Version, notes: Path | None
    ) -> Result[Version, ReleaseError]:
        versions = self.release_versions(version)
        if isinstance(versions, Err):
            return versions

        latest = last_version(versions.value)
        if latest is None:
            next_ver = version.with_rc(1)
        elif latest.rc is None:
            return Err(
                ReleaseError(
                    kind="already_final",
                    message=f"highest version {latest} is already final",
                )
            )
        else:
            next_ver = version.with_rc(latest.rc + 1)

        self.console.header(f"Release candidate {next_ver}")
        performed = self.perform_release(version, next_ver, notes)
        if isinstance(performed, Err):
            return performed
        self.console.success(f"released {next_ver}")
        return Ok(next_ver)

    # -------------------------------------------------------------------------
    # Perform
    # -------------------------------------------------------------------------

    def perform_release(
        self, relver: Version, next_ver: Version, notes: Path | None
    ) -> Result[None, ReleaseError]:
        """Tag and push the dependents, then pin, commit, tag and push s3gw."""
        subs = submodule_set(self.repos)

        self.console.info("Tagging repositories...")
        pins: list[tuple[SubmoduleInfo, str]] = []
        for i, entry in enumerate(subs):
            self._progress("tagging", i, len(subs))
            tagged = entry.repo.tag_release(relver, next_ver)
            if isinstance(tagged, Err):
                return tagged
            outcome = tagged.value
            note = "tagged" if outcome.created else "already tagged"
            self.console.print(f"{entry.repo.name}: {note} {outcome.name}", Style.DIM)
            pins.append((entry, outcome.name))

        self.console.info("Pushing repositories...")
        for i, (entry, tag) in enumerate(pins):
            self._progress("pushing", i, len(pins))
            branch = entry.repo.branch_name(relver)
            if isinstance(branch, Err):
                return branch
            pushed = entry.repo.push_branch(branch.value)
            if isinstance(pushed, Err):
                return pushed
            if not entry.push_rc_tags and next_ver.rc is not None:
                continue
            pushed = entry.repo.push_tag(tag)
            if isinstance(pushed, Err):
                return pushed

        return self._release_superproject(relver, next_ver, notes, pins)

    def _release_superproject(
        self,
        relver: Version,
        next_ver: Version,
        notes: Path | None,
        pins: list[tuple[SubmoduleInfo, str]],
    ) -> Result[None, ReleaseError]:
        s3gw = self.repos.s3gw
        branch = s3gw.branch_name(relver)
        if isinstance(branch, Err):
            return branch
        tag = s3gw.tag_name(next_ver)
        if isinstance(tag, Err):
            return tag

        head = s3gw.git.resolve(f"refs/heads/{branch.value}")
        existing = s3gw.git.resolve(f"refs/tags/{tag.value}")
        if existing is not None and existing != head:
            return Err(
                ReleaseError(
                    kind="tag_conflict",
                    message=f"tag {tag.value} exists but is not at the tip of {branch.value}",
                    repo=s3gw.name,
                )
            )

        if existing is None:
            self.console.info("Updating submodules...")
            paths = pin_submodules(s3gw, pins)
            if isinstance(paths, Err):
                return paths
            to_stage = list(paths.value)

            if notes is not None:
                installed = install_release_notes(s3gw.git.path, notes, next_ver)
                if isinstance(installed, Err):
                    return installed
                to_stage += installed.value

            self.console.info("Finalizing release...")
            staged = s3gw.git.stage(to_stage)
            if isinstance(staged, Err):
                return Err(git_failure(s3gw.name, "staging release", staged.error))
            committed = s3gw.git.commit(f"Release v{next_ver}", allow_empty=True)
            if isinstance(committed, Err):
                return Err(git_failure(s3gw.name, "committing release", committed.error))
            tagged = s3gw.tag_release(relver, next_ver)
            if isinstance(tagged, Err):
                return tagged
        else:
            self.console.print(f"{s3gw.name}: {tag.value} already committed", Style.DIM)

        pushed = s3gw.push_branch(branch.value)
        if isinstance(pushed, Err):
            return pushed
        return s3gw.push_tag(tag.value)

    # -------------------------------------------------------------------------
    # Finish
    # -------------------------------------------------------------------------

    def finish(self, version: Version, *, force: bool = False) -> Result[FinishOutcome, ReleaseError]:
        """Turn the highest candidate into the final release and publish it.

        When the final superproject tag is already published, a previous
        run got past tagging; only the chart publish and the pull request
        are redone.
        """
        valid = require_release_version(version)
        if isinstance(valid, Err):
            return valid

        synced = self.sync()
        if isinstance(synced, Err):
            return synced

        versions = self.release_versions(version)
        if isinstance(versions, Err):
            return versions
        if version.version_id in versions.value:
            self.console.info(f"Release {version} already tagged, resuming publishing")
            log.info("resuming finish of %s after tagging", version)
            synced = self.sync_release(version)
            if isinstance(synced, Err):
                return synced
            return self._publish(version)

        gate = self.check_can_release(version, force=force)
        if isinstance(gate, Err):
            return gate
        self.console.info(f"Finishing {version} from {gate.value}")

        synced = self.sync_release(version)
        if isinstance(synced, Err):
            return synced

        charts = self.repos.get("charts")
        self.console.info("Updating charts...")
        bumped = update_chart_version(charts, version, console=self.console)
        if isinstance(bumped, Err):
            return bumped

        self.console.header(f"Release {version}")
        performed = self.perform_release(version, version, None)
        if isinstance(performed, Err):
            return performed

        return self._publish(version)

    def _publish(self, version: Version) -> Result[FinishOutcome, ReleaseError]:
        charts = self.repos.get("charts")
        self.console.info("Publishing charts...")
        published = publish_chart(charts, version, console=self.console)
        if isinstance(published, Err):
            return published

        self.console.info("Opening release pull request...")
        pr = open_finishing_pr(self.repos.s3gw, version, provider=self.pr, console=self.console)
        if isinstance(pr, Err):
            return pr

        self.console.success(f"released {version}: {pr.value.url}")
        return Ok(FinishOutcome(version=version, final_branch=published.value, pull_request=pr.value))
