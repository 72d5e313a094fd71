"""Typed workspace configuration.

The workspace keeps its configuration in ``.arc/config.toml``::

    [user]
    name = "Jane Doe"
    email = "jane@example.com"
    signing_key = "ABCDEF0123456789"

    [git.s3gw]
    readonly = "https://github.com/aquarist-labs/s3gw.git"
    readwrite = "git@github.com:aquarist-labs/s3gw.git"
    tag_pattern = '^v(\\d+\\.\\d+\\.\\d+.*)$'
    branch_pattern = '^s3gw-v(\\d+\\.\\d+)$'
    tag_format = "v{{major}}.{{minor}}.{{patch}}"
    branch_format = "s3gw-v{{major}}.{{minor}}"
    github_org = "aquarist-labs"
    github_repo = "s3gw"

    [registry]
    s3gw = "quay.io/s3gw/s3gw"
    ui = "quay.io/s3gw/s3gw-ui"

Any ``[git.<id>]`` table or key that is missing falls back to the
aquarist-labs defaults. Patterns and formats are compiled here, so a bad
template fails at load time rather than halfway through a release.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from arc.release.version import VersionField, VersionFormat, compile_format

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_table

__all__ = [
    "ConfigError",
    "UserConfig",
    "GitHubRepo",
    "RepoConfig",
    "RegistryConfig",
    "WorkspaceConfig",
    "REPO_IDS",
    "DEFAULT_REPOS",
    "default_config",
    "load_config",
    "render_config",
]

REPO_IDS: tuple[str, ...] = ("s3gw", "ui", "charts", "ceph")

_BRANCH_FIELDS: tuple[VersionField, ...] = ("major", "minor")
_TAG_FIELDS: tuple[VersionField, ...] = ("major", "minor", "patch")

_GH = "aquarist-labs"

DEFAULT_REPOS: dict[str, dict[str, str]] = {
    "s3gw": {
        "readonly": f"https://github.com/{_GH}/s3gw.git",
        "readwrite": f"git@github.com:{_GH}/s3gw.git",
        "tag_pattern": r"^v(\d+\.\d+\.\d+.*)$",
        "branch_pattern": r"^s3gw-v(\d+\.\d+)$",
        "tag_format": "v{{major}}.{{minor}}.{{patch}}",
        "branch_format": "s3gw-v{{major}}.{{minor}}",
        "github_org": _GH,
        "github_repo": "s3gw",
    },
    "ui": {
        "readonly": f"https://github.com/{_GH}/s3gw-ui.git",
        "readwrite": f"git@github.com:{_GH}/s3gw-ui.git",
        "tag_pattern": r"^s3gw-v(\d+\.\d+\.\d+.*)$",
        "branch_pattern": r"^s3gw-v(\d+\.\d+)$",
        "tag_format": "s3gw-v{{major}}.{{minor}}.{{patch}}",
        "branch_format": "s3gw-v{{major}}.{{minor}}",
    },
    "charts": {
        "readonly": f"https://github.com/{_GH}/s3gw-charts.git",
        "readwrite": f"git@github.com:{_GH}/s3gw-charts.git",
        "tag_pattern": r"^s3gw-v(\d+\.\d+\.\d+.*)$",
        "branch_pattern": r"^v(\d+\.\d+)$",
        "tag_format": "s3gw-v{{major}}.{{minor}}.{{patch}}",
        "branch_format": "v{{major}}.{{minor}}",
        "final_branch_format": "release-v{{major}}.{{minor}}.{{patch}}",
    },
    "ceph": {
        "readonly": f"https://github.com/{_GH}/ceph.git",
        "readwrite": f"git@github.com:{_GH}/ceph.git",
        "tag_pattern": r"^s3gw-v(\d+\.\d+\.\d+.*)$",
        "branch_pattern": r"^s3gw-v(\d+\.\d+)$",
        "tag_format": "s3gw-v{{major}}.{{minor}}.{{patch}}",
        "branch_format": "s3gw-v{{major}}.{{minor}}",
    },
}

DEFAULT_REGISTRY_S3GW = "quay.io/s3gw/s3gw"
DEFAULT_REGISTRY_UI = "quay.io/s3gw/s3gw-ui"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class UserConfig:
    name: str = ""
    email: str = ""
    signing_key: str = ""


@dataclass(frozen=True, slots=True)
class GitHubRepo:
    org: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.org}/{self.repo}"


@dataclass(frozen=True, slots=True)
class RepoConfig:
    """Remotes and naming rules for one tracked repository.

    Attributes:
        readonly: URL fetched from (remote ``ro``)
        readwrite: URL pushed to (remote ``rw``)
        tag_pattern: First group captures ``M.m.p[-rcN]``
        branch_pattern: First group captures ``M.m``
        tag_format: Renders a release tag, without the ``-rcN`` suffix
        branch_format: Renders a release branch from a base version
        final_branch_format: Renders the publishing branch (charts only)
        github: GitHub coordinates, used for CI status and pull requests
    """

    readonly: str
    readwrite: str
    tag_pattern: re.Pattern[str]
    branch_pattern: re.Pattern[str]
    tag_format: VersionFormat
    branch_format: VersionFormat
    final_branch_format: VersionFormat | None = None
    github: GitHubRepo | None = None


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    s3gw: str = DEFAULT_REGISTRY_S3GW
    ui: str = DEFAULT_REGISTRY_UI


@dataclass(frozen=True, slots=True)
class WorkspaceConfig:
    user: UserConfig
    repos: Mapping[str, RepoConfig]
    registry: RegistryConfig = field(default_factory=RegistryConfig)

    def repo(self, repo_id: str) -> RepoConfig:
        return self.repos[repo_id]

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Result[WorkspaceConfig, ConfigError]:
        """Create a config from parsed TOML, filling defaults and compiling rules."""
        user: StrDict = get_table(data, "user") or {}
        git: StrDict = get_table(data, "git") or {}
        registry: StrDict = get_table(data, "registry") or {}

        unknown = sorted(set(git) - set(REPO_IDS))
        if unknown:
            return Err(ConfigError(f"unknown repositories in [git]: {', '.join(unknown)}"))

        repos: dict[str, RepoConfig] = {}
        for repo_id in REPO_IDS:
            table = as_str_dict(git.get(repo_id, {}))
            if table is None:
                return Err(ConfigError(f"[git.{repo_id}] must be a table"))
            parsed = _repo_from_table(repo_id, table)
            if isinstance(parsed, Err):
                return parsed
            repos[repo_id] = parsed.value

        return Ok(
            cls(
                user=UserConfig(
                    name=get_str(user, "name") or "",
                    email=get_str(user, "email") or "",
                    signing_key=get_str(user, "signing_key") or "",
                ),
                repos=repos,
                registry=RegistryConfig(
                    s3gw=get_str(registry, "s3gw") or DEFAULT_REGISTRY_S3GW,
                    ui=get_str(registry, "ui") or DEFAULT_REGISTRY_UI,
                ),
            )
        )


def _repo_from_table(repo_id: str, table: StrDict) -> Result[RepoConfig, ConfigError]:
    defaults = DEFAULT_REPOS[repo_id]

    def value(key: str) -> str | None:
        return get_str(table, key) or defaults.get(key)

    patterns: dict[str, re.Pattern[str]] = {}
    for key in ("tag_pattern", "branch_pattern"):
        raw = value(key) or ""
        try:
            patterns[key] = re.compile(raw)
        except re.error as e:
            return Err(ConfigError(f"git.{repo_id}.{key}: invalid regex {raw!r}: {e}"))

    formats: dict[str, VersionFormat] = {}
    for key, allowed in (
        ("tag_format", _TAG_FIELDS),
        ("branch_format", _BRANCH_FIELDS),
        ("final_branch_format", _TAG_FIELDS),
    ):
        raw = value(key)
        if raw is None:
            continue
        compiled = compile_format(raw, allowed=allowed)
        if isinstance(compiled, Err):
            return Err(ConfigError(f"git.{repo_id}.{key}: {compiled.error.message}"))
        formats[key] = compiled.value

    readonly = value("readonly")
    readwrite = value("readwrite")
    if readonly is None or readwrite is None:
        return Err(ConfigError(f"git.{repo_id}: readonly and readwrite URLs are required"))

    org = value("github_org")
    repo = value("github_repo")
    return Ok(
        RepoConfig(
            readonly=readonly,
            readwrite=readwrite,
            tag_pattern=patterns["tag_pattern"],
            branch_pattern=patterns["branch_pattern"],
            tag_format=formats["tag_format"],
            branch_format=formats["branch_format"],
            final_branch_format=formats.get("final_branch_format"),
            github=GitHubRepo(org=org, repo=repo) if org and repo else None,
        )
    )


def default_config(user: UserConfig | None = None) -> WorkspaceConfig:
    """Return the aquarist-labs defaults. These always compile."""
    result = WorkspaceConfig.from_dict({})
    if isinstance(result, Err):
        raise AssertionError(f"default config is invalid: {result.error.message}")
    cfg = result.value
    return WorkspaceConfig(user=user or cfg.user, repos=cfg.repos, registry=cfg.registry)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[WorkspaceConfig, ConfigError]:
    """Load and validate ``.arc/config.toml``.

    Returns:
        Ok(WorkspaceConfig) on success, Err(ConfigError) naming the bad key
    """
    data = _parse_toml(path)
    if isinstance(data, Err):
        return data

    result = WorkspaceConfig.from_dict(data.value)
    if isinstance(result, Err):
        return Err(ConfigError(result.error.message, path=path))
    return result


def _toml_str(value: str) -> str:
    # Literal strings keep regex backslashes readable.
    if "'" not in value and "\n" not in value:
        return f"'{value}'"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def render_config(cfg: WorkspaceConfig) -> str:
    """Render a config as TOML text that ``load_config`` reads back."""
    lines = [
        "# arc workspace configuration",
        "",
        "[user]",
        f"name = {_toml_str(cfg.user.name)}",
        f"email = {_toml_str(cfg.user.email)}",
        f"signing_key = {_toml_str(cfg.user.signing_key)}",
    ]

    for repo_id in REPO_IDS:
        repo = cfg.repos[repo_id]
        lines += [
            "",
            f"[git.{repo_id}]",
            f"readonly = {_toml_str(repo.readonly)}",
            f"readwrite = {_toml_str(repo.readwrite)}",
            f"tag_pattern = {_toml_str(repo.tag_pattern.pattern)}",
            f"branch_pattern = {_toml_str(repo.branch_pattern.pattern)}",
            f"tag_format = {_toml_str(repo.tag_format.template)}",
            f"branch_format = {_toml_str(repo.branch_format.template)}",
        ]
        if repo.final_branch_format is not None:
            lines.append(f"final_branch_format = {_toml_str(repo.final_branch_format.template)}")
        if repo.github is not None:
            lines.append(f"github_org = {_toml_str(repo.github.org)}")
            lines.append(f"github_repo = {_toml_str(repo.github.repo)}")

    lines += [
        "",
        "[registry]",
        f"s3gw = {_toml_str(cfg.registry.s3gw)}",
        f"ui = {_toml_str(cfg.registry.ui)}",
        "",
    ]
    return "\n".join(lines)
