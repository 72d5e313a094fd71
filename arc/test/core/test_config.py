"""Tests for arc.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from arc.core.config import (
    REPO_IDS,
    UserConfig,
    WorkspaceConfig,
    default_config,
    load_config,
    render_config,
)
from arc.core.result import Err, Ok
from arc.release.version import Version


# =============================================================================
# Defaults
# =============================================================================


class TestDefaults:
    """The aquarist-labs defaults."""

    def test_every_repo_present(self) -> None:
        cfg = default_config()
        assert set(cfg.repos) == set(REPO_IDS)

    def test_default_rules_render(self) -> None:
        cfg = default_config()
        v = Version(0, 21, 0, 2)
        assert cfg.repo("s3gw").tag_format.render_rc(v) == Ok("v0.21.0-rc2")
        assert cfg.repo("ui").tag_format.render_rc(v) == Ok("s3gw-v0.21.0-rc2")
        assert cfg.repo("charts").branch_format.render(v) == Ok("v0.21")
        assert cfg.repo("ceph").branch_format.render(v) == Ok("s3gw-v0.21")

    def test_only_charts_has_final_branch(self) -> None:
        cfg = default_config()
        charts = cfg.repo("charts").final_branch_format
        assert charts is not None
        assert charts.render(Version(0, 21, 0)) == Ok("release-v0.21.0")
        assert cfg.repo("s3gw").final_branch_format is None

    def test_github_coordinates(self) -> None:
        gh = default_config().repo("s3gw").github
        assert gh is not None
        assert gh.slug == "aquarist-labs/s3gw"

    def test_user_override(self) -> None:
        cfg = default_config(UserConfig(name="Jane", email="jane@example.com"))
        assert cfg.user.name == "Jane"


# =============================================================================
# Parsing
# =============================================================================


class TestFromDict:
    """Validation of parsed TOML."""

    def test_partial_table_keeps_defaults(self) -> None:
        result = WorkspaceConfig.from_dict(
            {"git": {"ceph": {"readwrite": "git@example.com:me/ceph.git"}}}
        )
        assert isinstance(result, Ok)
        ceph = result.value.repo("ceph")
        assert ceph.readwrite == "git@example.com:me/ceph.git"
        assert ceph.readonly == "https://github.com/aquarist-labs/ceph.git"

    def test_unknown_repo_rejected(self) -> None:
        result = WorkspaceConfig.from_dict({"git": {"rgw": {}}})
        assert isinstance(result, Err)
        assert "rgw" in result.error.message

    def test_bad_regex_rejected(self) -> None:
        result = WorkspaceConfig.from_dict({"git": {"ui": {"tag_pattern": "^(v"}}})
        assert isinstance(result, Err)
        assert "git.ui.tag_pattern" in result.error.message

    def test_bad_placeholder_rejected_at_load(self) -> None:
        result = WorkspaceConfig.from_dict(
            {"git": {"charts": {"branch_format": "v{{major}}.{{minor}}.{{patch}}"}}}
        )
        assert isinstance(result, Err)
        assert "git.charts.branch_format" in result.error.message

    def test_repo_must_be_table(self) -> None:
        result = WorkspaceConfig.from_dict({"git": {"s3gw": "nope"}})
        assert isinstance(result, Err)
        assert "must be a table" in result.error.message


# =============================================================================
# Files
# =============================================================================


class TestLoadConfig:
    """Reading and writing config.toml."""

    def test_render_then_load(self, tmp_path: Path) -> None:
        cfg = default_config(UserConfig(name="Jane Doe", email="jane@example.com", signing_key="ABC"))
        path = tmp_path / "config.toml"
        path.write_text(render_config(cfg), encoding="utf-8")

        result = load_config(path)

        assert isinstance(result, Ok)
        loaded = result.value
        assert loaded.user == cfg.user
        assert loaded.registry == cfg.registry
        for repo_id in REPO_IDS:
            a, b = loaded.repo(repo_id), cfg.repo(repo_id)
            assert a.tag_pattern.pattern == b.tag_pattern.pattern
            assert a.branch_pattern.pattern == b.branch_pattern.pattern
            assert a.tag_format.template == b.tag_format.template
            assert a.github == b.github

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "config.toml")
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    @pytest.mark.parametrize("text", ["[user\nname=", "user = 1\n[user]\n"])
    def test_invalid_toml(self, tmp_path: Path, text: str) -> None:
        path = tmp_path / "config.toml"
        path.write_text(text, encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert result.error.path == path
