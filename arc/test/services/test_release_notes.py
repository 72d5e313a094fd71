"""Tests for release notes installation and the docs index."""

from __future__ import annotations

import os
from pathlib import Path

from arc.core.result import Err, Ok
from arc.release.version import Version
from arc.services.release.notes import (
    LATEST_LINK,
    MKDOCS_PATH,
    add_nav_entry,
    install_release_notes,
    notes_path,
    read_latest_notes,
    update_doc_index,
)

MKDOCS = """\
site_name: s3gw
nav:
  - Home: index.md
  - Release Notes:
      - 'v0.20.0': release-notes/s3gw-v0.20.0.md
  - About: about.md
"""


# =============================================================================
# Notes files
# =============================================================================


class TestInstallReleaseNotes:
    """Copying notes in and repointing latest."""

    def test_install_and_read_back(self, tmp_path: Path) -> None:
        source = tmp_path / "notes.md"
        source.write_text("# Release 0.21.0-rc1\n", encoding="utf-8")
        root = tmp_path / "s3gw.git"

        result = install_release_notes(root, source, Version(0, 21, 0, 1))

        assert result == Ok([notes_path(Version(0, 21, 0, 1)), LATEST_LINK])
        assert os.readlink(root / LATEST_LINK) == "s3gw-v0.21.0-rc1.md"
        assert read_latest_notes(root) == Ok(("s3gw-v0.21.0-rc1.md", "# Release 0.21.0-rc1\n"))

    def test_reinstall_in_place(self, tmp_path: Path) -> None:
        """Installing the file that is already in place only touches the link."""
        root = tmp_path
        dest = root / notes_path(Version(0, 21, 0))
        dest.parent.mkdir(parents=True)
        dest.write_text("final", encoding="utf-8")

        assert isinstance(install_release_notes(root, dest, Version(0, 21, 0)), Ok)
        assert dest.read_text(encoding="utf-8") == "final"

    def test_missing_source(self, tmp_path: Path) -> None:
        result = install_release_notes(tmp_path, tmp_path / "nope.md", Version(0, 21, 0, 1))
        assert isinstance(result, Err)
        assert result.error.kind == "notes_failed"

    def test_read_without_latest(self, tmp_path: Path) -> None:
        result = read_latest_notes(tmp_path)
        assert isinstance(result, Err)
        assert "latest" in result.error.message


# =============================================================================
# mkdocs navigation
# =============================================================================


class TestAddNavEntry:
    """Editing the Release Notes section of mkdocs.yml."""

    def test_inserted_first_with_child_indent(self) -> None:
        result = add_nav_entry(MKDOCS, Version(0, 21, 0))
        assert isinstance(result, Ok)
        assert result.value == MKDOCS.replace(
            "  - Release Notes:\n",
            "  - Release Notes:\n      - 'v0.21.0': release-notes/s3gw-v0.21.0.md\n",
        )

    def test_empty_section_gets_four_spaces(self) -> None:
        text = "nav:\n  - Release Notes:\n"
        result = add_nav_entry(text, Version(0, 21, 0))
        assert result == Ok(text + "      - 'v0.21.0': release-notes/s3gw-v0.21.0.md\n")

    def test_idempotent(self) -> None:
        once = add_nav_entry(MKDOCS, Version(0, 21, 0))
        assert isinstance(once, Ok)
        assert add_nav_entry(once.value, Version(0, 21, 0)) == once

    def test_missing_section(self) -> None:
        result = add_nav_entry("nav:\n  - Home: index.md\n", Version(0, 21, 0))
        assert isinstance(result, Err)
        assert "Release Notes" in result.error.message

    def test_update_doc_index_file(self, tmp_path: Path) -> None:
        (tmp_path / MKDOCS_PATH).write_text(MKDOCS, encoding="utf-8")
        assert update_doc_index(tmp_path, Version(0, 21, 0)) == Ok(True)
        assert update_doc_index(tmp_path, Version(0, 21, 0)) == Ok(False)
