"""Release notes in the superproject's documentation tree.

Notes live in ``docs/release-notes/s3gw-v<version>.md``; the ``latest``
symlink next to them points at the newest file, and ``mkdocs.yml`` lists
each published release under its ``Release Notes:`` navigation section.
"""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path

from arc.core.result import Err, Ok, Result
from arc.platform.files import atomic_symlink, atomic_write_text
from arc.release.errors import ReleaseError
from arc.release.version import Version

__all__ = [
    "NOTES_DIR",
    "LATEST_LINK",
    "MKDOCS_PATH",
    "notes_path",
    "install_release_notes",
    "read_latest_notes",
    "add_nav_entry",
    "update_doc_index",
]

NOTES_DIR = "docs/release-notes"
LATEST_LINK = f"{NOTES_DIR}/latest"
MKDOCS_PATH = "mkdocs.yml"

_NAV_SECTION_RE = re.compile(r"^(\s*)- Release Notes:\s*$")
_NAV_ITEM_RE = re.compile(r"^([ \t]*)- ")


def notes_path(version: Version) -> str:
    """Path of ``version``'s notes, relative to the superproject root."""
    return f"{NOTES_DIR}/s3gw-v{version}.md"


def _notes_error(message: str) -> ReleaseError:
    return ReleaseError(kind="notes_failed", message=message, repo="s3gw")


def install_release_notes(
    root: Path, source: Path, version: Version
) -> Result[list[str], ReleaseError]:
    """Copy ``source`` into the notes directory and repoint ``latest``.

    Returns the paths to stage, relative to ``root``.
    """
    rel = notes_path(version)
    dest = root / rel
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        if source.resolve() != dest.resolve():
            shutil.copyfile(source, dest)
        atomic_symlink(root / LATEST_LINK, dest.name)
    except OSError as e:
        return Err(_notes_error(f"failed to install release notes from {source}: {e}"))
    return Ok([rel, LATEST_LINK])


def read_latest_notes(root: Path) -> Result[tuple[str, str], ReleaseError]:
    """Return ``(file name, text)`` of the notes ``latest`` points at."""
    link = root / LATEST_LINK
    if not link.is_symlink():
        return Err(_notes_error(f"{LATEST_LINK} is missing or not a symlink"))
    try:
        target = os.readlink(link)
        text = (link.parent / target).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return Err(_notes_error(f"failed to read release notes via {LATEST_LINK}: {e}"))
    return Ok((Path(target).name, text))


def add_nav_entry(text: str, version: Version) -> Result[str, ReleaseError]:
    """Insert ``version`` first under the ``Release Notes:`` navigation section.

    Text that already lists the notes file comes back unchanged.
    """
    entry_target = notes_path(version).removeprefix("docs/")
    if entry_target in text:
        return Ok(text)

    lines = text.splitlines(keepends=True)
    for i, line in enumerate(lines):
        m = _NAV_SECTION_RE.match(line.rstrip("\r\n"))
        if m is None:
            continue
        eol = line[len(line.rstrip("\r\n")) :] or "\n"
        indent = m.group(1) + "    "
        if i + 1 < len(lines):
            child = _NAV_ITEM_RE.match(lines[i + 1])
            if child is not None and len(child.group(1)) > len(m.group(1)):
                indent = child.group(1)
        lines.insert(i + 1, f"{indent}- 'v{version}': {entry_target}{eol}")
        return Ok("".join(lines))

    return Err(_notes_error(f"no 'Release Notes:' section in {MKDOCS_PATH}"))


def update_doc_index(root: Path, version: Version) -> Result[bool, ReleaseError]:
    """Add ``version`` to ``mkdocs.yml``; Ok(False) when already listed."""
    path = root / MKDOCS_PATH
    try:
        original = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return Err(_notes_error(f"failed to read {MKDOCS_PATH}: {e}"))

    updated = add_nav_entry(original, version)
    if isinstance(updated, Err):
        return updated
    if updated.value == original:
        return Ok(False)

    try:
        atomic_write_text(path, updated.value)
    except OSError as e:
        return Err(_notes_error(f"failed to write {MKDOCS_PATH}: {e}"))
    return Ok(True)
