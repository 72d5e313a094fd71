"""Release version model.

A version is ``major.minor[.patch[-rcN]]``. A version without a patch is a
*base version*: the ``major.minor`` umbrella a release branch lives under.

Versions are totally ordered by ``version_id``::

    major * 10^9 + minor * 10^6 + (patch or 999) * 10^3 + (rc or 999)

so a base version sorts after every concrete version it contains, and a
final release sorts after all of its release candidates.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Literal, cast

from arc.core.result import Err, Ok, Result

__all__ = [
    "Version",
    "VersionError",
    "VersionField",
    "VersionFormat",
    "parse_version",
    "compile_format",
]

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)(?:\.(\d+)(?:-rc(\d+))?)?$", re.ASCII)
_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_]+)\s*\}\}")

_MISSING = 999

VersionField = Literal["major", "minor", "patch", "rc"]
_FIELDS: tuple[VersionField, ...] = ("major", "minor", "patch", "rc")


@dataclass(frozen=True, slots=True)
class VersionError:
    kind: Literal["parse", "format"]
    message: str


@functools.total_ordering
@dataclass(frozen=True, slots=True, eq=False)
class Version:
    major: int
    minor: int
    patch: int | None = None
    rc: int | None = None

    @property
    def version_id(self) -> int:
        patch = _MISSING if self.patch is None else self.patch
        rc = _MISSING if self.rc is None else self.rc
        return self.major * 10**9 + self.minor * 10**6 + patch * 10**3 + rc

    @property
    def is_base(self) -> bool:
        return self.patch is None

    @property
    def is_final(self) -> bool:
        return self.patch is not None and self.rc is None

    def base_version(self) -> Version:
        return Version(self.major, self.minor)

    def release_version(self) -> Version:
        """Drop the rc, keeping ``major.minor.patch``.

        Raises:
            ValueError: this is a base version and has no release.
        """
        if self.patch is None:
            raise ValueError(f"base version {self} has no release version")
        return Version(self.major, self.minor, self.patch)

    def min(self) -> Version:
        return Version(
            self.major,
            self.minor,
            0 if self.patch is None else self.patch,
            0 if self.rc is None else self.rc,
        )

    def max(self) -> Version:
        return Version(
            self.major,
            self.minor,
            _MISSING if self.patch is None else self.patch,
            _MISSING if self.rc is None else self.rc,
        )

    def with_rc(self, rc: int | None) -> Version:
        if self.patch is None:
            raise ValueError(f"base version {self} cannot carry an rc")
        return Version(self.major, self.minor, self.patch, rc)

    def get(self, name: VersionField) -> int | None:
        match name:
            case "major":
                return self.major
            case "minor":
                return self.minor
            case "patch":
                return self.patch
            case "rc":
                return self.rc

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.version_id == other.version_id

    def __lt__(self, other: Version) -> bool:
        return self.version_id < other.version_id

    def __hash__(self) -> int:
        return hash(self.version_id)

    def __str__(self) -> str:
        s = f"{self.major}.{self.minor}"
        if self.patch is not None:
            s += f".{self.patch}"
            if self.rc is not None:
                s += f"-rc{self.rc}"
        return s


def parse_version(text: str) -> Result[Version, VersionError]:
    """Parse ``[v]M.m[.p[-rcN]]``; an rc suffix requires a patch."""
    m = _VERSION_RE.match(text.strip())
    if m is None:
        return Err(VersionError(kind="parse", message=f"invalid version: {text!r}"))

    major, minor, patch, rc = m.groups()
    return Ok(
        Version(
            major=int(major),
            minor=int(minor),
            patch=None if patch is None else int(patch),
            rc=None if rc is None else int(rc),
        )
    )


@dataclass(frozen=True, slots=True)
class VersionFormat:
    """A compiled ``{{field}}`` template such as ``s3gw-v{{major}}.{{minor}}``.

    ``parts`` alternates literal text and field names; ``fields`` lists the
    referenced fields in template order.
    """

    template: str
    parts: tuple[str | tuple[VersionField], ...]

    @property
    def fields(self) -> tuple[VersionField, ...]:
        return tuple(p[0] for p in self.parts if isinstance(p, tuple))

    def render(self, version: Version) -> Result[str, VersionError]:
        out: list[str] = []
        for part in self.parts:
            if isinstance(part, str):
                out.append(part)
                continue
            value = version.get(part[0])
            if value is None:
                return Err(
                    VersionError(
                        kind="format",
                        message=(
                            f"template {self.template!r} needs '{part[0]}' "
                            f"but version {version} has none"
                        ),
                    )
                )
            out.append(str(value))
        return Ok("".join(out))

    def render_rc(self, version: Version) -> Result[str, VersionError]:
        """Render the template and append ``-rcN`` when ``version`` is a candidate."""
        rendered = self.render(version)
        if isinstance(rendered, Err) or version.rc is None:
            return rendered
        return Ok(f"{rendered.value}-rc{version.rc}")


def compile_format(
    template: str,
    *,
    allowed: tuple[VersionField, ...] = _FIELDS,
) -> Result[VersionFormat, VersionError]:
    """Compile a template, rejecting unknown or disallowed placeholders."""
    parts: list[str | tuple[VersionField]] = []
    pos = 0
    for m in _PLACEHOLDER_RE.finditer(template):
        if m.start() > pos:
            parts.append(template[pos : m.start()])
        name = m.group(1)
        if name not in _FIELDS:
            return Err(
                VersionError(kind="format", message=f"unknown placeholder '{name}' in {template!r}")
            )
        if name not in allowed:
            return Err(
                VersionError(
                    kind="format",
                    message=f"placeholder '{name}' not allowed in {template!r}",
                )
            )
        parts.append((cast(VersionField, name),))
        pos = m.end()

    if pos < len(template):
        parts.append(template[pos:])

    for part in parts:
        if isinstance(part, str) and ("{{" in part or "}}" in part):
            return Err(VersionError(kind="format", message=f"malformed template {template!r}"))

    return Ok(VersionFormat(template=template, parts=tuple(parts)))
