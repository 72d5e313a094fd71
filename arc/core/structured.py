"""Typed accessors for parsed TOML and JSON.

``config.toml``, ``release.json`` and the GitHub/Quay payloads all arrive
as plain ``object``. These accessors narrow them without raising: a value
of the wrong shape reads as missing.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

StrDict = dict[str, object]
ObjList = list[object]


def as_str_dict(obj: object) -> StrDict | None:
    """``obj`` as a string-keyed dict, or None."""
    if not isinstance(obj, dict):
        return None
    table = cast(dict[object, object], obj)
    if any(not isinstance(key, str) for key in table):
        return None
    return cast(StrDict, table)


def as_obj_list(obj: object) -> ObjList | None:
    return cast(ObjList, obj) if isinstance(obj, list) else None


def get_str(table: Mapping[str, object], key: str) -> str | None:
    """Stripped string at ``key``; None when missing, not a string or blank."""
    value = table.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def get_int(table: Mapping[str, object], key: str) -> int | None:
    value = table.get(key)
    # bool is an int subclass; ``true`` is not a count
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def get_table(table: Mapping[str, object], key: str) -> StrDict | None:
    return as_str_dict(table.get(key))


def get_list(table: Mapping[str, object], key: str) -> ObjList | None:
    return as_obj_list(table.get(key))
