"""Tests for arc.core.result module."""

from __future__ import annotations

import pytest

from arc.core.result import Err, Ok, Result, is_err, is_ok


def _half(n: int) -> Result[int, str]:
    if n % 2:
        return Err(f"{n} is odd")
    return Ok(n // 2)


class TestOk:
    def test_value_and_flags(self) -> None:
        r = Ok(3)
        assert r.value == 3
        assert r.is_ok() and not r.is_err()
        assert r.unwrap() == 3
        assert r.unwrap_or(0) == 3

    def test_map(self) -> None:
        assert Ok(2).map(lambda x: x * 10) == Ok(20)
        assert Ok(2).map_err(str.upper) == Ok(2)

    def test_repr(self) -> None:
        assert repr(Ok("x")) == "Ok('x')"


class TestErr:
    def test_error_and_flags(self) -> None:
        r: Err[str] = Err("boom")
        assert r.error == "boom"
        assert r.is_err() and not r.is_ok()
        assert r.unwrap_or(7) == 7

    def test_unwrap_raises(self) -> None:
        with pytest.raises(ValueError, match="boom"):
            Err("boom").unwrap()

    def test_map_err(self) -> None:
        assert Err("boom").map_err(str.upper) == Err("BOOM")
        assert Err("boom").map(lambda x: x) == Err("boom")


def test_type_guards() -> None:
    assert is_ok(_half(4))
    assert is_err(_half(3))


def test_pattern_matching() -> None:
    match _half(3):
        case Ok(value):
            pytest.fail(f"unexpected value {value}")
        case Err(error):
            assert error == "3 is odd"
