"""Tests for arc.output.console module."""

from __future__ import annotations

from arc.output.console import ConsoleProtocol, MockConsole, OutputRecord, Style


class TestStyle:
    def test_str_conversion(self) -> None:
        assert str(Style.SUCCESS) == "success"
        assert str(Style.HEADER) == "header"


class TestMockConsole:
    """Test MockConsole capture helpers."""

    def test_levels_are_prefixed(self) -> None:
        console = MockConsole()
        console.success("tagged")
        console.error("push failed")
        console.warning("forced")
        console.info("nothing to do")
        assert console.messages == [
            "OK tagged",
            "error: push failed",
            "warning: forced",
            "info: nothing to do",
        ]
        assert console.has_error() and console.has_warning()

    def test_table(self) -> None:
        console = MockConsole()
        console.table(["tag", "status"], [["v0.21.0-rc1", "completed"]], title="Release 0.21.0")
        assert console.outputs == [
            OutputRecord("Release 0.21.0", Style.HEADER),
            OutputRecord("tag | status", Style.BOLD),
            OutputRecord("v0.21.0-rc1 | completed", Style.DEFAULT),
        ]

    def test_find_and_count(self) -> None:
        console = MockConsole()
        console.print("s3gw: tagged v0.21.0", Style.DIM)
        console.print("s3gw-ui: tagged s3gw-v0.21.0", Style.DIM)
        console.newline()
        assert len(console.find("tagged")) == 2
        assert console.count(Style.DIM) == 2
        assert console.text.endswith("\n")

    def test_satisfies_protocol(self) -> None:
        console: ConsoleProtocol = MockConsole()
        console.header("Release candidate 0.21.0-rc1")
