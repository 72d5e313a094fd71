from __future__ import annotations

from ._gate import require_arch_checks_enabled
from ._utils import arc_root, iter_source_files, matches_prefix, parse_imports


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    root = arc_root()
    offenders: list[str] = []
    for file_path in iter_source_files(root / package):
        rel = file_path.relative_to(root)
        for item in parse_imports(file_path):
            if any(matches_prefix(item.module, prefix) for prefix in forbidden):
                offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")
    return offenders


def test_release_domain_is_pure() -> None:
    """Version and ref logic only needs core.result and core.log."""
    require_arch_checks_enabled()

    offenders = _violations(
        "release",
        (
            "arc.platform",
            "arc.git",
            "arc.output",
            "arc.services",
            "arc.cli",
            "arc.core.config",
            "subprocess",
            "typer",
            "rich",
        ),
    )
    assert not offenders, "release layer violations:\n" + "\n".join(offenders)


def test_git_layer_does_not_import_services() -> None:
    require_arch_checks_enabled()

    offenders = _violations("git", ("arc.services", "arc.cli", "arc.output"))
    assert not offenders, "git -> services dependency violations:\n" + "\n".join(offenders)


def test_services_do_not_import_cli_modules() -> None:
    require_arch_checks_enabled()

    offenders = _violations("services", ("arc.cli", "typer"))
    assert not offenders, "services -> cli dependency violations:\n" + "\n".join(offenders)
