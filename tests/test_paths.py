"""Tests for Maven layout helpers (utils/paths.py)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tests.conftest import SOURCE_REL, TEST_REL, write_file
from utgen.utils.paths import class_name_for, derive_test_file, find_project_root, resolve_target

if TYPE_CHECKING:
    from pathlib import Path


def test_find_project_root_uses_pom(maven_project: Path) -> None:
    assert find_project_root(maven_project / SOURCE_REL) == maven_project.resolve()


def test_find_project_root_nearest_module(maven_project: Path) -> None:
    source = write_file(maven_project, f"core/{SOURCE_REL}", "class Calculator {}")
    write_file(maven_project, "core/pom.xml", "<project/>")

    assert find_project_root(source) == (maven_project / "core").resolve()


def test_find_project_root_without_pom(tmp_path: Path) -> None:
    source = write_file(tmp_path, SOURCE_REL, "class Calculator {}")
    assert find_project_root(source) == tmp_path.resolve()


def test_class_name_and_test_file(maven_project: Path) -> None:
    source = maven_project / SOURCE_REL

    assert class_name_for(source, maven_project) == "com.example.Calculator"
    assert derive_test_file(source, maven_project) == maven_project / TEST_REL


def test_file_outside_main_sources(tmp_path: Path) -> None:
    source = write_file(tmp_path, "scratch/Tool.java", "class Tool {}")

    assert class_name_for(source, tmp_path) == "Tool"
    assert derive_test_file(source, tmp_path) == source.resolve().with_name("ToolTest.java")


def test_resolve_target(maven_project: Path) -> None:
    layout = resolve_target(maven_project / SOURCE_REL)

    assert layout.project_root == maven_project.resolve()
    assert layout.class_name == "com.example.Calculator"
    assert layout.test_class_name == "com.example.CalculatorTest"
    assert layout.simple_name == "Calculator"
    assert layout.relative(layout.test_file) == TEST_REL
    assert layout.relative(maven_project.parent / "elsewhere") == str(
        maven_project.parent / "elsewhere"
    )
