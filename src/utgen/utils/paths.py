"""Maven project layout helpers: project roots, class names and test paths."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

MAIN_SOURCES = Path("src/main/java")
TEST_SOURCES = Path("src/test/java")

_BUILD_FILES = ("pom.xml",)


def find_project_root(source_file: Path) -> Path:
    """Return the nearest ancestor holding a ``pom.xml``.

    Falls back to the directory above ``src/main/java`` (or ``src``) when no
    build file exists, and finally to the file's own directory.
    """
    path = source_file.resolve()
    for parent in path.parents:
        if any((parent / name).is_file() for name in _BUILD_FILES):
            return parent

    parts = path.parts
    for marker in (MAIN_SOURCES.parts, ("src",)):
        for i in range(len(parts) - len(marker), -1, -1):
            if parts[i : i + len(marker)] == marker:
                return Path(*parts[:i]) if i else Path(path.anchor)
    return path.parent


def _relative_to_sources(source_file: Path, project_root: Path) -> Path | None:
    try:
        return source_file.resolve().relative_to((project_root / MAIN_SOURCES).resolve())
    except ValueError:
        return None


def class_name_for(source_file: Path, project_root: Path) -> str:
    """Fully qualified class name of a file under ``src/main/java``."""
    relative = _relative_to_sources(source_file, project_root)
    if relative is None:
        return source_file.stem
    return ".".join(relative.with_suffix("").parts)


def derive_test_file(source_file: Path, project_root: Path) -> Path:
    """``src/main/java/a/B.java`` → ``src/test/java/a/BTest.java``."""
    relative = _relative_to_sources(source_file, project_root)
    if relative is None:
        return source_file.resolve().with_name(f"{source_file.stem}Test.java")
    return (project_root / TEST_SOURCES / relative).with_name(f"{source_file.stem}Test.java")


@dataclass(frozen=True)
class TargetLayout:
    """All paths and names derived from one target source file."""

    source_file: Path
    project_root: Path
    class_name: str
    test_file: Path
    test_class_name: str

    @property
    def simple_name(self) -> str:
        return self.class_name.rsplit(".", maxsplit=1)[-1]

    def relative(self, path: Path) -> str:
        try:
            return str(path.resolve().relative_to(self.project_root.resolve()))
        except ValueError:
            return str(path)


def resolve_target(source_file: Path, project_root: Path | None = None) -> TargetLayout:
    source_file = source_file.resolve()
    root = (project_root or find_project_root(source_file)).resolve()
    class_name = class_name_for(source_file, root)
    return TargetLayout(
        source_file=source_file,
        project_root=root,
        class_name=class_name,
        test_file=derive_test_file(source_file, root),
        test_class_name=f"{class_name}Test",
    )
