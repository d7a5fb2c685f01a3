"""Tree-sitter based Java source inspection: method discovery and syntax errors."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import tree_sitter_language_pack as tslp

from utgen.models.coverage import MethodCoverageInfo

if TYPE_CHECKING:
    import tree_sitter

logger = logging.getLogger(__name__)

_LANGUAGE = "java"

# Methods never worth a dedicated test
UNTESTABLE_METHODS = frozenset({"main", "toString", "hashCode", "equals"})

_TYPE_DECLARATIONS = frozenset(
    {"class_declaration", "interface_declaration", "enum_declaration", "record_declaration"}
)

_JAVA_TYPE_NODES = frozenset(
    {
        "void_type",
        "type_identifier",
        "generic_type",
        "integral_type",
        "boolean_type",
        "floating_point_type",
        "array_type",
        "scoped_type_identifier",
    }
)

_parser: tree_sitter.Parser | None = None


def _get_parser() -> tree_sitter.Parser:
    global _parser  # noqa: PLW0603
    if _parser is None:
        _parser = tslp.get_parser(_LANGUAGE)
    return _parser


def _text(node: tree_sitter.Node | None) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace") if node.text else ""


@dataclass
class JavaMethod:
    """A method or constructor declaration."""

    name: str
    parameter_types: list[str] = field(default_factory=list)
    return_type: str = ""
    start_line: int = 0
    end_line: int = 0
    is_constructor: bool = False
    modifiers: str = ""

    @property
    def signature(self) -> str:
        return f"{self.name}({', '.join(self.parameter_types)})"

    @property
    def is_testable(self) -> bool:
        return not self.is_constructor and self.name not in UNTESTABLE_METHODS


@dataclass
class JavaClass:
    name: str
    start_line: int = 0
    end_line: int = 0
    methods: list[JavaMethod] = field(default_factory=list)


@dataclass
class SyntaxIssue:
    """A parse error reported by tree-sitter."""

    line: int
    column: int
    message: str

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}: {self.message}"


@dataclass
class JavaSource:
    """Everything extracted from one compilation unit."""

    package: str = ""
    classes: list[JavaClass] = field(default_factory=list)
    syntax_errors: list[SyntaxIssue] = field(default_factory=list)

    @property
    def methods(self) -> list[JavaMethod]:
        return [m for cls in self.classes for m in cls.methods]


def _parse_method(node: tree_sitter.Node) -> JavaMethod:
    params_node = node.child_by_field_name("parameters")
    param_types = []
    if params_node is not None:
        for child in params_node.children:
            if child.type in ("formal_parameter", "spread_parameter"):
                type_node = child.child_by_field_name("type")
                type_text = _text(type_node) if type_node else _text(child).rsplit(" ", 1)[0]
                if child.type == "spread_parameter" and not type_text.endswith("..."):
                    type_text += "..."
                param_types.append(type_text)
    modifiers = next((_text(c) for c in node.children if c.type == "modifiers"), "")
    return JavaMethod(
        name=_text(node.child_by_field_name("name")),
        parameter_types=param_types,
        return_type=next((_text(c) for c in node.children if c.type in _JAVA_TYPE_NODES), ""),
        start_line=node.start_point.row + 1,
        end_line=node.end_point.row + 1,
        is_constructor=node.type == "constructor_declaration",
        modifiers=modifiers,
    )


def _collect_classes(node: tree_sitter.Node, classes: list[JavaClass]) -> None:
    for child in node.children:
        if child.type not in _TYPE_DECLARATIONS:
            continue
        java_class = JavaClass(
            name=_text(child.child_by_field_name("name")),
            start_line=child.start_point.row + 1,
            end_line=child.end_point.row + 1,
        )
        classes.append(java_class)
        body = child.child_by_field_name("body")
        if body is None:
            continue
        for member in body.children:
            if member.type in ("method_declaration", "constructor_declaration"):
                java_class.methods.append(_parse_method(member))
        _collect_classes(body, classes)


def _walk_errors(node: tree_sitter.Node, issues: list[SyntaxIssue]) -> None:
    if node.is_missing:
        issues.append(
            SyntaxIssue(
                line=node.start_point.row + 1,
                column=node.start_point.column + 1,
                message=f"missing '{node.type}'",
            )
        )
        return
    if node.is_error:
        snippet = _text(node).splitlines()[0][:40] if node.text else ""
        issues.append(
            SyntaxIssue(
                line=node.start_point.row + 1,
                column=node.start_point.column + 1,
                message=f"unexpected '{snippet}'" if snippet else "syntax error",
            )
        )
    for child in node.children:
        _walk_errors(child, issues)


def parse_java(source: str | bytes) -> JavaSource:
    """Parse Java source text."""
    data = source.encode("utf-8") if isinstance(source, str) else source
    root = _get_parser().parse(data).root_node
    result = JavaSource()
    for child in root.children:
        if child.type == "package_declaration":
            result.package = next(
                (_text(c) for c in child.children if c.type in ("scoped_identifier", "identifier")),
                "",
            )
    _collect_classes(root, result.classes)
    if root.has_error:
        _walk_errors(root, result.syntax_errors)
    return result


def parse_java_file(path: Path) -> JavaSource:
    return parse_java(path.read_bytes())


def find_syntax_errors(source: str | bytes) -> list[SyntaxIssue]:
    return parse_java(source).syntax_errors


def scan_testable_methods(path: Path) -> list[MethodCoverageInfo]:
    """Discover methods worth testing when no coverage report exists.

    Every method gets a synthetic 0% record (priority P0).
    """
    try:
        source = parse_java_file(path)
    except OSError as exc:
        logger.warning("Cannot read %s for static scan: %s", path, exc)
        return []
    seen: set[str] = set()
    methods: list[MethodCoverageInfo] = []
    for method in source.methods:
        if not method.is_testable or method.name in seen:
            continue
        seen.add(method.name)
        methods.append(MethodCoverageInfo.uncovered(method.name, signature=method.signature))
    logger.info("Static scan of %s found %d testable methods", path.name, len(methods))
    return methods


def describe_source(source: JavaSource) -> str:
    """Compact structural summary handed to the model."""
    lines = [f"Package: {source.package or '(default)'}"]
    for java_class in source.classes:
        lines.append(
            f"Class: {java_class.name} (lines {java_class.start_line}-{java_class.end_line})"
        )
        for method in java_class.methods:
            kind = "Constructor" if method.is_constructor else "Method"
            returns = f" -> {method.return_type}" if method.return_type else ""
            lines.append(
                f"  {kind}: {method.signature}{returns} "
                f"[{method.modifiers or 'package-private'}] "
                f"lines {method.start_line}-{method.end_line}"
            )
    if source.syntax_errors:
        lines.append(f"Syntax errors: {len(source.syntax_errors)}")
    return "\n".join(lines)
