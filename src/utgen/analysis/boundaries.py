"""Boundary-condition discovery: branches and comparisons worth edge-case tests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from utgen.analysis.java_source import _get_parser, _text

if TYPE_CHECKING:
    from pathlib import Path

    import tree_sitter

logger = logging.getLogger(__name__)


class ConditionType(Enum):
    NUMERIC_COMPARISON = "numeric_comparison"
    NULL_CHECK = "null_check"
    EQUALITY = "equality"
    EMPTY_CHECK = "empty_check"
    SIZE_CHECK = "size_check"
    CONTAINS_CHECK = "contains_check"
    SWITCH = "switch"
    COMPOUND = "compound"
    BOOLEAN = "boolean"


_ORDERING_OPERATORS = frozenset({"<", "<=", ">", ">="})
_EQUALITY_OPERATORS = frozenset({"==", "!="})

_CALL_CONDITIONS = {
    "isEmpty": ConditionType.EMPTY_CHECK,
    "isBlank": ConditionType.EMPTY_CHECK,
    "size": ConditionType.SIZE_CHECK,
    "length": ConditionType.SIZE_CHECK,
    "contains": ConditionType.CONTAINS_CHECK,
    "containsKey": ConditionType.CONTAINS_CHECK,
}

_SUGGESTIONS: dict[ConditionType, tuple[str, ...]] = {
    ConditionType.NUMERIC_COMPARISON: (
        "Test {m} with the boundary value (exact match)",
        "Test {m} with boundary-1 (just below)",
        "Test {m} with boundary+1 (just above)",
        "Test {m} with Integer.MIN_VALUE and Integer.MAX_VALUE",
    ),
    ConditionType.NULL_CHECK: ("Test {m} with null input", "Test {m} with non-null input"),
    ConditionType.EQUALITY: ("Test {m} with equal values", "Test {m} with unequal values"),
    ConditionType.EMPTY_CHECK: (
        "Test {m} with an empty string/collection",
        "Test {m} with null",
        "Test {m} with a single element",
        "Test {m} with multiple elements",
    ),
    ConditionType.SIZE_CHECK: (
        "Test {m} with size 0",
        "Test {m} with size 1",
        "Test {m} with a large size",
    ),
    ConditionType.CONTAINS_CHECK: (
        "Test {m} with a present element",
        "Test {m} with an absent element",
    ),
    ConditionType.SWITCH: ("Test {m} for each switch case",),
    ConditionType.COMPOUND: (
        "Test {m} with all conditions true",
        "Test {m} with all conditions false",
        "Test {m} with mixed condition states",
    ),
    ConditionType.BOOLEAN: ("Test {m} with a true condition", "Test {m} with a false condition"),
}


@dataclass
class BoundaryCondition:
    """A branch or comparison found inside a method body."""

    method_name: str
    line: int
    condition_type: ConditionType
    expression: str
    has_default_branch: bool = True

    def suggestions(self) -> list[str]:
        items = [s.format(m=self.method_name) for s in _SUGGESTIONS[self.condition_type]]
        if self.condition_type is ConditionType.SWITCH and not self.has_default_branch:
            items.append(
                f"WARNING: {self.method_name} switch has no default case; "
                "test an unexpected value"
            )
        return items


def _classify_condition(expression: str) -> ConditionType:
    if "null" in expression:
        return ConditionType.NULL_CHECK
    if "&&" in expression or "||" in expression:
        return ConditionType.COMPOUND
    if any(op in expression for op in ("<", ">", "=", "!")):
        return ConditionType.NUMERIC_COMPARISON
    return ConditionType.BOOLEAN


class _BoundaryWalker:
    def __init__(self) -> None:
        self.conditions: list[BoundaryCondition] = []
        self._method = ""

    def _add(
        self, node: tree_sitter.Node, kind: ConditionType, expression: str, **extra: bool
    ) -> None:
        self.conditions.append(
            BoundaryCondition(
                method_name=self._method,
                line=node.start_point.row + 1,
                condition_type=kind,
                expression=expression.strip("() "),
                **extra,
            )
        )

    def walk(self, node: tree_sitter.Node) -> None:
        kind = node.type
        if kind in ("method_declaration", "constructor_declaration"):
            previous = self._method
            self._method = _text(node.child_by_field_name("name"))
            for child in node.children:
                self.walk(child)
            self._method = previous
            return

        if kind in ("if_statement", "while_statement", "for_statement"):
            condition = node.child_by_field_name("condition")
            if condition is not None:
                expression = _text(condition)
                self._add(node, _classify_condition(expression), expression)
        elif kind in ("switch_expression", "switch_statement"):
            body = node.child_by_field_name("body")
            groups = body.children if body is not None else []
            labels = [
                _text(label)
                for group in groups
                for label in group.children
                if label.type == "switch_label"
            ]
            self._add(
                node,
                ConditionType.SWITCH,
                _text(node.child_by_field_name("condition")),
                has_default_branch=any(label.startswith("default") for label in labels),
            )
        elif kind == "binary_expression":
            operator = _text(node.child_by_field_name("operator"))
            expression = _text(node)
            if operator in _ORDERING_OPERATORS:
                self._add(node, ConditionType.NUMERIC_COMPARISON, expression)
            elif operator in _EQUALITY_OPERATORS:
                null_check = "null" in expression
                self._add(
                    node,
                    ConditionType.NULL_CHECK if null_check else ConditionType.EQUALITY,
                    expression,
                )
        elif kind == "method_invocation":
            called = _text(node.child_by_field_name("name"))
            if called in _CALL_CONDITIONS:
                self._add(node, _CALL_CONDITIONS[called], _text(node))

        for child in node.children:
            self.walk(child)


def find_boundaries(source: str | bytes, method_name: str = "") -> list[BoundaryCondition]:
    """Boundary conditions in *source*, optionally restricted to one method."""
    data = source.encode("utf-8") if isinstance(source, str) else source
    walker = _BoundaryWalker()
    walker.walk(_get_parser().parse(data).root_node)
    if method_name:
        return [c for c in walker.conditions if c.method_name == method_name]
    return walker.conditions


def render_boundaries(path: Path, method_name: str = "") -> str:
    conditions = find_boundaries(path.read_bytes(), method_name)
    scope = f"{path.name}#{method_name}" if method_name else path.name
    if not conditions:
        return f"No boundary conditions found in {scope}"

    lines = [f"Boundary conditions in {scope}: {len(conditions)}"]
    for condition in conditions:
        lines.append(
            f"  - line {condition.line} [{condition.condition_type.value}] "
            f"{condition.method_name}: {condition.expression}"
        )
    suggestions = list(dict.fromkeys(s for c in conditions for s in c.suggestions()))
    lines.append("Suggested tests:")
    lines.extend(f"  - {s}" for s in suggestions)
    return "\n".join(lines)
