"""JaCoCo XML report reader.

JaCoCo is the standard coverage tool for Maven projects. Its XML report nests
``<counter>`` elements under every ``<class>`` and ``<method>``; this module
turns them into per-method counter sets and renders them as summary lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from defusedxml import ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

from utgen.models.coverage import counter_percentage, normalize_signature

if TYPE_CHECKING:
    from pathlib import Path
    from xml.etree.ElementTree import Element as XmlElement

logger = logging.getLogger(__name__)

# Maven writes target/site/jacoco/jacoco.xml; the others cover custom report configs
JACOCO_PATHS = [
    "target/site/jacoco/jacoco.xml",
    "target/site/jacoco-ut/jacoco.xml",
    "target/jacoco.xml",
]

CONSTRUCTOR = "<init>"
STATIC_INITIALIZER = "<clinit>"
CONSTRUCTOR_DISPLAY = "constructor"

# compiler-generated members carry a `$`, e.g. lambda$run$0 or access$000
SYNTHETIC_MARKER = "$"

_PRIMITIVES = {
    "B": "byte",
    "C": "char",
    "D": "double",
    "F": "float",
    "I": "int",
    "J": "long",
    "S": "short",
    "Z": "boolean",
    "V": "void",
}


def _int_attr(element: XmlElement, key: str, default: int = 0) -> int:
    value = element.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def descriptor_parameters(desc: str) -> list[str]:
    """Decode the parameter list of a JVM method descriptor.

    ``(ILjava/lang/String;[J)V`` becomes ``["int", "String", "long[]"]``.
    """
    if not desc.startswith("("):
        return []
    params: list[str] = []
    i = 1
    dims = 0
    while i < len(desc) and desc[i] != ")":
        ch = desc[i]
        if ch == "[":
            dims += 1
            i += 1
            continue
        if ch == "L":
            end = desc.index(";", i)
            type_name = desc[i + 1 : end].rsplit("/", maxsplit=1)[-1].replace("$", ".")
            i = end + 1
        else:
            type_name = _PRIMITIVES.get(ch, ch)
            i += 1
        params.append(type_name + "[]" * dims)
        dims = 0
    return params


@dataclass
class Counter:
    """A single JaCoCo ``<counter>``."""

    type: str
    missed: int = 0
    covered: int = 0

    @property
    def total(self) -> int:
        return self.missed + self.covered

    @property
    def percentage(self) -> float:
        return counter_percentage(self.missed, self.covered)


def _collect_counters(element: XmlElement) -> dict[str, Counter]:
    counters: dict[str, Counter] = {}
    for counter in element.findall("counter"):
        ctype = counter.get("type", "")
        counters[ctype] = Counter(
            type=ctype,
            missed=_int_attr(counter, "missed"),
            covered=_int_attr(counter, "covered"),
        )
    return counters


@dataclass
class MethodCounters:
    """Counters reported for one method of a class."""

    name: str
    desc: str = ""
    line: int = 0
    counters: dict[str, Counter] = field(default_factory=dict)

    @property
    def is_constructor(self) -> bool:
        return self.name == CONSTRUCTOR

    @property
    def display_name(self) -> str:
        return CONSTRUCTOR_DISPLAY if self.is_constructor else self.name

    @property
    def signature(self) -> str:
        return f"{self.display_name}({', '.join(descriptor_parameters(self.desc))})"

    def percentage(self, counter_type: str) -> float:
        """Coverage percentage for *counter_type*; absent counters count as 100%."""
        counter = self.counters.get(counter_type)
        return counter.percentage if counter else 100.0

    @property
    def line_coverage(self) -> float:
        return self.percentage("LINE")

    @property
    def branch_coverage(self) -> float:
        return self.percentage("BRANCH")


@dataclass
class ClassCoverage:
    """Coverage of a single class, keyed by its dotted name."""

    name: str
    source_file: str = ""
    methods: list[MethodCounters] = field(default_factory=list)
    counters: dict[str, Counter] = field(default_factory=dict)

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", maxsplit=1)[-1]

    def percentage(self, counter_type: str) -> float:
        counter = self.counters.get(counter_type)
        return counter.percentage if counter else 100.0

    def find_methods(self, method: str) -> list[MethodCounters]:
        """Methods matching *method*, a bare name (or ``constructor``) or a signature.

        A bare name selects every overload; ``calc(double, double)`` selects
        one. A signature whose name is not overloaded matches by name alone.
        """
        name = method.split("(", maxsplit=1)[0].strip()
        named = [m for m in self.methods if name in (m.name, m.display_name)]
        if "(" not in method or len(named) <= 1:
            return named
        wanted = normalize_signature(method)
        return [m for m in named if normalize_signature(m.signature) == wanted]

    def find_method(self, method: str) -> MethodCounters | None:
        matches = self.find_methods(method)
        return matches[0] if matches else None


@dataclass
class JaCoCoReport:
    """Parsed JaCoCo report: all classes by dotted name."""

    classes: dict[str, ClassCoverage] = field(default_factory=dict)
    counters: dict[str, Counter] = field(default_factory=dict)

    def find_class(self, class_name: str) -> ClassCoverage | None:
        """Look up a class by dotted, slashed or simple name."""
        dotted = class_name.replace("/", ".").removesuffix(".java")
        found = self.classes.get(dotted)
        if found is not None:
            return found
        matches = [c for c in self.classes.values() if c.simple_name == dotted]
        return matches[0] if len(matches) == 1 else None


def _parse_class(class_elem: XmlElement) -> ClassCoverage:
    class_cov = ClassCoverage(
        name=class_elem.get("name", "").replace("/", "."),
        source_file=class_elem.get("sourcefilename", ""),
        counters=_collect_counters(class_elem),
    )
    for method_elem in class_elem.findall("method"):
        name = method_elem.get("name", "")
        if name == STATIC_INITIALIZER or SYNTHETIC_MARKER in name:
            continue
        class_cov.methods.append(
            MethodCounters(
                name=name,
                desc=method_elem.get("desc", ""),
                line=_int_attr(method_elem, "line"),
                counters=_collect_counters(method_elem),
            )
        )
    return class_cov


def parse_jacoco_xml(report_file: Path) -> JaCoCoReport:
    """Parse a JaCoCo XML report; unreadable reports yield an empty report."""
    try:
        tree = ElementTree.parse(report_file)
    except (DefusedParseError, OSError) as e:
        logger.error("Failed to parse JaCoCo XML %s: %s", report_file, e)
        return JaCoCoReport()

    root = tree.getroot()
    if root.tag != "report":
        logger.warning("JaCoCo XML root is not <report>: %s", root.tag)
        return JaCoCoReport()

    report = JaCoCoReport(counters=_collect_counters(root))
    for package in root.iter("package"):
        for class_elem in package.findall("class"):
            class_cov = _parse_class(class_elem)
            report.classes[class_cov.name] = class_cov
    return report


def find_report(module_path: Path) -> Path | None:
    """Return the first JaCoCo XML report present under *module_path*."""
    for candidate in JACOCO_PATHS:
        path = module_path / candidate
        if path.is_file():
            return path
    return None


def render_report_summary(report: JaCoCoReport) -> str:
    """Render project-wide totals per counter type."""
    if not report.counters:
        return "Coverage Summary: no counters reported"
    lines = ["Coverage Summary:"]
    for ctype in ("INSTRUCTION", "BRANCH", "LINE", "METHOD", "CLASS"):
        counter = report.counters.get(ctype)
        if counter is None:
            continue
        lines.append(
            f"  - {ctype}: {counter.percentage:.1f}% ({counter.covered}/{counter.total})"
        )
    return "\n".join(lines)
