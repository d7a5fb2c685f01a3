"""Diagnostic collaborators that push results asynchronously per document."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum

from utgen.analysis.java_source import parse_java

logger = logging.getLogger(__name__)


class DiagnosticSeverity(IntEnum):
    """LSP severity levels."""

    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


@dataclass(frozen=True)
class Diagnostic:
    severity: DiagnosticSeverity
    message: str
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        return f"Line {self.line}: {self.message}"


@dataclass
class _DocumentState:
    diagnostics: list[Diagnostic] = field(default_factory=list)
    last_update: float = 0.0
    batches: int = 0
    first_arrival: threading.Event = field(default_factory=threading.Event)


class DiagnosticCache:
    """Latest diagnostics per URI, written from collaborator threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[str, _DocumentState] = {}

    def expect(self, uri: str) -> threading.Event:
        """Reset *uri* before (re)opening it; returns its first-arrival signal."""
        with self._lock:
            state = _DocumentState()
            self._documents[uri] = state
            return state.first_arrival

    def publish(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        """Replace the cached set for *uri* (one push from the collaborator)."""
        with self._lock:
            state = self._documents.setdefault(uri, _DocumentState())
            state.diagnostics = list(diagnostics)
            state.last_update = time.monotonic()
            state.batches += 1
            state.first_arrival.set()
        logger.debug("Diagnostics pushed for %s: %d item(s)", uri, len(diagnostics))

    def get(self, uri: str) -> list[Diagnostic]:
        with self._lock:
            state = self._documents.get(uri)
            return list(state.diagnostics) if state else []

    def last_update(self, uri: str) -> float:
        with self._lock:
            state = self._documents.get(uri)
            return state.last_update if state else 0.0

    def batches(self, uri: str) -> int:
        with self._lock:
            state = self._documents.get(uri)
            return state.batches if state else 0


class DiagnosticSource(ABC):
    """Something that accepts documents and later pushes diagnostics for them."""

    def __init__(self) -> None:
        self.cache = DiagnosticCache()

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in tool output."""

    @abstractmethod
    def open_document(self, uri: str, content: str) -> None:
        """Start analysis of *content*; results arrive later via ``self.cache``."""

    def close(self) -> None:
        """Release collaborator resources."""


class TreeSitterDiagnosticSource(DiagnosticSource):
    """Analyzes Java documents on a worker thread.

    Parse errors are pushed first; structural warnings follow in a second
    batch, the way an indexing language server refines its results.
    """

    def __init__(self, *, batch_delay: float = 0.05) -> None:
        super().__init__()
        self._batch_delay = batch_delay
        self._threads: list[threading.Thread] = []

    @property
    def name(self) -> str:
        return "tree-sitter"

    def open_document(self, uri: str, content: str) -> None:
        worker = threading.Thread(
            target=self._analyze, args=(uri, content), name=f"diagnostics:{uri}", daemon=True
        )
        self._threads = [t for t in self._threads if t.is_alive()]
        self._threads.append(worker)
        worker.start()

    def _analyze(self, uri: str, content: str) -> None:
        try:
            source = parse_java(content)
        except Exception:
            logger.exception("Diagnostic analysis failed for %s", uri)
            self.cache.publish(
                uri, [Diagnostic(DiagnosticSeverity.ERROR, "internal analysis failure")]
            )
            return

        errors = [
            Diagnostic(DiagnosticSeverity.ERROR, issue.message, issue.line, issue.column)
            for issue in source.syntax_errors
        ]
        self.cache.publish(uri, errors)

        time.sleep(self._batch_delay)
        warnings: list[Diagnostic] = []
        if not source.classes:
            warnings.append(Diagnostic(DiagnosticSeverity.WARNING, "no type declaration found"))
        if "@Test" not in content:
            warnings.append(Diagnostic(DiagnosticSeverity.WARNING, "no @Test methods found"))
        if warnings:
            self.cache.publish(uri, errors + warnings)

    def close(self) -> None:
        for worker in self._threads:
            worker.join(timeout=1.0)
        self._threads.clear()
