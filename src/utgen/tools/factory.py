"""Wire every tool for one target into a registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from utgen.agents.method_queue import MethodQueue
from utgen.coverage.parser import CoverageParser, JaCoCoCoverageSource
from utgen.diagnostics.source import TreeSitterDiagnosticSource
from utgen.diagnostics.stabilizer import DiagnosticStabilizer
from utgen.tools.analyzer import CodeAnalyzerTools
from utgen.tools.build import MavenExecutor
from utgen.tools.compile_guard import CompileGuard
from utgen.tools.coverage import CoverageTools
from utgen.tools.filesystem import FileSystemTools
from utgen.tools.iterator import MethodIteratorTools
from utgen.tools.registry import ToolRegistry
from utgen.tools.surefire import SurefireReportTools
from utgen.tools.syntax import SyntaxTools

if TYPE_CHECKING:
    from utgen.config import UtgenConfig
    from utgen.coverage.parser import CoverageSource
    from utgen.diagnostics.source import DiagnosticSource
    from utgen.utils.paths import TargetLayout

logger = logging.getLogger(__name__)


@dataclass
class Toolbox:
    """The registry plus the stateful collaborators behind it."""

    registry: ToolRegistry
    guard: CompileGuard
    maven: MavenExecutor
    parser: CoverageParser
    coverage_source: CoverageSource
    queue: MethodQueue
    diagnostics: DiagnosticSource | None = None

    def close(self) -> None:
        if self.diagnostics is not None:
            self.diagnostics.close()


def build_toolbox(config: UtgenConfig, layout: TargetLayout) -> Toolbox:
    """Create and register all tools rooted at the target's project."""
    root = layout.project_root
    workflow = config.workflow

    registry = ToolRegistry()
    guard = CompileGuard(enabled=workflow.compile_guard)
    parser = CoverageParser(workflow.method_coverage_threshold)
    coverage_source = JaCoCoCoverageSource(root, parser)
    queue = MethodQueue()

    diagnostics: DiagnosticSource | None = None
    stabilizer: DiagnosticStabilizer | None = None
    if workflow.use_lsp:
        diagnostics = TreeSitterDiagnosticSource()
        stabilizer = DiagnosticStabilizer()

    maven = MavenExecutor(
        root,
        guard,
        maven_command=config.project.maven_command,
        timeout=workflow.build_timeout,
        coverage_goal=config.project.coverage_goal,
    )

    FileSystemTools(root, guard).register(registry)
    CodeAnalyzerTools(root).register(registry)
    SyntaxTools(root, guard, diagnostics=diagnostics, stabilizer=stabilizer).register(registry)
    maven.register(registry)
    CoverageTools(root, parser).register(registry)
    SurefireReportTools(root).register(registry)
    MethodIteratorTools(queue, layout, coverage_source).register(registry)

    logger.info("Registered %d tools for %s", len(registry.names), layout.class_name)
    return Toolbox(
        registry=registry,
        guard=guard,
        maven=maven,
        parser=parser,
        coverage_source=coverage_source,
        queue=queue,
        diagnostics=diagnostics,
    )
