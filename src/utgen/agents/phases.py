"""Workflow phases and the tool groups each one exposes to the model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from utgen.tools.registry import ALL_CAPABILITIES, Capability

logger = logging.getLogger(__name__)


class WorkflowPhase(Enum):
    """A stage of test generation, bound to the capabilities a session may use.

    Verification tools are listed for completeness; the pipeline drives them
    directly, so generation and repair sessions never see them.
    """

    INIT = (
        "init",
        frozenset({Capability.FILE_SYSTEM, Capability.CODE_ANALYZER}),
    )
    ANALYSIS = (
        "analysis",
        frozenset(
            {
                Capability.CODE_ANALYZER,
                Capability.FILE_SYSTEM,
                Capability.METHOD_ITERATOR,
                Capability.COVERAGE,
                Capability.BUILD,
            }
        ),
    )
    GENERATION = (
        "generation",
        frozenset({Capability.FILE_SYSTEM, Capability.CODE_ANALYZER}),
    )
    VERIFICATION = (
        "verification",
        frozenset(
            {
                Capability.SYNTAX_CHECKER,
                Capability.LSP_CHECKER,
                Capability.BUILD,
                Capability.COVERAGE,
                Capability.TEST_REPORT,
                Capability.FILE_SYSTEM,
            }
        ),
    )
    REPAIR = (
        "repair",
        frozenset(
            {
                Capability.FILE_SYSTEM,
                Capability.CODE_ANALYZER,
                Capability.TEST_REPORT,
                Capability.SYNTAX_CHECKER,
            }
        ),
    )
    FULL = ("full", ALL_CAPABILITIES)

    def __init__(self, key: str, capabilities: frozenset[Capability]) -> None:
        self.key = key
        self.capabilities = capabilities

    def next(self) -> WorkflowPhase:
        """Natural successor; REPAIR and FULL are terminal."""
        successors = {
            WorkflowPhase.INIT: WorkflowPhase.GENERATION,
            WorkflowPhase.ANALYSIS: WorkflowPhase.GENERATION,
            WorkflowPhase.GENERATION: WorkflowPhase.VERIFICATION,
            WorkflowPhase.VERIFICATION: WorkflowPhase.REPAIR,
        }
        return successors.get(self, self)


@dataclass
class PhaseContext:
    current: WorkflowPhase
    transitions: int = 0

    def move_to(self, phase: WorkflowPhase) -> bool:
        """Record *phase* as current; return True when it changed."""
        if phase is self.current:
            return False
        self.current = phase
        self.transitions += 1
        return True


class PhaseManager:
    """Hands out the capability set for each phase.

    The registry itself is never touched; sessions filter it with the set
    they were created with. With switching disabled every phase gets all
    capabilities.
    """

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self.context = PhaseContext(WorkflowPhase.ANALYSIS if enabled else WorkflowPhase.FULL)

    @property
    def current_phase(self) -> WorkflowPhase:
        return self.context.current

    def switch_to_phase(self, phase: WorkflowPhase) -> frozenset[Capability]:
        if not self.enabled:
            return ALL_CAPABILITIES
        previous = self.context.current
        if self.context.move_to(phase):
            logger.info("Switching phase: %s -> %s", previous.key, phase.key)
        return phase.capabilities

    def switch_to_next_phase(self) -> frozenset[Capability]:
        return self.switch_to_phase(self.context.current.next())
