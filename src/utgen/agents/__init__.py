"""Run-level collaborators: method queue, phases, pre-check, feedback and statistics."""

from utgen.agents.feedback import CoverageFeedbackEngine, FeedbackResult
from utgen.agents.method_queue import MethodEntry, MethodQueue, MethodQueueError, MethodStatus
from utgen.agents.phases import PhaseManager, WorkflowPhase
from utgen.agents.precheck import PreCheckExecutor, PreCheckResult
from utgen.agents.stats import IterationStats, MethodStats

__all__ = [
    "CoverageFeedbackEngine",
    "FeedbackResult",
    "IterationStats",
    "MethodEntry",
    "MethodQueue",
    "MethodQueueError",
    "MethodStats",
    "MethodStatus",
    "PhaseManager",
    "PreCheckExecutor",
    "PreCheckResult",
    "WorkflowPhase",
]
