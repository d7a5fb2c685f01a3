"""Session prompts: the system instruction and the per-mode task messages.

Per-method generation and repair prompts live in
:mod:`utgen.pipeline.fix_prompts`; this module covers everything else a
session is started with.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from utgen.agents.feedback import FeedbackResult
    from utgen.agents.precheck import PreCheckResult
    from utgen.utils.paths import TargetLayout

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_KEY = "system"

DEFAULT_SYSTEM_PROMPT = """\
You are an expert Java QA engineer. You write JUnit 5 unit tests with high \
line and branch coverage for existing Maven projects.

Rules:
- Use org.junit.jupiter.api.Test, @BeforeEach for setup and \
org.junit.jupiter.api.Assertions (assertEquals, assertThrows, assertAll).
- Mock collaborators with Mockito (@ExtendWith(MockitoExtension.class), @Mock, \
@InjectMocks) only when the class under test needs them.
- Keep the test class in the same package as the class under test.
- Name tests after the behaviour they check, e.g. addReturnsSumOfTwoNumbers.
- Never modify production code. Never delete existing tests.
- Always use the provided tools to read and write files; paths are relative \
to the project root.
"""

_SYMBOL_LEGEND = """\
Symbols in the coverage listing:
- ✗ no coverage: the method needs new tests
- ◐ partial coverage: add tests for the uncovered branches
- ✓ fully covered: skip"""


@dataclass
class PromptSection:
    """A labelled block of content within a rendered prompt."""

    label: str
    content: str


def _join_sections(sections: list[PromptSection]) -> str:
    blocks = [f"## {s.label}\n\n{s.content}" for s in sections if s.content]
    return "\n\n---\n\n".join(blocks)


def load_system_prompt(prompts: dict[str, str], project_root: Path) -> str:
    """The configured system prompt file, or the built-in default."""
    configured = prompts.get(SYSTEM_PROMPT_KEY)
    if not configured:
        return DEFAULT_SYSTEM_PROMPT
    path = Path(configured)
    if not path.is_absolute():
        path = project_root / path
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Cannot read system prompt %s (%s); using the default", path, exc)
        return DEFAULT_SYSTEM_PROMPT
    return text if text.strip() else DEFAULT_SYSTEM_PROMPT


def _target_section(layout: TargetLayout) -> PromptSection:
    return PromptSection(
        label="Target",
        content=(
            f"Source file: {layout.relative(layout.source_file)}\n"
            f"Class: {layout.class_name}\n"
            f"Test file: {layout.relative(layout.test_file)}\n"
            f"Test class: {layout.test_class_name}\n\n"
            "Write the test file to exactly this path."
        ),
    )


def _precheck_section(precheck: PreCheckResult) -> PromptSection:
    lines = ["Project compiled successfully."]
    if precheck.has_existing_tests:
        lines.append("An existing test file was found; read it before adding tests.")
    else:
        lines.append("No test file exists yet; tests are needed for every method.")
    if precheck.coverage_info_text:
        lines.extend(["", "```", precheck.coverage_info_text, "```", "", _SYMBOL_LEGEND])
    return PromptSection(label="Pre-check Results", content="\n".join(lines))


def build_traditional_prompt(layout: TargetLayout, precheck: PreCheckResult) -> str:
    """Single-session task: cover the whole class, verifying as the model goes."""
    workflow = PromptSection(
        label="Workflow",
        content=(
            "1. Read the source file and, if present, the existing test file.\n"
            "2. Write tests for the uncovered methods. Append to existing tests; do "
            "not overwrite them.\n"
            "3. Run check_syntax on the test file and fix every error it reports.\n"
            "4. Run compile_project, then execute_test with the test class name.\n"
            "5. Use get_method_coverage_details to confirm the coverage gain and "
            "repeat for methods that are still below target.\n"
            "When all methods are covered, reply with a short summary."
        ),
    )
    return _join_sections([_target_section(layout), _precheck_section(precheck), workflow])


def build_init_prompt(layout: TargetLayout, precheck: PreCheckResult) -> str:
    """First iterative session: only make sure the test skeleton exists."""
    task = PromptSection(
        label="Task",
        content=(
            "1. Check whether the test file exists (file_exists).\n"
            "2. Read the source file (read_file).\n"
            "3. If the test file does not exist, create it with write_file: package "
            "declaration, imports and an empty test class.\n\n"
            "Do not write any test methods yet and do not call the method iteration "
            "tools; methods are handed to you one at a time afterwards.\n"
            'When the skeleton exists, reply "skeleton ready".'
        ),
    )
    return _join_sections([_target_section(layout), _precheck_section(precheck), task])


def build_fallback_prompt(layout: TargetLayout, iteration: int) -> str:
    """Model-driven iteration used when no per-method data is available."""
    setup = ""
    if iteration == 1:
        setup = "0. Call init_method_iteration once to build the method list.\n"
    steps = PromptSection(
        label=f"Method iteration #{iteration}",
        content=(
            setup
            + "1. get_next_method. If it answers ITERATION_COMPLETE, call "
            'get_iteration_progress and reply "ITERATION_COMPLETE".\n'
            "2. Read the current test file.\n"
            "3. Write tests for this method only, appending to the test file.\n"
            "4. check_syntax on the test file; fix errors until it passes.\n"
            "5. compile_project, then execute_test with the test class name.\n"
            "6. get_single_method_coverage for the method.\n"
            "7. complete_current_method with PASS, FAIL or SKIP and the coverage.\n"
            "Then stop and report the method name and its coverage."
        ),
    )
    return _join_sections([_target_section(layout), steps])


def build_feedback_hints(feedback: FeedbackResult | None, method_name: str) -> str:
    """Suggestions from the pre-check feedback cycle that concern *method_name*."""
    if feedback is None or feedback.target_met:
        return ""
    suggestions = feedback.suggestions_for(method_name)
    if not suggestions:
        return ""
    lines = [f"- [{s.priority.name}] {s.description}" for s in suggestions]
    return _join_sections([PromptSection(label="Coverage feedback", content="\n".join(lines))])
