"""Configuration parsing from ``.utgen.yml``."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE = ".utgen.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_MAX_PERCENT = 100.0
_MAX_TEMPERATURE = 2.0


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


@dataclass
class ProjectConfig:
    """Project-level configuration."""

    root: str
    """Project root directory (the directory holding ``pom.xml``)."""

    maven_command: str = "mvn"
    """Maven executable (``mvn`` or a wrapper such as ``./mvnw``)."""

    coverage_goal: str = "org.jacoco:jacoco-maven-plugin:report"
    """Goal appended to test runs to refresh the JaCoCo XML report (empty disables)."""


@dataclass
class LLMConfig:
    """LLM configuration."""

    provider: str = "openai"
    """LLM provider name (openai, anthropic, ollama, etc.)."""

    model: str = ""
    """Model identifier passed to LiteLLM."""

    api_key: str = ""
    """API key for the provider (supports ${ENV_VAR} expansion)."""

    base_url: str = ""
    """Custom base URL (useful for Ollama or proxied endpoints)."""

    temperature: float = 0.2
    """Default sampling temperature."""

    max_tokens: int = 4096
    """Default maximum tokens to generate."""

    requests_per_minute: int = 60
    """Rate limit: maximum requests per minute."""

    max_retries: int = 3
    """Maximum number of retry attempts on transient failures."""

    timeout: float = 120.0
    """Per-request timeout in seconds."""

    @property
    def is_configured(self) -> bool:
        """Return True when enough info is present for generation."""
        if self.provider == "ollama":
            return bool(self.model)
        return bool(self.model and self.api_key)


@dataclass
class WorkflowConfig:
    """Generation workflow settings."""

    coverage_threshold: float = 80.0
    """Class-level line coverage target (percent)."""

    method_coverage_threshold: float = 80.0
    """Per-method line coverage target (percent); drives priorities and skips."""

    iterative_mode: bool = True
    """Process one method at a time instead of a single whole-class session."""

    use_lsp: bool = False
    """Run the stabilized diagnostic check after the syntax check."""

    phase_switching: bool = True
    """Restrict each model session to the tool groups of its phase."""

    skip_low_priority: bool = False
    """Skip every P2 method (already above the method threshold) up front."""

    max_method_retries: int = 3
    """Outer generation attempts per method."""

    max_verification_retries: int = 3
    """Inner repair attempts per verification failure."""

    max_fallback_iterations: int = 20
    """Session cap for the fallback loop used when no coverage data exists."""

    compile_guard: bool = True
    """Refuse builds while modified Java files have not passed a syntax check."""

    build_timeout: float = 300.0
    """Hard timeout in seconds for every Maven invocation."""

    feedback_enabled: bool = True
    """Run the coverage feedback analysis during the pre-check."""


@dataclass
class ReportConfig:
    """Run report settings."""

    output_dir: str = "result"
    """Directory (relative to the project root) receiving Markdown run reports."""


@dataclass
class UtgenConfig:
    """Top-level configuration container."""

    project: ProjectConfig
    llm: LLMConfig
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    prompts: dict[str, str] = field(default_factory=dict)
    """Prompt name -> file path overrides (relative paths resolve against the root)."""

    raw: dict[str, Any] = field(default_factory=dict)
    """The raw parsed YAML, for access to custom keys."""


def _parse_workflow_config(raw: dict[str, Any]) -> WorkflowConfig:
    workflow_raw = _section(raw, "workflow")
    defaults = WorkflowConfig()
    return WorkflowConfig(
        coverage_threshold=float(
            workflow_raw.get("coverage_threshold", defaults.coverage_threshold)
        ),
        method_coverage_threshold=float(
            workflow_raw.get("method_coverage_threshold", defaults.method_coverage_threshold)
        ),
        iterative_mode=bool(workflow_raw.get("iterative_mode", defaults.iterative_mode)),
        use_lsp=bool(workflow_raw.get("use_lsp", defaults.use_lsp)),
        phase_switching=bool(workflow_raw.get("phase_switching", defaults.phase_switching)),
        skip_low_priority=bool(workflow_raw.get("skip_low_priority", defaults.skip_low_priority)),
        max_method_retries=int(
            workflow_raw.get("max_method_retries", defaults.max_method_retries)
        ),
        max_verification_retries=int(
            workflow_raw.get("max_verification_retries", defaults.max_verification_retries)
        ),
        max_fallback_iterations=int(
            workflow_raw.get("max_fallback_iterations", defaults.max_fallback_iterations)
        ),
        compile_guard=bool(workflow_raw.get("compile_guard", defaults.compile_guard)),
        build_timeout=float(workflow_raw.get("build_timeout", defaults.build_timeout)),
        feedback_enabled=bool(workflow_raw.get("feedback_enabled", defaults.feedback_enabled)),
    )


def _parse_prompts(raw: dict[str, Any]) -> dict[str, str]:
    return {str(k): str(v) for k, v in _section(raw, "prompts").items() if v}


def load_config(root: str | Path) -> UtgenConfig:
    """Load and parse the complete ``.utgen.yml`` configuration.

    Falls back to defaults and ``UTGEN_LLM_*`` environment variables when the
    YAML file is missing or incomplete.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILE

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        else:
            logger.warning("Ignoring %s: top level is not a mapping", config_file)

    project_raw = _section(raw, "project")
    project = ProjectConfig(
        root=str(project_raw.get("root", root_path)),
        maven_command=str(project_raw.get("maven_command", "mvn")),
        coverage_goal=str(
            project_raw.get("coverage_goal", "org.jacoco:jacoco-maven-plugin:report")
        ),
    )

    llm_raw = _section(raw, "llm")
    llm = LLMConfig(
        provider=str(llm_raw.get("provider", os.environ.get("UTGEN_LLM_PROVIDER", "openai"))),
        model=str(llm_raw.get("model", os.environ.get("UTGEN_LLM_MODEL", ""))),
        api_key=str(llm_raw.get("api_key", os.environ.get("UTGEN_LLM_API_KEY", ""))),
        base_url=str(llm_raw.get("base_url", os.environ.get("UTGEN_LLM_BASE_URL", ""))),
        temperature=float(llm_raw.get("temperature", 0.2)),
        max_tokens=int(llm_raw.get("max_tokens", 4096)),
        requests_per_minute=int(llm_raw.get("requests_per_minute", 60)),
        max_retries=int(llm_raw.get("max_retries", 3)),
        timeout=float(llm_raw.get("timeout", 120.0)),
    )

    report_raw = _section(raw, "report")
    report = ReportConfig(output_dir=str(report_raw.get("output_dir", "result")))

    return UtgenConfig(
        project=project,
        llm=llm,
        workflow=_parse_workflow_config(raw),
        report=report,
        prompts=_parse_prompts(raw),
        raw=raw,
    )


def _validate_llm_config(llm: LLMConfig) -> list[str]:
    """Validate LLM configuration fields."""
    errors: list[str] = []

    if not llm.model:
        errors.append("llm.model is required (or set UTGEN_LLM_MODEL)")

    if llm.provider != "ollama" and not llm.api_key:
        errors.append("llm.api_key is required (or set UTGEN_LLM_API_KEY)")

    if llm.temperature < 0 or llm.temperature > _MAX_TEMPERATURE:
        errors.append(
            f"llm.temperature should be between 0 and {_MAX_TEMPERATURE} "
            f"(got: {llm.temperature})"
        )

    if llm.max_tokens < 1:
        errors.append(f"llm.max_tokens must be positive (got: {llm.max_tokens})")

    if llm.timeout <= 0:
        errors.append(f"llm.timeout must be positive (got: {llm.timeout})")

    return errors


def _validate_workflow_config(workflow: WorkflowConfig) -> list[str]:
    errors: list[str] = []

    for name in ("coverage_threshold", "method_coverage_threshold"):
        value = getattr(workflow, name)
        if value < 0 or value > _MAX_PERCENT:
            errors.append(f"workflow.{name} must be between 0 and 100 (got: {value})")

    for name in (
        "max_method_retries",
        "max_verification_retries",
        "max_fallback_iterations",
    ):
        value = getattr(workflow, name)
        if value < 1:
            errors.append(f"workflow.{name} must be >= 1 (got: {value})")

    if workflow.build_timeout <= 0:
        errors.append(f"workflow.build_timeout must be positive (got: {workflow.build_timeout})")

    return errors


def validate_config(config: UtgenConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.project.root:
        errors.append("project.root is required")

    errors.extend(_validate_llm_config(config.llm))
    errors.extend(_validate_workflow_config(config.workflow))

    root = Path(config.project.root)
    for name, path in config.prompts.items():
        prompt_file = Path(path) if Path(path).is_absolute() else root / path
        if not prompt_file.is_file():
            errors.append(f"prompts.{name}: file not found: {path}")

    return errors
