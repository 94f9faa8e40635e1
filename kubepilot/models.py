"""Pydantic models: gateway messages, plans, reports, policy verdicts, API bodies."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ViolationSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# --- AI provider gateway ---

class GenerationOptions(BaseModel):
    """Per-call generation knobs."""
    model_config = ConfigDict(frozen=True)

    temperature: float = 0.7
    max_tokens: int = 2000
    model: str = ""
    system_prompt: str = ""
    stop_sequences: tuple[str, ...] = ()


class GenerationRequest(BaseModel):
    """A single prompt sent to a provider. Built per call, never mutated."""
    model_config = ConfigDict(frozen=True)

    prompt: str
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class GenerationResponse(BaseModel):
    content: str
    model: str
    tokens_used: int = 0
    finish_reason: str = "stop"


# --- Plans ---

class Command(BaseModel):
    """One candidate command. Position in the plan is execution order."""
    model_config = ConfigDict(frozen=True)

    command: str
    description: str = ""
    safe: bool = True
    dry_run: bool = False


class Plan(BaseModel):
    """Structured, reviewable set of candidate commands."""
    model_config = ConfigDict(frozen=True)

    summary: str
    commands: list[Command] = Field(min_length=1)
    warnings: list[str] = Field(default_factory=list)
    requires_auth: bool = False
    dry_run: bool = True

    def render(self) -> str:
        """Human-readable preview of the plan."""
        lines = [self.summary, ""]
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"  * {w}" for w in self.warnings)
            lines.append("")
        lines.append("Commands to execute:")
        for i, cmd in enumerate(self.commands, start=1):
            marker = "safe" if cmd.safe else "UNSAFE"
            lines.append(f"{i}. [{marker}] {cmd.description}")
            lines.append(f"   {cmd.command}")
        if self.dry_run:
            lines.append("")
            lines.append("(Dry-run mode - no changes will be applied)")
        return "\n".join(lines)

    def execute(self, executor, gate=None, approve_unsafe=False) -> "ExecutionResult":
        """Run the commands in order. See executor.run_plan."""
        from kubepilot.executor import run_plan

        return run_plan(self, executor, gate=gate, approve_unsafe=approve_unsafe)


class ExecutionResult(BaseModel):
    executed_commands: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# --- Diagnostics ---

class Issue(BaseModel):
    """A single detected problem with a resource."""
    severity: Severity
    type: str = ""
    resource: str
    description: str
    details: dict[str, Any] | None = None


class Remediation(BaseModel):
    title: str
    description: str
    command: str
    confidence: Confidence = Confidence.MEDIUM
    safe: bool = True


class Report(BaseModel):
    """Result of one diagnostic run."""
    model_config = ConfigDict(frozen=True)

    summary: str
    issues: list[Issue] = Field(default_factory=list)
    remediations: list[Remediation] = Field(default_factory=list)
    health_score: int = Field(default=100, ge=0, le=100)


# --- Policy gate ---

class Violation(BaseModel):
    policy: str
    severity: ViolationSeverity
    message: str


class ValidationResult(BaseModel):
    """Allow/deny verdict. allowed is False exactly when violations exist."""
    allowed: bool = True
    violations: list[Violation] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _allowed_matches_violations(self):
        if self.allowed == bool(self.violations):
            raise ValueError("allowed must be False if and only if violations is non-empty")
        return self


# --- Explain ---

class Explanation(BaseModel):
    query: str
    answer: str
    related_commands: list[str] = Field(default_factory=list)
    tip: str = ""


# --- API bodies ---

class PlanRequest(BaseModel):
    """Request body for POST /api/v1/plan and /api/v1/plan/execute."""
    query: str = Field(min_length=1)
    namespace: str | None = None
    dry_run: bool | None = None
    approve_unsafe: bool = False


class PlanResponse(BaseModel):
    plan: Plan
    validations: list[ValidationResult] = Field(default_factory=list)
    executable: bool = True


class ExecuteResponse(BaseModel):
    plan: Plan
    result: ExecutionResult


class DiagnoseRequest(BaseModel):
    """Request body for POST /api/v1/diagnose."""
    resource_kind: str = ""
    resource_name: str | None = None
    namespace: str | None = None


class ValidateRequest(BaseModel):
    command: str


class ExplainRequest(BaseModel):
    query: str = Field(min_length=1)
    namespace: str | None = None


class PluginInstallRequest(BaseModel):
    name: str


class PluginInfo(BaseModel):
    name: str
    version: str
    description: str


class HealthResponse(BaseModel):
    """Response body for GET /api/v1/health."""
    status: str
    ai_provider: str = ""
    namespace: str = ""
    policy_enabled: bool = True
    plugins: int = 0
