"""Core data model shared by planner, executor, synthesizer and trace store.

Every model here is frozen: plans, observations and sealed traces are values.
The in-progress trace lives in `state.TraceRecord` until it is sealed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ToolError(BaseModel):
    """Normalized error payload recorded on failed observations."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    details: dict[str, Any] | None = None


class ToolDefinition(BaseModel):
    """Catalog entry handed to the planning oracle."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    description: str
    parameter_schema: dict[str, Any]
    repairable: bool = False


class ProposedStep(BaseModel):
    """One step as returned by the planning oracle, before validation."""

    tool_name: str = Field(..., min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)
    required: bool = False


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    step_index: int = Field(..., ge=0)
    required: bool = False


class Plan(BaseModel):
    model_config = ConfigDict(frozen=True)

    steps: tuple[ToolCall, ...] = ()

    def tool_names(self) -> list[str]:
        return [step.tool_name for step in self.steps]


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Observation(BaseModel):
    """Outcome of one attempt at one plan step."""

    model_config = ConfigDict(frozen=True)

    step_index: int = Field(..., ge=0)
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    status: StepStatus
    result: Any | None = None
    error: ToolError | None = None
    attempt_count: int = Field(default=1, ge=1)
    duration_ms: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_status_payload(self) -> "Observation":
        if self.status is StepStatus.SUCCEEDED and (self.error is not None or self.result is None):
            raise ValueError("A succeeded observation carries a result and no error.")
        if self.status is StepStatus.FAILED and (self.error is None or self.result is not None):
            raise ValueError("A failed observation carries an error and no result.")
        return self

    @property
    def succeeded(self) -> bool:
        return self.status is StepStatus.SUCCEEDED


class Citation(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_identifier: str
    page_or_section: str | None = None
    chunk_index: int = Field(..., ge=0)
    text_snippet: str = ""


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    COMPLETED_WITH_PARTIAL_FAILURES = "completed_with_partial_failures"
    FAILED = "failed"


class AgentTrace(BaseModel):
    """Sealed, immutable record of one orchestration run."""

    model_config = ConfigDict(frozen=True)

    trace_id: str
    query: str
    notebook_id: str
    plan: Plan | None = None
    observations: tuple[Observation, ...] = ()
    final_answer: str = ""
    citations: tuple[Citation, ...] = ()
    started_at: str
    completed_at: str
    duration_ms: int = 0
    outcome: RunOutcome
    error: ToolError | None = None
    oracle_calls: tuple[dict[str, Any], ...] = ()

    def observations_for(self, step_index: int) -> list[Observation]:
        return [obs for obs in self.observations if obs.step_index == step_index]
