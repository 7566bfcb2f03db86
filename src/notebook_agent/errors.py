"""Error taxonomy for the orchestration core.

Step-level errors (`ToolExecutionError`, `RepairExhaustedError`) are handled
inside a run. Plan- and oracle-level errors end the run as failed but are
still traced. `TraceWriteError` is never fatal.
"""

from __future__ import annotations

from typing import Any

from .schemas import ToolError


class NotebookAgentError(Exception):
    """Base class for every error raised by the agent core."""


class DuplicateToolError(NotebookAgentError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class PlanValidationError(NotebookAgentError):
    """The proposed plan was rejected as a whole before execution."""

    def __init__(self, message: str, *, step_index: int | None = None, tool_name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.step_index = step_index
        self.tool_name = tool_name


class ToolExecutionError(NotebookAgentError):
    """Structured failure of a single tool invocation."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_error(self) -> ToolError:
        return ToolError(code=self.code, message=self.message, details=self.details or None)


class RepairExhaustedError(NotebookAgentError):
    """A step kept failing after its last allowed attempt."""

    def __init__(self, step_index: int, tool_name: str, attempts: int, last_error: ToolError) -> None:
        super().__init__(
            f"Step {step_index} ({tool_name}) failed after {attempts} attempt(s): "
            f"{last_error.code}: {last_error.message}"
        )
        self.step_index = step_index
        self.tool_name = tool_name
        self.attempts = attempts
        self.last_error = last_error


class PlanningOracleError(NotebookAgentError):
    """The planning oracle itself failed (outage, unparseable output)."""


class SynthesisOracleError(NotebookAgentError):
    """The synthesis oracle itself failed."""


class TraceWriteError(NotebookAgentError):
    """Persisting a trace failed. Degrades observability only."""


class TraceNotFoundError(NotebookAgentError, LookupError):
    def __init__(self, trace_id: str) -> None:
        super().__init__(f"Trace not found: {trace_id}")
        self.trace_id = trace_id
