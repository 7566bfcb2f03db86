"""Notebook question-answering agent: plan, execute with repair, synthesize, trace."""

from .errors import (
    DuplicateToolError,
    NotebookAgentError,
    PlanningOracleError,
    PlanValidationError,
    RepairExhaustedError,
    SynthesisOracleError,
    ToolExecutionError,
    TraceNotFoundError,
    TraceWriteError,
)
from .orchestrator import Orchestrator, RunResult
from .registry import ToolRegistry
from .schemas import AgentTrace, Citation, Observation, Plan, RunOutcome, ToolCall, ToolDefinition
from .state import NotebookContext
from .tools import Tool

__version__ = "0.1.0"

__all__ = [
    "AgentTrace",
    "Citation",
    "DuplicateToolError",
    "NotebookAgentError",
    "NotebookContext",
    "Observation",
    "Orchestrator",
    "Plan",
    "PlanValidationError",
    "PlanningOracleError",
    "RepairExhaustedError",
    "RunOutcome",
    "RunResult",
    "SynthesisOracleError",
    "Tool",
    "ToolCall",
    "ToolDefinition",
    "ToolExecutionError",
    "ToolRegistry",
    "TraceNotFoundError",
    "TraceWriteError",
]
