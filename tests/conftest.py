from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pydantic import BaseModel, ConfigDict

from notebook_agent.errors import ToolExecutionError, TraceNotFoundError, TraceWriteError
from notebook_agent.registry import ToolRegistry
from notebook_agent.schemas import AgentTrace, ProposedStep
from notebook_agent.state import NotebookContext
from notebook_agent.tools import Tool


class EchoInput(BaseModel):
    model_config = ConfigDict(extra="forbid")
    text: str


class EchoTool(Tool):
    """Succeeds and returns one citable chunk from `doc.pdf`."""

    name = "echo"
    description = "Echo text back as a citable chunk."
    input_model = EchoInput

    async def run(self, payload: EchoInput, context: NotebookContext) -> dict[str, Any]:
        return {
            "text": payload.text,
            "sources": [{"source": "doc.pdf", "chunk_index": 0, "page": "2", "text": payload.text}],
        }


class SqlInput(BaseModel):
    model_config = ConfigDict(extra="forbid")
    sql: str


class FlakySqlTool(Tool):
    """Repairable; only `SELECT 1` is valid SQL."""

    name = "sql"
    description = "Run SQL."
    input_model = SqlInput
    repairable = True

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def run(self, payload: SqlInput, context: NotebookContext) -> dict[str, Any]:
        self.calls.append(payload.sql)
        if payload.sql != "SELECT 1":
            raise ToolExecutionError("SQL_ERROR", f"syntax error near {payload.sql!r}")
        return {"rows": [[1]], "sources": [{"source": "table:t", "chunk_index": 0, "text": payload.sql}]}


class EmptyInput(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BrokenTool(Tool):
    name = "broken"
    description = "Always fails."
    input_model = EmptyInput

    def __init__(self) -> None:
        self.calls = 0

    async def run(self, payload: EmptyInput, context: NotebookContext) -> dict[str, Any]:
        self.calls += 1
        raise ToolExecutionError("BOOM", "tool exploded")


class SlowTool(Tool):
    name = "slow"
    description = "Sleeps longer than any test timeout."
    input_model = EmptyInput

    async def run(self, payload: EmptyInput, context: NotebookContext) -> dict[str, Any]:
        await asyncio.sleep(5)
        return {}


class ScriptedPlanningOracle:
    def __init__(
        self,
        steps: list[dict[str, Any]] | None = None,
        repairs: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.steps = steps or []
        self.repairs = list(repairs or [])
        self.error = error
        self.propose_calls: list[dict[str, Any]] = []
        self.repair_calls: list[tuple[Any, Any]] = []

    async def propose_plan(self, query, tool_catalog, notebook_summary, prior_trace=None):
        self.propose_calls.append(
            {"query": query, "catalog": tool_catalog, "summary": notebook_summary, "prior": prior_trace}
        )
        if self.error is not None:
            raise self.error
        return [ProposedStep(**step) for step in self.steps]

    async def repair_step(self, original_call, error):
        self.repair_calls.append((original_call, error))
        if self.repairs:
            return ProposedStep(**self.repairs.pop(0))
        return ProposedStep(tool_name=original_call.tool_name, arguments=dict(original_call.arguments))


class ScriptedSynthesisOracle:
    def __init__(self, text: str = "Answer [cite:doc.pdf|chunk=0|page=2]", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[tuple[str, list]] = []

    async def synthesize(self, query, observations):
        self.calls.append((query, list(observations)))
        if self.error is not None:
            raise self.error
        return self.text


class MemoryRecorder:
    def __init__(self) -> None:
        self.traces: dict[str, AgentTrace] = {}
        self.writes = 0

    def write(self, trace: AgentTrace) -> None:
        self.writes += 1
        if trace.trace_id in self.traces:
            raise TraceWriteError(f"Trace already persisted: {trace.trace_id}")
        self.traces[trace.trace_id] = trace

    def read(self, trace_id: str) -> AgentTrace:
        try:
            return self.traces[trace_id]
        except KeyError:
            raise TraceNotFoundError(trace_id) from None


class FailingRecorder(MemoryRecorder):
    def write(self, trace: AgentTrace) -> None:
        self.writes += 1
        raise TraceWriteError("disk full")


@pytest.fixture
def context() -> NotebookContext:
    return NotebookContext(notebook_id="nb-1", summary="Notebook nb-1. Files: doc.pdf.")


@pytest.fixture
def sql_tool() -> FlakySqlTool:
    return FlakySqlTool()


@pytest.fixture
def broken_tool() -> BrokenTool:
    return BrokenTool()


@pytest.fixture
def registry(sql_tool: FlakySqlTool, broken_tool: BrokenTool) -> ToolRegistry:
    return ToolRegistry([EchoTool(), sql_tool, broken_tool, SlowTool()]).close()
