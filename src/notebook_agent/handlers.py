"""Protocol adapter for incoming requests.

Keep this layer thin so transport changes do not affect the orchestration core.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache

from pydantic import BaseModel, Field

from notebook_tools import NotebookResolver, build_registry

from .orchestrator import Orchestrator
from .registry import ToolRegistry
from .schemas import AgentTrace, Citation, RunOutcome, ToolError
from .settings import get_settings
from .trace import FileTraceRecorder


class AskRequest(BaseModel):
    query: str = Field(..., min_length=1)
    notebook_id: str = Field(..., min_length=1)
    prior_trace_id: str | None = None
    timeout_s: float | None = Field(default=None, gt=0)


class AskResponse(BaseModel):
    answer: str
    trace_id: str
    outcome: RunOutcome
    citations: list[Citation] = Field(default_factory=list)
    error: ToolError | None = None
    warnings: list[str] = Field(default_factory=list)


@lru_cache(maxsize=1)
def get_registry() -> ToolRegistry:
    return build_registry()


def build_orchestrator() -> Orchestrator:
    settings = get_settings()
    return Orchestrator.from_settings(settings, get_registry(), FileTraceRecorder(settings.trace_dir))


async def handle_ask(payload: AskRequest) -> AskResponse:
    # Construct the orchestrator per request; the registry is shared and read-only.
    settings = get_settings()
    orchestrator = build_orchestrator()
    context = await asyncio.to_thread(NotebookResolver(settings).resolve, payload.notebook_id)
    result = await orchestrator.run(
        payload.query,
        context,
        timeout_s=payload.timeout_s,
        prior_trace_id=payload.prior_trace_id,
    )
    return AskResponse(
        answer=result.answer,
        trace_id=result.trace_id,
        outcome=result.outcome,
        citations=result.citations,
        error=result.error,
        warnings=result.warnings,
    )


def read_trace(trace_id: str) -> AgentTrace:
    return FileTraceRecorder(get_settings().trace_dir).read(trace_id)
