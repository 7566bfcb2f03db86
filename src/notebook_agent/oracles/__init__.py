"""Oracle interfaces and factory.

Oracles are injected into the planner and synthesizer so tests can swap in
scripted stubs and the service can run without an LLM (mock mode).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..schemas import AgentTrace, Observation, ProposedStep, ToolCall, ToolDefinition, ToolError
from ..settings import AgentSettings


@runtime_checkable
class PlanningOracle(Protocol):
    async def propose_plan(
        self,
        query: str,
        tool_catalog: list[ToolDefinition],
        notebook_summary: str,
        prior_trace: AgentTrace | None = None,
    ) -> list[ProposedStep]: ...

    async def repair_step(self, original_call: ToolCall, error: ToolError) -> ProposedStep: ...


@runtime_checkable
class SynthesisOracle(Protocol):
    async def synthesize(self, query: str, observations: list[Observation]) -> str: ...


def build_oracles(settings: AgentSettings) -> tuple[PlanningOracle, SynthesisOracle]:
    """Pick LLM-backed oracles, or the heuristic ones in mock mode / without a key."""
    if settings.mock_llm or not settings.openai_api_key:
        from .mock import HeuristicPlanningOracle, TemplateSynthesisOracle

        return HeuristicPlanningOracle(), TemplateSynthesisOracle()

    from .openai_oracle import OpenAIPlanningOracle, OpenAISynthesisOracle

    return OpenAIPlanningOracle(settings), OpenAISynthesisOracle(settings)


__all__ = ["PlanningOracle", "SynthesisOracle", "build_oracles"]
