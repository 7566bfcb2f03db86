"""Heuristic oracles: enable the end-to-end flow without an external LLM."""

from __future__ import annotations

import re

from ..citations import format_marker
from ..schemas import AgentTrace, Observation, ProposedStep, ToolCall, ToolDefinition, ToolError

_TABLE_PATTERN = re.compile(
    r"\b(how many|count|total|sum|average|avg|mean|maximum|minimum|tables?|rows?|columns?|sql)\b",
    re.IGNORECASE,
)
_SOURCES_PATTERN = re.compile(r"\b(files?|sources?|uploaded)\b", re.IGNORECASE)


class HeuristicPlanningOracle:
    """Keyword routing. It cannot write SQL, so it never plans `run_sql`."""

    def __init__(self, top_k: int = 5) -> None:
        self._top_k = top_k

    async def propose_plan(
        self,
        query: str,
        tool_catalog: list[ToolDefinition],
        notebook_summary: str,
        prior_trace: AgentTrace | None = None,
    ) -> list[ProposedStep]:
        available = {definition.name for definition in tool_catalog}
        steps: list[ProposedStep] = []
        if _SOURCES_PATTERN.search(query) and "list_sources" in available:
            steps.append(ProposedStep(tool_name="list_sources"))
        if _TABLE_PATTERN.search(query) and "describe_tables" in available:
            steps.append(ProposedStep(tool_name="describe_tables"))
        if "search_documents" in available:
            steps.append(
                ProposedStep(tool_name="search_documents", arguments={"query": query, "top_k": self._top_k})
            )
        return steps

    async def repair_step(self, original_call: ToolCall, error: ToolError) -> ProposedStep:
        # No way to correct a call without a model; resubmit it unchanged.
        return ProposedStep(
            tool_name=original_call.tool_name,
            arguments=dict(original_call.arguments),
            required=original_call.required,
        )


class TemplateSynthesisOracle:
    """Lists what each step found, citing up to `max_sources` chunks per step."""

    def __init__(self, max_sources: int = 3, snippet_chars: int = 160) -> None:
        self._max_sources = max_sources
        self._snippet_chars = snippet_chars

    async def synthesize(self, query: str, observations: list[Observation]) -> str:
        lines: list[str] = []
        for obs in observations:
            if not obs.succeeded:
                message = obs.error.message if obs.error else "unknown error"
                lines.append(f"- {obs.tool_name} (attempt {obs.attempt_count}) failed: {message}")
                continue
            result = obs.result if isinstance(obs.result, dict) else {}
            for table in result.get("tables") or []:
                columns = ", ".join(col.get("name", "") for col in table.get("columns") or [])
                lines.append(f"- Table {table.get('name')} ({table.get('row_count', 0)} rows): {columns}")
            if result.get("files"):
                lines.append("- Files: " + ", ".join(result["files"]))
            for source in (result.get("sources") or [])[: self._max_sources]:
                text = " ".join(str(source.get("text") or "").split())[: self._snippet_chars]
                marker = format_marker(source.get("source"), source.get("chunk_index", 0), source.get("page"))
                lines.append(f"- {text} {marker}")
        if not lines:
            return f"I found nothing in this notebook that answers: {query}"
        return f"Here is what I found for: {query}\n" + "\n".join(lines)
