"""Prompt templates for the planning and synthesis oracles.

Keep prompts here so oracle adapters stay thin and testable.
"""

from __future__ import annotations

import json
from typing import Any, Iterable

from .schemas import AgentTrace, Observation, ToolCall, ToolDefinition, ToolError

PLANNER_SYSTEM = (
    "You plan tool calls that answer questions about a single notebook of "
    "documents and tables. You never answer the question yourself. "
    "Return a JSON object of the form "
    '{"steps": [{"tool": "<tool name>", "arguments": {...}, "required": false}]}. '
    "Guidelines: "
    "1) Use only tools from the catalog and respect their parameter schemas. "
    "2) Questions about numbers, totals or rows -> call `describe_tables` before `run_sql`. "
    "3) Questions about document content -> call `search_documents`. "
    "4) Steps run in order; mark a step required only if the answer is meaningless without it. "
    "5) Return an empty step list if no tool can help."
)

REPAIR_SYSTEM = (
    "A tool call failed. Propose a corrected call for the same step. "
    'Return a JSON object {"tool": "<tool name>", "arguments": {...}}. '
    "Fix the cause reported in the error (e.g. a SQL syntax error or an unknown "
    "column); do not change what the step is trying to find out."
)

RESPONDER_SYSTEM = (
    "You answer the user's question using only the tool observations provided. "
    "After every statement that relies on a source, add a citation marker of the exact form "
    "[cite:<source>|chunk=<chunk_index>|page=<page>] (omit |page=... when the source has no page). "
    "Only cite sources that appear in succeeded observations. "
    "If some steps failed, say briefly what could not be checked. "
    "Do not invent numbers or sources."
)


def render_catalog(catalog: Iterable[ToolDefinition]) -> list[dict[str, Any]]:
    return [
        {
            "name": definition.name,
            "description": definition.description,
            "parameters": definition.parameter_schema,
        }
        for definition in catalog
    ]


def render_prior_trace(trace: AgentTrace | None) -> dict[str, Any] | None:
    if trace is None:
        return None
    return {
        "query": trace.query,
        "outcome": trace.outcome.value,
        "tools": trace.plan.tool_names() if trace.plan else [],
        "answer": trace.final_answer,
    }


def _truncate(value: Any, max_chars: int) -> Any:
    text = json.dumps(value, ensure_ascii=False, default=str)
    if len(text) <= max_chars:
        return value
    return text[:max_chars] + "...(truncated)"


def render_observations(observations: Iterable[Observation], max_chars: int = 4000) -> list[dict[str, Any]]:
    rendered: list[dict[str, Any]] = []
    for obs in observations:
        entry: dict[str, Any] = {
            "step_index": obs.step_index,
            "tool": obs.tool_name,
            "attempt": obs.attempt_count,
            "status": obs.status.value,
        }
        if obs.succeeded:
            entry["result"] = _truncate(obs.result, max_chars)
        elif obs.error is not None:
            entry["error"] = {"code": obs.error.code, "message": obs.error.message}
        rendered.append(entry)
    return rendered


def planner_user_message(
    query: str,
    catalog: Iterable[ToolDefinition],
    notebook_summary: str,
    prior_trace: AgentTrace | None = None,
) -> str:
    payload: dict[str, Any] = {
        "question": query,
        "notebook": notebook_summary,
        "tools": render_catalog(catalog),
    }
    previous = render_prior_trace(prior_trace)
    if previous:
        payload["previous_turn"] = previous
    return json.dumps(payload, ensure_ascii=False)


def repair_user_message(original_call: ToolCall, error: ToolError) -> str:
    return json.dumps(
        {
            "tool": original_call.tool_name,
            "arguments": original_call.arguments,
            "error": error.model_dump(),
        },
        ensure_ascii=False,
        default=str,
    )


def responder_user_message(query: str, observations: Iterable[Observation], max_chars: int = 4000) -> str:
    return json.dumps(
        {"question": query, "observations": render_observations(observations, max_chars)},
        ensure_ascii=False,
        default=str,
    )
