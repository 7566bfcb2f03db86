"""OpenAI chat-completions backed oracles."""

from __future__ import annotations

import json
from typing import Any

from openai import AsyncOpenAI
from pydantic import ValidationError

from ..errors import PlanningOracleError, SynthesisOracleError
from ..logging import get_logger
from ..prompts import (
    PLANNER_SYSTEM,
    REPAIR_SYSTEM,
    RESPONDER_SYSTEM,
    planner_user_message,
    repair_user_message,
    responder_user_message,
)
from ..schemas import AgentTrace, Observation, ProposedStep, ToolCall, ToolDefinition, ToolError
from ..settings import AgentSettings

logger = get_logger("oracles.openai")


def _build_client(settings: AgentSettings) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.openai_timeout_s)


def _to_step(raw: Any) -> ProposedStep:
    if not isinstance(raw, dict):
        raise PlanningOracleError(f"Plan step is not an object: {raw!r}")
    try:
        return ProposedStep(
            tool_name=raw.get("tool") or raw.get("tool_name") or "",
            arguments=raw.get("arguments") or {},
            required=bool(raw.get("required", False)),
        )
    except ValidationError as exc:
        raise PlanningOracleError(f"Malformed plan step: {exc}") from exc


class OpenAIPlanningOracle:
    def __init__(self, settings: AgentSettings, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or _build_client(settings)

    async def _complete_json(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.openai_model,
                messages=messages,
                temperature=self._settings.temperature,
                response_format={"type": "json_object"},
            )
        except Exception as exc:  # noqa: BLE001
            logger.info("planning_oracle_error", extra={"extra": {"error": str(exc)}})
            raise PlanningOracleError(f"Planning oracle request failed: {exc}") from exc
        content = response.choices[0].message.content or ""
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise PlanningOracleError(f"Planning oracle returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise PlanningOracleError("Planning oracle returned a non-object JSON value.")
        return data

    async def propose_plan(
        self,
        query: str,
        tool_catalog: list[ToolDefinition],
        notebook_summary: str,
        prior_trace: AgentTrace | None = None,
    ) -> list[ProposedStep]:
        data = await self._complete_json(
            [
                {"role": "system", "content": PLANNER_SYSTEM},
                {"role": "user", "content": planner_user_message(query, tool_catalog, notebook_summary, prior_trace)},
            ]
        )
        steps = data.get("steps")
        if not isinstance(steps, list):
            raise PlanningOracleError("Planning oracle response has no 'steps' list.")
        return [_to_step(raw) for raw in steps]

    async def repair_step(self, original_call: ToolCall, error: ToolError) -> ProposedStep:
        data = await self._complete_json(
            [
                {"role": "system", "content": REPAIR_SYSTEM},
                {"role": "user", "content": repair_user_message(original_call, error)},
            ]
        )
        data.setdefault("tool", original_call.tool_name)
        data["required"] = original_call.required
        return _to_step(data)


class OpenAISynthesisOracle:
    def __init__(self, settings: AgentSettings, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or _build_client(settings)

    async def synthesize(self, query: str, observations: list[Observation]) -> str:
        messages = [
            {"role": "system", "content": RESPONDER_SYSTEM},
            {
                "role": "user",
                "content": responder_user_message(query, observations, self._settings.max_result_chars),
            },
        ]
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.openai_model,
                messages=messages,
                temperature=self._settings.temperature,
            )
        except Exception as exc:  # noqa: BLE001
            logger.info("synthesis_oracle_error", extra={"extra": {"error": str(exc)}})
            raise SynthesisOracleError(f"Synthesis oracle request failed: {exc}") from exc
        return response.choices[0].message.content or ""
