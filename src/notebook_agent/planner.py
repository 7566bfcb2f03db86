"""Planner: turn a query into a validated Plan.

Planning and execution are strictly separated. The planner talks to the
planning oracle and the registry only; it never invokes a tool.
"""

from __future__ import annotations

import time

from pydantic import ValidationError

from .errors import PlanningOracleError, PlanValidationError
from .logging import get_logger
from .oracles import PlanningOracle
from .registry import ToolRegistry
from .schemas import AgentTrace, Plan, ProposedStep, ToolCall, ToolError
from .state import NotebookContext, TraceRecord
from .trace import record_oracle_call

logger = get_logger("planner")


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors(include_url=False):
        location = ".".join(str(item) for item in err.get("loc", ())) or "<arguments>"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


class Planner:
    def __init__(self, registry: ToolRegistry, oracle: PlanningOracle, *, max_plan_steps: int = 8) -> None:
        self._registry = registry
        self._oracle = oracle
        self._max_plan_steps = max_plan_steps

    async def plan(
        self,
        query: str,
        context: NotebookContext,
        trace: TraceRecord | None = None,
        prior_trace: AgentTrace | None = None,
    ) -> Plan:
        catalog = self._registry.list_tools()
        start = time.monotonic()
        try:
            proposed = await self._oracle.propose_plan(query, catalog, context.summary, prior_trace)
        except PlanningOracleError as exc:
            self._record(trace, "propose_plan", start, error=str(exc))
            raise
        except Exception as exc:  # noqa: BLE001
            self._record(trace, "propose_plan", start, error=str(exc))
            raise PlanningOracleError(f"Planning oracle failed: {exc}") from exc
        self._record(trace, "propose_plan", start, summary={"steps": [step.tool_name for step in proposed]})

        plan = self.validate(proposed)
        logger.info(
            "plan_proposed",
            extra={
                "extra": {
                    "trace_id": trace.trace_id if trace else None,
                    "notebook_id": context.notebook_id,
                    "tools": plan.tool_names(),
                }
            },
        )
        return plan

    def validate(self, proposed: list[ProposedStep]) -> Plan:
        """All-or-nothing validation; the first offending step rejects the plan."""
        if len(proposed) > self._max_plan_steps:
            raise PlanValidationError(
                f"Plan has {len(proposed)} steps; at most {self._max_plan_steps} are allowed."
            )
        steps: list[ToolCall] = []
        for index, step in enumerate(proposed):
            tool = self._registry.get(step.tool_name)
            if tool is None:
                logger.info("plan_rejected", extra={"extra": {"step_index": index, "tool": step.tool_name}})
                raise PlanValidationError(
                    f"Step {index} references unknown tool '{step.tool_name}'.",
                    step_index=index,
                    tool_name=step.tool_name,
                )
            try:
                tool.validate_arguments(step.arguments)
            except ValidationError as exc:
                logger.info("plan_rejected", extra={"extra": {"step_index": index, "tool": step.tool_name}})
                raise PlanValidationError(
                    f"Step {index} ({step.tool_name}) arguments do not match its schema: "
                    f"{_format_validation_error(exc)}",
                    step_index=index,
                    tool_name=step.tool_name,
                ) from exc
            steps.append(
                ToolCall(
                    tool_name=step.tool_name,
                    arguments=dict(step.arguments),
                    step_index=index,
                    required=step.required,
                )
            )
        return Plan(steps=tuple(steps))

    async def repair(self, call: ToolCall, error: ToolError, trace: TraceRecord | None = None) -> ToolCall:
        """Ask the oracle for a corrected call at the same position in the plan."""
        start = time.monotonic()
        try:
            step = await self._oracle.repair_step(call, error)
        except PlanningOracleError as exc:
            self._record(trace, "repair_step", start, error=str(exc))
            raise
        except Exception as exc:  # noqa: BLE001
            self._record(trace, "repair_step", start, error=str(exc))
            raise PlanningOracleError(f"Planning oracle failed during repair: {exc}") from exc
        self._record(
            trace,
            "repair_step",
            start,
            summary={"step_index": call.step_index, "tool": step.tool_name, "error_code": error.code},
        )
        return ToolCall(
            tool_name=step.tool_name,
            arguments=dict(step.arguments),
            step_index=call.step_index,
            required=call.required,
        )

    @staticmethod
    def _record(
        trace: TraceRecord | None,
        kind: str,
        start: float,
        *,
        summary: dict | None = None,
        error: str | None = None,
    ) -> None:
        if trace is None:
            return
        record_oracle_call(
            trace,
            kind=kind,
            ok=error is None,
            latency_ms=int((time.monotonic() - start) * 1000),
            summary=summary,
            error=error,
        )
