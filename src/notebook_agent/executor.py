"""Plan executor: sequential steps, each a small state machine with bounded repair.

    PENDING -> RUNNING -> SUCCEEDED
                       -> FAILED -> REPAIRING -> RUNNING   (repairable, attempts left)
                       -> FAILED                           (terminal)

Every attempt yields one Observation, appended to the trace as it happens.
A terminal failure stops the whole run only when the step is required.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import RepairExhaustedError, ToolExecutionError
from .logging import get_logger
from .planner import Planner
from .registry import ToolRegistry
from .schemas import Observation, Plan, StepStatus, ToolCall, ToolError
from .state import NotebookContext, TraceRecord
from .tools import Tool
from .trace import record_observation

logger = get_logger("executor")


class StepState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    REPAIRING = "repairing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ExecutionOutcome(str, Enum):
    ALL_SUCCEEDED = "all_succeeded"
    SOME_FAILED = "some_failed"
    REQUIRED_FAILED = "required_failed"


StepFailure = RepairExhaustedError | ToolExecutionError


@dataclass
class ExecutionResult:
    observations: list[Observation] = field(default_factory=list)
    outcome: ExecutionOutcome = ExecutionOutcome.ALL_SUCCEEDED
    failures: list[StepFailure] = field(default_factory=list)

    @property
    def fatal_failure(self) -> StepFailure | None:
        if self.outcome is ExecutionOutcome.REQUIRED_FAILED:
            return self.failures[-1]
        return None


class Executor:
    def __init__(
        self,
        registry: ToolRegistry,
        planner: Planner,
        *,
        max_attempts: int = 3,
        tool_timeout_s: float | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._registry = registry
        self._planner = planner
        self._max_attempts = max_attempts
        self._tool_timeout_s = tool_timeout_s

    async def execute(
        self,
        plan: Plan,
        context: NotebookContext,
        trace: TraceRecord | None = None,
        deadline: float | None = None,
    ) -> ExecutionResult:
        """Run `plan` in order. `deadline` is an absolute `time.monotonic()` value."""
        result = ExecutionResult()
        for call in plan.steps:
            observations, failure = await self._run_step(call, context, trace, deadline)
            result.observations.extend(observations)
            if failure is None:
                continue
            result.failures.append(failure)
            if call.required:
                logger.info(
                    "required_step_failed",
                    extra={"extra": {"trace_id": _trace_id(trace), "step_index": call.step_index, "error": str(failure)}},
                )
                result.outcome = ExecutionOutcome.REQUIRED_FAILED
                return result
        if result.failures:
            result.outcome = ExecutionOutcome.SOME_FAILED
        return result

    async def _run_step(
        self,
        call: ToolCall,
        context: NotebookContext,
        trace: TraceRecord | None,
        deadline: float | None,
    ) -> tuple[list[Observation], StepFailure | None]:
        observations: list[Observation] = []
        current = call
        attempt = 1
        state = StepState.PENDING
        while True:
            state = self._transition(trace, current, attempt, state, StepState.RUNNING)
            observation = await self._attempt(current, attempt, context, trace, deadline)
            observations.append(observation)
            if trace is not None:
                record_observation(trace, observation)

            if observation.succeeded:
                self._transition(trace, current, attempt, state, StepState.SUCCEEDED)
                return observations, None

            error = observation.error or ToolError(code="TOOL_ERROR", message="unknown failure")
            state = self._transition(trace, current, attempt, state, StepState.FAILED)
            tool = self._registry.get(current.tool_name)
            if tool is None or not tool.repairable:
                failure = ToolExecutionError(
                    error.code,
                    f"Step {call.step_index} ({current.tool_name}) failed: {error.message}",
                    {"step_index": call.step_index, "tool": current.tool_name},
                )
                return observations, failure
            if attempt >= self._max_attempts:
                return observations, RepairExhaustedError(call.step_index, current.tool_name, attempt, error)

            state = self._transition(trace, current, attempt, state, StepState.REPAIRING)
            current = await self._planner.repair(current, error, trace)
            attempt += 1

    async def _attempt(
        self,
        call: ToolCall,
        attempt: int,
        context: NotebookContext,
        trace: TraceRecord | None,
        deadline: float | None,
    ) -> Observation:
        start = time.monotonic()
        tool = self._registry.get(call.tool_name)
        timeout = self._timeout_for(deadline)
        result = None
        error: ToolError | None = None
        try:
            if tool is None:
                raise ToolExecutionError("NOT_FOUND", f"Unknown tool: {call.tool_name}")
            if timeout is not None and timeout <= 0:
                raise ToolExecutionError("TIMEOUT", "Run deadline passed before the step could start.")
            result = await asyncio.wait_for(_invoke(tool, call, context), timeout=timeout)
        except ToolExecutionError as exc:
            error = exc.to_error()
        except asyncio.TimeoutError:
            limit = f" within {timeout:.2f}s" if timeout is not None else ""
            error = ToolError(code="TIMEOUT", message=f"{call.tool_name} did not finish{limit}")
        except Exception as exc:  # noqa: BLE001
            error = ToolError(code="TOOL_ERROR", message=str(exc) or type(exc).__name__)
        latency_ms = int((time.monotonic() - start) * 1000)

        logger.info(
            "tool_call",
            extra={
                "extra": {
                    "trace_id": _trace_id(trace),
                    "tool": call.tool_name,
                    "step_index": call.step_index,
                    "attempt": attempt,
                    "latency_ms": latency_ms,
                    "ok": error is None,
                    "error_code": error.code if error else None,
                }
            },
        )
        if error is not None:
            return Observation(
                step_index=call.step_index,
                tool_name=call.tool_name,
                arguments=dict(call.arguments),
                status=StepStatus.FAILED,
                error=error,
                attempt_count=attempt,
                duration_ms=latency_ms,
            )
        return Observation(
            step_index=call.step_index,
            tool_name=call.tool_name,
            arguments=dict(call.arguments),
            status=StepStatus.SUCCEEDED,
            result=result,
            attempt_count=attempt,
            duration_ms=latency_ms,
        )

    def _timeout_for(self, deadline: float | None) -> float | None:
        timeout = self._tool_timeout_s
        if deadline is not None:
            remaining = deadline - time.monotonic()
            timeout = remaining if timeout is None else min(timeout, remaining)
        return timeout

    @staticmethod
    def _transition(
        trace: TraceRecord | None,
        call: ToolCall,
        attempt: int,
        current: StepState,
        target: StepState,
    ) -> StepState:
        logger.debug(
            "step_state",
            extra={
                "extra": {
                    "trace_id": _trace_id(trace),
                    "step_index": call.step_index,
                    "tool": call.tool_name,
                    "attempt": attempt,
                    "from": current.value,
                    "to": target.value,
                }
            },
        )
        return target


def _trace_id(trace: TraceRecord | None) -> str | None:
    return trace.trace_id if trace is not None else None


async def _invoke(tool: Tool, call: ToolCall, context: NotebookContext) -> Any:
    # A timeout raised inside the tool is its own failure, not an expired deadline.
    try:
        return await tool.execute(call.arguments, context)
    except (asyncio.TimeoutError, TimeoutError) as exc:
        message = f"{call.tool_name} timed out upstream"
        raise ToolExecutionError("TOOL_ERROR", f"{message}: {exc}" if str(exc) else message) from exc
