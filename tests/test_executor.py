import asyncio
import time

import pytest

from notebook_agent.errors import PlanningOracleError, RepairExhaustedError, ToolExecutionError
from notebook_agent.executor import ExecutionOutcome, Executor
from notebook_agent.planner import Planner
from notebook_agent.registry import ToolRegistry
from notebook_agent.schemas import Plan, StepStatus, ToolCall
from notebook_agent.tools import Tool
from notebook_agent.trace import build_trace

from conftest import EmptyInput, ScriptedPlanningOracle


def _plan(*calls):
    return Plan(
        steps=tuple(
            ToolCall(tool_name=name, arguments=args, step_index=i, required=required)
            for i, (name, args, required) in enumerate(calls)
        )
    )


def _executor(registry, oracle=None, **kwargs):
    oracle = oracle or ScriptedPlanningOracle()
    return Executor(registry, Planner(registry, oracle), **kwargs), oracle


def test_single_successful_step(registry, context):
    executor, _ = _executor(registry)
    result = asyncio.run(executor.execute(_plan(("echo", {"text": "hi"}, False)), context))

    assert result.outcome is ExecutionOutcome.ALL_SUCCEEDED
    [obs] = result.observations
    assert obs.status is StepStatus.SUCCEEDED
    assert obs.attempt_count == 1
    assert obs.result["text"] == "hi"
    assert obs.error is None


def test_repair_then_success_records_both_attempts(registry, context, sql_tool):
    oracle = ScriptedPlanningOracle(repairs=[{"tool_name": "sql", "arguments": {"sql": "SELECT 1"}}])
    executor, _ = _executor(registry, oracle)
    trace = build_trace("q", context.notebook_id)
    result = asyncio.run(executor.execute(_plan(("sql", {"sql": "SELEC 1"}, False)), context, trace))

    assert result.outcome is ExecutionOutcome.ALL_SUCCEEDED
    assert [(o.step_index, o.attempt_count, o.status) for o in result.observations] == [
        (0, 1, StepStatus.FAILED),
        (0, 2, StepStatus.SUCCEEDED),
    ]
    assert result.observations[0].error.code == "SQL_ERROR"
    assert sql_tool.calls == ["SELEC 1", "SELECT 1"]
    assert trace.observations == result.observations
    assert [c["kind"] for c in trace.oracle_calls] == ["repair_step"]


def test_repairable_step_stops_after_max_attempts(registry, context, sql_tool):
    executor, oracle = _executor(registry, max_attempts=3)
    result = asyncio.run(executor.execute(_plan(("sql", {"sql": "bad"}, False)), context))

    assert len(result.observations) == 3
    assert [o.attempt_count for o in result.observations] == [1, 2, 3]
    assert len(oracle.repair_calls) == 2
    assert len(sql_tool.calls) == 3
    assert result.outcome is ExecutionOutcome.SOME_FAILED
    [failure] = result.failures
    assert isinstance(failure, RepairExhaustedError)
    assert failure.attempts == 3


def test_non_repairable_failure_is_recorded_once(registry, context, broken_tool):
    executor, oracle = _executor(registry)
    result = asyncio.run(
        executor.execute(_plan(("broken", {}, False), ("echo", {"text": "after"}, False)), context)
    )

    assert broken_tool.calls == 1
    assert oracle.repair_calls == []
    assert [(o.step_index, o.status) for o in result.observations] == [
        (0, StepStatus.FAILED),
        (1, StepStatus.SUCCEEDED),
    ]
    assert result.observations[0].error.code == "BOOM"
    assert result.outcome is ExecutionOutcome.SOME_FAILED
    assert isinstance(result.failures[0], ToolExecutionError)


def test_required_failure_stops_remaining_steps(registry, context):
    executor, _ = _executor(registry)
    result = asyncio.run(
        executor.execute(_plan(("sql", {"sql": "bad"}, True), ("echo", {"text": "never"}, False)), context)
    )

    assert result.outcome is ExecutionOutcome.REQUIRED_FAILED
    assert {o.step_index for o in result.observations} == {0}
    assert len(result.observations) == 3
    assert isinstance(result.fatal_failure, RepairExhaustedError)


def test_timeout_counts_as_tool_failure(registry, context):
    executor, _ = _executor(registry, tool_timeout_s=0.05)
    result = asyncio.run(executor.execute(_plan(("slow", {}, False)), context))

    [obs] = result.observations
    assert obs.status is StepStatus.FAILED
    assert obs.error.code == "TIMEOUT"


def test_expired_deadline_fails_without_running(registry, context, sql_tool):
    executor, _ = _executor(registry, max_attempts=1)
    result = asyncio.run(
        executor.execute(_plan(("sql", {"sql": "SELECT 1"}, False)), context, deadline=time.monotonic() - 1)
    )
    assert result.observations[0].error.code == "TIMEOUT"
    assert sql_tool.calls == []


def test_invalid_repaired_arguments_fail_the_attempt(registry, context):
    oracle = ScriptedPlanningOracle(repairs=[{"tool_name": "sql", "arguments": {"query": "SELECT 1"}}])
    executor, _ = _executor(registry, oracle, max_attempts=2)
    result = asyncio.run(executor.execute(_plan(("sql", {"sql": "bad"}, False)), context))

    assert [o.error.code for o in result.observations] == ["SQL_ERROR", "INVALID_ARGUMENT"]


def test_repair_to_unknown_tool_is_terminal(registry, context):
    oracle = ScriptedPlanningOracle(repairs=[{"tool_name": "ghost", "arguments": {}}])
    executor, _ = _executor(registry, oracle)
    result = asyncio.run(executor.execute(_plan(("sql", {"sql": "bad"}, False)), context))

    assert [o.error.code for o in result.observations] == ["SQL_ERROR", "NOT_FOUND"]
    assert result.observations[1].tool_name == "ghost"


def test_oracle_failure_during_repair_propagates(registry, context):
    class OutageOracle(ScriptedPlanningOracle):
        async def repair_step(self, original_call, error):
            raise PlanningOracleError("oracle down")

    executor, _ = _executor(registry, OutageOracle())
    trace = build_trace("q", context.notebook_id)
    with pytest.raises(PlanningOracleError):
        asyncio.run(executor.execute(_plan(("sql", {"sql": "bad"}, False)), context, trace))
    assert len(trace.observations) == 1


def test_unexpected_exception_becomes_tool_error(context):
    from notebook_agent.registry import ToolRegistry
    from notebook_agent.tools import Tool

    from conftest import EmptyInput

    class Crashing(Tool):
        name = "crash"
        description = "Raises a plain exception."
        input_model = EmptyInput

        async def run(self, payload, context):
            raise ValueError("bad state")

    registry = ToolRegistry([Crashing()]).close()
    executor, _ = _executor(registry)
    result = asyncio.run(executor.execute(_plan(("crash", {}, False)), context))
    assert result.observations[0].error.code == "TOOL_ERROR"
    assert "bad state" in result.observations[0].error.message


class UpstreamTimeoutTool(Tool):
    name = "upstream"
    description = "Raises its own timeout, as a socket or HTTP client would."
    input_model = EmptyInput

    async def run(self, payload, context):
        raise TimeoutError("upstream socket timed out")


class Opaque:
    pass


class OpaqueResultTool(Tool):
    name = "opaque"
    description = "Returns an object with no JSON form."
    input_model = EmptyInput

    async def run(self, payload, context):
        return {"value": Opaque()}


class NoneResultTool(Tool):
    name = "nothing"
    description = "Returns None."
    input_model = EmptyInput

    async def run(self, payload, context):
        return None


@pytest.fixture
def odd_registry():
    return ToolRegistry([UpstreamTimeoutTool(), OpaqueResultTool(), NoneResultTool()]).close()


def test_tool_raised_timeout_without_limit_is_a_tool_error(odd_registry, context):
    executor, _ = _executor(odd_registry)
    result = asyncio.run(executor.execute(_plan(("upstream", {}, False)), context))

    [obs] = result.observations
    assert obs.status is StepStatus.FAILED
    assert obs.error.code == "TOOL_ERROR"
    assert "upstream socket timed out" in obs.error.message
    assert result.outcome is ExecutionOutcome.SOME_FAILED


def test_tool_raised_timeout_is_not_reported_as_deadline(odd_registry, context):
    executor, _ = _executor(odd_registry, tool_timeout_s=5)
    result = asyncio.run(executor.execute(_plan(("upstream", {}, False)), context))
    assert result.observations[0].error.code == "TOOL_ERROR"


def test_unserializable_result_is_a_failed_observation(odd_registry, context):
    executor, _ = _executor(odd_registry)
    result = asyncio.run(executor.execute(_plan(("opaque", {}, False)), context))

    [obs] = result.observations
    assert obs.status is StepStatus.FAILED
    assert obs.error.code == "INVALID_RESULT"
    assert obs.result is None


def test_none_result_is_stored_as_empty_object(odd_registry, context):
    executor, _ = _executor(odd_registry)
    result = asyncio.run(executor.execute(_plan(("nothing", {}, False)), context))

    [obs] = result.observations
    assert obs.status is StepStatus.SUCCEEDED
    assert obs.result == {}
