"""Orchestrator: one request-scoped run of plan -> execute -> synthesize -> trace.

Every run, successful or not, seals and persists exactly one trace.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from .errors import (
    PlanningOracleError,
    PlanValidationError,
    RepairExhaustedError,
    SynthesisOracleError,
    TraceNotFoundError,
    TraceWriteError,
)
from .executor import ExecutionOutcome, Executor
from .logging import get_logger
from .oracles import PlanningOracle, SynthesisOracle, build_oracles
from .planner import Planner
from .registry import ToolRegistry
from .schemas import AgentTrace, Citation, RunOutcome, ToolError
from .settings import AgentSettings
from .state import NotebookContext, TraceRecord
from .synthesizer import Synthesizer
from .trace import (
    FileTraceRecorder,
    TraceRecorder,
    build_trace,
    record_error,
    record_final,
    record_plan,
    seal_trace,
)

logger = get_logger("orchestrator")


@dataclass
class RunResult:
    answer: str
    trace_id: str
    outcome: RunOutcome
    citations: list[Citation] = field(default_factory=list)
    error: ToolError | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.outcome is RunOutcome.FAILED


class Orchestrator:
    def __init__(
        self,
        registry: ToolRegistry,
        planning_oracle: PlanningOracle,
        synthesis_oracle: SynthesisOracle,
        recorder: TraceRecorder,
        *,
        max_attempts: int = 3,
        max_plan_steps: int = 8,
        tool_timeout_s: float | None = None,
        run_timeout_s: float | None = None,
        snippet_chars: int = 240,
    ) -> None:
        self._registry = registry
        self._recorder = recorder
        self._planner = Planner(registry, planning_oracle, max_plan_steps=max_plan_steps)
        self._executor = Executor(
            registry,
            self._planner,
            max_attempts=max_attempts,
            tool_timeout_s=tool_timeout_s,
        )
        self._synthesizer = Synthesizer(synthesis_oracle, snippet_chars=snippet_chars)
        self._run_timeout_s = run_timeout_s

    @classmethod
    def from_settings(
        cls,
        settings: AgentSettings,
        registry: ToolRegistry,
        recorder: TraceRecorder | None = None,
    ) -> "Orchestrator":
        planning_oracle, synthesis_oracle = build_oracles(settings)
        return cls(
            registry,
            planning_oracle,
            synthesis_oracle,
            recorder or FileTraceRecorder(settings.trace_dir),
            max_attempts=settings.max_attempts,
            max_plan_steps=settings.max_plan_steps,
            tool_timeout_s=settings.tool_timeout_s,
            run_timeout_s=settings.run_timeout_s,
            snippet_chars=settings.snippet_chars,
        )

    def read_trace(self, trace_id: str) -> AgentTrace:
        return self._recorder.read(trace_id)

    async def run(
        self,
        query: str,
        context: NotebookContext,
        *,
        timeout_s: float | None = None,
        prior_trace_id: str | None = None,
    ) -> RunResult:
        trace = build_trace(query, context.notebook_id)
        timeout = timeout_s if timeout_s is not None else self._run_timeout_s
        deadline = time.monotonic() + timeout if timeout else None
        warnings: list[str] = []
        logger.info(
            "run_started",
            extra={"extra": {"trace_id": trace.trace_id, "notebook_id": context.notebook_id, "query_len": len(query)}},
        )

        try:
            outcome = await self._run(trace, query, context, deadline, prior_trace_id, warnings)
        except (Exception, asyncio.CancelledError) as exc:
            logger.exception("run_crashed", extra={"extra": {"trace_id": trace.trace_id}})
            if trace.error is None:
                record_error(trace, "INTERNAL_ERROR", str(exc) or type(exc).__name__)
            await self._persist(seal_trace(trace, RunOutcome.FAILED), warnings)
            raise

        sealed = seal_trace(trace, outcome)
        await self._persist(sealed, warnings)
        logger.info(
            "run_finished",
            extra={
                "extra": {
                    "trace_id": sealed.trace_id,
                    "outcome": sealed.outcome.value,
                    "latency_ms": sealed.duration_ms,
                    "citations": len(sealed.citations),
                }
            },
        )
        return RunResult(
            answer=sealed.final_answer,
            trace_id=sealed.trace_id,
            outcome=sealed.outcome,
            citations=list(sealed.citations),
            error=sealed.error,
            warnings=warnings,
        )

    async def _run(
        self,
        trace: TraceRecord,
        query: str,
        context: NotebookContext,
        deadline: float | None,
        prior_trace_id: str | None,
        warnings: list[str],
    ) -> RunOutcome:
        prior = self._load_prior(prior_trace_id, warnings)

        try:
            plan = await self._planner.plan(query, context, trace, prior)
        except PlanValidationError as exc:
            return self._fail(
                trace,
                "PLAN_INVALID",
                exc.message,
                {"step_index": exc.step_index, "tool": exc.tool_name},
            )
        except PlanningOracleError as exc:
            return self._fail(trace, "PLANNING_ORACLE_ERROR", str(exc))
        record_plan(trace, plan)

        try:
            execution = await self._executor.execute(plan, context, trace, deadline)
        except PlanningOracleError as exc:
            return self._fail(trace, "PLANNING_ORACLE_ERROR", str(exc))

        fatal = execution.fatal_failure
        if fatal is not None:
            details: dict[str, Any] = (
                {"step_index": fatal.step_index, "tool": fatal.tool_name, "attempts": fatal.attempts}
                if isinstance(fatal, RepairExhaustedError)
                else dict(fatal.details)
            )
            return self._fail(trace, "REQUIRED_STEP_FAILED", str(fatal), details)

        try:
            synthesis = await self._synthesizer.synthesize(query, execution.observations, trace)
        except SynthesisOracleError as exc:
            return self._fail(trace, "SYNTHESIS_ORACLE_ERROR", str(exc))
        record_final(trace, synthesis.answer, synthesis.citations)

        if execution.outcome is ExecutionOutcome.SOME_FAILED:
            return RunOutcome.COMPLETED_WITH_PARTIAL_FAILURES
        return RunOutcome.COMPLETED

    def _load_prior(self, prior_trace_id: str | None, warnings: list[str]) -> AgentTrace | None:
        if not prior_trace_id:
            return None
        try:
            return self._recorder.read(prior_trace_id)
        except TraceNotFoundError:
            warnings.append(f"Prior trace {prior_trace_id} not found; planning without it.")
            return None

    @staticmethod
    def _fail(trace: TraceRecord, code: str, message: str, details: dict[str, Any] | None = None) -> RunOutcome:
        logger.info("run_failed", extra={"extra": {"trace_id": trace.trace_id, "code": code, "error": message}})
        record_error(trace, code, message, details)
        record_final(trace, f"I could not answer this question: {message}", [])
        return RunOutcome.FAILED

    async def _persist(self, sealed: AgentTrace, warnings: list[str]) -> None:
        try:
            await asyncio.to_thread(self._recorder.write, sealed)
        except TraceWriteError as exc:
            logger.warning("trace_write_failed", extra={"extra": {"trace_id": sealed.trace_id, "error": str(exc)}})
            warnings.append(f"Trace could not be persisted: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.exception("trace_write_failed", extra={"extra": {"trace_id": sealed.trace_id}})
            warnings.append(f"Trace could not be persisted: {type(exc).__name__}: {exc}")
