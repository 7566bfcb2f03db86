"""Trace recording and persistence for end-to-end run replay."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from .errors import TraceNotFoundError, TraceWriteError
from .logging import get_logger
from .schemas import AgentTrace, Citation, Observation, Plan, RunOutcome, ToolError
from .state import TraceRecord

logger = get_logger("trace")


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_trace_id() -> str:
    return uuid.uuid4().hex


def build_trace(query: str, notebook_id: str, trace_id: str | None = None) -> TraceRecord:
    return TraceRecord(
        trace_id=trace_id or new_trace_id(),
        query=query,
        notebook_id=notebook_id,
        started_at=now_utc_iso(),
        started_monotonic=time.monotonic(),
    )


def _ensure_open(trace: TraceRecord) -> None:
    if trace.sealed:
        raise RuntimeError(f"Trace {trace.trace_id} is sealed")


def record_plan(trace: TraceRecord, plan: Plan) -> None:
    _ensure_open(trace)
    trace.plan = plan


def record_observation(trace: TraceRecord, observation: Observation) -> None:
    _ensure_open(trace)
    trace.observations.append(observation)


def record_oracle_call(
    trace: TraceRecord,
    *,
    kind: str,
    ok: bool,
    latency_ms: int,
    summary: dict[str, Any] | None = None,
    error: str | None = None,
) -> None:
    _ensure_open(trace)
    trace.oracle_calls.append(
        {
            "kind": kind,
            "status": "ok" if ok else "error",
            "latency_ms": latency_ms,
            "summary": summary or {},
            "error": error,
        }
    )


def record_final(trace: TraceRecord, answer_text: str, citations: list[Citation]) -> None:
    _ensure_open(trace)
    trace.final_answer = answer_text
    trace.citations = list(citations)


def record_error(trace: TraceRecord, code: str, message: str, details: dict[str, Any] | None = None) -> None:
    _ensure_open(trace)
    trace.error = ToolError(code=code, message=message, details=details)


def seal_trace(trace: TraceRecord, outcome: RunOutcome) -> AgentTrace:
    """Freeze the in-progress record. A trace can be sealed only once."""
    _ensure_open(trace)
    trace.sealed = True
    return AgentTrace(
        trace_id=trace.trace_id,
        query=trace.query,
        notebook_id=trace.notebook_id,
        plan=trace.plan,
        observations=tuple(trace.observations),
        final_answer=trace.final_answer,
        citations=tuple(trace.citations),
        started_at=trace.started_at,
        completed_at=now_utc_iso(),
        duration_ms=int((time.monotonic() - trace.started_monotonic) * 1000),
        outcome=outcome,
        error=trace.error,
        oracle_calls=tuple(trace.oracle_calls),
    )


class FileTraceRecorder:
    """Append-only store: one JSON document per trace id."""

    def __init__(self, trace_dir: str | Path) -> None:
        self._dir = Path(trace_dir)

    def _path(self, trace_id: str) -> Path:
        # Ids are uuid hex strings; anything else could escape the directory.
        try:
            normalized = uuid.UUID(trace_id).hex
        except (ValueError, AttributeError, TypeError):
            raise TraceNotFoundError(str(trace_id)) from None
        return self._dir / f"{normalized}.json"

    def write(self, trace: AgentTrace) -> Path:
        try:
            path = self._path(trace.trace_id)
        except TraceNotFoundError as exc:
            raise TraceWriteError(f"Invalid trace id: {trace.trace_id}") from exc
        # Serialize first so a bad payload never leaves an empty file behind.
        try:
            document = trace.model_dump_json(indent=2)
        except (PydanticSerializationError, TypeError, ValueError) as exc:
            raise TraceWriteError(f"Could not serialize trace {trace.trace_id}: {exc}") from exc
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            with path.open("x", encoding="utf-8") as fh:
                fh.write(document)
        except FileExistsError as exc:
            raise TraceWriteError(f"Trace already persisted: {trace.trace_id}") from exc
        except OSError as exc:
            raise TraceWriteError(f"Could not write trace {trace.trace_id}: {exc}") from exc
        logger.info(
            "trace_persisted",
            extra={"extra": {"trace_id": trace.trace_id, "outcome": trace.outcome.value, "path": str(path)}},
        )
        return path

    def read(self, trace_id: str) -> AgentTrace:
        path = self._path(trace_id)
        if not path.is_file():
            raise TraceNotFoundError(trace_id)
        try:
            return AgentTrace.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as exc:
            raise TraceNotFoundError(trace_id) from exc


class TraceRecorder(Protocol):
    def write(self, trace: AgentTrace) -> Any: ...

    def read(self, trace_id: str) -> AgentTrace: ...
