"""Synthesizer: observations in, cited prose out."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from .citations import extract_citations
from .errors import SynthesisOracleError
from .logging import get_logger
from .oracles import SynthesisOracle
from .schemas import Citation, Observation
from .state import TraceRecord
from .trace import record_oracle_call

logger = get_logger("synthesizer")


@dataclass
class SynthesisResult:
    answer: str
    citations: list[Citation] = field(default_factory=list)
    dropped_markers: int = 0


def unresolved_answer(query: str, observations: list[Observation]) -> str:
    """Best-effort answer when no step produced anything usable."""
    last_by_step: dict[int, Observation] = {}
    for obs in observations:
        last_by_step[obs.step_index] = obs
    reasons = [
        f"- step {obs.step_index} ({obs.tool_name}, {obs.attempt_count} attempt(s)): "
        f"{obs.error.message if obs.error else 'failed'}"
        for obs in last_by_step.values()
    ]
    return (
        f"I could not resolve \"{query}\" because every tool step failed.\n" + "\n".join(reasons)
    )


class Synthesizer:
    def __init__(self, oracle: SynthesisOracle, *, snippet_chars: int = 240) -> None:
        self._oracle = oracle
        self._snippet_chars = snippet_chars

    async def synthesize(
        self,
        query: str,
        observations: list[Observation],
        trace: TraceRecord | None = None,
    ) -> SynthesisResult:
        if observations and not any(obs.succeeded for obs in observations):
            return SynthesisResult(answer=unresolved_answer(query, observations))

        start = time.monotonic()
        try:
            text = await self._oracle.synthesize(query, list(observations))
            if not text or not text.strip():
                raise SynthesisOracleError("Synthesis oracle returned an empty answer.")
        except SynthesisOracleError as exc:
            self._record(trace, start, error=str(exc))
            raise
        except Exception as exc:  # noqa: BLE001
            self._record(trace, start, error=str(exc))
            raise SynthesisOracleError(f"Synthesis oracle failed: {exc}") from exc

        citations, dropped = extract_citations(text, observations, self._snippet_chars)
        self._record(trace, start, summary={"answer_len": len(text), "citations": len(citations), "dropped": dropped})
        if dropped:
            logger.info(
                "citations_dropped",
                extra={"extra": {"trace_id": trace.trace_id if trace else None, "dropped": dropped}},
            )
        return SynthesisResult(answer=text.strip(), citations=citations, dropped_markers=dropped)

    @staticmethod
    def _record(trace: TraceRecord | None, start: float, *, summary: dict | None = None, error: str | None = None) -> None:
        if trace is None:
            return
        record_oracle_call(
            trace,
            kind="synthesize",
            ok=error is None,
            latency_ms=int((time.monotonic() - start) * 1000),
            summary=summary,
            error=error,
        )
