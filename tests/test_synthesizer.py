import asyncio

import pytest

from notebook_agent.citations import extract_citations, find_markers, format_marker
from notebook_agent.errors import SynthesisOracleError
from notebook_agent.schemas import Observation, StepStatus, ToolError
from notebook_agent.synthesizer import Synthesizer

from conftest import ScriptedSynthesisOracle


def _ok(step_index=0, sources=None):
    return Observation(
        step_index=step_index,
        tool_name="echo",
        status=StepStatus.SUCCEEDED,
        result={
            "sources": sources
            if sources is not None
            else [{"source": "doc.pdf", "chunk_index": 0, "page": "2", "text": "Revenue grew 12% in 2023."}]
        },
    )


def _failed(step_index=1, attempt=1):
    return Observation(
        step_index=step_index,
        tool_name="sql",
        status=StepStatus.FAILED,
        error=ToolError(code="SQL_ERROR", message="no such column: amount"),
        attempt_count=attempt,
    )


def test_marker_format_round_trips_through_parser():
    marker = format_marker("report.pdf", 3, 7)
    assert marker == "[cite:report.pdf|chunk=3|page=7]"
    [parsed], malformed = find_markers(f"Text {marker}.")
    assert (parsed.source, parsed.chunk_index, parsed.page) == ("report.pdf", 3, "7")
    assert malformed == 0


def test_known_marker_becomes_citation():
    citations, dropped = extract_citations("Revenue grew [cite:doc.pdf|chunk=0].", [_ok()])
    assert dropped == 0
    [citation] = citations
    assert citation.source_identifier == "doc.pdf"
    assert citation.chunk_index == 0
    assert citation.page_or_section == "2"
    assert citation.text_snippet == "Revenue grew 12% in 2023."


def test_unknown_and_malformed_markers_are_dropped_but_kept_in_prose():
    text = "A [cite:other.pdf|chunk=0] B [cite:doc.pdf|chunk=x] C [cite:|chunk=1] D [cite:doc.pdf|chunk=0]"
    result = asyncio.run(Synthesizer(ScriptedSynthesisOracle(text)).synthesize("q", [_ok()]))

    assert result.answer == text
    assert [c.source_identifier for c in result.citations] == ["doc.pdf"]
    assert result.dropped_markers == 3


def test_sources_from_failed_observations_are_not_citable():
    failed_with_source = Observation(
        step_index=1, tool_name="sql", status=StepStatus.FAILED, error=ToolError(code="E", message="m")
    )
    citations, dropped = extract_citations("[cite:table:t|chunk=0]", [_ok(), failed_with_source])
    assert citations == []
    assert dropped == 1


def test_duplicate_markers_collapse():
    text = "[cite:doc.pdf|chunk=0] and again [cite:doc.pdf|chunk=0]"
    citations, _ = extract_citations(text, [_ok()])
    assert len(citations) == 1


def test_snippet_is_truncated():
    long_text = "word " * 200
    citations, _ = extract_citations(
        "[cite:doc.pdf|chunk=0]",
        [_ok(sources=[{"source": "doc.pdf", "chunk_index": 0, "text": long_text}])],
        snippet_chars=40,
    )
    assert len(citations[0].text_snippet) <= 40
    assert citations[0].text_snippet.endswith("...")


def test_failed_observations_are_passed_to_oracle():
    oracle = ScriptedSynthesisOracle("Partial answer [cite:doc.pdf|chunk=0]")
    observations = [_ok(), _failed()]
    asyncio.run(Synthesizer(oracle).synthesize("q", observations))
    assert oracle.calls[0][1] == observations


def test_all_failed_returns_best_effort_answer_without_oracle():
    oracle = ScriptedSynthesisOracle()
    result = asyncio.run(
        Synthesizer(oracle).synthesize("total sales?", [_failed(attempt=1), _failed(attempt=2)])
    )
    assert oracle.calls == []
    assert "could not resolve" in result.answer
    assert "no such column: amount" in result.answer
    assert "2 attempt(s)" in result.answer
    assert result.citations == []


def test_oracle_failure_is_wrapped():
    oracle = ScriptedSynthesisOracle(error=RuntimeError("503"))
    with pytest.raises(SynthesisOracleError):
        asyncio.run(Synthesizer(oracle).synthesize("q", [_ok()]))


def test_empty_oracle_answer_is_an_oracle_error():
    with pytest.raises(SynthesisOracleError):
        asyncio.run(Synthesizer(ScriptedSynthesisOracle("   ")).synthesize("q", [_ok()]))


def test_same_chunk_with_different_pages_is_one_citation():
    text = "[cite:doc.pdf|chunk=0|page=2] and [cite:doc.pdf|chunk=0|page=3]"
    citations, dropped = extract_citations(text, [_ok()])
    assert [(c.source_identifier, c.chunk_index, c.page_or_section) for c in citations] == [("doc.pdf", 0, "2")]
    assert dropped == 0
