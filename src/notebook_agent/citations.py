"""Citation markers embedded in synthesized answers.

Marker form: ``[cite:<source>|chunk=<n>|page=<p>]`` with ``page`` optional.
Only markers that point at a chunk returned by a succeeded observation become
structured citations; everything else stays in the prose untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from .schemas import Citation, Observation

CITATION_PATTERN = re.compile(r"\[cite:(?P<body>[^\[\]]*)\]")


@dataclass(frozen=True)
class Marker:
    source: str
    chunk_index: int
    page: str | None
    raw: str


def format_marker(source: str, chunk_index: int, page: Any | None = None) -> str:
    marker = f"[cite:{source}|chunk={chunk_index}"
    if page not in (None, ""):
        marker += f"|page={page}"
    return marker + "]"


def parse_marker(raw: str, body: str) -> Marker | None:
    parts = body.split("|")
    source = parts[0].strip()
    if not source:
        return None
    attrs: dict[str, str] = {}
    for part in parts[1:]:
        if "=" not in part:
            return None
        key, value = part.split("=", 1)
        attrs[key.strip().lower()] = value.strip()
    chunk = attrs.get("chunk", "")
    if not chunk.isdigit():
        return None
    return Marker(source=source, chunk_index=int(chunk), page=attrs.get("page") or None, raw=raw)


def find_markers(text: str) -> tuple[list[Marker], int]:
    """Return parsed markers and the number of malformed ones."""
    markers: list[Marker] = []
    malformed = 0
    for match in CITATION_PATTERN.finditer(text or ""):
        marker = parse_marker(match.group(0), match.group("body"))
        if marker is None:
            malformed += 1
        else:
            markers.append(marker)
    return markers, malformed


def collect_sources(observations: Iterable[Observation]) -> dict[tuple[str, int], dict[str, Any]]:
    """Index the citable chunks returned by succeeded observations."""
    index: dict[tuple[str, int], dict[str, Any]] = {}
    for obs in observations:
        if not obs.succeeded or not isinstance(obs.result, dict):
            continue
        for item in obs.result.get("sources") or []:
            if not isinstance(item, dict) or not item.get("source"):
                continue
            try:
                chunk_index = int(item.get("chunk_index", 0))
            except (TypeError, ValueError):
                continue
            index.setdefault((str(item["source"]), chunk_index), item)
    return index


def _snippet(text: str, limit: int) -> str:
    collapsed = " ".join((text or "").split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: max(limit - 3, 0)].rstrip() + "..."


def extract_citations(
    text: str,
    observations: Iterable[Observation],
    snippet_chars: int = 240,
) -> tuple[list[Citation], int]:
    """Build structured citations from markers. Returns (citations, dropped)."""
    sources = collect_sources(observations)
    markers, dropped = find_markers(text)
    citations: list[Citation] = []
    seen: set[tuple[str, int]] = set()
    for marker in markers:
        item = sources.get((marker.source, marker.chunk_index))
        if item is None:
            dropped += 1
            continue
        page = marker.page
        if page is None and item.get("page") not in (None, ""):
            page = str(item["page"])
        key = (marker.source, marker.chunk_index)
        if key in seen:
            continue
        seen.add(key)
        citations.append(
            Citation(
                source_identifier=marker.source,
                page_or_section=page,
                chunk_index=marker.chunk_index,
                text_snippet=_snippet(str(item.get("text") or ""), snippet_chars),
            )
        )
    return citations, dropped
