"""Request-scoped state containers."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .schemas import Citation, Observation, Plan, ToolError


@dataclass(frozen=True)
class NotebookContext:
    """Opaque handle to one notebook's stores.

    The core only reads `summary` (for the planning oracle); `stores` is passed
    through untouched to tools.
    """

    notebook_id: str
    summary: str = ""
    stores: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "stores", MappingProxyType(dict(self.stores)))

    def store(self, key: str) -> Any | None:
        return self.stores.get(key)


@dataclass
class TraceRecord:
    """In-progress trace for a single run; sealed into `AgentTrace` at the end."""

    trace_id: str
    query: str
    notebook_id: str
    started_at: str
    started_monotonic: float
    plan: Plan | None = None
    observations: list[Observation] = field(default_factory=list)
    oracle_calls: list[dict[str, Any]] = field(default_factory=list)
    final_answer: str = ""
    citations: list[Citation] = field(default_factory=list)
    error: ToolError | None = None
    sealed: bool = False
