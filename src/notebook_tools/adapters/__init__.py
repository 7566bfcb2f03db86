"""External store adapters."""

from __future__ import annotations

from notebook_agent.errors import ToolExecutionError


class AdapterError(ToolExecutionError):
    """Upstream failure normalized to a tool error code."""
