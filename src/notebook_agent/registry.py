"""Tool registry: the single source of truth for what the planner may use."""

from __future__ import annotations

from typing import Iterable

from .errors import DuplicateToolError
from .logging import get_logger
from .schemas import ToolDefinition
from .tools import Tool

logger = get_logger("registry")


class ToolRegistry:
    """Insertion-ordered tool lookup. Read-only once `close()` is called."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        self._closed = False
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if self._closed:
            raise RuntimeError("Tool registry is closed; register tools at startup.")
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool
        logger.info(
            "tool_registered",
            extra={"extra": {"tool": tool.name, "repairable": tool.repairable}},
        )

    def close(self) -> "ToolRegistry":
        self._closed = True
        return self

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
